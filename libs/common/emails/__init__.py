"""
Marketplace Email Package.

Modules:
- core: Base send_email function (SMTP)
- orders: Order confirmation, status update and payment confirmation emails
"""

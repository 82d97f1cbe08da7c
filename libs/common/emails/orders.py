"""
Order and payment email templates.
"""

from decimal import Decimal

from libs.common.emails.core import send_email

CURRENCY = "RWF"


def _money(amount: Decimal | float) -> str:
    return f"{CURRENCY} {Decimal(str(amount)):,.2f}"


def _wrap_html(title: str, inner: str) -> str:
    return f"""
<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <h2 style="margin-top: 0;">{title}</h2>
        {inner}
        <p style="color: #64748b; font-size: 14px;">The Marketplace Team</p>
    </div>
</body>
</html>
"""


async def send_order_confirmation_email(
    to_email: str,
    order_id: str,
    items: list[dict],  # [{"name": str, "quantity": int, "price": Decimal}]
    total: Decimal,
) -> bool:
    """
    Send order confirmation right after an order is placed.
    """
    subject = f"Order Received - #{order_id}"

    items_text = "\n".join(
        f"  - {item['name']} x{item['quantity']} - {_money(item['price'])}"
        for item in items
    )
    items_html = "".join(
        f"<tr><td>{item['name']}</td><td style='text-align:center'>{item['quantity']}</td>"
        f"<td style='text-align:right'>{_money(item['price'])}</td></tr>"
        for item in items
    )

    body = f"""Thank you for your order!

Order #{order_id}

Items:
{items_text}

Total: {_money(total)}

We'll let you know as soon as your payment is confirmed.
"""
    html_body = _wrap_html(
        "Order Received",
        f"""
        <p>Order #{order_id}</p>
        <table style="width: 100%; border-collapse: collapse;">{items_html}</table>
        <p><strong>Total: {_money(total)}</strong></p>
        """,
    )
    return await send_email(to_email, subject, body, html_body)


async def send_order_status_update_email(
    to_email: str,
    order_id: str,
    status: str,
    total: Decimal,
    comment: str | None = None,
) -> bool:
    """
    Notify the buyer that their order moved to a new status.
    """
    readable = status.replace("_", " ").title()
    subject = f"Order #{order_id} is now {readable}"
    body = f"""Your order #{order_id} is now {readable}.

{comment or ""}
Order total: {_money(total)}
"""
    html_body = _wrap_html(
        f"Order {readable}",
        f"<p>Your order #{order_id} is now <strong>{readable}</strong>.</p>"
        f"{f'<p>{comment}</p>' if comment else ''}"
        f"<p>Order total: {_money(total)}</p>",
    )
    return await send_email(to_email, subject, body, html_body)


async def send_payment_confirmation_email(
    to_email: str,
    order_id: str,
    amount: Decimal,
    provider: str,
    reference: str,
) -> bool:
    """
    Confirm a settled mobile-money payment.
    """
    subject = f"Payment Received - Order #{order_id}"
    body = f"""We received your payment of {_money(amount)} for order #{order_id}.

Provider: {provider}
Reference: {reference}
"""
    html_body = _wrap_html(
        "Payment Received",
        f"<p>We received your payment of <strong>{_money(amount)}</strong> "
        f"for order #{order_id}.</p>"
        f"<p>Provider: {provider}<br/>Reference: {reference}</p>",
    )
    return await send_email(to_email, subject, body, html_body)

"""
Core email sending utilities over SMTP.

smtplib is blocking, so delivery runs in a worker thread and never stalls
the event loop serving requests or jobs.
"""

import asyncio
import smtplib
from email.message import Message
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)


def build_message(
    to_email: str,
    subject: str,
    body: str,
    html_body: Optional[str],
    sender: str,
) -> Message:
    """Plain text message, or multipart/alternative when an HTML body is given."""
    if html_body:
        msg = MIMEMultipart("alternative")
        msg.attach(MIMEText(body, "plain"))
        msg.attach(MIMEText(html_body, "html"))
    else:
        msg = MIMEText(body, "plain")

    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = to_email
    return msg


def _deliver(sender_email: str, to_email: str, msg: Message) -> None:
    settings = get_settings()
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
        server.starttls()
        server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        server.sendmail(sender_email, to_email, msg.as_string())


async def send_email(
    to_email: str,
    subject: str,
    body: str,
    html_body: Optional[str] = None,
    from_email: Optional[str] = None,
    from_name: Optional[str] = None,
) -> bool:
    """
    Send an email over SMTP.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        body: Plain text body
        html_body: Optional HTML body (if not provided, plain text is used)
        from_email: Sender email (defaults to DEFAULT_FROM_EMAIL)
        from_name: Sender name (defaults to DEFAULT_FROM_NAME)

    Returns:
        True if email was sent successfully, False otherwise
    """
    settings = get_settings()

    if not settings.SMTP_USERNAME or not settings.SMTP_PASSWORD:
        logger.warning("SMTP credentials not configured - email not sent")
        logger.info(f"Would have sent email to {to_email}: {subject}")
        logger.debug(f"Email body: {body[:200]}...")
        return False

    sender_email = from_email or settings.DEFAULT_FROM_EMAIL
    sender_name = from_name or settings.DEFAULT_FROM_NAME
    msg = build_message(
        to_email, subject, body, html_body, f"{sender_name} <{sender_email}>"
    )

    logger.info(f"Sending email to {to_email}: {subject}")
    try:
        await asyncio.to_thread(_deliver, sender_email, to_email, msg)
    except smtplib.SMTPAuthenticationError as e:
        logger.error(f"SMTP authentication failed: {e}")
        return False
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email: {type(e).__name__}: {e}")
        return False

    logger.info(f"Email sent successfully to {to_email}")
    return True

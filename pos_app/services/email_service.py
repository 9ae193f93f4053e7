"""
Email service for digital receipts.
Uses Flask-Mail for SMTP delivery.
"""
import logging
from flask import current_app
from flask_mail import Mail, Message

logger = logging.getLogger(__name__)

mail = Mail()


def init_mail(app):
    """Initialize Flask-Mail with app."""
    mail.init_app(app)


def _mail_enabled() -> bool:
    """
    Check if mail is properly configured and enabled.
    Prevents 500 errors in dev or misconfigured environments.
    """
    cfg = current_app.config
    return bool(
        not cfg.get("MAIL_SUPPRESS_SEND", False)
        and cfg.get("MAIL_SERVER")
        and cfg.get("MAIL_USERNAME")
    )


def send_receipt_email(to_email: str, subject: str, html_body: str, text_body: str = None) -> bool:
    """
    Send a rendered receipt by email.

    Args:
        to_email: Recipient email
        subject: Email subject
        html_body: Complete receipt HTML (email variant)
        text_body: Plain text fallback (optional)

    Returns:
        True if sent (or mail is disabled), False on delivery failure
    """
    try:
        if not _mail_enabled():
            logger.warning(f"[MAIL DISABLED] Receipt email skipped for {to_email}")
            return True

        msg = Message(
            subject=subject,
            recipients=[to_email],
            body=text_body or "Your receipt is attached as HTML.",
            html=html_body,
        )

        logger.info(f"[EMAIL] Sending receipt via Flask-Mail (SMTP: {current_app.config.get('MAIL_SERVER')})")
        mail.send(msg)
        logger.info(f"[EMAIL] Receipt sent to {to_email}")
        return True

    except Exception as e:
        logger.exception(f"[EMAIL] Failed to send receipt to {to_email}: {e}")
        return False

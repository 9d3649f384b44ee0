"""SendGrid email service for match notifications.

Sends the "your match accepted" email through a SendGrid dynamic template.
Uses asyncio.to_thread to wrap the synchronous SendGrid client.
"""

import asyncio
import logging

import sendgrid
from sendgrid.helpers.mail import Email, Mail, To

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration: read from Pydantic settings (which loads .env)
# ---------------------------------------------------------------------------


def _get_config():
    """Get email config from app settings (lazy to avoid import-time issues)."""
    from coffee_match.app.config import get_settings
    s = get_settings()
    return s.sendgrid_api_key, s.email_from, s.email_from_name, s.match_accepted_template_id


def _get_client() -> sendgrid.SendGridAPIClient:
    """Return a configured SendGrid API client."""
    api_key, _, _, _ = _get_config()
    return sendgrid.SendGridAPIClient(api_key=api_key)


def _send_mail(mail: Mail) -> bool:
    """Synchronous send, called via asyncio.to_thread."""
    client = _get_client()
    response = client.send(mail)
    if response.status_code in (200, 201, 202):
        return True
    logger.error(
        "SendGrid returned status %s: %s",
        response.status_code,
        response.body,
    )
    return False


def build_match_accepted_mail(
    to_email: str,
    to_name: str,
    from_name: str,
    from_email: str,
    slots: list[dict[str, str]],
) -> Mail:
    """Build the templated email telling ``to_email`` their match accepted."""
    _, sender, sender_name, template_id = _get_config()
    mail = Mail(
        from_email=Email(sender, sender_name),
        to_emails=To(to_email, to_name),
    )
    mail.template_id = template_id
    mail.dynamic_template_data = {
        "name": to_name,
        "matchName": from_name,
        "matchEmail": from_email,
        "availability": slots,
    }
    return mail


# ---------------------------------------------------------------------------
# Public async API
# ---------------------------------------------------------------------------


async def send_match_accepted(
    to_email: str,
    to_name: str,
    from_name: str,
    from_email: str,
    slots: list[dict[str, str]],
) -> bool:
    """Tell a participant that their match accepted, with the acceptor's availability.

    Args:
        to_email: Recipient (the participant who has not just accepted).
        to_name: Recipient display name.
        from_name: Display name of the participant who accepted.
        from_email: Email of the participant who accepted.
        slots: ``[{"Day": "Monday", "Period": "Morning"}, ...]``.

    Returns:
        True on success, False on failure. Never raises.
    """
    api_key, sender, _, template_id = _get_config()
    if not api_key or not sender or not template_id:
        logger.warning("SendGrid not configured, skipping match accepted email to %s", to_email)
        return False

    try:
        mail = build_match_accepted_mail(to_email, to_name, from_name, from_email, slots)
        result = await asyncio.to_thread(_send_mail, mail)
        if result:
            logger.info("Match accepted email sent to %s", to_email)
        return result
    except Exception:
        logger.exception("Failed to send match accepted email to %s", to_email)
        return False

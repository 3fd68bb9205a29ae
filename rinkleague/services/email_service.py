"""
Email service using SendGrid for sending roster notifications.
"""

import os
import re
import logging
from html import escape
from typing import Dict, Optional
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To
from dotenv import load_dotenv
from rinkleague.utils.venues import get_venue

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def get_bool_env(key: str, default: bool = True) -> bool:
    """
    Parse a boolean environment variable from a string value.

    .env files store all values as strings, so this function converts string
    values like "true", "True", "TRUE", "1", "yes" to True, and everything
    else (including "false", "False", "0", "no", empty string) to False.

    Args:
        key: Environment variable name
        default: Default value if the variable is not set

    Returns:
        bool: Parsed boolean value
    """
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


# SendGrid Configuration
SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
SENDGRID_FROM_EMAIL = os.getenv("SENDGRID_FROM_EMAIL", "noreply@rinkleague.com")
ENABLE_EMAIL = get_bool_env("ENABLE_EMAIL", default=True)


def get_directions_html(venue_key: Optional[str]) -> str:
    """HTML block with venue address, phone and map links; empty for unknown venues."""
    venue = get_venue(venue_key)
    if not venue:
        return ""
    phone_digits = re.sub(r"\D", "", venue["phone"])
    return (
        f"<p><strong>{escape(venue['name'])}</strong><br/>"
        f"{escape(venue['address'])}<br/>"
        f'Phone: <a href="tel:{phone_digits}">{escape(venue["phone"])}</a></p>'
        "<p><strong>Directions:</strong><br/>"
        f'<a href="{venue["google_maps_url"]}">Google Maps</a> &nbsp;|&nbsp; '
        f'<a href="{venue["waze_url"]}">Waze</a> &nbsp;|&nbsp; '
        f'<a href="{venue["apple_maps_url"]}">Apple Maps</a></p>'
    )


async def send_email(to: str, subject: str, html: str) -> Dict:
    """
    Send one HTML email via SendGrid.

    Returns:
        {"ok": True} on success or when sending is disabled/unconfigured,
        {"ok": False, "error": str} when SendGrid rejects the message
    """
    if not ENABLE_EMAIL:
        logger.info(f"Email sending is disabled. Skipped '{subject}' to {to}")
        return {"ok": True}

    # If SendGrid is not configured, log and report success (don't fail the caller)
    if not SENDGRID_API_KEY:
        logger.warning(f"SENDGRID_API_KEY not configured. Skipped '{subject}' to {to}")
        return {"ok": True}

    try:
        message = Mail(
            from_email=Email(SENDGRID_FROM_EMAIL),
            to_emails=To(to),
            subject=subject,
            html_content=html,
        )

        sg = SendGridAPIClient(SENDGRID_API_KEY)
        response = sg.send(message)

        if 200 <= response.status_code < 300:
            logger.info(f"Email '{subject}' sent to {to}")
            return {"ok": True}
        logger.error(f"SendGrid returned status {response.status_code}: {response.body}")
        return {"ok": False, "error": f"SendGrid returned status {response.status_code}"}

    except Exception as e:
        logger.error(f"Failed to send email to {to}: {str(e)}")
        return {"ok": False, "error": str(e)}


async def send_waitlist_promoted_email(
    to: str,
    event_name: str,
    start_time_display: str,
    location_display: str,
    venue_key: Optional[str] = None,
) -> Dict:
    """
    Tell a member they were moved onto the roster (waitlist promotion or approval).

    Args:
        to: Recipient email
        event_name: Event display name
        start_time_display: Formatted start time
        location_display: Location text, including the rink when set
        venue_key: Optional venue key for the directions block

    Returns:
        {"ok": bool, "error"?: str}
    """
    subject = f"You're in! Added to {event_name}"
    html = (
        "<h2>You've been added to the event</h2>"
        "<p>You were on the waitlist and a spot opened up. You're now confirmed for:</p>"
        f"<p><strong>{escape(event_name)}</strong></p>"
        f"<p>When: {escape(start_time_display)}</p>"
        f"<p>Where: {escape(location_display)}</p>"
        f"{get_directions_html(venue_key)}"
        "<p>See you there!</p>"
    )
    return await send_email(to, subject, html)

"""SendGrid email delivery.

Message bodies are written in a small markdown subset ([links](url) and
**bold**) and sent as both plain text and HTML.
"""

import logging
import os
import re

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

logger = logging.getLogger(__name__)

DEFAULT_FROM_EMAIL = "team@updates.roboquant.ai"
DEFAULT_FROM_NAME = "Roboquant"

LINK = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
BOLD = re.compile(r"\*\*([^*]+)\*\*")

HTML_LAYOUT = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; line-height: 1.5; color: #222;">
{body}
</body>
</html>"""

_client: SendGridAPIClient | None = None


def markdown_to_html(text: str) -> str:
    html_body = LINK.sub(r'<a href="\2">\1</a>', text)
    html_body = BOLD.sub(r"<strong>\1</strong>", html_body)
    return HTML_LAYOUT.format(body=html_body.replace("\n", "<br>\n"))


def markdown_to_plain_text(text: str) -> str:
    """Links become 'text (url)'; bold markers are dropped."""
    return BOLD.sub(r"\1", LINK.sub(r"\1 (\2)", text))


def _sender() -> tuple[str, str]:
    return (
        os.environ.get("FROM_EMAIL", DEFAULT_FROM_EMAIL),
        os.environ.get("FROM_NAME", DEFAULT_FROM_NAME),
    )


def _get_client() -> SendGridAPIClient | None:
    global _client
    api_key = os.environ.get("SENDGRID_API_KEY")
    if _client is None and api_key:
        _client = SendGridAPIClient(api_key)
    return _client


def send_email(to_email: str, subject: str, body: str) -> bool:
    """
    Send one email through SendGrid.

    Returns:
        True if SendGrid accepted it (2xx), False if it is not configured
        or the request failed. Failures are logged, never raised.
    """
    client = _get_client()
    if client is None:
        logger.warning("SendGrid not configured (SENDGRID_API_KEY not set)")
        return False

    message = Mail(
        from_email=_sender(),
        to_emails=to_email,
        subject=subject,
        plain_text_content=markdown_to_plain_text(body),
        html_content=markdown_to_html(body),
    )

    try:
        response = client.send(message)
    except Exception as e:
        # python-http-client raises a different HTTPError subclass per status
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False

    if not 200 <= response.status_code < 300:
        logger.error(f"SendGrid returned {response.status_code} for {to_email}")
        return False
    return True

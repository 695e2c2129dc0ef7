"""Send transactional email through the Resend REST API."""

import httpx

from inputhaven.core.config import get_settings

RESEND_SEND_URL = "https://api.resend.com/emails"


class MailerError(Exception):
    pass


async def send_email(to: str, subject: str, html: str, client: httpx.AsyncClient | None = None) -> str | None:
    """Return the provider message id. Raises MailerError on any failure."""
    settings = get_settings()
    if not settings.resend_api_key:
        raise MailerError("Email provider not configured")
    payload = {"from": settings.email_from, "to": [to], "subject": subject, "html": html}
    headers = {"Authorization": f"Bearer {settings.resend_api_key}"}
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=settings.email_timeout_seconds)
    try:
        resp = await client.post(RESEND_SEND_URL, json=payload, headers=headers)
    except httpx.HTTPError as e:
        raise MailerError(f"Email provider request failed: {e.__class__.__name__}") from e
    finally:
        if owns_client:
            await client.aclose()
    if resp.status_code >= 400:
        raise MailerError(f"Email provider returned {resp.status_code}: {resp.text[:200]}")
    try:
        return resp.json().get("id")
    except ValueError:
        return None

import httpx
import pytest

from inputhaven.core.config import get_settings
from inputhaven.services import mailer


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_unconfigured_provider_raises(monkeypatch):
    monkeypatch.setattr(get_settings(), "resend_api_key", "")
    with pytest.raises(mailer.MailerError):
        await mailer.send_email("a@mysite.com", "s", "<p>x</p>")


async def test_send_returns_message_id(monkeypatch):
    monkeypatch.setattr(get_settings(), "resend_api_key", "re_test")
    seen = {}

    def handler(request: httpx.Request):
        seen["auth"] = request.headers["Authorization"]
        seen["url"] = str(request.url)
        return httpx.Response(200, json={"id": "email_123"})

    async with _client(handler) as client:
        message_id = await mailer.send_email("a@mysite.com", "Hello", "<p>x</p>", client=client)
    assert message_id == "email_123"
    assert seen == {"auth": "Bearer re_test", "url": mailer.RESEND_SEND_URL}


async def test_provider_error_raises(monkeypatch):
    monkeypatch.setattr(get_settings(), "resend_api_key", "re_test")
    async with _client(lambda request: httpx.Response(422, text="invalid to")) as client:
        with pytest.raises(mailer.MailerError, match="422"):
            await mailer.send_email("bad", "Hello", "<p>x</p>", client=client)


async def test_transport_error_raises(monkeypatch):
    monkeypatch.setattr(get_settings(), "resend_api_key", "re_test")

    def handler(request):
        raise httpx.ConnectError("refused")

    async with _client(handler) as client:
        with pytest.raises(mailer.MailerError):
            await mailer.send_email("a@mysite.com", "Hello", "<p>x</p>", client=client)

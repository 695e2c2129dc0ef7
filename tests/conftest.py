import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Test settings (read once by get_settings())
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("MONGODB_DB_NAME", "inputhaven_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key-min-32-characters-long")
os.environ.setdefault("APP_URL", "https://app.inputhaven.test")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("WEBHOOK_RESOLVE_DNS", "false")
os.environ.setdefault("RESEND_API_KEY", "")
os.environ.setdefault("OPENAI_API_KEY", "")


class BrokenRedis:
    """Every command fails like an unreachable server."""

    def __getattr__(self, name):
        from redis.exceptions import ConnectionError as RedisConnectionError

        def _fail(*args, **kwargs):
            raise RedisConnectionError("Error connecting to redis:6379. Connection refused.")
        return _fail


@pytest_asyncio.fixture
async def db():
    from beanie import init_beanie
    from mongomock_motor import AsyncMongoMockClient

    from inputhaven.db.init import DOCUMENT_MODELS
    client = AsyncMongoMockClient()
    database = client["inputhaven_test"]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    yield database


@pytest_asyncio.fixture
async def redis():
    from fakeredis import FakeAsyncRedis, FakeServer
    r = FakeAsyncRedis(server=FakeServer(), decode_responses=True)
    yield r
    await r.aclose()


@pytest.fixture
def broken_redis():
    return BrokenRedis()


@pytest.fixture(autouse=True)
def _reset_fallback_limiters():
    from inputhaven.services import rate_limit
    rate_limit._fallbacks.clear()
    yield
    rate_limit._fallbacks.clear()


@pytest.fixture
def sent_emails(monkeypatch):
    """Replace the email provider; records (to, subject, html)."""
    from inputhaven.services import mailer
    sent = []

    async def fake_send(to, subject, html, client=None):
        sent.append((to, subject, html))
        return f"msg_{len(sent)}"

    monkeypatch.setattr(mailer, "send_email", fake_send)
    return sent


@pytest.fixture
def webhook_calls(monkeypatch):
    from inputhaven.services import webhooks
    calls = []

    async def fake_deliver(form_id, submission_id, url, secret, payload, client=None):
        calls.append({"form_id": form_id, "submission_id": submission_id, "url": url, "secret": secret, "payload": payload})
        return {"success": True, "response_code": 200, "error": None}

    monkeypatch.setattr(webhooks, "deliver_webhook", fake_deliver)
    return calls


@pytest_asyncio.fixture
async def account(db):
    from inputhaven.models.account import Account
    acc = Account(email="owner@mysite.com", name="Owner", plan="STARTER")
    await acc.insert()
    return acc


@pytest_asyncio.fixture
async def form(account):
    from inputhaven.services.forms import create_form
    f, _ = await create_form(
        account.id,
        "Contact",
        "owner@mysite.com",
        allowed_domains=["mysite.com"],
        honeypot_field="_gotcha",
    )
    return f


@pytest_asyncio.fixture
async def client(db, redis, sent_emails, webhook_calls) -> AsyncGenerator[AsyncClient, None]:
    from inputhaven.core.redis import get_redis
    from inputhaven.main import app
    app.dependency_overrides[get_redis] = lambda: redis
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()

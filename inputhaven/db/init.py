import certifi
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from inputhaven.core.config import get_settings
from inputhaven.models.account import Account
from inputhaven.models.api_key import ApiKey
from inputhaven.models.email_queue import EmailQueueEntry
from inputhaven.models.failed_job import FailedJob
from inputhaven.models.form import Form
from inputhaven.models.submission import Submission
from inputhaven.models.webhook_log import WebhookLog

DOCUMENT_MODELS = [
    Account,
    ApiKey,
    Form,
    Submission,
    EmailQueueEntry,
    WebhookLog,
    FailedJob,
]


def _use_tls(uri: str) -> bool:
    """True if URI uses TLS (Atlas or explicit tls=true). Avoids TLS for plain mongodb:// in CI."""
    return "mongodb+srv://" in uri or "tls=true" in uri.lower()


async def init_db() -> None:
    settings = get_settings()
    # Atlas in Docker: tlsCAFile + tlsDisableOCSPEndpointCheck avoid TLSV1_ALERT_INTERNAL_ERROR
    kwargs = {}
    if _use_tls(settings.mongodb_uri):
        kwargs["tlsCAFile"] = certifi.where()
        kwargs["tlsDisableOCSPEndpointCheck"] = True
    client = AsyncIOMotorClient(settings.mongodb_uri, **kwargs)
    database = client[settings.mongodb_db_name]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)

"""ARQ job definitions."""

import uuid
from typing import Any

from arq.connections import RedisSettings

from inputhaven.core.config import get_settings
from inputhaven.core.logging import get_logger

log = get_logger(__name__)


async def _run_with_dlq(job_name: str, job_id: str | None, attempts: int, coro) -> Any:
    """Run coroutine; on exception persist to FailedJob then re-raise."""
    try:
        return await coro
    except Exception as e:
        from inputhaven.models.failed_job import FailedJob
        fid = job_id or str(uuid.uuid4())
        await FailedJob(
            job_name=job_name,
            job_id=fid,
            attempts=attempts,
            reason=str(e)[:2000],
        ).insert()
        log.exception("job_failed", job=job_name, job_id=fid, reason=str(e))
        raise


async def retry_emails(ctx: dict[str, Any]) -> dict[str, Any]:
    """Cron job: re-send due pending notification emails."""
    job_id = ctx.get("job_id") if isinstance(ctx.get("job_id"), str) else None
    from inputhaven.services.email_queue import retry_failed_emails
    return await _run_with_dlq("retry_emails", job_id, ctx.get("job_try", 1), retry_failed_emails())


async def startup(ctx: dict) -> None:
    from inputhaven.core.logging import configure_logging
    from inputhaven.db.init import init_db
    configure_logging(debug=get_settings().debug)
    await init_db()


async def shutdown(ctx: dict) -> None:
    pass


def get_redis_settings() -> RedisSettings:
    from urllib.parse import urlparse
    s = get_settings()
    u = urlparse(s.redis_url)
    return RedisSettings(
        host=u.hostname or "localhost",
        port=u.port or 6379,
        password=u.password,
        database=int(u.path.lstrip("/")) if u.path and u.path != "/" else 0,
    )

from fastapi import APIRouter, Depends

from inputhaven.deps import enforce_api_rate_limit, require_cron_secret
from inputhaven.services import email_queue

router = APIRouter()


@router.get("/retry-emails", dependencies=[Depends(enforce_api_rate_limit), Depends(require_cron_secret)])
async def retry_emails():
    """Retry sweep for pending notification emails (external scheduler)."""
    out = await email_queue.retry_failed_emails()
    return {"success": True, **out}

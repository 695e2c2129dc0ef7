from fastapi import APIRouter, BackgroundTasks, Depends, Request

from inputhaven.core.redis import get_redis
from inputhaven.services import intake as intake_service

router = APIRouter()


@router.options("")
async def submit_preflight(request: Request):
    """CORS preflight; uses the form's allowlist when the form can be identified."""
    return await intake_service.handle_preflight(request)


@router.post("")
async def submit(
    request: Request,
    background_tasks: BackgroundTasks,
    redis=Depends(get_redis),
):
    """Public form endpoint: JSON, multipart or urlencoded body carrying `_form_id`."""
    return await intake_service.handle_submission(request, redis, background_tasks)

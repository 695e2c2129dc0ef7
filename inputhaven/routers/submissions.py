from fastapi import APIRouter, Depends

from inputhaven.core.exceptions import NotFoundError
from inputhaven.deps import get_current_account, parse_object_id
from inputhaven.models.account import Account
from inputhaven.services import submissions as submissions_service

router = APIRouter()


@router.post("/{submission_id}/read")
async def submission_mark_read(submission_id: str, account: Account = Depends(get_current_account)):
    if not await submissions_service.mark_read(parse_object_id(submission_id, "Submission"), account.id):
        raise NotFoundError("Submission not found")
    return {"success": True}


@router.delete("/{submission_id}")
async def submission_delete(submission_id: str, account: Account = Depends(get_current_account)):
    """Delete a submission and any of its emails still queued."""
    if not await submissions_service.delete_submission(parse_object_id(submission_id, "Submission"), account.id):
        raise NotFoundError("Submission not found")
    return {"success": True}

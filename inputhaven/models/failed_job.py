"""Dead letter for background work that raised: whole worker jobs and single
email-queue entries that broke the retry sweep."""

from datetime import datetime

from beanie import Document, PydanticObjectId
from pydantic import Field


class FailedJob(Document):
    job_name: str
    job_id: str
    email_entry_id: PydanticObjectId | None = None  # set when one queue entry failed
    attempts: int = 0
    reason: str = ""
    resolved: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "failed_jobs"
        indexes = [
            [("job_name", 1), ("created_at", -1)],
            [("email_entry_id", 1)],
        ]

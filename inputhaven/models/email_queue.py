from datetime import datetime
from typing import Literal

from beanie import Document, PydanticObjectId
from pydantic import Field

EmailStatus = Literal["pending", "sent", "failed"]


class EmailQueueEntry(Document):
    """One notification per (submission, recipient). sent and failed are terminal."""
    submission_id: PydanticObjectId
    to: str
    subject: str
    status: EmailStatus = "pending"
    attempts: int = 0
    next_retry_at: datetime | None = None
    error: str | None = None
    provider_message_id: str | None = None
    sent_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "email_queue"
        indexes = [
            [("status", 1), ("next_retry_at", 1)],
            [("submission_id", 1)],
        ]

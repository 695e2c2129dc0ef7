from datetime import datetime
from typing import Any, Literal

from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field

SpamMethod = Literal["keyword", "ai", "honeypot", "none"]


class FileRef(BaseModel):
    file_name: str
    file_size: int
    mime_type: str
    storage_key: str


class Submission(Document):
    """One accepted request. Only is_read changes after insert."""
    form_id: PydanticObjectId
    account_id: PydanticObjectId  # denormalised for the monthly quota count
    data: dict[str, Any] = Field(default_factory=dict)
    ip_address: str | None = None
    user_agent: str | None = None
    referer: str | None = None
    is_spam: bool = False
    spam_score: int | None = None
    spam_reason: str | None = None
    spam_method: SpamMethod = "none"
    is_read: bool = False
    files: list[FileRef] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "submissions"
        indexes = [
            [("form_id", 1), ("created_at", -1)],
            [("account_id", 1), ("created_at", 1), ("is_spam", 1)],
        ]

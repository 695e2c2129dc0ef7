"""Append-only audit of webhook delivery attempts."""

from datetime import datetime
from typing import Any

from beanie import Document, PydanticObjectId
from pydantic import Field


class WebhookLog(Document):
    form_id: PydanticObjectId
    submission_id: PydanticObjectId | None = None
    url: str
    attempt: int = 1
    request_body: dict[str, Any] = Field(default_factory=dict)
    response_code: int | None = None
    response_body: str | None = None
    duration_ms: int = 0
    success: bool = False
    error: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "webhook_logs"
        indexes = [[("form_id", 1), ("created_at", -1)]]

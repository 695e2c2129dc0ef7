"""Hashed bearer keys for the management API."""

from datetime import datetime

from beanie import Document, Indexed, PydanticObjectId
from pydantic import Field


class ApiKey(Document):
    account_id: PydanticObjectId
    name: str
    key_hash: Indexed(str, unique=True)
    key_prefix: str  # first chars of the key, for display
    last_used: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "api_keys"
        indexes = [[("account_id", 1), ("created_at", -1)]]

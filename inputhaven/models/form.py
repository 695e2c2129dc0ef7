from datetime import datetime
from typing import Literal

from beanie import Document, Indexed, PydanticObjectId
from pydantic import BaseModel, Field

RouteOperator = Literal["equals", "contains", "starts_with", "ends_with"]


class EmailRoute(BaseModel):
    id: str
    field: str
    operator: RouteOperator
    value: str
    email_to: str


class Form(Document):
    account_id: PydanticObjectId
    name: str
    access_key: Indexed(str, unique=True)  # immutable after creation
    is_active: bool = True
    allowed_domains: list[str] = Field(default_factory=list)  # empty = canonical origin only
    honeypot_field: str | None = None
    ai_spam_filter: bool = False
    email_to: str
    custom_subject: str | None = None
    email_routes: list[EmailRoute] = Field(default_factory=list)
    webhook_url: str | None = None
    webhook_secret_encrypted: str = ""
    auto_response: bool = False
    auto_response_msg: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "forms"
        indexes = [[("account_id", 1)]]

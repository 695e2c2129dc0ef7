from datetime import datetime

from beanie import Document, Indexed
from pydantic import Field

from inputhaven.core.plans import PlanName


class Account(Document):
    """Owner of forms; carries the plan. Sign-up and login live elsewhere; the
    management API authenticates with `ApiKey`s."""
    email: Indexed(str, unique=True)
    name: str = ""
    plan: PlanName = "FREE"
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "accounts"

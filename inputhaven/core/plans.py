"""Plan catalogue: monthly submission limits and feature gates."""

from typing import Literal

from pydantic import BaseModel

PlanName = Literal["FREE", "STARTER", "PRO", "ENTERPRISE"]


class PlanConfig(BaseModel, frozen=True):
    name: str
    submissions_per_month: int
    webhooks: bool
    ai_spam_filter: bool
    email_routing: bool
    max_forms: int | None  # None = unlimited


PLANS: dict[str, PlanConfig] = {
    "FREE": PlanConfig(
        name="Free",
        submissions_per_month=500,
        webhooks=False,
        ai_spam_filter=False,
        email_routing=False,
        max_forms=3,
    ),
    "STARTER": PlanConfig(
        name="Starter",
        submissions_per_month=2_500,
        webhooks=True,
        ai_spam_filter=True,
        email_routing=True,
        max_forms=25,
    ),
    "PRO": PlanConfig(
        name="Pro",
        submissions_per_month=10_000,
        webhooks=True,
        ai_spam_filter=True,
        email_routing=True,
        max_forms=None,
    ),
    "ENTERPRISE": PlanConfig(
        name="Enterprise",
        submissions_per_month=50_000,
        webhooks=True,
        ai_spam_filter=True,
        email_routing=True,
        max_forms=None,
    ),
}


def get_plan_config(plan: str) -> PlanConfig:
    """Unknown plan names get the FREE limits."""
    return PLANS.get(plan, PLANS["FREE"])


def can_create_form(plan: str, current_form_count: int) -> bool:
    limit = get_plan_config(plan).max_forms
    return limit is None or current_form_count < limit

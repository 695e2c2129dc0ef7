"""Form lookup, creation, listing and deletion."""

from beanie import PydanticObjectId

from inputhaven.core.encryption import encrypt_webhook_secret
from inputhaven.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from inputhaven.core.plans import can_create_form, get_plan_config
from inputhaven.core.security import generate_access_key, generate_webhook_secret
from inputhaven.models.account import Account
from inputhaven.models.email_queue import EmailQueueEntry
from inputhaven.models.form import EmailRoute, Form
from inputhaven.models.submission import Submission
from inputhaven.models.webhook_log import WebhookLog
from inputhaven.services.webhooks import WebhookUrlError, validate_webhook_url


async def get_active_form(access_key: str) -> Form | None:
    """Unknown and inactive forms look the same to callers."""
    if not access_key or len(access_key) > 200:
        return None
    form = await Form.find_one(Form.access_key == access_key)
    if not form or not form.is_active:
        return None
    return form


async def create_form(
    account_id: PydanticObjectId,
    name: str,
    email_to: str,
    allowed_domains: list[str] | None = None,
    honeypot_field: str | None = None,
    custom_subject: str | None = None,
    webhook_url: str | None = None,
    ai_spam_filter: bool = False,
    email_routes: list[EmailRoute] | None = None,
) -> tuple[Form, str | None]:
    """Create a form with a fresh access key. Returns (form, plaintext webhook secret or None);
    the secret is only shown once."""
    account = await Account.get(account_id)
    if not account:
        raise NotFoundError("Account not found")
    form_count = await Form.find(Form.account_id == account_id).count()
    if not can_create_form(account.plan, form_count):
        raise ForbiddenError("Form limit reached. Please upgrade your plan.")
    plan = get_plan_config(account.plan)
    if webhook_url and not plan.webhooks:
        raise ForbiddenError("Webhooks are not available on your plan")
    # Unavailable features are dropped rather than refused.
    ai_spam_filter = ai_spam_filter and plan.ai_spam_filter
    if not plan.email_routing:
        email_routes = None
    secret = None
    if webhook_url:
        try:
            validate_webhook_url(webhook_url)
        except WebhookUrlError as e:
            raise BadRequestError(str(e)) from e
        secret = generate_webhook_secret()
    form = Form(
        account_id=account_id,
        name=name,
        access_key=generate_access_key(),
        allowed_domains=[d.strip() for d in allowed_domains or [] if d.strip()],
        honeypot_field=honeypot_field or None,
        custom_subject=custom_subject or None,
        email_to=email_to,
        webhook_url=webhook_url or None,
        webhook_secret_encrypted=encrypt_webhook_secret(secret) if secret else "",
        ai_spam_filter=ai_spam_filter,
        email_routes=email_routes or [],
    )
    await form.insert()
    return form, secret


async def list_forms(account_id: PydanticObjectId) -> list[Form]:
    return await Form.find(Form.account_id == account_id).sort(-Form.created_at).to_list()


async def delete_form(form_id: PydanticObjectId, account_id: PydanticObjectId) -> bool:
    """Delete a form and everything hanging off it."""
    form = await Form.find_one(Form.id == form_id, Form.account_id == account_id)
    if not form:
        return False
    submission_ids = [s.id for s in await Submission.find(Submission.form_id == form_id).to_list()]
    if submission_ids:
        await EmailQueueEntry.find({"submission_id": {"$in": submission_ids}}).delete()
    await Submission.find(Submission.form_id == form_id).delete()
    await WebhookLog.find(WebhookLog.form_id == form_id).delete()
    await form.delete()
    return True

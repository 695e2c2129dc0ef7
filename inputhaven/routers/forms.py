from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from inputhaven.core.exceptions import NotFoundError
from inputhaven.deps import get_current_account, parse_object_id
from inputhaven.models.account import Account
from inputhaven.models.form import EmailRoute, Form
from inputhaven.services import forms as forms_service
from inputhaven.services import submissions as submissions_service

router = APIRouter()


class FormCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email_to: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=254)
    allowed_domains: list[str] = Field(default_factory=list, max_length=50)
    honeypot_field: str | None = Field(default=None, pattern=r"^[a-zA-Z0-9_-]*$", max_length=50)
    custom_subject: str | None = Field(default=None, max_length=200)
    webhook_url: str | None = Field(default=None, max_length=2048)
    ai_spam_filter: bool = False
    email_routes: list[EmailRoute] = Field(default_factory=list, max_length=20)


def _form_out(f: Form) -> dict:
    return {
        "id": str(f.id),
        "name": f.name,
        "access_key": f.access_key,
        "email_to": f.email_to,
        "allowed_domains": f.allowed_domains,
        "is_active": f.is_active,
        "webhook_url": f.webhook_url,
        "ai_spam_filter": f.ai_spam_filter,
        "created_at": f.created_at.isoformat(),
    }


@router.get("")
async def forms_list(account: Account = Depends(get_current_account)):
    items = await forms_service.list_forms(account.id)
    return {"forms": [_form_out(f) for f in items]}


@router.post("")
async def form_create(body: FormCreate, account: Account = Depends(get_current_account)):
    """Create a form. The webhook secret is returned here and never again."""
    form, secret = await forms_service.create_form(
        account.id,
        body.name,
        body.email_to,
        allowed_domains=body.allowed_domains,
        honeypot_field=body.honeypot_field,
        custom_subject=body.custom_subject,
        webhook_url=body.webhook_url,
        ai_spam_filter=body.ai_spam_filter,
        email_routes=body.email_routes,
    )
    return {**_form_out(form), "webhook_secret": secret}


@router.delete("/{form_id}")
async def form_delete(form_id: str, account: Account = Depends(get_current_account)):
    """Delete a form with its submissions, queued emails and webhook logs."""
    if not await forms_service.delete_form(parse_object_id(form_id, "Form"), account.id):
        raise NotFoundError("Form not found")
    return {"success": True}


@router.get("/{form_id}/submissions/export")
async def form_export(form_id: str, account: Account = Depends(get_current_account)):
    """CSV of non-spam submissions, newest first."""
    result = await submissions_service.export_csv(parse_object_id(form_id, "Form"), account.id)
    if result is None:
        raise NotFoundError("Form not found")
    text, truncated = result
    return Response(
        content=text,
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="submissions-{form_id}.csv"',
            "X-Export-Truncated": "true" if truncated else "false",
        },
    )

import csv
import io
from datetime import datetime, timedelta

import pytest
from beanie import PydanticObjectId

from inputhaven.core.exceptions import BadRequestError, ForbiddenError
from inputhaven.models.account import Account
from inputhaven.models.email_queue import EmailQueueEntry
from inputhaven.models.form import EmailRoute, Form
from inputhaven.models.submission import Submission
from inputhaven.models.webhook_log import WebhookLog
from inputhaven.services import submissions
from inputhaven.services.forms import create_form, delete_form, get_active_form


async def _add(form, data, is_spam=False, created_at=None):
    sub = Submission(
        form_id=form.id,
        account_id=form.account_id,
        data=data,
        is_spam=is_spam,
        created_at=created_at or datetime.utcnow(),
    )
    await sub.insert()
    return sub


async def test_mark_read_requires_ownership(form):
    sub = await _add(form, {"name": "Ada"})
    assert not await submissions.mark_read(sub.id, PydanticObjectId())
    assert await submissions.mark_read(sub.id, form.account_id)
    assert (await Submission.get(sub.id)).is_read


async def test_delete_submission_removes_queue_entries(form):
    sub = await _add(form, {"name": "Ada"})
    await EmailQueueEntry(submission_id=sub.id, to="o@mysite.com", subject="s").insert()
    assert not await submissions.delete_submission(sub.id, PydanticObjectId())
    assert await submissions.delete_submission(sub.id, form.account_id)
    assert await Submission.get(sub.id) is None
    assert await EmailQueueEntry.count() == 0


async def test_export_csv(form):
    base = datetime(2026, 3, 1)
    await _add(form, {"name": "Ada", "email": "ada@example.com"}, created_at=base)
    await _add(form, {"name": "=HYPERLINK(\"http://evil\")", "company": "Acme"}, created_at=base + timedelta(hours=1))
    await _add(form, {"name": "Spammer"}, is_spam=True, created_at=base + timedelta(hours=2))
    text, truncated = await submissions.export_csv(form.id, form.account_id)
    assert not truncated
    rows = list(csv.reader(io.StringIO(text)))
    assert rows[0] == ["id", "createdAt", "name", "company", "email"]
    assert len(rows) == 3
    assert rows[1][2].startswith("'=")
    assert rows[1][3] == "Acme"
    assert rows[2][2] == "Ada" and rows[2][3] == ""


async def test_export_csv_escapes_header_names(form):
    await _add(form, {"@cmd": "x"})
    text, _ = await submissions.export_csv(form.id, form.account_id)
    assert text.splitlines()[0] == "id,createdAt,'@cmd"


async def test_export_csv_not_owned(form):
    assert await submissions.export_csv(form.id, PydanticObjectId()) is None


async def test_export_csv_empty(form):
    assert await submissions.export_csv(form.id, form.account_id) == ("", False)


async def test_create_form(account):
    form, secret = await create_form(
        account.id, "Quote", "owner@mysite.com", allowed_domains=[" mysite.com ", ""],
        webhook_url="https://hooks.example.com/x",
    )
    assert len(form.access_key) == 32
    assert form.allowed_domains == ["mysite.com"]
    assert secret.startswith("whsec_")
    assert secret not in form.webhook_secret_encrypted
    assert (await get_active_form(form.access_key)).id == form.id


async def test_create_form_rejects_internal_webhook(account):
    with pytest.raises(BadRequestError):
        await create_form(account.id, "Quote", "owner@mysite.com", webhook_url="http://169.254.169.254/")


async def test_create_form_enforces_plan_form_limit(db):
    account = Account(email="free@mysite.com", plan="FREE")
    await account.insert()
    for i in range(3):
        await create_form(account.id, f"Form {i}", "free@mysite.com")
    with pytest.raises(ForbiddenError, match="Form limit reached"):
        await create_form(account.id, "One more", "free@mysite.com")
    assert await Form.find(Form.account_id == account.id).count() == 3


async def test_create_form_drops_features_missing_from_plan(db):
    account = Account(email="free@mysite.com", plan="FREE")
    await account.insert()
    route = EmailRoute(id="r1", field="dept", operator="equals", value="sales", email_to="sales@mysite.com")
    form, _ = await create_form(
        account.id, "Quote", "free@mysite.com", ai_spam_filter=True, email_routes=[route]
    )
    assert not form.ai_spam_filter
    assert form.email_routes == []
    with pytest.raises(ForbiddenError):
        await create_form(account.id, "Hooked", "free@mysite.com", webhook_url="https://hooks.example.com/x")


async def test_get_active_form_guards(form):
    assert await get_active_form("") is None
    assert await get_active_form("x" * 500) is None
    assert await get_active_form("missing") is None


async def test_delete_form_cascades(form):
    sub = await _add(form, {"name": "Ada"})
    await EmailQueueEntry(submission_id=sub.id, to="o@mysite.com", subject="s").insert()
    await WebhookLog(form_id=form.id, submission_id=sub.id, url="https://hooks.example.com/x").insert()
    assert not await delete_form(form.id, PydanticObjectId())
    assert await delete_form(form.id, form.account_id)
    assert await Form.get(form.id) is None
    assert await Submission.count() == 0
    assert await EmailQueueEntry.count() == 0
    assert await WebhookLog.count() == 0

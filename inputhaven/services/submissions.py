"""Submission management: read flag, deletion, CSV export."""

import csv
import io
import re

from beanie import PydanticObjectId

from inputhaven.models.email_queue import EmailQueueEntry
from inputhaven.models.form import Form
from inputhaven.models.submission import Submission

EXPORT_LIMIT = 10_000
_FORMULA_PREFIX = re.compile(r"^[=+\-@]")


async def _owned_submission(submission_id: PydanticObjectId, account_id: PydanticObjectId) -> Submission | None:
    submission = await Submission.get(submission_id)
    if not submission or submission.account_id != account_id:
        return None
    return submission


async def mark_read(submission_id: PydanticObjectId, account_id: PydanticObjectId) -> bool:
    submission = await _owned_submission(submission_id, account_id)
    if not submission:
        return False
    submission.is_read = True
    await submission.save()
    return True


async def delete_submission(submission_id: PydanticObjectId, account_id: PydanticObjectId) -> bool:
    submission = await _owned_submission(submission_id, account_id)
    if not submission:
        return False
    await EmailQueueEntry.find(EmailQueueEntry.submission_id == submission_id).delete()
    await submission.delete()
    return True


def _csv_cell(value) -> str:
    s = "" if value is None else str(value)
    # Spreadsheet formula injection
    if _FORMULA_PREFIX.match(s):
        s = "'" + s
    return s


async def export_csv(form_id: PydanticObjectId, account_id: PydanticObjectId) -> tuple[str, bool] | None:
    """Non-spam submissions, newest first. Returns (csv_text, truncated) or None if not owned."""
    form = await Form.find_one(Form.id == form_id, Form.account_id == account_id)
    if not form:
        return None
    submissions = await Submission.find(
        Submission.form_id == form_id,
        Submission.is_spam == False,  # noqa: E712
    ).sort(-Submission.created_at).limit(EXPORT_LIMIT).to_list()
    if not submissions:
        return "", False
    keys: dict[str, None] = {}
    for s in submissions:
        for k in s.data:
            keys.setdefault(k, None)
    columns = ["id", "createdAt", *(_csv_cell(k) for k in keys)]
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(columns)
    for s in submissions:
        writer.writerow(
            [str(s.id), s.created_at.isoformat()] + [_csv_cell(s.data.get(k)) for k in keys]
        )
    return buf.getvalue(), len(submissions) == EXPORT_LIMIT

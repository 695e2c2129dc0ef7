"""Notification queue: synchronous first attempt, swept retries with backoff."""

from datetime import datetime, timedelta
from typing import Any

from beanie import PydanticObjectId
from beanie.operators import Or

from inputhaven.core.logging import get_logger
from inputhaven.models.email_queue import EmailQueueEntry
from inputhaven.models.failed_job import FailedJob
from inputhaven.models.form import Form
from inputhaven.models.submission import Submission
from inputhaven.services import mailer
from inputhaven.services.email_template import build_submission_email_html

log = get_logger(__name__)

BACKOFF_SECONDS = (60, 300, 1800)  # 1 min, 5 min, 30 min
MAX_ATTEMPTS = 3
SWEEP_BATCH_SIZE = 50
CLAIM_LEASE_SECONDS = 300


def next_retry_at(attempts: int, now: datetime | None = None) -> datetime:
    """Attempts already made (0-based tier index); clamps to the last tier."""
    delay = BACKOFF_SECONDS[min(max(attempts, 0), len(BACKOFF_SECONDS) - 1)]
    return (now or datetime.utcnow()) + timedelta(seconds=delay)


async def _attempt(entry: EmailQueueEntry, html: str, now: datetime) -> bool:
    """One send; updates and saves the entry. Returns True when sent."""
    try:
        message_id = await mailer.send_email(entry.to, entry.subject, html)
    except Exception as e:
        entry.attempts += 1
        entry.error = str(e)[:500]
        if entry.attempts >= MAX_ATTEMPTS:
            entry.status = "failed"
            entry.next_retry_at = None
        else:
            entry.next_retry_at = next_retry_at(entry.attempts - 1, now)
        await entry.save()
        log.warning(
            "email_send_failed",
            email_id=str(entry.id),
            to=entry.to,
            attempts=entry.attempts,
            permanent=entry.status == "failed",
            error=entry.error,
        )
        return False
    entry.attempts += 1
    entry.status = "sent"
    entry.provider_message_id = message_id
    entry.sent_at = now
    entry.next_retry_at = None
    entry.error = None
    await entry.save()
    log.info("email_sent", email_id=str(entry.id), to=entry.to, attempts=entry.attempts)
    return True


async def enqueue_and_send(
    submission_id: PydanticObjectId,
    recipients: list[str],
    subject: str,
    html: str,
) -> list[EmailQueueEntry]:
    """One queue entry per recipient, each tried once now; failures stay pending."""
    entries = []
    for to in recipients:
        now = datetime.utcnow()
        # Scheduled ahead so a concurrent sweep leaves the inline attempt alone.
        entry = EmailQueueEntry(
            submission_id=submission_id,
            to=to,
            subject=subject,
            next_retry_at=next_retry_at(0, now),
        )
        await entry.insert()
        await _attempt(entry, html, now)
        entries.append(entry)
    return entries


async def due_entries(now: datetime, limit: int = SWEEP_BATCH_SIZE) -> list[EmailQueueEntry]:
    return await EmailQueueEntry.find(
        EmailQueueEntry.status == "pending",
        EmailQueueEntry.attempts < MAX_ATTEMPTS,
        Or(EmailQueueEntry.next_retry_at == None, EmailQueueEntry.next_retry_at <= now),  # noqa: E711
    ).limit(limit).to_list()


async def claim(entry: EmailQueueEntry, now: datetime) -> bool:
    """Lease a due entry for this sweep.

    Conditional on the state the sweep read, so of two overlapping sweeps
    (cron worker and the HTTP trigger) only one sends. An unfinished lease
    expires after CLAIM_LEASE_SECONDS and the entry becomes due again.
    """
    lease_until = now + timedelta(seconds=CLAIM_LEASE_SECONDS)
    result = await EmailQueueEntry.get_motor_collection().update_one(
        {
            "_id": entry.id,
            "status": "pending",
            "attempts": entry.attempts,
            "next_retry_at": entry.next_retry_at,
        },
        {"$set": {"next_retry_at": lease_until}},
    )
    if result.modified_count != 1:
        return False
    entry.next_retry_at = lease_until
    return True


async def _retry_one(entry: EmailQueueEntry, now: datetime) -> bool:
    submission = await Submission.get(entry.submission_id)
    form = await Form.get(submission.form_id) if submission else None
    if not submission or not form:
        entry.status = "failed"
        entry.error = "Submission deleted"
        entry.next_retry_at = None
        await entry.save()
        return False
    html = build_submission_email_html(form.name, submission.data, submission.created_at.isoformat())
    return await _attempt(entry, html, now)


async def retry_failed_emails(now: datetime | None = None) -> dict[str, Any]:
    """Sweep: re-send every due pending entry. Returns {"retried", "failed"} counts.

    An entry that breaks the sweep itself is dead-lettered and skipped; the
    rest of the batch still runs.
    """
    now = now or datetime.utcnow()
    retried = 0
    failed = 0
    skipped = 0
    for entry in await due_entries(now):
        if not await claim(entry, now):
            skipped += 1
            continue
        try:
            ok = await _retry_one(entry, now)
        except Exception as e:
            log.exception("email_retry_entry_failed", email_id=str(entry.id))
            await FailedJob(
                job_name="retry_emails",
                job_id=f"email:{entry.id}",
                email_entry_id=entry.id,
                attempts=entry.attempts,
                reason=str(e)[:2000],
            ).insert()
            ok = False
        if ok:
            retried += 1
        else:
            failed += 1
    if retried or failed or skipped:
        log.info("email_retry_sweep", retried=retried, failed=failed, skipped=skipped)
    return {"retried": retried, "failed": failed}

import asyncio
from datetime import datetime, timedelta

from beanie import PydanticObjectId

from inputhaven.models.email_queue import EmailQueueEntry
from inputhaven.models.failed_job import FailedJob
from inputhaven.models.form import Form
from inputhaven.models.submission import Submission
from inputhaven.services import email_queue, mailer
from inputhaven.services.email_template import build_submission_email_html

NOW = datetime(2026, 3, 15, 12, 0, 0)


def test_backoff_tiers():
    assert email_queue.next_retry_at(0, NOW) == NOW + timedelta(minutes=1)
    assert email_queue.next_retry_at(1, NOW) == NOW + timedelta(minutes=5)
    assert email_queue.next_retry_at(2, NOW) == NOW + timedelta(minutes=30)
    assert email_queue.next_retry_at(9, NOW) == NOW + timedelta(minutes=30)


def test_email_html_escapes_values():
    html = build_submission_email_html("Contact", {"<b>name</b>": "<script>alert(1)</script>"}, "now")
    assert "<script>" not in html
    assert "&lt;script&gt;" in html
    assert "&lt;b&gt;name&lt;/b&gt;" in html


async def _submission(account_id=None):
    account_id = account_id or PydanticObjectId()
    form = Form(account_id=account_id, name="Contact", access_key=str(PydanticObjectId()), email_to="o@mysite.com")
    await form.insert()
    sub = Submission(form_id=form.id, account_id=account_id, data={"name": "Ada"})
    await sub.insert()
    return sub


def _failing_mailer(monkeypatch, fail_times):
    calls = []

    async def send(to, subject, html, client=None):
        calls.append(to)
        if len(calls) <= fail_times:
            raise mailer.MailerError("Email provider returned 503: unavailable")
        return "msg_ok"

    monkeypatch.setattr(mailer, "send_email", send)
    return calls


async def test_enqueue_sends_immediately(db, sent_emails):
    sub = await _submission()
    entries = await email_queue.enqueue_and_send(sub.id, ["a@mysite.com", "b@mysite.com"], "New", "<p>x</p>")
    assert [e.status for e in entries] == ["sent", "sent"]
    assert [e.attempts for e in entries] == [1, 1]
    assert entries[0].provider_message_id == "msg_1"
    assert [to for to, _, _ in sent_emails] == ["a@mysite.com", "b@mysite.com"]


async def test_failed_first_attempt_stays_pending(db, monkeypatch):
    _failing_mailer(monkeypatch, fail_times=1)
    sub = await _submission()
    [entry] = await email_queue.enqueue_and_send(sub.id, ["a@mysite.com"], "New", "<p>x</p>")
    stored = await EmailQueueEntry.get(entry.id)
    assert stored.status == "pending"
    assert stored.attempts == 1
    assert stored.next_retry_at is not None
    assert "503" in stored.error


async def test_sweep_retries_due_entries_only(db, monkeypatch):
    sub = await _submission()
    due = EmailQueueEntry(submission_id=sub.id, to="due@mysite.com", subject="s", attempts=1,
                          next_retry_at=NOW - timedelta(seconds=1))
    later = EmailQueueEntry(submission_id=sub.id, to="later@mysite.com", subject="s", attempts=1,
                            next_retry_at=NOW + timedelta(minutes=4))
    done = EmailQueueEntry(submission_id=sub.id, to="done@mysite.com", subject="s", status="sent", attempts=1)
    for e in (due, later, done):
        await e.insert()
    calls = _failing_mailer(monkeypatch, fail_times=0)
    result = await email_queue.retry_failed_emails(now=NOW)
    assert result == {"retried": 1, "failed": 0}
    assert calls == ["due@mysite.com"]
    stored = await EmailQueueEntry.get(due.id)
    assert stored.status == "sent" and stored.attempts == 2


async def test_third_failure_is_permanent(db, monkeypatch):
    _failing_mailer(monkeypatch, fail_times=10)
    sub = await _submission()
    [entry] = await email_queue.enqueue_and_send(sub.id, ["a@mysite.com"], "New", "<p>x</p>")
    await email_queue.retry_failed_emails(now=datetime.utcnow() + timedelta(minutes=2))
    stored = await EmailQueueEntry.get(entry.id)
    assert stored.attempts == 2 and stored.status == "pending"
    assert stored.next_retry_at - datetime.utcnow() > timedelta(minutes=3)
    result = await email_queue.retry_failed_emails(now=datetime.utcnow() + timedelta(minutes=10))
    assert result == {"retried": 0, "failed": 1}
    stored = await EmailQueueEntry.get(entry.id)
    assert stored.status == "failed" and stored.attempts == 3
    assert await email_queue.retry_failed_emails(now=datetime.utcnow() + timedelta(days=1)) == {"retried": 0, "failed": 0}


async def test_deleted_submission_marks_entry_failed(db, sent_emails):
    entry = EmailQueueEntry(submission_id=PydanticObjectId(), to="a@mysite.com", subject="s")
    await entry.insert()
    result = await email_queue.retry_failed_emails(now=NOW)
    assert result == {"retried": 0, "failed": 1}
    stored = await EmailQueueEntry.get(entry.id)
    assert stored.status == "failed" and stored.error == "Submission deleted"
    assert sent_emails == []


async def test_claim_is_won_once(db):
    sub = await _submission()
    entry = EmailQueueEntry(submission_id=sub.id, to="a@mysite.com", subject="s", attempts=1,
                            next_retry_at=NOW - timedelta(seconds=1))
    await entry.insert()
    first = await EmailQueueEntry.get(entry.id)
    second = await EmailQueueEntry.get(entry.id)
    assert await email_queue.claim(first, NOW)
    assert not await email_queue.claim(second, NOW)
    stored = await EmailQueueEntry.get(entry.id)
    assert stored.next_retry_at == NOW + timedelta(seconds=email_queue.CLAIM_LEASE_SECONDS)
    assert await email_queue.due_entries(NOW) == []


async def test_overlapping_sweeps_send_once(db, monkeypatch):
    sub = await _submission()
    for to in ("a@mysite.com", "b@mysite.com"):
        await EmailQueueEntry(submission_id=sub.id, to=to, subject="s", attempts=1,
                              next_retry_at=NOW - timedelta(seconds=1)).insert()
    calls = _failing_mailer(monkeypatch, fail_times=0)
    results = await asyncio.gather(
        email_queue.retry_failed_emails(now=NOW),
        email_queue.retry_failed_emails(now=NOW),
    )
    assert sorted(calls) == ["a@mysite.com", "b@mysite.com"]
    assert sum(r["retried"] for r in results) == 2
    assert all(e.status == "sent" and e.attempts == 2 for e in await EmailQueueEntry.find_all().to_list())


async def test_sweep_leaves_inline_attempt_alone(db, monkeypatch):
    sub = await _submission()
    sweeps = []

    async def send(to, subject, html, client=None):
        # A sweep that starts while the first attempt is still in flight
        sweeps.append(await email_queue.retry_failed_emails(now=datetime.utcnow()))
        return "msg_ok"

    monkeypatch.setattr(mailer, "send_email", send)
    [entry] = await email_queue.enqueue_and_send(sub.id, ["a@mysite.com"], "New", "<p>x</p>")
    assert sweeps == [{"retried": 0, "failed": 0}]
    stored = await EmailQueueEntry.get(entry.id)
    assert stored.status == "sent" and stored.attempts == 1


async def test_broken_entry_is_dead_lettered_and_sweep_continues(db, monkeypatch):
    sub = await _submission()
    broken = EmailQueueEntry(submission_id=sub.id, to="broken@mysite.com", subject="s", attempts=1,
                             next_retry_at=NOW - timedelta(seconds=2))
    fine = EmailQueueEntry(submission_id=sub.id, to="fine@mysite.com", subject="s", attempts=1,
                           next_retry_at=NOW - timedelta(seconds=1))
    await broken.insert()
    await fine.insert()
    calls = _failing_mailer(monkeypatch, fail_times=0)
    real_retry_one = email_queue._retry_one

    async def retry_one(entry, now):
        if entry.to == "broken@mysite.com":
            raise RuntimeError("corrupt submission document")
        return await real_retry_one(entry, now)

    monkeypatch.setattr(email_queue, "_retry_one", retry_one)
    result = await email_queue.retry_failed_emails(now=NOW)
    assert result == {"retried": 1, "failed": 1}
    assert calls == ["fine@mysite.com"]
    [job] = await FailedJob.find_all().to_list()
    assert job.job_name == "retry_emails"
    assert job.email_entry_id == broken.id
    assert job.job_id == f"email:{broken.id}"
    assert job.attempts == 1
    assert "corrupt submission document" in job.reason

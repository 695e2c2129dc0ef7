"""Submission intake: the POST /api/v1/submit protocol.

Order: admission -> body -> form -> origin -> quota -> sanitize -> honeypot /
spam -> persist -> quota correction -> notifications -> response. Spam
(honeypot included) gets the same response as a real submission.
"""

from datetime import datetime

from fastapi import BackgroundTasks, Request, Response
from fastapi.responses import ORJSONResponse, RedirectResponse

from inputhaven.core.config import get_settings
from inputhaven.core.encryption import decrypt_webhook_secret
from inputhaven.core.exceptions import (
    BadRequestError,
    ForbiddenError,
    NotFoundError,
    TooManyRequestsError,
)
from inputhaven.core.logging import bind_tenant, get_logger
from inputhaven.core.origins import cors_headers, is_redirect_allowed, origin_allowed
from inputhaven.core.plans import PlanConfig, get_plan_config
from inputhaven.deps import get_client_ip
from inputhaven.models.account import Account
from inputhaven.models.form import Form
from inputhaven.models.submission import Submission
from inputhaven.services import email_queue, quota, spam, webhooks
from inputhaven.services import forms as forms_service
from inputhaven.services.email_routing import evaluate_routes
from inputhaven.services.email_template import build_submission_email_html, submission_subject
from inputhaven.services.payload import (
    ACCESS_KEY_HEADERS,
    REDIRECT_FIELD,
    extract_access_key,
    parse_body,
    strip_reserved,
    wants_json,
)
from inputhaven.services.rate_limit import get_rate_limiter

log = get_logger(__name__)

MISSING_FORM_ID = "Form ID is required. Add a hidden field named '_form_id' with your form's ID."


async def handle_preflight(request: Request) -> Response:
    origin = request.headers.get("origin")
    key = next((request.headers.get(h) for h in ACCESS_KEY_HEADERS if request.headers.get(h)), None)
    key = key or request.query_params.get("form_id")
    form = await forms_service.get_active_form(key) if key else None
    headers = cors_headers(origin, form.allowed_domains if form else [])
    return Response(status_code=204, headers=headers)


async def handle_submission(request: Request, redis, background_tasks: BackgroundTasks) -> Response:
    ip = get_client_ip(request)
    origin = request.headers.get("origin")

    admission = await get_rate_limiter(redis, "submission").limit(ip)
    if not admission.allowed:
        log.warning("rate_limit_exceeded", ip=ip, backend=admission.backend)
        raise TooManyRequestsError()

    data = await parse_body(request)

    access_key = extract_access_key(data, request.headers)
    if not access_key:
        raise BadRequestError(MISSING_FORM_ID)
    form = await forms_service.get_active_form(access_key)
    if not form:
        log.info("form_not_found", access_key=access_key)
        raise NotFoundError("Invalid access key")
    bind_tenant(str(form.id), str(form.account_id))
    account = await Account.get(form.account_id)
    plan = get_plan_config(account.plan if account else "FREE")

    headers = cors_headers(origin, form.allowed_domains)
    if not origin_allowed(origin, headers):
        log.warning("origin_rejected", form_id=str(form.id), origin=origin)
        raise ForbiddenError("Origin not allowed", headers=headers)

    reservation = await quota.reserve(
        quota.RedisCounterStore(redis),
        form.account_id,
        plan.submissions_per_month,
    )
    if not reservation.ok:
        raise TooManyRequestsError("Monthly submission limit reached", code="QUOTA_EXCEEDED", headers=headers)

    clean = strip_reserved(data, form.honeypot_field)

    if spam.check_honeypot(data, form.honeypot_field):
        is_spam, score, reason, method = True, 100, "Honeypot field filled", "honeypot"
    else:
        verdict = await spam.classify(clean, ai_enabled=form.ai_spam_filter and plan.ai_spam_filter)
        is_spam, score, reason, method = verdict.is_spam, verdict.score, verdict.reason, verdict.method

    submission = Submission(
        form_id=form.id,
        account_id=form.account_id,
        data=clean,
        ip_address=ip,
        user_agent=request.headers.get("user-agent"),
        referer=request.headers.get("referer"),
        is_spam=is_spam,
        spam_score=score,
        spam_reason=reason,
        spam_method=method,
    )
    await submission.insert()

    if is_spam:
        await reservation.rollback()

    log.info(
        "submission_created",
        form_id=str(form.id),
        submission_id=str(submission.id),
        is_spam=is_spam,
        spam_method=method,
        quota_fallback=reservation.fallback,
    )

    if not is_spam:
        await _notify(form, plan, submission, request, background_tasks)

    return _respond(request, data, origin, form, submission, headers)


async def _notify(
    form: Form,
    plan: PlanConfig,
    submission: Submission,
    request: Request,
    background_tasks: BackgroundTasks,
) -> None:
    subject = submission_subject(form.name, form.custom_subject)
    html = build_submission_email_html(
        form.name,
        submission.data,
        f"{datetime.utcnow().isoformat()} from {request.headers.get('referer') or 'unknown'}",
    )
    if form.email_routes and plan.email_routing:
        recipients = evaluate_routes(submission.data, form.email_routes, form.email_to)
    else:
        recipients = [form.email_to]
    await email_queue.enqueue_and_send(submission.id, recipients, subject, html)

    if form.webhook_url and plan.webhooks:
        payload = webhooks.build_payload(
            str(form.id), str(submission.id), submission.data, submission.created_at.isoformat()
        )
        background_tasks.add_task(
            _fire_webhook,
            form,
            submission,
            payload,
        )


async def _fire_webhook(form: Form, submission: Submission, payload: dict) -> None:
    """Runs after the response is sent; nothing here may reach the submitter."""
    try:
        await webhooks.deliver_webhook(
            form.id,
            submission.id,
            form.webhook_url,
            decrypt_webhook_secret(form.webhook_secret_encrypted),
            payload,
        )
    except Exception:
        log.exception("webhook_task_failed", form_id=str(form.id), submission_id=str(submission.id))


def _respond(
    request: Request,
    data: dict,
    origin: str | None,
    form: Form,
    submission: Submission,
    headers: dict[str, str],
) -> Response:
    redirect = data.get(REDIRECT_FIELD)
    if isinstance(redirect, str) and redirect:
        if is_redirect_allowed(redirect, origin, form.allowed_domains):
            return RedirectResponse(redirect.strip(), status_code=303, headers=headers)
        log.info("redirect_rejected", form_id=str(form.id), redirect=redirect[:200])
    if wants_json(request):
        return ORJSONResponse({"success": True, "submissionId": str(submission.id)}, headers=headers)
    success_url = f"{get_settings().app_url.rstrip('/')}/success"
    return RedirectResponse(success_url, status_code=303, headers=headers)

"""Signed webhook delivery with short in-call retries and per-attempt audit logs."""

import asyncio
import ipaddress
import time
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import dns.asyncresolver
import dns.exception
import dns.resolver
import httpx
import orjson
from beanie import PydanticObjectId

from inputhaven.core.config import get_settings
from inputhaven.core.logging import get_logger
from inputhaven.core.security import sign_webhook_payload
from inputhaven.models.webhook_log import WebhookLog

log = get_logger(__name__)

SIGNATURE_HEADER = "X-InputHaven-Signature"
USER_AGENT = "InputHaven-Webhook/1.0"
RETRY_DELAYS = (0, 1, 5)  # seconds before attempt 1, 2, 3
MAX_LOGGED_RESPONSE_CHARS = 2000

BLOCKED_HOSTNAMES = frozenset({
    "localhost",
    "metadata.google.internal",
    "metadata.google",
    "metadata",
})
_CGNAT = ipaddress.ip_network("100.64.0.0/10")


class WebhookUrlError(ValueError):
    pass


def _is_public_ip(ip: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped:
        ip = ip.ipv4_mapped
    if isinstance(ip, ipaddress.IPv4Address) and ip in _CGNAT:
        return False
    return not (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_unspecified
    )


def validate_webhook_url(url: str, production: bool | None = None) -> str:
    """Static SSRF checks on a tenant webhook URL. Returns the host or raises WebhookUrlError."""
    if production is None:
        production = get_settings().is_production
    try:
        parts = urlsplit(url.strip())
    except ValueError as e:
        raise WebhookUrlError("Invalid webhook URL") from e
    scheme = parts.scheme.lower()
    allowed = ("https",) if production else ("https", "http")
    if scheme not in allowed:
        raise WebhookUrlError("Webhook URL must use HTTPS" if production else "Invalid webhook URL")
    host = (parts.hostname or "").lower().rstrip(".")
    if not host:
        raise WebhookUrlError("Invalid webhook URL")
    if host in BLOCKED_HOSTNAMES or host.endswith(".localhost"):
        raise WebhookUrlError("Webhook URL cannot target localhost or metadata endpoints")
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return host
    if not _is_public_ip(ip):
        raise WebhookUrlError("Webhook URL cannot target private/internal networks")
    return host


async def resolve_host(host: str) -> list[str]:
    resolver = dns.asyncresolver.Resolver()
    addresses: list[str] = []
    for rdtype in ("A", "AAAA"):
        try:
            answer = await resolver.resolve(host, rdtype, lifetime=3.0)
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            continue
        addresses.extend(r.to_text() for r in answer)
    return addresses


async def ensure_public_host(host: str) -> list[str]:
    """Resolve once and reject names with any address in private space.

    Returns the checked addresses; delivery connects to one of them so a
    second lookup cannot hand back a different answer.
    """
    try:
        ipaddress.ip_address(host)
        return [host]
    except ValueError:
        pass
    try:
        addresses = await resolve_host(host)
    except dns.exception.DNSException as e:
        raise WebhookUrlError(f"Webhook host did not resolve: {e.__class__.__name__}") from e
    if not addresses:
        raise WebhookUrlError("Webhook host did not resolve")
    for addr in addresses:
        if not _is_public_ip(ipaddress.ip_address(addr)):
            raise WebhookUrlError("Webhook URL cannot target private/internal networks")
    return addresses


def pin_to_address(url: str, address: str) -> tuple[str, dict[str, str], dict[str, Any]]:
    """Point the request at a checked IP. The Host header and the TLS server
    name (SNI and certificate check) stay the configured host name."""
    parts = urlsplit(url)
    host = parts.hostname or ""
    ip_host = f"[{address}]" if ipaddress.ip_address(address).version == 6 else address
    netloc = f"{ip_host}:{parts.port}" if parts.port else ip_host
    pinned = urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
    headers = {"Host": f"{host}:{parts.port}" if parts.port else host}
    extensions = {"sni_hostname": host} if parts.scheme.lower() == "https" else {}
    return pinned, headers, extensions


def build_payload(form_id: str, submission_id: str, data: dict[str, Any], created_at: str) -> dict[str, Any]:
    return {
        "event": "submission.created",
        "formId": form_id,
        "submissionId": submission_id,
        "data": data,
        "createdAt": created_at,
    }


async def _record(
    form_id: PydanticObjectId,
    submission_id: PydanticObjectId | None,
    url: str,
    attempt: int,
    payload: dict[str, Any],
    response_code: int | None,
    response_body: str | None,
    duration_ms: int,
    success: bool,
    error: str | None,
) -> None:
    await WebhookLog(
        form_id=form_id,
        submission_id=submission_id,
        url=url,
        attempt=attempt,
        request_body=payload,
        response_code=response_code,
        response_body=response_body[:MAX_LOGGED_RESPONSE_CHARS] if response_body else response_body,
        duration_ms=duration_ms,
        success=success,
        error=error,
    ).insert()


async def deliver_webhook(
    form_id: PydanticObjectId,
    submission_id: PydanticObjectId | None,
    url: str,
    secret: str | None,
    payload: dict[str, Any],
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """POST the payload up to len(RETRY_DELAYS) times. Every attempt is logged.

    Never raises for delivery problems; returns {"success", "response_code", "error"}.
    """
    settings = get_settings()
    try:
        host = validate_webhook_url(url)
        target, pin_headers, extensions = url, {}, {}
        if settings.webhook_resolve_dns:
            addresses = await ensure_public_host(host)
            target, pin_headers, extensions = pin_to_address(url, addresses[0])
    except WebhookUrlError as e:
        await _record(form_id, submission_id, url, 1, payload, None, None, 0, False, str(e))
        log.warning("webhook_url_rejected", form_id=str(form_id), url=url, error=str(e))
        return {"success": False, "response_code": None, "error": str(e)}

    body = orjson.dumps(payload).decode()
    headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT, **pin_headers}
    if secret:
        headers[SIGNATURE_HEADER] = sign_webhook_payload(body, secret)

    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=settings.webhook_timeout_seconds, follow_redirects=False)
    try:
        for attempt, delay in enumerate(RETRY_DELAYS, start=1):
            if delay:
                await asyncio.sleep(delay)
            start = time.perf_counter()
            response_code = None
            response_body = None
            error = None
            success = False
            try:
                resp = await client.post(target, content=body, headers=headers, extensions=extensions)
                response_code = resp.status_code
                response_body = resp.text
                success = resp.is_success
            except httpx.HTTPError as e:
                error = f"{e.__class__.__name__}: {e}"[:500]
            duration_ms = int((time.perf_counter() - start) * 1000)
            await _record(
                form_id, submission_id, url, attempt, payload,
                response_code, response_body, duration_ms, success, error,
            )
            if success:
                log.info("webhook_delivered", form_id=str(form_id), url=url, attempt=attempt, response_code=response_code)
                return {"success": True, "response_code": response_code, "error": None}
            log.warning(
                "webhook_delivery_failed",
                form_id=str(form_id),
                url=url,
                attempt=attempt,
                response_code=response_code,
                error=error,
            )
    finally:
        if owns_client:
            await client.aclose()
    return {"success": False, "response_code": None, "error": "All retry attempts exhausted"}

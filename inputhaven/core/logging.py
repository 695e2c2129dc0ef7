import logging
import sys
from typing import Any

import structlog

# Event keys whose values must never reach log output.
REDACTED_KEYS = frozenset({"secret", "webhook_secret", "api_key", "authorization", "cron_secret"})
# Public but tenant-identifying: keep a prefix for correlation.
PARTIAL_KEYS = frozenset({"access_key"})


def redact_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in REDACTED_KEYS & event_dict.keys():
        event_dict[key] = "[redacted]"
    for key in PARTIAL_KEYS & event_dict.keys():
        value = str(event_dict[key])
        event_dict[key] = f"{value[:6]}..." if len(value) > 6 else value
    return event_dict


def configure_logging(debug: bool = False) -> None:
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            redact_secrets,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(request_id: str, **values: Any) -> None:
    """Start a fresh per-request context; every log line of the request carries it."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **values)


def bind_tenant(form_id: str | None, account_id: str) -> None:
    """Add the resolved form (if any) and owning account to the current request context."""
    values = {"account_id": account_id}
    if form_id:
        values["form_id"] = form_id
    structlog.contextvars.bind_contextvars(**values)

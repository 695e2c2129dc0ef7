"""Submission body parsing and protocol-field handling.

Bodies become a flat field -> value mapping. Size caps: 64KB raw body for
JSON/urlencoded, 100 fields and 10KB per value for multipart/urlencoded.
"""

from typing import Any, Iterable, Mapping
from urllib.parse import parse_qsl

import orjson
from fastapi import Request
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from inputhaven.core.exceptions import AppError, BadRequestError, PayloadTooLargeError

MAX_BODY_SIZE = 64 * 1024
MAX_FIELDS = 100
MAX_FIELD_VALUE_SIZE = 10 * 1024

ACCESS_KEY_FIELDS = ("_form_id", "_access_key", "access_key", "_accessKey")
ACCESS_KEY_HEADERS = ("x-form-id", "x-access-key")
REDIRECT_FIELD = "_redirect"
DEFAULT_HONEYPOT_FIELD = "_gotcha"


def _collect(items: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """Apply field-count and value-size caps; repeated keys are joined with ', '."""
    data: dict[str, Any] = {}
    count = 0
    for key, value in items:
        count += 1
        if count > MAX_FIELDS:
            raise PayloadTooLargeError("Too many form fields", details={"max_fields": MAX_FIELDS})
        if isinstance(value, UploadFile):
            continue
        if len(value) > MAX_FIELD_VALUE_SIZE:
            raise PayloadTooLargeError(f'Field "{key[:100]}" value too large')
        data[key] = f"{data[key]}, {value}" if key in data else value
    return data


async def _read_capped(request: Request) -> bytes:
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > MAX_BODY_SIZE:
        raise PayloadTooLargeError()
    raw = await request.body()
    if len(raw) > MAX_BODY_SIZE:
        raise PayloadTooLargeError()
    return raw


_MULTIPART_LIMIT_MESSAGES = ("Too many fields", "Too many files", "Part exceeded maximum size")


def _multipart_error(exc: Exception) -> AppError:
    """Starlette reports its multipart limits as 400s; ours are 413s."""
    message = getattr(exc, "message", None) or getattr(exc, "detail", "") or ""
    if str(message).startswith(_MULTIPART_LIMIT_MESSAGES):
        return PayloadTooLargeError(details={"max_fields": MAX_FIELDS, "max_field_bytes": MAX_FIELD_VALUE_SIZE})
    return BadRequestError("Invalid request body")


async def parse_body(request: Request) -> dict[str, Any]:
    """JSON, multipart or urlencoded (the default) into a dict. 413 on caps, 400 when malformed."""
    content_type = request.headers.get("content-type", "").lower()
    try:
        if "application/json" in content_type:
            data = orjson.loads(await _read_capped(request))
            if not isinstance(data, dict):
                raise BadRequestError("Invalid request body")
            return data
        if "multipart/form-data" in content_type:
            form = await request.form(
                max_files=MAX_FIELDS,
                max_fields=MAX_FIELDS,
                max_part_size=MAX_FIELD_VALUE_SIZE,
            )
            return _collect(form.multi_items())
        text = (await _read_capped(request)).decode("utf-8")
        return _collect(parse_qsl(text, keep_blank_values=True))
    except AppError:
        raise
    except (MultiPartException, StarletteHTTPException) as e:
        raise _multipart_error(e) from e
    except Exception as e:
        raise BadRequestError("Invalid request body") from e


def extract_access_key(data: Mapping[str, Any], headers: Mapping[str, str]) -> str:
    for field in ACCESS_KEY_FIELDS:
        value = data.get(field)
        if isinstance(value, str) and value.strip():
            return value.strip()
    for header in ACCESS_KEY_HEADERS:
        value = headers.get(header)
        if value and value.strip():
            return value.strip()
    return ""


def reserved_fields(honeypot_field: str | None) -> set[str]:
    fields = {*ACCESS_KEY_FIELDS, REDIRECT_FIELD, DEFAULT_HONEYPOT_FIELD}
    if honeypot_field:
        fields.add(honeypot_field)
    return fields


def strip_reserved(data: Mapping[str, Any], honeypot_field: str | None) -> dict[str, Any]:
    """Copy of the payload without protocol-control fields; this is what gets stored."""
    reserved = reserved_fields(honeypot_field)
    return {k: v for k, v in data.items() if k not in reserved}


def wants_json(request: Request) -> bool:
    return (
        "application/json" in request.headers.get("accept", "").lower()
        or "application/json" in request.headers.get("content-type", "").lower()
        or request.headers.get("x-requested-with") == "XMLHttpRequest"
    )

"""Shared FastAPI dependencies and request helpers."""

from beanie import PydanticObjectId
from bson.errors import InvalidId
from fastapi import Depends, Header, Request

from inputhaven.core.config import get_settings
from inputhaven.core.exceptions import NotFoundError, TooManyRequestsError, UnauthorizedError
from inputhaven.core.logging import bind_tenant
from inputhaven.core.redis import get_redis
from inputhaven.core.security import secrets_match
from inputhaven.models.account import Account
from inputhaven.services import api_keys
from inputhaven.services.rate_limit import get_rate_limiter


def get_client_ip(request: Request) -> str:
    """Client IP by configured header priority (infrastructure header first),
    then the socket peer."""
    for header in get_settings().client_ip_headers:
        value = request.headers.get(header)
        if value:
            ip = value.split(",")[0].strip()
            if ip:
                return ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


async def enforce_api_rate_limit(request: Request, redis=Depends(get_redis)) -> None:
    """Dependency: per-IP "api" limiter for everything except the public submit endpoint."""
    result = await get_rate_limiter(redis, "api").limit(get_client_ip(request))
    if not result.allowed:
        raise TooManyRequestsError()


async def require_cron_secret(x_cron_secret: str | None = Header(None, alias="X-Cron-Secret")) -> None:
    """Dependency: shared-secret guard for scheduler-triggered endpoints."""
    if not secrets_match(x_cron_secret, get_settings().cron_secret):
        raise UnauthorizedError()


async def get_current_account(authorization: str | None = Header(None)) -> Account:
    """Dependency: `Authorization: Bearer ih_...` to the owning Account."""
    if not authorization:
        raise UnauthorizedError("Not authenticated")
    scheme, _, key = authorization.partition(" ")
    if scheme.lower() != "bearer" or not key.strip():
        raise UnauthorizedError("Invalid authorization header")
    account = await api_keys.authenticate(key.strip())
    if not account:
        raise UnauthorizedError("Invalid API key")
    bind_tenant(None, str(account.id))
    return account


def parse_object_id(value: str, what: str = "Resource") -> PydanticObjectId:
    """Malformed ids are reported like missing ones."""
    try:
        return PydanticObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundError(f"{what} not found")

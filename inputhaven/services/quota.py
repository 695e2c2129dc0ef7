"""Monthly submission quota: Redis counter seeded from MongoDB, DB fallback.

The counter is an optimistic cache over "non-spam submissions this month".
It is seeded with SET NX so concurrent first touches cannot overwrite each
other, and compared after INCR so concurrent reservations cannot overrun.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable

from beanie import PydanticObjectId
from redis.exceptions import RedisError

from inputhaven.core.logging import get_logger
from inputhaven.models.submission import Submission

log = get_logger(__name__)

KEY_PREFIX = "submissions"
SEED_TTL_GRACE_SECONDS = 24 * 3600
STORE_ERRORS = (RedisError, OSError, asyncio.TimeoutError)


class RedisCounterStore:
    """The only operations quota code may use on the shared store."""

    def __init__(self, redis):
        self.redis = redis

    async def exists(self, key: str) -> bool:
        return bool(await self.redis.exists(key))

    async def set_if_absent(self, key: str, value: int, ttl_seconds: int) -> bool:
        return bool(await self.redis.set(key, value, ex=ttl_seconds, nx=True))

    async def increment(self, key: str) -> int:
        return int(await self.redis.incr(key))

    async def decrement_by(self, key: str, amount: int = 1) -> int:
        return int(await self.redis.decrby(key, amount))


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    """UTC [start of month, start of next month)."""
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def counter_key(account_id: str, now: datetime) -> str:
    return f"{KEY_PREFIX}:{account_id}:{now.strftime('%Y-%m')}"


def seed_ttl_seconds(now: datetime) -> int:
    """Remaining billing period plus a day."""
    _, end = month_bounds(now)
    return int((end - now).total_seconds()) + SEED_TTL_GRACE_SECONDS


async def count_month_submissions(account_id: PydanticObjectId, now: datetime | None = None) -> int:
    """Authoritative count: non-spam submissions across the account's forms this month."""
    start, _ = month_bounds(now or datetime.utcnow())
    return await Submission.find(
        Submission.account_id == account_id,
        Submission.created_at >= start,
        Submission.is_spam == False,  # noqa: E712 (Beanie query expr)
    ).count()


@dataclass
class Reservation:
    """Outcome of reserve(). rollback() gives the slot back (spam verdicts);
    it is a no-op when nothing was reserved in the shared store."""
    ok: bool
    reserved: bool = False
    fallback: bool = False
    count: int | None = None
    _store: RedisCounterStore | None = field(default=None, repr=False)
    _key: str | None = field(default=None, repr=False)

    async def rollback(self) -> None:
        if not self.reserved or self._store is None or self._key is None:
            return
        self.reserved = False
        try:
            await self._store.decrement_by(self._key, 1)
        except STORE_ERRORS as e:
            # Counter re-seeds from the database once the key expires.
            log.warning("quota_rollback_failed", key=self._key, error=str(e))


async def reserve(
    store: RedisCounterStore,
    account_id: PydanticObjectId,
    plan_limit: int,
    count_fn: Callable[[PydanticObjectId], Awaitable[int]] = count_month_submissions,
    now: datetime | None = None,
) -> Reservation:
    """Atomically take one unit of the account's monthly quota.

    Store outage: compare the database count against the limit instead. That
    path is not atomic, so a burst during an outage can overshoot the limit.
    """
    now = now or datetime.utcnow()
    key = counter_key(str(account_id), now)
    try:
        if not await store.exists(key):
            seed = await count_fn(account_id)
            await store.set_if_absent(key, seed, seed_ttl_seconds(now))
        new_count = await store.increment(key)
    except STORE_ERRORS as e:
        log.error("quota_store_unavailable", account_id=str(account_id), error=str(e))
        db_count = await count_fn(account_id)
        return Reservation(ok=db_count < plan_limit, fallback=True, count=db_count)

    if new_count > plan_limit:
        try:
            await store.decrement_by(key, 1)
        except STORE_ERRORS as e:
            log.warning("quota_rollback_failed", key=key, error=str(e))
        log.info("quota_exceeded", account_id=str(account_id), count=new_count - 1, limit=plan_limit)
        return Reservation(ok=False, count=new_count - 1)
    return Reservation(ok=True, reserved=True, count=new_count, _store=store, _key=key)

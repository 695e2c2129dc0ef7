"""Issue, list, revoke and check management API keys."""

from datetime import datetime

from beanie import PydanticObjectId

from inputhaven.core.config import get_settings
from inputhaven.core.exceptions import NotFoundError
from inputhaven.core.logging import get_logger
from inputhaven.core.security import API_KEY_PREFIX, generate_api_key, hash_api_key
from inputhaven.models.account import Account
from inputhaven.models.api_key import ApiKey

log = get_logger(__name__)

# last_used is bumped at most this often per key
LAST_USED_RESOLUTION_SECONDS = 60


async def create_api_key(account_id: PydanticObjectId, name: str) -> tuple[ApiKey, str]:
    """Returns (record, plaintext key). The plaintext is not stored and is shown once."""
    if not await Account.get(account_id):
        raise NotFoundError("Account not found")
    key, key_hash, prefix = generate_api_key(get_settings().api_key_hmac_secret)
    record = ApiKey(account_id=account_id, name=name.strip() or "API key", key_hash=key_hash, key_prefix=prefix)
    await record.insert()
    log.info("api_key_created", account_id=str(account_id), key_prefix=prefix)
    return record, key


async def list_api_keys(account_id: PydanticObjectId) -> list[ApiKey]:
    return await ApiKey.find(ApiKey.account_id == account_id).sort(-ApiKey.created_at).to_list()


async def delete_api_key(key_id: PydanticObjectId, account_id: PydanticObjectId) -> bool:
    record = await ApiKey.find_one(ApiKey.id == key_id, ApiKey.account_id == account_id)
    if not record:
        return False
    await record.delete()
    return True


async def authenticate(key: str | None, now: datetime | None = None) -> Account | None:
    """Resolve a bearer key to its account, or None."""
    if not key or not key.startswith(API_KEY_PREFIX) or len(key) > 200:
        return None
    record = await ApiKey.find_one(ApiKey.key_hash == hash_api_key(key, get_settings().api_key_hmac_secret))
    if not record:
        return None
    account = await Account.get(record.account_id)
    if not account:
        return None
    now = now or datetime.utcnow()
    if record.last_used is None or (now - record.last_used).total_seconds() >= LAST_USED_RESOLUTION_SECONDS:
        record.last_used = now
        await record.save()
    return account

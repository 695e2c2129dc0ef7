from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from inputhaven.core.exceptions import NotFoundError
from inputhaven.deps import get_current_account, parse_object_id
from inputhaven.models.account import Account
from inputhaven.services import api_keys as api_keys_service

router = APIRouter()


class ApiKeyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


@router.get("")
async def api_keys_list(account: Account = Depends(get_current_account)):
    """Key prefixes only; full keys are never stored."""
    items = await api_keys_service.list_api_keys(account.id)
    return {
        "api_keys": [
            {
                "id": str(k.id),
                "name": k.name,
                "key_prefix": k.key_prefix,
                "last_used": k.last_used.isoformat() if k.last_used else None,
                "created_at": k.created_at.isoformat(),
            }
            for k in items
        ]
    }


@router.post("")
async def api_key_create(body: ApiKeyCreate, account: Account = Depends(get_current_account)):
    record, key = await api_keys_service.create_api_key(account.id, body.name)
    return {"id": str(record.id), "name": record.name, "key_prefix": record.key_prefix, "key": key}


@router.delete("/{key_id}")
async def api_key_delete(key_id: str, account: Account = Depends(get_current_account)):
    if not await api_keys_service.delete_api_key(parse_object_id(key_id, "API key"), account.id):
        raise NotFoundError("API key not found")
    return {"success": True}

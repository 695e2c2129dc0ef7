"""Webhook signing secrets at rest.

WEBHOOK_SECRET_KEYS is a comma-separated list of Fernet keys, newest first.
New secrets are encrypted with the first key and any listed key decrypts, so a
key can be rotated in without re-encrypting every form. With no keys set, a
key is derived from SECRET_KEY (development only).
"""

import base64
import hashlib
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

from inputhaven.core.config import get_settings
from inputhaven.core.logging import get_logger

log = get_logger(__name__)

_DERIVATION_LABEL = b"inputhaven:webhook-secret:v1:"


class SecretKeyConfigError(RuntimeError):
    pass


def _derived_key(secret_key: str) -> bytes:
    return base64.urlsafe_b64encode(hashlib.sha256(_DERIVATION_LABEL + secret_key.encode()).digest())


@lru_cache
def _cipher(keys_raw: str, secret_key: str) -> MultiFernet:
    keys = [k.strip() for k in keys_raw.split(",") if k.strip()]
    if not keys:
        return MultiFernet([Fernet(_derived_key(secret_key))])
    try:
        return MultiFernet([Fernet(k.encode()) for k in keys])
    except ValueError as e:
        raise SecretKeyConfigError(f"Invalid WEBHOOK_SECRET_KEYS entry: {e}") from e


def _get_cipher() -> MultiFernet:
    s = get_settings()
    return _cipher(s.webhook_secret_keys, s.secret_key)


def encrypt_webhook_secret(plain: str) -> str:
    if not plain:
        return ""
    return _get_cipher().encrypt(plain.encode()).decode()


def decrypt_webhook_secret(encrypted: str) -> str | None:
    """None when the form has no secret or no configured key can read it."""
    if not encrypted:
        return None
    try:
        return _get_cipher().decrypt(encrypted.encode()).decode()
    except InvalidToken:
        log.warning("webhook_secret_unreadable")
        return None

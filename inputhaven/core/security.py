import hashlib
import hmac
import secrets
import time

SIGNATURE_TOLERANCE_SECONDS = 300


def generate_access_key() -> str:
    """Public, unguessable routing key for a form (32 hex chars)."""
    return secrets.token_hex(16)


def generate_webhook_secret() -> str:
    return f"whsec_{secrets.token_hex(32)}"


def _hmac_hex(secret: str, timestamp: int, payload: str) -> str:
    return hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}.{payload}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def sign_webhook_payload(payload: str, secret: str, timestamp: int | None = None) -> str:
    """Return the X-InputHaven-Signature header value: t=<unix-ts>,v1=<hex hmac-sha256>."""
    ts = int(time.time()) if timestamp is None else timestamp
    return f"t={ts},v1={_hmac_hex(secret, ts, payload)}"


def verify_webhook_signature(
    payload: str,
    signature: str,
    secret: str,
    tolerance: int = SIGNATURE_TOLERANCE_SECONDS,
    now: int | None = None,
) -> bool:
    """Receiver-side check: recompute the HMAC and reject stale timestamps."""
    parts = dict(p.split("=", 1) for p in signature.split(",") if "=" in p)
    ts_raw = parts.get("t")
    sig = parts.get("v1")
    if not ts_raw or not sig:
        return False
    try:
        timestamp = int(ts_raw)
    except ValueError:
        return False
    current = int(time.time()) if now is None else now
    if abs(current - timestamp) > tolerance:
        return False
    return hmac.compare_digest(_hmac_hex(secret, timestamp, payload), sig)


def secrets_match(provided: str | None, expected: str) -> bool:
    """Constant-time comparison; an unset expected secret never matches."""
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


API_KEY_PREFIX = "ih_"


def hash_api_key(key: str, hmac_secret: str = "") -> str:
    """HMAC-SHA256 under the server secret; plain SHA-256 when none is configured."""
    if hmac_secret:
        return hmac.new(hmac_secret.encode("utf-8"), key.encode("utf-8"), hashlib.sha256).hexdigest()
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def generate_api_key(hmac_secret: str = "") -> tuple[str, str, str]:
    """Return (key, key_hash, display_prefix). Only the hash is stored."""
    key = f"{API_KEY_PREFIX}{secrets.token_hex(32)}"
    return key, hash_api_key(key, hmac_secret), key[:10]

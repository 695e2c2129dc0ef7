from functools import lru_cache
from typing import Any, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CLIENT_IP_HEADERS = ["x-vercel-forwarded-for", "x-real-ip", "x-forwarded-for"]


def _parse_header_list(v: Any) -> List[str]:
    try:
        if v is None or v == "":
            return _DEFAULT_CLIENT_IP_HEADERS.copy()
        if isinstance(v, list):
            return [x.strip().lower() for x in v if isinstance(x, str) and x.strip()]
        s = str(v).strip()
        if s.startswith("["):
            import json
            out = json.loads(s)
            return [x.strip().lower() for x in out if isinstance(x, str) and x.strip()] or _DEFAULT_CLIENT_IP_HEADERS.copy()
        return [x.strip().lower() for x in s.split(",") if x.strip()] or _DEFAULT_CLIENT_IP_HEADERS.copy()
    except Exception:
        return _DEFAULT_CLIENT_IP_HEADERS.copy()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")
    secret_key: str = Field(default="change-me-in-production-min-32-chars")
    app_url: str = Field(default="http://localhost:3000", alias="APP_URL")

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="inputhaven", alias="MONGODB_DB_NAME")

    # Redis (rate limits + quota counters)
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    redis_socket_timeout: float = Field(default=2.0, alias="REDIS_SOCKET_TIMEOUT")

    # Email (Resend)
    resend_api_key: str = Field(default="", alias="RESEND_API_KEY")
    email_from: str = Field(default="InputHaven <noreply@inputhaven.com>", alias="EMAIL_FROM")
    email_timeout_seconds: float = Field(default=10.0, alias="EMAIL_TIMEOUT_SECONDS")

    # OpenAI (AI spam filter)
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    ai_spam_model: str = Field(default="gpt-4o-mini", alias="AI_SPAM_MODEL")
    ai_spam_timeout_seconds: float = Field(default=5.0, alias="AI_SPAM_TIMEOUT_SECONDS")

    # Webhooks
    webhook_timeout_seconds: float = Field(default=10.0, alias="WEBHOOK_TIMEOUT_SECONDS")
    webhook_resolve_dns: bool = Field(default=True, alias="WEBHOOK_RESOLVE_DNS")

    # Webhook secret encryption: comma-separated Fernet keys, newest first
    webhook_secret_keys: str = Field(default="", alias="WEBHOOK_SECRET_KEYS")

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # Management API keys are stored as HMAC-SHA256 under this secret
    api_key_hmac_secret: str = Field(default="", alias="API_KEY_HMAC_SECRET")

    # Cron endpoint shared secret
    cron_secret: str = Field(default="", alias="CRON_SECRET")

    # Client IP: infrastructure header first, then proxy headers
    client_ip_headers_raw: str = Field(
        default="x-vercel-forwarded-for,x-real-ip,x-forwarded-for",
        alias="CLIENT_IP_HEADERS",
        description="Comma-separated or JSON list, highest priority first",
    )

    @property
    def client_ip_headers(self) -> List[str]:
        return _parse_header_list(getattr(self, "client_ip_headers_raw", None))

    # Rate limits (requests per window, per IP)
    submission_rate_limit: int = 10
    submission_rate_window_seconds: int = 60
    api_rate_limit: int = 60
    api_rate_window_seconds: int = 60

    @property
    def is_production(self) -> bool:
        return self.env == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()

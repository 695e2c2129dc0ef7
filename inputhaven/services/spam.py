"""Spam classification: free keyword heuristics first, then the optional AI stage."""

import re
from dataclasses import dataclass
from typing import Any, Literal

from inputhaven.core.logging import get_logger
from inputhaven.services import ai_spam

log = get_logger(__name__)

SPAM_KEYWORDS = (
    "viagra",
    "cialis",
    "casino",
    "lottery",
    "winner",
    "click here",
    "buy now",
    "free money",
    "act now",
    "limited time",
    "no obligation",
    "risk free",
    "as seen on",
    "order now",
    "special promotion",
    "nigerian prince",
    "wire transfer",
    "bitcoin doubler",
    "crypto giveaway",
)

URL_RE = re.compile(r"https?://\S{1,2000}", re.IGNORECASE)
MAX_URLS = 5
MIN_CONTENT_CHARS = 3


@dataclass(frozen=True)
class SpamVerdict:
    is_spam: bool
    score: int = 0
    reason: str | None = None
    method: Literal["keyword", "ai", "none"] = "none"


def _joined_text(data: dict[str, Any]) -> str:
    return " ".join(v for v in data.values() if isinstance(v, str)).lower()


def check_keywords(data: dict[str, Any]) -> str | None:
    """Return the reason the payload looks like spam, or None. Deterministic."""
    text = _joined_text(data)
    for keyword in SPAM_KEYWORDS:
        if keyword in text:
            return f"Spam keyword detected: {keyword}"
    if len(URL_RE.findall(text)) > MAX_URLS:
        return "Too many URLs in submission"
    stripped = re.sub(r"\s+", "", text)
    if 0 < len(stripped) < MIN_CONTENT_CHARS:
        return "Submission too short"
    return None


def check_honeypot(data: dict[str, Any], honeypot_field: str | None) -> bool:
    if not honeypot_field:
        return False
    value = data.get(honeypot_field)
    return isinstance(value, str) and len(value) > 0


async def classify(data: dict[str, Any], ai_enabled: bool) -> SpamVerdict:
    """Keyword stage short-circuits; the AI stage can only add rejections.

    Any AI failure falls through to not-spam.
    """
    reason = check_keywords(data)
    if reason:
        return SpamVerdict(is_spam=True, score=100, reason=reason, method="keyword")
    if ai_enabled:
        try:
            result = await ai_spam.check_spam_with_ai(data)
        except Exception as e:
            log.warning("ai_spam_check_failed", error=str(e))
            result = None
        if result is not None:
            return SpamVerdict(
                is_spam=result.is_spam,
                score=result.confidence,
                reason=result.reason,
                method="ai",
            )
    return SpamVerdict(is_spam=False)

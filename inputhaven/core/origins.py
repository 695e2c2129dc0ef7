"""Per-form CORS headers, server-side origin enforcement and redirect validation."""

from urllib.parse import urlsplit

from inputhaven.core.config import get_settings

ALLOWED_METHODS = "POST, OPTIONS"
ALLOWED_HEADERS = "Content-Type, X-Form-Id, X-Access-Key, X-Requested-With"
_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_origin(url: str | None) -> str | None:
    """scheme://host[:port] in lower case, default port dropped; None if not http(s)."""
    if not url:
        return None
    try:
        parts = urlsplit(url.strip())
        port = parts.port
    except ValueError:
        return None
    scheme = (parts.scheme or "").lower()
    host = (parts.hostname or "").lower()
    if scheme not in _DEFAULT_PORTS or not host:
        return None
    if ":" in host:
        host = f"[{host}]"
    if port and port != _DEFAULT_PORTS[scheme]:
        return f"{scheme}://{host}:{port}"
    return f"{scheme}://{host}"


def app_origin() -> str:
    return normalize_origin(get_settings().app_url) or "http://localhost:3000"


def normalize_domain(domain: str) -> str:
    """Accept 'mysite.com', 'https://mysite.com/', '*.mysite.com' and reduce to a bare host."""
    d = domain.strip().lower()
    if "://" in d:
        d = urlsplit(d).hostname or ""
    d = d.split("/", 1)[0]
    if d.startswith("*."):
        d = d[2:]
    return d.rstrip(".")


def host_matches(host: str, allowed_domains: list[str]) -> bool:
    """Exact host or any subdomain of an allowed domain."""
    host = host.lower().rstrip(".")
    for raw in allowed_domains:
        d = normalize_domain(raw)
        if d and (host == d or host.endswith(f".{d}")):
            return True
    return False


def cors_headers(origin: str | None, allowed_domains: list[str]) -> dict[str, str]:
    """Response CORS headers for a form.

    Empty allowlist: only the service's canonical origin is allowed (and it is
    advertised when the request carries no Origin). Otherwise the request
    Origin is echoed back when its host is on the allowlist.
    """
    headers = {
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        "Vary": "Origin",
    }
    canonical = app_origin()
    if not allowed_domains:
        if not origin or origin == "null":
            headers["Access-Control-Allow-Origin"] = canonical
        elif normalize_origin(origin) == canonical:
            headers["Access-Control-Allow-Origin"] = origin
        return headers
    normalized = normalize_origin(origin)
    if normalized:
        host = urlsplit(normalized).hostname or ""
        if host_matches(host, allowed_domains):
            headers["Access-Control-Allow-Origin"] = origin
    return headers


def origin_allowed(origin: str | None, headers: dict[str, str]) -> bool:
    """Requests without Origin pass; browser requests need their Origin echoed back."""
    if not origin:
        return True
    return headers.get("Access-Control-Allow-Origin") == origin


def is_redirect_allowed(target: str, request_origin: str | None, allowed_domains: list[str]) -> bool:
    """http(s) only; same origin as the service, the (already validated) request
    Origin, or a host on the form's allowlist."""
    if not target or not isinstance(target, str):
        return False
    try:
        parts = urlsplit(target.strip())
    except ValueError:
        return False
    if parts.scheme.lower() not in _DEFAULT_PORTS or not parts.hostname:
        return False
    target_origin = normalize_origin(target)
    if target_origin == app_origin():
        return True
    if request_origin and target_origin == normalize_origin(request_origin):
        return True
    return bool(allowed_domains) and host_matches(parts.hostname, allowed_domains)

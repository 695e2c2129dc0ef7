from inputhaven.core.origins import (
    cors_headers,
    host_matches,
    is_redirect_allowed,
    normalize_origin,
    origin_allowed,
)

APP = "https://app.inputhaven.test"


def test_normalize_origin():
    assert normalize_origin("HTTPS://MySite.com:443/path") == "https://mysite.com"
    assert normalize_origin("http://mysite.com:8080") == "http://mysite.com:8080"
    assert normalize_origin("javascript:alert(1)") is None
    assert normalize_origin(None) is None


def test_host_matches_exact_and_subdomains():
    assert host_matches("mysite.com", ["mysite.com"])
    assert host_matches("www.mysite.com", ["https://mysite.com/"])
    assert not host_matches("evilmysite.com", ["mysite.com"])
    assert not host_matches("mysite.com.evil.example", ["mysite.com"])


def test_allowlisted_origin_is_echoed():
    h = cors_headers("https://mysite.com", ["mysite.com"])
    assert h["Access-Control-Allow-Origin"] == "https://mysite.com"
    assert h["Vary"] == "Origin"
    assert origin_allowed("https://mysite.com", h)


def test_foreign_origin_is_not_echoed():
    h = cors_headers("https://evil.example", ["mysite.com"])
    assert "Access-Control-Allow-Origin" not in h
    assert not origin_allowed("https://evil.example", h)


def test_empty_allowlist_allows_canonical_origin_only():
    assert cors_headers(None, [])["Access-Control-Allow-Origin"] == APP
    assert origin_allowed(APP, cors_headers(APP, []))
    assert not origin_allowed("https://mysite.com", cors_headers("https://mysite.com", []))


def test_missing_origin_passes():
    assert origin_allowed(None, cors_headers(None, ["mysite.com"]))
    assert origin_allowed("", {})


def test_null_origin_is_rejected():
    assert not origin_allowed("null", cors_headers("null", ["mysite.com"]))
    assert not origin_allowed("null", cors_headers("null", []))


def test_redirect_validation():
    allowed = ["mysite.com"]
    assert is_redirect_allowed("https://mysite.com/thanks", None, allowed)
    assert is_redirect_allowed("https://www.mysite.com/thanks", None, allowed)
    assert is_redirect_allowed(f"{APP}/success", None, [])
    assert is_redirect_allowed("https://other.example/ok", "https://other.example", [])
    assert not is_redirect_allowed("https://evil.example/phish", "https://mysite.com", allowed)
    assert not is_redirect_allowed("javascript:alert(1)", None, allowed)
    assert not is_redirect_allowed("data:text/html,hi", None, allowed)
    assert not is_redirect_allowed("//evil.example", None, allowed)
    assert not is_redirect_allowed("https://evil.example", None, [])

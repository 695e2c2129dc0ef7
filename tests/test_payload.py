import pytest

from inputhaven.core.exceptions import PayloadTooLargeError
from inputhaven.services.payload import (
    MAX_FIELDS,
    _collect,
    extract_access_key,
    strip_reserved,
)


def test_collect_joins_repeated_keys():
    data = _collect([("interest", "design"), ("interest", "seo"), ("name", "Ada")])
    assert data == {"interest": "design, seo", "name": "Ada"}


def test_collect_field_cap():
    _collect([(f"f{i}", "v") for i in range(MAX_FIELDS)])
    with pytest.raises(PayloadTooLargeError):
        _collect([(f"f{i}", "v") for i in range(MAX_FIELDS + 1)])


def test_collect_value_cap():
    with pytest.raises(PayloadTooLargeError) as exc:
        _collect([("message", "a" * (10 * 1024 + 1))])
    assert exc.value.status_code == 413


def test_extract_access_key_prefers_body_then_headers():
    assert extract_access_key({"_form_id": " abc "}, {}) == "abc"
    assert extract_access_key({"access_key": "legacy"}, {}) == "legacy"
    assert extract_access_key({}, {"x-form-id": "from-header"}) == "from-header"
    assert extract_access_key({"_form_id": "body"}, {"x-access-key": "header"}) == "body"
    assert extract_access_key({"_form_id": 123}, {}) == ""


def test_strip_reserved_fields():
    data = {
        "_form_id": "k",
        "_access_key": "k",
        "_redirect": "https://mysite.com",
        "_gotcha": "",
        "website_url": "",
        "name": "Ada",
    }
    assert strip_reserved(data, "website_url") == {"name": "Ada"}

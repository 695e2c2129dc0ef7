"""Conditional email routing: field-value rules to recipient addresses."""

from typing import Any, Iterable

from inputhaven.models.form import EmailRoute


def route_matches(route: EmailRoute, data: dict[str, Any]) -> bool:
    raw = data.get(route.field)
    field_value = "" if raw is None else str(raw).lower()
    expected = route.value.lower()
    if route.operator == "equals":
        return field_value == expected
    if route.operator == "contains":
        return expected in field_value
    if route.operator == "starts_with":
        return field_value.startswith(expected)
    if route.operator == "ends_with":
        return field_value.endswith(expected)
    return False


def evaluate_routes(data: dict[str, Any], routes: Iterable[EmailRoute], default_email: str) -> list[str]:
    """Every matching rule fires; duplicates collapse in rule order. No match -> [default_email]."""
    matched: dict[str, None] = {}
    for route in routes:
        if route_matches(route, data):
            matched.setdefault(route.email_to, None)
    return list(matched) or [default_email]

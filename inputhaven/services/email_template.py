"""Notification email rendering; escaping happens here, not at ingestion."""

from html import escape
from typing import Any

_ROW = (
    '<tr><td style="padding:8px;border:1px solid #ddd;font-weight:bold">{key}</td>'
    '<td style="padding:8px;border:1px solid #ddd">{value}</td></tr>'
)


def submission_subject(form_name: str, custom_subject: str | None) -> str:
    return custom_subject or f"New submission from {form_name}"


def build_submission_email_html(form_name: str, data: dict[str, Any], submitted_at: str) -> str:
    rows = "".join(_ROW.format(key=escape(str(k)), value=escape(str(v))) for k, v in data.items())
    return (
        "<h2>New Form Submission</h2>"
        f"<p>Form: {escape(form_name)}</p>"
        f'<table style="border-collapse:collapse;width:100%">{rows}</table>'
        f'<p style="color:#888;font-size:12px;margin-top:20px">Submitted at {escape(submitted_at)}</p>'
    )

from inputhaven.models.account import Account
from inputhaven.models.api_key import ApiKey
from inputhaven.models.form import EmailRoute, Form
from inputhaven.models.submission import FileRef, Submission
from inputhaven.models.email_queue import EmailQueueEntry
from inputhaven.models.webhook_log import WebhookLog
from inputhaven.models.failed_job import FailedJob

__all__ = [
    "Account",
    "ApiKey",
    "EmailRoute",
    "Form",
    "FileRef",
    "Submission",
    "EmailQueueEntry",
    "WebhookLog",
    "FailedJob",
]

"""GitHub webhook handling for issue triage.

This module authenticates and parses GitHub webhook deliveries:
- issues.opened / issues.edited / issues.closed / issues.labeled
- issue_comment.created

Deliveries must carry a valid X-Hub-Signature-256 signature unless the
service runs in development mode.
"""

from .handler import SIGNATURE_HEADER, WebhookHandler, create_webhook_handler
from .models import (
    AuthorAssociation,
    CloseReason,
    EventKind,
    IssueAction,
    IssueRef,
    IssueState,
    IssueWebhookEvent,
    WebhookComment,
    WebhookIssue,
    WebhookLabel,
    WebhookPayload,
    WebhookRepository,
    WebhookUser,
    is_collaborator_or_higher,
)

__all__ = [
    "AuthorAssociation",
    "CloseReason",
    "EventKind",
    "IssueAction",
    "IssueRef",
    "IssueState",
    "IssueWebhookEvent",
    "SIGNATURE_HEADER",
    "WebhookComment",
    "WebhookHandler",
    "WebhookIssue",
    "WebhookLabel",
    "WebhookPayload",
    "WebhookRepository",
    "WebhookUser",
    "create_webhook_handler",
    "is_collaborator_or_higher",
]

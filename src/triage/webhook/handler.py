"""GitHub webhook handler for issue triage.

This module provides the WebhookHandler class for authenticating and parsing
GitHub webhook deliveries. Deliveries are authenticated with the
X-Hub-Signature-256 HMAC header; unauthenticated deliveries are rejected
unless the service runs in local development mode.

GitHub Webhook Payload Structure (issues / issue_comment events):
{
  "action": "opened" | "edited" | "closed" | "labeled" | "created",
  "issue": {
    "id": 1, "number": 123, "node_id": "I_kw...",
    "title": "Issue title", "body": "Issue body",
    "state": "open", "state_reason": null,
    "labels": [{"name": "bug"}],
    "user": {"login": "username", "type": "User"},
    "author_association": "NONE"
  },
  "comment": {...},        # issue_comment.created only
  "label": {"name": "spam"},   # issues.labeled only
  "repository": {"name": "repo-name", "owner": {"login": "owner-name"}}
}
"""

import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .models import EventKind, IssueAction, IssueWebhookEvent, WebhookPayload

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Hub-Signature-256"

_ISSUE_ACTION_KINDS = {
    IssueAction.OPENED: EventKind.ISSUE_OPENED,
    IssueAction.EDITED: EventKind.ISSUE_EDITED,
    IssueAction.CLOSED: EventKind.ISSUE_CLOSED,
    IssueAction.LABELED: EventKind.ISSUE_LABELED,
}


class WebhookHandler:
    """Handler for authenticating and parsing GitHub webhook deliveries.

    Attributes:
        secret: The webhook secret shared with GitHub.
        dev_mode: When True, unsigned deliveries are accepted.
    """

    def __init__(self, secret: str, dev_mode: bool = False) -> None:
        self.secret = secret
        self.dev_mode = dev_mode

    def verify_signature(self, body: bytes, signature_header: Optional[str]) -> bool:
        """Check the X-Hub-Signature-256 header against the raw body.

        Args:
            body: Raw request body bytes, exactly as received.
            signature_header: The header value ("sha256=<hexdigest>").

        Returns:
            True if the signature matches the configured secret.
        """
        if not self.secret or not signature_header:
            return False
        if not signature_header.startswith("sha256="):
            return False
        expected = "sha256=" + hmac.new(
            self.secret.encode("utf-8"), body, hashlib.sha256
        ).hexdigest()
        return hmac.compare_digest(expected, signature_header)

    def is_authorized(self, body: bytes, signature_header: Optional[str]) -> bool:
        """Whether a delivery may be processed.

        Valid signatures are always accepted; invalid or missing ones only
        in development mode.
        """
        if self.verify_signature(body, signature_header):
            return True
        if self.dev_mode:
            logger.debug("Accepting unsigned delivery in development mode")
            return True
        return False

    def parse_event(self, payload: Dict[str, Any]) -> Optional[IssueWebhookEvent]:
        """Parse a webhook payload into a routable event.

        Returns None for payloads the triage service does not handle:
        - Missing or malformed issue/repository objects
        - Actions other than opened, edited, closed, labeled and
          comment created
        - Labeled deliveries without a label, comment deliveries without
          a comment

        Args:
            payload: The decoded JSON body.

        Returns:
            IssueWebhookEvent if the delivery is routable, None otherwise.
        """
        if not isinstance(payload, dict):
            logger.warning("Invalid payload: expected dict, got %s", type(payload))
            return None

        action_str = payload.get("action")
        if action_str is None:
            logger.warning("Missing 'action' field in payload")
            return None

        try:
            parsed = WebhookPayload.model_validate(payload)
        except ValidationError as e:
            logger.warning(
                "Ignoring malformed webhook payload",
                extra={"action": action_str, "errors": e.error_count()},
            )
            return None

        kind = self._select_kind(parsed)
        if kind is None:
            logger.debug("Ignoring unsupported action type: %s", action_str)
            return None

        event = IssueWebhookEvent(
            kind=kind,
            issue=parsed.issue,
            repository=parsed.repository,
            comment=parsed.comment,
            label=parsed.label,
            sender=parsed.sender,
        )

        logger.info(
            "Parsed webhook event: kind=%s, issue=%s",
            kind.value,
            event.issue_id,
        )
        return event

    def _select_kind(self, payload: WebhookPayload) -> Optional[EventKind]:
        try:
            action = IssueAction(payload.action)
        except ValueError:
            return None

        if payload.comment is not None:
            return EventKind.COMMENT_CREATED if action == IssueAction.CREATED else None

        if action == IssueAction.LABELED and payload.label is None:
            logger.warning("Labeled delivery without a label object")
            return None

        return _ISSUE_ACTION_KINDS.get(action)


def create_webhook_handler(secret: str, dev_mode: bool = False) -> WebhookHandler:
    """Factory function to create a WebhookHandler instance."""
    return WebhookHandler(secret=secret, dev_mode=dev_mode)

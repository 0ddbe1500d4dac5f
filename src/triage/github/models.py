"""GitHub API response models used by triage."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from src.triage.webhook.models import AuthorAssociation


# Timeline event kinds that affect an issue's status history
STATUS_EVENT_KINDS = frozenset({"closed", "reopened", "labeled", "unlabeled"})


class IssueComment(BaseModel):
    """A comment on an issue, as needed for context gathering."""

    body: str = ""
    author: str = "unknown"
    author_association: AuthorAssociation = AuthorAssociation.NONE
    created_at: str = ""

    @classmethod
    def from_github_response(cls, data: Dict[str, Any]) -> "IssueComment":
        user = data.get("user") or {}
        association = data.get("author_association")
        try:
            role = AuthorAssociation(association)
        except ValueError:
            role = AuthorAssociation.NONE
        return cls(
            body=data.get("body") or "",
            author=user.get("login") or "unknown",
            author_association=role,
            created_at=data.get("created_at") or "",
        )


class TimelineEvent(BaseModel):
    """A status-affecting timeline event (closed, reopened, labeled, unlabeled)."""

    event: str
    created_at: str = ""
    actor: Optional[str] = None
    label: Optional[str] = None

    @classmethod
    def from_github_response(cls, data: Dict[str, Any]) -> Optional["TimelineEvent"]:
        """Build an event from a timeline entry, or None for other kinds."""
        kind = data.get("event")
        if kind not in STATUS_EVENT_KINDS:
            return None
        actor = data.get("actor") or {}
        label = data.get("label") or {}
        return cls(
            event=kind,
            created_at=data.get("created_at") or "",
            actor=actor.get("login"),
            label=label.get("name"),
        )


class TransferResult(BaseModel):
    """Outcome of a GraphQL issue transfer."""

    transferred_issue_number: int = Field(..., gt=0)
    transferred_issue_url: Optional[str] = None

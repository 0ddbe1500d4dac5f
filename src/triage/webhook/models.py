"""GitHub webhook event models for issue triage.

This module defines the data models for the GitHub webhook deliveries that
drive triage: issue opened, edited, closed and labeled events, and
issue_comment created events.

The payload models mirror the subset of GitHub's webhook schema that the
triage engine reads. Unknown fields are ignored so that GitHub adding new
fields never breaks parsing.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class IssueAction(str, Enum):
    """Webhook `action` values the triage service reacts to.

    Attributes:
        OPENED: A new issue was created.
        EDITED: An issue title or body was modified.
        CLOSED: An issue was closed.
        LABELED: A label was added to an issue.
        CREATED: A comment was created (issue_comment deliveries).
    """

    OPENED = "opened"
    EDITED = "edited"
    CLOSED = "closed"
    LABELED = "labeled"
    CREATED = "created"


class EventKind(str, Enum):
    """The triage flow an incoming delivery maps to."""

    ISSUE_OPENED = "issue_opened"
    ISSUE_EDITED = "issue_edited"
    ISSUE_CLOSED = "issue_closed"
    ISSUE_LABELED = "issue_labeled"
    COMMENT_CREATED = "comment_created"


class IssueState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class CloseReason(str, Enum):
    COMPLETED = "completed"
    NOT_PLANNED = "not_planned"


class AuthorAssociation(str, Enum):
    """GitHub author_association values."""

    OWNER = "OWNER"
    MEMBER = "MEMBER"
    COLLABORATOR = "COLLABORATOR"
    CONTRIBUTOR = "CONTRIBUTOR"
    FIRST_TIME_CONTRIBUTOR = "FIRST_TIME_CONTRIBUTOR"
    FIRST_TIMER = "FIRST_TIMER"
    MANNEQUIN = "MANNEQUIN"
    NONE = "NONE"

    @property
    def is_collaborator_or_higher(self) -> bool:
        """Whether this role can manage issues (owner, member or collaborator)."""
        return self in _COLLABORATOR_OR_HIGHER


_COLLABORATOR_OR_HIGHER = frozenset(
    {
        AuthorAssociation.OWNER,
        AuthorAssociation.MEMBER,
        AuthorAssociation.COLLABORATOR,
    }
)


def is_collaborator_or_higher(association: Any) -> bool:
    """Check if an author association is collaborator or higher.

    Accepts either an AuthorAssociation or a raw string. Unknown values are
    treated as having no elevated role.
    """
    try:
        return AuthorAssociation(association).is_collaborator_or_higher
    except ValueError:
        return False


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class WebhookUser(_Payload):
    login: str
    type: str = "User"

    @property
    def is_bot(self) -> bool:
        return self.type == "Bot" or self.login.endswith("[bot]")


class WebhookLabel(_Payload):
    name: str


class WebhookIssue(_Payload):
    """The `issue` object of an issues or issue_comment delivery."""

    id: int
    number: int = Field(..., gt=0)
    node_id: str = ""
    title: str = ""
    body: Optional[str] = None
    state: IssueState = IssueState.OPEN
    state_reason: Optional[CloseReason] = None
    labels: List[WebhookLabel] = Field(default_factory=list)
    user: WebhookUser
    author_association: AuthorAssociation = AuthorAssociation.NONE
    pull_request: Optional[Dict[str, Any]] = None

    @field_validator("state_reason", mode="before")
    @classmethod
    def drop_unknown_state_reason(cls, v: Any) -> Any:
        # GitHub also sends "reopened" and may add new reasons
        if v is None or v in {reason.value for reason in CloseReason}:
            return v
        return None

    @field_validator("author_association", mode="before")
    @classmethod
    def default_unknown_association(cls, v: Any) -> Any:
        if v in {a.value for a in AuthorAssociation}:
            return v
        return AuthorAssociation.NONE

    @property
    def label_names(self) -> List[str]:
        return [label.name for label in self.labels]

    @property
    def is_pull_request(self) -> bool:
        return self.pull_request is not None


class WebhookComment(_Payload):
    id: int
    body: Optional[str] = None
    user: WebhookUser
    author_association: AuthorAssociation = AuthorAssociation.NONE
    created_at: Optional[str] = None

    @field_validator("author_association", mode="before")
    @classmethod
    def default_unknown_association(cls, v: Any) -> Any:
        if v in {a.value for a in AuthorAssociation}:
            return v
        return AuthorAssociation.NONE


class WebhookOwner(_Payload):
    login: str


class WebhookRepository(_Payload):
    name: str
    full_name: str = ""
    node_id: str = ""
    owner: WebhookOwner


class WebhookPayload(_Payload):
    """Raw delivery body, discriminated by `action` and its sub-objects."""

    action: str
    issue: WebhookIssue
    repository: WebhookRepository
    comment: Optional[WebhookComment] = None
    label: Optional[WebhookLabel] = None
    sender: Optional[WebhookUser] = None


class IssueRef(BaseModel):
    """Identity of the tracked issue, as needed by tracker calls."""

    owner: str
    repo: str
    number: int = Field(..., gt=0)
    node_id: str = ""

    @property
    def issue_id(self) -> str:
        """Canonical identifier in format "{owner}/{repo}#{number}"."""
        return f"{self.owner}/{self.repo}#{self.number}"

    @property
    def full_repository(self) -> str:
        return f"{self.owner}/{self.repo}"


class IssueWebhookEvent(BaseModel):
    """A parsed delivery the dispatcher can route.

    Attributes:
        kind: The triage flow selected by action and sub-objects.
        issue: The issue the delivery concerns.
        repository: The repository holding the issue.
        comment: The new comment, for COMMENT_CREATED.
        label: The added label, for ISSUE_LABELED.
        sender: The actor that triggered the delivery, when present.
    """

    kind: EventKind
    issue: WebhookIssue
    repository: WebhookRepository
    comment: Optional[WebhookComment] = None
    label: Optional[WebhookLabel] = None
    sender: Optional[WebhookUser] = None

    @property
    def ref(self) -> IssueRef:
        return IssueRef(
            owner=self.repository.owner.login,
            repo=self.repository.name,
            number=self.issue.number,
            node_id=self.issue.node_id,
        )

    @property
    def issue_id(self) -> str:
        return self.ref.issue_id

    @property
    def full_repository(self) -> str:
        return self.ref.full_repository

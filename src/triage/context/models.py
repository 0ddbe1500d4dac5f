"""Enhanced context models and derived predicates.

The EnhancedContext bundles what is known about an issue beyond the
webhook payload: its normalized body, the most recent comments and its
status history. It is built fresh for every webhook delivery and never
cached.

The predicates below are pure functions over the context and are the
named signals the decision engine branches on.
"""

from typing import Iterable, List, Optional

from pydantic import BaseModel, Field, field_validator

from src.triage.github.models import STATUS_EVENT_KINDS, IssueComment, TimelineEvent
from src.triage.webhook.models import CloseReason, IssueState


DUPLICATE_LABEL = "duplicate"

# Reopen count at which an issue is considered unstable
MULTIPLE_REOPEN_THRESHOLD = 2


class GatherOptions(BaseModel):
    """What the context gatherer should fetch.

    Attributes:
        include_comments: Fetch the most recent comments.
        max_comments: Upper bound on fetched comments.
        include_timeline: Fetch status-affecting timeline events.
        timeline_limit: Upper bound on requested timeline entries.
    """

    include_comments: bool = True
    max_comments: int = Field(default=5, ge=1, le=100)
    include_timeline: bool = True
    timeline_limit: int = Field(default=20, ge=1, le=100)


class EnhancedContext(BaseModel):
    """Per-delivery enriched view of an issue.

    Attributes:
        issue_body: Normalized issue body.
        recent_comments: Most recent comments, newest first.
        issue_state: Lifecycle state of the issue.
        issue_state_reason: Close reason, if closed with one.
        timeline_events: Status history (closed, reopened, labeled, unlabeled).
    """

    issue_body: str = ""
    recent_comments: List[IssueComment] = Field(default_factory=list)
    issue_state: IssueState = IssueState.OPEN
    issue_state_reason: Optional[CloseReason] = None
    timeline_events: List[TimelineEvent] = Field(default_factory=list)

    @field_validator("timeline_events")
    @classmethod
    def validate_event_kinds(cls, v: List[TimelineEvent]) -> List[TimelineEvent]:
        for event in v:
            if event.event not in STATUS_EVENT_KINDS:
                raise ValueError(f"unsupported timeline event kind: {event.event}")
        return v

    @property
    def is_closed(self) -> bool:
        return self.issue_state == IssueState.CLOSED


def was_closed_as_not_planned(context: EnhancedContext) -> bool:
    """Whether the issue is closed with reason not_planned."""
    return context.is_closed and context.issue_state_reason == CloseReason.NOT_PLANNED


def was_closed_as_duplicate(context: EnhancedContext, issue_labels: Iterable[str]) -> bool:
    """Whether the issue is closed as a duplicate.

    Duplicates are recognised by the "duplicate" label or by a recent
    comment mentioning a duplicate (case-insensitive).
    """
    if not context.is_closed:
        return False
    if DUPLICATE_LABEL in set(issue_labels):
        return True
    return any(
        "duplicate" in comment.body.lower() for comment in context.recent_comments
    )


def was_closed_as_completed(context: EnhancedContext) -> bool:
    """Whether the issue is closed with reason completed."""
    return context.is_closed and context.issue_state_reason == CloseReason.COMPLETED


def reopen_count(context: EnhancedContext) -> int:
    return sum(1 for event in context.timeline_events if event.event == "reopened")


def has_been_reopened_multiple_times(context: EnhancedContext) -> bool:
    """Whether the issue was reopened at least twice."""
    return reopen_count(context) >= MULTIPLE_REOPEN_THRESHOLD


def build_enhanced_prompt_content(
    context: EnhancedContext, include_timeline: bool = False
) -> str:
    """Render the context as plain text for the re-evaluation prompt."""
    lines = [f"Issue Body:\n{context.issue_body}\n"]

    if context.recent_comments:
        lines.append("\nRecent Comments:\n")
        for index, comment in enumerate(context.recent_comments, start=1):
            lines.append(
                f"Comment {index} (by {comment.author}, "
                f"{comment.author_association.value}):\n{comment.body}\n\n"
            )

    if include_timeline and context.timeline_events:
        lines.append("\nIssue Status History:\n")
        for event in context.timeline_events:
            lines.append(
                f"- {event.event} on {event.created_at} by {event.actor or 'unknown'}\n"
            )

    state = f"\nCurrent Issue State: {context.issue_state.value}"
    if context.issue_state_reason is not None:
        state += f" ({context.issue_state_reason.value})"
    lines.append(state)

    return "".join(lines)

"""Triage event models for observability.

This module defines the data models for triage events:
- EventType: Enum of all event types emitted during a triage pass
- TriageEvent: Structured event with all required metadata

Events are diagnostic only. No triage logic reads them back.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field, field_serializer


class EventType(str, Enum):
    """Types of events emitted by the triage service.

    Event Categories:
        DECISION: The decision engine produced a decision for an event.
            Details carry the flow, the reason and the described actions.

        SKIPPED: The dispatcher short-circuited a delivery (bot author,
            pull request, nothing to re-evaluate).

        ACTION_SETTLED: One intended action was applied by the tracker.

        ACTION_FAILED: One intended action was rejected by the tracker.

        ERROR: A pass failed at some stage (classification, translation,
            execution).
    """

    DECISION = "decision"
    SKIPPED = "skipped"
    ACTION_SETTLED = "action_settled"
    ACTION_FAILED = "action_failed"
    ERROR = "error"


class TriageEvent(BaseModel):
    """Structured event emitted while triaging an issue.

    Attributes:
        event_type: The category of event.
        issue_id: Canonical identifier in format "{owner}/{repo}#{number}".
        repository: Full repository path in format "{owner}/{repo}".
        timestamp: When the event occurred (UTC timezone).
        details: Additional context specific to the event type.

    Example:
        >>> event = TriageEvent(
        ...     event_type=EventType.DECISION,
        ...     issue_id="nuxt/nuxt#123",
        ...     repository="nuxt/nuxt",
        ...     details={"flow": "issue_opened", "actions": ["set_issue_type(bug)"]},
        ... )

    Details Field Conventions:
        For DECISION and SKIPPED events:
            - flow: Event kind that selected the flow
            - reason: Short reason code from the decision engine

        For ACTION_SETTLED and ACTION_FAILED events:
            - action: Described action
            - action_kind: ActionKind value
            - error_message / error_type: Failure details

        For ERROR events:
            - stage: classification, translation or execution
            - error_message / error_type
    """

    event_type: EventType = Field(
        ...,
        description="The category of event being emitted",
    )

    issue_id: str = Field(
        ...,
        min_length=1,
        description='Canonical issue identifier in format "{owner}/{repo}#{number}"',
    )

    repository: str = Field(
        ...,
        min_length=1,
        description='Full repository path in format "{owner}/{repo}"',
    )

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC timezone)",
    )

    details: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional context specific to the event type",
    )

    @field_serializer("timestamp")
    def serialize_timestamp(self, v: datetime) -> str:
        return v.isoformat()

    def to_log_dict(self) -> Dict[str, Any]:
        """Flatten the event for structured logging.

        Example:
            >>> event = TriageEvent(
            ...     event_type=EventType.ERROR,
            ...     issue_id="nuxt/nuxt#123",
            ...     repository="nuxt/nuxt",
            ...     details={"stage": "classification"},
            ... )
            >>> event.to_log_dict()["event_type"]
            'error'
        """
        return {
            "event_type": self.event_type.value,
            "issue_id": self.issue_id,
            "repository": self.repository,
            "timestamp": self.timestamp.isoformat(),
            **self.details,
        }

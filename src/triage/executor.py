"""Action executor for issue triage.

Applies the intended actions of one decision pass against the tracker.
All actions of a pass are submitted concurrently and joined with
wait-for-all-settled semantics: a rejected action never cancels or
blocks its siblings, and failures are collected into per-action
outcomes instead of being raised.

Whether a rejection matters to the webhook sender is declared once per
action kind in ACTION_FAILURE_POLICY. Transfers are HARD (there is no
sibling action whose outcome would be worth preserving); everything
else is SOFT and only visible through logs and events.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Optional

from src.triage.decision.actions import (
    ActionKind,
    AddLabels,
    IntendedAction,
    RemoveLabel,
    SetIssueType,
    SetState,
    SetTitle,
    TransferToRepository,
)
from src.triage.events.emitter import EventEmitter
from src.triage.events.models import EventType, TriageEvent
from src.triage.github.client import GitHubClient
from src.triage.webhook.models import IssueRef


logger = logging.getLogger(__name__)


class FailurePolicy(str, Enum):
    """How a rejected action affects the pass.

    Attributes:
        SOFT: Logged and contained; the pass still succeeds.
        HARD: Surfaced to the invoker as a server error.
    """

    SOFT = "soft"
    HARD = "hard"


ACTION_FAILURE_POLICY = {
    ActionKind.ADD_LABELS: FailurePolicy.SOFT,
    ActionKind.REMOVE_LABEL: FailurePolicy.SOFT,
    ActionKind.SET_STATE: FailurePolicy.SOFT,
    ActionKind.SET_TITLE: FailurePolicy.SOFT,
    ActionKind.SET_ISSUE_TYPE: FailurePolicy.SOFT,
    ActionKind.TRANSFER_TO_REPOSITORY: FailurePolicy.HARD,
}


class ActionStatus(str, Enum):
    SETTLED = "settled"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ActionOutcome:
    """Settled outcome of one intended action.

    Attributes:
        action: The action that was attempted.
        status: SETTLED if the tracker accepted it, REJECTED otherwise.
        error: The exception raised by the tracker call, if rejected.
        result: The tracker call's return value, if settled.
    """

    action: IntendedAction
    status: ActionStatus
    error: Optional[BaseException] = None
    result: Any = None

    @property
    def succeeded(self) -> bool:
        return self.status == ActionStatus.SETTLED

    @property
    def policy(self) -> FailurePolicy:
        return policy_for(self.action)


class ActionExecutionError(Exception):
    """Raised when an action with a HARD failure policy was rejected.

    Attributes:
        message: Human-readable error message.
        outcomes: The rejected HARD outcomes.
    """

    def __init__(self, message: str, outcomes: List[ActionOutcome]):
        self.message = message
        self.outcomes = outcomes
        super().__init__(message)


def policy_for(action: IntendedAction) -> FailurePolicy:
    return ACTION_FAILURE_POLICY.get(action.kind, FailurePolicy.SOFT)


def is_detachable(actions: Iterable[IntendedAction]) -> bool:
    """Whether a pass may be acknowledged before its actions complete.

    Only passes whose every action is SOFT can run after the response is
    sent; a HARD action must be awaited so its failure reaches the caller.
    """
    return all(policy_for(action) == FailurePolicy.SOFT for action in actions)


def raise_for_hard_failures(outcomes: Iterable[ActionOutcome]) -> None:
    """Raise ActionExecutionError if any HARD action was rejected."""
    failed = [
        outcome
        for outcome in outcomes
        if not outcome.succeeded and outcome.policy == FailurePolicy.HARD
    ]
    if failed:
        described = ", ".join(outcome.action.describe() for outcome in failed)
        raise ActionExecutionError(f"Action failed: {described}", outcomes=failed)


class ActionExecutor:
    """Applies intended actions through the tracker client.

    Attributes:
        github_client: Client used for all mutations.
        event_emitter: Optional emitter for per-action events.
    """

    def __init__(
        self,
        github_client: GitHubClient,
        event_emitter: Optional[EventEmitter] = None,
    ):
        self.github_client = github_client
        self.event_emitter = event_emitter

    async def execute(
        self, ref: IssueRef, actions: List[IntendedAction]
    ) -> List[ActionOutcome]:
        """Run all actions concurrently and collect their outcomes.

        Every action is attempted exactly once. The returned outcomes are
        in the same order as the given actions.

        Args:
            ref: The issue the actions apply to.
            actions: Actions from one decision pass.

        Returns:
            One ActionOutcome per action.
        """
        if not actions:
            return []

        results = await asyncio.gather(
            *(self._apply(ref, action) for action in actions),
            return_exceptions=True,
        )

        outcomes = []
        for action, result in zip(actions, results):
            if isinstance(result, BaseException):
                outcome = ActionOutcome(
                    action=action, status=ActionStatus.REJECTED, error=result
                )
                logger.warning(
                    "Action rejected",
                    extra={
                        "issue_id": ref.issue_id,
                        "action": action.describe(),
                        "policy": policy_for(action).value,
                        "error": str(result),
                        "error_type": type(result).__name__,
                    },
                )
            else:
                outcome = ActionOutcome(
                    action=action, status=ActionStatus.SETTLED, result=result
                )
            outcomes.append(outcome)
            await self._emit_outcome(ref, outcome)

        logger.info(
            "Actions settled",
            extra={
                "issue_id": ref.issue_id,
                "settled": sum(1 for o in outcomes if o.succeeded),
                "rejected": sum(1 for o in outcomes if not o.succeeded),
            },
        )
        return outcomes

    async def _apply(self, ref: IssueRef, action: IntendedAction) -> Any:
        client = self.github_client
        if isinstance(action, AddLabels):
            return await client.add_labels(ref.owner, ref.repo, ref.number, list(action.labels))
        if isinstance(action, RemoveLabel):
            return await client.remove_label(ref.owner, ref.repo, ref.number, action.label)
        if isinstance(action, SetState):
            return await client.set_issue_state(
                ref.owner, ref.repo, ref.number, action.state.value
            )
        if isinstance(action, SetTitle):
            return await client.set_issue_title(ref.owner, ref.repo, ref.number, action.title)
        if isinstance(action, SetIssueType):
            return await client.set_issue_type(
                ref.owner, ref.repo, ref.number, action.issue_type
            )
        if isinstance(action, TransferToRepository):
            return await client.transfer_issue(
                action.issue_node_id, action.target_repository_id
            )
        raise TypeError(f"Unsupported action: {action!r}")

    async def _emit_outcome(self, ref: IssueRef, outcome: ActionOutcome) -> None:
        if self.event_emitter is None:
            return
        details = {
            "action": outcome.action.describe(),
            "action_kind": outcome.action.kind.value,
        }
        if outcome.error is not None:
            details["error_message"] = str(outcome.error)
            details["error_type"] = type(outcome.error).__name__
        event = TriageEvent(
            event_type=(
                EventType.ACTION_SETTLED if outcome.succeeded else EventType.ACTION_FAILED
            ),
            issue_id=ref.issue_id,
            repository=ref.full_repository,
            details=details,
        )
        try:
            await self.event_emitter.emit(event)
        except Exception:
            logger.exception(
                "Failed to emit action event",
                extra={"issue_id": ref.issue_id, "action": outcome.action.describe()},
            )

"""Intended actions produced by the decision engine.

Each action is a small immutable pydantic model tagged by `kind`. The
decision engine only produces them; the action executor is the only
component that turns them into tracker calls.
"""

from enum import Enum
from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from src.triage.webhook.models import IssueState


class ActionKind(str, Enum):
    ADD_LABELS = "add_labels"
    REMOVE_LABEL = "remove_label"
    SET_STATE = "set_state"
    SET_TITLE = "set_title"
    SET_ISSUE_TYPE = "set_issue_type"
    TRANSFER_TO_REPOSITORY = "transfer_to_repository"


class _Action(BaseModel):
    model_config = ConfigDict(frozen=True)

    def describe(self) -> str:
        return self.kind.value


class AddLabels(_Action):
    """Add all qualifying labels in one batched call."""

    kind: Literal[ActionKind.ADD_LABELS] = ActionKind.ADD_LABELS
    labels: List[str] = Field(..., min_length=1)

    def describe(self) -> str:
        return f"add_labels({', '.join(self.labels)})"


class RemoveLabel(_Action):
    kind: Literal[ActionKind.REMOVE_LABEL] = ActionKind.REMOVE_LABEL
    label: str

    def describe(self) -> str:
        return f"remove_label({self.label})"


class SetState(_Action):
    kind: Literal[ActionKind.SET_STATE] = ActionKind.SET_STATE
    state: IssueState

    def describe(self) -> str:
        return f"set_state({self.state.value})"


class SetTitle(_Action):
    kind: Literal[ActionKind.SET_TITLE] = ActionKind.SET_TITLE
    title: str = Field(..., min_length=1)

    def describe(self) -> str:
        return f"set_title({self.title})"


class SetIssueType(_Action):
    kind: Literal[ActionKind.SET_ISSUE_TYPE] = ActionKind.SET_ISSUE_TYPE
    issue_type: str

    def describe(self) -> str:
        return f"set_issue_type({self.issue_type})"


class TransferToRepository(_Action):
    """Move the issue, identified by node id, to another repository."""

    kind: Literal[ActionKind.TRANSFER_TO_REPOSITORY] = ActionKind.TRANSFER_TO_REPOSITORY
    issue_node_id: str = Field(..., min_length=1)
    target_repository_id: str = Field(..., min_length=1)

    def describe(self) -> str:
        return f"transfer_to_repository({self.target_repository_id})"


IntendedAction = Annotated[
    Union[AddLabels, RemoveLabel, SetState, SetTitle, SetIssueType, TransferToRepository],
    Field(discriminator="kind"),
]


class Decision(BaseModel):
    """Outcome of one decision pass.

    Attributes:
        actions: Actions to execute. Unordered; the executor runs them
            concurrently.
        reason: Short machine-friendly explanation, for diagnostics only.
    """

    model_config = ConfigDict(frozen=True)

    actions: List[IntendedAction] = Field(default_factory=list)
    reason: str

    @property
    def is_noop(self) -> bool:
        return not self.actions

    def describe(self) -> List[str]:
        return [action.describe() for action in self.actions]

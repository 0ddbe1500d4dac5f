"""Decision engine for issue triage.

Maps classification results and issue state to intended actions. Pure:
no tracker or classifier calls happen in this package.
"""

from src.triage.decision.actions import (
    ActionKind,
    AddLabels,
    Decision,
    IntendedAction,
    RemoveLabel,
    SetIssueType,
    SetState,
    SetTitle,
    TransferToRepository,
)
from src.triage.decision.engine import (
    CommentRoute,
    closed_issue_signals,
    decide_closed_issue_comment,
    decide_edited_issue,
    decide_labeled,
    decide_new_issue,
    decide_open_issue_comment,
    needs_title_translation,
    select_comment_route,
    select_reevaluation_variant,
    should_screen_edit,
    translated_title_action,
)
from src.triage.decision.labels import IssueLabel

__all__ = [
    "ActionKind",
    "AddLabels",
    "CommentRoute",
    "Decision",
    "IntendedAction",
    "IssueLabel",
    "RemoveLabel",
    "SetIssueType",
    "SetState",
    "SetTitle",
    "TransferToRepository",
    "closed_issue_signals",
    "decide_closed_issue_comment",
    "decide_edited_issue",
    "decide_labeled",
    "decide_new_issue",
    "decide_open_issue_comment",
    "needs_title_translation",
    "select_comment_route",
    "select_reevaluation_variant",
    "should_screen_edit",
    "translated_title_action",
]

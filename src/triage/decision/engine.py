"""Decision engine for issue triage.

Pure functions mapping (event, current label/state, classification,
enhanced context, actor role) to a Decision. Nothing here performs I/O:
the dispatcher feeds the inputs in and hands the resulting actions to the
executor.

Flows:
- New issue: spam transfer, or labels + issue type (+ translated title)
- Edited issue: drop "needs reproduction" once a reproduction is provided
- Comment on an open issue: same screening as edits
- Comment on a closed issue: gated reopen after re-evaluation
- Label added: manual spam override
- Issue closed: observability signals only
"""

from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from src.triage.classifier.models import (
    CommentAnalysis,
    Confidence,
    EnhancedAnalysis,
    IssueAnalysis,
    IssueType,
    TRACKED_ISSUE_TYPES,
)
from src.triage.classifier.prompts import PromptVariant
from src.triage.context.models import (
    EnhancedContext,
    has_been_reopened_multiple_times,
    reopen_count,
    was_closed_as_completed,
    was_closed_as_duplicate,
    was_closed_as_not_planned,
)
from src.triage.decision.actions import (
    AddLabels,
    Decision,
    IntendedAction,
    RemoveLabel,
    SetIssueType,
    SetState,
    SetTitle,
    TransferToRepository,
)
from src.triage.decision.labels import IssueLabel
from src.triage.webhook.models import IssueState, is_collaborator_or_higher


class CommentRoute(str, Enum):
    """Which path a new comment takes."""

    SKIP = "skip"
    SCREEN_OPEN = "screen_open"
    REEVALUATE_CLOSED = "reevaluate_closed"


def _spam_transfer(issue_node_id: str, spam_repository_id: str) -> Decision:
    spam_repository_id = spam_repository_id.strip()
    if not spam_repository_id:
        return Decision(reason="spam_transfer_not_configured")
    return Decision(
        actions=[
            TransferToRepository(
                issue_node_id=issue_node_id,
                target_repository_id=spam_repository_id,
            )
        ],
        reason="spam",
    )


def decide_new_issue(
    analysis: IssueAnalysis,
    issue_node_id: str,
    spam_repository_id: str,
) -> Decision:
    """Decide the initial triage of a newly opened issue.

    Spam is transferred away and nothing else happens to it. Otherwise
    all qualifying labels are batched into a single AddLabels and tracked
    issue types are mirrored to the issue-type field. The title
    translation is decided separately (see translated_title_action) so
    that it never gates these actions.

    Args:
        analysis: Basic classification of the issue.
        issue_node_id: Stable node identifier of the issue.
        spam_repository_id: Node id of the spam repository; empty disables
            the transfer.

    Returns:
        Decision with the actions to execute.
    """
    if analysis.issue_type == IssueType.SPAM:
        return _spam_transfer(issue_node_id, spam_repository_id)

    labels: List[str] = []
    if analysis.issue_type == IssueType.BUG:
        if not analysis.reproduction_provided:
            labels.append(IssueLabel.NEEDS_REPRODUCTION.value)
        if analysis.possible_regression:
            labels.append(IssueLabel.POSSIBLE_REGRESSION.value)
    if analysis.relates_to_runtime_subsystem:
        labels.append(IssueLabel.RUNTIME_SUBSYSTEM.value)

    actions: List[IntendedAction] = []
    if labels:
        actions.append(AddLabels(labels=labels))
    if analysis.issue_type in TRACKED_ISSUE_TYPES:
        actions.append(SetIssueType(issue_type=analysis.issue_type.value))

    return Decision(actions=actions, reason=f"new_{analysis.issue_type.value}")


def needs_title_translation(analysis: IssueAnalysis) -> bool:
    """Whether the title of a new issue should be translated to English."""
    return analysis.issue_type != IssueType.SPAM and not analysis.is_english


def translated_title_action(language: str, translated: Optional[str]) -> Optional[SetTitle]:
    """Build the title update for a translated title.

    Returns None when the translation is empty after trimming.
    """
    text = (translated or "").strip()
    if not text:
        return None
    return SetTitle(title=f"[{language}:translated] {text}")


def should_screen_edit(labels: Iterable[str]) -> bool:
    """Edits are only screened while the issue still needs a reproduction."""
    return IssueLabel.NEEDS_REPRODUCTION.value in set(labels)


def decide_edited_issue(labels: Iterable[str], analysis: CommentAnalysis) -> Decision:
    """Drop the reproduction label once the edited body provides one."""
    if not should_screen_edit(labels):
        return Decision(reason="no_reproduction_label")
    if not analysis.reproduction_provided:
        return Decision(reason="no_reproduction_provided")
    return Decision(
        actions=[RemoveLabel(label=IssueLabel.NEEDS_REPRODUCTION.value)],
        reason="reproduction_provided",
    )


def select_comment_route(labels: Iterable[str], state: IssueState) -> CommentRoute:
    if state == IssueState.CLOSED:
        return CommentRoute.REEVALUATE_CLOSED
    if IssueLabel.NEEDS_REPRODUCTION.value in set(labels):
        return CommentRoute.SCREEN_OPEN
    return CommentRoute.SKIP


def decide_open_issue_comment(labels: Iterable[str], analysis: CommentAnalysis) -> Decision:
    """A comment on an open issue is screened exactly like an edit."""
    return decide_edited_issue(labels, analysis)


def select_reevaluation_variant(
    context: EnhancedContext, labels: Iterable[str]
) -> PromptVariant:
    """Pick the re-evaluation instructions from how the issue was closed.

    Duplicates are checked first since a duplicate is usually also closed
    as not planned.
    """
    labels = list(labels)
    if was_closed_as_duplicate(context, labels):
        return PromptVariant.REEVALUATE_DUPLICATE
    if was_closed_as_not_planned(context):
        if has_been_reopened_multiple_times(context):
            return PromptVariant.REEVALUATE_NOT_PLANNED_CONSERVATIVE
        return PromptVariant.REEVALUATE_NOT_PLANNED
    if was_closed_as_completed(context):
        return PromptVariant.REEVALUATE_COMPLETED
    return PromptVariant.REEVALUATE_CLOSED


def decide_closed_issue_comment(
    context: EnhancedContext,
    labels: Iterable[str],
    analysis: EnhancedAnalysis,
    actor_association: Any,
) -> Decision:
    """Decide whether a comment on a closed issue reopens it.

    Branch (a), a reproduction supplied for an issue labelled "needs
    reproduction", takes priority over branch (b), a regression or reopen
    recommendation. The reopen itself is never emitted for an actor with
    collaborator-or-higher role, nor for a duplicate that the classifier
    did not find clearly different.

    Args:
        context: Freshly gathered enhanced context.
        labels: Current label names of the issue.
        analysis: Enhanced classification of the comment.
        actor_association: Author association of the commenting user.

    Returns:
        Decision with the actions to execute.
    """
    labels = list(labels)
    has_reproduction_label = IssueLabel.NEEDS_REPRODUCTION.value in labels
    actor_can_reopen = is_collaborator_or_higher(actor_association)
    blocked_as_duplicate = (
        was_closed_as_duplicate(context, labels)
        and not analysis.is_different_from_duplicate
    )

    if has_reproduction_label and analysis.reproduction_provided:
        actions: List[IntendedAction] = [
            RemoveLabel(label=IssueLabel.NEEDS_REPRODUCTION.value)
        ]
        if actor_can_reopen:
            return Decision(actions=actions, reason="reproduction_provided_by_maintainer")
        if blocked_as_duplicate:
            return Decision(actions=actions, reason="reproduction_provided_for_duplicate")
        actions.append(SetState(state=IssueState.OPEN))
        return Decision(actions=actions, reason="reproduction_provided")

    if not (analysis.possible_regression or analysis.should_reopen):
        return Decision(reason="no_reopen_signal")
    if blocked_as_duplicate:
        return Decision(reason="duplicate_not_different")
    if actor_can_reopen:
        return Decision(reason="actor_can_reopen")
    if analysis.confidence != Confidence.HIGH and not analysis.possible_regression:
        return Decision(reason="low_confidence")

    reopen_labels = [IssueLabel.PENDING_TRIAGE.value]
    if analysis.possible_regression:
        reopen_labels.append(IssueLabel.POSSIBLE_REGRESSION.value)
    return Decision(
        actions=[SetState(state=IssueState.OPEN), AddLabels(labels=reopen_labels)],
        reason="possible_regression" if analysis.possible_regression else "should_reopen",
    )


def decide_labeled(
    label_name: str, issue_node_id: str, spam_repository_id: str
) -> Decision:
    """Manual moderation override: the exact "spam" label transfers the issue."""
    if label_name != IssueLabel.SPAM.value:
        return Decision(reason="label_not_spam")
    return _spam_transfer(issue_node_id, spam_repository_id)


def closed_issue_signals(
    context: EnhancedContext, labels: Iterable[str]
) -> Dict[str, Any]:
    """Derived signals recorded when an issue is closed."""
    labels = sorted(set(labels))
    return {
        "reopen_count": reopen_count(context),
        "comment_count": len(context.recent_comments),
        "labels": labels,
        "closed_as_duplicate": was_closed_as_duplicate(context, labels),
        "closed_as_not_planned": was_closed_as_not_planned(context),
        "closed_as_completed": was_closed_as_completed(context),
    }

"""Unit tests for the decision engine flows."""

import pytest

from src.triage.classifier.models import Confidence
from src.triage.classifier.prompts import PromptVariant
from src.triage.decision import (
    AddLabels,
    CommentRoute,
    Decision,
    RemoveLabel,
    SetIssueType,
    SetState,
    SetTitle,
    TransferToRepository,
    closed_issue_signals,
    decide_closed_issue_comment,
    decide_edited_issue,
    decide_labeled,
    decide_new_issue,
    decide_open_issue_comment,
    needs_title_translation,
    select_comment_route,
    select_reevaluation_variant,
    translated_title_action,
)
from src.triage.webhook.models import CloseReason, IssueState
from tests.triage.factories import (
    make_comment_analysis,
    make_context,
    make_enhanced_analysis,
    make_issue_analysis,
)


NEEDS_REPRODUCTION = "needs reproduction"
REOPEN = SetState(state=IssueState.OPEN)


class TestNewIssue:
    def test_bug_without_reproduction(self):
        analysis = make_issue_analysis(issueType="bug", reproductionProvided=False)
        decision = decide_new_issue(analysis, "I_1", "R_spam")
        assert decision.actions == [
            AddLabels(labels=[NEEDS_REPRODUCTION]),
            SetIssueType(issue_type="bug"),
        ]
        assert not needs_title_translation(analysis)

    def test_bug_with_reproduction_and_regression(self):
        analysis = make_issue_analysis(
            reproductionProvided=True, possibleRegression=True, relatesToRuntimeSubsystem=True
        )
        decision = decide_new_issue(analysis, "I_1", "R_spam")
        assert decision.actions == [
            AddLabels(labels=["possible regression", "nitro"]),
            SetIssueType(issue_type="bug"),
        ]

    def test_all_bug_labels_batched(self):
        analysis = make_issue_analysis(possibleRegression=True)
        decision = decide_new_issue(analysis, "I_1", "R_spam")
        assert decision.actions[0] == AddLabels(
            labels=[NEEDS_REPRODUCTION, "possible regression"]
        )

    def test_feature_request_ignores_bug_signals(self):
        analysis = make_issue_analysis(issueType="feature", possibleRegression=True)
        decision = decide_new_issue(analysis, "I_1", "R_spam")
        assert decision.actions == [SetIssueType(issue_type="feature")]

    def test_documentation_sets_type(self):
        decision = decide_new_issue(make_issue_analysis(issueType="documentation"), "I_1", "")
        assert decision.actions == [SetIssueType(issue_type="documentation")]

    @pytest.mark.parametrize("issue_type", ["chore", "help-wanted"])
    def test_untracked_types_take_no_action(self, issue_type):
        decision = decide_new_issue(make_issue_analysis(issueType=issue_type), "I_1", "R")
        assert decision.is_noop

    def test_runtime_label_for_non_bug(self):
        analysis = make_issue_analysis(issueType="help-wanted", relatesToRuntimeSubsystem=True)
        decision = decide_new_issue(analysis, "I_1", "R")
        assert decision.actions == [AddLabels(labels=["nitro"])]

    def test_spam(self):
        analysis = make_issue_analysis(issueType="spam", spokenLanguage="fr")
        decision = decide_new_issue(analysis, "I_1", "R_spam")
        assert decision.actions == [
            TransferToRepository(issue_node_id="I_1", target_repository_id="R_spam")
        ]
        assert not needs_title_translation(analysis)

    def test_spam_without_configured_repository(self):
        decision = decide_new_issue(make_issue_analysis(issueType="spam"), "I_1", "")
        assert decision.is_noop
        assert decision.reason == "spam_transfer_not_configured"

    def test_blank_spam_repository_is_not_configured(self):
        decision = decide_new_issue(make_issue_analysis(issueType="spam"), "I_1", "  ")
        assert decision.is_noop
        assert decision.reason == "spam_transfer_not_configured"

    def test_non_english_needs_translation(self):
        assert needs_title_translation(make_issue_analysis(spokenLanguage="zh"))


class TestTranslatedTitle:
    def test_prefixes_language(self):
        assert translated_title_action("fr", "  Build fails ") == SetTitle(
            title="[fr:translated] Build fails"
        )

    @pytest.mark.parametrize("translated", ["", "   ", None])
    def test_empty_translation(self, translated):
        assert translated_title_action("fr", translated) is None


class TestEditedIssue:
    def test_reproduction_removes_label(self):
        decision = decide_edited_issue(
            [NEEDS_REPRODUCTION, "bug"], make_comment_analysis(reproductionProvided=True)
        )
        assert decision.actions == [RemoveLabel(label=NEEDS_REPRODUCTION)]

    def test_no_reproduction(self):
        decision = decide_edited_issue(
            [NEEDS_REPRODUCTION], make_comment_analysis(possibleRegression=True)
        )
        assert decision.is_noop

    def test_without_label(self):
        decision = decide_edited_issue(["bug"], make_comment_analysis(reproductionProvided=True))
        assert decision.is_noop
        assert decision.reason == "no_reproduction_label"

    def test_open_comment_matches_edit(self):
        analysis = make_comment_analysis(reproductionProvided=True)
        assert decide_open_issue_comment([NEEDS_REPRODUCTION], analysis) == decide_edited_issue(
            [NEEDS_REPRODUCTION], analysis
        )


class TestCommentRoute:
    def test_closed_issue_is_reevaluated(self):
        assert select_comment_route([], IssueState.CLOSED) == CommentRoute.REEVALUATE_CLOSED

    def test_open_with_label_is_screened(self):
        route = select_comment_route([NEEDS_REPRODUCTION], IssueState.OPEN)
        assert route == CommentRoute.SCREEN_OPEN

    def test_open_without_label_is_skipped(self):
        assert select_comment_route(["bug"], IssueState.OPEN) == CommentRoute.SKIP


class TestReevaluationVariant:
    def test_duplicate_first(self):
        context = make_context(reason=CloseReason.NOT_PLANNED, reopened=3)
        variant = select_reevaluation_variant(context, ["duplicate"])
        assert variant == PromptVariant.REEVALUATE_DUPLICATE

    def test_not_planned(self):
        context = make_context(reason=CloseReason.NOT_PLANNED, reopened=1)
        assert select_reevaluation_variant(context, []) == PromptVariant.REEVALUATE_NOT_PLANNED

    def test_not_planned_reopened_multiple_times(self):
        context = make_context(reason=CloseReason.NOT_PLANNED, reopened=2)
        variant = select_reevaluation_variant(context, [])
        assert variant == PromptVariant.REEVALUATE_NOT_PLANNED_CONSERVATIVE

    def test_completed(self):
        context = make_context(reason=CloseReason.COMPLETED)
        assert select_reevaluation_variant(context, []) == PromptVariant.REEVALUATE_COMPLETED

    def test_no_reason(self):
        context = make_context(reason=None)
        assert select_reevaluation_variant(context, []) == PromptVariant.REEVALUATE_CLOSED


class TestClosedIssueComment:
    def test_reproduction_reopens_regardless_of_confidence(self):
        decision = decide_closed_issue_comment(
            make_context(),
            [NEEDS_REPRODUCTION],
            make_enhanced_analysis(reproductionProvided=True, confidence="low"),
            "NONE",
        )
        assert decision.actions == [RemoveLabel(label=NEEDS_REPRODUCTION), REOPEN]

    def test_reproduction_by_maintainer_does_not_reopen(self):
        decision = decide_closed_issue_comment(
            make_context(),
            [NEEDS_REPRODUCTION],
            make_enhanced_analysis(reproductionProvided=True),
            "MEMBER",
        )
        assert decision.actions == [RemoveLabel(label=NEEDS_REPRODUCTION)]

    def test_reproduction_on_duplicate_does_not_reopen(self):
        decision = decide_closed_issue_comment(
            make_context(comments=["Duplicate of #1"]),
            [NEEDS_REPRODUCTION],
            make_enhanced_analysis(reproductionProvided=True, possibleRegression=True),
            "NONE",
        )
        assert decision.actions == [RemoveLabel(label=NEEDS_REPRODUCTION)]

    def test_reproduction_without_label_falls_through(self):
        # Closed as completed, no "needs reproduction" label, no reopen signal
        decision = decide_closed_issue_comment(
            make_context(reason=CloseReason.COMPLETED),
            [],
            make_enhanced_analysis(
                reproductionProvided=True, possibleRegression=False, shouldReopen=False
            ),
            "NONE",
        )
        assert decision.is_noop
        assert decision.reason == "no_reopen_signal"

    def test_regression_reopens_without_high_confidence(self):
        decision = decide_closed_issue_comment(
            make_context(),
            [],
            make_enhanced_analysis(possibleRegression=True, confidence="low"),
            "CONTRIBUTOR",
        )
        assert decision.actions == [
            REOPEN,
            AddLabels(labels=["pending triage", "possible regression"]),
        ]

    def test_should_reopen_needs_high_confidence(self):
        analysis = make_enhanced_analysis(shouldReopen=True, confidence="medium")
        decision = decide_closed_issue_comment(make_context(), [], analysis, "NONE")
        assert decision.is_noop
        assert decision.reason == "low_confidence"

        analysis = make_enhanced_analysis(shouldReopen=True, confidence="high")
        decision = decide_closed_issue_comment(make_context(), [], analysis, "NONE")
        assert decision.actions == [REOPEN, AddLabels(labels=["pending triage"])]

    def test_collaborator_is_not_raced(self):
        analysis = make_enhanced_analysis(possibleRegression=True, confidence="high")
        decision = decide_closed_issue_comment(make_context(), [], analysis, "OWNER")
        assert decision.is_noop
        assert decision.reason == "actor_can_reopen"

    def test_duplicate_requires_clear_difference(self):
        context = make_context(reason=CloseReason.NOT_PLANNED)
        analysis = make_enhanced_analysis(possibleRegression=True, confidence="high")
        decision = decide_closed_issue_comment(context, ["duplicate"], analysis, "NONE")
        assert decision.is_noop
        assert decision.reason == "duplicate_not_different"

        analysis = make_enhanced_analysis(
            shouldReopen=True, isDifferentFromDuplicate=True, confidence=Confidence.HIGH.value
        )
        decision = decide_closed_issue_comment(context, ["duplicate"], analysis, "NONE")
        assert REOPEN in decision.actions


class TestLabeled:
    def test_spam_label_transfers(self):
        decision = decide_labeled("spam", "I_42", "R_spam")
        assert decision.actions == [
            TransferToRepository(issue_node_id="I_42", target_repository_id="R_spam")
        ]

    @pytest.mark.parametrize("label", ["Spam", "spammy", "bug", ""])
    def test_other_labels(self, label):
        assert decide_labeled(label, "I_42", "R_spam").is_noop


class TestClosedSignals:
    def test_signals(self):
        context = make_context(
            reason=CloseReason.NOT_PLANNED, comments=["dup? duplicate"], reopened=2
        )
        signals = closed_issue_signals(context, ["bug", "bug"])
        assert signals == {
            "reopen_count": 2,
            "comment_count": 1,
            "labels": ["bug"],
            "closed_as_duplicate": True,
            "closed_as_not_planned": True,
            "closed_as_completed": False,
        }


def test_decision_describe():
    decision = Decision(
        actions=[AddLabels(labels=["a", "b"]), REOPEN], reason="x"
    )
    assert decision.describe() == ["add_labels(a, b)", "set_state(open)"]

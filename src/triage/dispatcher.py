"""Triage dispatcher connecting all stages of a triage pass.

Routes a parsed webhook event to exactly one flow:
normalizer → (context gatherer) → classifier → decision engine.

The dispatcher decides but does not wait for the tracker: execute()
hands the resulting actions to the ActionExecutor and the caller chooses
whether to await it or to run it after the response is sent.

Every collaborator is injected; nothing here is a process-wide singleton.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from src.triage.classifier.agent import (
    ClassificationError,
    IssueClassifier,
    expect_comment_analysis,
    expect_enhanced_analysis,
    expect_issue_analysis,
)
from src.triage.classifier.models import AnalysisResult
from src.triage.classifier.translation import TitleTranslator, TranslationError
from src.triage.context.gatherer import ContextGatherer
from src.triage.context.models import GatherOptions, build_enhanced_prompt_content
from src.triage.decision.actions import Decision, IntendedAction
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
from src.triage.events.emitter import EventEmitter
from src.triage.events.models import EventType, TriageEvent
from src.triage.executor import ActionExecutor, ActionOutcome, is_detachable
from src.triage.normalization import normalize_content
from src.triage.webhook.models import EventKind, IssueWebhookEvent

logger = logging.getLogger(__name__)

# Diagnostic header values are capped to keep responses small
MAX_HEADER_LENGTH = 1024

FLOW_HEADER = "X-Triage-Flow"
ACTIONS_HEADER = "X-Triage-Actions"
ANALYSIS_HEADER = "X-Triage-Analysis"
RAW_RESPONSE_HEADER = "X-Triage-Raw-Response"


@dataclass
class TriageResult:
    """Outcome of routing and deciding one delivery.

    Attributes:
        flow: The event kind that selected the flow.
        decision: The decision engine's output.
        skipped: True when the delivery was short-circuited before any
            classifier call.
        analysis: The validated classification, if the flow classified.
        raw_response: The classifier's raw answer text, if any.
        signals: Derived observability signals (issue closed flow).
    """

    flow: EventKind
    decision: Decision
    skipped: bool = False
    analysis: Optional[AnalysisResult] = None
    raw_response: Optional[str] = None
    signals: Dict[str, Any] = field(default_factory=dict)

    @property
    def actions(self) -> List[IntendedAction]:
        return list(self.decision.actions)

    @property
    def detached(self) -> bool:
        """Whether execution may continue after the response is sent."""
        return is_detachable(self.decision.actions)

    def diagnostic_headers(self) -> Dict[str, str]:
        """Machine-readable summary of the pass, for response headers only."""
        headers = {
            FLOW_HEADER: self.flow.value,
            ACTIONS_HEADER: _header_value(self.decision.describe()),
        }
        if self.analysis is not None:
            headers[ANALYSIS_HEADER] = _header_value(self.analysis.to_dict())
        if self.raw_response is not None:
            headers[RAW_RESPONSE_HEADER] = _header_value(self.raw_response)
        return headers


def _header_value(value: Any) -> str:
    # ensure_ascii keeps header values latin-1 safe and single-line
    return json.dumps(value, ensure_ascii=True)[:MAX_HEADER_LENGTH]


class TriageDispatcher:
    """Routes webhook events through classification and decision.

    Attributes:
        classifier: LLM-based classifier adapter.
        translator: Title translator for non-English issues.
        gatherer: Context gatherer for closed-issue re-evaluation.
        executor: Applies the decided actions.
        event_emitter: Emits triage events for observability.
        spam_repository_id: Node id of the spam repository ("" disables).
        gather_options: Limits for context gathering.
    """

    def __init__(
        self,
        classifier: IssueClassifier,
        translator: TitleTranslator,
        gatherer: ContextGatherer,
        executor: ActionExecutor,
        event_emitter: EventEmitter,
        spam_repository_id: str = "",
        gather_options: Optional[GatherOptions] = None,
    ):
        self.classifier = classifier
        self.translator = translator
        self.gatherer = gatherer
        self.executor = executor
        self.event_emitter = event_emitter
        self.spam_repository_id = spam_repository_id
        self.gather_options = gather_options or GatherOptions()
        self._flows = {
            EventKind.ISSUE_OPENED: self._on_issue_opened,
            EventKind.ISSUE_EDITED: self._on_issue_edited,
            EventKind.ISSUE_CLOSED: self._on_issue_closed,
            EventKind.ISSUE_LABELED: self._on_issue_labeled,
            EventKind.COMMENT_CREATED: self._on_comment_created,
        }

    async def dispatch(self, event: IssueWebhookEvent) -> TriageResult:
        """Route one event and decide its actions.

        Args:
            event: Parsed webhook event.

        Returns:
            TriageResult describing the decision. No action has been
            executed yet.

        Raises:
            ClassificationError: If the classifier call or its answer is
                unusable. No actions are decided in that case.
        """
        started = time.monotonic()
        logger.info(
            "Dispatching triage event",
            extra={"issue_id": event.issue_id, "flow": event.kind.value},
        )

        try:
            result = await self._flows[event.kind](event)
        except ClassificationError as exc:
            logger.exception(
                "Classification failed",
                extra={"issue_id": event.issue_id, "flow": event.kind.value},
            )
            await self._emit(
                event,
                EventType.ERROR,
                {
                    "flow": event.kind.value,
                    "stage": "classification",
                    "error_message": exc.message,
                    "error_type": type(exc).__name__,
                },
            )
            raise

        details = {
            "flow": result.flow.value,
            "reason": result.decision.reason,
            "actions": result.decision.describe(),
            "duration_seconds": round(time.monotonic() - started, 3),
        }
        if result.signals:
            details["signals"] = result.signals
        await self._emit(
            event,
            EventType.SKIPPED if result.skipped else EventType.DECISION,
            details,
        )
        return result

    async def execute(
        self, event: IssueWebhookEvent, result: TriageResult
    ) -> List[ActionOutcome]:
        """Apply the decided actions; outcomes are collected, not raised."""
        return await self.executor.execute(event.ref, result.actions)

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    async def _on_issue_opened(self, event: IssueWebhookEvent) -> TriageResult:
        skipped = self._skip_issue(event)
        if skipped is not None:
            return skipped

        issue = event.issue
        reply = await self.classifier.classify_issue(
            issue.title, normalize_content(issue.body)
        )
        analysis = expect_issue_analysis(reply)
        decision = decide_new_issue(analysis, issue.node_id, self.spam_repository_id)

        if needs_title_translation(analysis):
            title_action = await self._translate_title(event, analysis.spoken_language)
            if title_action is not None:
                decision = Decision(
                    actions=[*decision.actions, title_action],
                    reason=decision.reason,
                )

        return TriageResult(
            flow=event.kind,
            decision=decision,
            analysis=analysis,
            raw_response=reply.raw_response,
        )

    async def _on_issue_edited(self, event: IssueWebhookEvent) -> TriageResult:
        skipped = self._skip_issue(event)
        if skipped is not None:
            return skipped

        labels = event.issue.label_names
        if not should_screen_edit(labels):
            return self._skip(event, "no_reproduction_label")

        reply = await self.classifier.screen_comment(normalize_content(event.issue.body))
        analysis = expect_comment_analysis(reply)
        return TriageResult(
            flow=event.kind,
            decision=decide_edited_issue(labels, analysis),
            analysis=analysis,
            raw_response=reply.raw_response,
        )

    async def _on_comment_created(self, event: IssueWebhookEvent) -> TriageResult:
        comment = event.comment
        if comment is None:
            return self._skip(event, "missing_comment")
        if comment.user.is_bot:
            return self._skip(event, "bot_author")
        if event.issue.is_pull_request:
            return self._skip(event, "pull_request")

        labels = event.issue.label_names
        route = select_comment_route(labels, event.issue.state)

        if route == CommentRoute.SKIP:
            return self._skip(event, "nothing_to_reevaluate")

        if route == CommentRoute.SCREEN_OPEN:
            reply = await self.classifier.screen_comment(normalize_content(comment.body))
            analysis = expect_comment_analysis(reply)
            return TriageResult(
                flow=event.kind,
                decision=decide_open_issue_comment(labels, analysis),
                analysis=analysis,
                raw_response=reply.raw_response,
            )

        context = await self.gatherer.gather(event.ref, event.issue, self.gather_options)
        variant = select_reevaluation_variant(context, labels)
        reply = await self.classifier.reevaluate_closed_issue(
            variant,
            event.issue.title,
            normalize_content(comment.body),
            build_enhanced_prompt_content(context, include_timeline=True),
        )
        analysis = expect_enhanced_analysis(reply)
        decision = decide_closed_issue_comment(
            context, labels, analysis, comment.author_association
        )

        logger.info(
            "Closed issue re-evaluated",
            extra={
                "issue_id": event.issue_id,
                "variant": variant.value,
                "reason": decision.reason,
            },
        )
        return TriageResult(
            flow=event.kind,
            decision=decision,
            analysis=analysis,
            raw_response=reply.raw_response,
        )

    async def _on_issue_labeled(self, event: IssueWebhookEvent) -> TriageResult:
        skipped = self._skip_issue(event, skip_bots=False)
        if skipped is not None:
            return skipped
        if event.label is None:
            return self._skip(event, "missing_label")

        decision = decide_labeled(
            event.label.name, event.issue.node_id, self.spam_repository_id
        )
        if decision.reason == "spam_transfer_not_configured":
            logger.warning(
                "Spam label added but no spam repository is configured",
                extra={"issue_id": event.issue_id},
            )
        return TriageResult(flow=event.kind, decision=decision)

    async def _on_issue_closed(self, event: IssueWebhookEvent) -> TriageResult:
        skipped = self._skip_issue(event, skip_bots=False)
        if skipped is not None:
            return skipped

        labels = event.issue.label_names
        context = await self.gatherer.gather(event.ref, event.issue, self.gather_options)
        signals = closed_issue_signals(context, labels)

        logger.info(
            "Issue closed",
            extra={"issue_id": event.issue_id, "signals": signals},
        )
        return TriageResult(
            flow=event.kind,
            decision=Decision(reason="closed_observed"),
            signals=signals,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _skip_issue(
        self, event: IssueWebhookEvent, skip_bots: bool = True
    ) -> Optional[TriageResult]:
        if event.issue.is_pull_request:
            return self._skip(event, "pull_request")
        if skip_bots and event.issue.user.is_bot:
            return self._skip(event, "bot_author")
        return None

    def _skip(self, event: IssueWebhookEvent, reason: str) -> TriageResult:
        logger.debug(
            "Skipping triage event",
            extra={"issue_id": event.issue_id, "flow": event.kind.value, "reason": reason},
        )
        return TriageResult(
            flow=event.kind,
            decision=Decision(reason=reason),
            skipped=True,
        )

    async def _translate_title(self, event: IssueWebhookEvent, language: str):
        """Translate the issue title; failures are soft and yield None."""
        try:
            translated = await self.translator.translate(event.issue.title, language, "en")
        except TranslationError as exc:
            logger.warning(
                "Title translation failed, continuing without it",
                extra={
                    "issue_id": event.issue_id,
                    "language": language,
                    "error": exc.message,
                },
            )
            await self._emit(
                event,
                EventType.ERROR,
                {
                    "flow": event.kind.value,
                    "stage": "translation",
                    "error_message": exc.message,
                    "error_type": type(exc).__name__,
                },
            )
            return None
        return translated_title_action(language, translated)

    async def _emit(
        self, event: IssueWebhookEvent, event_type: EventType, details: Dict[str, Any]
    ) -> None:
        """Emit an event, swallowing exceptions to avoid disrupting the pass."""
        triage_event = TriageEvent(
            event_type=event_type,
            issue_id=event.issue_id,
            repository=event.full_repository,
            details=details,
        )
        try:
            await self.event_emitter.emit(triage_event)
        except Exception:
            logger.exception(
                "Failed to emit triage event",
                extra={"event_type": event_type.value, "issue_id": event.issue_id},
            )

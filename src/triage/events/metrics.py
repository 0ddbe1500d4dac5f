"""Prometheus metrics for triage observability.

Metrics are exposed at the `/metrics` endpoint in Prometheus format.

Metrics Defined:
- triage_decisions_total: Decisions taken, by flow and reason
- triage_skipped_total: Short-circuited deliveries, by flow and reason
- triage_actions_total: Executed actions, by kind and outcome
- triage_failures_total: Failed passes, by stage
- triage_pass_duration_seconds: Time from delivery to decision

The MetricsEventEmitter updates these from TriageEvents.
"""

import logging
from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from src.triage.events.emitter import EventEmitter
from src.triage.events.models import EventType, TriageEvent


logger = logging.getLogger(__name__)


# A pass is one classifier call plus a handful of API calls
DEFAULT_DURATION_BUCKETS = (
    0.1,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
    60.0,
)


class TriageMetrics:
    """Container for all triage Prometheus metrics.

    Supports custom registries for testing.

    Attributes:
        registry: The Prometheus registry for these metrics.
        decisions_total: Counter of decisions, labels flow and reason.
        skipped_total: Counter of skipped deliveries, labels flow and reason.
        actions_total: Counter of actions, labels kind and outcome.
        failures_total: Counter of failed passes, label stage.
        pass_duration_seconds: Histogram of pass duration, label flow.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or REGISTRY

        self.decisions_total = Counter(
            "triage_decisions_total",
            "Total number of triage decisions",
            labelnames=["flow", "reason"],
            registry=self.registry,
        )

        self.skipped_total = Counter(
            "triage_skipped_total",
            "Total number of deliveries that required no triage",
            labelnames=["flow", "reason"],
            registry=self.registry,
        )

        self.actions_total = Counter(
            "triage_actions_total",
            "Total number of intended actions executed against the tracker",
            labelnames=["kind", "outcome"],
            registry=self.registry,
        )

        self.failures_total = Counter(
            "triage_failures_total",
            "Total number of triage passes that failed",
            labelnames=["stage"],
            registry=self.registry,
        )

        self.pass_duration_seconds = Histogram(
            "triage_pass_duration_seconds",
            "Time spent deciding a triage pass in seconds",
            labelnames=["flow"],
            buckets=DEFAULT_DURATION_BUCKETS,
            registry=self.registry,
        )

    def record_decision(self, flow: str, reason: str) -> None:
        self.decisions_total.labels(flow=flow, reason=reason).inc()

    def record_skipped(self, flow: str, reason: str) -> None:
        self.skipped_total.labels(flow=flow, reason=reason).inc()

    def record_action(self, kind: str, success: bool) -> None:
        outcome = "settled" if success else "rejected"
        self.actions_total.labels(kind=kind, outcome=outcome).inc()

    def record_failure(self, stage: str) -> None:
        self.failures_total.labels(stage=stage).inc()

    def record_pass_duration(self, flow: str, duration_seconds: float) -> None:
        self.pass_duration_seconds.labels(flow=flow).observe(duration_seconds)


# Global metrics instance for the default registry
_default_metrics: Optional[TriageMetrics] = None


def get_metrics(registry: Optional[CollectorRegistry] = None) -> TriageMetrics:
    """Get the global metrics instance, or a new one for a custom registry."""
    global _default_metrics

    if registry is not None:
        return TriageMetrics(registry=registry)

    if _default_metrics is None:
        _default_metrics = TriageMetrics()

    return _default_metrics


def generate_metrics_output(registry: Optional[CollectorRegistry] = None) -> bytes:
    """Generate Prometheus text output for the /metrics endpoint."""
    return generate_latest(registry or REGISTRY)


class MetricsEventEmitter(EventEmitter):
    """Event emitter that updates Prometheus metrics.

    - DECISION: decisions_total, pass duration when reported
    - SKIPPED: skipped_total
    - ACTION_SETTLED / ACTION_FAILED: actions_total
    - ERROR: failures_total by stage

    Attributes:
        metrics: The TriageMetrics instance to update.
    """

    def __init__(
        self,
        metrics: Optional[TriageMetrics] = None,
        registry: Optional[CollectorRegistry] = None,
    ):
        self._metrics = metrics if metrics is not None else get_metrics(registry)

    @property
    def metrics(self) -> TriageMetrics:
        return self._metrics

    async def emit(self, event: TriageEvent) -> None:
        details = event.details
        flow = str(details.get("flow", "unknown"))
        try:
            if event.event_type == EventType.DECISION:
                self._metrics.record_decision(flow, str(details.get("reason", "unknown")))
                duration = details.get("duration_seconds")
                if duration is not None:
                    self._metrics.record_pass_duration(flow, float(duration))
            elif event.event_type == EventType.SKIPPED:
                self._metrics.record_skipped(flow, str(details.get("reason", "unknown")))
            elif event.event_type == EventType.ACTION_SETTLED:
                self._metrics.record_action(str(details.get("action_kind", "unknown")), True)
            elif event.event_type == EventType.ACTION_FAILED:
                self._metrics.record_action(str(details.get("action_kind", "unknown")), False)
            elif event.event_type == EventType.ERROR:
                self._metrics.record_failure(str(details.get("stage", "unknown")))
        except Exception as e:
            logger.error(
                "Failed to update metrics for event %s: %s",
                event.event_type.value,
                str(e),
                extra={"event_type": event.event_type.value, "issue_id": event.issue_id},
            )

"""Triage event emission and metrics.

Event Emitters:
- EventEmitter: Abstract base class for event emission
- LoggingEventEmitter: Emits events as structured log entries
- CompositeEventEmitter: Emits to multiple sinks simultaneously
- MetricsEventEmitter: Emits events as Prometheus metrics
- NullEventEmitter: Discards events (for testing)

Metrics:
- TriageMetrics: Container for all Prometheus metrics
- get_metrics: Get or create the metrics instance
- generate_metrics_output: Prometheus format output for /metrics
"""

from src.triage.events.emitter import (
    CompositeEventEmitter,
    EventEmitter,
    EventSinkType,
    LoggingEventEmitter,
    NullEventEmitter,
    create_event_emitter,
)
from src.triage.events.metrics import (
    MetricsEventEmitter,
    TriageMetrics,
    generate_metrics_output,
    get_metrics,
)
from src.triage.events.models import EventType, TriageEvent

__all__ = [
    # Event models
    "EventType",
    "TriageEvent",
    # Event emitters
    "EventEmitter",
    "LoggingEventEmitter",
    "CompositeEventEmitter",
    "MetricsEventEmitter",
    "NullEventEmitter",
    # Metrics
    "TriageMetrics",
    "get_metrics",
    "generate_metrics_output",
    # Factory
    "create_event_emitter",
    "EventSinkType",
]

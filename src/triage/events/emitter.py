"""Event emitter implementations for triage observability.

Sinks: the log (LoggingEventEmitter), Prometheus (MetricsEventEmitter,
see metrics.py), several at once (CompositeEventEmitter) or nowhere
(NullEventEmitter, used by tests).

Emitters must never fail a triage pass: errors raised by a sink are
logged and contained.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional

from src.triage.events.models import EventType, TriageEvent


logger = logging.getLogger(__name__)


class EventSinkType(str, Enum):
    """Types of event sinks.

    Attributes:
        LOGGING: Emit events as structured log entries.
        METRICS: Emit events as Prometheus metrics.
    """

    LOGGING = "logging"
    METRICS = "metrics"


class EventEmitter(ABC):
    """Abstract base class for triage event emitters.

    emit() runs inside the request's event loop and must not raise into
    the triage pass.
    """

    @abstractmethod
    async def emit(self, event: TriageEvent) -> None:
        """Emit a triage event.

        Args:
            event: The event to emit.
        """

    async def close(self) -> None:
        """Release resources held by the emitter. No-op by default."""


class LoggingEventEmitter(EventEmitter):
    """Event emitter that writes events as structured log entries.

    Log levels by event type:
    - DECISION, ACTION_SETTLED: INFO
    - SKIPPED: DEBUG
    - ACTION_FAILED: WARNING
    - ERROR: ERROR

    The flattened event is attached under the "triage_event" extra key so
    that detail names cannot collide with LogRecord attributes.
    """

    def __init__(self, logger_name: Optional[str] = None):
        self._logger = logging.getLogger(logger_name) if logger_name else logger
        self._log_level_map = {
            EventType.DECISION: logging.INFO,
            EventType.SKIPPED: logging.DEBUG,
            EventType.ACTION_SETTLED: logging.INFO,
            EventType.ACTION_FAILED: logging.WARNING,
            EventType.ERROR: logging.ERROR,
        }

    async def emit(self, event: TriageEvent) -> None:
        log_level = self._log_level_map.get(event.event_type, logging.INFO)
        self._logger.log(
            log_level,
            "Triage event: %s for %s",
            event.event_type.value,
            event.issue_id,
            extra={"triage_event": event.to_log_dict()},
        )


class CompositeEventEmitter(EventEmitter):
    """Fans one event out to several sinks.

    Sinks are awaited together and joined with settled semantics, the same
    way the executor joins actions: a sink that raises is reported and the
    others are unaffected.
    """

    def __init__(self, emitters: Optional[List[EventEmitter]] = None):
        self._emitters: List[EventEmitter] = list(emitters or [])

    async def emit(self, event: TriageEvent) -> None:
        results = await asyncio.gather(
            *(emitter.emit(event) for emitter in self._emitters),
            return_exceptions=True,
        )
        for emitter, result in zip(self._emitters, results):
            if isinstance(result, Exception):
                logger.error(
                    "Event sink %s rejected %s event",
                    type(emitter).__name__,
                    event.event_type.value,
                    extra={"issue_id": event.issue_id, "error": str(result)},
                )

    async def close(self) -> None:
        results = await asyncio.gather(
            *(emitter.close() for emitter in self._emitters),
            return_exceptions=True,
        )
        for emitter, result in zip(self._emitters, results):
            if isinstance(result, Exception):
                logger.error("Event sink %s failed to close: %s", type(emitter).__name__, result)


class NullEventEmitter(EventEmitter):
    """Event emitter that discards all events."""

    async def emit(self, event: TriageEvent) -> None:
        pass


def create_event_emitter(
    sink_types: Optional[List[EventSinkType]] = None,
    logger_name: Optional[str] = None,
) -> EventEmitter:
    """Create an emitter for the requested sinks.

    Args:
        sink_types: Sinks to enable. Defaults to logging only.
        logger_name: Optional logger name for the LoggingEventEmitter.

    Returns:
        A single emitter, or a CompositeEventEmitter for several sinks.

    Example:
        >>> emitter = create_event_emitter([EventSinkType.LOGGING, EventSinkType.METRICS])
        >>> isinstance(emitter, CompositeEventEmitter)
        True
    """
    if not sink_types:
        return LoggingEventEmitter(logger_name=logger_name)

    emitters: List[EventEmitter] = []
    for sink_type in sink_types:
        if sink_type == EventSinkType.LOGGING:
            emitters.append(LoggingEventEmitter(logger_name=logger_name))
        elif sink_type == EventSinkType.METRICS:
            # Deferred import: metrics.py imports EventEmitter from here
            from src.triage.events.metrics import MetricsEventEmitter

            emitters.append(MetricsEventEmitter())
        else:
            logger.warning("Unknown event sink type: %s, skipping", sink_type)

    if not emitters:
        return LoggingEventEmitter(logger_name=logger_name)
    if len(emitters) == 1:
        return emitters[0]
    return CompositeEventEmitter(emitters)

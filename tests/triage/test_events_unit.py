"""Unit tests for triage events, emitters and Prometheus metrics."""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest
from prometheus_client import CollectorRegistry
from pydantic import ValidationError

from src.triage.events import (
    CompositeEventEmitter,
    EventSinkType,
    EventType,
    LoggingEventEmitter,
    NullEventEmitter,
    TriageEvent,
    create_event_emitter,
)
from src.triage.events.metrics import MetricsEventEmitter, TriageMetrics, generate_metrics_output


def run_async(coro):
    return asyncio.run(coro)


def _event(event_type: EventType = EventType.DECISION, **details) -> TriageEvent:
    return TriageEvent(
        event_type=event_type,
        issue_id="nuxt/nuxt#42",
        repository="nuxt/nuxt",
        details=details,
    )


class TestTriageEvent:
    def test_log_dict_flattens_details(self):
        data = _event(flow="issue_opened", reason="new_bug").to_log_dict()
        assert data["event_type"] == "decision"
        assert data["issue_id"] == "nuxt/nuxt#42"
        assert data["flow"] == "issue_opened"
        assert data["timestamp"].endswith("+00:00")

    def test_requires_issue_id(self):
        with pytest.raises(ValidationError):
            TriageEvent(event_type=EventType.ERROR, issue_id="", repository="nuxt/nuxt")


class TestLoggingEventEmitter:
    def test_levels(self, caplog):
        emitter = LoggingEventEmitter(logger_name="triage.test")
        with caplog.at_level(logging.DEBUG, logger="triage.test"):
            run_async(emitter.emit(_event(EventType.SKIPPED)))
            run_async(emitter.emit(_event(EventType.ACTION_FAILED)))
            run_async(emitter.emit(_event(EventType.ERROR, stage="classification")))

        assert [r.levelno for r in caplog.records] == [
            logging.DEBUG,
            logging.WARNING,
            logging.ERROR,
        ]
        assert caplog.records[-1].triage_event["stage"] == "classification"

    def test_details_cannot_clobber_record_fields(self, caplog):
        emitter = LoggingEventEmitter(logger_name="triage.test")
        with caplog.at_level(logging.INFO, logger="triage.test"):
            run_async(emitter.emit(_event(message="x", name="y")))
        assert caplog.records[0].triage_event["message"] == "x"


class TestCompositeEventEmitter:
    def test_failing_child_does_not_block_others(self):
        failing = AsyncMock()
        failing.emit.side_effect = RuntimeError("sink down")
        healthy = AsyncMock()
        composite = CompositeEventEmitter([failing, healthy])

        run_async(composite.emit(_event()))

        healthy.emit.assert_awaited_once()

    def test_close_closes_children(self):
        children = [AsyncMock(), AsyncMock()]
        run_async(CompositeEventEmitter(children).close())
        for child in children:
            child.close.assert_awaited_once()


class TestFactory:
    def test_default_is_logging(self):
        assert isinstance(create_event_emitter(), LoggingEventEmitter)

    def test_several_sinks(self):
        emitter = create_event_emitter([EventSinkType.LOGGING, EventSinkType.METRICS])
        assert isinstance(emitter, CompositeEventEmitter)
        assert [type(e) for e in emitter._emitters] == [LoggingEventEmitter, MetricsEventEmitter]

    def test_null_emitter(self):
        run_async(NullEventEmitter().emit(_event()))


class TestMetricsEventEmitter:
    @pytest.fixture
    def registry(self):
        return CollectorRegistry()

    @pytest.fixture
    def emitter(self, registry):
        return MetricsEventEmitter(metrics=TriageMetrics(registry=registry))

    def test_decision(self, emitter, registry):
        run_async(
            emitter.emit(_event(flow="issue_opened", reason="new_bug", duration_seconds=0.2))
        )
        value = registry.get_sample_value(
            "triage_decisions_total", {"flow": "issue_opened", "reason": "new_bug"}
        )
        assert value == 1.0
        count = registry.get_sample_value(
            "triage_pass_duration_seconds_count", {"flow": "issue_opened"}
        )
        assert count == 1.0

    def test_skipped(self, emitter, registry):
        run_async(emitter.emit(_event(EventType.SKIPPED, flow="issue_edited", reason="bot_author")))
        value = registry.get_sample_value(
            "triage_skipped_total", {"flow": "issue_edited", "reason": "bot_author"}
        )
        assert value == 1.0

    def test_actions(self, emitter, registry):
        run_async(emitter.emit(_event(EventType.ACTION_SETTLED, action_kind="add_labels")))
        run_async(emitter.emit(_event(EventType.ACTION_FAILED, action_kind="add_labels")))
        settled = registry.get_sample_value(
            "triage_actions_total", {"kind": "add_labels", "outcome": "settled"}
        )
        rejected = registry.get_sample_value(
            "triage_actions_total", {"kind": "add_labels", "outcome": "rejected"}
        )
        assert (settled, rejected) == (1.0, 1.0)

    def test_errors(self, emitter, registry):
        run_async(emitter.emit(_event(EventType.ERROR, stage="translation")))
        value = registry.get_sample_value("triage_failures_total", {"stage": "translation"})
        assert value == 1.0

    def test_output(self, emitter, registry):
        run_async(emitter.emit(_event(EventType.ERROR, stage="classification")))
        output = generate_metrics_output(registry).decode()
        assert 'triage_failures_total{stage="classification"} 1.0' in output

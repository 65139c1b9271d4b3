"""Tests for fanout.core.logging — structlog configuration and scoped context."""

from __future__ import annotations

import asyncio
import io
import json
import logging

import pytest
import structlog
from structlog.testing import LogCapture

from fanout.core.logging import (
    ROOT_LOGGER,
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    ecs_field_names,
    get_logger,
    service_metadata,
    unbind_context,
)


@pytest.fixture
def sink():
    stream = io.StringIO()
    yield stream
    for handler in list(logging.getLogger(ROOT_LOGGER).handlers):
        logging.getLogger(ROOT_LOGGER).removeHandler(handler)


class TestConfigureLogging:
    def test_json_lines(self, sink):
        configure_logging(level="DEBUG", json_format=True, service="orders-api", stream=sink)
        get_logger("fanout.tests").info("fanout.batch.start", items=3)

        line = json.loads(sink.getvalue().strip())
        assert line["event"] == "fanout.batch.start"
        assert line["items"] == 3
        assert line["service.name"] == "orders-api"
        assert line["log.level"] == "info"
        assert line["log.logger"] == "fanout.tests"
        assert "@timestamp" in line

    def test_level_filters(self, sink):
        configure_logging(level="warning", json_format=True, stream=sink)
        log = get_logger("fanout.tests")
        log.info("fanout.item.dispatched")
        log.warning("fanout.item.timed_out")
        events = [json.loads(raw)["event"] for raw in sink.getvalue().splitlines()]
        assert events == ["fanout.item.timed_out"]

    def test_without_timestamp(self, sink):
        configure_logging(json_format=True, add_timestamp=False, stream=sink)
        get_logger("fanout.tests").info("x")
        assert "@timestamp" not in json.loads(sink.getvalue())

    def test_console_renderer(self, sink):
        configure_logging(json_format=False, stream=sink)
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
        assert ecs_field_names not in processors

    def test_auto_format_on_non_tty_is_json(self, sink):
        configure_logging(stream=sink)
        assert isinstance(structlog.get_config()["processors"][-1], structlog.processors.JSONRenderer)

    def test_reconfigure_replaces_handler(self, sink):
        configure_logging(json_format=True, stream=sink)
        configure_logging(json_format=True, stream=sink)
        assert len(logging.getLogger(ROOT_LOGGER).handlers) == 1

    def test_unknown_level(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging(level="LOUD")


class TestProcessors:
    def test_service_metadata(self):
        event = service_metadata("svc")(None, "info", {"event": "x"})
        assert event["service.name"] == "svc"

    def test_service_metadata_keeps_explicit_value(self):
        event = service_metadata("svc")(None, "info", {"event": "x", "service.name": "other"})
        assert event["service.name"] == "other"

    def test_ecs_field_names(self):
        event = ecs_field_names(None, "info", {"event": "x", "timestamp": "t", "level": "info"})
        assert event == {"event": "x", "@timestamp": "t", "log.level": "info"}


class TestContext:
    def test_bind_and_unbind(self):
        bind_context(batch_id="b1", tenant="t")
        assert structlog.contextvars.get_contextvars() == {"batch_id": "b1", "tenant": "t"}
        unbind_context("tenant")
        assert structlog.contextvars.get_contextvars() == {"batch_id": "b1"}
        clear_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_log_context_restores_previous_values(self):
        bind_context(batch_id="outer")
        with LogContext(batch_id="inner", key=1):
            assert structlog.contextvars.get_contextvars() == {"batch_id": "inner", "key": 1}
        assert structlog.contextvars.get_contextvars() == {"batch_id": "outer"}

    def test_log_context_async(self):
        async def scenario():
            async with LogContext(batch_id="async"):
                return structlog.contextvars.get_contextvars()

        assert asyncio.run(scenario()) == {"batch_id": "async"}
        assert structlog.contextvars.get_contextvars() == {}

    def test_events_carry_bound_context(self):
        cap = LogCapture()
        structlog.configure(
            processors=[structlog.contextvars.merge_contextvars, cap],
            wrapper_class=structlog.make_filtering_bound_logger(0),
        )
        with LogContext(batch_id="b42"):
            get_logger("test").info("fanout.batch.start", items=3)
        assert cap.entries == [
            {"event": "fanout.batch.start", "items": 3, "batch_id": "b42", "log_level": "info"}
        ]

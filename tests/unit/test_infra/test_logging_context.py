"""Unit tests for logging context, JSON formatting and lazy logging."""

from __future__ import annotations

import json
import logging

import pytest

from notify_service.infra.logging import (
    ContextInjectingFilter,
    JSONFormatter,
    clear_log_context,
    get_lazy_logger,
    get_log_context,
    get_logger,
    remove_from_log_context,
    set_log_context,
)


@pytest.fixture(autouse=True)
def clean_context():
    clear_log_context()
    yield
    clear_log_context()


def _record(msg: str = "Notification delivered", **extra) -> logging.LogRecord:
    record = logging.LogRecord("worker", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:
    def test_set_and_remove(self):
        set_log_context(worker_id="w1", outbox_id="o1")
        remove_from_log_context("outbox_id")

        assert get_log_context() == {"worker_id": "w1"}

    def test_filter_injects_context_without_overwriting(self):
        set_log_context(worker_id="w1", channel="email")
        record = _record(channel="in-app")

        assert ContextInjectingFilter().filter(record) is True
        assert record.worker_id == "w1"
        assert record.channel == "in-app"


class TestJSONFormatter:
    def test_extra_fields_are_top_level(self):
        formatter = JSONFormatter(static={"service": "notify-service"})

        data = json.loads(formatter.format(_record(outbox_id="o1")))

        assert data["message"] == "Notification delivered"
        assert data["level"] == "INFO"
        assert data["service"] == "notify-service"
        assert data["outbox_id"] == "o1"
        assert data["timestamp"].endswith("Z")


class TestLoggers:
    def test_bound_logger_merges_extra(self, caplog):
        logger = get_logger("notify.test", component="outbox").bind(worker_id="w1")

        with caplog.at_level(logging.INFO, logger="notify.test"):
            logger.info("Claimed batch", extra={"count": 3})

        [record] = caplog.records
        assert record.component == "outbox"
        assert record.worker_id == "w1"
        assert record.count == 3

    def test_lazy_message_not_built_when_disabled(self, caplog):
        logger = get_lazy_logger("notify.lazy")
        calls: list[int] = []

        def build() -> str:
            calls.append(1)
            return "expensive"

        with caplog.at_level(logging.INFO, logger="notify.lazy"):
            logger.debug(build)
        assert calls == []

        with caplog.at_level(logging.DEBUG, logger="notify.lazy"):
            logger.debug(build)
        assert calls == [1]
        assert caplog.records[-1].getMessage() == "expensive"

"""Tests for diagnostics sinks and the structured logging helpers."""

from __future__ import annotations

import json
import logging

import pytest

from tsdoc_normalizer._shared.logging import (
    CorrelationContext,
    JsonFormatter,
    get_correlation_id,
    get_logger,
    with_fields,
)
from tsdoc_normalizer.diagnostics import (
    DiagnosticLevel,
    LoggingDiagnostics,
    NullDiagnostics,
    RecordingDiagnostics,
)


def test_recording_keeps_order_and_details() -> None:
    diagnostics = RecordingDiagnostics()
    diagnostics.debug("parse", "empty comment")
    diagnostics.warning("embedded", "formatter failed", language="json")
    assert diagnostics.reasons() == ["empty comment", "formatter failed"]
    assert diagnostics.reasons("embedded") == ["formatter failed"]
    event = diagnostics.events[1]
    assert event.level is DiagnosticLevel.WARNING
    assert event.details == {"language": "json"}


def test_null_sink_accepts_everything() -> None:
    sink = NullDiagnostics()
    sink.debug("parse", "ignored", extra=1)
    sink.warning("parse", "ignored")


def test_logging_sink_emits_structured_records(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="tsdoc_normalizer")
    sink = LoggingDiagnostics(get_logger("tsdoc_normalizer.test"))
    sink.debug("pipeline", "not a documentation comment")
    sink.warning("embedded", "formatter failed", language="json")
    first, second = caplog.records
    assert first.getMessage() == "not a documentation comment"
    assert first.__dict__["operation"] == "pipeline"
    assert first.__dict__["status"] == "skipped"
    assert second.levelno == logging.WARNING
    assert second.__dict__["status"] == "degraded"
    assert second.__dict__["details"] == {"language": "json"}


def test_adapter_injects_correlation_id(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="tsdoc_normalizer")
    logger = with_fields(get_logger("tsdoc_normalizer.test"), operation="check")
    before = get_correlation_id()
    with CorrelationContext("urn:tsdoc:correlation:test"):
        assert get_correlation_id() == "urn:tsdoc:correlation:test"
        logger.info("done")
    assert get_correlation_id() == before
    (record,) = caplog.records
    assert record.__dict__["correlation_id"] == "urn:tsdoc:correlation:test"
    assert record.__dict__["operation"] == "check"
    assert record.__dict__["status"] == "success"


def test_json_formatter() -> None:
    record = logging.LogRecord("tsdoc_normalizer", logging.INFO, __file__, 1, "hi %s", ("x",), None)
    record.operation = "format"
    record.ignored = None
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "hi x"
    assert payload["level"] == "INFO"
    assert payload["operation"] == "format"
    assert "ignored" not in payload

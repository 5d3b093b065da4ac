"""Tests for metrics and the performance monitor."""

from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry

from tsdoc_normalizer.observability import (
    PerformanceMonitor,
    TsdocMetrics,
    get_correlation_id,
    get_metrics_registry,
    record_operation_metrics,
)


@pytest.fixture
def collectors() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def metrics(collectors: CollectorRegistry) -> TsdocMetrics:
    return TsdocMetrics(collectors)


def test_record_operation_metrics_success(
    collectors: CollectorRegistry, metrics: TsdocMetrics
) -> None:
    with record_operation_metrics("comment", metrics=metrics):
        pass
    value = collectors.get_sample_value(
        "tsdoc_comment_duration_seconds_count", {"status": "success"}
    )
    assert value == 1.0


def test_record_operation_metrics_error(
    collectors: CollectorRegistry, metrics: TsdocMetrics
) -> None:
    message = "boom"
    with pytest.raises(RuntimeError, match="boom"), record_operation_metrics(
        "source", metrics=metrics
    ):
        raise RuntimeError(message)
    value = collectors.get_sample_value("tsdoc_source_duration_seconds_count", {"status": "error"})
    assert value == 1.0


def test_monitor_counts_and_mirrors(collectors: CollectorRegistry, metrics: TsdocMetrics) -> None:
    monitor = PerformanceMonitor(metrics)
    monitor.record_comment("formatted", 0.2)
    monitor.record_comment("skipped", 0.1)
    monitor.record_parse_error()
    monitor.record_formatting_error("render")
    monitor.record_cache_lookup(True)
    monitor.record_cache_lookup(False)
    monitor.record_cache_lookup(True)

    snapshot = monitor.snapshot()
    assert snapshot.comments_processed == 2
    assert snapshot.average_time == pytest.approx(0.15)
    assert snapshot.cache_hit_rate == pytest.approx(2 / 3)
    assert (snapshot.parse_errors, snapshot.formatting_errors) == (1, 1)
    assert collectors.get_sample_value(
        "tsdoc_comments_processed_total", {"status": "formatted"}
    ) == 1.0
    assert collectors.get_sample_value("tsdoc_parse_errors_total") == 1.0
    assert collectors.get_sample_value(
        "tsdoc_parser_cache_requests_total", {"result": "hit"}
    ) == 2.0

    monitor.reset()
    assert monitor.snapshot().comments_processed == 0
    assert monitor.average_time == 0.0
    assert monitor.cache_hit_rate == 0.0


def test_correlation_ids_are_unique() -> None:
    first, second = get_correlation_id(), get_correlation_id()
    assert first.startswith("urn:tsdoc:correlation:")
    assert first != second


def test_global_registry_is_shared() -> None:
    assert get_metrics_registry() is get_metrics_registry()

"""Prometheus metrics and in-process telemetry for the formatter.

Metrics follow the naming pattern ``tsdoc_<subject>_total`` for counters and
``tsdoc_<operation>_duration_seconds`` for histograms. :class:`PerformanceMonitor`
keeps plain counters for callers that want a snapshot without scraping, and
mirrors every increment into the Prometheus metrics.

Examples
--------
>>> from tsdoc_normalizer.observability import (
...     get_correlation_id,
...     get_metrics_registry,
...     record_operation_metrics,
... )
>>> metrics = get_metrics_registry()
>>> with record_operation_metrics("comment", get_correlation_id()):
...     pass
"""

from __future__ import annotations

import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tsdoc_normalizer._shared.logging import get_logger
from tsdoc_normalizer._shared.prometheus import (
    CollectorRegistry,
    CounterLike,
    HistogramLike,
    build_counter,
    build_histogram,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

__all__ = [
    "PerformanceMonitor",
    "PerformanceSnapshot",
    "TsdocMetrics",
    "get_correlation_id",
    "get_metrics_registry",
    "record_operation_metrics",
]

logger = get_logger(__name__)

_DURATION_BUCKETS = (0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)


class TsdocMetrics:
    """Prometheus metrics of the comment formatter.

    Examples
    --------
    >>> metrics = TsdocMetrics(CollectorRegistry())
    >>> metrics.comments_processed_total.labels(status="formatted").inc()
    >>> metrics.comment_duration_seconds.labels(status="success").observe(0.004)
    """

    comments_processed_total: CounterLike
    parse_errors_total: CounterLike
    formatting_errors_total: CounterLike
    parser_cache_requests_total: CounterLike
    embedded_snippets_total: CounterLike
    comment_duration_seconds: HistogramLike
    source_duration_seconds: HistogramLike

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize metrics registry.

        Parameters
        ----------
        registry : CollectorRegistry | None, optional
            Prometheus registry (defaults to the default registry).
        """
        self.registry = registry

        self.comments_processed_total = build_counter(
            "tsdoc_comments_processed_total",
            "Documentation comments seen by the formatter, by outcome",
            ["status"],
            registry=registry,
        )
        self.parse_errors_total = build_counter(
            "tsdoc_parse_errors_total",
            "Comments whose structure could not be parsed",
            registry=registry,
        )
        self.formatting_errors_total = build_counter(
            "tsdoc_formatting_errors_total",
            "Failures that left a comment or snippet unformatted, by stage",
            ["stage"],
            registry=registry,
        )
        self.parser_cache_requests_total = build_counter(
            "tsdoc_parser_cache_requests_total",
            "Parser cache lookups, by result",
            ["result"],
            registry=registry,
        )
        self.embedded_snippets_total = build_counter(
            "tsdoc_embedded_snippets_total",
            "Fenced code snippets handed to embedded formatters",
            ["language", "status"],
            registry=registry,
        )
        self.comment_duration_seconds = build_histogram(
            "tsdoc_comment_duration_seconds",
            "Duration of single comment formatting in seconds",
            ["status"],
            buckets=_DURATION_BUCKETS,
            registry=registry,
        )
        self.source_duration_seconds = build_histogram(
            "tsdoc_source_duration_seconds",
            "Duration of whole source formatting in seconds",
            ["status"],
            registry=registry,
        )


_METRICS_REGISTRY: TsdocMetrics | None = None
_METRICS_LOCK = threading.Lock()


def get_metrics_registry() -> TsdocMetrics:
    """Get or create the global metrics registry.

    Returns
    -------
    TsdocMetrics
        Global metrics instance bound to the default Prometheus registry.
    """
    global _METRICS_REGISTRY  # noqa: PLW0603
    with _METRICS_LOCK:
        if _METRICS_REGISTRY is None:
            _METRICS_REGISTRY = TsdocMetrics()
        return _METRICS_REGISTRY


def get_correlation_id() -> str:
    """Generate a correlation ID for one formatting run.

    Returns
    -------
    str
        Correlation ID in the format ``urn:tsdoc:correlation:<uuid>``.

    Examples
    --------
    >>> get_correlation_id().startswith("urn:tsdoc:correlation:")
    True
    """
    return f"urn:tsdoc:correlation:{uuid.uuid4().hex}"


@contextmanager
def record_operation_metrics(
    operation: str,
    correlation_id: str | None = None,
    *,
    metrics: TsdocMetrics | None = None,
    status: str = "success",
) -> Iterator[None]:
    """Context manager to record the duration of an operation.

    Parameters
    ----------
    operation : str
        ``"comment"`` or ``"source"``.
    correlation_id : str | None, optional
        Correlation ID for tracing (default: auto-generated).
    metrics : TsdocMetrics | None, optional
        Metrics registry (defaults to global registry).
    status : str, optional
        Initial status (default: "success"); updated to "error" on exception.

    Yields
    ------
    None
        Control to the timed block.
    """
    if metrics is None:
        metrics = get_metrics_registry()
    if correlation_id is None:
        correlation_id = get_correlation_id()

    start_time = time.monotonic()
    final_status = status
    try:
        yield
    except Exception:
        final_status = "error"
        raise
    finally:
        duration = time.monotonic() - start_time
        match operation:
            case "comment":
                metrics.comment_duration_seconds.labels(status=final_status).observe(duration)
            case "source":
                metrics.source_duration_seconds.labels(status=final_status).observe(duration)
            case _:
                logger.debug(
                    "No histogram for operation",
                    extra={"operation": operation, "correlation_id": correlation_id},
                )


@dataclass(frozen=True, slots=True)
class PerformanceSnapshot:
    """Point-in-time copy of :class:`PerformanceMonitor` counters."""

    comments_processed: int
    parse_errors: int
    formatting_errors: int
    total_time: float
    cache_hits: int
    cache_misses: int

    @property
    def average_time(self) -> float:
        return self.total_time / self.comments_processed if self.comments_processed else 0.0

    @property
    def cache_hit_rate(self) -> float:
        total = self.cache_hits + self.cache_misses
        return self.cache_hits / total if total else 0.0


class PerformanceMonitor:
    """In-process counters mirrored into Prometheus.

    Parameters
    ----------
    metrics : TsdocMetrics | None, optional
        Metrics receiving every increment. Defaults to the global registry.
    """

    def __init__(self, metrics: TsdocMetrics | None = None) -> None:
        self._metrics = metrics or get_metrics_registry()
        self._lock = threading.Lock()
        self._comments_processed = 0
        self._parse_errors = 0
        self._formatting_errors = 0
        self._total_time = 0.0
        self._cache_hits = 0
        self._cache_misses = 0

    @property
    def metrics(self) -> TsdocMetrics:
        return self._metrics

    def record_comment(self, status: str, duration: float) -> None:
        """Count one processed comment and its duration in seconds."""
        with self._lock:
            self._comments_processed += 1
            self._total_time += duration
        self._metrics.comments_processed_total.labels(status=status).inc()

    def record_parse_error(self) -> None:
        with self._lock:
            self._parse_errors += 1
        self._metrics.parse_errors_total.inc()

    def record_formatting_error(self, stage: str) -> None:
        with self._lock:
            self._formatting_errors += 1
        self._metrics.formatting_errors_total.labels(stage=stage).inc()

    def record_cache_lookup(self, hit: bool) -> None:  # noqa: FBT001
        """Count one parser cache lookup; usable as a cache listener."""
        with self._lock:
            if hit:
                self._cache_hits += 1
            else:
                self._cache_misses += 1
        self._metrics.parser_cache_requests_total.labels(result="hit" if hit else "miss").inc()

    def record_snippet(self, language: str, status: str) -> None:
        self._metrics.embedded_snippets_total.labels(language=language, status=status).inc()

    def snapshot(self) -> PerformanceSnapshot:
        """Return a copy of the counters."""
        with self._lock:
            return PerformanceSnapshot(
                comments_processed=self._comments_processed,
                parse_errors=self._parse_errors,
                formatting_errors=self._formatting_errors,
                total_time=self._total_time,
                cache_hits=self._cache_hits,
                cache_misses=self._cache_misses,
            )

    def reset(self) -> None:
        """Zero the in-process counters; Prometheus counters are monotonic and stay."""
        with self._lock:
            self._comments_processed = 0
            self._parse_errors = 0
            self._formatting_errors = 0
            self._total_time = 0.0
            self._cache_hits = 0
            self._cache_misses = 0

    @property
    def average_time(self) -> float:
        return self.snapshot().average_time

    @property
    def cache_hit_rate(self) -> float:
        return self.snapshot().cache_hit_rate

"""Typed wrappers around Prometheus counters and histograms.

Callers import :func:`build_counter` and :func:`build_histogram` to obtain
objects implementing the :class:`CounterLike` and :class:`HistogramLike`
protocols, and pass a :class:`~prometheus_client.registry.CollectorRegistry`
when they need isolation (tests register into a private registry).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, cast

from prometheus_client import Counter, Histogram
from prometheus_client.registry import REGISTRY, CollectorRegistry

if TYPE_CHECKING:
    from collections.abc import Sequence


class CounterLike(Protocol):
    """Subset of Prometheus counter behaviour relied on by the formatter."""

    def labels(self, **kwargs: object) -> CounterLike: ...

    def inc(self, amount: float = 1.0) -> None: ...


class HistogramLike(Protocol):
    """Subset of Prometheus histogram behaviour relied on by the formatter."""

    def labels(self, **kwargs: object) -> HistogramLike: ...

    def observe(self, amount: float) -> None: ...


def build_counter(
    name: str,
    documentation: str,
    labelnames: Sequence[str] | None = None,
    *,
    registry: CollectorRegistry | None = None,
) -> CounterLike:
    """Return a counter registered in ``registry`` (the default registry when omitted)."""
    counter = Counter(
        name,
        documentation,
        tuple(labelnames or ()),
        registry=registry if registry is not None else REGISTRY,
    )
    return cast("CounterLike", counter)


def build_histogram(
    name: str,
    documentation: str,
    labelnames: Sequence[str] | None = None,
    *,
    buckets: Sequence[float] | None = None,
    registry: CollectorRegistry | None = None,
) -> HistogramLike:
    """Return a histogram registered in ``registry`` (the default registry when omitted)."""
    target = registry if registry is not None else REGISTRY
    if buckets is None:
        histogram = Histogram(name, documentation, tuple(labelnames or ()), registry=target)
    else:
        histogram = Histogram(
            name,
            documentation,
            tuple(labelnames or ()),
            buckets=tuple(buckets),
            registry=target,
        )
    return cast("HistogramLike", histogram)


__all__ = [
    "CollectorRegistry",
    "CounterLike",
    "HistogramLike",
    "build_counter",
    "build_histogram",
]

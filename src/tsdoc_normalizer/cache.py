"""Bounded cache of comment parsers keyed by their extra tag vocabulary."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, Protocol

from pydantic import BaseModel, ConfigDict, Field

from tsdoc_normalizer._shared.logging import get_logger
from tsdoc_normalizer.constants import PARSER_CACHE_CAPACITY, PARSER_CACHE_TTL_SECONDS
from tsdoc_normalizer.parser import BlockTagParser, TagConfiguration

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

__all__ = [
    "CacheStats",
    "ParserCache",
    "ParserProvider",
    "get_parser",
    "get_parser_cache",
]

logger = get_logger(__name__)


class CacheStats(BaseModel):
    """Snapshot of cache usage counters."""

    model_config = ConfigDict(frozen=True)

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0
    capacity: int = Field(default=PARSER_CACHE_CAPACITY, ge=1)

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class ParserProvider(Protocol):
    """Source of parsers for a given extra-tag set."""

    def get(self, extra_tags: Iterable[str] = ()) -> BlockTagParser:
        """Return a parser recognizing ``extra_tags``."""
        ...


@dataclass(slots=True)
class _Entry:
    parser: BlockTagParser
    created_at: float


class ParserCache:
    """LRU cache of :class:`BlockTagParser` instances.

    Entries are immutable once created, so a returned parser may be shared
    across threads. The lock only guards the bookkeeping.

    Parameters
    ----------
    capacity : int, optional
        Maximum number of parsers kept. Defaults to 10.
    ttl_seconds : float, optional
        Age after which an entry is rebuilt. Defaults to 300 seconds.
    clock : Callable[[], float] | None, optional
        Monotonic clock, injectable for tests.
    listener : Callable[[bool], None] | None, optional
        Called with True on a hit and False on a miss.
    """

    def __init__(
        self,
        capacity: int = PARSER_CACHE_CAPACITY,
        ttl_seconds: float = PARSER_CACHE_TTL_SECONDS,
        *,
        clock: Callable[[], float] | None = None,
        listener: Callable[[bool], None] | None = None,
    ) -> None:
        if capacity < 1:
            message = f"Parser cache capacity must be positive, got {capacity}"
            raise ValueError(message)
        self._capacity = capacity
        self._ttl = ttl_seconds
        self._clock = clock or time.monotonic
        self._listener = listener
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, extra_tags: Iterable[str] = ()) -> BlockTagParser:
        """Return the cached parser for ``extra_tags``, building it on a miss.

        Parameters
        ----------
        extra_tags : Iterable[str], optional
            Additional tag names; order and the leading ``@`` do not matter.

        Returns
        -------
        BlockTagParser
            Parser configured with the given vocabulary.
        """
        parser, _ = self.lookup(extra_tags)
        return parser

    def lookup(self, extra_tags: Iterable[str] = ()) -> tuple[BlockTagParser, bool]:
        """Return the parser for ``extra_tags`` and whether it was a cache hit."""
        configuration = TagConfiguration.from_tags(tuple(extra_tags))
        key = configuration.cache_key
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now - entry.created_at <= self._ttl:
                self._entries.move_to_end(key)
                self._hits += 1
                hit = True
            else:
                entry = _Entry(BlockTagParser(configuration), now)
                self._entries[key] = entry
                self._entries.move_to_end(key)
                self._misses += 1
                hit = False
                while len(self._entries) > self._capacity:
                    evicted, _ = self._entries.popitem(last=False)
                    self._evictions += 1
                    logger.debug("Evicted parser", extra={"cache_key": evicted})
        if self._listener is not None:
            self._listener(hit)
        return entry.parser, hit

    def stats(self) -> CacheStats:
        """Return the current usage counters."""
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                size=len(self._entries),
                capacity=self._capacity,
            )

    def clear(self) -> None:
        """Drop every entry and reset the counters."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


_DEFAULT_CACHE: Final = ParserCache()


def get_parser_cache() -> ParserCache:
    """Return the process-wide parser cache."""
    return _DEFAULT_CACHE


def get_parser(extra_tags: Iterable[str] = ()) -> BlockTagParser:
    """Return a parser for ``extra_tags`` from the process-wide cache."""
    return _DEFAULT_CACHE.get(extra_tags)

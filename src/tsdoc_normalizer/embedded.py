"""Embedded-language formatting of fenced code blocks.

Fenced code inside comments is handed to a sub-formatter chosen by the
fence's language identifier. Sub-formatters are external services with an
async ``format(code, language, options)`` method; the only built-in one
handles JSON. A snippet whose language is unknown, has no registered
formatter, or whose formatter fails falls back to :func:`clean_snippet`.
"""

from __future__ import annotations

import hashlib
import inspect
import json
import textwrap
from collections import OrderedDict
from typing import TYPE_CHECKING, Final, Protocol, TypeAlias

from tsdoc_normalizer.config import EmbeddedFormatting
from tsdoc_normalizer.constants import LANGUAGE_MAP
from tsdoc_normalizer.diagnostics import NullDiagnostics
from tsdoc_normalizer.errors import EmbeddedFormatError, recovery_strategy_for

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from tsdoc_normalizer.config import FormatterOptions
    from tsdoc_normalizer.diagnostics import Diagnostics
    from tsdoc_normalizer.observability import PerformanceMonitor

__all__ = [
    "CallableFormatter",
    "EmbeddedFormatter",
    "EmbeddedFormatterRegistry",
    "JsonFormatter",
    "clean_snippet",
    "resolve_language",
]

_CACHE_CAPACITY: Final = 256

FormatCallable: TypeAlias = "Callable[[str, str, FormatterOptions], str | Awaitable[str]]"


class EmbeddedFormatter(Protocol):
    """A formatter for one embedded language."""

    async def format(self, code: str, language: str, options: FormatterOptions) -> str:
        """Return ``code`` formatted; raise on input it cannot handle."""
        ...


def resolve_language(tag: str) -> str | None:
    """Return the formatter dialect for a fence language identifier.

    Examples
    --------
    >>> resolve_language("TS")
    'typescript'
    >>> resolve_language("brainfuck") is None
    True
    """
    return LANGUAGE_MAP.get(tag.strip().lower())


def clean_snippet(code: str) -> str:
    """Dedent ``code``, strip trailing whitespace and drop blank edge lines.

    Examples
    --------
    >>> clean_snippet("\\n    a = 1   \\n      b\\n\\n")
    'a = 1\\n  b'
    """
    lines = [line.rstrip() for line in textwrap.dedent(code.expandtabs(4)).split("\n")]
    while lines and not lines[0]:
        lines.pop(0)
    while lines and not lines[-1]:
        lines.pop()
    return "\n".join(lines)


class JsonFormatter:
    """Format JSON with the standard library, two-space indented."""

    async def format(self, code: str, language: str, options: FormatterOptions) -> str:
        del language, options
        try:
            data = json.loads(code)
        except json.JSONDecodeError as exc:
            message = f"Invalid JSON at line {exc.lineno}, column {exc.colno}"
            raise EmbeddedFormatError(message, cause=exc) from exc
        return json.dumps(data, indent=2, ensure_ascii=False)


class CallableFormatter:
    """Adapt a plain function, sync or async, to :class:`EmbeddedFormatter`.

    Parameters
    ----------
    function : Callable[[str, str, FormatterOptions], str | Awaitable[str]]
        Host formatting service.
    """

    def __init__(self, function: FormatCallable) -> None:
        self._function = function

    async def format(self, code: str, language: str, options: FormatterOptions) -> str:
        result = self._function(code, language, options)
        if inspect.isawaitable(result):
            result = await result
        return str(result)


class EmbeddedFormatterRegistry:
    """Dispatch fenced code to registered formatters with a cleaned fallback.

    Formatters are keyed by dialect (the values of the language map, such as
    ``typescript`` or ``babel``). Results are memoized per dialect, option
    hash and snippet content.

    Parameters
    ----------
    formatters : Mapping[str, EmbeddedFormatter] | None, optional
        Formatters to register in addition to the built-in ones.
    include_builtin : bool, optional
        Register the JSON formatter. Defaults to True.
    diagnostics : Diagnostics | None, optional
        Sink for fallbacks.
    monitor : PerformanceMonitor | None, optional
        Receives one snippet count per call.
    """

    def __init__(
        self,
        formatters: Mapping[str, EmbeddedFormatter] | None = None,
        *,
        include_builtin: bool = True,
        diagnostics: Diagnostics | None = None,
        monitor: PerformanceMonitor | None = None,
    ) -> None:
        self._formatters: dict[str, EmbeddedFormatter] = {}
        self._cache: OrderedDict[tuple[str, str, str], str] = OrderedDict()
        self._diagnostics = diagnostics or NullDiagnostics()
        self._monitor = monitor
        if include_builtin:
            self._formatters["json"] = JsonFormatter()
        for language, formatter in (formatters or {}).items():
            self.register(language, formatter)

    def register(self, language: str, formatter: EmbeddedFormatter | FormatCallable) -> None:
        """Register ``formatter`` for a dialect or a fence identifier."""
        dialect = resolve_language(language) or language.strip().lower()
        if not hasattr(formatter, "format"):
            formatter = CallableFormatter(formatter)  # type: ignore[arg-type]
        self._formatters[dialect] = formatter  # type: ignore[assignment]
        self._cache.clear()

    def formatter_for(self, language: str) -> EmbeddedFormatter | None:
        dialect = resolve_language(language)
        return None if dialect is None else self._formatters.get(dialect)

    def with_context(
        self, *, diagnostics: Diagnostics | None = None, monitor: PerformanceMonitor | None = None
    ) -> EmbeddedFormatterRegistry:
        """Return a registry sharing these formatters with another sink and monitor."""
        clone = EmbeddedFormatterRegistry(include_builtin=False)
        clone._formatters = self._formatters
        clone._cache = self._cache
        clone._diagnostics = diagnostics or self._diagnostics
        clone._monitor = monitor or self._monitor
        return clone

    async def format(self, code: str, language: str, options: FormatterOptions) -> str:
        """Format one snippet, falling back to the cleaned original.

        Parameters
        ----------
        code : str
            Snippet text between the fences.
        language : str
            Fence language identifier, possibly empty.
        options : FormatterOptions
            Formatter options, forwarded to the sub-formatter.

        Returns
        -------
        str
            Formatted snippet, or :func:`clean_snippet` of ``code``.
        """
        cleaned = clean_snippet(code)
        label = language.strip().lower() or "none"
        if options.embedded_language_formatting is EmbeddedFormatting.OFF:
            self._record(label, "disabled")
            return cleaned
        dialect = resolve_language(language)
        formatter = None if dialect is None else self._formatters.get(dialect)
        if dialect is None or formatter is None:
            self._diagnostics.debug("embedded", "no formatter for language", language=label)
            self._record(label, "unsupported")
            return cleaned

        key = (dialect, options.config_hash, hashlib.sha256(cleaned.encode("utf-8")).hexdigest())
        cached = self._cache.get(key)
        if cached is not None:
            self._cache.move_to_end(key)
            self._record(label, "cached")
            return cached

        try:
            formatted = await formatter.format(cleaned, dialect, options)
        except Exception as exc:  # noqa: BLE001
            self._diagnostics.warning(
                "embedded",
                "sub-formatter failed, keeping cleaned snippet",
                language=label,
                recovery=str(recovery_strategy_for(exc)),
                error=f"{type(exc).__name__}: {exc}",
            )
            self._record(label, "failed")
            if self._monitor is not None:
                self._monitor.record_formatting_error("embedded")
            return cleaned

        result = clean_snippet(formatted)
        self._cache[key] = result
        while len(self._cache) > _CACHE_CAPACITY:
            self._cache.popitem(last=False)
        self._record(label, "formatted")
        return result

    def clear_cache(self) -> None:
        self._cache.clear()

    def _record(self, language: str, status: str) -> None:
        if self._monitor is not None:
            self._monitor.record_snippet(language, status)

"""Comment and source formatting pipelines.

:class:`CommentFormatter` runs one raw comment through every stage: legacy
rewrites, parsing, the release-tag policy and layout. It never raises; any
failure returns the original comment text. :func:`format_source` finds the
documentation comments of a whole file, computes each one's export context
from the declaration tree and substitutes the results back, highest offset
first so earlier ranges stay valid.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, TypeAlias

from tsdoc_normalizer._shared.logging import CorrelationContext, get_logger, with_fields
from tsdoc_normalizer.cache import get_parser_cache
from tsdoc_normalizer.config import DEFAULT_OPTIONS
from tsdoc_normalizer.context import ContextAnalyzer, context_from_host, context_from_snippet
from tsdoc_normalizer.declarations import scan_declarations
from tsdoc_normalizer.diagnostics import NullDiagnostics
from tsdoc_normalizer.embedded import EmbeddedFormatterRegistry
from tsdoc_normalizer.errors import RecoveryStrategy, classify_error, recovery_strategy_for
from tsdoc_normalizer.layout import LayoutBuilder
from tsdoc_normalizer.legacy import apply_legacy_transformations
from tsdoc_normalizer.models import ExportContext, SourceSpan
from tsdoc_normalizer.observability import (
    PerformanceMonitor,
    get_correlation_id,
    record_operation_metrics,
)
from tsdoc_normalizer.parser import ParserAdapter, extract_comment_body, is_tsdoc_candidate
from tsdoc_normalizer.policy import ReleaseTagPolicy

if TYPE_CHECKING:
    from tsdoc_normalizer.cache import ParserCache
    from tsdoc_normalizer.config import FormatterOptions
    from tsdoc_normalizer.declarations import CommentRange, DeclarationTree
    from tsdoc_normalizer.diagnostics import Diagnostics
    from tsdoc_normalizer.errors import TsdocError
    from tsdoc_normalizer.policy import PolicyOutcome

__all__ = [
    "CommentFormatter",
    "CommentResult",
    "CommentStatus",
    "SourceReport",
    "format_source",
    "format_source_report",
    "format_source_sync",
    "reindent",
]

logger = get_logger(__name__)

ContextInput: TypeAlias = "ExportContext | Mapping[str, object] | str | None"


class CommentStatus(StrEnum):
    """Outcome of formatting one comment."""

    FORMATTED = "formatted"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class CommentResult:
    """Formatted text of one comment and how it was obtained."""

    text: str
    status: CommentStatus
    span: SourceSpan | None = None
    outcome: PolicyOutcome | None = None

    @property
    def changed(self) -> bool:
        return self.status is CommentStatus.FORMATTED


@dataclass(slots=True)
class SourceReport:
    """Result of formatting a whole source text."""

    text: str
    comments: list[CommentResult] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return any(result.changed for result in self.comments)

    def count(self, status: CommentStatus) -> int:
        return sum(1 for result in self.comments if result.status is status)


def reindent(text: str, indent: str, newline: str = "\n") -> str:
    """Prefix every line but the first with ``indent``.

    The first line is placed by the host at the original comment position,
    after whatever indentation already precedes it.

    Examples
    --------
    >>> reindent("/**\\n * Hi.\\n */", "  ")
    '/**\\n   * Hi.\\n   */'
    """
    lines = text.split("\n")
    return newline.join([lines[0], *(f"{indent}{line}" for line in lines[1:])])


def _resolve_context(context: ContextInput, options: FormatterOptions) -> ExportContext:
    match context:
        case ExportContext():
            return context
        case None:
            return ExportContext()
        case str():
            return context_from_snippet(context, options)
        case Mapping():
            return context_from_host(context, options)
    message = f"Unsupported declaration context: {type(context).__name__}"
    raise TypeError(message)


class CommentFormatter:
    """Format single documentation comments.

    Parameters
    ----------
    options : FormatterOptions | None, optional
        Formatter options. Defaults to the built-in options.
    parser_cache : ParserCache | None, optional
        Source of parsers. Defaults to the process-wide cache.
    registry : EmbeddedFormatterRegistry | None, optional
        Sub-formatters for fenced code. Defaults to JSON only.
    diagnostics : Diagnostics | None, optional
        Sink for skip reasons and degradations. Defaults to silence.
    monitor : PerformanceMonitor | None, optional
        Telemetry counters. Defaults to a monitor over the global metrics.

    Examples
    --------
    >>> formatter = CommentFormatter()
    >>> print(formatter.format_comment_sync("/**\\n * Adds.\\n * @return sum\\n */"))
    /**
     * Adds.
     *
     * @returns sum
     */
    """

    def __init__(
        self,
        options: FormatterOptions | None = None,
        *,
        parser_cache: ParserCache | None = None,
        registry: EmbeddedFormatterRegistry | None = None,
        diagnostics: Diagnostics | None = None,
        monitor: PerformanceMonitor | None = None,
    ) -> None:
        self._options = options or DEFAULT_OPTIONS
        self._diagnostics = diagnostics or NullDiagnostics()
        self._monitor = monitor or PerformanceMonitor()
        self._cache = parser_cache or get_parser_cache()
        self._registry = (registry or EmbeddedFormatterRegistry()).with_context(
            diagnostics=self._diagnostics, monitor=self._monitor
        )
        self._policy = ReleaseTagPolicy(self._options, self._diagnostics)
        self._analyzer = ContextAnalyzer(self._options, self._diagnostics)

    @property
    def options(self) -> FormatterOptions:
        return self._options

    @property
    def analyzer(self) -> ContextAnalyzer:
        return self._analyzer

    @property
    def monitor(self) -> PerformanceMonitor:
        return self._monitor

    @property
    def diagnostics(self) -> Diagnostics:
        return self._diagnostics

    async def format_comment(
        self, raw: str, context: ContextInput = None, *, indent: str = ""
    ) -> str:
        """Return the formatted comment, or ``raw`` when it is skipped or fails.

        Parameters
        ----------
        raw : str
            Comment text including its delimiters.
        context : ExportContext | Mapping[str, object] | str | None, optional
            Declaration context: a computed context, a host mapping, or the
            code following the comment. None means not exported.
        indent : str, optional
            Indentation of the comment's first line in the source.

        Returns
        -------
        str
            Comment text to substitute at the original range.
        """
        result = await self.process(raw, context, indent=indent)
        return result.text

    def format_comment_sync(
        self, raw: str, context: ContextInput = None, *, indent: str = ""
    ) -> str:
        """Blocking variant of :meth:`format_comment`."""
        return asyncio.run(self.format_comment(raw, context, indent=indent))

    async def process(
        self,
        raw: str,
        context: ContextInput = None,
        *,
        indent: str = "",
        span: SourceSpan | None = None,
    ) -> CommentResult:
        """Format ``raw`` and describe the outcome; never raises."""
        started = time.monotonic()
        try:
            with record_operation_metrics("comment", metrics=self._monitor.metrics):
                result = await self._process(raw, context, indent, span)
        except Exception as exc:  # noqa: BLE001
            code = classify_error(exc)
            strategy = recovery_strategy_for(code)
            self._diagnostics.warning(
                "pipeline",
                "formatting failed, comment left unchanged",
                error_code=str(code),
                recovery=str(strategy),
                error=f"{type(exc).__name__}: {exc}",
            )
            self._monitor.record_formatting_error(str(code))
            match strategy:
                case RecoveryStrategy.SKIP_FORMATTING:
                    result = CommentResult(raw, CommentStatus.SKIPPED, span)
                case _:
                    result = CommentResult(raw, CommentStatus.FAILED, span)
        self._monitor.record_comment(str(result.status), time.monotonic() - started)
        return result

    async def _process(
        self, raw: str, context: ContextInput, indent: str, span: SourceSpan | None
    ) -> CommentResult:
        options = self._options
        if not raw.lstrip().startswith("/**"):
            self._diagnostics.debug("pipeline", "not a documentation comment")
            return CommentResult(raw, CommentStatus.SKIPPED, span)

        resolved = _resolve_context(context, options)
        body = apply_legacy_transformations(
            extract_comment_body(raw), enabled=options.closure_compiler_compat
        )
        # Empty comments go through the policy: an eligible declaration still
        # receives its default release tag.
        if body.strip() and not is_tsdoc_candidate(raw, force=options.force_format_tsdoc):
            self._diagnostics.debug("pipeline", "not a documentation candidate")
            return CommentResult(raw, CommentStatus.SKIPPED, span)

        parser, hit = self._cache.lookup(options.extra_tags)
        self._monitor.record_cache_lookup(hit)
        parse_errors: list[TsdocError] = []
        adapter = ParserAdapter(options, parser, self._diagnostics, on_error=parse_errors.append)
        model = adapter.parse(body)
        if parse_errors:
            # The unstructured summary is not written back; the comment stays as written.
            self._monitor.record_parse_error()
            self._diagnostics.debug(
                "pipeline",
                "unparseable comment left unchanged",
                recovery=str(RecoveryStrategy.SKIP_FORMATTING),
            )
            return CommentResult(raw, CommentStatus.SKIPPED, span)

        outcome = self._policy.evaluate(model, resolved)
        if model.is_empty:
            self._diagnostics.debug("pipeline", "empty comment")
            return CommentResult(raw, CommentStatus.SKIPPED, span, outcome)
        width = options.width_for_indent(indent)
        rendered = await LayoutBuilder(options, width, self._registry).render(model)
        text = reindent(rendered, indent, "\r\n" if "\r\n" in raw else "\n")
        status = CommentStatus.UNCHANGED if text == raw else CommentStatus.FORMATTED
        return CommentResult(text, status, span, outcome)


def _line_indent(source: str, offset: int) -> str:
    line_start = source.rfind("\n", 0, offset) + 1
    line = source[line_start:offset]
    return line[: len(line) - len(line.lstrip(" \t"))]


async def format_source_report(
    text: str,
    options: FormatterOptions | None = None,
    *,
    formatter: CommentFormatter | None = None,
    diagnostics: Diagnostics | None = None,
    registry: EmbeddedFormatterRegistry | None = None,
    jsx: bool = False,
) -> SourceReport:
    """Format every documentation comment of ``text``.

    Parameters
    ----------
    text : str
        Source text.
    options : FormatterOptions | None, optional
        Formatter options; ignored when ``formatter`` is given.
    formatter : CommentFormatter | None, optional
        Comment formatter to reuse across files.
    diagnostics : Diagnostics | None, optional
        Sink used when a formatter is created here.
    registry : EmbeddedFormatterRegistry | None, optional
        Sub-formatters used when a formatter is created here.
    jsx : bool, optional
        Parse with the TSX grammar, for ``.tsx`` and ``.jsx`` files.

    Returns
    -------
    SourceReport
        New text and one result per documentation comment.
    """
    comment_formatter = formatter or CommentFormatter(
        options, diagnostics=diagnostics, registry=registry
    )
    monitor = comment_formatter.monitor
    report = SourceReport(text)
    with (
        CorrelationContext(get_correlation_id()),
        record_operation_metrics("source", metrics=monitor.metrics),
    ):
        try:
            tree = scan_declarations(text, jsx=jsx)
        except Exception as exc:  # noqa: BLE001
            comment_formatter.diagnostics.warning(
                "context", "source could not be scanned", error=f"{type(exc).__name__}: {exc}"
            )
            comment_formatter.monitor.record_formatting_error("scan")
            return report
        for comment in tree.comments:
            if comment.is_doc_comment:
                report.comments.append(await _format_one(comment_formatter, text, tree, comment))
        edits = [
            (result.span, result.text)
            for result in report.comments
            if result.changed and result.span is not None
        ]
        updated = text
        for span, replacement in sorted(edits, key=lambda edit: edit[0].start, reverse=True):
            updated = f"{updated[: span.start]}{replacement}{updated[span.end :]}"
        report.text = updated
    with_fields(logger, operation="format_source").debug(
        "Formatted source",
        extra={
            "comments": len(report.comments),
            "changed": report.count(CommentStatus.FORMATTED),
        },
    )
    return report


async def _format_one(
    formatter: CommentFormatter, text: str, tree: DeclarationTree, comment: CommentRange
) -> CommentResult:
    node = tree.declaration_for(comment)
    context = formatter.analyzer.analyze(node, tree, comment=comment)
    return await formatter.process(
        comment.text,
        context,
        indent=_line_indent(text, comment.start),
        span=SourceSpan(comment.start, comment.end),
    )


async def format_source(
    text: str,
    options: FormatterOptions | None = None,
    *,
    formatter: CommentFormatter | None = None,
    diagnostics: Diagnostics | None = None,
    registry: EmbeddedFormatterRegistry | None = None,
    jsx: bool = False,
) -> str:
    """Return ``text`` with every documentation comment formatted."""
    report = await format_source_report(
        text, options, formatter=formatter, diagnostics=diagnostics, registry=registry, jsx=jsx
    )
    return report.text


def format_source_sync(
    text: str,
    options: FormatterOptions | None = None,
    *,
    formatter: CommentFormatter | None = None,
    diagnostics: Diagnostics | None = None,
    registry: EmbeddedFormatterRegistry | None = None,
    jsx: bool = False,
) -> str:
    """Blocking variant of :func:`format_source`."""
    return asyncio.run(
        format_source(
            text,
            options,
            formatter=formatter,
            diagnostics=diagnostics,
            registry=registry,
            jsx=jsx,
        )
    )

"""Tests for embedded-language formatting of fenced code."""

from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry

from tsdoc_normalizer.config import EmbeddedFormatting, FormatterOptions
from tsdoc_normalizer.diagnostics import RecordingDiagnostics
from tsdoc_normalizer.embedded import (
    EmbeddedFormatterRegistry,
    clean_snippet,
    resolve_language,
)
from tsdoc_normalizer.errors import EmbeddedFormatError
from tsdoc_normalizer.observability import PerformanceMonitor, TsdocMetrics

OPTIONS = FormatterOptions()


class CountingFormatter:
    """Upper-cases code and counts calls."""

    def __init__(self) -> None:
        self.calls = 0

    async def format(self, code: str, language: str, options: FormatterOptions) -> str:
        del language, options
        self.calls += 1
        return code.upper()


class BrokenFormatter:
    async def format(self, code: str, language: str, options: FormatterOptions) -> str:
        message = "syntax error"
        raise ValueError(message)


@pytest.mark.parametrize(
    ("tag", "expected"),
    [("ts", "typescript"), ("JSX", "babel"), (" yml ", "yaml"), ("bash", "text"), ("", None)],
)
def test_resolve_language(tag: str, expected: str | None) -> None:
    assert resolve_language(tag) == expected


def test_clean_snippet_expands_tabs_and_dedents() -> None:
    assert clean_snippet("\n\tif (x) {\n\t\ty();  \n\t}\n") == "if (x) {\n    y();\n}"


@pytest.mark.asyncio
async def test_builtin_json_formatter() -> None:
    registry = EmbeddedFormatterRegistry()
    assert await registry.format('{"a":1,"b":[1,2]}', "json", OPTIONS) == (
        '{\n  "a": 1,\n  "b": [\n    1,\n    2\n  ]\n}'
    )


@pytest.mark.asyncio
async def test_invalid_json_keeps_cleaned_snippet() -> None:
    diagnostics = RecordingDiagnostics()
    registry = EmbeddedFormatterRegistry(diagnostics=diagnostics)
    assert await registry.format("  {oops  ", "json", OPTIONS) == "{oops"
    assert diagnostics.reasons("embedded") == ["sub-formatter failed, keeping cleaned snippet"]


@pytest.mark.asyncio
async def test_json_formatter_raises_typed_error() -> None:
    formatter = EmbeddedFormatterRegistry().formatter_for("json")
    assert formatter is not None
    with pytest.raises(EmbeddedFormatError, match="Invalid JSON"):
        await formatter.format("{", "json", OPTIONS)


@pytest.mark.asyncio
async def test_unknown_and_unregistered_languages_are_cleaned() -> None:
    registry = EmbeddedFormatterRegistry()
    assert await registry.format("  x  \n", "cobol", OPTIONS) == "x"
    assert await registry.format("  y  \n", "ts", OPTIONS) == "y"
    assert await registry.format("  z  \n", "", OPTIONS) == "z"


@pytest.mark.asyncio
async def test_disabled_formatting_never_calls_formatters() -> None:
    formatter = CountingFormatter()
    registry = EmbeddedFormatterRegistry({"typescript": formatter})
    options = FormatterOptions(embedded_language_formatting=EmbeddedFormatting.OFF)
    assert await registry.format("  let a\n", "ts", options) == "let a"
    assert formatter.calls == 0


@pytest.mark.asyncio
async def test_results_are_memoized() -> None:
    formatter = CountingFormatter()
    registry = EmbeddedFormatterRegistry({"ts": formatter})
    assert await registry.format("let a", "ts", OPTIONS) == "LET A"
    assert await registry.format("  let a\n", "typescript", OPTIONS) == "LET A"
    assert formatter.calls == 1
    await registry.format("let a", "ts", OPTIONS.with_overrides(print_width=60))
    assert formatter.calls == 2
    registry.clear_cache()
    await registry.format("let a", "ts", OPTIONS)
    assert formatter.calls == 3


@pytest.mark.asyncio
async def test_constructor_registers_formatters() -> None:
    registry = EmbeddedFormatterRegistry(
        {
            "typescript": lambda code, language, options: code.replace("  ", " "),
            "css": CountingFormatter(),
        }
    )
    assert await registry.format("let  a", "ts", OPTIONS) == "let a"
    assert await registry.format("a {}", "css", OPTIONS) == "A {}"
    assert await registry.format('{"a":1}', "json", OPTIONS) == '{\n  "a": 1\n}'


@pytest.mark.asyncio
async def test_failure_reports_recovery_strategy() -> None:
    diagnostics = RecordingDiagnostics()
    registry = EmbeddedFormatterRegistry(diagnostics=diagnostics)
    assert await registry.format("{bad", "json", OPTIONS) == "{bad"
    (event,) = diagnostics.events
    assert event.details["recovery"] == "clean_snippet"


@pytest.mark.asyncio
async def test_plain_callables_are_adapted() -> None:
    async def shout(code: str, language: str, options: FormatterOptions) -> str:
        return f"{language}:{code}"

    registry = EmbeddedFormatterRegistry()
    registry.register("css", lambda code, language, options: code.replace(" ", ""))
    registry.register("html", shout)
    assert await registry.format("a { b }", "css", OPTIONS) == "a{b}"
    assert await registry.format("<p>", "xml", OPTIONS) == "html:<p>"


@pytest.mark.asyncio
async def test_snippet_metrics() -> None:
    collectors = CollectorRegistry()
    monitor = PerformanceMonitor(TsdocMetrics(collectors))
    registry = EmbeddedFormatterRegistry({"ts": BrokenFormatter()}).with_context(monitor=monitor)
    await registry.format("x", "ts", OPTIONS)
    await registry.format("x", "cobol", OPTIONS)
    assert collectors.get_sample_value(
        "tsdoc_embedded_snippets_total", {"language": "ts", "status": "failed"}
    ) == 1.0
    assert collectors.get_sample_value(
        "tsdoc_embedded_snippets_total", {"language": "cobol", "status": "unsupported"}
    ) == 1.0
    assert monitor.snapshot().formatting_errors == 1

"""Normalize and re-layout TSDoc documentation comments in TypeScript sources.

The package parses ``/** ... */`` comments into a structured model, applies
tag normalization and the release-tag policy, and prints the result within
the configured width. :func:`format_source` rewrites every documentation
comment of a source file; :class:`CommentFormatter` works on one comment.
"""

from __future__ import annotations

from tsdoc_normalizer.cache import ParserCache, get_parser_cache
from tsdoc_normalizer.config import (
    DEFAULT_OPTIONS,
    FormatterOptions,
    load_options,
    options_from_mapping,
)
from tsdoc_normalizer.embedded import EmbeddedFormatterRegistry
from tsdoc_normalizer.errors import (
    ConfigurationError,
    ContextError,
    EmbeddedFormatError,
    ParseError,
    RenderError,
    TsdocError,
)
from tsdoc_normalizer.models import CommentModel, ExportContext
from tsdoc_normalizer.pipeline import (
    CommentFormatter,
    CommentResult,
    CommentStatus,
    SourceReport,
    format_source,
    format_source_report,
    format_source_sync,
)

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_OPTIONS",
    "CommentFormatter",
    "CommentModel",
    "CommentResult",
    "CommentStatus",
    "ConfigurationError",
    "ContextError",
    "EmbeddedFormatError",
    "EmbeddedFormatterRegistry",
    "ExportContext",
    "FormatterOptions",
    "ParseError",
    "ParserCache",
    "RenderError",
    "SourceReport",
    "TsdocError",
    "__version__",
    "format_source",
    "format_source_report",
    "format_source_sync",
    "get_parser_cache",
    "load_options",
    "options_from_mapping",
]

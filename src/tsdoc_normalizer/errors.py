"""Error taxonomy and recovery classification for the comment pipeline.

Every stage of the pipeline wraps its own failure in one of the classes below
so the caller can narrow the blast radius to one comment or one code snippet.
Only :class:`ConfigurationError` ever reaches users, and only while options are
being loaded.

Examples
--------
>>> from tsdoc_normalizer.errors import ErrorCode, ParseError, classify_error
>>> classify_error(ParseError("unterminated code fence"))
<ErrorCode.PARSE: 'parse'>
"""

from __future__ import annotations

from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

__all__ = [
    "ConfigurationError",
    "ContextError",
    "EmbeddedFormatError",
    "ErrorCode",
    "ParseError",
    "RecoveryStrategy",
    "RenderError",
    "TsdocError",
    "classify_error",
    "recovery_strategy_for",
]


class ErrorCode(StrEnum):
    """Failure categories reported by the pipeline.

    Attributes
    ----------
    PARSE
        The structured-comment parser rejected the comment body.
    FORMAT
        An embedded-language sub-formatter failed on a code snippet.
    AST
        Walking the declaration tree failed while computing the context.
    CONFIG
        An option value could not be resolved.
    RENDER
        Building or printing the layout document failed.
    """

    PARSE = "parse"
    FORMAT = "format"
    AST = "ast"
    CONFIG = "config"
    RENDER = "render"


class RecoveryStrategy(StrEnum):
    """What the pipeline does after a classified failure."""

    RETURN_ORIGINAL = "return_original"
    SKIP_FORMATTING = "skip_formatting"
    UNSTRUCTURED_SUMMARY = "unstructured_summary"
    CLEAN_SNIPPET = "clean_snippet"


class TsdocError(RuntimeError):
    """Base class for all formatter errors.

    Parameters
    ----------
    message : str
        Human-readable description.
    cause : BaseException | None, optional
        Underlying exception, also chained through ``raise ... from``.
    context : Mapping[str, object] | None, optional
        Structured details attached to diagnostics.

    Attributes
    ----------
    code : ErrorCode
        Category of the failure; fixed per subclass.
    """

    code: ErrorCode = ErrorCode.RENDER

    def __init__(
        self,
        message: str,
        *,
        cause: BaseException | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.context: dict[str, object] = dict(context or {})

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message} (caused by {type(self.cause).__name__}: {self.cause})"


class ParseError(TsdocError):
    """Raised when the comment parser reports a fatal syntax error."""

    code = ErrorCode.PARSE


class ContextError(TsdocError):
    """Raised when the declaration tree cannot be walked."""

    code = ErrorCode.AST


class EmbeddedFormatError(TsdocError):
    """Raised when a fenced code snippet cannot be sub-formatted."""

    code = ErrorCode.FORMAT


class RenderError(TsdocError):
    """Raised when the layout document cannot be built or printed."""

    code = ErrorCode.RENDER


class ConfigurationError(TsdocError):
    """Raised when formatter options are invalid."""

    code = ErrorCode.CONFIG


_MESSAGE_HINTS: tuple[tuple[ErrorCode, tuple[str, ...]], ...] = (
    (ErrorCode.PARSE, ("parse", "syntax", "token", "unterminated")),
    (ErrorCode.AST, ("ast", "node", "tree", "declaration")),
    (ErrorCode.CONFIG, ("option", "config", "setting")),
)

_RECOVERY: Mapping[ErrorCode, RecoveryStrategy] = MappingProxyType(
    {
        ErrorCode.PARSE: RecoveryStrategy.UNSTRUCTURED_SUMMARY,
        ErrorCode.AST: RecoveryStrategy.SKIP_FORMATTING,
        ErrorCode.CONFIG: RecoveryStrategy.RETURN_ORIGINAL,
        ErrorCode.FORMAT: RecoveryStrategy.RETURN_ORIGINAL,
        ErrorCode.RENDER: RecoveryStrategy.RETURN_ORIGINAL,
    }
)


def classify_error(error: BaseException) -> ErrorCode:
    """Return the category of ``error``.

    Taxonomy classes carry their own code. Foreign exceptions are classified by
    keywords in their message and default to :attr:`ErrorCode.FORMAT`.

    Parameters
    ----------
    error : BaseException
        Exception raised by a pipeline stage.

    Returns
    -------
    ErrorCode
        Category used to pick the recovery strategy.
    """
    if isinstance(error, TsdocError):
        return error.code
    text = str(error).lower()
    for code, hints in _MESSAGE_HINTS:
        if any(hint in text for hint in hints):
            return code
    return ErrorCode.FORMAT


def recovery_strategy_for(error: BaseException | ErrorCode) -> RecoveryStrategy:
    """Return the recovery strategy for an error or error category.

    Parameters
    ----------
    error : BaseException | ErrorCode
        Exception instance or an already classified category.

    Returns
    -------
    RecoveryStrategy
        How the pipeline degrades.
    """
    if isinstance(error, EmbeddedFormatError):
        return RecoveryStrategy.CLEAN_SNIPPET
    code = error if isinstance(error, ErrorCode) else classify_error(error)
    return _RECOVERY[code]

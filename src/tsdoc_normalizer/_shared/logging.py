"""Structured logging helpers for ``tsdoc_normalizer``.

Every module obtains its logger through :func:`get_logger`, which returns a
:class:`LoggerAdapter` that injects ``operation``, ``status`` and
``correlation_id`` fields into each record. Library modules never configure
handlers; the CLI calls :func:`setup_logging` at the application boundary.

Examples
--------
>>> from tsdoc_normalizer._shared.logging import get_logger, with_fields
>>> logger = get_logger(__name__)
>>> logger.info("Formatting started", extra={"operation": "format_source"})
>>> adapter = with_fields(logger, operation="format_comment", comment_index=3)
>>> adapter.debug("Comment skipped")
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Self, TypeAlias

if TYPE_CHECKING:
    from collections.abc import Mapping, MutableMapping
    from types import TracebackType

__all__ = [
    "CorrelationContext",
    "JsonFormatter",
    "LogContextExtra",
    "LogValue",
    "LoggerAdapter",
    "get_correlation_id",
    "get_logger",
    "set_correlation_id",
    "setup_logging",
    "with_fields",
]

LogValue: TypeAlias = "Any"

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "tsdoc_correlation_id", default=None
)

_STANDARD_RECORD_ATTRIBUTES = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


@dataclass(frozen=True, slots=True)
class LogContextExtra:
    """Immutable set of structured fields bound to an adapter.

    Attributes
    ----------
    correlation_id : str | None
        Identifier shared by every record of one run.
    operation : str | None
        Pipeline stage emitting the record (``parse``, ``layout``...).
    status : str | None
        Outcome of the operation (``success``, ``skipped``, ``error``).
    duration_ms : float | None
        Duration of the operation in milliseconds.
    """

    correlation_id: str | None = None
    operation: str | None = None
    status: str | None = None
    duration_ms: float | None = None

    def with_operation(self, operation: str) -> Self:
        """Return a copy bound to ``operation``.

        Parameters
        ----------
        operation : str
            Operation name to set.

        Returns
        -------
        Self
            New instance with the updated operation.
        """
        return replace(self, operation=operation)

    def with_status(self, status: str) -> Self:
        """Return a copy bound to ``status``.

        Parameters
        ----------
        status : str
            Status value to set.

        Returns
        -------
        Self
            New instance with the updated status.
        """
        return replace(self, status=status)

    def to_dict(self) -> dict[str, Any]:
        """Return the non-empty fields as a dictionary.

        Returns
        -------
        dict[str, Any]
            Mapping of populated field names to values.
        """
        values = {
            "correlation_id": self.correlation_id,
            "operation": self.operation,
            "status": self.status,
            "duration_ms": self.duration_ms,
        }
        return {key: value for key, value in values.items() if value is not None}


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:
        """Format ``record`` as JSON.

        Parameters
        ----------
        record : logging.LogRecord
            Record to format; extra fields are read from its ``__dict__``.

        Returns
        -------
        str
            JSON-encoded log entry.
        """
        data: dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if "correlation_id" not in record.__dict__:
            correlation_id = _correlation_id.get()
            if correlation_id is not None:
                data["correlation_id"] = correlation_id
        for key, value in record.__dict__.items():
            if (
                key in _STANDARD_RECORD_ATTRIBUTES
                or key in data
                or key.startswith("_")
                or value is None
            ):
                continue
            if isinstance(value, (str, int, float, bool, list, dict)):
                data[key] = value
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


class LoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that merges bound fields into every record.

    Parameters
    ----------
    logger : logging.Logger
        Base logger instance to wrap.
    extra : LogContextExtra | Mapping[str, object] | None, optional
        Structured fields injected into each record. Defaults to None.
    """

    def __init__(
        self,
        logger: logging.Logger,
        extra: LogContextExtra | Mapping[str, object] | None = None,
    ) -> None:
        if isinstance(extra, LogContextExtra):
            bound: dict[str, object] = dict(extra.to_dict())
        else:
            bound = dict(extra or {})
        super().__init__(logger, bound)

    def process(
        self, msg: object, kwargs: MutableMapping[str, Any]
    ) -> tuple[object, MutableMapping[str, Any]]:
        """Inject bound fields, the correlation id and default status fields.

        Parameters
        ----------
        msg : object
            Log message.
        kwargs : MutableMapping[str, Any]
            Keyword arguments of the logging call.

        Returns
        -------
        tuple[object, MutableMapping[str, Any]]
            The message and the keyword arguments with ``extra`` populated.
        """
        extra = kwargs.get("extra")
        merged: dict[str, Any] = dict(extra) if isinstance(extra, dict) else {}
        for key, value in (self.extra or {}).items():
            merged.setdefault(key, value)
        if "correlation_id" not in merged:
            correlation_id = _correlation_id.get()
            if correlation_id is not None:
                merged["correlation_id"] = correlation_id
        merged.setdefault("operation", "unknown")
        kwargs["extra"] = merged
        return msg, kwargs

    def log(self, level: int, msg: object, *args: object, **kwargs: Any) -> None:
        """Log ``msg`` at ``level`` with a status inferred from the level."""
        extra = kwargs.get("extra")
        merged: dict[str, Any] = dict(extra) if isinstance(extra, dict) else {}
        if "status" not in merged and "status" not in (self.extra or {}):
            if level >= logging.ERROR:
                merged["status"] = "error"
            elif level >= logging.WARNING:
                merged["status"] = "warning"
            else:
                merged["status"] = "success"
        kwargs["extra"] = merged
        super().log(level, msg, *args, **kwargs)


def get_logger(name: str) -> LoggerAdapter:
    """Return a structured adapter for ``name``.

    A ``NullHandler`` is attached when the logger has no handlers so importing
    the package never prints anything on its own.

    Parameters
    ----------
    name : str
        Logger name, typically ``__name__``.

    Returns
    -------
    LoggerAdapter
        Adapter injecting structured fields.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    return LoggerAdapter(logger, {})


def with_fields(logger: logging.Logger | LoggerAdapter, **fields: LogValue) -> LoggerAdapter:
    """Return an adapter bound to ``fields``.

    Parameters
    ----------
    logger : logging.Logger | LoggerAdapter
        Base logger; adapters are unwrapped and their bound fields kept.
    **fields : LogValue
        Structured fields to inject into every record.

    Returns
    -------
    LoggerAdapter
        Adapter with the merged fields.
    """
    if isinstance(logger, LoggerAdapter):
        merged = dict(logger.extra or {})
        merged.update(fields)
        return LoggerAdapter(logger.logger, merged)
    return LoggerAdapter(logger, fields)


def setup_logging(level: int = logging.INFO, *, json_output: bool = False) -> None:
    """Configure the root logger for command-line use.

    Parameters
    ----------
    level : int, optional
        Threshold for the root logger. Defaults to ``logging.INFO``.
    json_output : bool, optional
        Emit JSON documents instead of plain text. Defaults to False.
    """
    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    logging.basicConfig(level=level, handlers=[handler], force=True)


def set_correlation_id(correlation_id: str | None) -> None:
    """Set the correlation id for the current context."""
    _correlation_id.set(correlation_id)


def get_correlation_id() -> str | None:
    """Return the correlation id of the current context, if any."""
    return _correlation_id.get()


class CorrelationContext:
    """Scope a correlation id and restore the previous one on exit.

    Parameters
    ----------
    correlation_id : str | None
        Identifier to bind for the duration of the block.

    Examples
    --------
    >>> with CorrelationContext("urn:tsdoc:correlation:abc"):
    ...     assert get_correlation_id() == "urn:tsdoc:correlation:abc"
    """

    def __init__(self, correlation_id: str | None) -> None:
        self.correlation_id = correlation_id
        self._token: contextvars.Token[str | None] | None = None

    def __enter__(self) -> Self:
        self._token = _correlation_id.set(self.correlation_id)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._token is not None:
            _correlation_id.reset(self._token)
        del exc_type, exc_val, exc_tb

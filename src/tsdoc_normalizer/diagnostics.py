"""Diagnostics sinks injected into the formatting pipeline.

Stages report why a comment or snippet was skipped or degraded through a
:class:`Diagnostics` object handed to them by the caller. The default sink is
silent; the CLI switches to :class:`LoggingDiagnostics` when debugging is
requested, and tests use :class:`RecordingDiagnostics` to assert on events.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

from tsdoc_normalizer._shared.logging import get_logger, with_fields

if TYPE_CHECKING:
    from collections.abc import Mapping

    from tsdoc_normalizer._shared.logging import LoggerAdapter

__all__ = [
    "DiagnosticEvent",
    "DiagnosticLevel",
    "Diagnostics",
    "LoggingDiagnostics",
    "NullDiagnostics",
    "RecordingDiagnostics",
]


class DiagnosticLevel(StrEnum):
    """Severity of a diagnostic event."""

    DEBUG = "debug"
    WARNING = "warning"


@dataclass(frozen=True, slots=True)
class DiagnosticEvent:
    """One reported event: the stage, a short reason and optional details."""

    level: DiagnosticLevel
    stage: str
    reason: str
    details: Mapping[str, object] = field(default_factory=dict)


class Diagnostics(Protocol):
    """Sink receiving skip reasons and degradations from pipeline stages."""

    def debug(self, stage: str, reason: str, **details: object) -> None:
        """Report a routine event such as a skipped comment."""
        ...

    def warning(self, stage: str, reason: str, **details: object) -> None:
        """Report a degradation such as a failed sub-formatter."""
        ...


class NullDiagnostics:
    """Sink that discards every event."""

    def debug(self, stage: str, reason: str, **details: object) -> None:
        del stage, reason, details

    def warning(self, stage: str, reason: str, **details: object) -> None:
        del stage, reason, details


class LoggingDiagnostics:
    """Sink forwarding events to the structured logger.

    Parameters
    ----------
    logger : LoggerAdapter | None, optional
        Logger to emit through. Defaults to this module's logger.
    """

    def __init__(self, logger: LoggerAdapter | None = None) -> None:
        self._logger = logger or get_logger(__name__)

    def debug(self, stage: str, reason: str, **details: object) -> None:
        adapter = with_fields(self._logger, operation=stage, status="skipped")
        adapter.debug("%s", reason, extra={"details": _stringify(details)})

    def warning(self, stage: str, reason: str, **details: object) -> None:
        adapter = with_fields(self._logger, operation=stage, status="degraded")
        adapter.warning("%s", reason, extra={"details": _stringify(details)})


class RecordingDiagnostics:
    """Sink keeping every event in memory, in order."""

    def __init__(self) -> None:
        self.events: list[DiagnosticEvent] = []

    def debug(self, stage: str, reason: str, **details: object) -> None:
        self.events.append(DiagnosticEvent(DiagnosticLevel.DEBUG, stage, reason, details))

    def warning(self, stage: str, reason: str, **details: object) -> None:
        self.events.append(DiagnosticEvent(DiagnosticLevel.WARNING, stage, reason, details))

    def reasons(self, stage: str | None = None) -> list[str]:
        """Return recorded reasons, optionally restricted to ``stage``.

        Parameters
        ----------
        stage : str | None, optional
            Stage filter. Defaults to every stage.

        Returns
        -------
        list[str]
            Reasons in the order they were reported.
        """
        return [event.reason for event in self.events if stage is None or event.stage == stage]


def _stringify(details: Mapping[str, object]) -> dict[str, str]:
    return {key: str(value) for key, value in details.items()}

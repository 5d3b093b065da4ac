"""Command-line interface for the documentation comment formatter.

``format`` rewrites files in place (or prints them with ``--stdout``) and
``check`` lists the files whose comments would change, exiting with status 1
when there are any. Both walk directories for TypeScript and JavaScript
sources, skipping ``node_modules`` and hidden directories.

Usage
-----
``tsdoc-normalizer check src/`` or ``python -m tsdoc_normalizer format --option
alignParamTags=true src/index.ts``.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
import time
from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING, TypeAlias, cast

from pydantic import BaseModel, Field

from tsdoc_normalizer._shared.logging import (
    CorrelationContext,
    get_logger,
    setup_logging,
    with_fields,
)
from tsdoc_normalizer.config import load_options_with_selection
from tsdoc_normalizer.constants import ENV_DEBUG, JSX_SUFFIXES, SOURCE_SUFFIXES
from tsdoc_normalizer.diagnostics import LoggingDiagnostics, NullDiagnostics
from tsdoc_normalizer.errors import ConfigurationError
from tsdoc_normalizer.observability import get_correlation_id
from tsdoc_normalizer.pipeline import CommentFormatter, CommentStatus, format_source_report

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence

    from tsdoc_normalizer.diagnostics import Diagnostics

    CommandHandler: TypeAlias = "Callable[[argparse.Namespace], int]"

__all__ = [
    "CliReport",
    "ExitStatus",
    "FileReport",
    "build_parser",
    "iter_source_files",
    "main",
]

LOGGER = get_logger(__name__)

_SKIPPED_DIRECTORIES = frozenset({"node_modules"})
_TRUTHY = frozenset({"1", "true", "yes", "on"})


class ExitStatus(IntEnum):
    """Standardised exit codes for CLI subcommands."""

    SUCCESS = 0
    VIOLATION = 1
    CONFIG = 2
    ERROR = 3


class FileReport(BaseModel):
    """Per-file entry of the JSON report."""

    path: str
    changed: bool = False
    comments: int = 0
    formatted: int = 0
    skipped: int = 0
    failed: int = 0
    error: str | None = None


class CliReport(BaseModel):
    """JSON document printed with ``--json``."""

    command: str
    status: str
    exit_code: int
    correlation_id: str
    config_source: str | None = None
    duration_seconds: float = 0.0
    files: list[FileReport] = Field(default_factory=list)

    @property
    def changed_files(self) -> list[str]:
        return [entry.path for entry in self.files if entry.changed]


def iter_source_files(paths: Sequence[Path]) -> Iterator[Path]:
    """Yield source files under ``paths`` in sorted order.

    Files named explicitly are yielded whatever their suffix.

    Raises
    ------
    FileNotFoundError
        If a path does not exist.
    """
    for path in paths:
        if path.is_file():
            yield path
            continue
        if not path.is_dir():
            message = f"No such file or directory: {path}"
            raise FileNotFoundError(message)
        for root, directories, files in os.walk(path):
            directories[:] = sorted(
                name
                for name in directories
                if name not in _SKIPPED_DIRECTORIES and not name.startswith(".")
            )
            for name in sorted(files):
                candidate = Path(root) / name
                if candidate.suffix in SOURCE_SUFFIXES:
                    yield candidate


def _debug_enabled(args: argparse.Namespace) -> bool:
    return bool(args.debug) or os.environ.get(ENV_DEBUG, "").strip().lower() in _TRUTHY


def _cli_overrides(args: argparse.Namespace) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for item in args.option or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            message = f"--option expects key=value, got '{item}'"
            raise ConfigurationError(message)
        overrides[key.strip()] = value.strip()
    if args.print_width is not None:
        overrides["print_width"] = args.print_width
    return overrides


async def _process_files(
    files: list[Path],
    formatter: CommentFormatter,
    *,
    write: bool,
    to_stdout: bool,
) -> list[FileReport]:
    reports: list[FileReport] = []
    for path in files:
        entry = FileReport(path=str(path))
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            entry.error = f"{type(exc).__name__}: {exc}"
            reports.append(entry)
            continue
        report = await format_source_report(
            text, formatter=formatter, jsx=path.suffix in JSX_SUFFIXES
        )
        entry.changed = report.text != text
        entry.comments = len(report.comments)
        entry.formatted = report.count(CommentStatus.FORMATTED)
        entry.skipped = report.count(CommentStatus.SKIPPED)
        entry.failed = report.count(CommentStatus.FAILED)
        if to_stdout:
            sys.stdout.write(report.text)
        elif write and entry.changed:
            path.write_text(report.text, encoding="utf-8")
        reports.append(entry)
    return reports


def _run(args: argparse.Namespace, *, write: bool) -> int:
    command = str(args.invoked_subcommand)
    correlation_id = get_correlation_id()
    started = time.monotonic()
    logger = with_fields(LOGGER, operation=command, correlation_id=correlation_id)
    cli_report = CliReport(
        command=command,
        status="success",
        exit_code=int(ExitStatus.SUCCESS),
        correlation_id=correlation_id,
    )
    with CorrelationContext(correlation_id):
        try:
            options, selection = load_options_with_selection(
                args.config, cli_overrides=_cli_overrides(args)
            )
        except ConfigurationError as exc:
            logger.error("Invalid configuration: %s", exc)
            return _finish(args, cli_report, ExitStatus.CONFIG, started)
        cli_report.config_source = selection.source

        try:
            files = list(iter_source_files([Path(item) for item in args.paths]))
        except FileNotFoundError as exc:
            logger.error("%s", exc)
            return _finish(args, cli_report, ExitStatus.ERROR, started)

        diagnostics: Diagnostics = (
            LoggingDiagnostics(logger) if _debug_enabled(args) else NullDiagnostics()
        )
        formatter = CommentFormatter(options, diagnostics=diagnostics)
        cli_report.files = asyncio.run(
            _process_files(
                files,
                formatter,
                write=write,
                to_stdout=bool(getattr(args, "stdout", False)),
            )
        )

    status = ExitStatus.SUCCESS
    if any(entry.error for entry in cli_report.files):
        status = ExitStatus.ERROR
    elif not write and cli_report.changed_files:
        status = ExitStatus.VIOLATION
    if not args.json:
        for entry in cli_report.files:
            if entry.error:
                sys.stderr.write(f"error: {entry.path}: {entry.error}\n")
            elif entry.changed and not write:
                sys.stdout.write(f"would reformat {entry.path}\n")
            elif entry.changed and not getattr(args, "stdout", False):
                sys.stdout.write(f"reformatted {entry.path}\n")
    logger.info(
        "Processed %d file(s)",
        len(cli_report.files),
        extra={"changed": len(cli_report.changed_files)},
    )
    return _finish(args, cli_report, status, started)


def _finish(
    args: argparse.Namespace, report: CliReport, status: ExitStatus, started: float
) -> int:
    report.exit_code = int(status)
    report.status = status.name.lower()
    report.duration_seconds = round(time.monotonic() - started, 6)
    if args.json:
        sys.stdout.write(report.model_dump_json(indent=2) + "\n")
    return int(status)


def _command_format(args: argparse.Namespace) -> int:
    return _run(args, write=True)


def _command_check(args: argparse.Namespace) -> int:
    return _run(args, write=False)


def _configure_format_subparser(subparser: argparse.ArgumentParser) -> None:
    subparser.add_argument(
        "--stdout",
        action="store_true",
        help="Print formatted sources instead of writing them",
    )


def _add_shared_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("paths", nargs="+", help="Files or directories to process")
    parser.add_argument("--config", help="Path to a configuration file")
    parser.add_argument(
        "--option",
        action="append",
        metavar="KEY=VALUE",
        help="Override one option; may be repeated",
    )
    parser.add_argument("--print-width", type=int, help="Maximum line width")
    parser.add_argument(
        "--debug",
        action="store_true",
        help=f"Log skip reasons (also enabled by {ENV_DEBUG}=1)",
    )
    parser.add_argument("--json", action="store_true", help="Emit a JSON report")


SUBCOMMAND_SPECS: tuple[dict[str, object], ...] = (
    {
        "name": "format",
        "help_text": "Format documentation comments in place",
        "handler": _command_format,
        "configure": _configure_format_subparser,
    },
    {
        "name": "check",
        "help_text": "Report files whose documentation comments would change",
        "handler": _command_check,
    },
)


def _register_subcommand(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    spec: dict[str, object],
) -> None:
    name = str(spec["name"])
    handler = cast("CommandHandler", spec["handler"])
    configure = cast("Callable[[argparse.ArgumentParser], None] | None", spec.get("configure"))
    subparser = subparsers.add_parser(name, help=str(spec.get("help_text", "")))
    _add_shared_arguments(subparser)
    if configure is not None:
        configure(subparser)
    subparser.set_defaults(func=handler, invoked_subcommand=name)


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Parser with the ``format`` and ``check`` subcommands registered.
    """
    parser = argparse.ArgumentParser(prog="tsdoc-normalizer")
    subparsers = parser.add_subparsers(dest="subcommand")
    for spec in SUBCOMMAND_SPECS:
        _register_subcommand(subparsers, spec)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Execute the CLI.

    Parameters
    ----------
    argv : list[str] | None, optional
        Command-line arguments. If None, uses sys.argv.

    Returns
    -------
    int
        Exit code, one of :class:`ExitStatus`.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return int(ExitStatus.CONFIG)
    setup_logging(
        logging.DEBUG if _debug_enabled(args) else logging.WARNING, json_output=args.json
    )
    handler = cast("CommandHandler", args.func)
    try:
        return handler(args)
    except Exception:
        LOGGER.exception("Unexpected failure", extra={"operation": args.invoked_subcommand})
        return int(ExitStatus.ERROR)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

"""Formatter options and their loading from TOML, environment and CLI overrides.

Options resolve with the following precedence, lowest first: built-in defaults,
the ``[tool.tsdoc_normalizer]`` table (from ``pyproject.toml`` or a standalone
``tsdoc_normalizer.toml``), the ``TSDOC_NORMALIZER_OPTIONS`` environment
variable (comma separated ``key=value`` pairs) and explicit CLI overrides.

Keys may be written in snake_case, kebab-case or camelCase, so an existing
Prettier-style configuration (``defaultReleaseTag``, ``onlyExportedAPI``...)
can be pasted into the TOML table unchanged.
"""

from __future__ import annotations

import hashlib
import json
import os
import re
import tomllib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any, Literal, cast

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from tsdoc_normalizer._shared.logging import get_logger
from tsdoc_normalizer.constants import (
    BUILTIN_TAG_NORMALIZATIONS,
    COMMENT_PREFIX_WIDTH,
    CONFIG_TABLE,
    ENV_CONFIG_PATH,
    ENV_OPTIONS,
    MIN_EFFECTIVE_WIDTH,
)
from tsdoc_normalizer.errors import ConfigurationError

LOGGER = get_logger(__name__)

DEFAULT_CONFIG_NAME = "tsdoc_normalizer.toml"
PYPROJECT_NAME = "pyproject.toml"
_DISABLED_RELEASE_TAG_VALUES = frozenset({"", "none", "null", "false", "off"})
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


class FencedIndent(StrEnum):
    """Indentation applied to formatted fenced code lines."""

    SPACE = "space"
    NONE = "none"


class ReleaseTagStrategy(StrEnum):
    """Which release tag survives deduplication."""

    KEEP_FIRST = "keep-first"
    KEEP_LAST = "keep-last"


class EmbeddedFormatting(StrEnum):
    """Whether fenced code is handed to embedded-language formatters."""

    AUTO = "auto"
    OFF = "off"


@dataclass(frozen=True, slots=True)
class FormatterOptions:
    """Resolved, immutable formatter configuration.

    Attributes
    ----------
    fenced_indent : FencedIndent
        ``space`` prefixes formatted code lines with one space. Defaults to ``space``.
    force_format_tsdoc : bool
        Format every ``/**`` comment, skipping the candidate heuristic.
    normalize_tag_order : bool
        Reorder other tags by tag class.
    dedupe_release_tags : bool
        Keep at most one release tag. Defaults to True.
    split_modifiers : bool
        Render each modifier tag on its own line. Defaults to True.
    single_sentence_summary : bool
        Keep only the first summary sentence, moving the rest into the remarks.
    extra_tags : tuple[str, ...]
        Additional tag names recognized by the parser.
    normalize_tags : dict[str, str]
        User tag spelling overrides; they win over the built-in table.
    release_tag_strategy : ReleaseTagStrategy
        ``keep-first`` or ``keep-last``.
    align_param_tags : bool
        Align the hyphen column of parameter-like tags.
    default_release_tag : str | None
        Tag inserted on eligible declarations; None disables insertion.
    only_exported_api : bool
        Gate insertion on the declaration being exported. Defaults to True.
    inheritance_aware : bool
        Let container members and enum properties inherit instead of
        receiving a default. Defaults to True.
    embedded_language_formatting : EmbeddedFormatting
        ``off`` leaves fenced code as the cleaned snippet.
    closure_compiler_compat : bool
        Enable the legacy annotation transformer. Defaults to True.
    print_width, tab_width, use_tabs
        Host layout options used to compute the effective width.
    """

    fenced_indent: FencedIndent = FencedIndent.SPACE
    force_format_tsdoc: bool = False
    normalize_tag_order: bool = False
    dedupe_release_tags: bool = True
    split_modifiers: bool = True
    single_sentence_summary: bool = False
    extra_tags: tuple[str, ...] = ()
    normalize_tags: dict[str, str] = field(default_factory=dict)
    release_tag_strategy: ReleaseTagStrategy = ReleaseTagStrategy.KEEP_FIRST
    align_param_tags: bool = False
    default_release_tag: str | None = "@internal"
    only_exported_api: bool = True
    inheritance_aware: bool = True
    embedded_language_formatting: EmbeddedFormatting = EmbeddedFormatting.AUTO
    closure_compiler_compat: bool = True
    print_width: int = 80
    tab_width: int = 2
    use_tabs: bool = False

    @property
    def tag_normalizations(self) -> dict[str, str]:
        """Return the built-in spelling table overlaid with user overrides."""
        merged = dict(BUILTIN_TAG_NORMALIZATIONS)
        merged.update(self.normalize_tags)
        return merged

    @property
    def config_hash(self) -> str:
        """Return a stable hash of every option value."""
        payload = {
            "fenced_indent": str(self.fenced_indent),
            "force_format_tsdoc": self.force_format_tsdoc,
            "normalize_tag_order": self.normalize_tag_order,
            "dedupe_release_tags": self.dedupe_release_tags,
            "split_modifiers": self.split_modifiers,
            "single_sentence_summary": self.single_sentence_summary,
            "extra_tags": sorted(self.extra_tags),
            "normalize_tags": self.normalize_tags,
            "release_tag_strategy": str(self.release_tag_strategy),
            "align_param_tags": self.align_param_tags,
            "default_release_tag": self.default_release_tag,
            "only_exported_api": self.only_exported_api,
            "inheritance_aware": self.inheritance_aware,
            "embedded_language_formatting": str(self.embedded_language_formatting),
            "closure_compiler_compat": self.closure_compiler_compat,
            "print_width": self.print_width,
            "tab_width": self.tab_width,
            "use_tabs": self.use_tabs,
        }
        blob = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
        return hashlib.sha256(blob).hexdigest()

    def effective_width(self, indent_level: int = 0) -> int:
        """Return the width available for comment content.

        Parameters
        ----------
        indent_level : int, optional
            Indentation of the comment, in columns when spaces are used and
            in tab characters when ``use_tabs`` is set. Defaults to 0.

        Returns
        -------
        int
            ``max(print_width - indent_width - 3, 20)``.

        Examples
        --------
        >>> FormatterOptions(print_width=80).effective_width(4)
        69
        >>> FormatterOptions(print_width=30).effective_width(8)
        20
        """
        indent_width = indent_level if self.use_tabs else indent_level * self.tab_width
        return max(self.print_width - indent_width - COMMENT_PREFIX_WIDTH, MIN_EFFECTIVE_WIDTH)

    def width_for_indent(self, indent: str) -> int:
        """Return the effective width for a comment starting after ``indent``.

        Tabs expand to ``tab_width`` columns.
        """
        columns = len(indent.expandtabs(self.tab_width))
        return max(self.print_width - columns - COMMENT_PREFIX_WIDTH, MIN_EFFECTIVE_WIDTH)

    def with_overrides(self, **changes: Any) -> FormatterOptions:
        """Return a copy with ``changes`` validated and applied.

        Raises
        ------
        ConfigurationError
            If a key is unknown or a value is invalid.
        """
        current = _options_to_mapping(self)
        current.update({normalized_key(key): value for key, value in changes.items()})
        return _build_options(current)


class _OptionsModel(BaseModel):
    """Validation model for raw option mappings."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    fenced_indent: Literal["space", "none"] = "space"
    force_format_tsdoc: bool = False
    normalize_tag_order: bool = False
    dedupe_release_tags: bool = True
    split_modifiers: bool = True
    single_sentence_summary: bool = False
    extra_tags: list[str] = []
    normalize_tags: dict[str, str] = {}
    release_tag_strategy: Literal["keep-first", "keep-last"] = "keep-first"
    align_param_tags: bool = False
    default_release_tag: str | None = "@internal"
    only_exported_api: bool = True
    inheritance_aware: bool = True
    embedded_language_formatting: Literal["auto", "off"] = "auto"
    closure_compiler_compat: bool = True
    print_width: int = 80
    tab_width: int = 2
    use_tabs: bool = False

    @field_validator("default_release_tag", mode="before")
    @classmethod
    def _release_tag(cls, value: object) -> str | None:
        if value is None or value is False:
            return None
        text = str(value).strip()
        if text.lower() in _DISABLED_RELEASE_TAG_VALUES:
            return None
        return _tag_name(text)

    @field_validator("extra_tags", mode="before")
    @classmethod
    def _extra_tags(cls, value: object) -> list[str]:
        return [_tag_name(item) for item in _as_list(value) if item.strip()]

    @field_validator("normalize_tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: object) -> dict[str, str]:
        if not isinstance(value, Mapping):
            message = f"normalize_tags must be a table of tag names, got {value!r}"
            raise TypeError(message)
        return {_tag_name(str(key)): _tag_name(str(target)) for key, target in value.items()}

    @field_validator("print_width", "tab_width")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            message = "widths must be positive"
            raise ValueError(message)
        return value


@dataclass(slots=True)
class ConfigSelection:
    """Selected configuration path and its provenance."""

    path: Path | None
    source: str


def _tag_name(value: str) -> str:
    text = value.strip()
    return text if text.startswith("@") else f"@{text}"


def _as_list(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item for item in re.split(r"[\s|]+", value) if item]
    if isinstance(value, Iterable):
        return [str(item) for item in value]
    msg = f"Unsupported list-like value: {value!r}"
    raise TypeError(msg)


def normalized_key(key: str) -> str:
    """Normalize a configuration key to snake_case.

    Parameters
    ----------
    key : str
        Raw key in snake_case, kebab-case or camelCase.

    Returns
    -------
    str
        Normalized key.

    Examples
    --------
    >>> normalized_key("onlyExportedAPI")
    'only_exported_api'
    >>> normalized_key("force-format-tsdoc")
    'force_format_tsdoc'
    """
    spaced = _CAMEL_BOUNDARY.sub("_", key.strip())
    return spaced.replace("-", "_").lower()


def _options_to_mapping(options: FormatterOptions) -> dict[str, object]:
    return {
        "fenced_indent": str(options.fenced_indent),
        "force_format_tsdoc": options.force_format_tsdoc,
        "normalize_tag_order": options.normalize_tag_order,
        "dedupe_release_tags": options.dedupe_release_tags,
        "split_modifiers": options.split_modifiers,
        "single_sentence_summary": options.single_sentence_summary,
        "extra_tags": list(options.extra_tags),
        "normalize_tags": dict(options.normalize_tags),
        "release_tag_strategy": str(options.release_tag_strategy),
        "align_param_tags": options.align_param_tags,
        "default_release_tag": options.default_release_tag,
        "only_exported_api": options.only_exported_api,
        "inheritance_aware": options.inheritance_aware,
        "embedded_language_formatting": str(options.embedded_language_formatting),
        "closure_compiler_compat": options.closure_compiler_compat,
        "print_width": options.print_width,
        "tab_width": options.tab_width,
        "use_tabs": options.use_tabs,
    }


def _build_options(mapping: Mapping[str, object]) -> FormatterOptions:
    """Validate ``mapping`` and return the resolved options.

    Raises
    ------
    ConfigurationError
        If keys are unknown or values are invalid.
    """
    try:
        model = _OptionsModel.model_validate(dict(mapping))
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
            for error in exc.errors()
        )
        message = f"Invalid formatter options: {problems}"
        raise ConfigurationError(message, cause=exc, context={"keys": sorted(mapping)}) from exc
    return FormatterOptions(
        fenced_indent=FencedIndent(model.fenced_indent),
        force_format_tsdoc=model.force_format_tsdoc,
        normalize_tag_order=model.normalize_tag_order,
        dedupe_release_tags=model.dedupe_release_tags,
        split_modifiers=model.split_modifiers,
        single_sentence_summary=model.single_sentence_summary,
        extra_tags=tuple(model.extra_tags),
        normalize_tags=dict(model.normalize_tags),
        release_tag_strategy=ReleaseTagStrategy(model.release_tag_strategy),
        align_param_tags=model.align_param_tags,
        default_release_tag=model.default_release_tag,
        only_exported_api=model.only_exported_api,
        inheritance_aware=model.inheritance_aware,
        embedded_language_formatting=EmbeddedFormatting(model.embedded_language_formatting),
        closure_compiler_compat=model.closure_compiler_compat,
        print_width=model.print_width,
        tab_width=model.tab_width,
        use_tabs=model.use_tabs,
    )


def _apply_mapping(target: dict[str, object], mapping: Mapping[str, object]) -> None:
    for raw_key, value in sorted(mapping.items(), key=lambda item: str(item[0])):
        target[normalized_key(str(raw_key))] = value


def _parse_override_pairs(raw: str) -> dict[str, str]:
    """Parse comma separated ``key=value`` pairs.

    Raises
    ------
    ConfigurationError
        If a chunk has no ``=``.
    """
    overrides: dict[str, str] = {}
    for chunk in raw.split(","):
        if not chunk.strip():
            continue
        if "=" not in chunk:
            message = f"Invalid option override '{chunk.strip()}'"
            raise ConfigurationError(message)
        key, value = chunk.split("=", 1)
        overrides[normalized_key(key)] = value.strip()
    return overrides


def _coerce_override(key: str, value: object) -> object:
    """Turn a textual override into the shape the validation model expects."""
    if not isinstance(value, str):
        return value
    if key == "normalize_tags":
        pairs: dict[str, str] = {}
        for item in _as_list(value):
            source, sep, target = item.partition(":")
            if not sep:
                message = f"normalize_tags override expects source:target, got '{item}'"
                raise ConfigurationError(message)
            pairs[source] = target
        return pairs
    if key == "extra_tags":
        return _as_list(value)
    return value


def _apply_overrides(target: dict[str, object], overrides: Mapping[str, object]) -> None:
    for raw_key, value in overrides.items():
        key = normalized_key(raw_key)
        target[key] = _coerce_override(key, value)


def _load_toml(path: Path) -> dict[str, object]:
    LOGGER.debug("Loading formatter config from %s", path)
    try:
        with path.open("rb") as stream:
            return cast("dict[str, object]", tomllib.load(stream))
    except tomllib.TOMLDecodeError as exc:
        message = f"Cannot parse configuration file {path}"
        raise ConfigurationError(message, cause=exc, context={"path": str(path)}) from exc


def read_options_table(path: Path) -> Mapping[str, object]:
    """Return the raw option table stored in ``path``.

    ``pyproject.toml`` files contribute their ``[tool.tsdoc_normalizer]``
    table; other files may use that table or put the options at top level.

    Parameters
    ----------
    path : Path
        TOML file to read.

    Returns
    -------
    Mapping[str, object]
        Raw, unvalidated option mapping (empty when the file is missing).

    Raises
    ------
    ConfigurationError
        If the file is not valid TOML or the table is not a mapping.
    """
    if not path.exists():
        LOGGER.debug("Formatter config missing at %s", path)
        return {}
    data = _load_toml(path)
    tool = data.get("tool")
    table: object = None
    if isinstance(tool, Mapping):
        table = tool.get(CONFIG_TABLE)
    if table is None and path.name != PYPROJECT_NAME:
        table = {key: value for key, value in data.items() if key != "tool"}
    if table is None:
        return {}
    if not isinstance(table, Mapping):
        message = f"[tool.{CONFIG_TABLE}] in {path} must be a table"
        raise ConfigurationError(message, context={"path": str(path)})
    return cast("Mapping[str, object]", table)


def _has_options_table(path: Path) -> bool:
    if path.name != PYPROJECT_NAME:
        return True
    try:
        data = _load_toml(path)
    except ConfigurationError:
        return False
    tool = data.get("tool")
    return isinstance(tool, Mapping) and CONFIG_TABLE in tool


def resolve_config_path(start: Path | None = None) -> Path | None:
    """Find the nearest configuration file by walking up from ``start``.

    A directory's ``tsdoc_normalizer.toml`` wins over its ``pyproject.toml``,
    which only counts when it carries a ``[tool.tsdoc_normalizer]`` table.
    """
    current = (start or Path.cwd()).resolve()
    if current.is_file():
        current = current.parent
    for directory in [current, *current.parents]:
        for name in (DEFAULT_CONFIG_NAME, PYPROJECT_NAME):
            candidate = directory / name
            if candidate.is_file() and _has_options_table(candidate):
                return candidate
    return None


def select_config_path(
    override: str | Path | None = None,
    *,
    start: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ConfigSelection:
    """Determine the configuration path honouring CLI and environment precedence."""
    if override:
        return ConfigSelection(path=Path(override).expanduser(), source="cli")
    env_mapping: Mapping[str, str] = os.environ if env is None else env
    env_override = env_mapping.get(ENV_CONFIG_PATH)
    if env_override:
        return ConfigSelection(
            path=Path(env_override).expanduser(), source=f"env:{ENV_CONFIG_PATH}"
        )
    discovered = resolve_config_path(start)
    if discovered is None:
        return ConfigSelection(path=None, source="default")
    return ConfigSelection(path=discovered, source="discovered")


def load_options(
    path: Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    env: Mapping[str, str] | None = None,
) -> FormatterOptions:
    """Load formatter options from a file, the environment and CLI overrides.

    Parameters
    ----------
    path : Path | None, optional
        Configuration file; None means defaults only.
    cli_overrides : Mapping[str, object] | None, optional
        Highest-precedence overrides.
    env : Mapping[str, str] | None, optional
        Environment mapping (defaults to ``os.environ``).

    Returns
    -------
    FormatterOptions
        Validated options.

    Raises
    ------
    ConfigurationError
        If any source holds an unknown key or an invalid value.
    """
    merged: dict[str, object] = {}
    if path is not None:
        _apply_mapping(merged, read_options_table(path))
    env_mapping: Mapping[str, str] = os.environ if env is None else env
    env_raw = env_mapping.get(ENV_OPTIONS, "")
    if env_raw:
        _apply_overrides(merged, _parse_override_pairs(env_raw))
    if cli_overrides:
        _apply_overrides(merged, cli_overrides)
    options = _build_options(merged)
    LOGGER.debug("Resolved formatter options", extra={"config_hash": options.config_hash})
    return options


def load_options_with_selection(
    override: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    start: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> tuple[FormatterOptions, ConfigSelection]:
    """Load options while also returning metadata about the file selection."""
    selection = select_config_path(override, start=start, env=env)
    options = load_options(selection.path, cli_overrides=cli_overrides, env=env)
    return options, selection


def options_from_mapping(mapping: Mapping[str, object]) -> FormatterOptions:
    """Validate an in-memory mapping (any key spelling) into options."""
    merged: dict[str, object] = {}
    _apply_mapping(merged, mapping)
    return _build_options(merged)


DEFAULT_OPTIONS = FormatterOptions()

__all__ = [
    "DEFAULT_OPTIONS",
    "ConfigSelection",
    "EmbeddedFormatting",
    "FencedIndent",
    "FormatterOptions",
    "ReleaseTagStrategy",
    "load_options",
    "load_options_with_selection",
    "normalized_key",
    "options_from_mapping",
    "read_options_table",
    "resolve_config_path",
    "select_config_path",
]

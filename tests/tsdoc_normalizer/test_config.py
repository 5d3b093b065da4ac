"""Tests for option validation and configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from tsdoc_normalizer.config import (
    DEFAULT_OPTIONS,
    EmbeddedFormatting,
    FencedIndent,
    FormatterOptions,
    ReleaseTagStrategy,
    load_options,
    load_options_with_selection,
    normalized_key,
    options_from_mapping,
    read_options_table,
    resolve_config_path,
    select_config_path,
)
from tsdoc_normalizer.errors import ConfigurationError


def test_defaults() -> None:
    options = FormatterOptions()
    assert options.fenced_indent is FencedIndent.SPACE
    assert options.release_tag_strategy is ReleaseTagStrategy.KEEP_FIRST
    assert options.embedded_language_formatting is EmbeddedFormatting.AUTO
    assert options.default_release_tag == "@internal"
    assert options.only_exported_api
    assert options.inheritance_aware
    assert options.closure_compiler_compat
    assert not options.align_param_tags
    assert options == DEFAULT_OPTIONS


@pytest.mark.parametrize(
    ("print_width", "indent", "expected"),
    [(80, 0, 77), (80, 4, 69), (30, 8, 20), (20, 0, 20)],
)
def test_effective_width(print_width: int, indent: int, expected: int) -> None:
    assert FormatterOptions(print_width=print_width).effective_width(indent) == expected


def test_effective_width_with_tabs() -> None:
    options = FormatterOptions(use_tabs=True)
    assert options.effective_width(2) == 75
    assert options.width_for_indent("\t") == 75
    assert FormatterOptions().width_for_indent("    ") == 73


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("onlyExportedAPI", "only_exported_api"),
        ("force-format-tsdoc", "force_format_tsdoc"),
        ("defaultReleaseTag", "default_release_tag"),
        ("print_width", "print_width"),
    ],
)
def test_normalized_key(raw: str, expected: str) -> None:
    assert normalized_key(raw) == expected


class TestOptionsFromMapping:
    def test_camel_case_keys(self) -> None:
        options = options_from_mapping(
            {
                "alignParamTags": True,
                "defaultReleaseTag": "public",
                "extraTags": ["custom", "@other"],
                "normalizeTags": {"@desc": "remarks"},
                "releaseTagStrategy": "keep-last",
            }
        )
        assert options.align_param_tags
        assert options.default_release_tag == "@public"
        assert options.extra_tags == ("@custom", "@other")
        assert options.normalize_tags == {"@desc": "@remarks"}
        assert options.release_tag_strategy is ReleaseTagStrategy.KEEP_LAST

    @pytest.mark.parametrize("value", ["", "none", None, False])
    def test_disabled_release_tag(self, value: object) -> None:
        assert options_from_mapping({"defaultReleaseTag": value}).default_release_tag is None

    def test_user_normalizations_win(self) -> None:
        options = options_from_mapping({"normalizeTags": {"@return": "@result"}})
        assert options.tag_normalizations["@return"] == "@result"
        assert options.tag_normalizations["@prop"] == "@property"

    @pytest.mark.parametrize(
        "mapping",
        [
            {"unknownOption": True},
            {"fencedIndent": "tab"},
            {"printWidth": 0},
            {"releaseTagStrategy": "keep-all"},
        ],
    )
    def test_invalid_values(self, mapping: dict[str, object]) -> None:
        with pytest.raises(ConfigurationError, match="Invalid formatter options"):
            options_from_mapping(mapping)

    def test_with_overrides_validates(self) -> None:
        options = DEFAULT_OPTIONS.with_overrides(printWidth=100)
        assert options.print_width == 100
        assert DEFAULT_OPTIONS.print_width == 80
        with pytest.raises(ConfigurationError):
            DEFAULT_OPTIONS.with_overrides(print_width=-1)


def test_config_hash_tracks_values() -> None:
    base = FormatterOptions()
    assert base.config_hash == FormatterOptions().config_hash
    assert base.config_hash != FormatterOptions(print_width=100).config_hash
    assert (
        FormatterOptions(extra_tags=("@a", "@b")).config_hash
        == FormatterOptions(extra_tags=("@b", "@a")).config_hash
    )


class TestLoading:
    def test_pyproject_table(self, tmp_path: Path) -> None:
        path = tmp_path / "pyproject.toml"
        path.write_text(
            '[project]\nname = "demo"\n\n[tool.tsdoc_normalizer]\n'
            'alignParamTags = true\nprint-width = 100\n',
            encoding="utf-8",
        )
        options = load_options(path, env={})
        assert options.align_param_tags
        assert options.print_width == 100

    def test_standalone_top_level_keys(self, tmp_path: Path) -> None:
        path = tmp_path / "tsdoc_normalizer.toml"
        path.write_text('fencedIndent = "none"\n', encoding="utf-8")
        assert read_options_table(path) == {"fencedIndent": "none"}
        assert load_options(path, env={}).fenced_indent is FencedIndent.NONE

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert read_options_table(tmp_path / "absent.toml") == {}

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "tsdoc_normalizer.toml"
        path.write_text("not = [valid", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Cannot parse"):
            load_options(path, env={})

    def test_precedence(self, tmp_path: Path) -> None:
        path = tmp_path / "tsdoc_normalizer.toml"
        path.write_text("printWidth = 100\nalignParamTags = true\n", encoding="utf-8")
        env = {"TSDOC_NORMALIZER_OPTIONS": "printWidth=90, splitModifiers=false"}
        options = load_options(path, env=env, cli_overrides={"print_width": 60})
        assert options.print_width == 60
        assert not options.split_modifiers
        assert options.align_param_tags

    def test_textual_list_overrides(self) -> None:
        env = {"TSDOC_NORMALIZER_OPTIONS": "extraTags=custom|other,normalizeTags=desc:remarks"}
        options = load_options(env=env)
        assert options.extra_tags == ("@custom", "@other")
        assert options.normalize_tags == {"@desc": "@remarks"}

    def test_malformed_environment(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid option override"):
            load_options(env={"TSDOC_NORMALIZER_OPTIONS": "printWidth"})


class TestSelection:
    def test_cli_wins(self, tmp_path: Path) -> None:
        selection = select_config_path(
            tmp_path / "a.toml", env={"TSDOC_NORMALIZER_CONFIG": "b.toml"}
        )
        assert selection.source == "cli"
        assert selection.path == tmp_path / "a.toml"

    def test_environment(self, tmp_path: Path) -> None:
        selection = select_config_path(
            env={"TSDOC_NORMALIZER_CONFIG": str(tmp_path / "b.toml")}, start=tmp_path
        )
        assert selection.source == "env:TSDOC_NORMALIZER_CONFIG"

    def test_discovery_walks_up(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text(
            "[tool.tsdoc_normalizer]\nprintWidth = 90\n", encoding="utf-8"
        )
        nested = tmp_path / "src" / "lib"
        nested.mkdir(parents=True)
        assert resolve_config_path(nested) == (tmp_path / "pyproject.toml").resolve()
        options, selection = load_options_with_selection(start=nested, env={})
        assert selection.source == "discovered"
        assert options.print_width == 90

    def test_pyproject_without_table_is_ignored(self, tmp_path: Path) -> None:
        project = tmp_path / "project"
        project.mkdir()
        (project / "pyproject.toml").write_text('[project]\nname = "x"\n', encoding="utf-8")
        (project / "tsdoc_normalizer.toml").write_text("printWidth = 70\n", encoding="utf-8")
        assert resolve_config_path(project) == (project / "tsdoc_normalizer.toml").resolve()
        (project / "tsdoc_normalizer.toml").unlink()
        assert resolve_config_path(project) != (project / "pyproject.toml").resolve()

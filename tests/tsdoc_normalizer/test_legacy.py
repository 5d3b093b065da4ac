"""Tests for the legacy annotation transformer."""

from __future__ import annotations

import pytest

from tsdoc_normalizer.legacy import apply_legacy_transformations, looks_like_link_target


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        (" * @export\n", " * @public\n"),
        (" * @protected\n", " * @internal\n"),
        (" * @private\n", " * @internal\n"),
        (" * @param {string} id - The id\n", " * @param id - The id\n"),
        (" * @param {Array<string>} [names] - Names\n", " * @param [names] - Names\n"),
        (" * @throws {Error} When closed\n", " * @throws When closed\n"),
        (" * @throws {Error}\n", " * @throws\n"),
        (" * @tutorial getting-started\n", " * @document getting-started\n"),
        (" * @default 5\n", " * @defaultValue 5\n"),
        (" * Call {@code run()} first.\n", " * Call `run()` first.\n"),
    ],
)
def test_rewrites_single_annotation(source: str, expected: str) -> None:
    assert apply_legacy_transformations(source) == expected


def test_heritage_and_redundant_lines_are_removed() -> None:
    source = " * Widget.\n * @extends {Base}\n * @constructor\n * @const\n * @public\n"
    assert apply_legacy_transformations(source) == " * Widget.\n * @public\n"


def test_see_targets_are_linked() -> None:
    source = " * @see https://example.com/docs\n * @see MyNs.MyClass for details\n"
    assert apply_legacy_transformations(source) == (
        " * @see {@link https://example.com/docs}\n"
        " * @see {@link MyNs.MyClass} for details\n"
    )


def test_see_prose_is_left_alone() -> None:
    source = " * @see also the guide\n"
    assert apply_legacy_transformations(source) == source


def test_fenced_code_is_protected() -> None:
    source = " * ```ts\n * // @export\n * @private\n * ```\n * @private\n"
    result = apply_legacy_transformations(source)
    assert result == " * ```ts\n * // @export\n * @private\n * ```\n * @internal\n"


def test_disabled_returns_input() -> None:
    source = " * @export\n * @param {string} id\n"
    assert apply_legacy_transformations(source, enabled=False) == source


def test_modern_text_is_unchanged() -> None:
    source = " * Loads data.\n * @param id - The id\n * @see {@link Loader}\n * @public\n"
    assert apply_legacy_transformations(source) == source


def test_transformation_is_idempotent() -> None:
    source = " * @export\n * @see Foo.Bar\n * @param {number} n - Count\n * @default 1\n"
    once = apply_legacy_transformations(source)
    assert apply_legacy_transformations(once) == once


@pytest.mark.parametrize(
    ("content", "expected"),
    [
        ("MyNamespace.MyClass", True),
        ("helper", True),
        ("also", False),
        ("The", False),
        ("two words", False),
        ("", False),
        ("snake_case", False),
    ],
)
def test_looks_like_link_target(content: str, expected: bool) -> None:
    assert looks_like_link_target(content) is expected

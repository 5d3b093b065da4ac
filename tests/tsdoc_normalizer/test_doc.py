"""Tests for the doc printer."""

from __future__ import annotations

import pytest

from tsdoc_normalizer.doc import (
    HARDLINE,
    LINE,
    Group,
    Text,
    fill_words,
    group,
    join,
    print_doc,
    text_width,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [("abc", 3), ("日本", 4), ("ｆｕｌｌ", 8), ("é", 1), ("", 0)],
)
def test_text_width(value: str, expected: int) -> None:
    assert text_width(value) == expected


def test_group_prints_flat_when_it_fits() -> None:
    assert print_doc(group(Text("a"), LINE, Text("b")), 3) == "a b"


def test_group_breaks_when_too_wide() -> None:
    assert print_doc(group(Text("aa"), LINE, Text("bb")), 4) == "aa\nbb"


def test_hardline_breaks_enclosing_group() -> None:
    doc = group(Text("a"), LINE, Text("b"), HARDLINE, Text("c"))
    assert print_doc(doc, 80) == "a\nb\nc"


def test_fill_continuation_uses_group_indent() -> None:
    doc = group(Text("- "), fill_words(["aa", "bb", "cc"]), indent="  ")
    assert print_doc(doc, 7) == "- aa bb\n  cc"


def test_nested_indent_accumulates() -> None:
    doc = group(Text("x"), Group((HARDLINE, Text("y"), Group((HARDLINE, Text("z")), "  ")), " * "))
    assert print_doc(doc, 80) == "x\n * y\n *   z"


def test_overlong_word_is_not_split() -> None:
    assert print_doc(fill_words(["averyveryverylongword", "b"]), 5) == "averyveryverylongword\nb"


def test_wide_characters_count_double() -> None:
    assert print_doc(fill_words(["日本語", "x"]), 7) == "日本語\nx"
    assert print_doc(fill_words(["日本語", "x"]), 8) == "日本語 x"


def test_trailing_whitespace_is_stripped() -> None:
    doc = group(Text("a "), HARDLINE, Text(" * "), HARDLINE, Text("b"))
    assert print_doc(doc, 80) == "a\n *\nb"


def test_join() -> None:
    assert join(LINE, []) == []
    assert join(LINE, [Text("a"), Text("b")]) == [Text("a"), LINE, Text("b")]

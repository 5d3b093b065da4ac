"""Tests for block splitting of comment prose."""

from __future__ import annotations

from tsdoc_normalizer.markdown import (
    FencedCode,
    ListItem,
    Paragraph,
    Verbatim,
    split_blocks,
    tokenize,
)


def test_paragraphs_are_joined_and_separated() -> None:
    assert split_blocks("A\nB\n\nC") == [
        Paragraph("A B", blank_before=False),
        Paragraph("C", blank_before=True),
    ]


def test_bullets_are_normalized() -> None:
    assert split_blocks("* one\n+ two\n1. three") == [
        ListItem("-", "one"),
        ListItem("-", "two"),
        ListItem("1.", "three"),
    ]


def test_nested_items_and_continuations() -> None:
    assert split_blocks("- first\n  more\n  - inner") == [
        ListItem("-", "first more"),
        ListItem("-", "inner", depth=1),
    ]


def test_fences_split_prose() -> None:
    blocks = split_blocks("Intro\n```ts\nconst a = 1;\n```\nAfter")
    assert blocks == [
        Paragraph("Intro", blank_before=False),
        FencedCode("ts", "const a = 1;", blank_before=False),
        Paragraph("After", blank_before=False),
    ]
    fence = blocks[1]
    assert isinstance(fence, FencedCode)
    assert fence.language == "ts"


def test_unterminated_fence_runs_to_end() -> None:
    assert split_blocks("```js\nx") == [FencedCode("js", "x", blank_before=False)]


def test_headings_tables_and_quotes_are_verbatim() -> None:
    assert split_blocks("# Title\n| a | b |\n|---|---|\n\n> quoted") == [
        Verbatim(("# Title", "| a | b |", "|---|---|"), blank_before=False),
        Verbatim(("> quoted",), blank_before=True),
    ]


def test_hashtag_is_prose() -> None:
    assert split_blocks("#hashtag text") == [Paragraph("#hashtag text", blank_before=False)]


def test_inline_tags_are_single_units() -> None:
    assert tokenize("Use {@link Foo | the foo}.\tNow") == ["Use", "{@link Foo | the foo}.", "Now"]

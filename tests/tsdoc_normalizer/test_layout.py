"""Tests for rendering comment models."""

from __future__ import annotations

import pytest

from tsdoc_normalizer.config import FencedIndent, FormatterOptions
from tsdoc_normalizer.errors import RenderError
from tsdoc_normalizer.layout import LayoutBuilder, wrap_units
from tsdoc_normalizer.models import CommentModel, OtherTag, ParamTag, ReturnsTag, TagKind


def lines(*body: str) -> str:
    """Assemble a comment from its content lines."""
    inner = [f" * {line}".rstrip() for line in body]
    return "\n".join(["/**", *inner, " */"])


def render(model: CommentModel, width: int = 77, **options: object) -> str:
    builder = LayoutBuilder(FormatterOptions().with_overrides(**options), width)
    return builder.render_sync(model)


def test_summary_is_wrapped_greedily() -> None:
    model = CommentModel(summary="The quick  brown fox\njumps over the lazy dog.")
    assert render(model, 20) == lines(
        "The quick brown fox",
        "jumps over the lazy",
        "dog.",
    )


def test_sections_are_separated() -> None:
    model = CommentModel(
        summary="Adds two numbers.",
        remarks="Uses floating point.",
        params=[
            ParamTag(TagKind.PARAM, "a", "first"),
            ParamTag(TagKind.TYPE_PARAM, "T", "numeric type"),
            ParamTag(TagKind.PARAM, "b", "second"),
        ],
        returns=ReturnsTag("the sum"),
        other_tags=[OtherTag("@beta"), OtherTag("@see", "{@link subtract}")],
    )
    assert render(model) == lines(
        "Adds two numbers.",
        "",
        "@remarks",
        "Uses floating point.",
        "",
        "@param a - first",
        "@param b - second",
        "@typeParam T - numeric type",
        "@returns the sum",
        "",
        "@beta",
        "",
        "@see {@link subtract}",
    )


def test_remarks_without_summary() -> None:
    assert render(CommentModel(remarks="Only remarks.")) == lines("@remarks", "Only remarks.")


def test_param_alignment() -> None:
    model = CommentModel(
        params=[
            ParamTag(TagKind.PARAM, "a", "first"),
            ParamTag(TagKind.PARAM, "count", "how many"),
            ParamTag(TagKind.PARAM, "flag"),
        ]
    )
    assert render(model, align_param_tags=True) == lines(
        "@param a     - first",
        "@param count - how many",
        "@param flag",
    )


def test_param_description_wraps_with_continuation_indent() -> None:
    model = CommentModel(params=[ParamTag(TagKind.PARAM, "id", "identifier of the record")])
    assert render(model, 24) == lines(
        "@param id - identifier",
        "  of the record",
    )


def test_overlong_param_header_moves_description_below() -> None:
    model = CommentModel(
        params=[ParamTag(TagKind.PARAM, "averyveryverylongname", "does things")]
    )
    assert render(model, 20) == lines(
        "@param averyveryverylongname -",
        "  does things",
    )


def test_returns_wraps_without_indent() -> None:
    model = CommentModel(returns=ReturnsTag("the value that was computed earlier"))
    assert render(model, 20) == lines(
        "@returns the value",
        "that was computed",
        "earlier",
    )


def test_list_items_keep_markers() -> None:
    model = CommentModel(summary="Steps:\n* first step is long enough to wrap\n* second")
    assert render(model, 20) == lines(
        "Steps:",
        "- first step is long",
        "  enough to wrap",
        "- second",
    )


def test_ordered_item_continuation_is_two_columns() -> None:
    model = CommentModel(summary="Steps:\n1. first step is long enough to wrap\n2. second")
    assert render(model, 20) == lines(
        "Steps:",
        "1. first step is",
        "  long enough to",
        "  wrap",
        "2. second",
    )


def test_fence_is_formatted_and_indented() -> None:
    model = CommentModel(summary='Example:\n```json\n{"a":1}\n```')
    assert render(model) == lines(
        "Example:",
        "```json",
        " {",
        '   "a": 1',
        " }",
        "```",
    )


def test_fence_without_indent() -> None:
    model = CommentModel(summary="```css\n   a { b: c }   \n```")
    assert render(model, fenced_indent=FencedIndent.NONE) == lines("```css", "a { b: c }", "```")


def test_example_lines_are_verbatim() -> None:
    tag = OtherTag("@example", "Basic  usage\n```ts\nconst x  =  1;\n```")
    assert render(CommentModel(other_tags=[tag])) == lines(
        "@example Basic  usage",
        "```ts",
        " const x  =  1;",
        "```",
    )


def test_other_tag_lines_are_wrapped_individually() -> None:
    tag = OtherTag("@deprecated", "Use the newer loader instead.\nRemoved in 3.0.")
    assert render(CommentModel(other_tags=[tag]), 24) == lines(
        "@deprecated Use the",
        "newer loader instead.",
        "Removed in 3.0.",
    )


@pytest.mark.parametrize(
    ("split", "expected"),
    [
        (True, lines("Doc.", "", "@public", "", "@readonly", "", "@see Foo")),
        (False, lines("Doc.", "", "@public @readonly", "", "@see Foo")),
    ],
)
def test_modifier_splitting(split: bool, expected: str) -> None:
    model = CommentModel(
        summary="Doc.",
        other_tags=[OtherTag("@public"), OtherTag("@readonly"), OtherTag("@see", "Foo")],
    )
    assert render(model, split_modifiers=split) == expected


def test_hazard_words_never_start_a_line() -> None:
    model = CommentModel(summary="Accepts pages 1 - 5 and sections # 2 and @team mentions")
    rendered = render(model, 20)
    for line in rendered.split("\n")[1:-1]:
        content = line.removeprefix(" * ")
        assert not content.startswith(("- ", "# ", "@"))


def test_wrap_units_glue_hazards() -> None:
    assert wrap_units("see > quote | pipe") == ["see >", "quote |", "pipe"]


def test_empty_model_renders_bare_delimiters() -> None:
    assert render(CommentModel()) == "/**\n */"


def test_render_errors_are_typed() -> None:
    model = CommentModel(summary=42)  # type: ignore[arg-type]
    with pytest.raises(RenderError, match="Could not render comment"):
        render(model)

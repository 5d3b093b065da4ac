"""Tests for the release tag policy."""

from __future__ import annotations

import pytest

from tsdoc_normalizer.config import FormatterOptions, ReleaseTagStrategy
from tsdoc_normalizer.diagnostics import RecordingDiagnostics
from tsdoc_normalizer.models import CommentModel, ExportContext, OtherTag, RawTag
from tsdoc_normalizer.policy import (
    ReleaseTagAction,
    ReleaseTagPolicy,
    dedupe_release_tags,
    order_tags,
)

EXPORTED = ExportContext.top_level(exported=True)
PRIVATE = ExportContext.top_level(exported=False)


def model_with(*names: str) -> CommentModel:
    return CommentModel(
        summary="Doc.",
        other_tags=[OtherTag(name, "", RawTag(name, "")) for name in names],
    )


def tag_names(model: CommentModel) -> list[str]:
    return [tag.tag_name for tag in model.other_tags]


@pytest.mark.parametrize(
    ("strategy", "expected"),
    [
        (ReleaseTagStrategy.KEEP_FIRST, ["@beta", "@readonly"]),
        (ReleaseTagStrategy.KEEP_LAST, ["@readonly", "@public"]),
    ],
)
def test_dedupe_strategies(strategy: ReleaseTagStrategy, expected: list[str]) -> None:
    tags = [OtherTag("@beta"), OtherTag("@readonly"), OtherTag("@public")]
    kept, dropped = dedupe_release_tags(tags, strategy)
    assert [tag.tag_name for tag in kept] == expected
    assert len(dropped) == 1


def test_order_tags_is_stable() -> None:
    tags = [
        OtherTag("@see", "B"),
        OtherTag("@example"),
        OtherTag("@since", "1.0"),
        OtherTag("@see", "A"),
        OtherTag("@readonly"),
        OtherTag("@public"),
        OtherTag("@deprecated", "Use X."),
    ]
    ordered = order_tags(tags)
    assert [(tag.tag_name, tag.content) for tag in ordered] == [
        ("@deprecated", "Use X."),
        ("@public", ""),
        ("@readonly", ""),
        ("@since", "1.0"),
        ("@example", ""),
        ("@see", "B"),
        ("@see", "A"),
    ]


class TestReleaseTagPolicy:
    def test_existing_tag_wins(self) -> None:
        model = model_with("@beta")
        outcome = ReleaseTagPolicy().evaluate(model, EXPORTED)
        assert outcome.action is ReleaseTagAction.KEPT_EXISTING
        assert tag_names(model) == ["@beta"]

    def test_duplicates_are_reduced(self) -> None:
        model = model_with("@public", "@readonly", "@beta")
        outcome = ReleaseTagPolicy().evaluate(model, EXPORTED)
        assert tag_names(model) == ["@public", "@readonly"]
        assert outcome.dropped == ["@beta"]

    def test_duplicates_warn_when_dedupe_is_off(self) -> None:
        diagnostics = RecordingDiagnostics()
        policy = ReleaseTagPolicy(FormatterOptions(dedupe_release_tags=False), diagnostics)
        model = model_with("@public", "@beta")
        policy.evaluate(model, EXPORTED)
        assert tag_names(model) == ["@public"]
        assert diagnostics.reasons("policy") == ["duplicate release tags reduced to one"]

    def test_default_inserted_for_exported(self) -> None:
        model = model_with()
        outcome = ReleaseTagPolicy().evaluate(model, EXPORTED)
        assert outcome.action is ReleaseTagAction.INSERTED_DEFAULT
        assert tag_names(model) == ["@internal"]
        assert model.other_tags[0].synthetic

    def test_not_exported_gets_nothing(self) -> None:
        diagnostics = RecordingDiagnostics()
        model = model_with()
        outcome = ReleaseTagPolicy(diagnostics=diagnostics).evaluate(model, PRIVATE)
        assert outcome.action is ReleaseTagAction.NOT_EXPORTED
        assert model.other_tags == []
        assert diagnostics.reasons("policy") == ["declaration is not exported"]

    def test_all_declarations_when_not_gated(self) -> None:
        model = model_with()
        policy = ReleaseTagPolicy(FormatterOptions(only_exported_api=False))
        assert policy.evaluate(model, PRIVATE).action is ReleaseTagAction.INSERTED_DEFAULT

    def test_inheriting_members_get_nothing(self) -> None:
        context = ExportContext(is_container_member=True, should_inherit_release_tag=True)
        model = model_with()
        policy = ReleaseTagPolicy(FormatterOptions(only_exported_api=False))
        assert policy.evaluate(model, context).action is ReleaseTagAction.INHERITED
        assert model.other_tags == []

    def test_disabled_default(self) -> None:
        model = model_with()
        policy = ReleaseTagPolicy(FormatterOptions(default_release_tag=None))
        assert policy.evaluate(model, EXPORTED).action is ReleaseTagAction.DISABLED
        assert model.other_tags == []

    def test_custom_default(self) -> None:
        model = model_with()
        ReleaseTagPolicy(FormatterOptions(default_release_tag="@public")).apply(model, EXPORTED)
        assert tag_names(model) == ["@public"]

    def test_normalize_tag_order(self) -> None:
        model = model_with("@see", "@readonly")
        ReleaseTagPolicy(FormatterOptions(normalize_tag_order=True)).apply(model, EXPORTED)
        assert tag_names(model) == ["@internal", "@readonly", "@see"]

    def test_second_run_is_stable(self) -> None:
        policy = ReleaseTagPolicy()
        model = model_with("@readonly")
        policy.apply(model, EXPORTED)
        first = tag_names(model)
        outcome = policy.evaluate(model, EXPORTED)
        assert tag_names(model) == first
        assert outcome.action is ReleaseTagAction.KEPT_EXISTING

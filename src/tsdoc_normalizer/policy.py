"""Release tag policy: deduplicate, insert defaults and order tags."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from tsdoc_normalizer.config import DEFAULT_OPTIONS, ReleaseTagStrategy
from tsdoc_normalizer.constants import MODIFIER_TAGS, RELEASE_TAGS
from tsdoc_normalizer.diagnostics import NullDiagnostics
from tsdoc_normalizer.models import OtherTag

if TYPE_CHECKING:
    from tsdoc_normalizer.config import FormatterOptions
    from tsdoc_normalizer.diagnostics import Diagnostics
    from tsdoc_normalizer.models import CommentModel, ExportContext

__all__ = [
    "PolicyOutcome",
    "ReleaseTagAction",
    "ReleaseTagPolicy",
    "dedupe_release_tags",
    "order_tags",
    "tag_rank",
]


class ReleaseTagAction(StrEnum):
    """What the policy did about the release tag of one comment."""

    KEPT_EXISTING = "kept_existing"
    INSERTED_DEFAULT = "inserted_default"
    DISABLED = "disabled"
    NOT_EXPORTED = "not_exported"
    INHERITED = "inherited"


@dataclass(slots=True)
class PolicyOutcome:
    """Record of one policy run, used for diagnostics and tests."""

    action: ReleaseTagAction
    kept: str | None = None
    dropped: list[str] = field(default_factory=list)


def tag_rank(tag: OtherTag) -> int:
    """Return the ordering class of ``tag``.

    Deprecation comes first, then the release tag, other modifiers, other
    block tags, ``@example`` and finally ``@see``.
    """
    name = tag.tag_name
    if name == "@deprecated":
        return 0
    if name in RELEASE_TAGS:
        return 1
    if name in MODIFIER_TAGS:
        return 2
    if name == "@example":
        return 4
    if name == "@see":
        return 5
    return 3


def order_tags(tags: list[OtherTag]) -> list[OtherTag]:
    """Return ``tags`` stably sorted by :func:`tag_rank`."""
    return sorted(tags, key=tag_rank)


def dedupe_release_tags(
    tags: list[OtherTag], strategy: ReleaseTagStrategy = ReleaseTagStrategy.KEEP_FIRST
) -> tuple[list[OtherTag], list[OtherTag]]:
    """Keep a single release tag.

    Parameters
    ----------
    tags : list[OtherTag]
        Tags in source order.
    strategy : ReleaseTagStrategy, optional
        Keep the earliest or the latest release tag. Defaults to keep-first.

    Returns
    -------
    tuple[list[OtherTag], list[OtherTag]]
        Remaining tags in their original order and the dropped release tags.

    Examples
    --------
    >>> tags = [OtherTag("@beta"), OtherTag("@see", "X"), OtherTag("@public")]
    >>> kept, dropped = dedupe_release_tags(tags, ReleaseTagStrategy.KEEP_LAST)
    >>> [tag.tag_name for tag in kept], [tag.tag_name for tag in dropped]
    (['@see', '@public'], ['@beta'])
    """
    release_positions = [index for index, tag in enumerate(tags) if tag.is_release]
    if len(release_positions) <= 1:
        return list(tags), []
    keep = (
        release_positions[-1]
        if strategy is ReleaseTagStrategy.KEEP_LAST
        else release_positions[0]
    )
    kept: list[OtherTag] = []
    dropped: list[OtherTag] = []
    for index, tag in enumerate(tags):
        if tag.is_release and index != keep:
            dropped.append(tag)
        else:
            kept.append(tag)
    return kept, dropped


class ReleaseTagPolicy:
    """Decide the release tag of each comment.

    Existing release tags always win; duplicates are reduced to one; a
    default is inserted only for eligible declarations. Because detection
    relies on tag names, a previously inserted tag is recognized on the next
    run like any other.

    Parameters
    ----------
    options : FormatterOptions | None, optional
        Policy configuration. Defaults to the built-in options.
    diagnostics : Diagnostics | None, optional
        Sink receiving the reason when no default is inserted.
    """

    def __init__(
        self, options: FormatterOptions | None = None, diagnostics: Diagnostics | None = None
    ) -> None:
        self._options = options or DEFAULT_OPTIONS
        self._diagnostics = diagnostics or NullDiagnostics()

    def apply(self, model: CommentModel, context: ExportContext) -> CommentModel:
        """Apply the policy to ``model`` in place and return it."""
        self.evaluate(model, context)
        return model

    def evaluate(self, model: CommentModel, context: ExportContext) -> PolicyOutcome:
        """Apply the policy to ``model`` in place and describe what happened.

        Parameters
        ----------
        model : CommentModel
            Comment to update.
        context : ExportContext
            Export and inheritance facts about the documented declaration.

        Returns
        -------
        PolicyOutcome
            The action taken and the tags kept or dropped.
        """
        options = self._options
        # At most one release tag survives even with dedupe_release_tags off; that
        # setting only turns the reduction into a reported warning.
        kept, dropped = dedupe_release_tags(model.other_tags, options.release_tag_strategy)
        if dropped:
            model.other_tags = kept
            if not options.dedupe_release_tags:
                self._diagnostics.warning(
                    "policy",
                    "duplicate release tags reduced to one",
                    dropped=",".join(tag.tag_name for tag in dropped),
                )

        existing = model.release_tags()
        if existing:
            outcome = PolicyOutcome(
                ReleaseTagAction.KEPT_EXISTING,
                kept=existing[0].tag_name,
                dropped=[tag.tag_name for tag in dropped],
            )
        else:
            outcome = self._insert_default(model, context)

        if options.normalize_tag_order:
            model.other_tags = order_tags(model.other_tags)
        return outcome

    def _insert_default(self, model: CommentModel, context: ExportContext) -> PolicyOutcome:
        options = self._options
        default_tag = options.default_release_tag
        if not default_tag:
            return PolicyOutcome(ReleaseTagAction.DISABLED)
        if options.inheritance_aware and context.should_inherit_release_tag:
            self._diagnostics.debug("policy", "release tag inherited from enclosing declaration")
            return PolicyOutcome(ReleaseTagAction.INHERITED)
        if options.only_exported_api and not context.is_exported:
            self._diagnostics.debug("policy", "declaration is not exported")
            return PolicyOutcome(ReleaseTagAction.NOT_EXPORTED)
        model.other_tags.append(OtherTag(tag_name=default_tag))
        return PolicyOutcome(ReleaseTagAction.INSERTED_DEFAULT, kept=default_tag)

"""Data types passed between the comment pipeline stages.

A :class:`CommentModel` is built once per raw comment by the parser adapter,
mutated in place by the release-tag policy and consumed once by the layout
builder. :class:`ExportContext` is recomputed for every comment from the
surrounding declarations and never shared.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from tsdoc_normalizer.constants import MODIFIER_TAGS, RELEASE_TAGS

__all__ = [
    "CommentModel",
    "ContainerKind",
    "ExportContext",
    "ExportKind",
    "OtherTag",
    "ParamTag",
    "RawTag",
    "ReturnsTag",
    "SourceSpan",
    "TagKind",
]


class TagKind(StrEnum):
    """Parameter-like tag kinds."""

    PARAM = "@param"
    TYPE_PARAM = "@typeParam"


class ContainerKind(StrEnum):
    """Declaration kinds whose members inherit release visibility."""

    CLASS = "class"
    INTERFACE = "interface"


class ExportKind(StrEnum):
    """How a declaration reaches the module export surface."""

    NAMED = "named"
    DEFAULT = "default"
    NAMESPACE = "namespace"
    FILE = "file"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class RawTag:
    """One block tag as emitted by the structured-comment parser.

    Attributes
    ----------
    name : str
        Tag name including the leading ``@``, as spelled in the source.
    content : str
        Text following the tag up to the next block tag, stripped.
    line : int
        Zero-based line of the tag within the comment body.
    """

    name: str
    content: str
    line: int = 0


@dataclass(slots=True)
class ParamTag:
    """A ``@param`` or ``@typeParam`` entry."""

    tag_kind: TagKind
    name: str
    description: str = ""
    source: RawTag | None = None


@dataclass(slots=True)
class ReturnsTag:
    """The single ``@returns`` entry of a comment."""

    description: str = ""
    source: RawTag | None = None


@dataclass(slots=True)
class OtherTag:
    """Any tag not captured by the dedicated sections.

    A tag with ``source`` set to None is synthetic: the policy engine inserted it.
    """

    tag_name: str
    content: str = ""
    source: RawTag | None = None

    @property
    def synthetic(self) -> bool:
        return self.source is None

    @property
    def is_release(self) -> bool:
        return self.tag_name in RELEASE_TAGS

    @property
    def is_modifier(self) -> bool:
        return self.tag_name in MODIFIER_TAGS and not self.content


@dataclass(slots=True)
class CommentModel:
    """Canonical, mutable representation of one documentation comment.

    Attributes
    ----------
    summary : str | None
        First untagged block of text.
    remarks : str | None
        Text of the ``@remarks`` section.
    params : list[ParamTag]
        ``@param`` and ``@typeParam`` entries in source order; duplicate names
        are kept.
    returns : ReturnsTag | None
        The ``@returns`` entry, at most one.
    other_tags : list[OtherTag]
        Every remaining tag, release and modifier tags included.
    """

    summary: str | None = None
    remarks: str | None = None
    params: list[ParamTag] = field(default_factory=list)
    returns: ReturnsTag | None = None
    other_tags: list[OtherTag] = field(default_factory=list)

    @property
    def parameters(self) -> list[ParamTag]:
        return [param for param in self.params if param.tag_kind is TagKind.PARAM]

    @property
    def type_parameters(self) -> list[ParamTag]:
        return [param for param in self.params if param.tag_kind is TagKind.TYPE_PARAM]

    def release_tags(self) -> list[OtherTag]:
        """Return the release tags in their current order."""
        return [tag for tag in self.other_tags if tag.is_release]

    def has_tag(self, tag_name: str) -> bool:
        """Return True when ``tag_name`` appears among the other tags."""
        return any(tag.tag_name == tag_name for tag in self.other_tags)

    @property
    def is_empty(self) -> bool:
        return (
            not self.summary
            and not self.remarks
            and not self.params
            and self.returns is None
            and not self.other_tags
        )


@dataclass(frozen=True, slots=True)
class ExportContext:
    """Export and inheritance facts about the documented declaration.

    Attributes
    ----------
    is_exported : bool
        The declaration is reachable from the module export surface.
    export_kind : ExportKind
        How it is exported.
    is_container_member : bool
        The declaration sits in a class or interface body.
    container_kind : ContainerKind | None
        Kind of the enclosing container.
    is_enum_property : bool
        The declaration is a property of an ``@enum`` object literal.
    enclosing_enum_has_release_tag : bool
        That object literal's comment carries a release tag.
    should_inherit_release_tag : bool
        The declaration takes its release tag from an enclosing declaration
        instead of receiving a default.
    """

    is_exported: bool = False
    export_kind: ExportKind = ExportKind.NONE
    is_container_member: bool = False
    container_kind: ContainerKind | None = None
    is_enum_property: bool = False
    enclosing_enum_has_release_tag: bool = False
    should_inherit_release_tag: bool = False

    @classmethod
    def degraded(cls) -> ExportContext:
        """Return the context used when analysis fails: nothing is eligible."""
        return cls()

    @classmethod
    def top_level(cls, *, exported: bool) -> ExportContext:
        """Return a context for a top-level declaration."""
        return cls(
            is_exported=exported,
            export_kind=ExportKind.NAMED if exported else ExportKind.NONE,
        )


@dataclass(frozen=True, slots=True)
class SourceSpan:
    """Half-open character range ``[start, end)`` of a comment in its source."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if not 0 <= self.start <= self.end:
            message = f"Invalid source span [{self.start}, {self.end})"
            raise ValueError(message)

    def slice(self, text: str) -> str:
        return text[self.start : self.end]

"""Export and inheritance context of a documented declaration.

:class:`ContextAnalyzer` answers three questions for each comment: is the
declaration part of the export surface, is it a class or interface member
that takes its release tag from the container, and is it a property of an
``@enum`` object literal whose parent already carries a release tag.

Hosts that already know the answers hand them over as a mapping through
:func:`context_from_host`; hosts that only have the code following the
comment use :func:`context_from_snippet`.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final, Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from tsdoc_normalizer.config import DEFAULT_OPTIONS, normalized_key
from tsdoc_normalizer.declarations import (
    ClassDeclaration,
    InterfaceDeclaration,
    MemberDeclaration,
    NamespaceDeclaration,
    ObjectLiteralProperty,
    VariableDeclaration,
)
from tsdoc_normalizer.diagnostics import NullDiagnostics
from tsdoc_normalizer.errors import ContextError
from tsdoc_normalizer.legacy import apply_legacy_transformations
from tsdoc_normalizer.models import ContainerKind, ExportContext, ExportKind

if TYPE_CHECKING:
    from collections.abc import Mapping

    from tsdoc_normalizer.config import FormatterOptions
    from tsdoc_normalizer.declarations import CommentRange, Declaration, DeclarationTree
    from tsdoc_normalizer.diagnostics import Diagnostics

__all__ = [
    "ContextAnalyzer",
    "comment_has_release_tag",
    "comment_has_tag",
    "context_from_host",
    "context_from_snippet",
]

_RELEASE_TAG: Final = re.compile(r"(?<![\w{])@(?:public|beta|alpha|internal|experimental)(?![\w-])")
_FILE_TAG: Final = re.compile(r"(?<![\w{])@(?:fileoverview|packageDocumentation)(?![\w-])")
_SNIPPET_DECORATOR: Final = re.compile(r"^(?:@[\w.]+(?:\([^)]*\))?\s*)+")
_SNIPPET_DECLARATION: Final = re.compile(
    r"^(?:export\s+)?(?:default\s+)?(?:declare\s+)?(?:abstract\s+)?(?:async\s+)?"
    r"(?:function|class|interface|type|const|let|var|enum|namespace|module)\b"
)
_SNIPPET_MEMBER: Final = re.compile(
    r"^(?:(?:public|private|protected|static|readonly|abstract|override|async|get|set|declare)\s+)*"
    r"[#\w$\[\]'\"]+\s*[?!]?\s*[(:=<;]"
)


def comment_has_tag(text: str, tag_name: str) -> bool:
    """Return True when ``tag_name`` appears as a tag in ``text``."""
    pattern = rf"(?<![\w{{]){re.escape(tag_name)}(?![\w-])"
    return re.search(pattern, text) is not None


def comment_has_release_tag(text: str, *, legacy: bool = True) -> bool:
    """Return True when a raw comment carries a release tag.

    Parameters
    ----------
    text : str
        Raw comment text.
    legacy : bool, optional
        Count legacy visibility tags such as ``@export``. Defaults to True.

    Returns
    -------
    bool
        Whether a release tag is present outside fenced code.
    """
    transformed = apply_legacy_transformations(text, enabled=legacy)
    outside_fences = re.sub(r"```.*?```", "", transformed, flags=re.DOTALL)
    return _RELEASE_TAG.search(outside_fences) is not None


class ContextAnalyzer:
    """Compute :class:`ExportContext` values from a declaration tree.

    Parameters
    ----------
    options : FormatterOptions | None, optional
        Supplies ``inheritance_aware`` and the legacy switch.
    diagnostics : Diagnostics | None, optional
        Sink for analysis failures.
    """

    def __init__(
        self, options: FormatterOptions | None = None, diagnostics: Diagnostics | None = None
    ) -> None:
        self._options = options or DEFAULT_OPTIONS
        self._diagnostics = diagnostics or NullDiagnostics()

    def analyze(
        self,
        node: Declaration | None,
        tree: DeclarationTree,
        *,
        comment: CommentRange | None = None,
    ) -> ExportContext:
        """Return the context of ``node``, degrading instead of raising.

        Parameters
        ----------
        node : Declaration | None
            Documented declaration, or None when the comment precedes none.
        tree : DeclarationTree
            Tree ``node`` belongs to.
        comment : CommentRange | None, optional
            The comment being formatted; used to recognize file comments.

        Returns
        -------
        ExportContext
            Computed context, or a context where nothing is exported and
            nothing inherits when the tree cannot be walked.
        """
        try:
            return self._analyze(node, tree, comment)
        except Exception as exc:  # noqa: BLE001
            self._diagnostics.warning(
                "context", "declaration analysis failed", error=f"{type(exc).__name__}: {exc}"
            )
            return ExportContext.degraded()

    def _analyze(
        self, node: Declaration | None, tree: DeclarationTree, comment: CommentRange | None
    ) -> ExportContext:
        if comment is not None and self._is_file_comment(node, tree, comment):
            return ExportContext(is_exported=True, export_kind=ExportKind.FILE)
        if node is None:
            self._diagnostics.debug("context", "comment documents no declaration")
            return ExportContext()

        container_kind = self._container_kind(node, tree)
        is_enum_property, enum_tagged = self._enum_status(node, tree)
        if isinstance(node, ObjectLiteralProperty) and not is_enum_property:
            is_exported, export_kind = False, ExportKind.NONE
        else:
            is_exported, export_kind = self._export_status(node, tree)
        inherits = self._options.inheritance_aware and (
            container_kind is not None or (is_enum_property and enum_tagged)
        )
        return ExportContext(
            is_exported=is_exported,
            export_kind=export_kind,
            is_container_member=container_kind is not None,
            container_kind=container_kind,
            is_enum_property=is_enum_property,
            enclosing_enum_has_release_tag=enum_tagged,
            should_inherit_release_tag=inherits,
        )

    @staticmethod
    def _is_file_comment(
        node: Declaration | None, tree: DeclarationTree, comment: CommentRange
    ) -> bool:
        if _FILE_TAG.search(comment.text):
            return True
        return node is None and tree.is_first_comment(comment)

    def _export_status(self, node: Declaration, tree: DeclarationTree) -> tuple[bool, ExportKind]:
        # Members and enum properties are exactly as visible as their container.
        parent = tree.parent(node)
        match node:
            case MemberDeclaration() | ObjectLiteralProperty():
                if parent is None:
                    return False, ExportKind.NONE
                return self._export_status(parent, tree)
        match parent:
            case None:
                if node.exported or node.name in tree.exported_names:
                    kind = ExportKind.DEFAULT if node.default else ExportKind.NAMED
                    return True, kind
                return False, ExportKind.NONE
            case NamespaceDeclaration(ambient=True):
                return True, ExportKind.NAMESPACE
            case NamespaceDeclaration():
                if node.exported and self._export_status(parent, tree)[0]:
                    return True, ExportKind.NAMESPACE
                return False, ExportKind.NONE
            case _:
                return False, ExportKind.NONE

    @staticmethod
    def _container_kind(node: Declaration, tree: DeclarationTree) -> ContainerKind | None:
        if not isinstance(node, MemberDeclaration):
            return None
        match tree.parent(node):
            case ClassDeclaration():
                return ContainerKind.CLASS
            case InterfaceDeclaration():
                return ContainerKind.INTERFACE
            case _:
                return None

    def _enum_status(self, node: Declaration, tree: DeclarationTree) -> tuple[bool, bool]:
        if not isinstance(node, ObjectLiteralProperty):
            return False, False
        parent = tree.parent(node)
        if not isinstance(parent, VariableDeclaration | ObjectLiteralProperty):
            return False, False
        parent_comment = tree.comment_for(parent)
        if parent_comment is None or not comment_has_tag(parent_comment.text, "@enum"):
            return False, False
        tagged = comment_has_release_tag(
            parent_comment.text, legacy=self._options.closure_compiler_compat
        )
        return True, tagged


class _HostContext(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    is_exported: bool = False
    export_kind: Literal["named", "default", "namespace", "file", "none", "direct"] | None = None
    is_class_member: bool = False
    is_container_member: bool = False
    container_type: Literal["class", "interface", "namespace"] | None = None
    container: dict[str, object] | None = None
    is_const_enum_property: bool = False
    is_enum_property: bool = False
    const_enum_has_release_tag: bool = False
    enclosing_enum_has_release_tag: bool = False
    should_inherit_release_tag: bool | None = None


def _container_kind_from(host: _HostContext) -> ContainerKind | None:
    kind = host.container_type
    if kind is None and host.container is not None:
        raw = host.container.get("kind")
        kind = str(raw).lower() if raw is not None else None
    match kind:
        case "class":
            return ContainerKind.CLASS
        case "interface":
            return ContainerKind.INTERFACE
        case _:
            return None


def context_from_host(
    mapping: Mapping[str, object], options: FormatterOptions | None = None
) -> ExportContext:
    """Build a context from facts supplied by the host.

    Keys may be camelCase or snake_case: ``isExported``, ``isClassMember``,
    ``container`` (a mapping with ``kind``), ``isConstEnumProperty`` and
    ``constEnumHasReleaseTag`` are understood, as are the field names of
    :class:`ExportContext`.

    Raises
    ------
    ContextError
        If a value has the wrong type.
    """
    resolved = options or DEFAULT_OPTIONS
    try:
        host = _HostContext.model_validate(
            {normalized_key(str(key)): value for key, value in mapping.items()}
        )
    except ValidationError as exc:
        message = f"Invalid host declaration context: {exc.error_count()} error(s)"
        raise ContextError(message, cause=exc) from exc

    container_kind = _container_kind_from(host)
    is_member = (
        host.is_class_member
        or host.is_container_member
        or host.container is not None
        or container_kind is not None
    )
    is_enum_property = host.is_const_enum_property or host.is_enum_property
    enum_tagged = host.const_enum_has_release_tag or host.enclosing_enum_has_release_tag
    inherits = host.should_inherit_release_tag
    if inherits is None:
        inherits = is_member or (is_enum_property and enum_tagged)
    export_kind = ExportKind.NAMED if host.is_exported else ExportKind.NONE
    if host.export_kind is not None and host.export_kind != "direct":
        export_kind = ExportKind(host.export_kind)
    return ExportContext(
        is_exported=host.is_exported,
        export_kind=export_kind,
        is_container_member=is_member,
        container_kind=container_kind,
        is_enum_property=is_enum_property,
        enclosing_enum_has_release_tag=enum_tagged,
        should_inherit_release_tag=resolved.inheritance_aware and inherits,
    )


def context_from_snippet(
    following_code: str, options: FormatterOptions | None = None
) -> ExportContext:
    """Build a context from the code that follows a comment.

    The snippet is classified with regular expressions: an ``export`` keyword
    makes the declaration exported, and a member-like line that is not a
    declaration keyword marks a container member of unknown kind.

    Examples
    --------
    >>> context_from_snippet("export function load() {}").is_exported
    True
    >>> context_from_snippet("  readonly size: number;").is_container_member
    True
    """
    resolved = options or DEFAULT_OPTIONS
    code = _SNIPPET_DECORATOR.sub("", following_code.lstrip()).lstrip()
    if not code:
        return ExportContext()
    if _SNIPPET_DECLARATION.match(code):
        exported = re.match(r"export\b", code) is not None
        default = re.match(r"export\s+default\b", code) is not None
        kind = ExportKind.NONE
        if exported:
            kind = ExportKind.DEFAULT if default else ExportKind.NAMED
        return ExportContext(is_exported=exported, export_kind=kind)
    if _SNIPPET_MEMBER.match(code):
        return ExportContext(
            is_container_member=True,
            should_inherit_release_tag=resolved.inheritance_aware,
        )
    exported = re.match(r"export\b", code) is not None
    return ExportContext(
        is_exported=exported, export_kind=ExportKind.NAMED if exported else ExportKind.NONE
    )

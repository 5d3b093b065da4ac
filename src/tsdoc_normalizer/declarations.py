"""Typed declaration nodes built from a Tree-sitter TypeScript syntax tree.

Sources are parsed with the ``tree_sitter_typescript`` grammar (its TSX
variant when the file may contain JSX). The walk records the declarations
whose position matters for release tag decisions: functions, classes,
interfaces, type aliases, namespaces, enums, variables, class and interface
members and object literal properties. Each documentation comment is
attached to the declaration whose first token immediately follows it.

Offsets on :class:`CommentRange` and on declarations are character offsets
into the source string, not the byte offsets Tree-sitter reports.

Examples
--------
>>> tree = scan_declarations("/**\\n * Doc.\\n */\\nexport function load() {}\\n")
>>> node = tree.declaration_for(tree.comments[0])
>>> type(node).__name__, node.name, node.exported
('FunctionDeclaration', 'load', True)
"""

from __future__ import annotations

import bisect
import itertools
from dataclasses import dataclass, field
from enum import StrEnum
from functools import cache
from importlib import import_module
from typing import TYPE_CHECKING, Any, ClassVar, Final, TypeAlias, cast

from tree_sitter import Language, Parser

from tsdoc_normalizer._shared.logging import get_logger
from tsdoc_normalizer.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping

    from tree_sitter import Node

__all__ = [
    "ClassDeclaration",
    "CommentRange",
    "Declaration",
    "DeclarationKind",
    "DeclarationScanner",
    "DeclarationTree",
    "EnumDeclaration",
    "FunctionDeclaration",
    "InterfaceDeclaration",
    "MemberDeclaration",
    "NamespaceDeclaration",
    "ObjectLiteralProperty",
    "TypeAliasDeclaration",
    "VariableDeclaration",
    "load_grammar",
    "scan_declarations",
]

logger = get_logger(__name__)

GRAMMAR_PACKAGE: Final = "tree_sitter_typescript"


class DeclarationKind(StrEnum):
    """Declaration node variants."""

    FUNCTION = "function"
    CLASS = "class"
    INTERFACE = "interface"
    TYPE_ALIAS = "type_alias"
    NAMESPACE = "namespace"
    ENUM = "enum"
    VARIABLE = "variable"
    MEMBER = "member"
    OBJECT_LITERAL_PROPERTY = "object_literal_property"


@dataclass(frozen=True, slots=True)
class CommentRange:
    """A block comment and its half-open offset range in the source."""

    start: int
    end: int
    text: str

    @property
    def is_doc_comment(self) -> bool:
        return self.text.startswith("/**") and not self.text.startswith("/**/")

    @property
    def is_multiline(self) -> bool:
        return "\n" in self.text


@dataclass(frozen=True, slots=True)
class _DeclarationBase:
    index: int
    name: str
    start: int
    parent: int | None = None
    exported: bool = False
    default: bool = False

    kind: ClassVar[DeclarationKind]


@dataclass(frozen=True, slots=True)
class FunctionDeclaration(_DeclarationBase):
    """``function`` declaration, including overload signatures."""

    kind: ClassVar[DeclarationKind] = DeclarationKind.FUNCTION


@dataclass(frozen=True, slots=True)
class ClassDeclaration(_DeclarationBase):
    """``class`` declaration."""

    kind: ClassVar[DeclarationKind] = DeclarationKind.CLASS


@dataclass(frozen=True, slots=True)
class InterfaceDeclaration(_DeclarationBase):
    """``interface`` declaration."""

    kind: ClassVar[DeclarationKind] = DeclarationKind.INTERFACE


@dataclass(frozen=True, slots=True)
class TypeAliasDeclaration(_DeclarationBase):
    """``type X = ...`` declaration."""

    kind: ClassVar[DeclarationKind] = DeclarationKind.TYPE_ALIAS


@dataclass(frozen=True, slots=True)
class NamespaceDeclaration(_DeclarationBase):
    """``namespace``, ``module`` or ``declare global`` block.

    ``ambient`` marks ``declare`` blocks, whose contents are always part of the
    export surface.
    """

    ambient: bool = False

    kind: ClassVar[DeclarationKind] = DeclarationKind.NAMESPACE


@dataclass(frozen=True, slots=True)
class EnumDeclaration(_DeclarationBase):
    """``enum`` or ``const enum`` declaration."""

    kind: ClassVar[DeclarationKind] = DeclarationKind.ENUM


@dataclass(frozen=True, slots=True)
class VariableDeclaration(_DeclarationBase):
    """``const``, ``let`` or ``var`` declarator binding a single name."""

    kind: ClassVar[DeclarationKind] = DeclarationKind.VARIABLE


@dataclass(frozen=True, slots=True)
class MemberDeclaration(_DeclarationBase):
    """Property, method or accessor in a class or interface body."""

    kind: ClassVar[DeclarationKind] = DeclarationKind.MEMBER


@dataclass(frozen=True, slots=True)
class ObjectLiteralProperty(_DeclarationBase):
    """Property of an object literal or type literal."""

    kind: ClassVar[DeclarationKind] = DeclarationKind.OBJECT_LITERAL_PROPERTY


Declaration: TypeAlias = (
    "FunctionDeclaration | ClassDeclaration | InterfaceDeclaration | TypeAliasDeclaration | NamespaceDeclaration | EnumDeclaration | VariableDeclaration | MemberDeclaration | ObjectLiteralProperty"
)


@dataclass(frozen=True, slots=True)
class DeclarationTree:
    """Read-only view of the declarations and doc comments of one source.

    Attributes
    ----------
    source : str
        Scanned source text.
    nodes : tuple[Declaration, ...]
        Declarations in source order; ``node.index`` is the position here.
    comments : tuple[CommentRange, ...]
        Multi-line ``/**`` comments in source order.
    exported_names : frozenset[str]
        Names exported through ``export { ... }``, ``export default name`` or
        ``export = name``.
    attachments : Mapping[int, int]
        Comment start offset to the index of the declaration it documents.
    """

    source: str
    nodes: tuple[Declaration, ...] = ()
    comments: tuple[CommentRange, ...] = ()
    exported_names: frozenset[str] = frozenset()
    attachments: Mapping[int, int] = field(default_factory=dict)

    def parent(self, node: Declaration) -> Declaration | None:
        """Return the declaration lexically enclosing ``node``."""
        if node.parent is None:
            return None
        return self.nodes[node.parent]

    def ancestors(self, node: Declaration) -> Iterator[Declaration]:
        """Yield enclosing declarations from the innermost outwards."""
        current = self.parent(node)
        while current is not None:
            yield current
            current = self.parent(current)

    def declaration_for(self, comment: CommentRange) -> Declaration | None:
        """Return the declaration documented by ``comment``, if any."""
        index = self.attachments.get(comment.start)
        return None if index is None else self.nodes[index]

    def comment_for(self, node: Declaration) -> CommentRange | None:
        """Return the nearest doc comment attached to ``node``."""
        attached = [
            comment
            for comment in self.comments
            if self.attachments.get(comment.start) == node.index
        ]
        return attached[-1] if attached else None

    def is_first_comment(self, comment: CommentRange) -> bool:
        return bool(self.comments) and self.comments[0].start == comment.start


@cache
def load_grammar(*, jsx: bool = False) -> Language:
    """Load the TypeScript grammar, or its TSX variant when ``jsx`` is set.

    Raises
    ------
    ConfigurationError
        If ``tree_sitter_typescript`` is missing or lacks the factory.
    """
    factory_name = "language_tsx" if jsx else "language_typescript"
    try:
        module = import_module(GRAMMAR_PACKAGE)
    except ModuleNotFoundError as exc:  # pragma: no cover - configuration error
        message = f"Tree-sitter package '{GRAMMAR_PACKAGE}' is not installed."
        raise ConfigurationError(message, cause=exc) from exc
    try:
        factory = getattr(module, factory_name)
    except AttributeError as exc:
        message = f"Tree-sitter package '{GRAMMAR_PACKAGE}' does not expose '{factory_name}()'."
        raise ConfigurationError(message, cause=exc) from exc
    return Language(factory())


def _char_offsets(source: str, data: bytes) -> Callable[[int], int]:
    if len(data) == len(source):
        return int
    boundaries = list(
        itertools.accumulate(
            (len(char.encode("utf-8", "surrogatepass")) for char in source), initial=0
        )
    )
    return lambda offset: bisect.bisect_left(boundaries, offset)


class _Role(StrEnum):
    STATEMENT = "statement"
    MEMBER = "member"
    PROPERTY = "property"


@dataclass(slots=True)
class _Visit:
    node: Node
    owner: int | None = None
    ambient: bool = False
    exported: bool = False
    default: bool = False
    start: int | None = None
    role: _Role = _Role.STATEMENT


@dataclass(slots=True)
class _NodeSpec:
    kind: DeclarationKind
    name: str
    start: int
    parent: int | None
    exported: bool = False
    default: bool = False
    ambient: bool = False


_NODE_TYPES: Final[dict[DeclarationKind, type[_DeclarationBase]]] = {
    DeclarationKind.FUNCTION: FunctionDeclaration,
    DeclarationKind.CLASS: ClassDeclaration,
    DeclarationKind.INTERFACE: InterfaceDeclaration,
    DeclarationKind.TYPE_ALIAS: TypeAliasDeclaration,
    DeclarationKind.NAMESPACE: NamespaceDeclaration,
    DeclarationKind.ENUM: EnumDeclaration,
    DeclarationKind.VARIABLE: VariableDeclaration,
    DeclarationKind.MEMBER: MemberDeclaration,
    DeclarationKind.OBJECT_LITERAL_PROPERTY: ObjectLiteralProperty,
}
_FUNCTION_NODES: Final = frozenset(
    {"function_declaration", "generator_function_declaration", "function_signature"}
)
_CLASS_NODES: Final = frozenset({"class_declaration", "abstract_class_declaration"})
_ANONYMOUS_FUNCTIONS: Final = frozenset({"function_expression", "function", "generator_function"})
_DEFAULT_EXPRESSIONS: Final = _ANONYMOUS_FUNCTIONS | {"class"}
_MEMBER_NODES: Final = frozenset(
    {
        "method_definition",
        "method_signature",
        "abstract_method_signature",
        "public_field_definition",
        "property_signature",
        "index_signature",
        "construct_signature",
    }
)
_PROPERTY_NODES: Final = frozenset(
    {
        "pair",
        "method_definition",
        "shorthand_property_identifier",
        "property_signature",
        "method_signature",
    }
)


class DeclarationScanner:
    """Build a :class:`DeclarationTree` from TypeScript or JavaScript source.

    Parameters
    ----------
    source : str
        Complete source text.
    jsx : bool, optional
        Parse with the TSX grammar. Defaults to False.
    """

    def __init__(self, source: str, *, jsx: bool = False) -> None:
        self._source = source
        self._data = source.encode("utf-8", "surrogatepass")
        self._jsx = jsx
        self._specs: list[_NodeSpec] = []
        self._exported_names: set[str] = set()

    def scan(self) -> DeclarationTree:
        """Parse the source once and return the declaration tree."""
        parser = Parser()
        cast("Any", parser).language = load_grammar(jsx=self._jsx)
        root = parser.parse(self._data).root_node
        self._specs = []
        self._exported_names = set()

        comment_nodes, token_starts = self._leaves(root)
        stack = [_Visit(root)]
        while stack:
            stack.extend(reversed(self._visit(stack.pop())))

        to_char = _char_offsets(self._source, self._data)
        nodes = tuple(
            self._freeze(position, spec, to_char) for position, spec in enumerate(self._specs)
        )
        comments: list[CommentRange] = []
        attachments: dict[int, int] = {}
        by_start: dict[int, int] = {}
        for position, spec in enumerate(self._specs):
            by_start.setdefault(spec.start, position)
        for node in comment_nodes:
            start, end = to_char(node.start_byte), to_char(node.end_byte)
            comment = CommentRange(start, end, self._source[start:end])
            if not (comment.is_doc_comment and comment.is_multiline):
                continue
            comments.append(comment)
            following = bisect.bisect_left(token_starts, node.end_byte)
            if following < len(token_starts) and token_starts[following] in by_start:
                attachments[start] = by_start[token_starts[following]]
        logger.debug(
            "Scanned declarations",
            extra={
                "declarations": len(nodes),
                "comments": len(comments),
                "syntax_errors": root.has_error,
            },
        )
        return DeclarationTree(
            source=self._source,
            nodes=nodes,
            comments=tuple(comments),
            exported_names=frozenset(self._exported_names),
            attachments=attachments,
        )

    # Tree walk -------------------------------------------------------------------

    @staticmethod
    def _leaves(root: Node) -> tuple[list[Node], list[int]]:
        comments: list[Node] = []
        starts: list[int] = []
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type == "comment":
                comments.append(node)
            elif node.child_count == 0:
                if node.end_byte > node.start_byte:
                    starts.append(node.start_byte)
            else:
                stack.extend(reversed(node.children))
        comments.sort(key=lambda node: node.start_byte)
        starts.sort()
        return comments, starts

    def _text(self, node: Node) -> str:
        return self._data[node.start_byte : node.end_byte].decode("utf-8", "surrogatepass")

    def _name(self, node: Node, field_name: str = "name") -> str | None:
        name = node.child_by_field_name(field_name)
        if name is None:
            return None
        match name.type:
            case "string":
                return self._text(name).strip("'\"")
            case "computed_property_name":
                return "[computed]"
            case _:
                return self._text(name)

    def _add(self, item: _Visit, kind: DeclarationKind, name: str, *, ambient: bool = False) -> int:
        start = item.start if item.start is not None else item.node.start_byte
        self._specs.append(
            _NodeSpec(kind, name, start, item.owner, item.exported, item.default, ambient)
        )
        return len(self._specs) - 1

    @staticmethod
    def _children(node: Node | None, owner: int | None, *, ambient: bool = False) -> list[_Visit]:
        if node is None:
            return []
        return [_Visit(child, owner=owner, ambient=ambient) for child in node.named_children]

    def _visit(self, item: _Visit) -> list[_Visit]:
        node = item.node
        match item.role:
            case _Role.MEMBER:
                return self._member(item)
            case _Role.PROPERTY:
                return self._property(item)
        match node.type:
            case "export_statement":
                return self._export(item)
            case "ambient_declaration":
                return self._ambient(item)
            case kind if kind in _FUNCTION_NODES or (kind in _ANONYMOUS_FUNCTIONS and item.default):
                name = self._name(node) or ("default" if item.default else None)
                if name is None:
                    return self._children(node, item.owner, ambient=item.ambient)
                index = self._add(item, DeclarationKind.FUNCTION, name)
                return self._children(node.child_by_field_name("body"), index)
            case kind if kind in _CLASS_NODES or (kind == "class" and item.default):
                return self._container(item)
            case "interface_declaration":
                return self._container(item)
            case "type_alias_declaration":
                index = self._add(item, DeclarationKind.TYPE_ALIAS, self._name(node) or "")
                return self._children(node.child_by_field_name("value"), index)
            case "internal_module" | "module":
                return self._namespace(item)
            case "enum_declaration":
                self._add(item, DeclarationKind.ENUM, self._name(node) or "")
                return []
            case "lexical_declaration" | "variable_declaration":
                declarators = [
                    child for child in node.named_children if child.type == "variable_declarator"
                ]
                first = item.start if item.start is not None else node.start_byte
                return [
                    _Visit(
                        child,
                        owner=item.owner,
                        ambient=item.ambient,
                        exported=item.exported,
                        start=first if position == 0 else None,
                    )
                    for position, child in enumerate(declarators)
                ]
            case "variable_declarator":
                target = node.child_by_field_name("name")
                if target is None or target.type != "identifier":
                    return self._children(node, item.owner, ambient=item.ambient)
                index = self._add(item, DeclarationKind.VARIABLE, self._text(target))
                value = node.child_by_field_name("value")
                return [] if value is None else [_Visit(value, owner=index)]
            case "object" | "object_type":
                return [
                    _Visit(child, owner=item.owner, role=_Role.PROPERTY)
                    for child in node.named_children
                ]
            case _:
                return self._children(node, item.owner, ambient=item.ambient)

    def _export(self, item: _Visit) -> list[_Visit]:
        node = item.node
        default = any(child.type == "default" for child in node.children)
        assigns = any(child.type == "=" for child in node.children)
        declaration = node.child_by_field_name("declaration")
        if declaration is not None:
            return [
                _Visit(
                    declaration,
                    owner=item.owner,
                    ambient=item.ambient,
                    exported=True,
                    default=default,
                    start=node.start_byte,
                )
            ]
        visits: list[_Visit] = []
        for child in node.named_children:
            match child.type:
                case "export_clause":
                    for specifier in child.named_children:
                        name = self._name(specifier)
                        if specifier.type == "export_specifier" and name:
                            self._exported_names.add(name)
                case "identifier" if default or assigns:
                    self._exported_names.add(self._text(child))
                case kind if kind in _DEFAULT_EXPRESSIONS and default:
                    visits.append(
                        _Visit(
                            child,
                            owner=item.owner,
                            exported=True,
                            default=True,
                            start=node.start_byte,
                        )
                    )
                case "decorator" | "comment":
                    pass
                case _:
                    visits.append(_Visit(child, owner=item.owner, ambient=item.ambient))
        return visits

    def _ambient(self, item: _Visit) -> list[_Visit]:
        node = item.node
        start = item.start if item.start is not None else node.start_byte
        block = next(
            (child for child in node.named_children if child.type == "statement_block"), None
        )
        if block is not None:
            global_item = _Visit(node, owner=item.owner, exported=item.exported, start=start)
            index = self._add(global_item, DeclarationKind.NAMESPACE, "global", ambient=True)
            return self._children(block, index, ambient=True)
        return [
            _Visit(
                child,
                owner=item.owner,
                ambient=True,
                exported=item.exported,
                default=item.default,
                start=start,
            )
            for child in node.named_children
        ]

    def _namespace(self, item: _Visit) -> list[_Visit]:
        node = item.node
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return self._children(node, item.owner, ambient=item.ambient)
        ambient = item.ambient or name_node.type == "string"
        name = self._text(name_node).strip("'\"")
        index = self._add(item, DeclarationKind.NAMESPACE, name, ambient=ambient)
        return self._children(node.child_by_field_name("body"), index, ambient=ambient)

    def _container(self, item: _Visit) -> list[_Visit]:
        node = item.node
        kind = (
            DeclarationKind.INTERFACE
            if node.type == "interface_declaration"
            else DeclarationKind.CLASS
        )
        index = self._add(item, kind, self._name(node) or "default")
        body = node.child_by_field_name("body")
        if body is None:
            return []
        visits: list[_Visit] = []
        decorated: int | None = None
        for child in body.named_children:
            if child.type == "decorator":
                decorated = child.start_byte if decorated is None else decorated
                continue
            if child.type == "comment":
                continue
            if child.type in _MEMBER_NODES:
                visits.append(
                    _Visit(
                        child,
                        owner=index,
                        ambient=item.ambient,
                        start=decorated,
                        role=_Role.MEMBER,
                    )
                )
            else:
                visits.append(_Visit(child, owner=index, ambient=item.ambient))
            decorated = None
        return visits

    def _member(self, item: _Visit) -> list[_Visit]:
        node = item.node
        name = self._name(node)
        match node.type:
            case "index_signature":
                name = "[computed]"
            case "construct_signature":
                name = "new"
        if name is None:
            return self._children(node, item.owner)
        index = self._add(item, DeclarationKind.MEMBER, name)
        return self._children(node.child_by_field_name("body"), index) + self._children(
            node.child_by_field_name("value"), index
        )

    def _property(self, item: _Visit) -> list[_Visit]:
        node = item.node
        if node.type not in _PROPERTY_NODES:
            return self._children(node, item.owner) if node.type != "comment" else []
        match node.type:
            case "pair":
                name = self._name(node, "key")
                value = node.child_by_field_name("value")
            case "shorthand_property_identifier":
                name = self._text(node)
                value = None
            case _:
                name = self._name(node)
                value = node.child_by_field_name("body")
        if name is None:
            return self._children(node, item.owner)
        index = self._add(item, DeclarationKind.OBJECT_LITERAL_PROPERTY, name)
        if value is None:
            type_node = node.child_by_field_name("type")
            return self._children(type_node, index)
        return [_Visit(value, owner=index)]

    # Assembly ----------------------------------------------------------------------

    @staticmethod
    def _freeze(position: int, spec: _NodeSpec, to_char: Callable[[int], int]) -> Declaration:
        node_type = _NODE_TYPES[spec.kind]
        common = {
            "index": position,
            "name": spec.name,
            "start": to_char(spec.start),
            "parent": spec.parent,
            "exported": spec.exported,
            "default": spec.default,
        }
        if node_type is NamespaceDeclaration:
            return NamespaceDeclaration(**common, ambient=spec.ambient)
        return node_type(**common)  # type: ignore[return-value]


def scan_declarations(source: str, *, jsx: bool = False) -> DeclarationTree:
    """Return the declaration tree of ``source``.

    Parameters
    ----------
    source : str
        TypeScript or JavaScript source text.
    jsx : bool, optional
        Parse with the TSX grammar, for ``.tsx`` and ``.jsx`` files.

    Returns
    -------
    DeclarationTree
        Declarations, doc comments and their attachments. Syntax errors do
        not raise; Tree-sitter recovers and the surviving declarations are
        still recorded.

    Raises
    ------
    ConfigurationError
        If the TypeScript grammar cannot be loaded.
    """
    return DeclarationScanner(source, jsx=jsx).scan()

"""Doc intermediate representation and its printer.

A document is an immutable tree of five node kinds:

``Text``
    Literal text without newlines.
``Line``
    A space when the enclosing group prints flat, a newline otherwise.
``HardLine``
    Always a newline; forces every enclosing group to break.
``Group``
    Prints its children flat when they fit in the remaining width and break
    otherwise. ``indent`` is appended to the indentation of every newline
    emitted inside the group.
``Fill``
    Alternating content and separators; a separator breaks only when the next
    content would not fit on the current line.

:func:`print_doc` is the single interpreter that lowers a tree to text.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Final, TypeAlias

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

__all__ = [
    "HARDLINE",
    "LINE",
    "Doc",
    "Fill",
    "Group",
    "HardLine",
    "Line",
    "Text",
    "fill_words",
    "group",
    "join",
    "print_doc",
    "text_width",
]


@dataclass(frozen=True, slots=True)
class Text:
    value: str


@dataclass(frozen=True, slots=True)
class Line:
    pass


@dataclass(frozen=True, slots=True)
class HardLine:
    pass


@dataclass(frozen=True, slots=True)
class Group:
    children: tuple[Doc, ...]
    indent: str = ""


@dataclass(frozen=True, slots=True)
class Fill:
    children: tuple[Doc, ...]


Doc: TypeAlias = "Text | Line | HardLine | Group | Fill"

LINE: Final = Line()
HARDLINE: Final = HardLine()


class _Mode(Enum):
    FLAT = auto()
    BREAK = auto()


def text_width(value: str) -> int:
    """Return the display width of ``value``.

    East Asian wide and fullwidth characters count as two columns and
    combining marks as zero.

    Examples
    --------
    >>> text_width("abc")
    3
    >>> text_width("日本")
    4
    """
    if value.isascii():
        return len(value)
    width = 0
    for char in value:
        if unicodedata.combining(char):
            continue
        width += 2 if unicodedata.east_asian_width(char) in {"W", "F"} else 1
    return width


def group(*children: Doc, indent: str = "") -> Group:
    return Group(tuple(children), indent)


def join(separator: Doc, docs: Iterable[Doc]) -> list[Doc]:
    """Interleave ``separator`` between ``docs``."""
    joined: list[Doc] = []
    for index, doc in enumerate(docs):
        if index:
            joined.append(separator)
        joined.append(doc)
    return joined


def fill_words(words: Sequence[str]) -> Fill:
    """Return a fill that wraps ``words`` greedily, separated by soft lines."""
    return Fill(tuple(join(LINE, (Text(word) for word in words))))


def _has_hardline(doc: Doc) -> bool:
    match doc:
        case HardLine():
            return True
        case Group(children=children) | Fill(children=children):
            return any(_has_hardline(child) for child in children)
        case _:
            return False


def _fits(doc: Doc, remaining: int) -> bool:
    """Return True when ``doc`` printed flat fits in ``remaining`` columns.

    Measuring stops at the first hard line.
    """
    stack: list[Doc] = [doc]
    while stack:
        if remaining < 0:
            return False
        current = stack.pop()
        match current:
            case Text(value=value):
                remaining -= text_width(value)
            case Line():
                remaining -= 1
            case HardLine():
                return True
            case Group(children=children) | Fill(children=children):
                stack.extend(reversed(children))
    return remaining >= 0


def print_doc(doc: Doc, width: int) -> str:
    """Lower ``doc`` to text within ``width`` columns.

    Trailing whitespace is stripped from every printed line.

    Parameters
    ----------
    doc : Doc
        Document to print.
    width : int
        Target line width, in display columns.

    Returns
    -------
    str
        Printed text.

    Examples
    --------
    >>> print_doc(fill_words(["alpha", "beta", "gamma"]), 11)
    'alpha beta\\ngamma'
    >>> print_doc(group(Text("a"), LINE, Text("b")), 80)
    'a b'
    """
    out: list[str] = []
    column = 0
    stack: list[tuple[str, _Mode, Doc]] = [("", _Mode.BREAK, doc)]
    while stack:
        indent, mode, current = stack.pop()
        match current:
            case Text(value=value):
                out.append(value)
                column += text_width(value)
            case Line() if mode is _Mode.FLAT:
                out.append(" ")
                column += 1
            case Line() | HardLine():
                out.append("\n" + indent)
                column = text_width(indent)
            case Group(children=children, indent=extra):
                child_mode = mode
                if mode is _Mode.BREAK:
                    flat = not _has_hardline(current) and _fits(current, width - column)
                    child_mode = _Mode.FLAT if flat else _Mode.BREAK
                nested = indent + extra
                stack.extend((nested, child_mode, child) for child in reversed(children))
            case Fill(children=children):
                if mode is _Mode.FLAT:
                    stack.extend((indent, mode, child) for child in reversed(children))
                else:
                    stack.extend(_fill_step(indent, children, width - column))
    return "\n".join(line.rstrip() for line in "".join(out).split("\n"))


def _fill_step(
    indent: str, children: tuple[Doc, ...], remaining: int
) -> list[tuple[str, _Mode, Doc]]:
    """Schedule the first content of a fill and defer the rest.

    Entries are returned in stack order: the last one is printed first.
    """
    if not children:
        return []
    content = children[0]
    content_mode = _Mode.FLAT if _fits(content, remaining) else _Mode.BREAK
    if len(children) == 1:
        return [(indent, content_mode, content)]
    separator = children[1]
    if len(children) == 2:
        return [(indent, content_mode, separator), (indent, content_mode, content)]
    pair = Group((content, separator, children[2]))
    separator_mode = _Mode.FLAT if _fits(pair, remaining) else _Mode.BREAK
    return [
        (indent, _Mode.BREAK, Fill(children[2:])),
        (indent, separator_mode, separator),
        (indent, content_mode, content),
    ]

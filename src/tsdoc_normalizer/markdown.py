"""Block structure of free comment text.

Comment text is split into paragraphs, list items, fenced code blocks and
verbatim lines (headings, tables and quotes, which are never re-wrapped).
This is deliberately not a markdown renderer: only the structure the layout
builder needs to re-wrap prose without damaging it is recognized.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Final, TypeAlias

__all__ = [
    "Block",
    "FencedCode",
    "ListItem",
    "Paragraph",
    "Verbatim",
    "split_blocks",
    "tokenize",
]

_FENCE_OPEN: Final = re.compile(r"^(?P<indent>[ \t]*)```(?P<info>[^`]*)$")
_FENCE_CLOSE: Final = re.compile(r"^[ \t]*```[ \t]*$")
_LIST_ITEM: Final = re.compile(
    r"^(?P<indent>[ \t]*)(?P<marker>[-*+]|\d{1,9}[.)])[ \t]+(?P<text>\S.*)$"
)
_VERBATIM: Final = re.compile(r"^[ \t]*(?:#{1,6}(?:[ \t]|$)|\||>)")
_WORD: Final = re.compile(r"(?:\{@[^}]*\}|\S)+")


@dataclass(frozen=True, slots=True)
class Paragraph:
    text: str
    blank_before: bool = True


@dataclass(frozen=True, slots=True)
class ListItem:
    """One list item; bullets are normalized to ``-``.

    ``depth`` counts nesting levels of two columns each.
    """

    marker: str
    text: str
    depth: int = 0
    blank_before: bool = False


@dataclass(frozen=True, slots=True)
class FencedCode:
    """A fenced code block; ``info`` is the text after the opening fence."""

    info: str
    code: str
    blank_before: bool = True

    @property
    def language(self) -> str:
        return self.info.split(maxsplit=1)[0] if self.info.strip() else ""


@dataclass(frozen=True, slots=True)
class Verbatim:
    lines: tuple[str, ...]
    blank_before: bool = True


Block: TypeAlias = "Paragraph | ListItem | FencedCode | Verbatim"


def tokenize(text: str) -> list[str]:
    """Split prose into wrap units.

    Runs of non-whitespace are atomic, and an inline tag such as
    ``{@link Foo | the foo}`` stays one unit even though it contains spaces.

    Examples
    --------
    >>> tokenize("See {@link Foo | the foo} now.")
    ['See', '{@link Foo | the foo}', 'now.']
    """
    return _WORD.findall(text)


def _indent_depth(indent: str) -> int:
    return len(indent.expandtabs(2)) // 2


@dataclass(slots=True)
class _Builder:
    blocks: list[Block] = field(default_factory=list)
    paragraph: list[str] = field(default_factory=list)
    paragraph_blank: bool = False
    item: ListItem | None = None
    item_lines: list[str] = field(default_factory=list)

    def add_prose(self, line: str, *, blank_before: bool) -> None:
        if self.item is not None:
            self.item_lines.append(line)
            return
        if not self.paragraph:
            self.paragraph_blank = blank_before
        self.paragraph.append(line)

    def open_item(self, item: ListItem, text: str) -> None:
        self.flush()
        self.item = item
        self.item_lines = [text]

    def add(self, block: Block) -> None:
        self.flush()
        self.blocks.append(block)

    def flush(self) -> None:
        if self.item is not None:
            self.blocks.append(replace(self.item, text=" ".join(self.item_lines)))
            self.item = None
            self.item_lines = []
        if self.paragraph:
            self.blocks.append(
                Paragraph(" ".join(self.paragraph), blank_before=self.paragraph_blank)
            )
            self.paragraph = []


def split_blocks(text: str) -> list[Block]:
    """Split ``text`` into blocks.

    Blank lines separate paragraphs. A list item, a fence or a verbatim line
    starts a new block even without a preceding blank line, and each block
    remembers whether a blank line preceded it so the layout can reproduce
    the spacing. Lines following a list item join it until a blank line or
    another block starts. An unterminated fence runs to the end of the text.

    Examples
    --------
    >>> [type(block).__name__ for block in split_blocks("Intro:\\n- a\\n- b\\n\\nDone.")]
    ['Paragraph', 'ListItem', 'ListItem', 'Paragraph']
    """
    builder = _Builder()
    lines = text.split("\n")
    blank_seen = False
    index = 0
    while index < len(lines):
        line = lines[index]
        stripped = line.strip()
        index += 1
        if not stripped:
            builder.flush()
            blank_seen = True
            continue

        if (fence := _FENCE_OPEN.match(line)) is not None:
            body: list[str] = []
            while index < len(lines) and not _FENCE_CLOSE.match(lines[index]):
                body.append(lines[index])
                index += 1
            index += 1
            builder.add(
                FencedCode(fence.group("info").strip(), "\n".join(body), blank_before=blank_seen)
            )
        elif (item := _LIST_ITEM.match(line)) is not None:
            marker = item.group("marker")
            builder.open_item(
                ListItem(
                    marker="-" if marker in {"*", "+"} else marker,
                    text="",
                    depth=_indent_depth(item.group("indent")),
                    blank_before=blank_seen,
                ),
                item.group("text").strip(),
            )
        elif _VERBATIM.match(line):
            verbatim = [stripped]
            while index < len(lines) and _VERBATIM.match(lines[index]):
                verbatim.append(lines[index].strip())
                index += 1
            builder.add(Verbatim(tuple(verbatim), blank_before=blank_seen))
        else:
            builder.add_prose(stripped, blank_before=blank_seen)
        blank_seen = False
    builder.flush()
    return builder.blocks

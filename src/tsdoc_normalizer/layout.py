"""Layout builder: render a :class:`CommentModel` back into comment text.

The builder turns the model into a list of comment lines, each a small
:mod:`tsdoc_normalizer.doc` tree, and prints them inside a group whose
indentation is the `` * `` line prefix. Sections appear in a fixed order:

1. summary, re-wrapped to the effective width;
2. ``@remarks`` followed by its text;
3. ``@param`` and ``@typeParam`` entries, then ``@returns``;
4. every other tag.

A blank comment line separates the summary from the remarks, prose from the
parameter block, and precedes each other tag when anything comes before it.
Fenced code anywhere is handed to the embedded formatter registry.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, TypeAlias

from tsdoc_normalizer.config import DEFAULT_OPTIONS, FencedIndent
from tsdoc_normalizer.constants import (
    COMMENT_CLOSE,
    COMMENT_OPEN,
    COMMENT_PREFIX_WIDTH,
    EXAMPLE_TAG,
    LINE_PREFIX,
    REMARKS_TAG,
    RETURNS_TAG,
)
from tsdoc_normalizer.doc import HARDLINE, Doc, Group, Text, fill_words, group, print_doc
from tsdoc_normalizer.embedded import EmbeddedFormatterRegistry
from tsdoc_normalizer.errors import RenderError
from tsdoc_normalizer.markdown import (
    FencedCode,
    ListItem,
    Paragraph,
    Verbatim,
    split_blocks,
    tokenize,
)

if TYPE_CHECKING:
    from tsdoc_normalizer.config import FormatterOptions
    from tsdoc_normalizer.markdown import Block
    from tsdoc_normalizer.models import CommentModel, OtherTag, ParamTag, ReturnsTag

__all__ = ["LayoutBuilder", "wrap_units"]

# Words that change meaning when a wrap moves them to the start of a line.
_LINE_START_HAZARD: Final = re.compile(r"^(?:(?:[-*+]|\d{1,9}[.)]|#{1,6})$|[>|]|@[A-Za-z]|```)")
_FENCE_OPEN: Final = re.compile(r"^[ \t]*```(?P<info>[^`]*)$")
_FENCE_CLOSE: Final = re.compile(r"^[ \t]*```[ \t]*$")
_PARAM_CONTINUATION: Final = "  "


@dataclass(frozen=True, slots=True)
class _Blank:
    """A blank comment line."""


_BLANK: Final = _Blank()

_Entry: TypeAlias = "Doc | _Blank"


def wrap_units(text: str) -> list[str]:
    """Return the wrap units of ``text``.

    A word that would read as a list marker, heading, quote, table row, block
    tag or fence when starting a line is glued to the preceding word.

    Examples
    --------
    >>> wrap_units("pages 1 - 5, ask @team")
    ['pages', '1 -', '5,', 'ask @team']
    """
    units: list[str] = []
    for token in tokenize(text):
        if units and _LINE_START_HAZARD.match(token):
            units[-1] = f"{units[-1]} {token}"
        else:
            units.append(token)
    return units


def _prose(text: str) -> Doc:
    return fill_words(wrap_units(text))


class LayoutBuilder:
    """Render comment models within a width budget.

    Parameters
    ----------
    options : FormatterOptions | None, optional
        Layout options: alignment, modifier splitting, fence indentation and
        embedded formatting. Defaults to the built-in options.
    width : int | None, optional
        Effective content width, excluding the line prefix. Defaults to
        ``options.effective_width()``.
    registry : EmbeddedFormatterRegistry | None, optional
        Sub-formatters for fenced code. Defaults to the built-in registry.
    """

    def __init__(
        self,
        options: FormatterOptions | None = None,
        width: int | None = None,
        registry: EmbeddedFormatterRegistry | None = None,
    ) -> None:
        self._options = options or DEFAULT_OPTIONS
        self._width = width if width is not None else self._options.effective_width()
        self._registry = registry or EmbeddedFormatterRegistry()

    @property
    def width(self) -> int:
        return self._width

    async def render(self, model: CommentModel) -> str:
        """Render ``model`` as comment text starting at column zero.

        Parameters
        ----------
        model : CommentModel
            Model to render; it is not modified.

        Returns
        -------
        str
            Comment text from ``/**`` to `` */`` with ``\\n`` line endings.

        Raises
        ------
        RenderError
            If the document cannot be built or printed.
        """
        try:
            entries = await self._entries(model)
            return print_doc(_comment_doc(entries), self._width + COMMENT_PREFIX_WIDTH)
        except RenderError:
            raise
        except Exception as exc:
            message = f"Could not render comment: {type(exc).__name__}: {exc}"
            raise RenderError(message, cause=exc) from exc

    def render_sync(self, model: CommentModel) -> str:
        """Run :meth:`render` on a fresh event loop.

        Must not be called while an event loop is running in this thread.
        """
        return asyncio.run(self.render(model))

    async def _entries(self, model: CommentModel) -> list[_Entry]:
        entries: list[_Entry] = []
        if model.summary:
            entries.extend(await self._blocks(split_blocks(model.summary)))
        if model.remarks:
            if entries:
                entries.append(_BLANK)
            entries.append(Text(REMARKS_TAG))
            entries.extend(await self._blocks(split_blocks(model.remarks), after=True))

        section: list[_Entry] = []
        for params in (model.parameters, model.type_parameters):
            for head, description in self._param_heads(params):
                section.extend(await self._param(head, description))
        if model.returns is not None:
            section.extend(await self._returns(model.returns))
        if section:
            if entries:
                entries.append(_BLANK)
            entries.extend(section)

        separate = bool(entries)
        for tag_entries in await self._other_tags(model.other_tags):
            if separate:
                entries.append(_BLANK)
            entries.extend(tag_entries)
        return _collapse_blanks(entries)

    async def _blocks(self, blocks: list[Block], *, after: bool = False) -> list[_Entry]:
        """Render blocks; ``after`` means a line already precedes the first one."""
        entries: list[_Entry] = []
        for block in blocks:
            if (entries or after) and block.blank_before:
                entries.append(_BLANK)
            match block:
                case Paragraph(text=text):
                    entries.append(_prose(text))
                case ListItem(marker=marker, text=text, depth=depth):
                    lead = "  " * depth
                    entries.append(
                        group(
                            Text(f"{lead}{marker} "),
                            _prose(text),
                            indent=f"{lead}  ",
                        )
                    )
                case FencedCode(info=info, code=code):
                    entries.extend(await self._fence(info, code))
                case Verbatim(lines=lines):
                    entries.extend(Text(line) for line in lines)
        return entries

    async def _fence(self, info: str, code: str) -> list[_Entry]:
        language = info.split(maxsplit=1)[0] if info.strip() else ""
        formatted = await self._registry.format(code, language, self._options)
        prefix = " " if self._options.fenced_indent is FencedIndent.SPACE else ""
        entries: list[_Entry] = [Text(f"```{info}")]
        if formatted:
            entries.extend(
                Text(f"{prefix}{line}" if line else "") for line in formatted.split("\n")
            )
        entries.append(Text("```"))
        return entries

    def _param_heads(self, params: list[ParamTag]) -> list[tuple[str, str]]:
        """Return the tag-line head and description of each parameter-like tag.

        With alignment on, heads are padded so the hyphens of every tag that
        fits share one column.
        """
        headers = [f"{param.tag_kind} {param.name}".rstrip() for param in params]
        column = 0
        if self._options.align_param_tags:
            column = max(
                (
                    len(header)
                    for header, param in zip(headers, params, strict=True)
                    if param.description and len(header) + 3 <= self._width
                ),
                default=0,
            )
        heads: list[tuple[str, str]] = []
        for header, param in zip(headers, params, strict=True):
            if not param.description:
                heads.append((header, ""))
            elif len(header) + 3 > self._width:
                heads.append((f"{header} -", param.description))
            else:
                heads.append((f"{header.ljust(column)} - ", param.description))
        return heads

    async def _param(self, head: str, description: str) -> list[_Entry]:
        if not description:
            return [Text(head)]
        if not head.endswith(" -"):
            return await self._head_with_text(head, description, _PARAM_CONTINUATION)
        # The header alone fills the line: the description starts below it.
        blocks = split_blocks(description)
        entries: list[_Entry] = [Text(head)]
        if blocks and isinstance(blocks[0], Paragraph):
            entries.append(
                group(
                    Text(_PARAM_CONTINUATION),
                    _prose(blocks[0].text),
                    indent=_PARAM_CONTINUATION,
                )
            )
            blocks = blocks[1:]
        entries.extend(await self._blocks(blocks, after=True))
        return entries

    async def _returns(self, returns: ReturnsTag) -> list[_Entry]:
        if not returns.description:
            return [Text(RETURNS_TAG)]
        return await self._head_with_text(f"{RETURNS_TAG} ", returns.description, "")

    async def _head_with_text(self, head: str, text: str, continuation: str) -> list[_Entry]:
        blocks = split_blocks(text)
        if not blocks or not isinstance(blocks[0], Paragraph):
            return [Text(head.rstrip()), *await self._blocks(blocks, after=True)]
        first = group(Text(head), _prose(blocks[0].text), indent=continuation)
        return [first, *await self._blocks(blocks[1:], after=True)]

    async def _other_tags(self, tags: list[OtherTag]) -> list[list[_Entry]]:
        rendered: list[list[_Entry]] = []
        modifiers: list[str] = []
        for tag in tags:
            if not self._options.split_modifiers and tag.is_modifier:
                modifiers.append(tag.tag_name)
                continue
            if modifiers:
                rendered.append([Text(" ".join(modifiers))])
                modifiers = []
            rendered.append(await self._other_tag(tag))
        if modifiers:
            rendered.append([Text(" ".join(modifiers))])
        return rendered

    async def _other_tag(self, tag: OtherTag) -> list[_Entry]:
        """Render one tag, keeping the physical lines of its content.

        The first content line shares the tag line. ``@example`` lines are
        kept verbatim; other lines are wrapped individually.
        """
        content = tag.content.strip("\n")
        if not content.strip():
            return [Text(tag.tag_name)]
        verbatim = tag.tag_name == EXAMPLE_TAG
        lines = content.split("\n")
        first = lines[0].strip()
        if not first or _FENCE_OPEN.match(first):
            entries: list[_Entry] = [Text(tag.tag_name)]
        elif verbatim:
            entries = [Text(f"{tag.tag_name} {first}")]
            lines = lines[1:]
        else:
            entries = [group(Text(f"{tag.tag_name} "), _prose(first))]
            lines = lines[1:]
        entries.extend(await self._lines(lines, verbatim=verbatim))
        return entries

    async def _lines(self, lines: list[str], *, verbatim: bool) -> list[_Entry]:
        entries: list[_Entry] = []
        index = 0
        while index < len(lines):
            line = lines[index].rstrip()
            index += 1
            if not line:
                entries.append(_BLANK)
                continue
            fence = _FENCE_OPEN.match(line)
            if fence is not None:
                body: list[str] = []
                while index < len(lines) and not _FENCE_CLOSE.match(lines[index]):
                    body.append(lines[index])
                    index += 1
                index += 1
                entries.extend(await self._fence(fence.group("info").strip(), "\n".join(body)))
            elif verbatim:
                entries.append(Text(line))
            else:
                lead = line[: len(line) - len(line.lstrip())]
                entries.append(group(Text(lead), _prose(line), indent=lead))
        return entries


def _collapse_blanks(entries: list[_Entry]) -> list[_Entry]:
    collapsed: list[_Entry] = []
    for entry in entries:
        if isinstance(entry, _Blank) and (not collapsed or isinstance(collapsed[-1], _Blank)):
            continue
        collapsed.append(entry)
    while collapsed and isinstance(collapsed[-1], _Blank):
        collapsed.pop()
    return collapsed


def _comment_doc(entries: list[_Entry]) -> Doc:
    body: list[Doc] = []
    for entry in entries:
        body.append(HARDLINE)
        if not isinstance(entry, _Blank):
            body.append(entry)
    return Group(
        (Text(COMMENT_OPEN), Group(tuple(body), indent=LINE_PREFIX), HARDLINE, Text(COMMENT_CLOSE))
    )

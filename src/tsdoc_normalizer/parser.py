"""Structured-comment parsing and conversion into the comment model.

Two layers live here. :class:`BlockTagParser` tokenizes a comment body into a
leading text block followed by block tags; it knows nothing about sections.
:class:`ParserAdapter` drives any :class:`CommentParser`, normalizes tag names
and sorts the tags into the sections of a :class:`CommentModel`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final, Protocol

from tsdoc_normalizer.constants import (
    FILE_OVERVIEW_TAG,
    INLINE_TAGS,
    MODIFIER_TAGS,
    PACKAGE_DOCUMENTATION_TAG,
    STANDARD_TAGS,
)
from tsdoc_normalizer.diagnostics import NullDiagnostics
from tsdoc_normalizer.errors import ParseError, RecoveryStrategy, TsdocError, recovery_strategy_for
from tsdoc_normalizer.models import CommentModel, OtherTag, ParamTag, RawTag, ReturnsTag, TagKind

if TYPE_CHECKING:
    from collections.abc import Callable

    from tsdoc_normalizer.config import FormatterOptions
    from tsdoc_normalizer.diagnostics import Diagnostics

__all__ = [
    "BlockTagParser",
    "CommentParser",
    "ParseResult",
    "ParserAdapter",
    "ParserMessage",
    "TagConfiguration",
    "extract_comment_body",
    "is_tsdoc_candidate",
    "split_first_sentence",
]

_LINE_PREFIX: Final = re.compile(r"^[ \t]*\*(?=\s|$)[ \t]?")
_BLOCK_TAG: Final = re.compile(r"^@(?P<name>[A-Za-z]\w*)(?=\s|$)")
_ANY_BLOCK_TAG: Final = re.compile(r"@[A-Za-z][A-Za-z0-9]*(?:\s|$)")
_FENCE: Final = re.compile(r"^[ \t]*```")
_PARAM_HYPHEN: Final = re.compile(r"^-(?:[ \t]+|$)")
_SENTENCE_END: Final = re.compile(r"(?<=[.!?])\s+(?=\S)")


def extract_comment_body(raw: str) -> str:
    """Return the text between the comment delimiters without line prefixes.

    Parameters
    ----------
    raw : str
        Comment text including ``/**`` and ``*/``.

    Returns
    -------
    str
        Body lines with the leading `` * `` removed, trailing whitespace
        stripped and surrounding blank lines dropped.

    Examples
    --------
    >>> extract_comment_body("/**\\n * Hello.\\n *\\n * @public\\n */")
    'Hello.\\n\\n@public'
    """
    text = raw.strip()
    if text.startswith("/**"):
        text = text[3:]
    elif text.startswith("/*"):
        text = text[2:]
    if text.endswith("*/"):
        text = text[:-2]
    text = text.lstrip(" \t")
    lines = [_LINE_PREFIX.sub("", line, count=1).rstrip() for line in text.split("\n")]
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines)


def is_tsdoc_candidate(comment: str, *, force: bool = False) -> bool:
    """Return True when a block comment should be formatted.

    A candidate opens with ``/**``, spans more than one line and carries a
    block tag, an inline tag or any text. ``force`` skips the content check
    but never the shape check.

    Parameters
    ----------
    comment : str
        Raw block comment, with or without its ``/*`` and ``*/`` delimiters.
    force : bool, optional
        Accept any multi-line ``/**`` comment. Defaults to False.

    Returns
    -------
    bool
        Whether the comment is a documentation candidate.
    """
    value = comment.strip()
    if value.startswith("/*"):
        value = value[2:]
    if value.endswith("*/"):
        value = value[:-2]
    if not value.startswith("*") or "\n" not in value:
        return False
    if force:
        return True
    if _ANY_BLOCK_TAG.search(value) or "{@" in value:
        return True
    return any(re.sub(r"^\s*\*?\s*", "", line).strip() for line in value.split("\n"))


def split_first_sentence(text: str) -> tuple[str, str]:
    """Split ``text`` after its first sentence.

    Returns
    -------
    tuple[str, str]
        The first sentence and the remaining text, which may be empty.

    Examples
    --------
    >>> split_first_sentence("Loads data. Then caches it.")
    ('Loads data.', 'Then caches it.')
    """
    paragraph, separator, tail = text.partition("\n\n")
    parts = _SENTENCE_END.split(paragraph.strip(), maxsplit=1)
    head = parts[0].strip()
    rest = parts[1].strip() if len(parts) > 1 else ""
    if separator and tail.strip():
        rest = f"{rest}\n\n{tail.strip()}" if rest else tail.strip()
    return head, rest


@dataclass(frozen=True, slots=True)
class TagConfiguration:
    """Immutable tag vocabulary a parser recognizes.

    Attributes
    ----------
    extra_tags : tuple[str, ...]
        Additional tag names, each with a leading ``@``, kept sorted.
    """

    extra_tags: tuple[str, ...] = ()

    @classmethod
    def from_tags(cls, tags: tuple[str, ...] | list[str] | frozenset[str]) -> TagConfiguration:
        names = {tag if tag.startswith("@") else f"@{tag}" for tag in tags if tag}
        return cls(extra_tags=tuple(sorted(names)))

    @property
    def cache_key(self) -> str:
        return "|".join(self.extra_tags) or "default"

    def is_known(self, tag_name: str) -> bool:
        return (
            tag_name in STANDARD_TAGS
            or tag_name in INLINE_TAGS
            or tag_name in self.extra_tags
            or tag_name == FILE_OVERVIEW_TAG
        )

    def is_modifier(self, tag_name: str) -> bool:
        return tag_name in MODIFIER_TAGS


@dataclass(frozen=True, slots=True)
class ParserMessage:
    """Non-fatal observation reported while parsing."""

    message_id: str
    text: str
    line: int = 0


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Tokenized comment: leading text, block tags and parser messages."""

    summary: str = ""
    tags: tuple[RawTag, ...] = ()
    messages: tuple[ParserMessage, ...] = ()


class CommentParser(Protocol):
    """Structured-comment parser consumed by :class:`ParserAdapter`."""

    def parse(self, body: str) -> ParseResult:
        """Tokenize ``body``; raise :class:`ParseError` on fatal syntax errors."""
        ...


@dataclass(slots=True)
class _OpenTag:
    name: str
    line: int
    lines: list[str] = field(default_factory=list)

    def close(self) -> RawTag:
        return RawTag(name=self.name, content=_trim_block(self.lines), line=self.line)


def _trim_block(lines: list[str]) -> str:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return "\n".join(line.rstrip() for line in lines[start:end])


class BlockTagParser:
    """Line-oriented tokenizer for documentation comment bodies.

    A block tag starts a line (outside fenced code) with ``@`` followed by a
    letter. Modifier tags may share a line: ``@public @readonly`` yields two
    tags. Text before the first tag is the summary block.

    Parameters
    ----------
    configuration : TagConfiguration | None, optional
        Recognized tag vocabulary. Defaults to the standard tags.
    """

    def __init__(self, configuration: TagConfiguration | None = None) -> None:
        self._configuration = configuration or TagConfiguration()

    @property
    def configuration(self) -> TagConfiguration:
        return self._configuration

    def parse(self, body: str) -> ParseResult:
        """Tokenize an extracted comment body.

        Parameters
        ----------
        body : str
            Comment body as returned by :func:`extract_comment_body`.

        Returns
        -------
        ParseResult
            The leading text block, the block tags in order and any
            unknown-tag messages.

        Raises
        ------
        ParseError
            If a code fence is opened and never closed.
        """
        summary_lines: list[str] = []
        tags: list[RawTag] = []
        messages: list[ParserMessage] = []
        current: _OpenTag | None = None
        in_fence = False
        fence_line = 0

        for index, line in enumerate(body.split("\n")):
            if _FENCE.match(line):
                if not in_fence:
                    fence_line = index
                in_fence = not in_fence
            elif not in_fence:
                match = _BLOCK_TAG.match(line.lstrip())
                if match is not None:
                    if current is not None:
                        tags.append(current.close())
                    current = self._open_tag(line.lstrip(), index, tags, messages)
                    continue
            target = summary_lines if current is None else current.lines
            target.append(line)

        if in_fence:
            message = f"Unterminated code fence opened on line {fence_line + 1}"
            raise ParseError(message, context={"line": fence_line})
        if current is not None:
            tags.append(current.close())
        return ParseResult(
            summary=_trim_block(summary_lines), tags=tuple(tags), messages=tuple(messages)
        )

    def _open_tag(
        self, line: str, index: int, tags: list[RawTag], messages: list[ParserMessage]
    ) -> _OpenTag:
        match = _BLOCK_TAG.match(line)
        while True:
            name = f"@{match.group('name')}" if match is not None else line
            self._check_known(name, index, messages)
            rest = line[match.end() :].strip() if match is not None else ""
            following = _BLOCK_TAG.match(rest)
            if following is None or not self._configuration.is_modifier(name):
                return _OpenTag(name=name, line=index, lines=[rest])
            tags.append(RawTag(name=name, content="", line=index))
            match, line = following, rest

    def _check_known(self, name: str, index: int, messages: list[ParserMessage]) -> None:
        if not self._configuration.is_known(name):
            messages.append(
                ParserMessage("tsdoc-undefined-tag", f"The tag {name} is not defined", index)
            )


class ParserAdapter:
    """Convert parser output into a :class:`CommentModel`.

    Parameters
    ----------
    options : FormatterOptions
        Supplies the tag normalization table and the summary options.
    parser : CommentParser | None, optional
        Tokenizer to drive. Defaults to a :class:`BlockTagParser` over the
        configured extra tags.
    diagnostics : Diagnostics | None, optional
        Sink for unknown-tag and fallback events.
    on_error : Callable[[TsdocError], None] | None, optional
        Called with the parser error before falling back.
    """

    def __init__(
        self,
        options: FormatterOptions,
        parser: CommentParser | None = None,
        diagnostics: Diagnostics | None = None,
        *,
        on_error: Callable[[TsdocError], None] | None = None,
    ) -> None:
        self._options = options
        self._parser = parser or BlockTagParser(TagConfiguration.from_tags(options.extra_tags))
        self._diagnostics = diagnostics or NullDiagnostics()
        self._normalizations = options.tag_normalizations
        self._on_error = on_error

    def parse(self, body: str) -> CommentModel:
        """Parse ``body`` into a model, degrading on comment syntax errors.

        A fatal parser error yields a model whose summary is the whole body.
        Other formatter errors raised by a custom parser propagate.
        """
        try:
            result = self._parser.parse(body)
        except TsdocError as exc:
            strategy = recovery_strategy_for(exc)
            if strategy is not RecoveryStrategy.UNSTRUCTURED_SUMMARY:
                raise
            self._diagnostics.debug(
                "parse", "unstructured summary fallback", error=str(exc), recovery=str(strategy)
            )
            if self._on_error is not None:
                self._on_error(exc)
            return CommentModel(summary=body.strip() or None)
        for message in result.messages:
            self._diagnostics.debug("parse", message.text, message_id=message.message_id)
        model = self._build(result)
        if self._options.single_sentence_summary and model.summary:
            head, rest = split_first_sentence(model.summary)
            if rest:
                model.summary = head
                model.remarks = f"{rest}\n\n{model.remarks}" if model.remarks else rest
        return model

    def normalize_tag_name(self, name: str) -> str:
        return self._normalizations.get(name, name)

    def _build(self, result: ParseResult) -> CommentModel:
        model = CommentModel(summary=result.summary or None)
        overview_seen = False
        for raw in result.tags:
            name = self.normalize_tag_name(raw.name)
            match name:
                case "@param":
                    model.params.append(_param(TagKind.PARAM, raw))
                case "@typeParam":
                    model.params.append(_param(TagKind.TYPE_PARAM, raw))
                case "@returns":
                    if model.returns is None:
                        model.returns = ReturnsTag(description=raw.content, source=raw)
                    else:
                        model.other_tags.append(OtherTag(name, raw.content, raw))
                case "@remarks":
                    if raw.content:
                        model.remarks = (
                            f"{model.remarks}\n\n{raw.content}" if model.remarks else raw.content
                        )
                case "@fileoverview":
                    overview_seen = True
                    if raw.content:
                        model.summary = (
                            f"{model.summary}\n\n{raw.content}" if model.summary else raw.content
                        )
                case _:
                    model.other_tags.append(OtherTag(name, raw.content, raw))
        if overview_seen and not model.has_tag(PACKAGE_DOCUMENTATION_TAG):
            model.other_tags.append(
                OtherTag(PACKAGE_DOCUMENTATION_TAG, "", RawTag(FILE_OVERVIEW_TAG, ""))
            )
        return model


def _param(kind: TagKind, raw: RawTag) -> ParamTag:
    content = raw.content
    first_line, newline, remainder = content.partition("\n")
    name, _, description = first_line.strip().partition(" ")
    description = _PARAM_HYPHEN.sub("", description.strip(), count=1)
    if newline:
        description = f"{description}\n{remainder}" if description else remainder
    return ParamTag(tag_kind=kind, name=name, description=description.strip(), source=raw)

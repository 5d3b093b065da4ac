"""Rewrite legacy Closure Compiler annotations into the modern tag vocabulary.

The transformer works on raw comment text, with or without the `` * `` line
prefixes, before any structural parsing happens. Fenced code blocks are swapped
for placeholders while the rewrites run so tag-like tokens inside samples are
never touched.

Examples
--------
>>> apply_legacy_transformations(" * @param {string} id - X\\n")
' * @param id - X\\n'
>>> apply_legacy_transformations(" * @export\\n", enabled=False)
' * @export\\n'
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Callable

__all__ = [
    "LEGACY_TRANSFORMS",
    "apply_legacy_transformations",
    "looks_like_link_target",
]

_PREFIX: Final = r"^(?P<prefix>[ \t]*\*?[ \t]*)"
_FENCE_PATTERN: Final = re.compile(r"```.*?```", re.DOTALL)
_PLACEHOLDER: Final = "\x00TSDOC_FENCE_{index}\x00"
_PLACEHOLDER_PATTERN: Final = re.compile("\x00TSDOC_FENCE_(?P<index>\\d+)\x00")

_VISIBILITY: Final = (
    (re.compile(_PREFIX + r"@export(?=\s|$)", re.MULTILINE), "@public"),
    (re.compile(_PREFIX + r"@protected(?=\s|$)", re.MULTILINE), "@internal"),
    (re.compile(_PREFIX + r"@private(?=\s|$)", re.MULTILINE), "@internal"),
)

_TYPED_PARAM: Final = re.compile(
    _PREFIX + r"@param[ \t]+\{(?!@)[^}\n]+\}[ \t]+(?P<name>\[?[^\s\]-]+\]?)", re.MULTILINE
)
_TYPED_BARE: Final = re.compile(
    _PREFIX + r"(?P<tag>@throws|@this)[ \t]+\{(?!@)[^}\n]+\}[ \t]*(?P<rest>.*)$", re.MULTILINE
)
_HERITAGE: Final = re.compile(
    r"^[ \t]*\*?[ \t]*@(?:extends|implements)[ \t]+\{[^}\n]+\}[ \t]*(?:\n|$)", re.MULTILINE
)
_REDUNDANT: Final = re.compile(
    r"^[ \t]*\*?[ \t]*@(?:constructor|const|define|noalias|nosideeffects)(?![\w-])[^\n]*(?:\n|$)",
    re.MULTILINE,
)
_RENAMED: Final = (
    (re.compile(_PREFIX + r"@tutorial(?=\s|$)", re.MULTILINE), "@document"),
    (re.compile(_PREFIX + r"@default(?=\s|$)", re.MULTILINE), "@defaultValue"),
)
_INLINE_CODE: Final = re.compile(r"\{@code[ \t]+(?P<code>[^}\n]+?)[ \t]*\}")

_SEE_URL: Final = re.compile(
    _PREFIX + r"@see[ \t]+(?P<url>https?://\S+)(?=\s|$)", re.MULTILINE
)
_SEE_WORD: Final = re.compile(
    _PREFIX + r"@see[ \t]+(?P<target>[^\s{@]+)(?P<rest>.*)$", re.MULTILINE
)
_PROSE_LEAD: Final = re.compile(
    r"^(also|for|when|if|the|a|an|this|that|these|those|see|check|visit|refer|read"
    r"|first|second|third|some|many|all|here|there|with|without)\b",
    re.IGNORECASE,
)
_DOTTED_IDENTIFIER: Final = re.compile(r"^[A-Z][A-Za-z0-9]*(\.[A-Za-z][A-Za-z0-9]*)*$")
_LOWER_IDENTIFIER: Final = re.compile(r"^[a-z][A-Za-z0-9]*$")


def _protect_fences(text: str) -> tuple[str, list[str]]:
    blocks: list[str] = []

    def _stash(match: re.Match[str]) -> str:
        blocks.append(match.group(0))
        return _PLACEHOLDER.format(index=len(blocks) - 1)

    return _FENCE_PATTERN.sub(_stash, text), blocks


def _restore_fences(text: str, blocks: list[str]) -> str:
    if not blocks:
        return text
    return _PLACEHOLDER_PATTERN.sub(lambda match: blocks[int(match.group("index"))], text)


def _rewrite_visibility(text: str) -> str:
    for pattern, replacement in _VISIBILITY:
        text = pattern.sub(lambda match, tag=replacement: match.group("prefix") + tag, text)
    return text


def _strip_types(text: str) -> str:
    text = _TYPED_PARAM.sub(
        lambda match: f"{match.group('prefix')}@param {match.group('name')}", text
    )

    def _bare(match: re.Match[str]) -> str:
        rest = match.group("rest").strip()
        head = f"{match.group('prefix')}{match.group('tag')}"
        return f"{head} {rest}" if rest else head

    return _TYPED_BARE.sub(_bare, text)


def _drop_heritage(text: str) -> str:
    return _HERITAGE.sub("", text)


def _drop_redundant(text: str) -> str:
    return _REDUNDANT.sub("", text)


def looks_like_link_target(content: str) -> bool:
    """Return True when ``@see`` content names a code construct.

    Parameters
    ----------
    content : str
        First whitespace-delimited token after the tag.

    Returns
    -------
    bool
        True for dotted identifiers starting upper-case and for lower-case
        identifiers, excluding common English lead-in words.

    Examples
    --------
    >>> looks_like_link_target("MyNamespace.MyClass")
    True
    >>> looks_like_link_target("also")
    False
    """
    if not content or any(char.isspace() for char in content):
        return False
    if _PROSE_LEAD.match(content):
        return False
    return bool(_DOTTED_IDENTIFIER.match(content) or _LOWER_IDENTIFIER.match(content))


def _link_see_targets(text: str) -> str:
    text = _SEE_URL.sub(
        lambda match: f"{match.group('prefix')}@see {{@link {match.group('url')}}}", text
    )

    def _word(match: re.Match[str]) -> str:
        target = match.group("target")
        if not looks_like_link_target(target):
            return match.group(0)
        return f"{match.group('prefix')}@see {{@link {target}}}{match.group('rest')}"

    return _SEE_WORD.sub(_word, text)


def _rename_tags(text: str) -> str:
    for pattern, replacement in _RENAMED:
        text = pattern.sub(lambda match, tag=replacement: match.group("prefix") + tag, text)
    return _INLINE_CODE.sub(lambda match: f"`{match.group('code')}`", text)


LEGACY_TRANSFORMS: Final[tuple[Callable[[str], str], ...]] = (
    _rewrite_visibility,
    _strip_types,
    _drop_heritage,
    _drop_redundant,
    _link_see_targets,
    _rename_tags,
)


def apply_legacy_transformations(text: str, *, enabled: bool = True) -> str:
    """Modernize legacy annotations in a comment.

    Parameters
    ----------
    text : str
        Raw comment text or an extracted comment body.
    enabled : bool, optional
        Compatibility switch; when False the text is returned unchanged.
        Defaults to True.

    Returns
    -------
    str
        Text with visibility tags rewritten, inline types stripped, heritage
        and redundant compiler tags removed, and ``@see`` targets linked.
        Already modern text comes back unchanged.
    """
    if not enabled or "@" not in text:
        return text
    protected, blocks = _protect_fences(text)
    for transform in LEGACY_TRANSFORMS:
        protected = transform(protected)
    return _restore_fences(protected, blocks)

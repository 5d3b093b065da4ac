"""Tag vocabularies and fixed values shared by the formatter stages."""

from __future__ import annotations

from types import MappingProxyType
from typing import Final

RELEASE_TAGS: Final[frozenset[str]] = frozenset(
    {"@public", "@beta", "@alpha", "@internal", "@experimental"}
)

MODIFIER_TAGS: Final[frozenset[str]] = RELEASE_TAGS | frozenset(
    {
        "@readonly",
        "@override",
        "@sealed",
        "@virtual",
        "@abstract",
        "@event",
        "@eventProperty",
        "@hidden",
        "@inline",
        "@enum",
        "@packageDocumentation",
    }
)

PARAM_LIKE_TAGS: Final[frozenset[str]] = frozenset({"@param", "@typeParam"})

BLOCK_TAGS: Final[frozenset[str]] = frozenset(
    {
        "@param",
        "@typeParam",
        "@returns",
        "@throws",
        "@example",
        "@deprecated",
        "@see",
        "@since",
        "@defaultValue",
        "@remarks",
        "@privateRemarks",
        "@category",
        "@categoryDescription",
        "@group",
        "@groupDescription",
        "@document",
        "@expandType",
        "@import",
        "@license",
        "@module",
        "@property",
        "@sortStrategy",
        "@summary",
        "@template",
        "@type",
        "@preapproved",
        "@migratedPackage",
    }
)

INLINE_TAGS: Final[frozenset[str]] = frozenset(
    {
        "@link",
        "@linkcode",
        "@linkplain",
        "@inheritDoc",
        "@label",
        "@include",
        "@includeCode",
    }
)

STANDARD_TAGS: Final[frozenset[str]] = BLOCK_TAGS | MODIFIER_TAGS

BUILTIN_TAG_NORMALIZATIONS: Final = MappingProxyType(
    {
        "@return": "@returns",
        "@prop": "@property",
        "@exception": "@throws",
    }
)

ENUM_TAG: Final[str] = "@enum"
REMARKS_TAG: Final[str] = "@remarks"
RETURNS_TAG: Final[str] = "@returns"
EXAMPLE_TAG: Final[str] = "@example"
FILE_OVERVIEW_TAG: Final[str] = "@fileoverview"
PACKAGE_DOCUMENTATION_TAG: Final[str] = "@packageDocumentation"

# Embedded language identifiers mapped to the formatter dialect that handles them.
LANGUAGE_MAP: Final = MappingProxyType(
    {
        "typescript": "typescript",
        "ts": "typescript",
        "tsx": "typescript",
        "javascript": "babel",
        "js": "babel",
        "jsx": "babel",
        "html": "html",
        "css": "css",
        "scss": "scss",
        "less": "less",
        "json": "json",
        "json5": "json5",
        "yaml": "yaml",
        "yml": "yaml",
        "markdown": "markdown",
        "md": "markdown",
        "graphql": "graphql",
        "sh": "text",
        "shell": "text",
        "bash": "text",
        "zsh": "text",
        "xml": "html",
    }
)

COMMENT_OPEN: Final[str] = "/**"
COMMENT_CLOSE: Final[str] = " */"
LINE_PREFIX: Final[str] = " * "
EMPTY_LINE: Final[str] = " *"
COMMENT_PREFIX_WIDTH: Final[int] = 3
MIN_EFFECTIVE_WIDTH: Final[int] = 20

PARSER_CACHE_CAPACITY: Final[int] = 10
PARSER_CACHE_TTL_SECONDS: Final[float] = 300.0

CONFIG_TABLE: Final[str] = "tsdoc_normalizer"
ENV_CONFIG_PATH: Final[str] = "TSDOC_NORMALIZER_CONFIG"
ENV_OPTIONS: Final[str] = "TSDOC_NORMALIZER_OPTIONS"
ENV_DEBUG: Final[str] = "TSDOC_NORMALIZER_DEBUG"

SOURCE_SUFFIXES: Final[frozenset[str]] = frozenset(
    {".ts", ".tsx", ".mts", ".cts", ".js", ".jsx", ".mjs", ".cjs"}
)
JSX_SUFFIXES: Final[frozenset[str]] = frozenset({".tsx", ".jsx"})

__all__ = [
    "BLOCK_TAGS",
    "BUILTIN_TAG_NORMALIZATIONS",
    "COMMENT_CLOSE",
    "COMMENT_OPEN",
    "COMMENT_PREFIX_WIDTH",
    "CONFIG_TABLE",
    "EMPTY_LINE",
    "ENUM_TAG",
    "ENV_CONFIG_PATH",
    "ENV_DEBUG",
    "ENV_OPTIONS",
    "EXAMPLE_TAG",
    "FILE_OVERVIEW_TAG",
    "INLINE_TAGS",
    "JSX_SUFFIXES",
    "LANGUAGE_MAP",
    "LINE_PREFIX",
    "MIN_EFFECTIVE_WIDTH",
    "MODIFIER_TAGS",
    "PACKAGE_DOCUMENTATION_TAG",
    "PARAM_LIKE_TAGS",
    "PARSER_CACHE_CAPACITY",
    "PARSER_CACHE_TTL_SECONDS",
    "RELEASE_TAGS",
    "REMARKS_TAG",
    "RETURNS_TAG",
    "SOURCE_SUFFIXES",
    "STANDARD_TAGS",
]

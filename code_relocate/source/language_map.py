"""Extension-to-grammar mapping for module files."""

from __future__ import annotations

import posixpath

try:
    from tree_sitter_language_pack import get_parser
except ImportError as _err:
    raise ImportError(
        "tree-sitter-language-pack is required. Install with: "
        "pip install tree-sitter-language-pack"
    ) from _err

# Maps file extension -> tree-sitter grammar name
EXT_TO_GRAMMAR: dict[str, str] = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
}

# Candidate suffixes tried when a specifier omits the extension
RESOLUTION_EXTENSIONS: tuple[str, ...] = (
    ".ts", ".tsx", ".d.ts", ".mts", ".cts", ".js", ".jsx", ".mjs", ".cjs", ".json",
)

# Runtime extension in a specifier -> source extensions it may stand for
SOURCE_FOR_RUNTIME_EXT: dict[str, tuple[str, ...]] = {
    ".js": (".ts", ".tsx"),
    ".jsx": (".tsx",),
    ".mjs": (".mts",),
    ".cjs": (".cts",),
}

_parser_cache: dict = {}


def grammar_for_path(path: str) -> str | None:
    return EXT_TO_GRAMMAR.get(posixpath.splitext(path)[1].lower())


def parser_for(grammar: str):
    parser = _parser_cache.get(grammar)
    if parser is None:
        parser = get_parser(grammar)
        _parser_cache[grammar] = parser
    return parser

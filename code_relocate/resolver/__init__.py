"""Module-specifier and path-alias resolution."""

from __future__ import annotations

from code_relocate.resolver.aliases import AliasResolver, is_path_alias, resolve_alias
from code_relocate.resolver.paths import normalize_path, relative_specifier, restyle_specifier
from code_relocate.resolver.tsconfig import load_tsconfig

__all__ = [
    "AliasResolver",
    "is_path_alias",
    "load_tsconfig",
    "normalize_path",
    "relative_specifier",
    "resolve_alias",
    "restyle_specifier",
]

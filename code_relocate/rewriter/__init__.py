"""Rewriting passes: reference relocation, pruning, renames, alias removal."""

from __future__ import annotations

from code_relocate.rewriter.alias_removal import PathAliasRemover
from code_relocate.rewriter.pruner import OriginalModulePruner
from code_relocate.rewriter.references import ReferenceRelocator
from code_relocate.rewriter.rename import FileRenameCascade
from code_relocate.rewriter.symbol_rename import SymbolRenamer

__all__ = [
    "FileRenameCascade",
    "OriginalModulePruner",
    "PathAliasRemover",
    "ReferenceRelocator",
    "SymbolRenamer",
]

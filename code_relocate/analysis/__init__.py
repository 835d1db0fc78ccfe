"""Dependency analysis of a move target."""

from __future__ import annotations

from code_relocate.analysis.dependencies import (
    DependencyClassifier,
    collect_internal_dependencies,
    find_declaration,
)
from code_relocate.analysis.external_imports import collect_external_imports

__all__ = [
    "DependencyClassifier",
    "collect_external_imports",
    "collect_internal_dependencies",
    "find_declaration",
]

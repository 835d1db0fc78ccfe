"""Source model: parsed modules, symbol resolution, and text mutation."""

from __future__ import annotations

from code_relocate.source.base import SourceModel
from code_relocate.source.module import Module, Statement
from code_relocate.source.project import Project

__all__ = ["Module", "Project", "SourceModel", "Statement"]

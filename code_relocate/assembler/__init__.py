"""Destination module content for moved declarations."""

from __future__ import annotations

from code_relocate.assembler.content import ContentAssembler, render_declarations
from code_relocate.assembler.import_section import build_import_map, render_import_section

__all__ = [
    "ContentAssembler",
    "build_import_map",
    "render_declarations",
    "render_import_section",
]

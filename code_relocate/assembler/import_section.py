"""Import statements for a module that receives moved declarations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from code_relocate.models import Classification, ClassifiedDependency, NeededImport
from code_relocate.resolver.paths import relative_specifier, restyle_specifier
from code_relocate.source.base import SourceModel
from code_relocate.source.syntax import render_import

logger = logging.getLogger(__name__)


@dataclass
class ImportEntry:
    default: str | None = None
    named: dict[str, str] = field(default_factory=dict)  # local name -> specifier text
    namespace: str | None = None

    def sorted_named(self) -> list[str]:
        return [self.named[key] for key in sorted(self.named)]


def destination_specifier(
    project: SourceModel, specifier: str, original_path: str, dest_path: str,
) -> str | None:
    """Specifier to use at *dest_path* for an import written in the original module.

    Package and other unresolvable specifiers are kept verbatim; None means
    the import would point at the destination itself.
    """
    resolved = project.resolve_specifier(original_path, specifier)
    if resolved is None:
        return specifier
    if resolved == dest_path:
        return None
    return restyle_specifier(specifier, dest_path, resolved)


def _named_text(binding) -> str:
    if binding.is_type_only and not binding.text.startswith("type "):
        return "type " + binding.text
    return binding.text


def build_import_map(
    project: SourceModel,
    needed: dict[str, NeededImport],
    classified: list[ClassifiedDependency],
    original_path: str,
    dest_path: str,
) -> dict[str, ImportEntry]:
    entries: dict[str, ImportEntry] = {}

    for specifier, need in needed.items():
        target = destination_specifier(project, specifier, original_path, dest_path)
        if target is None:
            logger.debug("Skipping self-import %r at %s", specifier, dest_path)
            continue
        entry = entries.setdefault(target, ImportEntry())
        if need.namespace is not None:
            entry.namespace = need.namespace.local
            continue
        if need.default is not None and entry.default is None:
            entry.default = need.default.local
        for binding in need.named:
            entry.named.setdefault(binding.local, _named_text(binding))

    shared = [dep for dep in classified if dep.kind != Classification.PRIVATE]
    if shared:
        back = relative_specifier(dest_path, original_path)
        entry = entries.setdefault(back, ImportEntry())
        for dep in shared:
            if dep.declaration.is_default_export:
                entry.default = entry.default or dep.name
            else:
                for name in dep.names:
                    entry.named.setdefault(name, name)
    return entries


def render_import_section(entries: dict[str, ImportEntry]) -> str:
    """Import statements sorted by specifier, then a blank line."""
    lines = []
    for specifier in sorted(entries):
        entry = entries[specifier]
        lines.append(render_import(
            specifier,
            default=entry.default,
            named=entry.sorted_named(),
            namespace=entry.namespace,
        ))
    if not lines:
        return ""
    return "\n".join(lines) + "\n\n"

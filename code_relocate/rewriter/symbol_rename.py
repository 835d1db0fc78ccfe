"""Rename a top-level declaration and every reference to it, program-wide."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from code_relocate.errors import (
    ConflictError,
    NotFoundError,
    UnsupportedOperationError,
    raise_if_cancelled,
)
from code_relocate.models import BindingKind, ImportBinding
from code_relocate.source.base import SourceModel

logger = logging.getLogger(__name__)

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][\w$]*$")

_RESERVED_WORDS = frozenset({
    "break", "case", "catch", "class", "const", "continue", "debugger", "default",
    "delete", "do", "else", "enum", "export", "extends", "false", "finally", "for",
    "function", "if", "import", "in", "instanceof", "new", "null", "return", "super",
    "switch", "this", "throw", "true", "try", "typeof", "var", "void", "while", "with",
    "yield", "let", "static", "implements", "interface", "package", "private",
    "protected", "public", "await",
})


@dataclass
class StatementEdits:
    statement: object
    path: str
    edits: dict[int, tuple[int, int, str]] = field(default_factory=dict)
    usages: int = 0

    def add(self, start: int, end: int, replacement: str, *, usage: bool = False) -> None:
        if start in self.edits:
            return
        self.edits[start] = (start, end, replacement)
        if usage:
            self.usages += 1


def _is_plain(binding_text: str) -> bool:
    """True for a specifier without ``as`` (imported and local name are one token)."""
    return re.search(r"\sas\s", binding_text) is None


class SymbolRenamer:
    """Plans every edit first, then applies them; nothing changes if planning raises."""

    def __init__(self, project: SourceModel):
        self.project = project

    def plan(self, module, name: str, new_name: str, cancel=None) -> list[StatementEdits]:
        if not _IDENTIFIER_RE.match(new_name) or new_name in _RESERVED_WORDS:
            raise UnsupportedOperationError(f"{new_name!r} is not a valid identifier")
        if new_name == name:
            raise UnsupportedOperationError(f"{name!r} already has that name")

        declarations = module.find_declarations(name)
        if not declarations:
            raise NotFoundError(f"Symbol {name!r} not found in {module.path}")
        statement = declarations[0]
        exported_as = module.export_names(statement)
        self._check_free(module, new_name)
        if name in exported_as:
            self._check_not_exported(module, new_name)

        plans: dict[int, StatementEdits] = {}

        def plan_for(stmt, path: str) -> StatementEdits:
            key = id(stmt)
            if key not in plans:
                plans[key] = StatementEdits(stmt, path)
            return plans[key]

        for declaration in declarations:
            for span in declaration.name_spans():
                if span.name == name:
                    replacement = f"{name}: {new_name}" if span.shorthand else new_name
                    plan_for(declaration, module.path).add(span.start, span.end, replacement)

        introduces: set[str] = set()
        reexports: set[str] = set()
        for site in self.project.find_references(module, statement, name):
            raise_if_cancelled(cancel)
            stmt = site.statement
            if site.kind == "namespace":
                logger.warning(
                    "%s: member accesses through namespace %r are not renamed", site.path, site.name,
                )
                continue
            if stmt.is_edge:
                if site.name != name:
                    continue
                raw = next((b for b in stmt.edge.bindings if b.start == site.start), None)
                if raw is None or raw.name_start < 0:
                    continue
                plan_for(stmt, site.path).add(raw.name_start, raw.name_end, new_name)
                if _is_plain(raw.text):
                    (introduces if stmt.is_import else reexports).add(site.path)
                continue
            if site.path != module.path and not self._renamed_import(site):
                continue
            shorthand = any(
                ref.shorthand for ref in stmt.references() if ref.start == site.start
            )
            replacement = f"{site.name}: {new_name}" if shorthand else new_name
            plan_for(stmt, site.path).add(site.start, site.end, replacement, usage=True)

        for path in sorted(introduces):
            self._check_free(self.project.get_module(path), new_name)
        for path in sorted(reexports):
            self._check_not_exported(self.project.get_module(path), new_name)
        for plan in plans.values():
            if not plan.statement.is_edge:
                self._check_not_captured(plan, new_name)

        logger.debug(
            "Renaming %s to %s touches %d statement(s)", name, new_name, len(plans),
        )
        return list(plans.values())

    def apply(self, plans: list[StatementEdits]) -> None:
        for plan in plans:
            plan.statement.replace_ranges(list(plan.edits.values()))

    def _renamed_import(self, site) -> bool:
        """A usage in another module follows the rename only through a plain named import."""
        other = self.project.get_module(site.path)
        binding = other.analysis().resolve(site.name)
        return (
            isinstance(binding, ImportBinding)
            and binding.kind == BindingKind.NAMED
            and binding.imported == binding.local
            and _is_plain(binding.text)
        )

    @staticmethod
    def _check_free(module, new_name: str) -> None:
        if module.analysis().resolve(new_name) is not None:
            raise ConflictError(f"{module.path} already declares or imports {new_name!r}")
        for statement in module.statements:
            if any(ref.name == new_name for ref in statement.references()):
                raise ConflictError(
                    f"{module.path} already refers to a global {new_name!r}; renaming would shadow it"
                )

    @staticmethod
    def _check_not_exported(module, new_name: str) -> None:
        exported = {export_name for export_name, _ in module.exported_declarations()}
        exported.update(exported_name for _, exported_name, _ in module.analysis().exports)
        for statement in module.edges():
            if statement.is_reexport:
                exported.update(b.local for b in statement.bindings)
        if new_name in exported:
            raise ConflictError(f"{module.path} already exports {new_name!r}")

    @staticmethod
    def _check_not_captured(plan: StatementEdits, new_name: str) -> None:
        after = plan.statement.references_after(
            plan.statement.edited_code(list(plan.edits.values()))
        )
        if sum(1 for ref in after if ref.name == new_name) != plan.usages:
            raise ConflictError(
                f"{plan.path}: a local {new_name!r} would shadow a renamed reference"
            )

"""Repoint import/export declarations at a moved symbol or renamed module."""

from __future__ import annotations

import logging

from code_relocate.errors import raise_if_cancelled
from code_relocate.models import ReferencingDeclaration, RenameOperation
from code_relocate.resolver.paths import is_relative_specifier, restyle_specifier
from code_relocate.source.base import SourceModel
from code_relocate.source.syntax import render_import

logger = logging.getLogger(__name__)


class ReferenceRelocator:
    """Discovers referencing declarations, then rewrites them in a second pass."""

    def __init__(self, project: SourceModel):
        self.project = project

    # ── discovery ──

    def discover_symbol_references(self, original, names, cancel=None) -> list[ReferencingDeclaration]:
        """Imports/re-exports that bind one of *names* directly from *original*.

        Re-export barrels are not followed.
        """
        records: list[ReferencingDeclaration] = []
        for module in self.project.referencing_modules(original.path):
            raise_if_cancelled(cancel)
            for statement in module.edges():
                specifier = statement.module_specifier
                if self.project.resolve_specifier(module.path, specifier) != original.path:
                    continue
                matched = tuple(n for n in names if statement.binding_named(n) is not None)
                if not matched:
                    continue
                records.append(ReferencingDeclaration(
                    declaration=statement,
                    referencing_path=module.path,
                    resolved_target_path=original.path,
                    original_specifier=specifier,
                    was_alias=self.project.aliases.is_alias(specifier),
                    names=matched,
                ))
        logger.debug("Found %d declaration(s) importing %s from %s", len(records), names, original.path)
        return records

    def discover_rename_references(
        self, operations: list[RenameOperation], cancel=None,
    ) -> list[ReferencingDeclaration]:
        """Every declaration whose specifier must change when *operations* run."""
        batch = {op.old_path for op in operations}
        records: dict[tuple[str, int], ReferencingDeclaration] = {}

        def keep(record: ReferencingDeclaration) -> None:
            key = (record.referencing_path, id(record.declaration))
            existing = records.get(key)
            if existing is None:
                records[key] = record
            elif (
                existing.names is not None
                and record.names is not None
                and existing.resolved_target_path == record.resolved_target_path
            ):
                existing.names += tuple(n for n in record.names if n not in existing.names)

        # Exported symbols, including sites reached through re-export barrels
        for op in operations:
            raise_if_cancelled(cancel)
            module = op.module
            for statement in module.declarations():
                if not module.export_names(statement):
                    continue
                for name in statement.names:
                    for site in self.project.find_references(module, statement, name):
                        record = self._symbol_record(site, op.old_path)
                        if record is not None:
                            keep(record)

        # Specifiers that resolve to a renamed module
        for module in self.project.modules():
            raise_if_cancelled(cancel)
            for statement in module.edges():
                specifier = statement.module_specifier
                resolved = self.project.resolve_specifier(module.path, specifier)
                if resolved in batch:
                    keep(self._whole_record(statement, module.path, resolved))

        # Relative specifiers of moved modules that point outside the batch
        for op in operations:
            for statement in op.module.edges():
                specifier = statement.module_specifier
                if not is_relative_specifier(specifier):
                    continue
                resolved = self.project.resolve_specifier(op.old_path, specifier)
                if resolved is not None and resolved not in batch:
                    keep(self._whole_record(statement, op.old_path, resolved))

        logger.debug("Found %d declaration(s) to rewrite", len(records))
        return list(records.values())

    def _whole_record(self, statement, referencing_path: str, resolved: str) -> ReferencingDeclaration:
        specifier = statement.module_specifier
        return ReferencingDeclaration(
            declaration=statement,
            referencing_path=referencing_path,
            resolved_target_path=resolved,
            original_specifier=specifier,
            was_alias=self.project.aliases.is_alias(specifier),
        )

    def _symbol_record(self, site, declaring_path: str) -> ReferencingDeclaration | None:
        statement = site.statement
        if not statement.is_edge or site.path == declaring_path:
            return None
        record = self._whole_record(
            statement, site.path,
            self.project.resolve_specifier(site.path, statement.module_specifier),
        )
        if record.resolved_target_path == declaring_path:
            return record
        if site.kind not in ("import", "export"):
            logger.debug("Namespace import %r of a barrel left to the barrel's own edges", site.name)
            return None
        record.resolved_target_path = declaring_path
        record.names = (site.name,)
        return record

    # ── rewriting ──

    def relocate_symbol(self, records: list[ReferencingDeclaration], dest_path: str) -> None:
        for record in records:
            if record.referencing_path == dest_path:
                self._drop_names(record)
                continue
            new_specifier = restyle_specifier(
                record.original_specifier, record.referencing_path, dest_path,
            )
            self._retarget(record, new_specifier)

    def relocate_renamed(self, records: list[ReferencingDeclaration], path_map: dict[str, str]) -> None:
        for record in records:
            referencing = path_map.get(record.referencing_path, record.referencing_path)
            target = path_map.get(record.resolved_target_path)
            if target is None:
                if record.referencing_path not in path_map:
                    logger.warning(
                        "%s: target %s is not part of the rename batch; skipped",
                        record.referencing_path, record.resolved_target_path,
                    )
                    continue
                target = record.resolved_target_path
            new_specifier = restyle_specifier(record.original_specifier, referencing, target)
            self._retarget(record, new_specifier)

    def _retarget(self, record: ReferencingDeclaration, new_specifier: str) -> None:
        statement = record.declaration
        if record.names is None or statement.bound_names() <= set(record.names):
            if statement.module_specifier != new_specifier:
                statement.set_module_specifier(new_specifier)
            return
        self._split(record, new_specifier)

    def _split(self, record: ReferencingDeclaration, new_specifier: str) -> None:
        statement = record.declaration
        module = statement.module
        moved = [statement.binding_named(name) for name in record.names]
        moved = [binding for binding in moved if binding is not None]
        if not moved:
            return

        text = render_import(
            new_specifier,
            named=[binding.text for binding in moved],
            type_only=statement.is_type_only,
            quote=statement.quote,
            semicolon=statement.has_semicolon,
            keyword="import" if statement.is_import else "export",
        )
        for binding in moved:
            statement.remove_binding(binding.imported)
        module.insert_after(statement, text)
        if not statement.bindings:
            module.remove_statement(statement)
        logger.debug("Split %s out of %r in %s", record.names, record.original_specifier, module.path)

    def _drop_names(self, record: ReferencingDeclaration) -> None:
        """The destination imported the moved symbol from the original; it is local now."""
        statement = record.declaration
        module = statement.module
        for name in record.names or ():
            if statement.binding_named(name) is None:
                continue
            statement.remove_binding(name)
        if not statement.bindings:
            module.remove_statement(statement)

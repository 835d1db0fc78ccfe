"""Batch file/directory renames that keep every specifier pointing at the right module."""

from __future__ import annotations

import logging
import posixpath

from code_relocate.errors import ConflictError, NotFoundError, raise_if_cancelled
from code_relocate.models import OperationResult, PathMapping, RenameOperation
from code_relocate.rewriter.references import ReferenceRelocator
from code_relocate.source.base import SourceModel

logger = logging.getLogger(__name__)


class FileRenameCascade:
    """Validate -> discover references -> move -> rewrite specifiers -> persist."""

    def __init__(self, project: SourceModel, relocator: ReferenceRelocator | None = None):
        self.project = project
        self.relocator = relocator or ReferenceRelocator(project)

    def prepare(self, mappings: list[PathMapping]) -> list[RenameOperation]:
        """Validate mappings and expand directories into per-file operations."""
        operations: list[RenameOperation] = []
        destinations: set[str] = set()

        for mapping in mappings:
            old = self.project.normalize(mapping.old_path)
            new = self.project.normalize(mapping.new_path)
            if new in destinations:
                raise ConflictError(f"Duplicate destination: {new}")
            destinations.add(new)
            if self.project.exists(new):
                raise ConflictError(f"Destination already exists: {new}")

            module = self.project.get_module(old)
            if module is not None:
                operations.append(RenameOperation(module, old, new))
                continue

            nested = self.project.modules_under(old)
            if not nested:
                raise NotFoundError(f"No module or directory at {old}")
            for child in nested:
                sub_path = posixpath.relpath(child.path, old)
                operations.append(RenameOperation(child, child.path, posixpath.join(new, sub_path)))

        seen: set[str] = set()
        for op in operations:
            if op.new_path in seen or (
                self.project.get_module(op.new_path) is not None
            ):
                raise ConflictError(f"Destination already exists: {op.new_path}")
            seen.add(op.new_path)
        return operations

    def run(self, mappings: list[PathMapping], *, dry_run: bool = False, cancel=None) -> OperationResult:
        operations = self.prepare(mappings)
        records = self.relocator.discover_rename_references(operations, cancel)
        raise_if_cancelled(cancel)

        for op in operations:
            try:
                self.project.move_module(op.module, op.new_path)
            except ValueError as exc:
                raise ConflictError(f"Could not move {op.old_path}: {exc}") from exc
            logger.debug("Moved %s -> %s", op.old_path, op.new_path)

        path_map = {op.old_path: op.new_path for op in operations}
        self.relocator.relocate_renamed(records, path_map)

        changed = sorted(m.path for m in self.project.unsaved_modules())
        if dry_run:
            logger.info("Dry run: %d module(s) would change", len(changed))
        else:
            self.project.save(cancel=cancel)
            logger.info("Renamed %d module(s); %d file(s) written", len(operations), len(changed))
        return OperationResult(changed_files=changed, dry_run=dry_run)

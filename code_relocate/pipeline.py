"""Entry operations: move or rename a symbol, rename files, remove aliases, find references.

Move symbol: classify -> collect imports -> assemble destination -> relocate
references -> prune original.  Every read-only discovery step finishes before
the first mutation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Callable

from code_relocate.analysis import (
    DependencyClassifier,
    collect_external_imports,
    collect_internal_dependencies,
    find_declaration,
)
from code_relocate.assembler import ContentAssembler
from code_relocate.errors import (
    NotFoundError,
    UnsupportedOperationError,
    raise_if_cancelled,
)
from code_relocate.models import (
    Classification,
    DeclarationKind,
    OperationResult,
    PathMapping,
    ReferenceLocation,
)
from code_relocate.rewriter import (
    FileRenameCascade,
    OriginalModulePruner,
    PathAliasRemover,
    ReferenceRelocator,
    SymbolRenamer,
)
from code_relocate.source.base import SourceModel

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], None]


def _finish(project: SourceModel, dry_run: bool, cancel=None) -> OperationResult:
    changed = sorted(m.path for m in project.unsaved_modules())
    if not dry_run:
        project.save(cancel=cancel)
    return OperationResult(changed_files=changed, dry_run=dry_run)


def move_symbol(
    project: SourceModel,
    source_path: str,
    dest_path: str,
    name: str,
    kind_hint: DeclarationKind | str | None = None,
    *,
    dry_run: bool = False,
    cancel=None,
    progress: ProgressCallback | None = None,
) -> OperationResult:
    """Move a top-level declaration (and what only it uses) to another module."""
    source_path = project.normalize(source_path)
    dest_path = project.normalize(dest_path)

    module = project.get_module(source_path)
    if module is None:
        raise NotFoundError(f"Module not found: {source_path}")
    if source_path == dest_path:
        raise UnsupportedOperationError("Source and destination are the same module")
    if not project.is_module_path(dest_path):
        raise UnsupportedOperationError(f"Not a module file: {dest_path}")

    kind = None
    if kind_hint is not None:
        try:
            kind = DeclarationKind.from_hint(kind_hint)
        except ValueError as exc:
            raise UnsupportedOperationError(str(exc)) from exc

    target = find_declaration(module, name, kind)
    if target.is_default_export:
        raise UnsupportedOperationError(
            f"{name!r} is a default export; moving default exports is not supported"
        )

    # Discovery
    if progress:
        progress("Analyzing", 0, 2)
    edges = collect_internal_dependencies(module, target, cancel)
    classified = DependencyClassifier(project).classify(module, target, edges, cancel)
    moved = [target] + [d.declaration for d in classified if d.kind == Classification.PRIVATE]
    needed = collect_external_imports(module, moved, cancel)

    assembler = ContentAssembler(project)
    assembler.check_destination(dest_path, moved, source_path)
    relocator = ReferenceRelocator(project)
    records = relocator.discover_symbol_references(module, target.names, cancel)
    raise_if_cancelled(cancel)

    # Mutation
    if progress:
        progress("Rewriting", 1, 2)
    assembler.assemble(module, target, classified, needed, dest_path)
    relocator.relocate_symbol(records, dest_path)
    OriginalModulePruner(project).prune(module, target, classified, dest_path)
    if not module.text.strip() and module.disk_path is None:
        # Created earlier in this session and emptied again; nothing to write
        project.discard_module(module)

    result = _finish(project, dry_run, cancel)
    if progress:
        progress("Rewriting", 2, 2)
    logger.info(
        "Moved %s from %s to %s (%d module(s) changed%s)",
        name, source_path, dest_path, len(result.changed_files), ", dry run" if dry_run else "",
    )
    return result


def rename_entries(
    project: SourceModel,
    renames: Iterable[PathMapping | tuple[str, str]],
    *,
    dry_run: bool = False,
    cancel=None,
) -> OperationResult:
    """Move/rename files and directories, repointing every specifier that reached them."""
    mappings = [
        r if isinstance(r, PathMapping) else PathMapping(old_path=r[0], new_path=r[1])
        for r in renames
    ]
    return FileRenameCascade(project).run(mappings, dry_run=dry_run, cancel=cancel)


def remove_path_alias(project: SourceModel, target_path: str, *, dry_run: bool = False) -> OperationResult:
    """Rewrite aliased specifiers below *target_path* as relative specifiers."""
    changed = PathAliasRemover(project).run(target_path)
    if not dry_run:
        project.save()
    logger.info("Rewrote aliases in %d module(s)", len(changed))
    return OperationResult(changed_files=changed, dry_run=dry_run)


def find_references(project: SourceModel, path: str, name: str) -> list[ReferenceLocation]:
    """Every place that refers to a top-level declaration, across re-exports."""
    module = project.get_module(path)
    if module is None:
        raise NotFoundError(f"Module not found: {project.normalize(path)}")
    statement = find_declaration(module, name)
    sites = project.find_references(module, statement, name)
    locations = [project.locate(site) for site in sites]
    locations.sort(key=lambda loc: (loc.path, loc.line, loc.column))
    return locations


def rename_symbol(
    project: SourceModel,
    path: str,
    name: str,
    new_name: str,
    *,
    dry_run: bool = False,
    cancel=None,
) -> OperationResult:
    """Rename a top-level declaration, its import/export bindings and every use."""
    module = project.get_module(path)
    if module is None:
        raise NotFoundError(f"Module not found: {project.normalize(path)}")

    renamer = SymbolRenamer(project)
    plans = renamer.plan(module, name, new_name, cancel)
    raise_if_cancelled(cancel)
    renamer.apply(plans)

    result = _finish(project, dry_run, cancel)
    logger.info(
        "Renamed %s to %s in %s (%d module(s) changed%s)",
        name, new_name, module.path, len(result.changed_files), ", dry run" if dry_run else "",
    )
    return result

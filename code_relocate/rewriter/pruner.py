"""Clean up the module a symbol was moved out of."""

from __future__ import annotations

import logging

from code_relocate.models import Classification, ClassifiedDependency
from code_relocate.source.base import SourceModel

logger = logging.getLogger(__name__)


class OriginalModulePruner:
    def __init__(self, project: SourceModel):
        self.project = project

    def prune(self, module, target, classified: list[ClassifiedDependency], dest_path: str) -> None:
        """Remove moved statements, export what stays but is now shared, repair imports.

        Staying code that still uses the moved declaration imports it from
        *dest_path*, never from another module that happens to export the name.
        """
        moved_names = target.names
        removals = [target] + [
            dep.declaration for dep in classified if dep.kind == Classification.PRIVATE
        ]
        for statement in removals:
            if not module.contains(statement):
                logger.warning("%r is not a top-level statement of %s; not removed", statement, module.path)
                continue
            module.remove_statement(statement)

        for dep in classified:
            if dep.kind != Classification.SHARED_NEEDS_EXPORT:
                continue
            if module.is_exported(dep.declaration):
                logger.debug("%s is already exported", dep.name)
                continue
            dep.declaration.set_exported(True)
            logger.debug("Exported %s from %s", dep.name, module.path)

        self.project.fix_missing_imports(module, {name: dest_path for name in moved_names})
        self.project.organize_imports(module)

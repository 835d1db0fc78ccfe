"""Replace path-alias specifiers with relative ones."""

from __future__ import annotations

import logging

from code_relocate.errors import NotFoundError
from code_relocate.resolver.paths import relative_specifier
from code_relocate.source.base import SourceModel

logger = logging.getLogger(__name__)


class PathAliasRemover:
    def __init__(self, project: SourceModel):
        self.project = project

    def run(self, target_path: str) -> list[str]:
        """Rewrite aliased specifiers in a file or every file below a directory."""
        target_path = self.project.normalize(target_path)
        module = self.project.get_module(target_path)
        modules = [module] if module is not None else self.project.modules_under(target_path)
        if not modules:
            raise NotFoundError(f"No module or directory at {target_path}")

        # Resolve everything first; rewriting invalidates resolution caches
        rewrites = []
        for module in modules:
            for statement in module.edges():
                specifier = statement.module_specifier
                if not self.project.aliases.is_alias(specifier):
                    continue
                resolved = self.project.resolve_specifier(module.path, specifier)
                if resolved is None:
                    logger.warning("%s: alias %r does not resolve; left as-is", module.path, specifier)
                    continue
                new_specifier = relative_specifier(
                    module.path, resolved, remove_extensions=True, simplify_index=False,
                )
                rewrites.append((module, statement, new_specifier))

        changed: list[str] = []
        for module, statement, new_specifier in rewrites:
            statement.set_module_specifier(new_specifier)
            if module.path not in changed:
                changed.append(module.path)
        return sorted(changed)

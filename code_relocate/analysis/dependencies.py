"""Same-module dependency closure and classification of a move target's dependencies."""

from __future__ import annotations

import logging
from collections import deque

from code_relocate.errors import NotFoundError, ResolutionError, raise_if_cancelled
from code_relocate.models import (
    Classification,
    ClassifiedDependency,
    DeclarationKind,
    DependencyEdge,
    ImportBinding,
)
from code_relocate.source.base import SourceModel

logger = logging.getLogger(__name__)


def find_declaration(module, name: str, kind: DeclarationKind | None = None):
    """First top-level declaration binding *name*, optionally filtered by kind."""
    candidates = module.find_declarations(name, kind)
    if not candidates:
        suffix = f" ({kind.value})" if kind else ""
        raise NotFoundError(f"Symbol {name!r}{suffix} not found in {module.path}")
    if len(candidates) > 1:
        logger.warning(
            "%d declarations named %r in %s; using the first in source order",
            len(candidates), name, module.path,
        )
    return candidates[0]


def collect_internal_dependencies(module, target, cancel=None) -> list[DependencyEdge]:
    """Transitive same-module declaration references reachable from *target*."""
    edges: list[DependencyEdge] = []
    seen = {id(target)}
    queue = deque([target])

    while queue:
        raise_if_cancelled(cancel)
        current = queue.popleft()
        for ref in module.resolve_references(current):
            dep = ref.target
            if dep is None or isinstance(dep, ImportBinding) or dep is current:
                continue
            if not dep.is_declaration:
                continue
            edges.append(DependencyEdge(source=current, target=dep, name=ref.name))
            if id(dep) not in seen:
                seen.add(id(dep))
                queue.append(dep)
    return edges


class DependencyClassifier:
    """Tags each dependency as Private, SharedExported or SharedNeedsExport."""

    def __init__(self, project: SourceModel):
        self.project = project

    def classify(self, module, target, edges: list[DependencyEdge], cancel=None) -> list[ClassifiedDependency]:
        deps = sorted(
            {id(edge.target): edge.target for edge in edges}.values(),
            key=module.index_of,
        )
        decided: dict[int, ClassifiedDependency] = {}
        referrers: dict[int, set[int]] = {}
        undecided = []

        for dep in deps:
            raise_if_cancelled(cancel)
            name = dep.name
            if name is None:
                logger.warning("Dependency without an identifier left in place: %r", dep)
                continue
            if module.is_exported(dep):
                decided[id(dep)] = ClassifiedDependency(Classification.SHARED_EXPORTED, dep, name)
                continue
            try:
                sites = []
                for bound in dep.names:
                    sites.extend(self.project.find_references(module, dep, bound))
            except ResolutionError as exc:
                if dep.kind.supports_export:
                    logger.warning("Could not resolve references of %r (%s); exporting it", name, exc)
                    decided[id(dep)] = ClassifiedDependency(Classification.SHARED_NEEDS_EXPORT, dep, name)
                else:
                    logger.warning("Could not resolve references of %r (%s); leaving it", name, exc)
                continue
            referrers[id(dep)] = {
                id(site.statement) for site in sites
                if site.path == module.path and site.statement is not dep
            }
            undecided.append(dep)

        # A dependency is private only if everything referring to it moves too
        private = {id(dep) for dep in undecided}
        changed = True
        while changed:
            changed = False
            moved = private | {id(target)}
            for dep in undecided:
                if id(dep) in private and referrers[id(dep)] - moved:
                    private.discard(id(dep))
                    changed = True

        for dep in undecided:
            if id(dep) in private:
                kind = Classification.PRIVATE
            elif dep.kind.supports_export:
                kind = Classification.SHARED_NEEDS_EXPORT
            else:
                logger.warning("%r is used outside the move but cannot be exported; moving it", dep.name)
                kind = Classification.PRIVATE
                private.add(id(dep))
            decided[id(dep)] = ClassifiedDependency(kind, dep, dep.name)

        # Only dependencies the moved code refers to directly are imported back
        moved = private | {id(target)}
        used: dict[int, list[str]] = {}
        for edge in edges:
            if id(edge.source) in moved:
                names = used.setdefault(id(edge.target), [])
                if edge.name not in names:
                    names.append(edge.name)

        result: list[ClassifiedDependency] = []
        for dep in deps:
            classified = decided.get(id(dep))
            if classified is None:
                continue
            if classified.kind != Classification.PRIVATE:
                if id(dep) not in used:
                    continue
                classified.names = tuple(used[id(dep)])
                classified.name = classified.names[0]
            result.append(classified)
            logger.debug("Dependency %s classified as %s", classified.name, classified.kind.value)
        return result

"""Write moved declarations into a fresh or existing destination module."""

from __future__ import annotations

import logging

from code_relocate.assembler.import_section import (
    ImportEntry,
    build_import_map,
    render_import_section,
)
from code_relocate.errors import ConflictError
from code_relocate.models import BindingKind, Classification, ClassifiedDependency, NeededImport
from code_relocate.source.base import SourceModel

logger = logging.getLogger(__name__)


def _statement_text(statement, code: str) -> str:
    return statement.doc + code + statement.trailing


def render_declarations(target, classified: list[ClassifiedDependency]) -> list[str]:
    """Private dependencies without ``export``, then the exported target."""
    texts = [
        _statement_text(dep.declaration, dep.declaration.unexported_code())
        for dep in classified
        if dep.kind == Classification.PRIVATE
    ]
    if target.is_exported:
        code = target.code
    else:
        code = "export " + target.code
    texts.append(_statement_text(target, code))
    return texts


def build_module_text(entries: dict[str, ImportEntry], declarations: list[str]) -> str:
    return render_import_section(entries) + "\n\n".join(declarations) + "\n"


class ContentAssembler:
    """Builds or extends the destination module of a symbol move."""

    def __init__(self, project: SourceModel):
        self.project = project

    def check_destination(self, dest_path: str, moved_statements, original_path: str | None = None) -> None:
        """Raise if the destination already declares a name that is being moved.

        With *original_path*, also raise if the destination imports a moved
        name from the original module under another local name.
        """
        existing = self.project.get_module(dest_path)
        if existing is None:
            return
        moved_names = {name for statement in moved_statements for name in statement.names}
        clashes = sorted(
            name for statement in existing.declarations()
            for name in statement.names if name in moved_names
        )
        if clashes:
            raise ConflictError(
                f"{dest_path} already declares {', '.join(clashes)}"
            )
        if original_path is None:
            return
        for statement in existing.imports():
            if self.project.resolve_specifier(dest_path, statement.module_specifier) != original_path:
                continue
            for binding in statement.bindings:
                if (
                    binding.kind == BindingKind.NAMED
                    and binding.imported in moved_names
                    and binding.local != binding.imported
                ):
                    raise ConflictError(
                        f"{dest_path} imports {binding.imported} as {binding.local!r}; "
                        f"rename the alias before moving"
                    )

    def assemble(
        self,
        original,
        target,
        classified: list[ClassifiedDependency],
        needed: dict[str, NeededImport],
        dest_path: str,
    ):
        entries = build_import_map(self.project, needed, classified, original.path, dest_path)
        declarations = render_declarations(target, classified)

        module = self.project.get_module(dest_path)
        if module is None:
            logger.debug("Creating %s", dest_path)
            module = self.project.create_module(dest_path, build_module_text(entries, declarations))
        else:
            logger.debug("Merging into %s", dest_path)
            self._merge_imports(module, entries)
            module.append_source("\n\n".join(declarations) + "\n", separator="\n\n")
        self.project.organize_imports(module)
        return module

    def _merge_imports(self, module, entries: dict[str, ImportEntry]) -> None:
        for specifier in sorted(entries):
            entry = entries[specifier]
            existing = module.find_import(specifier)
            if existing is None:
                module.add_import(
                    specifier,
                    default=entry.default,
                    named=entry.sorted_named(),
                    namespace=entry.namespace,
                )
                continue

            bindings = existing.bindings
            namespace = next((b for b in bindings if b.kind == BindingKind.NAMESPACE), None)
            if namespace is not None or entry.namespace is not None:
                if namespace is None or entry.namespace != namespace.local:
                    logger.warning(
                        "Cannot combine namespace and named imports of %r in %s; skipped",
                        specifier, module.path,
                    )
                continue

            if entry.default:
                current = next((b for b in bindings if b.kind == BindingKind.DEFAULT), None)
                if current is None:
                    existing.set_default_binding(entry.default)
                elif current.local != entry.default:
                    logger.warning(
                        "%s already imports the default of %r as %r, not %r",
                        module.path, specifier, current.local, entry.default,
                    )

            present = {b.local for b in existing.bindings if b.kind == BindingKind.NAMED}
            missing = [entry.named[key] for key in sorted(entry.named) if key not in present]
            existing.add_named_bindings(missing)

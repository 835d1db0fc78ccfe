"""Collect the external imports a set of moved statements relies on."""

from __future__ import annotations

import logging

from code_relocate.errors import raise_if_cancelled
from code_relocate.models import (
    DEFAULT_EXPORT_NAME,
    BindingKind,
    ImportBinding,
    NeededImport,
)

logger = logging.getLogger(__name__)


def collect_external_imports(module, statements, cancel=None) -> dict[str, NeededImport]:
    """Map specifier -> names the statements use through imports of *module*."""
    needed: dict[str, NeededImport] = {}
    for statement in statements:
        raise_if_cancelled(cancel)
        for ref in module.resolve_references(statement):
            binding = ref.target
            if not isinstance(binding, ImportBinding):
                continue
            if binding.statement.module is not module:
                continue
            specifier = binding.statement.module_specifier
            entry = needed.setdefault(specifier, NeededImport(specifier))
            _record(entry, binding)
    return needed


def _record(entry: NeededImport, binding: ImportBinding) -> None:
    if binding.kind == BindingKind.NAMESPACE:
        if entry.namespace is None:
            if entry.bindings:
                logger.warning(
                    "Namespace import of %r replaces named imports %s",
                    entry.specifier, sorted(entry.bindings),
                )
                entry.bindings.clear()
            entry.namespace = binding
        elif entry.namespace.local != binding.local:
            logger.warning(
                "Second namespace import %r of %r dropped", binding.local, entry.specifier,
            )
        return

    if entry.namespace is not None:
        logger.warning(
            "Import %r of %r dropped: specifier already imported as namespace",
            binding.local, entry.specifier,
        )
        return

    key = DEFAULT_EXPORT_NAME if binding.kind == BindingKind.DEFAULT else binding.local
    entry.bindings.setdefault(key, binding)

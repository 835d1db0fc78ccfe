"""Abstract source model consumed by the relocation engine."""

from __future__ import annotations

import abc

from code_relocate.models import ReferenceSite
from code_relocate.resolver.aliases import AliasResolver


class SourceModel(abc.ABC):
    """Parsed, symbol-resolved program of modules.

    The engine only talks to a project through this interface plus the module
    and statement objects it hands out.
    """

    aliases: AliasResolver

    @abc.abstractmethod
    def normalize(self, path: str) -> str:
        """Absolute POSIX path for a (possibly project-relative) path."""

    @abc.abstractmethod
    def modules(self) -> list:
        """All modules, ordered by path."""

    @abc.abstractmethod
    def get_module(self, path: str):
        """The module at *path*, or None."""

    @abc.abstractmethod
    def modules_under(self, directory: str) -> list:
        """Modules nested anywhere below *directory*."""

    @abc.abstractmethod
    def exists(self, path: str) -> bool:
        """True if a module, directory, or file occupies *path*."""

    @abc.abstractmethod
    def create_module(self, path: str, text: str):
        """Add a new, unsaved module."""

    @abc.abstractmethod
    def discard_module(self, module) -> None:
        """Drop a module that was created in memory and never saved."""

    @abc.abstractmethod
    def resolve_specifier(self, from_path: str, specifier: str) -> str | None:
        """Path of the project module a specifier points at, or None."""

    @abc.abstractmethod
    def referencing_modules(self, path: str) -> list:
        """Modules with an import/export edge that resolves to *path*."""

    @abc.abstractmethod
    def find_references(self, module, statement, name: str) -> list[ReferenceSite]:
        """Every reference site of a top-level declaration, program-wide."""

    @abc.abstractmethod
    def move_module(self, module, new_path: str) -> None:
        """Relocate a module to *new_path* without touching any specifier."""

    @abc.abstractmethod
    def organize_imports(self, module) -> None:
        """Drop unused import bindings and emptied import statements."""

    @abc.abstractmethod
    def fix_missing_imports(self, module, preferred: dict[str, str] | None = None) -> None:
        """Import unresolved names that another module exports.

        Names in *preferred* are imported from the mapped module path.
        """

    @abc.abstractmethod
    def unsaved_modules(self) -> list:
        """Modules with edits that are not yet persisted."""

    @abc.abstractmethod
    def save(self, modules: list | None = None, cancel=None) -> list[str]:
        """Persist modules (all unsaved ones by default); all-or-nothing."""

    @abc.abstractmethod
    def is_module_path(self, path: str) -> bool:
        """True if a file at *path* would be parsed as a module."""

    @abc.abstractmethod
    def locate(self, site: ReferenceSite):
        """Line/column description of a reference site."""

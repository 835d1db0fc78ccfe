"""Data models for the code-relocate engine."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from code_relocate.source.module import Module, Statement


class DeclarationKind(enum.Enum):
    FUNCTION = "function"
    CLASS = "class"
    INTERFACE = "interface"
    TYPE_ALIAS = "type_alias"
    ENUM = "enum"
    VARIABLE = "variable"

    @property
    def supports_export(self) -> bool:
        return self in _EXPORTABLE_KINDS

    @classmethod
    def from_hint(cls, hint: DeclarationKind | str) -> DeclarationKind:
        """Accept an enum member, its value, or a common spelling of it."""
        if isinstance(hint, cls):
            return hint
        key = str(hint).strip().lower().replace("-", "_")
        key = _HINT_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown declaration kind: {hint!r}") from None


_EXPORTABLE_KINDS = frozenset(DeclarationKind)

_HINT_ALIASES = {
    "functiondeclaration": "function",
    "classdeclaration": "class",
    "interfacedeclaration": "interface",
    "typealias": "type_alias",
    "type": "type_alias",
    "typealiasdeclaration": "type_alias",
    "enumdeclaration": "enum",
    "variablestatement": "variable",
    "variable_statement": "variable",
    "const": "variable",
    "let": "variable",
    "var": "variable",
}


class Classification(enum.Enum):
    PRIVATE = "private"
    SHARED_EXPORTED = "shared_exported"
    SHARED_NEEDS_EXPORT = "shared_needs_export"


class BindingKind(enum.Enum):
    NAMED = "named"
    DEFAULT = "default"
    NAMESPACE = "namespace"


DEFAULT_EXPORT_NAME = "default"


@dataclass(eq=False)
class ImportBinding:
    """One name bound by an import or re-export statement."""
    statement: Statement
    kind: BindingKind
    imported: str
    local: str
    text: str  # source text of the specifier, e.g. "type a as b"
    is_type_only: bool = False


@dataclass(eq=False)
class DependencyEdge:
    """Same-module reference from one declaration to another."""
    source: Statement
    target: Statement
    name: str


@dataclass(eq=False)
class ClassifiedDependency:
    kind: Classification
    declaration: Statement
    name: str
    names: tuple[str, ...] = ()

    def __post_init__(self):
        if not self.names:
            self.names = (self.name,)


@dataclass
class NeededImport:
    """Externally-imported names required at the destination, per specifier."""
    specifier: str
    bindings: dict[str, ImportBinding] = field(default_factory=dict)
    namespace: ImportBinding | None = None

    @property
    def default(self) -> ImportBinding | None:
        return self.bindings.get(DEFAULT_EXPORT_NAME)

    @property
    def named(self) -> list[ImportBinding]:
        return [b for key, b in self.bindings.items() if key != DEFAULT_EXPORT_NAME]


@dataclass(eq=False)
class ReferenceSite:
    """Location of one reference to a declaration, relative to its statement."""
    path: str
    statement: Statement
    start: int
    end: int
    name: str
    kind: str = "usage"  # usage | import | export | namespace


@dataclass
class ReferenceLocation:
    path: str
    line: int
    column: int
    text: str
    kind: str = "usage"


@dataclass(frozen=True)
class PathMapping:
    old_path: str
    new_path: str


@dataclass(eq=False)
class RenameOperation:
    """One concrete file move; directory mappings expand into many."""
    module: Module
    old_path: str
    new_path: str


@dataclass(eq=False)
class ReferencingDeclaration:
    """An import/export statement that must be repointed after a move.

    ``names`` lists the bindings to repoint; ``None`` means the whole statement.
    """
    declaration: Statement
    referencing_path: str
    resolved_target_path: str
    original_specifier: str
    was_alias: bool = False
    names: tuple[str, ...] | None = None


@dataclass
class OperationResult:
    changed_files: list[str] = field(default_factory=list)
    dry_run: bool = False


@dataclass
class ProjectConfig:
    """Configuration for a project of TypeScript/JavaScript modules."""
    root_dir: Path = field(default_factory=lambda: Path("."))
    tsconfig_path: Path | None = None
    base_url: str | None = None
    paths: dict[str, list[str]] = field(default_factory=dict)
    module_extensions: tuple[str, ...] = (
        ".ts", ".tsx", ".mts", ".cts", ".js", ".jsx", ".mjs", ".cjs",
    )
    removable_extensions: tuple[str, ...] = (
        ".ts", ".tsx", ".js", ".jsx", ".json", ".mjs", ".cjs",
    )
    dependency_dirs: list[str] = field(default_factory=lambda: ["node_modules"])
    skip_dirs: list[str] = field(default_factory=lambda: [
        "node_modules", ".git", "build", "dist", ".next", ".turbo",
        "coverage", ".venv", "venv",
    ])

"""code-relocate: move TypeScript/JavaScript symbols and files without breaking imports."""

from __future__ import annotations

__version__ = "0.1.0"

from code_relocate.errors import (  # noqa: E402
    ConflictError,
    NotFoundError,
    OperationCancelledError,
    PersistenceError,
    RelocationError,
    ResolutionError,
    UnsupportedOperationError,
)
from code_relocate.models import OperationResult, PathMapping, ProjectConfig  # noqa: E402
from code_relocate.pipeline import (  # noqa: E402
    find_references,
    move_symbol,
    remove_path_alias,
    rename_entries,
    rename_symbol,
)
from code_relocate.source import Project  # noqa: E402

__all__ = [
    "ConflictError",
    "NotFoundError",
    "OperationCancelledError",
    "OperationResult",
    "PathMapping",
    "PersistenceError",
    "Project",
    "ProjectConfig",
    "RelocationError",
    "ResolutionError",
    "UnsupportedOperationError",
    "__version__",
    "find_references",
    "move_symbol",
    "remove_path_alias",
    "rename_entries",
    "rename_symbol",
]

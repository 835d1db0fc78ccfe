"""Error taxonomy for relocation operations."""

from __future__ import annotations


class RelocationError(Exception):
    """Base class for every error surfaced by a relocation operation."""


class NotFoundError(RelocationError):
    """A module, directory or symbol does not exist in the project."""


class UnsupportedOperationError(RelocationError):
    """The request is well-formed but the engine does not support it."""


class ConflictError(RelocationError):
    """A destination is duplicated, already occupied, or already declares a moved name."""


class ResolutionError(RelocationError):
    """The source model could not resolve a symbol or its references."""


class PersistenceError(RelocationError):
    """Saving modified modules failed; nothing was committed."""


class OperationCancelledError(RelocationError):
    """The caller cancelled the operation."""


def raise_if_cancelled(cancel) -> None:
    """Raise when a ``threading.Event``-like cancellation flag is set."""
    if cancel is not None and cancel.is_set():
        raise OperationCancelledError("Operation cancelled")

"""Path-alias (tsconfig ``paths``) lookups."""

from __future__ import annotations

import logging
import posixpath

from code_relocate.resolver.paths import to_posix

logger = logging.getLogger(__name__)


def _wildcard_prefix(key: str) -> str | None:
    if key.endswith("*") and len(key) > 1:
        return key[:-1]
    return None


def is_path_alias(specifier: str, paths: dict[str, list[str]]) -> bool:
    """True if *specifier* matches a key exactly or a ``prefix/*`` key by prefix."""
    for key in paths:
        if specifier == key:
            return True
        prefix = _wildcard_prefix(key)
        if prefix and specifier.startswith(prefix):
            return True
    return False


def resolve_alias(
    specifier: str,
    base_url: str | None,
    paths: dict[str, list[str]],
) -> str | None:
    """Absolute path an aliased specifier points at, or None.

    Exact keys win over wildcard keys; among wildcards the longest prefix wins.
    Only the first configured target of a key is used.
    """
    if not base_url:
        return None

    targets = paths.get(specifier)
    remainder = ""
    if targets is None:
        best: str | None = None
        for key in paths:
            prefix = _wildcard_prefix(key)
            if prefix and specifier.startswith(prefix):
                if best is None or len(prefix) > len(_wildcard_prefix(best) or ""):
                    best = key
        if best is None:
            return None
        targets = paths[best]
        remainder = specifier[len(_wildcard_prefix(best) or ""):]

    if not targets:
        logger.warning("Path alias for %r has no targets", specifier)
        return None
    if len(targets) > 1:
        logger.debug("Only the first target of alias %r is used", specifier)

    target = targets[0].replace("*", remainder, 1)
    return posixpath.normpath(posixpath.join(to_posix(base_url), target))


class AliasResolver:
    """Alias table of one project (``baseUrl`` plus ``paths``)."""

    def __init__(self, base_url: str | None = None, paths: dict[str, list[str]] | None = None):
        self.base_url = to_posix(base_url) if base_url else None
        self.paths = dict(paths or {})

    def is_alias(self, specifier: str) -> bool:
        return is_path_alias(specifier, self.paths)

    def resolve(self, specifier: str) -> str | None:
        return resolve_alias(specifier, self.base_url, self.paths)

    def __bool__(self) -> bool:
        return bool(self.paths)

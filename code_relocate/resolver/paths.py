"""Relative module-specifier computation."""

from __future__ import annotations

import posixpath
import re
from collections.abc import Iterable

DEFAULT_REMOVABLE_EXTENSIONS: tuple[str, ...] = (
    ".ts", ".tsx", ".js", ".jsx", ".json", ".mjs", ".cjs",
)

# Runtime extensions that a specifier keeps when it already carries one
PRESERVED_EXTENSIONS: tuple[str, ...] = (".js", ".jsx", ".json", ".mjs", ".cjs")

# Source extension -> extension written in an ESM-style specifier
RUNTIME_EXTENSIONS: dict[str, str] = {
    ".ts": ".js",
    ".tsx": ".jsx",
    ".mts": ".mjs",
    ".cts": ".cjs",
}

_INDEX_RE = re.compile(r"^(\.\.?(?:/\.\.)*)/index$")


def to_posix(path: str) -> str:
    return path.replace("\\", "/")


def normalize_path(path: str, root: str | None = None) -> str:
    """Absolute, normalized POSIX form of *path* (relative paths join *root*)."""
    path = to_posix(str(path))
    if not posixpath.isabs(path):
        path = posixpath.join(to_posix(str(root or "/")), path)
    return posixpath.normpath(path)


def is_relative_specifier(specifier: str) -> bool:
    return specifier in (".", "..") or specifier.startswith(("./", "../"))


def relative_specifier(
    from_path: str,
    to_path: str,
    *,
    remove_extensions: bool | Iterable[str] = True,
    simplify_index: bool = True,
) -> str:
    """Module specifier that reaches *to_path* from the module at *from_path*.

    ``remove_extensions`` is either a flag (use the default allow-list) or an
    explicit list of extensions that may be stripped.  ``simplify_index``
    collapses ``./index`` to ``.`` and ``../index`` to ``..``, but only when an
    extension was actually stripped.
    """
    from_dir = posixpath.dirname(to_posix(from_path))
    rel = posixpath.relpath(to_posix(to_path), from_dir or "/")
    if not (rel.startswith("./") or rel.startswith("../") or rel in (".", "..")):
        rel = "./" + rel

    if remove_extensions is True:
        allowed: tuple[str, ...] = DEFAULT_REMOVABLE_EXTENSIONS
    elif not remove_extensions:
        allowed = ()
    else:
        allowed = tuple(remove_extensions)

    stripped = False
    ext = posixpath.splitext(rel)[1]
    if ext and ext in allowed:
        rel = rel[: -len(ext)]
        stripped = True

    if stripped and simplify_index:
        match = _INDEX_RE.match(rel)
        if match:
            return "." if match.group(1) == "." else match.group(1)
    return rel


def was_index_simplified(specifier: str) -> bool:
    """True when a specifier names a module without a file extension."""
    return not posixpath.splitext(specifier.rstrip("/"))[1] or specifier.endswith("/")


def restyle_specifier(original: str, from_path: str, to_path: str) -> str:
    """Relative specifier for *to_path* that keeps the extension style of *original*."""
    ext = posixpath.splitext(original)[1]
    if ext in RUNTIME_EXTENSIONS:
        return relative_specifier(
            from_path, to_path, remove_extensions=False, simplify_index=False,
        )
    if ext in PRESERVED_EXTENSIONS:
        spec = relative_specifier(
            from_path, to_path, remove_extensions=False, simplify_index=False,
        )
        target_ext = posixpath.splitext(to_path)[1]
        runtime_ext = RUNTIME_EXTENSIONS.get(target_ext)
        if runtime_ext:
            spec = spec[: -len(target_ext)] + runtime_ext
        return spec
    simplify = was_index_simplified(original)
    spec = relative_specifier(
        from_path, to_path, remove_extensions=True, simplify_index=simplify,
    )
    # A directory-style specifier stays directory-style when it lands on an index file
    basename = posixpath.basename(original.rstrip("/"))
    if (simplify and basename != "index" and spec.endswith("/index")
        and posixpath.splitext(to_path)[1] in DEFAULT_REMOVABLE_EXTENSIONS):
        spec = spec[: -len("/index")]
    return spec

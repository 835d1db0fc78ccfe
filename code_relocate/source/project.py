"""Tree-sitter backed source model for TypeScript and JavaScript projects."""

from __future__ import annotations

import fnmatch
import logging
import os
import posixpath
from collections import deque
from pathlib import Path

from code_relocate.errors import (
    OperationCancelledError,
    PersistenceError,
    raise_if_cancelled,
)
from code_relocate.models import (
    BindingKind,
    ImportBinding,
    ProjectConfig,
    ReferenceLocation,
    ReferenceSite,
)
from code_relocate.resolver.aliases import AliasResolver
from code_relocate.resolver.paths import (
    is_relative_specifier,
    normalize_path,
    relative_specifier,
    to_posix,
)
from code_relocate.resolver.tsconfig import load_tsconfig
from code_relocate.source.base import SourceModel
from code_relocate.source.language_map import (
    RESOLUTION_EXTENSIONS,
    SOURCE_FOR_RUNTIME_EXT,
    grammar_for_path,
)
from code_relocate.source.module import Module, Statement

logger = logging.getLogger(__name__)

_STAGING_SUFFIX = ".relocate-tmp"
_BACKUP_SUFFIX = ".relocate-bak"


class Project(SourceModel):
    """In-memory overlay of a project's modules.

    Edits stay in memory until :meth:`save`.  An ``in_memory`` project never
    touches the file system.
    """

    def __init__(self, config: ProjectConfig | None = None, *, in_memory: bool = False):
        self.config = config or ProjectConfig()
        self.in_memory = in_memory
        self.root = normalize_path(str(self.config.root_dir), os.getcwd()) if not in_memory else "/"
        self.aliases = AliasResolver(self.config.base_url, self.config.paths)
        self._modules: dict[str, Module] = {}
        self._version = 0
        self._resolution_cache: dict[tuple[str, str], str | None] = {}
        self._referrer_index: dict[str, list[Module]] | None = None
        self._cache_version = -1

    @classmethod
    def from_directory(cls, root: Path | str, tsconfig: Path | str | None = None) -> Project:
        """Load every module file below *root*."""
        root = Path(root).resolve()
        config = ProjectConfig(root_dir=root)
        tsconfig_path = Path(tsconfig) if tsconfig else root / "tsconfig.json"
        if tsconfig_path.is_file():
            load_tsconfig(tsconfig_path, config)
        elif tsconfig:
            logger.warning("tsconfig not found: %s", tsconfig_path)

        project = cls(config)
        for path in sorted(root.rglob("*")):
            if path.is_dir() or path.suffix not in config.module_extensions:
                continue
            if project._should_skip(path.relative_to(root)):
                continue
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping unreadable module %s: %s", path, exc)
                continue
            project.add_module(to_posix(str(path)), text)
        logger.debug("Loaded %d modules from %s", len(project._modules), root)
        return project

    def _should_skip(self, relative: Path) -> bool:
        for part in relative.parts[:-1]:
            for pattern in self.config.skip_dirs:
                if fnmatch.fnmatch(part, pattern):
                    return True
        return False

    # ── registry ──

    def invalidate(self) -> None:
        self._version += 1

    def normalize(self, path: str) -> str:
        return normalize_path(str(path), self.root)

    def add_module(self, path: str, text: str) -> Module:
        """Register a module as it exists in storage."""
        path = self.normalize(path)
        module = Module(self, path, text, saved=True)
        self._modules[path] = module
        self.invalidate()
        return module

    def create_module(self, path: str, text: str) -> Module:
        path = self.normalize(path)
        if path in self._modules:
            raise ValueError(f"Module already exists: {path}")
        module = Module(self, path, text, saved=False)
        self._modules[path] = module
        self.invalidate()
        return module

    def discard_module(self, module: Module) -> None:
        if module.disk_path is not None:
            raise ValueError(f"Module exists in storage: {module.disk_path}")
        if self._modules.get(module.path) is module:
            del self._modules[module.path]
            logger.debug("Discarded unsaved module %s", module.path)
            self.invalidate()

    def modules(self) -> list[Module]:
        return [self._modules[path] for path in sorted(self._modules)]

    def get_module(self, path: str) -> Module | None:
        return self._modules.get(self.normalize(path))

    def modules_under(self, directory: str) -> list[Module]:
        prefix = self.normalize(directory).rstrip("/") + "/"
        return [m for m in self.modules() if m.path.startswith(prefix)]

    def is_directory(self, path: str) -> bool:
        path = self.normalize(path)
        if self.modules_under(path):
            return True
        return not self.in_memory and os.path.isdir(path)

    def exists(self, path: str) -> bool:
        path = self.normalize(path)
        if path in self._modules or self.is_directory(path):
            return True
        return not self.in_memory and os.path.exists(path)

    def is_module_path(self, path: str) -> bool:
        return grammar_for_path(path) is not None

    def is_dependency_path(self, path: str) -> bool:
        parts = path.split("/")
        return any(d in parts for d in self.config.dependency_dirs)

    # ── module resolution ──

    def _sync_caches(self) -> None:
        if self._cache_version != self._version:
            self._resolution_cache.clear()
            self._referrer_index = None
            self._cache_version = self._version

    def resolve_specifier(self, from_path: str, specifier: str) -> str | None:
        self._sync_caches()
        key = (posixpath.dirname(from_path), specifier)
        if key not in self._resolution_cache:
            self._resolution_cache[key] = self._resolve(from_path, specifier)
        return self._resolution_cache[key]

    def _resolve(self, from_path: str, specifier: str) -> str | None:
        if is_relative_specifier(specifier):
            base = posixpath.normpath(posixpath.join(posixpath.dirname(from_path), specifier))
            return self._resolve_candidates(base)
        if specifier.startswith("/"):
            return self._resolve_candidates(posixpath.normpath(specifier))
        if self.aliases.is_alias(specifier):
            target = self.aliases.resolve(specifier)
            if target:
                resolved = self._resolve_candidates(target)
                if resolved:
                    return resolved
        if self.config.base_url:
            return self._resolve_candidates(
                posixpath.normpath(posixpath.join(self.config.base_url, specifier))
            )
        return None

    def _resolve_candidates(self, base: str) -> str | None:
        if self.is_dependency_path(base):
            return None
        if base in self._modules:
            return base
        for ext in RESOLUTION_EXTENSIONS:
            if base + ext in self._modules:
                return base + ext
        stem, ext = posixpath.splitext(base)
        for source_ext in SOURCE_FOR_RUNTIME_EXT.get(ext, ()):
            if stem + source_ext in self._modules:
                return stem + source_ext
        for ext in RESOLUTION_EXTENSIONS:
            candidate = posixpath.join(base, "index" + ext)
            if candidate in self._modules:
                return candidate
        return None

    def referencing_modules(self, path: str) -> list[Module]:
        self._sync_caches()
        if self._referrer_index is None:
            index: dict[str, list[Module]] = {}
            for module in self.modules():
                for statement in module.edges():
                    target = self.resolve_specifier(module.path, statement.module_specifier)
                    if target is None or target == module.path:
                        continue
                    referrers = index.setdefault(target, [])
                    if module not in referrers:
                        referrers.append(module)
            self._referrer_index = index
        return list(self._referrer_index.get(self.normalize(path), []))

    def edges_to(self, module: Module, path: str) -> list[Statement]:
        """Import/export statements of *module* that resolve to *path*."""
        return [
            s for s in module.edges()
            if self.resolve_specifier(module.path, s.module_specifier) == path
        ]

    # ── references ──

    def find_references(self, module: Module, statement: Statement, name: str) -> list[ReferenceSite]:
        """Reference sites of *name* declared by *statement*, following re-exports."""
        sites: list[ReferenceSite] = []
        seen: set[tuple[str, int, int]] = set()

        def add(site: ReferenceSite) -> None:
            key = (site.path, id(site.statement), site.start)
            if key not in seen:
                seen.add(key)
                sites.append(site)

        analysis = module.analysis()
        for other in module.statements:
            for ref in other.references():
                if ref.name == name and analysis.resolve(name) is statement:
                    add(ReferenceSite(module.path, other, ref.start, ref.end, name))

        queue = deque((module.path, export_name) for export_name in module.export_names(statement))
        visited = set(queue)
        while queue:
            path, export_name = queue.popleft()
            for referrer in self.referencing_modules(path):
                for edge_stmt in self.edges_to(referrer, path):
                    for follow in self._edge_references(referrer, edge_stmt, export_name, add):
                        if follow not in visited:
                            visited.add(follow)
                            queue.append(follow)
        return sites

    def _edge_references(self, referrer: Module, statement: Statement, export_name: str, add):
        """Report sites in one edge statement; yield (module, name) pairs re-exported onward."""
        edge = statement.edge
        for raw in edge.bindings:
            if raw.kind == BindingKind.NAMESPACE:
                add(ReferenceSite(referrer.path, statement, raw.start, raw.end, raw.local, "namespace"))
                continue
            if raw.imported != export_name:
                continue
            kind = "import" if edge.is_import else "export"
            add(ReferenceSite(referrer.path, statement, raw.start, raw.end, raw.imported, kind))
            if edge.is_import:
                for site in self._binding_usages(referrer, statement, raw.local):
                    add(site)
            else:
                yield (referrer.path, raw.local)
        if not edge.is_import and edge.export_star and export_name != "default":
            if not any(raw.kind == BindingKind.NAMESPACE for raw in edge.bindings):
                yield (referrer.path, export_name)

    def _binding_usages(self, module: Module, import_statement: Statement, local: str) -> list[ReferenceSite]:
        analysis = module.analysis()
        target = analysis.resolve(local)
        if not isinstance(target, ImportBinding) or target.statement is not import_statement:
            return []
        return [
            ReferenceSite(module.path, statement, ref.start, ref.end, local)
            for statement in module.statements
            for ref in statement.references()
            if ref.name == local
        ]

    def locate(self, site: ReferenceSite) -> ReferenceLocation:
        """1-based line/column and line text of a reference site."""
        module = self.get_module(site.path)
        offset = 0
        for statement in module.statements:
            if statement is site.statement:
                offset += len(statement.leading.encode("utf-8"))
                break
            offset += len(statement.text.encode("utf-8"))
        src = module.text.encode("utf-8")
        absolute = offset + site.start
        line_start = src.rfind(b"\n", 0, absolute) + 1
        line_end = src.find(b"\n", absolute)
        line_end = len(src) if line_end == -1 else line_end
        return ReferenceLocation(
            path=site.path,
            line=src.count(b"\n", 0, absolute) + 1,
            column=len(src[line_start:absolute].decode("utf-8")) + 1,
            text=src[line_start:line_end].decode("utf-8").strip(),
            kind=site.kind,
        )

    # ── mutation ──

    def move_module(self, module: Module, new_path: str) -> None:
        new_path = self.normalize(new_path)
        if new_path in self._modules:
            raise ValueError(f"Module already exists: {new_path}")
        del self._modules[module.path]
        self._modules[new_path] = module
        logger.debug("Moving module %s -> %s", module.path, new_path)
        module.path = new_path
        grammar = grammar_for_path(new_path)
        if grammar != module.grammar:
            text = module.text
            module.grammar = grammar
            module.replace_text(text)
        module.touch()

    def organize_imports(self, module: Module) -> None:
        used = module.used_names()
        keep_react = module.path.endswith((".tsx", ".jsx"))
        for statement in list(module.imports()):
            bindings = statement.bindings
            if not bindings:
                continue
            unused = [
                b for b in bindings
                if b.local not in used and not (keep_react and b.local == "React")
            ]
            if not unused:
                continue
            if len(unused) == len(bindings):
                logger.debug("Removing unused import %r from %s", statement.module_specifier, module.path)
                module.remove_statement(statement)
                continue
            for binding in unused:
                statement.remove_binding(binding.imported, binding.kind)

    def fix_missing_imports(self, module: Module, preferred: dict[str, str] | None = None) -> None:
        """Import unresolved names; *preferred* maps a name to the module it must come from."""
        analysis = module.analysis()
        missing: list[str] = []
        for statement in module.statements:
            for ref in statement.references():
                if analysis.resolve(ref.name) is None and ref.name not in missing:
                    missing.append(ref.name)
        if not missing:
            return

        preferred = {name: self.normalize(path) for name, path in (preferred or {}).items()}
        exporters: dict[str, list[str]] = {}
        for other in self.modules():
            if other is module:
                continue
            for export_name, _ in other.exported_declarations():
                paths = exporters.setdefault(export_name, [])
                if other.path not in paths:
                    paths.append(other.path)

        by_specifier: dict[str, list[str]] = {}
        for name in missing:
            path = preferred.get(name)
            if path is None:
                candidates = exporters.get(name)
                if not candidates:
                    continue
                path = candidates[0]
                if len(candidates) > 1:
                    logger.warning(
                        "%s: %s is exported by %d modules; importing it from %s",
                        module.path, name, len(candidates), path,
                    )
            by_specifier.setdefault(relative_specifier(module.path, path), []).append(name)

        for specifier, names in sorted(by_specifier.items()):
            logger.debug("Adding missing import of %s from %r to %s", names, specifier, module.path)
            existing = module.find_import(specifier)
            if existing is not None and not any(
                b.kind == BindingKind.NAMESPACE for b in existing.bindings
            ):
                existing.add_named_bindings(sorted(names))
            else:
                module.add_import(specifier, named=sorted(names))

    # ── persistence ──

    def unsaved_modules(self) -> list[Module]:
        return [m for m in self.modules() if not m.saved]

    def save(self, modules: list[Module] | None = None, cancel=None) -> list[str]:
        pending = list(modules) if modules is not None else self.unsaved_modules()
        if self.in_memory:
            for module in pending:
                module.saved = True
                module.disk_path = module.path
            return [m.path for m in pending]

        staged: list[tuple[Module, Path, Path]] = []
        try:
            for module in pending:
                raise_if_cancelled(cancel)
                target = Path(module.path)
                target.parent.mkdir(parents=True, exist_ok=True)
                temp = target.with_name(target.name + _STAGING_SUFFIX)
                temp.write_text(module.text, encoding="utf-8")
                staged.append((module, temp, target))
            raise_if_cancelled(cancel)
        except OperationCancelledError as exc:
            self._discard(staged)
            raise PersistenceError("Save cancelled; no files were written") from exc
        except OSError as exc:
            self._discard(staged)
            raise PersistenceError(f"Could not stage {module.path}: {exc}") from exc

        # Files replaced so far keep a backup until every replace succeeded
        committed: list[tuple[Path, Path | None]] = []
        for module, temp, target in staged:
            backup = None
            try:
                if target.exists():
                    backup = target.with_name(target.name + _BACKUP_SUFFIX)
                    os.replace(target, backup)
                os.replace(temp, target)
            except OSError as exc:
                if backup is not None:
                    committed.append((target, backup))
                self._rollback(committed)
                self._discard(staged)
                raise PersistenceError(f"Could not write {target}: {exc}") from exc
            committed.append((target, backup))

        for _, backup in committed:
            if backup is not None and backup.exists():
                backup.unlink()
        for module, _, _ in staged:
            old = module.disk_path
            module.disk_path = module.path
            module.saved = True
            if old and old != module.path and old not in self._modules:
                self._remove_stale(Path(old))
        logger.info("Saved %d module(s)", len(staged))
        return [m.path for m, _, _ in staged]

    @staticmethod
    def _discard(staged: list[tuple[Module, Path, Path]]) -> None:
        for _, temp, _ in staged:
            if temp.exists():
                temp.unlink()

    @staticmethod
    def _rollback(committed: list[tuple[Path, Path | None]]) -> None:
        """Put back the files an interrupted commit already replaced."""
        for target, backup in reversed(committed):
            try:
                if backup is not None and backup.exists():
                    os.replace(backup, target)
                elif backup is None and target.exists():
                    target.unlink()
            except OSError as exc:
                logger.error("Could not restore %s: %s", target, exc)

    def _remove_stale(self, old: Path) -> None:
        if old.exists():
            old.unlink()
        root = Path(self.root)
        parent = old.parent
        while parent != root and root in parent.parents:
            try:
                parent.rmdir()
            except OSError:
                break
            parent = parent.parent

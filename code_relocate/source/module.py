"""Statement-granular text model of one module file."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from code_relocate.models import (
    BindingKind,
    DeclarationKind,
    ImportBinding,
)
from code_relocate.source import syntax
from code_relocate.source.language_map import grammar_for_path, parser_for

_EXPORT_PREFIX_RE = re.compile(r"^export\s+(?!default\b)")


def chunk_source(text: str, grammar: str | None) -> tuple[list[tuple[str, str, str]], str]:
    """Split module text into (leading trivia, code, trailing comment) chunks plus a tail.

    A comment that starts on the line where the previous statement ends is that
    statement's trailing comment; any other comment leads the next statement.
    """
    if grammar is None:
        return [], text
    src = text.encode("utf-8")
    root = parser_for(grammar).parse(src).root_node

    chunks: list[tuple[str, str, str]] = []
    last = 0
    for child in root.children:
        if child.type == "comment":
            if chunks and b"\n" not in src[last:child.start_byte]:
                leading, code, trailing = chunks[-1]
                trailing += src[last:child.end_byte].decode("utf-8")
                chunks[-1] = (leading, code, trailing)
                last = child.end_byte
            continue
        chunks.append((
            src[last:child.start_byte].decode("utf-8"),
            src[child.start_byte:child.end_byte].decode("utf-8"),
            "",
        ))
        last = child.end_byte
    return chunks, src[last:].decode("utf-8")


def _splice(code: str, start: int, end: int, replacement: str) -> str:
    src = code.encode("utf-8")
    return (src[:start] + replacement.encode("utf-8") + src[end:]).decode("utf-8")


class Statement:
    """One top-level statement; keeps its identity across edits of its text."""

    def __init__(self, module: Module, leading: str, code: str, trailing: str = ""):
        self.module = module
        self.leading = leading
        self.code = code
        self.trailing = trailing
        self._parsed_code: str | None = None
        self._src = b""
        self._tree = None
        self._node = None
        self._decl: syntax.DeclarationInfo | None = None
        self._edge: syntax.EdgeInfo | None = None
        self._references: list[syntax.Reference] | None = None

    def __repr__(self) -> str:
        first_line = self.code.splitlines()[0] if self.code else ""
        return f"<Statement {self.module.path}: {first_line[:60]!r}>"

    # ── parsing ──

    def _ensure_parsed(self) -> None:
        if self._parsed_code == self.code:
            return
        self._src = self.code.encode("utf-8")
        self._tree = parser_for(self.module.grammar).parse(self._src)
        self._node = syntax.statement_node(self._tree.root_node)
        self._decl = syntax.declaration_info(self._node, self._src)
        self._edge = syntax.edge_info(self._node, self._src)
        self._references = None
        self._parsed_code = self.code

    @property
    def node(self):
        self._ensure_parsed()
        return self._node

    @property
    def text(self) -> str:
        return self.leading + self.code + self.trailing

    @property
    def doc(self) -> str:
        """Comments directly above the statement (no blank line in between)."""
        last_block = self.leading.split("\n\n")[-1].lstrip("\n")
        return last_block if last_block.strip() else ""

    # ── declaration facts ──

    @property
    def kind(self) -> DeclarationKind | None:
        self._ensure_parsed()
        return self._decl.kind

    @property
    def names(self) -> tuple[str, ...]:
        self._ensure_parsed()
        return self._decl.names

    @property
    def name(self) -> str | None:
        names = self.names
        return names[0] if names else None

    @property
    def is_declaration(self) -> bool:
        return self.kind is not None

    @property
    def is_exported(self) -> bool:
        """True when the statement carries the ``export`` keyword."""
        self._ensure_parsed()
        return self._decl.exported and self._decl.kind is not None

    @property
    def is_default_export(self) -> bool:
        self._ensure_parsed()
        return self._decl.exported and self._decl.default

    def set_exported(self, exported: bool) -> None:
        if self.is_default_export:
            return
        if exported and not self.is_exported:
            self._set_code("export " + self.code)
        elif not exported and self.is_exported:
            self._set_code(_EXPORT_PREFIX_RE.sub("", self.code, count=1))

    def unexported_code(self) -> str:
        if self.is_exported and not self.is_default_export:
            return _EXPORT_PREFIX_RE.sub("", self.code, count=1)
        return self.code

    def references(self) -> list[syntax.Reference]:
        """Free identifier references (offsets relative to ``code``)."""
        self._ensure_parsed()
        if self._references is None:
            is_import = self._node is not None and self._node.type == "import_statement"
            if self._edge is not None or is_import:
                self._references = []
            else:
                self._references = syntax.free_references(self._node, self._src)
        return self._references

    def name_spans(self) -> list[syntax.Reference]:
        """Identifiers this declaration binds (offsets relative to ``code``)."""
        self._ensure_parsed()
        return syntax.declaration_name_spans(self._node, self._src)

    def references_after(self, code: str) -> list[syntax.Reference]:
        """Free references *code* would have if it replaced this statement's code."""
        src = code.encode("utf-8")
        tree = parser_for(self.module.grammar).parse(src)
        return syntax.free_references(syntax.statement_node(tree.root_node), src)

    def local_exports(self) -> list[tuple[str, str]]:
        self._ensure_parsed()
        return syntax.local_exports(self._node, self._src)

    # ── import / export edge facts ──

    @property
    def edge(self) -> syntax.EdgeInfo | None:
        self._ensure_parsed()
        return self._edge

    @property
    def is_edge(self) -> bool:
        return self.edge is not None

    @property
    def is_import(self) -> bool:
        edge = self.edge
        return edge is not None and edge.is_import

    @property
    def is_reexport(self) -> bool:
        edge = self.edge
        return edge is not None and not edge.is_import

    @property
    def module_specifier(self) -> str | None:
        edge = self.edge
        return edge.specifier if edge else None

    @property
    def quote(self) -> str:
        edge = self.edge
        return edge.quote if edge else '"'

    @property
    def is_type_only(self) -> bool:
        edge = self.edge
        return bool(edge and edge.is_type_only)

    @property
    def is_export_star(self) -> bool:
        edge = self.edge
        return bool(edge and not edge.is_import and edge.export_star)

    @property
    def has_semicolon(self) -> bool:
        return self.code.rstrip().endswith(";")

    @property
    def bindings(self) -> list[ImportBinding]:
        edge = self.edge
        if edge is None:
            return []
        return [
            ImportBinding(
                statement=self,
                kind=raw.kind,
                imported=raw.imported,
                local=raw.local,
                text=raw.text,
                is_type_only=raw.is_type_only or edge.is_type_only,
            )
            for raw in edge.bindings
        ]

    def binding_named(self, imported: str) -> ImportBinding | None:
        """The named binding whose imported (property) name is *imported*."""
        for binding in self.bindings:
            if binding.kind == BindingKind.NAMED and binding.imported == imported:
                return binding
        return None

    def bound_names(self) -> set[str]:
        """Imported names this edge binds (``default`` and ``*`` included)."""
        return {b.imported for b in self.bindings}

    def set_module_specifier(self, value: str) -> None:
        edge = self.edge
        if edge is None:
            raise ValueError(f"{self!r} has no module specifier")
        if edge.specifier == value:
            return
        quote = edge.quote
        self._set_code(_splice(
            self.code, edge.specifier_start, edge.specifier_end, f"{quote}{value}{quote}",
        ))

    def remove_binding(self, imported: str, kind: BindingKind = BindingKind.NAMED) -> bool:
        """Remove one binding; returns False if the statement does not bind it."""
        edge = self.edge
        if edge is None:
            return False
        raws = edge.bindings
        index = next(
            (i for i, raw in enumerate(raws) if raw.kind == kind and raw.imported == imported),
            None,
        )
        if index is None:
            return False
        raw = raws[index]

        if kind == BindingKind.NAMED:
            named = [r for r in raws if r.kind == BindingKind.NAMED]
            pos = named.index(raw)
            if len(named) == 1:
                default = next((r for r in raws if r.kind == BindingKind.DEFAULT), None)
                if default is None:
                    self._rebuild_without_bindings()
                    return True
                start, end = default.end, edge.clause_end
            elif pos < len(named) - 1:
                start, end = raw.start, named[pos + 1].start
            else:
                start, end = named[pos - 1].end, raw.end
        elif kind == BindingKind.DEFAULT:
            following = [r for r in raws if r is not raw]
            if not following:
                self._rebuild_without_bindings()
                return True
            start = raw.start
            end = edge.clause_start if edge.clause_start is not None else following[0].start
        else:
            default = next((r for r in raws if r.kind == BindingKind.DEFAULT), None)
            if default is None:
                self._rebuild_without_bindings()
                return True
            start, end = default.end, raw.end

        self._set_code(_splice(self.code, start, end, ""))
        return True

    def _rebuild_without_bindings(self) -> None:
        edge = self.edge
        if edge.is_import:
            code = syntax.render_import(
                edge.specifier, quote=edge.quote, semicolon=self.has_semicolon,
            )
        else:
            end = ";" if self.has_semicolon else ""
            code = f"export {{}} from {edge.quote}{edge.specifier}{edge.quote}{end}"
        self._set_code(code)

    def add_named_bindings(self, texts: list[str]) -> None:
        """Append specifier texts (``a``, ``a as b``, ``type A``) to the named list."""
        if not texts:
            return
        edge = self.edge
        if edge is None:
            raise ValueError(f"{self!r} is not an import or export statement")
        raws = edge.bindings
        if any(r.kind == BindingKind.NAMESPACE for r in raws):
            raise ValueError(f"{self!r} is a namespace import")

        named = [r for r in raws if r.kind == BindingKind.NAMED]
        joined = ", ".join(texts)
        if named:
            src = self.code.encode("utf-8")
            after_last = src[named[-1].end:edge.clause_end]
            if after_last.lstrip().startswith(b","):
                comma = named[-1].end + after_last.index(b",") + 1
                self._set_code(_splice(self.code, comma, comma, f" {joined},"))
            else:
                self._set_code(_splice(self.code, named[-1].end, named[-1].end, f", {joined}"))
        elif edge.clause_start is not None:
            self._set_code(_splice(
                self.code, edge.clause_start, edge.clause_end, "{ " + joined + " }",
            ))
        else:
            default = next((r for r in raws if r.kind == BindingKind.DEFAULT), None)
            if default is not None:
                self._set_code(_splice(self.code, default.end, default.end, ", { " + joined + " }"))
            else:
                self._set_code(syntax.render_import(
                    edge.specifier,
                    named=texts,
                    type_only=edge.is_type_only,
                    quote=edge.quote,
                    semicolon=self.has_semicolon,
                ))

    def set_default_binding(self, local: str) -> None:
        edge = self.edge
        if edge is None or not edge.is_import:
            raise ValueError(f"{self!r} is not an import statement")
        raws = edge.bindings
        if any(r.kind == BindingKind.DEFAULT for r in raws):
            raise ValueError(f"{self!r} already has a default import")
        if raws:
            first = min(r.start for r in raws)
            if edge.clause_start is not None:
                first = min(first, edge.clause_start)
            self._set_code(_splice(self.code, first, first, f"{local}, "))
        else:
            self._set_code(syntax.render_import(
                edge.specifier,
                default=local,
                type_only=edge.is_type_only,
                quote=edge.quote,
                semicolon=self.has_semicolon,
            ))

    def edited_code(self, edits: list[tuple[int, int, str]]) -> str:
        """``code`` with non-overlapping (start, end, replacement) byte ranges applied."""
        code = self.code
        for start, end, replacement in sorted(edits, reverse=True):
            code = _splice(code, start, end, replacement)
        return code

    def replace_ranges(self, edits: list[tuple[int, int, str]]) -> None:
        self._set_code(self.edited_code(edits))

    def _set_code(self, code: str) -> None:
        if code != self.code:
            self.code = code
            self.module.touch()


@dataclass
class ResolvedReference:
    statement: Statement
    name: str
    start: int
    end: int
    target: Statement | ImportBinding | None


@dataclass
class ModuleAnalysis:
    declarations: dict[str, list[Statement]] = field(default_factory=dict)
    imports: dict[str, ImportBinding] = field(default_factory=dict)
    exports: list[tuple[str, str, Statement]] = field(default_factory=list)

    def resolve(self, name: str) -> Statement | ImportBinding | None:
        binding = self.imports.get(name)
        if binding is not None:
            return binding
        declared = self.declarations.get(name)
        return declared[0] if declared else None


class Module:
    """A parsed module file held as an ordered list of statements."""

    def __init__(self, project, path: str, text: str, *, saved: bool = True):
        self.project = project
        self.path = path
        self.grammar = grammar_for_path(path)
        chunks, self.tail = chunk_source(text, self.grammar)
        self.statements: list[Statement] = [Statement(self, *chunk) for chunk in chunks]
        self.saved = saved
        self.disk_path: str | None = path if saved else None
        self._analysis: ModuleAnalysis | None = None

    def __repr__(self) -> str:
        return f"<Module {self.path}>"

    @property
    def text(self) -> str:
        return "".join(s.text for s in self.statements) + self.tail

    def touch(self) -> None:
        self.saved = False
        self._analysis = None
        self.project.invalidate()

    # ── queries ──

    def index_of(self, statement: Statement) -> int:
        for i, candidate in enumerate(self.statements):
            if candidate is statement:
                return i
        return -1

    def contains(self, statement: Statement) -> bool:
        return self.index_of(statement) >= 0

    def declarations(self) -> list[Statement]:
        return [s for s in self.statements if s.is_declaration]

    def edges(self) -> list[Statement]:
        return [s for s in self.statements if s.is_edge]

    def imports(self) -> list[Statement]:
        return [s for s in self.statements if s.is_import]

    def analysis(self) -> ModuleAnalysis:
        if self._analysis is None:
            result = ModuleAnalysis()
            for statement in self.statements:
                for name in statement.names:
                    result.declarations.setdefault(name, []).append(statement)
                if statement.is_import:
                    for binding in statement.bindings:
                        result.imports[binding.local] = binding
                for local, exported in statement.local_exports():
                    result.exports.append((local, exported, statement))
            self._analysis = result
        return self._analysis

    def resolve_references(self, statement: Statement) -> list[ResolvedReference]:
        analysis = self.analysis()
        resolved = []
        for ref in statement.references():
            resolved.append(ResolvedReference(
                statement, ref.name, ref.start, ref.end, analysis.resolve(ref.name),
            ))
        return resolved

    def used_names(self) -> set[str]:
        """Names referenced by any non-import statement."""
        used: set[str] = set()
        for statement in self.statements:
            if statement.is_import:
                continue
            used.update(ref.name for ref in statement.references())
        return used

    def find_declarations(self, name: str, kind: DeclarationKind | None = None) -> list[Statement]:
        return [
            s for s in self.statements
            if name in s.names and (kind is None or s.kind == kind)
        ]

    def is_exported(self, statement: Statement) -> bool:
        """Exported by keyword or by a local ``export { name }`` clause."""
        if statement.is_exported:
            return True
        names = set(statement.names)
        return any(local in names for local, _, _ in self.analysis().exports)

    def export_names(self, statement: Statement) -> list[str]:
        """Names under which other modules can import *statement*."""
        names: list[str] = []
        if statement.is_default_export:
            names.append("default")
        elif statement.is_exported:
            names.extend(statement.names)
        declared = set(statement.names)
        for local, exported, _ in self.analysis().exports:
            if local in declared and exported not in names:
                names.append(exported)
        return names

    def exported_declarations(self) -> list[tuple[str, Statement]]:
        result: list[tuple[str, Statement]] = []
        for statement in self.declarations():
            for name in self.export_names(statement):
                result.append((name, statement))
        return result

    def find_import(self, specifier: str, *, type_only: bool = False) -> Statement | None:
        for statement in self.imports():
            if statement.module_specifier == specifier and statement.is_type_only == type_only:
                return statement
        return None

    # ── mutation ──

    def remove_statement(self, statement: Statement) -> None:
        index = self.index_of(statement)
        if index < 0:
            raise ValueError(f"{statement!r} is not a top-level statement of {self.path}")
        del self.statements[index]
        if index == 0 and self.statements:
            first = self.statements[0]
            first.leading = first.leading.lstrip()
        self.touch()

    def insert_source(self, index: int, source: str, *, separator: str = "\n") -> list[Statement]:
        """Parse *source* and insert its statements before position *index*."""
        chunks, _ = chunk_source(source, self.grammar)
        new = [Statement(self, *chunk) for chunk in chunks]
        if not new:
            return []
        index = max(0, min(index, len(self.statements)))
        new[0].leading = ("" if index == 0 else separator) + new[0].leading.lstrip("\n")
        if index < len(self.statements):
            following = self.statements[index]
            needed = max(separator.count("\n"), 1)
            if new[-1].is_import and not following.is_import:
                needed = 2
            have = len(following.leading) - len(following.leading.lstrip("\n"))
            if have < needed:
                following.leading = "\n" * (needed - have) + following.leading.lstrip(" \t")
        self.statements[index:index] = new
        self.touch()
        return new

    def append_source(self, source: str, *, separator: str = "\n\n") -> list[Statement]:
        if not self.statements:
            return self.insert_source(0, source)
        return self.insert_source(len(self.statements), source, separator=separator)

    def insert_after(self, anchor: Statement, source: str) -> list[Statement]:
        return self.insert_source(self.index_of(anchor) + 1, source, separator="\n")

    def add_import(
        self,
        specifier: str,
        *,
        default: str | None = None,
        named: list[str] | tuple[str, ...] = (),
        namespace: str | None = None,
        type_only: bool = False,
        quote: str = '"',
    ) -> Statement:
        """Add an import statement after the last existing import."""
        text = syntax.render_import(
            specifier,
            default=default,
            named=list(named),
            namespace=namespace,
            type_only=type_only,
            quote=quote,
        )
        existing = self.imports()
        if existing:
            new = self.insert_after(existing[-1], text)
        else:
            new = self.insert_source(0, text, separator="\n\n")
        return new[0]

    def replace_text(self, text: str) -> None:
        chunks, self.tail = chunk_source(text, self.grammar)
        self.statements = [Statement(self, *chunk) for chunk in chunks]
        self.touch()

"""Tree-sitter queries over a single top-level statement.

Every function here takes the statement's syntax node plus the UTF-8 bytes it
was parsed from; offsets are byte offsets into those bytes.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from code_relocate.models import BindingKind, DeclarationKind

# Declaration node type -> kind
_DECLARATION_KINDS: dict[str, DeclarationKind] = {
    "function_declaration": DeclarationKind.FUNCTION,
    "generator_function_declaration": DeclarationKind.FUNCTION,
    "function_signature": DeclarationKind.FUNCTION,
    "class_declaration": DeclarationKind.CLASS,
    "abstract_class_declaration": DeclarationKind.CLASS,
    "interface_declaration": DeclarationKind.INTERFACE,
    "type_alias_declaration": DeclarationKind.TYPE_ALIAS,
    "enum_declaration": DeclarationKind.ENUM,
    "lexical_declaration": DeclarationKind.VARIABLE,
    "variable_declaration": DeclarationKind.VARIABLE,
}

# Named `export default` expressions treated as declarations
_DEFAULT_VALUE_KINDS: dict[str, DeclarationKind] = {
    "function_expression": DeclarationKind.FUNCTION,
    "function": DeclarationKind.FUNCTION,
    "generator_function": DeclarationKind.FUNCTION,
    "class": DeclarationKind.CLASS,
}

# Nodes that open a lexical scope
_SCOPE_TYPES = {
    "statement_block", "function_declaration", "generator_function_declaration",
    "function_expression", "function", "generator_function", "arrow_function",
    "method_definition", "function_signature", "method_signature",
    "for_statement", "for_in_statement", "catch_clause",
    "class_declaration", "abstract_class_declaration", "class",
    "interface_declaration", "type_alias_declaration",
}

# Scopes that `var` hoists to
_FUNCTION_SCOPE_TYPES = {
    "function_declaration", "generator_function_declaration",
    "function_expression", "function", "generator_function",
    "arrow_function", "method_definition",
}

# Named declarations whose name binds in the enclosing scope
_NAMED_DECLARATIONS = {
    "function_declaration", "generator_function_declaration", "function_signature",
    "class_declaration", "abstract_class_declaration", "interface_declaration",
    "type_alias_declaration", "enum_declaration",
}

# Expressions whose optional name binds only inside themselves
_SELF_NAMED_EXPRESSIONS = {"function_expression", "function", "generator_function", "class"}

_REFERENCE_TYPES = {
    "identifier", "type_identifier", "shorthand_property_identifier",
    "shorthand_property_identifier_pattern",
}

_SKIP_TYPES = {"comment", "string", "number", "regex", "html_comment"}

_JSX_NAME_PARENTS = {"jsx_opening_element", "jsx_closing_element", "jsx_self_closing_element"}


@dataclass
class DeclarationInfo:
    kind: DeclarationKind | None = None
    names: tuple[str, ...] = ()
    exported: bool = False
    default: bool = False


@dataclass
class RawBinding:
    kind: BindingKind
    imported: str
    local: str
    text: str
    start: int
    end: int
    is_type_only: bool = False
    # Offsets of the imported (property) name, without quotes
    name_start: int = -1
    name_end: int = -1


@dataclass
class EdgeInfo:
    """An import, or an export that names a source module."""
    is_import: bool
    specifier: str
    quote: str
    specifier_start: int
    specifier_end: int
    is_type_only: bool = False
    bindings: list[RawBinding] = field(default_factory=list)
    export_star: bool = False
    clause_start: int | None = None
    clause_end: int | None = None


@dataclass
class Reference:
    name: str
    start: int
    end: int
    shorthand: bool = False


def _text(node, src: bytes) -> str:
    return src[node.start_byte:node.end_byte].decode("utf-8")


def _key(node) -> tuple[int, int, str]:
    return (node.start_byte, node.end_byte, node.type)


def _has_token(node, token: str) -> bool:
    return any(child.type == token for child in node.children)


def statement_node(root):
    """The first non-comment child of a parsed program, or None."""
    for child in root.children:
        if child.type != "comment":
            return child
    return None


def _unwrap_declaration(node):
    if node is not None and node.type == "ambient_declaration":
        for child in node.named_children:
            if child.type in _DECLARATION_KINDS:
                return child
    return node


def pattern_identifiers(node):
    """Identifier nodes bound by a binding pattern."""
    if node is None:
        return
    t = node.type
    if t in ("identifier", "shorthand_property_identifier_pattern"):
        yield node
    elif t in ("object_pattern", "array_pattern", "rest_pattern"):
        for child in node.named_children:
            yield from pattern_identifiers(child)
    elif t == "pair_pattern":
        yield from pattern_identifiers(node.child_by_field_name("value"))
    elif t in ("assignment_pattern", "object_assignment_pattern"):
        yield from pattern_identifiers(node.child_by_field_name("left"))
    elif t in ("required_parameter", "optional_parameter"):
        yield from pattern_identifiers(node.child_by_field_name("pattern"))


def declaration_info(node, src: bytes) -> DeclarationInfo:
    info = DeclarationInfo()
    if node is None:
        return info

    decl = node
    if node.type == "export_statement":
        info.exported = True
        info.default = _has_token(node, "default")
        decl = node.child_by_field_name("declaration")
        if decl is None:
            value = node.child_by_field_name("value")
            if not info.default or value is None:
                return info
            kind = _DEFAULT_VALUE_KINDS.get(value.type)
            name_node = value.child_by_field_name("name")
            if kind is not None and name_node is not None:
                info.kind = kind
                info.names = (_text(name_node, src),)
            return info
    decl = _unwrap_declaration(decl)

    kind = _DECLARATION_KINDS.get(decl.type)
    if kind is None:
        return info
    info.kind = kind

    if kind == DeclarationKind.VARIABLE:
        names: list[str] = []
        for child in decl.named_children:
            if child.type == "variable_declarator":
                names.extend(
                    _text(ident, src)
                    for ident in pattern_identifiers(child.child_by_field_name("name"))
                )
        info.names = tuple(names)
    else:
        name_node = decl.child_by_field_name("name")
        if name_node is not None:
            info.names = (_text(name_node, src),)
    return info


def declaration_name_spans(node, src: bytes) -> list[Reference]:
    """The identifiers a declaration statement binds, with their offsets."""
    if node is None:
        return []
    decl = node
    if node.type == "export_statement":
        decl = node.child_by_field_name("declaration")
        if decl is None:
            decl = node.child_by_field_name("value")
            if decl is None or decl.type not in _DEFAULT_VALUE_KINDS:
                return []
    decl = _unwrap_declaration(decl)

    if decl.type in ("lexical_declaration", "variable_declaration"):
        idents = [
            ident
            for child in decl.named_children if child.type == "variable_declarator"
            for ident in pattern_identifiers(child.child_by_field_name("name"))
        ]
    elif decl.type in _DECLARATION_KINDS or decl.type in _DEFAULT_VALUE_KINDS:
        name_node = decl.child_by_field_name("name")
        idents = [name_node] if name_node is not None else []
    else:
        idents = []
    return [
        Reference(
            _text(ident, src), ident.start_byte, ident.end_byte,
            shorthand=ident.type == "shorthand_property_identifier_pattern",
        )
        for ident in idents
    ]


def _module_export_name(node, src: bytes) -> str:
    text = _text(node, src)
    if node.type == "string" and len(text) >= 2:
        return text[1:-1]
    return text


def _name_start(node) -> int:
    return node.start_byte + 1 if node.type == "string" else node.start_byte


def _name_end(node) -> int:
    return node.end_byte - 1 if node.type == "string" else node.end_byte


def _specifier_is_type_only(node) -> bool:
    first = node.children[0] if node.children else None
    return first is not None and first.type in ("type", "typeof") and node.named_child_count > 0


def edge_info(node, src: bytes) -> EdgeInfo | None:
    """Import/re-export facts of a statement, or None for other statements."""
    if node is None or node.type not in ("import_statement", "export_statement"):
        return None
    source = node.child_by_field_name("source")
    if source is None or source.type != "string":
        return None

    raw = _text(source, src)
    edge = EdgeInfo(
        is_import=node.type == "import_statement",
        specifier=raw[1:-1],
        quote=raw[0] if raw else '"',
        specifier_start=source.start_byte,
        specifier_end=source.end_byte,
        is_type_only=_has_token(node, "type") or _has_token(node, "typeof"),
    )

    if edge.is_import:
        clause = next((c for c in node.named_children if c.type == "import_clause"), None)
        if clause is not None:
            _collect_import_clause(clause, src, edge)
        return edge

    for child in node.children:
        if child.type == "*":
            edge.export_star = True
        elif child.type == "namespace_export":
            name_node = child.named_children[-1] if child.named_children else None
            if name_node is not None:
                local = _module_export_name(name_node, src)
                edge.export_star = True
                edge.bindings.append(RawBinding(
                    BindingKind.NAMESPACE, "*", local, _text(child, src),
                    child.start_byte, child.end_byte,
                ))
        elif child.type == "export_clause":
            edge.clause_start, edge.clause_end = child.start_byte, child.end_byte
            for spec in child.named_children:
                if spec.type != "export_specifier":
                    continue
                name_node = spec.child_by_field_name("name")
                alias_node = spec.child_by_field_name("alias")
                if name_node is None:
                    continue
                name = _module_export_name(name_node, src)
                local = _module_export_name(alias_node, src) if alias_node else name
                edge.bindings.append(RawBinding(
                    BindingKind.NAMED, name, local, _text(spec, src),
                    spec.start_byte, spec.end_byte,
                    is_type_only=_specifier_is_type_only(spec),
                    name_start=_name_start(name_node),
                    name_end=_name_end(name_node),
                ))
    return edge


def _collect_import_clause(clause, src: bytes, edge: EdgeInfo) -> None:
    for child in clause.named_children:
        if child.type == "identifier":
            edge.bindings.append(RawBinding(
                BindingKind.DEFAULT, "default", _text(child, src), _text(child, src),
                child.start_byte, child.end_byte,
            ))
        elif child.type == "namespace_import":
            ident = next((c for c in child.named_children if c.type == "identifier"), None)
            if ident is not None:
                edge.bindings.append(RawBinding(
                    BindingKind.NAMESPACE, "*", _text(ident, src), _text(child, src),
                    child.start_byte, child.end_byte,
                ))
        elif child.type == "named_imports":
            edge.clause_start, edge.clause_end = child.start_byte, child.end_byte
            for spec in child.named_children:
                if spec.type != "import_specifier":
                    continue
                name_node = spec.child_by_field_name("name")
                alias_node = spec.child_by_field_name("alias")
                if name_node is None:
                    continue
                name = _module_export_name(name_node, src)
                local = _text(alias_node, src) if alias_node else name
                edge.bindings.append(RawBinding(
                    BindingKind.NAMED, name, local, _text(spec, src),
                    spec.start_byte, spec.end_byte,
                    is_type_only=_specifier_is_type_only(spec),
                    name_start=_name_start(name_node),
                    name_end=_name_end(name_node),
                ))


def local_exports(node, src: bytes) -> list[tuple[str, str]]:
    """(local name, exported name) pairs of ``export { a as b }`` and ``export default a``."""
    if node is None or node.type != "export_statement":
        return []
    if node.child_by_field_name("source") is not None:
        return []
    if node.child_by_field_name("declaration") is not None:
        return []

    pairs: list[tuple[str, str]] = []
    for child in node.named_children:
        if child.type == "export_clause":
            for spec in child.named_children:
                if spec.type != "export_specifier":
                    continue
                name_node = spec.child_by_field_name("name")
                alias_node = spec.child_by_field_name("alias")
                if name_node is None:
                    continue
                name = _module_export_name(name_node, src)
                pairs.append((name, _module_export_name(alias_node, src) if alias_node else name))
    value = node.child_by_field_name("value")
    if value is not None and value.type == "identifier" and _has_token(node, "default"):
        pairs.append((_text(value, src), "default"))
    return pairs


# ── Scope analysis ─────────────────────────────────────────


class _ScopeCollector:
    """Two passes: record local bindings per scope, then report free references."""

    def __init__(self, src: bytes):
        self.src = src
        self.binding_nodes: set[tuple[int, int]] = set()
        self.scope_names: dict[tuple[int, int, str], set[str]] = {}

    def _bind(self, ident, stack: list) -> None:
        self.binding_nodes.add((ident.start_byte, ident.end_byte))
        if stack:
            self.scope_names.setdefault(stack[-1], set()).add(_text(ident, self.src))

    def _bind_hoisted(self, ident, stack: list) -> None:
        self.binding_nodes.add((ident.start_byte, ident.end_byte))
        for key in reversed(stack):
            if key[2] in _FUNCTION_SCOPE_TYPES:
                self.scope_names.setdefault(key, set()).add(_text(ident, self.src))
                return

    def collect(self, node, stack: list) -> None:
        t = node.type
        if t in _SKIP_TYPES:
            return

        if t in _NAMED_DECLARATIONS:
            name_node = node.child_by_field_name("name")
            if name_node is not None:
                self._bind(name_node, stack)
        elif t == "variable_declarator":
            hoisted = node.parent is not None and node.parent.type == "variable_declaration"
            for ident in pattern_identifiers(node.child_by_field_name("name")):
                if hoisted:
                    self._bind_hoisted(ident, stack)
                else:
                    self._bind(ident, stack)

        pushed = t in _SCOPE_TYPES
        if pushed:
            stack.append(_key(node))

        if t in _SELF_NAMED_EXPRESSIONS:
            name_node = node.child_by_field_name("name")
            if name_node is not None:
                self._bind(name_node, stack)
        elif t == "formal_parameters":
            for param in node.named_children:
                for ident in pattern_identifiers(param):
                    self._bind(ident, stack)
        elif t == "arrow_function":
            param = node.child_by_field_name("parameter")
            if param is not None:
                self._bind(param, stack)
        elif t == "catch_clause":
            for ident in pattern_identifiers(node.child_by_field_name("parameter")):
                self._bind(ident, stack)
        elif t == "for_in_statement":
            if any(_has_token(node, kw) for kw in ("const", "let", "var")):
                for ident in pattern_identifiers(node.child_by_field_name("left")):
                    self._bind(ident, stack)
        elif t in ("type_parameter", "mapped_type_clause"):
            name_node = node.child_by_field_name("name")
            if name_node is not None:
                self._bind(name_node, stack)
        elif t == "infer_type":
            ident = next((c for c in node.named_children if c.type == "type_identifier"), None)
            if ident is not None:
                self._bind(ident, stack)
        elif t == "index_signature":
            name_node = node.child_by_field_name("name")
            if name_node is not None:
                self._bind(name_node, stack)

        for child in node.children:
            self.collect(child, stack)
        if pushed:
            stack.pop()

    def references(self, node, stack: list, out: list[Reference]) -> None:
        t = node.type
        if t in _SKIP_TYPES:
            return
        if t in _REFERENCE_TYPES:
            if self._is_reference(node, stack):
                out.append(Reference(
                    _text(node, self.src), node.start_byte, node.end_byte,
                    shorthand=t in ("shorthand_property_identifier", "shorthand_property_identifier_pattern"),
                ))
            return

        pushed = t in _SCOPE_TYPES
        if pushed:
            stack.append(_key(node))
        for child in node.children:
            self.references(child, stack, out)
        if pushed:
            stack.pop()

    def _is_reference(self, node, stack: list) -> bool:
        if (node.start_byte, node.end_byte) in self.binding_nodes:
            return False
        parent = node.parent
        if parent is not None:
            pt = parent.type
            if pt in ("nested_type_identifier", "nested_identifier"):
                first = parent.named_children[0] if parent.named_children else None
                if first is None or first.start_byte != node.start_byte:
                    return False
            elif pt in ("export_specifier", "import_specifier"):
                alias = parent.child_by_field_name("alias")
                if alias is not None and alias.start_byte == node.start_byte:
                    return False
            elif pt in _JSX_NAME_PARENTS:
                text = _text(node, self.src)
                if text[:1].islower():
                    return False
        name = _text(node, self.src)
        return not any(name in self.scope_names.get(key, ()) for key in stack)


def free_references(node, src: bytes) -> list[Reference]:
    """Identifiers in a statement that are not bound inside it."""
    if node is None:
        return []
    collector = _ScopeCollector(src)
    collector.collect(node, [])
    out: list[Reference] = []
    collector.references(node, [], out)
    return out


# ── Rendering ─────────────────────────────────────────


def render_import(
    specifier: str,
    *,
    default: str | None = None,
    named: list[str] | tuple[str, ...] = (),
    namespace: str | None = None,
    type_only: bool = False,
    quote: str = '"',
    semicolon: bool = True,
    keyword: str = "import",
) -> str:
    """Text of one import (or ``keyword="export"`` re-export) statement."""
    parts: list[str] = []
    if default:
        parts.append(default)
    if namespace:
        parts.append(f"* as {namespace}")
    elif named:
        parts.append("{ " + ", ".join(named) + " }")
    head = keyword + (" type" if type_only else "")
    end = ";" if semicolon else ""
    if not parts:
        if keyword == "export":
            return f"{head} * from {quote}{specifier}{quote}{end}"
        return f"{head} {quote}{specifier}{quote}{end}"
    return f"{head} {', '.join(parts)} from {quote}{specifier}{quote}{end}"

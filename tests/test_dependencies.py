"""Tests for dependency collection, classification, and external import gathering."""

import pytest

try:
    from code_relocate.source import Project
    HAS_TREESITTER = True
except ImportError:
    HAS_TREESITTER = False

from code_relocate.analysis import (
    DependencyClassifier,
    collect_external_imports,
    collect_internal_dependencies,
    find_declaration,
)
from code_relocate.errors import NotFoundError, OperationCancelledError, ResolutionError
from code_relocate.models import BindingKind, Classification, DeclarationKind

pytestmark = pytest.mark.skipif(not HAS_TREESITTER, reason="tree-sitter not installed")


# ── Helpers ───────────────────────────────────────


def _classify(make_project, text, target_name, path="/src/core.ts"):
    project = make_project({path: text})
    module = project.get_module(path)
    target = find_declaration(module, target_name)
    edges = collect_internal_dependencies(module, target)
    classified = DependencyClassifier(project).classify(module, target, edges)
    return {dep.name: dep.kind for dep in classified}


# ── find_declaration ───────────────────────────────────────


def test_find_declaration_by_kind(make_project):
    project = make_project({"/src/m.ts": (
        "export interface Config { a: number }\n"
        "export const Config = { a: 1 };\n"
    )})
    module = project.get_module("/src/m.ts")
    assert find_declaration(module, "Config").kind == DeclarationKind.INTERFACE
    assert find_declaration(module, "Config", DeclarationKind.VARIABLE).kind == DeclarationKind.VARIABLE


def test_find_declaration_missing(make_project):
    project = make_project({"/src/m.ts": "export const a = 1;\n"})
    module = project.get_module("/src/m.ts")
    with pytest.raises(NotFoundError):
        find_declaration(module, "b")
    with pytest.raises(NotFoundError):
        find_declaration(module, "a", DeclarationKind.CLASS)


# ── Internal dependencies ───────────────────────────────────────


def test_internal_dependencies_are_transitive(make_project):
    project = make_project({"/src/m.ts": (
        "const a = 1;\n"
        "const b = a + 1;\n"
        "const unrelated = 3;\n"
        "export const target = () => b;\n"
    )})
    module = project.get_module("/src/m.ts")
    target = find_declaration(module, "target")
    edges = collect_internal_dependencies(module, target)
    assert [(e.source.name, e.target.name) for e in edges] == [("target", "b"), ("b", "a")]


def test_internal_dependencies_ignore_imports(make_project):
    project = make_project({"/src/m.ts": (
        "import { helper } from './helper';\n"
        "export const target = () => helper();\n"
    )})
    module = project.get_module("/src/m.ts")
    assert collect_internal_dependencies(module, find_declaration(module, "target")) == []


def test_cancelled_collection(make_project):
    import threading

    project = make_project({"/src/m.ts": "const a = 1;\nexport const t = a;\n"})
    module = project.get_module("/src/m.ts")
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(OperationCancelledError):
        collect_internal_dependencies(module, find_declaration(module, "t"), cancel)


# ── Classification ───────────────────────────────────────


CORE = """\
const internalCalculator = (x: number) => x * x;
const onlyForFormat = 10;
export const exportedHelper = () => 1;

export const formatDisplayValue = (val: number) => {
  return `${internalCalculator(val)} ${onlyForFormat} ${exportedHelper()}`;
};

export const generateReport = (data: number[]) => data.map(internalCalculator);
"""


def test_classification_kinds(make_project):
    kinds = _classify(make_project, CORE, "formatDisplayValue")
    assert kinds == {
        "internalCalculator": Classification.SHARED_NEEDS_EXPORT,
        "onlyForFormat": Classification.PRIVATE,
        "exportedHelper": Classification.SHARED_EXPORTED,
    }


def test_private_chain(make_project):
    kinds = _classify(make_project, (
        "const a = 1;\n"
        "const b = a + 1;\n"
        "export const target = () => b;\n"
    ), "target")
    assert kinds == {"a": Classification.PRIVATE, "b": Classification.PRIVATE}


def test_chain_with_outside_user(make_project):
    kinds = _classify(make_project, (
        "const a = 1;\n"
        "const b = a + 1;\n"
        "export const target = () => b;\n"
        "export const other = () => a;\n"
    ), "target")
    assert kinds == {"a": Classification.SHARED_NEEDS_EXPORT, "b": Classification.PRIVATE}


def test_staying_dependency_of_shared_is_not_imported(make_project):
    kinds = _classify(make_project, (
        "const y = 1;\n"
        "const x = y + 1;\n"
        "export const target = () => x;\n"
        "export const other = () => x;\n"
    ), "target")
    assert kinds == {"x": Classification.SHARED_NEEDS_EXPORT}


def test_dependency_exported_through_clause_is_shared(make_project):
    kinds = _classify(make_project, (
        "const a = 1;\n"
        "export { a };\n"
        "export const target = () => a;\n"
    ), "target")
    assert kinds == {"a": Classification.SHARED_EXPORTED}


def test_classified_names_are_the_used_ones(make_project):
    project = make_project({"/src/m.ts": (
        "const first = 1, second = 2;\n"
        "export const target = () => second;\n"
        "export const other = () => first;\n"
    )})
    module = project.get_module("/src/m.ts")
    target = find_declaration(module, "target")
    edges = collect_internal_dependencies(module, target)
    [dep] = DependencyClassifier(project).classify(module, target, edges)
    assert dep.kind == Classification.SHARED_NEEDS_EXPORT
    assert dep.names == ("second",)


def test_unresolvable_references_fall_back_to_export():
    class UncheckedProject(Project):
        def find_references(self, module, statement, name):
            if name == "a":
                raise ResolutionError("no type information for a")
            return super().find_references(module, statement, name)

    project = UncheckedProject(in_memory=True)
    project.add_module("/src/core.ts", (
        "const a = 1;\n"
        "const b = 2;\n"
        "export const target = () => a + b;\n"
    ))
    module = project.get_module("/src/core.ts")
    target = find_declaration(module, "target")
    classified = DependencyClassifier(project).classify(
        module, target, collect_internal_dependencies(module, target),
    )
    assert [(dep.name, dep.kind) for dep in classified] == [
        ("a", Classification.SHARED_NEEDS_EXPORT),
        ("b", Classification.PRIVATE),
    ]


# ── External imports ───────────────────────────────────────


FEATURE = """\
import React from 'react';
import * as path from 'path';
import { join, resolve as res } from 'path';
import { helper } from './helper';
import type { Options } from './types';

export function build(opts: Options) {
  return helper(path.sep, res('.'));
}
"""


def test_collect_external_imports(make_project):
    project = make_project({"/src/feature.ts": FEATURE})
    module = project.get_module("/src/feature.ts")
    target = find_declaration(module, "build")
    needed = collect_external_imports(module, [target])

    assert sorted(needed) == ["./helper", "./types", "path"]
    assert needed["path"].namespace.local == "path"
    assert needed["path"].bindings == {}
    assert [b.local for b in needed["./helper"].named] == ["helper"]
    [options] = needed["./types"].named
    assert options.is_type_only


def test_default_import_is_collected(make_project):
    project = make_project({"/src/a.ts": (
        "import lodash, { size } from 'lodash';\n"
        "export const count = (xs: number[]) => size(xs) + lodash.size(xs);\n"
    )})
    module = project.get_module("/src/a.ts")
    needed = collect_external_imports(module, [find_declaration(module, "count")])
    entry = needed["lodash"]
    assert entry.default.local == "lodash"
    assert entry.default.kind == BindingKind.DEFAULT
    assert [b.local for b in entry.named] == ["size"]


def test_namespace_import_claims_its_specifier(make_project):
    project = make_project({"/src/a.ts": (
        "import * as L from './lib';\n"
        "import { q } from './lib';\n"
        "export const t = () => q + L.x;\n"
    )})
    module = project.get_module("/src/a.ts")
    needed = collect_external_imports(module, [find_declaration(module, "t")])
    entry = needed["./lib"]
    assert entry.namespace.local == "L"
    assert entry.bindings == {}

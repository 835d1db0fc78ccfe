"""End-to-end tests for moving a top-level symbol between modules."""

import threading

import pytest

try:
    from code_relocate.source import Project
    HAS_TREESITTER = True
except ImportError:
    HAS_TREESITTER = False

from code_relocate.errors import (
    ConflictError,
    NotFoundError,
    OperationCancelledError,
    UnsupportedOperationError,
)
from code_relocate.pipeline import move_symbol

pytestmark = pytest.mark.skipif(not HAS_TREESITTER, reason="tree-sitter not installed")


MODULE = """\
const baseValue=100;
export const dependentFunc=()=>baseValue*2;
export const anotherThing='keep me';
"""

USER = """\
import { dependentFunc } from './module';

console.log(dependentFunc());
"""


@pytest.fixture
def simple_project(make_project):
    return make_project({"/src/module.ts": MODULE, "/src/user.ts": USER})


def _text(project, path):
    return project.get_module(path).text


# ── Private dependencies ───────────────────────────────────────


def test_private_dependency_moves_with_target(simple_project):
    result = move_symbol(simple_project, "/src/module.ts", "/src/moved-module.ts", "dependentFunc")

    assert _text(simple_project, "/src/moved-module.ts") == (
        "const baseValue=100;\n"
        "\n"
        "export const dependentFunc=()=>baseValue*2;\n"
    )
    assert _text(simple_project, "/src/module.ts") == "export const anotherThing='keep me';\n"
    assert _text(simple_project, "/src/user.ts") == (
        "import { dependentFunc } from './moved-module';\n"
        "\n"
        "console.log(dependentFunc());\n"
    )
    assert result.changed_files == ["/src/module.ts", "/src/moved-module.ts", "/src/user.ts"]
    assert not result.dry_run
    assert simple_project.unsaved_modules() == []


def test_round_trip_restores_references(simple_project):
    move_symbol(simple_project, "/src/module.ts", "/src/moved-module.ts", "dependentFunc")
    move_symbol(simple_project, "/src/moved-module.ts", "/src/module.ts", "dependentFunc")

    assert _text(simple_project, "/src/user.ts") == USER
    module = simple_project.get_module("/src/module.ts")
    assert [s.name for s in module.declarations()] == ["anotherThing", "baseValue", "dependentFunc"]
    assert simple_project.get_module("/src/moved-module.ts").declarations() == []


def test_emptied_unsaved_destination_is_discarded(simple_project):
    move_symbol(simple_project, "/src/module.ts", "/src/moved-module.ts", "dependentFunc", dry_run=True)
    result = move_symbol(simple_project, "/src/moved-module.ts", "/src/module.ts", "dependentFunc")

    assert simple_project.get_module("/src/moved-module.ts") is None
    assert "/src/moved-module.ts" not in result.changed_files
    assert _text(simple_project, "/src/user.ts") == USER


# ── Shared dependencies ───────────────────────────────────────


SHARED_LOGIC = """\
export const sharedUtil = { value: 'shared' };

export const featureAFunc = () => {
  return 'Feature A using ' + sharedUtil.value;
};

export const anotherFunc = () => {
  return 'Another using ' + sharedUtil.value;
};
"""


def test_exported_dependency_is_imported(make_project):
    project = make_project({"/src/shared-logic.ts": SHARED_LOGIC})
    move_symbol(project, "/src/shared-logic.ts", "/src/features/feature-a.ts", "featureAFunc")

    assert _text(project, "/src/features/feature-a.ts") == (
        'import { sharedUtil } from "../shared-logic";\n'
        "\n"
        "export const featureAFunc = () => {\n"
        "  return 'Feature A using ' + sharedUtil.value;\n"
        "};\n"
    )
    assert _text(project, "/src/shared-logic.ts") == (
        "export const sharedUtil = { value: 'shared' };\n"
        "\n"
        "export const anotherFunc = () => {\n"
        "  return 'Another using ' + sharedUtil.value;\n"
        "};\n"
    )


CORE_UTILS = """\
const internalCalculator = (x: number) => x * x; // not exported

export const formatDisplayValue = (val: number) => {
  return `Value: ${internalCalculator(val)}`;
};

export const generateReport = (data: number[]) => {
  const total = data.reduce((sum, x) => sum + internalCalculator(x), 0);
  return `Report Total: ${total}`;
};
"""


def test_shared_dependency_gains_export(make_project):
    project = make_project({"/src/core-utils.ts": CORE_UTILS})
    move_symbol(project, "/src/core-utils.ts", "/src/ui-helper.ts", "formatDisplayValue")

    assert _text(project, "/src/ui-helper.ts") == (
        'import { internalCalculator } from "./core-utils";\n'
        "\n"
        "export const formatDisplayValue = (val: number) => {\n"
        "  return `Value: ${internalCalculator(val)}`;\n"
        "};\n"
    )
    core = _text(project, "/src/core-utils.ts")
    assert core.startswith(
        "export const internalCalculator = (x: number) => x * x; // not exported\n\n"
        "export const generateReport"
    )
    assert "formatDisplayValue" not in core


# ── External imports ───────────────────────────────────────


def test_external_imports_follow_the_symbol(make_project):
    project = make_project({
        "/src/utils/math.ts": "export const clamp = (v: number, lo: number, hi: number) => v;\n",
        "/src/features/widget.ts": (
            "import { clamp } from '../utils/math';\n"
            "import lodash from 'lodash';\n"
            "\n"
            "export const widget = () => clamp(lodash.size([]), 0, 1);\n"
            "export const other = 1;\n"
        ),
    })
    move_symbol(project, "/src/features/widget.ts", "/src/ui/widget.ts", "widget")

    assert _text(project, "/src/ui/widget.ts") == (
        'import { clamp } from "../utils/math";\n'
        'import lodash from "lodash";\n'
        "\n"
        "export const widget = () => clamp(lodash.size([]), 0, 1);\n"
    )
    assert _text(project, "/src/features/widget.ts") == "export const other = 1;\n"


def test_non_exported_target_is_exported_at_destination(make_project):
    project = make_project({"/src/a.ts": "function helper() { return 1; }\nexport const x = 2;\n"})
    move_symbol(project, "/src/a.ts", "/src/b.ts", "helper")
    assert _text(project, "/src/b.ts") == "export function helper() { return 1; }\n"
    assert _text(project, "/src/a.ts") == "export const x = 2;\n"


def test_staying_code_imports_the_moved_symbol(make_project):
    project = make_project({"/src/a.ts": (
        "export const moved = () => 1;\n"
        "export const stays = () => moved() + 1;\n"
    )})
    move_symbol(project, "/src/a.ts", "/src/b.ts", "moved")
    assert _text(project, "/src/a.ts") == (
        'import { moved } from "./b";\n'
        "\n"
        "export const stays = () => moved() + 1;\n"
    )


def test_staying_code_imports_from_destination_not_a_namesake(make_project):
    project = make_project({
        "/src/a.ts": "export const moved = () => 1;\nexport const stays = () => moved();\n",
        "/src/aaa.ts": "export const moved = 'unrelated';\n",
    })
    move_symbol(project, "/src/a.ts", "/src/z.ts", "moved")
    assert _text(project, "/src/a.ts") == (
        'import { moved } from "./z";\n'
        "\n"
        "export const stays = () => moved();\n"
    )
    assert _text(project, "/src/aaa.ts") == "export const moved = 'unrelated';\n"


# ── Referencing declarations ───────────────────────────────────────


def test_import_with_other_names_is_split(simple_project):
    simple_project.add_module("/src/both.ts", (
        "import { dependentFunc, anotherThing } from './module';\n"
        "\n"
        "console.log(dependentFunc(), anotherThing);\n"
    ))
    move_symbol(simple_project, "/src/module.ts", "/src/moved-module.ts", "dependentFunc")
    assert _text(simple_project, "/src/both.ts") == (
        "import { anotherThing } from './module';\n"
        "import { dependentFunc } from './moved-module';\n"
        "\n"
        "console.log(dependentFunc(), anotherThing);\n"
    )


def test_reexport_is_split(simple_project):
    simple_project.add_module("/src/index.ts", (
        "export { dependentFunc, anotherThing } from './module';\n"
    ))
    move_symbol(simple_project, "/src/module.ts", "/src/moved-module.ts", "dependentFunc")
    assert _text(simple_project, "/src/index.ts") == (
        "export { anotherThing } from './module';\n"
        "export { dependentFunc } from './moved-module';\n"
    )


def test_type_only_import_stays_type_only(make_project):
    project = make_project({
        "/src/types.ts": "export interface A { x: number }\nexport interface B { y: string }\n",
        "/src/use.ts": "import type { A, B } from './types';\n\nexport const v: A | B = { x: 1 };\n",
    })
    move_symbol(project, "/src/types.ts", "/src/a.ts", "A")
    assert _text(project, "/src/a.ts") == "export interface A { x: number }\n"
    assert _text(project, "/src/use.ts") == (
        "import type { B } from './types';\n"
        "import type { A } from './a';\n"
        "\n"
        "export const v: A | B = { x: 1 };\n"
    )


def test_esm_extension_style_is_kept(make_project):
    project = make_project({
        "/src/module.ts": MODULE,
        "/src/user.ts": "import { dependentFunc } from './module.js';\n\ndependentFunc();\n",
    })
    move_symbol(project, "/src/module.ts", "/src/lib/moved.ts", "dependentFunc")
    assert _text(project, "/src/user.ts").startswith("import { dependentFunc } from './lib/moved.js';")


def test_destination_drops_its_own_import(make_project):
    project = make_project({
        "/src/module.ts": MODULE,
        "/src/consumer.ts": USER,
    })
    move_symbol(project, "/src/module.ts", "/src/consumer.ts", "dependentFunc")
    assert _text(project, "/src/consumer.ts") == (
        "console.log(dependentFunc());\n"
        "\n"
        "const baseValue=100;\n"
        "\n"
        "export const dependentFunc=()=>baseValue*2;\n"
    )


def test_kind_hint_picks_declaration(make_project):
    project = make_project({"/src/config.ts": (
        "export interface Config { a: number }\n"
        "export const Config = { a: 1 };\n"
    )})
    move_symbol(project, "/src/config.ts", "/src/config-value.ts", "Config", "variable")
    assert _text(project, "/src/config-value.ts") == "export const Config = { a: 1 };\n"
    assert _text(project, "/src/config.ts") == "export interface Config { a: number }\n"


# ── Rejections ───────────────────────────────────────


def _assert_untouched(project, before):
    assert project.unsaved_modules() == []
    assert {m.path: m.text for m in project.modules()} == before


def _snapshot(project):
    return {m.path: m.text for m in project.modules()}


def test_default_export_is_rejected(make_project):
    project = make_project({"/src/a.ts": "export default function main() {}\n"})
    before = _snapshot(project)
    with pytest.raises(UnsupportedOperationError):
        move_symbol(project, "/src/a.ts", "/src/b.ts", "main")
    _assert_untouched(project, before)


def test_missing_symbol(simple_project):
    before = _snapshot(simple_project)
    with pytest.raises(NotFoundError):
        move_symbol(simple_project, "/src/module.ts", "/src/x.ts", "nothingHere")
    _assert_untouched(simple_project, before)


def test_missing_module(simple_project):
    with pytest.raises(NotFoundError):
        move_symbol(simple_project, "/src/nope.ts", "/src/x.ts", "dependentFunc")


def test_same_module_is_rejected(simple_project):
    with pytest.raises(UnsupportedOperationError):
        move_symbol(simple_project, "/src/module.ts", "/src/module.ts", "dependentFunc")


def test_non_module_destination_is_rejected(simple_project):
    with pytest.raises(UnsupportedOperationError):
        move_symbol(simple_project, "/src/module.ts", "/src/notes.md", "dependentFunc")


def test_unknown_kind_hint_is_rejected(simple_project):
    with pytest.raises(UnsupportedOperationError):
        move_symbol(simple_project, "/src/module.ts", "/src/x.ts", "dependentFunc", "macro")


def test_destination_name_clash(simple_project):
    simple_project.add_module("/src/other.ts", "export const dependentFunc = 1;\n")
    before = _snapshot(simple_project)
    with pytest.raises(ConflictError):
        move_symbol(simple_project, "/src/module.ts", "/src/other.ts", "dependentFunc")
    _assert_untouched(simple_project, before)


def test_destination_alias_of_moved_symbol_is_rejected(make_project):
    project = make_project({
        "/src/module.ts": MODULE,
        "/src/consumer.ts": "import { dependentFunc as df } from './module';\n\nconsole.log(df());\n",
    })
    before = _snapshot(project)
    with pytest.raises(ConflictError):
        move_symbol(project, "/src/module.ts", "/src/consumer.ts", "dependentFunc")
    _assert_untouched(project, before)


def test_cancelled_before_mutation(simple_project):
    before = _snapshot(simple_project)
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(OperationCancelledError):
        move_symbol(simple_project, "/src/module.ts", "/src/moved.ts", "dependentFunc", cancel=cancel)
    _assert_untouched(simple_project, before)


# ── On disk ───────────────────────────────────────


def test_dry_run_leaves_disk_alone(write_tree):
    root = write_tree({"src/module.ts": MODULE, "src/user.ts": USER})
    project = Project.from_directory(root)
    result = move_symbol(project, "src/module.ts", "src/moved-module.ts", "dependentFunc", dry_run=True)

    base = root.resolve()
    assert result.dry_run
    assert result.changed_files == [
        str(base / "src/module.ts"),
        str(base / "src/moved-module.ts"),
        str(base / "src/user.ts"),
    ]
    assert not (root / "src/moved-module.ts").exists()
    assert (root / "src/module.ts").read_text() == MODULE
    assert (root / "src/user.ts").read_text() == USER


def test_move_is_written_to_disk(write_tree):
    root = write_tree({"src/module.ts": MODULE, "src/user.ts": USER})
    project = Project.from_directory(root)
    move_symbol(project, "src/module.ts", "src/moved-module.ts", "dependentFunc")

    assert (root / "src/moved-module.ts").read_text() == (
        "const baseValue=100;\n\nexport const dependentFunc=()=>baseValue*2;\n"
    )
    assert (root / "src/module.ts").read_text() == "export const anotherThing='keep me';\n"
    assert "'./moved-module'" in (root / "src/user.ts").read_text()


def test_progress_callback(simple_project):
    calls = []
    move_symbol(
        simple_project, "/src/module.ts", "/src/moved.ts", "dependentFunc",
        progress=lambda stage, done, total: calls.append((stage, done, total)),
    )
    assert calls[0] == ("Analyzing", 0, 2)
    assert calls[-1] == ("Rewriting", 2, 2)

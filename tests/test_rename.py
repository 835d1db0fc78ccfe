"""Tests for batch file/directory renames."""

import pytest

try:
    from code_relocate.source import Project
    HAS_TREESITTER = True
except ImportError:
    HAS_TREESITTER = False

from code_relocate.errors import ConflictError, NotFoundError
from code_relocate.models import PathMapping, ProjectConfig
from code_relocate.pipeline import rename_entries

pytestmark = pytest.mark.skipif(not HAS_TREESITTER, reason="tree-sitter not installed")


COMPONENT = """\
import { feature } from '../old-feature/feature';
import { feature as aliasFeature } from '@/old-feature/feature';
import { feature as indexImport } from '../old-feature';

export const all = [feature, aliasFeature, indexImport];
"""


@pytest.fixture
def feature_project(make_project):
    config = ProjectConfig(base_url="/", paths={"@/*": ["src/*"]})
    return make_project({
        "/src/old-feature/feature.ts": "export const feature = 'feature';\n",
        "/src/old-feature/index.ts": "export * from './feature';\n",
        "/src/components/AnotherComponent.ts": COMPONENT,
    }, config)


def _text(project, path):
    return project.get_module(path).text


# ── Directory rename ───────────────────────────────────────


def test_directory_rename_rewrites_every_import_style(feature_project):
    result = rename_entries(feature_project, [("/src/old-feature", "/src/new-feature")])

    assert _text(feature_project, "/src/components/AnotherComponent.ts") == (
        "import { feature } from '../new-feature/feature';\n"
        "import { feature as aliasFeature } from '../new-feature/feature';\n"
        "import { feature as indexImport } from '../new-feature/feature';\n"
        "\n"
        "export const all = [feature, aliasFeature, indexImport];\n"
    )
    assert result.changed_files == [
        "/src/components/AnotherComponent.ts",
        "/src/new-feature/feature.ts",
        "/src/new-feature/index.ts",
    ]
    assert feature_project.get_module("/src/old-feature/feature.ts") is None
    assert _text(feature_project, "/src/new-feature/index.ts") == "export * from './feature';\n"


def test_rename_accepts_path_mappings(feature_project):
    rename_entries(feature_project, [PathMapping("/src/old-feature", "/src/new-feature")])
    assert feature_project.get_module("/src/new-feature/feature.ts") is not None


# ── File rename ───────────────────────────────────────


@pytest.fixture
def file_project(make_project):
    return make_project({
        "/src/a.ts": "import { b } from './b';\nexport const a = b;\n",
        "/src/b.ts": "export const b = 1;\n",
        "/src/c.ts": "import { a } from './a';\nconsole.log(a);\n",
    })


def test_file_rename_updates_both_directions(file_project):
    rename_entries(file_project, [("/src/a.ts", "/src/nested/a.ts")])
    assert _text(file_project, "/src/nested/a.ts") == "import { b } from '../b';\nexport const a = b;\n"
    assert _text(file_project, "/src/c.ts") == "import { a } from './nested/a';\nconsole.log(a);\n"
    assert _text(file_project, "/src/b.ts") == "export const b = 1;\n"


def test_batch_rename_of_modules_that_import_each_other(file_project):
    rename_entries(file_project, [
        ("/src/a.ts", "/src/lib/a.ts"),
        ("/src/b.ts", "/src/lib/deep/b.ts"),
    ])
    assert _text(file_project, "/src/lib/a.ts").startswith("import { b } from './deep/b';")
    assert _text(file_project, "/src/c.ts").startswith("import { a } from './lib/a';")


def test_rename_keeps_esm_extension(make_project):
    project = make_project({
        "/src/x.ts": "export const x = 1;\n",
        "/src/y.ts": "import { x } from './x.js';\n",
    })
    rename_entries(project, [("/src/x.ts", "/src/lib/x.ts")])
    assert _text(project, "/src/y.ts") == "import { x } from './lib/x.js';\n"


def test_rename_to_other_extension(make_project):
    project = make_project({
        "/src/view.js": "export const view = 1;\n",
        "/src/app.ts": "import { view } from './view';\n",
    })
    rename_entries(project, [("/src/view.js", "/src/view.tsx")])
    assert project.get_module("/src/view.tsx").grammar == "tsx"
    assert _text(project, "/src/app.ts") == "import { view } from './view';\n"


def test_package_imports_are_untouched(make_project):
    project = make_project({
        "/src/a.ts": "import React from 'react';\nexport const a = React;\n",
    })
    rename_entries(project, [("/src/a.ts", "/src/ui/a.ts")])
    assert _text(project, "/src/ui/a.ts") == "import React from 'react';\nexport const a = React;\n"


# ── Validation ───────────────────────────────────────


def _snapshot(project):
    return {m.path: m.text for m in project.modules()}


def test_duplicate_destination(file_project):
    before = _snapshot(file_project)
    with pytest.raises(ConflictError):
        rename_entries(file_project, [
            ("/src/a.ts", "/src/x.ts"),
            ("/src/c.ts", "/src/x.ts"),
        ])
    assert _snapshot(file_project) == before
    assert file_project.unsaved_modules() == []


def test_existing_destination(file_project):
    with pytest.raises(ConflictError):
        rename_entries(file_project, [("/src/a.ts", "/src/b.ts")])
    assert file_project.get_module("/src/a.ts") is not None


def test_missing_source(file_project):
    with pytest.raises(NotFoundError):
        rename_entries(file_project, [("/src/nope.ts", "/src/x.ts")])


def test_directory_collision_after_expansion(make_project):
    project = make_project({
        "/src/one/a.ts": "",
        "/src/two/a.ts": "",
    })
    with pytest.raises(ConflictError):
        rename_entries(project, [
            ("/src/one", "/src/merged"),
            ("/src/two/a.ts", "/src/merged/a.ts"),
        ])


# ── On disk ───────────────────────────────────────


def test_dry_run_leaves_disk_alone(write_tree):
    root = write_tree({
        "src/old-feature/feature.ts": "export const feature = 1;\n",
        "src/app.ts": "import { feature } from './old-feature/feature';\n",
    })
    project = Project.from_directory(root)
    result = rename_entries(project, [("src/old-feature", "src/new-feature")], dry_run=True)

    assert result.dry_run
    assert len(result.changed_files) == 2
    assert (root / "src/old-feature/feature.ts").exists()
    assert not (root / "src/new-feature").exists()
    assert (root / "src/app.ts").read_text() == "import { feature } from './old-feature/feature';\n"


def test_directory_rename_on_disk(write_tree):
    root = write_tree({
        "tsconfig.json": '{"compilerOptions": {"baseUrl": ".", "paths": {"@/*": ["src/*"]}}}',
        "src/old-feature/feature.ts": "export const feature = 1;\n",
        "src/old-feature/index.ts": "export * from './feature';\n",
        "src/app.ts": "import { feature } from '@/old-feature';\n",
    })
    project = Project.from_directory(root)
    rename_entries(project, [("src/old-feature", "src/new-feature")])

    assert (root / "src/new-feature/feature.ts").read_text() == "export const feature = 1;\n"
    assert (root / "src/new-feature/index.ts").read_text() == "export * from './feature';\n"
    assert (root / "src/app.ts").read_text() == "import { feature } from './new-feature/feature';\n"
    assert not (root / "src/old-feature").exists()

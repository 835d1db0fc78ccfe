"""Tests for path-alias removal and reference listing."""

import pytest

try:
    from code_relocate.source import Project  # noqa: F401
    HAS_TREESITTER = True
except ImportError:
    HAS_TREESITTER = False

from code_relocate.errors import NotFoundError
from code_relocate.models import ProjectConfig
from code_relocate.pipeline import find_references, remove_path_alias

pytestmark = pytest.mark.skipif(not HAS_TREESITTER, reason="tree-sitter not installed")


FEATURE_A = """\
import { Button } from '@/components/Button';
import { Input } from '@components/Input';
import { missing } from '@/nowhere';
import { local } from './local';
"""


@pytest.fixture
def alias_project(make_project):
    config = ProjectConfig(
        base_url="/",
        paths={"@/*": ["src/*"], "@components/*": ["src/components/*"]},
    )
    return make_project({
        "/src/components/Button.ts": "export const Button = 1;\n",
        "/src/components/Input/index.ts": "export const Input = 2;\n",
        "/src/features/featureA/index.ts": FEATURE_A,
        "/src/features/featureA/local.ts": "export const local = 3;\n",
        "/src/other.ts": "import { Button } from '@/components/Button';\n",
    }, config)


def test_aliases_become_relative(alias_project):
    result = remove_path_alias(alias_project, "/src/features")

    assert alias_project.get_module("/src/features/featureA/index.ts").text == (
        "import { Button } from '../../components/Button';\n"
        "import { Input } from '../../components/Input/index';\n"
        "import { missing } from '@/nowhere';\n"
        "import { local } from './local';\n"
    )
    assert result.changed_files == ["/src/features/featureA/index.ts"]
    assert alias_project.get_module("/src/other.ts").text == (
        "import { Button } from '@/components/Button';\n"
    )


def test_single_file_target(alias_project):
    result = remove_path_alias(alias_project, "/src/other.ts")
    assert result.changed_files == ["/src/other.ts"]
    assert alias_project.get_module("/src/other.ts").text == "import { Button } from './components/Button';\n"


def test_missing_target(alias_project):
    with pytest.raises(NotFoundError):
        remove_path_alias(alias_project, "/src/nowhere")


def test_dry_run_keeps_modules_unsaved(alias_project):
    result = remove_path_alias(alias_project, "/src/other.ts", dry_run=True)
    assert result.dry_run
    assert [m.path for m in alias_project.unsaved_modules()] == ["/src/other.ts"]


# ── find_references ───────────────────────────────────────


def test_find_references_locations(make_project):
    project = make_project({
        "/src/feature.ts": "export const feature = 1;\nexport const twice = feature * 2;\n",
        "/src/index.ts": "export * from './feature';\n",
        "/src/app.ts": "import { feature } from './index';\n\nconsole.log(feature);\n",
    })
    locations = find_references(project, "/src/feature.ts", "feature")
    assert [(loc.path, loc.line, loc.column, loc.kind) for loc in locations] == [
        ("/src/app.ts", 1, 10, "import"),
        ("/src/app.ts", 3, 13, "usage"),
        ("/src/feature.ts", 2, 22, "usage"),
    ]
    assert locations[1].text == "console.log(feature);"


def test_find_references_unknown_symbol(make_project):
    project = make_project({"/src/a.ts": "export const a = 1;\n"})
    with pytest.raises(NotFoundError):
        find_references(project, "/src/a.ts", "b")

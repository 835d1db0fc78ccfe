"""Shared fixtures: in-memory and on-disk projects."""

from pathlib import Path

import pytest


@pytest.fixture
def make_project():
    """Build an in-memory project from a {path: text} mapping."""
    from code_relocate.source import Project

    def _make(files: dict[str, str], config=None):
        project = Project(config, in_memory=True)
        for path, text in files.items():
            project.add_module(path, text)
        return project

    return _make


@pytest.fixture
def write_tree(tmp_path):
    """Write a {relative path: text} mapping below tmp_path and return the root."""

    def _write(files: dict[str, str]) -> Path:
        for rel, text in files.items():
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        return tmp_path

    return _write

"""Click CLI with move-symbol, rename-symbol, rename, remove-alias, and references subcommands."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from code_relocate import __version__
from code_relocate.errors import RelocationError
from code_relocate.models import DeclarationKind, OperationResult, PathMapping
from code_relocate.pipeline import (
    find_references,
    move_symbol,
    remove_path_alias,
    rename_entries,
    rename_symbol,
)
from code_relocate.source import Project

_KIND_CHOICES = [kind.value for kind in DeclarationKind]

_root_option = click.option(
    "--root", "-r",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Project root directory",
)
_tsconfig_option = click.option(
    "--tsconfig",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="tsconfig.json with baseUrl/paths (default: <root>/tsconfig.json)",
)
_dry_run_option = click.option(
    "--dry-run", is_flag=True, help="Report the files that would change without writing them",
)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", count=True, help="Increase log output (-v info, -vv debug)")
def cli(verbose: int):
    """code-relocate: Move TypeScript/JavaScript symbols and files without breaking imports."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _load(root: Path, tsconfig: Path | None) -> Project:
    return Project.from_directory(root, tsconfig=tsconfig)


def _report(result: OperationResult, root: Path) -> None:
    if not result.changed_files:
        click.echo("No files changed.")
        return
    verb = "Would change" if result.dry_run else "Changed"
    click.echo(f"{verb} {len(result.changed_files)} file(s):")
    base = root.resolve()
    for path in result.changed_files:
        try:
            shown = Path(path).relative_to(base)
        except ValueError:
            shown = Path(path)
        click.echo(f"  {click.style(str(shown), fg='cyan')}")


@cli.command("move-symbol")
@click.argument("source")
@click.argument("destination")
@click.argument("name")
@click.option("--kind", "-k", type=click.Choice(_KIND_CHOICES), help="Pick among same-named declarations")
@_root_option
@_tsconfig_option
@_dry_run_option
def move_symbol_cmd(source: str, destination: str, name: str, kind: str | None,
                    root: Path, tsconfig: Path | None, dry_run: bool):
    """Move top-level declaration NAME from SOURCE to DESTINATION."""
    project = _load(root, tsconfig)
    try:
        result = move_symbol(project, source, destination, name, kind, dry_run=dry_run)
    except RelocationError as e:
        raise click.ClickException(str(e))
    _report(result, root)


@cli.command("rename-symbol")
@click.argument("file")
@click.argument("name")
@click.argument("new_name")
@_root_option
@_tsconfig_option
@_dry_run_option
def rename_symbol_cmd(file: str, name: str, new_name: str,
                      root: Path, tsconfig: Path | None, dry_run: bool):
    """Rename top-level declaration NAME in FILE to NEW_NAME everywhere."""
    project = _load(root, tsconfig)
    try:
        result = rename_symbol(project, file, name, new_name, dry_run=dry_run)
    except RelocationError as e:
        raise click.ClickException(str(e))
    _report(result, root)


@cli.command("rename")
@click.argument("paths", nargs=-1, required=True)
@_root_option
@_tsconfig_option
@_dry_run_option
def rename_cmd(paths: tuple[str, ...], root: Path, tsconfig: Path | None, dry_run: bool):
    """Rename files or directories: OLD NEW [OLD NEW ...]."""
    if len(paths) % 2:
        raise click.UsageError("Paths must come in OLD NEW pairs")
    mappings = [PathMapping(paths[i], paths[i + 1]) for i in range(0, len(paths), 2)]
    project = _load(root, tsconfig)
    try:
        result = rename_entries(project, mappings, dry_run=dry_run)
    except RelocationError as e:
        raise click.ClickException(str(e))
    _report(result, root)


@cli.command("remove-alias")
@click.argument("target")
@_root_option
@_tsconfig_option
@_dry_run_option
def remove_alias_cmd(target: str, root: Path, tsconfig: Path | None, dry_run: bool):
    """Replace path-alias specifiers in TARGET (file or directory) with relative ones."""
    project = _load(root, tsconfig)
    try:
        result = remove_path_alias(project, target, dry_run=dry_run)
    except RelocationError as e:
        raise click.ClickException(str(e))
    _report(result, root)


@cli.command("references")
@click.argument("file")
@click.argument("name")
@_root_option
@_tsconfig_option
def references_cmd(file: str, name: str, root: Path, tsconfig: Path | None):
    """List every reference to top-level declaration NAME in FILE."""
    project = _load(root, tsconfig)
    try:
        locations = find_references(project, file, name)
    except RelocationError as e:
        raise click.ClickException(str(e))

    if not locations:
        click.echo("No references found.")
        return
    base = root.resolve()
    for loc in locations:
        try:
            shown = Path(loc.path).relative_to(base)
        except ValueError:
            shown = Path(loc.path)
        click.echo(
            f"{click.style(str(shown), fg='cyan')}:{loc.line}:{loc.column}  "
            f"{click.style(loc.kind, dim=True)}  {loc.text}"
        )
    click.echo(f"\n{len(locations)} reference(s)")

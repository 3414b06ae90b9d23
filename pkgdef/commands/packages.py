"""
Collection commands: add, validate, list, show, remove, inputs.
"""

import json
from pathlib import Path
from typing import List, Optional
import logging

import typer

from pkgdef.commands import reported_errors
from pkgdef.core.dependencies import get_repository
from pkgdef.domain.build_script import render_build_script
from pkgdef.domain.entities import parse_package_spec
from pkgdef.domain.scheme import render_definition
from pkgdef.services.descriptor_loader import dump_descriptor, load_descriptor

logger = logging.getLogger(__name__)

SHOW_FORMATS = ("yaml", "json", "scheme")


def add_package(
    files: List[Path] = typer.Argument(..., help="Descriptor YAML files to add."),
    replace: bool = typer.Option(False, "--replace", help="Overwrite an existing name@version."),
):
    """Validate descriptor files and store them in the collection."""
    repo = get_repository()
    with reported_errors():
        # Load and check everything first so a bad file does not leave a partial import.
        descriptors = [load_descriptor(f) for f in files]
        repo.add_all(descriptors, replace=replace)
    for descriptor in descriptors:
        typer.echo(f"added {descriptor.full_name}")


def validate_package(
    file: Path = typer.Argument(..., help="Descriptor YAML file."),
    check_inputs: bool = typer.Option(
        False, "--check-inputs", help="Also look up direct inputs in the collection."
    ),
):
    """Check a descriptor file without storing it."""
    with reported_errors():
        descriptor = load_descriptor(file)
        # Rendering walks every phase edit and build step.
        render_build_script(descriptor)
        if check_inputs:
            get_repository().resolve_inputs(descriptor)
    typer.echo(f"{descriptor.full_name}: OK")


def list_packages(
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Keyword to match."),
    match: Optional[str] = typer.Option(
        None,
        "--match",
        help="Match type: Exact, CaseInsensitive, StartsWith, Substring or Wildcard.",
    ),
):
    """List packages in the collection."""
    with reported_errors():
        packages = get_repository().search(search, match)
    if not packages:
        typer.echo("No packages found")
        return
    for pkg in packages:
        versions = ", ".join(d.version for d in pkg.versions)
        typer.echo(f"{pkg.name}\t{versions}\t{pkg.latest.synopsis}")


def show_package(
    spec: str = typer.Argument(..., help="Package as name or name@version."),
    fmt: str = typer.Option("yaml", "--format", "-f", help="yaml, json or scheme."),
):
    """Print a stored descriptor."""
    if fmt not in SHOW_FORMATS:
        typer.echo(f"error: unknown format '{fmt}' (expected {', '.join(SHOW_FORMATS)})", err=True)
        raise typer.Exit(2)

    with reported_errors():
        descriptor = get_repository().find_spec(spec)

    if fmt == "json":
        typer.echo(json.dumps(descriptor.model_dump(mode="json"), indent=2))
    elif fmt == "scheme":
        typer.echo(render_definition(descriptor), nl=False)
    else:
        typer.echo(dump_descriptor(descriptor), nl=False)


def remove_package(
    spec: str = typer.Argument(..., help="name removes every version, name@version just one."),
):
    """Remove a package, or one version of it, from the collection."""
    with reported_errors():
        name, version = parse_package_spec(spec)
        get_repository().remove(name, version)
    typer.echo(f"removed {spec}")


def show_inputs(
    spec: str = typer.Argument(..., help="Package as name or name@version."),
):
    """Resolve a package's direct inputs against the collection."""
    repo = get_repository()
    with reported_errors():
        descriptor = repo.find_spec(spec)
        resolved = repo.resolve_inputs(descriptor)

    for kind, ref in descriptor.all_inputs():
        typer.echo(f"{kind}\t{ref.spec}\t{resolved[ref.spec].full_name}")

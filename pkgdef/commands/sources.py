"""
Source integrity commands: hash and verify.
"""

from pathlib import Path
from typing import List
import logging

import typer

from pkgdef.commands import reported_errors
from pkgdef.core.dependencies import get_db_manager, get_repository
from pkgdef.domain.entities import get_source_urls
from pkgdef.services.hashing import format_hash, hash_many, verify_source

logger = logging.getLogger(__name__)


def hash_command(
    paths: List[Path] = typer.Argument(..., help="Files or directories to hash."),
    recursive: bool = typer.Option(
        False, "--recursive", "-r", help="Hash a directory tree (as for git checkouts)."
    ),
    exclude_vcs: bool = typer.Option(
        False, "--exclude-vcs", "-x", help="Skip .git, .hg, .svn, .bzr and CVS directories."
    ),
    fmt: str = typer.Option("nix-base32", "--format", "-f", help="nix-base32 or hex."),
):
    """Print the SHA256 of local source files, in the form descriptors use."""
    with reported_errors():
        for path in paths:
            if not path.exists():
                typer.echo(f"error: {path}: no such file or directory", err=True)
                raise typer.Exit(1)
        results = list(hash_many(paths, recursive=recursive, exclude_vcs=exclude_vcs))
        for path, value in results:
            text = format_hash(value, fmt)
            if len(paths) == 1:
                typer.echo(text)
            else:
                typer.echo(f"{text}  {path}")


def verify_command(
    spec: str = typer.Argument(..., help="Package as name or name@version."),
    path: Path = typer.Argument(..., help="Local copy of the package source."),
):
    """Check a local copy of a package's source against its pinned hash."""
    with reported_errors():
        descriptor = get_repository().find_spec(spec)
        value = verify_source(descriptor, path)
    typer.echo(f"{descriptor.full_name}: source OK ({value})")


def urls_command(
    spec: str = typer.Argument(..., help="Package as name or name@version."),
):
    """Print the concrete download URLs of a package's source, mirrors expanded."""
    with reported_errors():
        descriptor = get_repository().find_spec(spec)
    mirrors = get_db_manager().get_collection_config().mirrors
    for url in get_source_urls(descriptor, mirrors):
        typer.echo(url)

"""
Command implementations for the pkgdef CLI.

Commands are plain functions registered on the Typer app in pkgdef.main.
"""

from contextlib import contextmanager
import logging

import typer

from pkgdef.domain.errors import PkgdefError

logger = logging.getLogger(__name__)


@contextmanager
def reported_errors():
    """
    Turn pkgdef errors into a message on stderr and exit code 1.
    """
    try:
        yield
    except PkgdefError as e:
        logger.debug("Command failed", exc_info=True)
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(1)

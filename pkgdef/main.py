import logging
from typing import Optional

import typer

from pkgdef import __version__
from pkgdef.commands import build, packages, sources
from pkgdef.core.dependencies import get_log_level

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)


app = typer.Typer(
    name="pkgdef",
    help="Write, store and inspect declarative package definitions.",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"pkgdef {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (default: $PKGDEF_LOG_LEVEL or WARNING).",
    ),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit."
    ),
) -> None:
    """
    Configure logging once per invocation.
    """
    level = (log_level or get_log_level()).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format=LOG_FORMAT,
        force=True,
    )
    logger.debug(f"Logging configured at {level}")


# Collection
app.command("add")(packages.add_package)
app.command("validate")(packages.validate_package)
app.command("list")(packages.list_packages)
app.command("show")(packages.show_package)
app.command("remove")(packages.remove_package)
app.command("inputs")(packages.show_inputs)

# Sources
app.command("hash")(sources.hash_command)
app.command("verify")(sources.verify_command)
app.command("urls")(sources.urls_command)

# Build recipes
app.command("phases")(build.phases_command)
app.command("script")(build.script_command)
app.command("actions")(build.actions_command)


if __name__ == "__main__":
    app()

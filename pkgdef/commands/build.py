"""
Build recipe commands: phases, script, actions.
"""

from pathlib import Path
from typing import Optional

import typer

from pkgdef.commands import reported_errors
from pkgdef.core.dependencies import get_repository
from pkgdef.domain.build_script import get_available_actions, render_build_script
from pkgdef.domain.entities import get_phases


def phases_command(
    spec: str = typer.Argument(..., help="Package as name or name@version."),
    steps: bool = typer.Option(False, "--steps", help="Also list each phase's steps."),
):
    """List the effective build phases of a package, in order."""
    with reported_errors():
        descriptor = get_repository().find_spec(spec)
        phases = get_phases(descriptor)

    for phase in phases:
        typer.echo(phase.name)
        if steps:
            for step in phase.steps:
                args = " ".join(f"{k}={v!r}" for k, v in step.arguments.items())
                typer.echo(f"    {step.action_type} {args}".rstrip())


def script_command(
    spec: str = typer.Argument(..., help="Package as name or name@version."),
    source: Optional[str] = typer.Option(
        None, "--source", help="Path of the source archive or checkout used by the script."
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the script to this file instead of stdout."
    ),
):
    """Render a package's build phases as a shell script. The script is not run."""
    with reported_errors():
        descriptor = get_repository().find_spec(spec)
        script = render_build_script(descriptor, source_path=source)

    if output is None:
        typer.echo(script, nl=False)
    else:
        output.write_text(script, encoding="utf-8")
        output.chmod(0o755)
        typer.echo(f"wrote {output}")


def actions_command():
    """List the build step actions usable in phase edits."""
    for action in get_available_actions():
        typer.echo(f"{action['id']}: {action['label']}")
        for arg in action["arguments"]:
            marker = "" if arg["required"] else " (optional)"
            typer.echo(f"    {arg['name']}{marker}: {arg['description']}")

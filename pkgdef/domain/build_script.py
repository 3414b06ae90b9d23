from __future__ import annotations

import re
import shlex
from typing import Dict, List, Any, Optional

from pkgdef.domain.errors import PhaseError
from pkgdef.domain.models import BuildStep, GitSource, PackageDescriptor
from pkgdef.domain.phases import effective_phases


def get_available_actions() -> List[Dict[str, Any]]:
    """
    Return the list of build step actions.

    Each action includes:
    - id: unique identifier for the action
    - label: display name for the action
    - arguments: list of argument definitions, each with:
      - name: argument identifier
      - description: help text explaining what the argument does
      - required: whether the argument is required
    """
    return [
        {
            "id": "invoke",
            "label": "Run a command",
            "arguments": [
                {
                    "name": "command",
                    "description": "Shell command line, run in the build directory",
                    "required": True,
                },
            ],
        },
        {
            "id": "unpack",
            "label": "Unpack the source",
            "arguments": [],
        },
        {
            "id": "substitute",
            "label": "Substitute text in a file",
            "arguments": [
                {"name": "file", "description": "File to edit, relative to the build directory", "required": True},
                {"name": "pattern", "description": "Basic regular expression to replace", "required": True},
                {"name": "replacement", "description": "Replacement text", "required": True},
            ],
        },
        {
            "id": "copy",
            "label": "Copy a file or directory",
            "arguments": [
                {"name": "source", "description": "Path to copy", "required": True},
                {"name": "target", "description": "Destination path", "required": True},
            ],
        },
        {
            "id": "install-file",
            "label": "Install a file into an output",
            "arguments": [
                {"name": "source", "description": "File in the build directory", "required": True},
                {"name": "target", "description": "Directory under the output, e.g. bin", "required": True},
                {"name": "output", "description": "Output name (default: out)", "required": False},
            ],
        },
        {
            "id": "mkdir",
            "label": "Create a directory",
            "arguments": [
                {"name": "path", "description": "Directory to create (with parents)", "required": True},
            ],
        },
        {
            "id": "delete",
            "label": "Delete a file or directory",
            "arguments": [
                {"name": "path", "description": "Path to delete", "required": True},
            ],
        },
        {
            "id": "setenv",
            "label": "Set an environment variable",
            "arguments": [
                {"name": "name", "description": "Variable name", "required": True},
                {"name": "value", "description": "Value; may reference $out", "required": True},
            ],
        },
        {
            "id": "chdir",
            "label": "Change directory",
            "arguments": [
                {"name": "path", "description": "Directory to enter", "required": True},
            ],
        },
    ]


_REQUIRED_ARGUMENTS: Dict[str, List[str]] = {
    action["id"]: [a["name"] for a in action["arguments"] if a["required"]]
    for action in get_available_actions()
}


def _output_var(output: str) -> str:
    # Shell variable holding an output's directory; "out" for the main one.
    return re.sub(r"[^A-Za-z0-9_]", "_", output)


def _quote_path(path: str) -> str:
    """
    Quote a path but keep a leading $var reference expandable.
    """
    m = re.match(r"^\$([A-Za-z_][A-Za-z0-9_]*)(/.*)?$", path)
    if m:
        rest = m.group(2) or ""
        return f'"${m.group(1)}"' + (shlex.quote(rest) if rest else "")
    return shlex.quote(path)


def render_step(step: BuildStep, descriptor: PackageDescriptor) -> List[str]:
    """
    Render one build step as shell lines.
    """
    if step.action_type not in _REQUIRED_ARGUMENTS:
        raise PhaseError(f"Unknown build step action '{step.action_type}'")

    args = {k: str(v).strip() for k, v in (step.arguments or {}).items()}
    missing = [name for name in _REQUIRED_ARGUMENTS[step.action_type] if not args.get(name)]
    if missing:
        raise PhaseError(f"Build step '{step.action_type}' is missing arguments: {', '.join(missing)}")

    action = step.action_type
    if action == "invoke":
        return [args["command"]]
    if action == "unpack":
        if isinstance(descriptor.source, GitSource):
            lines = [
                'cp -R "$SOURCE/." .',
                "chmod -R u+w .",
            ]
        else:
            lines = [
                'tar xf "$SOURCE" --strip-components=1',
            ]
        # Patches apply to the freshly unpacked tree, in order.
        for patch in descriptor.source.patches:
            lines.append(f'patch -p1 < "$PATCH_DIR"/{shlex.quote(patch)}')
        return lines
    if action == "substitute":
        pattern = args["pattern"].replace("|", r"\|")
        replacement = args["replacement"].replace("|", r"\|").replace("&", r"\&")
        return [f"sed -i {shlex.quote(f's|{pattern}|{replacement}|g')} {_quote_path(args['file'])}"]
    if action == "copy":
        return [f"cp -R {_quote_path(args['source'])} {_quote_path(args['target'])}"]
    if action == "install-file":
        output = args.get("output") or "out"
        if output not in descriptor.outputs:
            raise PhaseError(f"install-file refers to unknown output '{output}'")
        target_dir = f'"${_output_var(output)}"/{shlex.quote(args["target"].strip("/"))}'
        return [
            f"mkdir -p {target_dir}",
            f"cp -R {_quote_path(args['source'])} {target_dir}/",
        ]
    if action == "mkdir":
        return [f"mkdir -p {_quote_path(args['path'])}"]
    if action == "delete":
        return [f"rm -rf {_quote_path(args['path'])}"]
    if action == "setenv":
        if not re.match(r"^[A-Za-z_][A-Za-z0-9_]*$", args["name"]):
            raise PhaseError(f"Invalid environment variable name '{args['name']}'")
        value = args["value"].replace("\\", "\\\\").replace('"', '\\"')
        return [f'export {args["name"]}="{value}"']
    # chdir
    return [f"cd {_quote_path(args['path'])}"]


def _phase_function(name: str) -> str:
    return "phase_" + re.sub(r"[^A-Za-z0-9_]", "_", name)


def render_build_script(
    descriptor: PackageDescriptor,
    source_path: Optional[str] = None,
) -> str:
    """
    Render a POSIX shell script that runs the descriptor's effective phases.

    One function per phase, called in order under `set -e`. Phases without
    steps render as a no-op so the phase order stays visible. Output
    directories default to ./out (and ./out-<name> for extra outputs) and can
    be overridden from the environment. Source patches are read from
    $PATCH_DIR (default ./patches) right after unpacking.
    """
    phases = effective_phases(descriptor.build)
    source = source_path or descriptor.source_file_name()

    lines: List[str] = [
        "#!/bin/sh",
        f"# Build script for {descriptor.full_name}",
        "set -e",
        "",
        f'SOURCE="${{SOURCE:-{source}}}"',
    ]
    if descriptor.source.patches:
        lines.append('PATCH_DIR="${PATCH_DIR:-$PWD/patches}"')
    for output in descriptor.outputs:
        var = _output_var(output)
        default = "$PWD/out" if output == "out" else f"$PWD/out-{output}"
        lines.append(f'{var}="${{{var}:-{default}}}"')
        lines.append(f"export {var}")
    lines.append("")

    for phase in phases:
        lines.append(f"{_phase_function(phase.name)}() {{")
        if phase.steps:
            for step in phase.steps:
                for line in render_step(step, descriptor):
                    lines.append(f"    {line}")
        else:
            lines.append("    :")
        lines.append("}")
        lines.append("")

    for phase in phases:
        lines.append(f'echo "starting phase \'{phase.name}\'"')
        lines.append(_phase_function(phase.name))
    lines.append("")
    return "\n".join(lines)

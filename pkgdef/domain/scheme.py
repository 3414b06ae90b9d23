"""
Render a descriptor as a Scheme-like package definition.

The output mirrors how package definitions are written by hand:

    (define-public hello
      (package
        (name "hello")
        (version "2.10")
        (source (origin ...))
        ...))

It is a presentation format only; nothing reads it back.
"""
from __future__ import annotations

from typing import List

from pkgdef.domain.models import (
    BuildStep,
    GitSource,
    InputRef,
    PackageDescriptor,
    PhaseEdit,
)

INDENT = "  "


def scheme_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _step_expr(step: BuildStep) -> str:
    args = step.arguments or {}
    if step.action_type == "invoke":
        return f"(invoke {scheme_string(args.get('command', ''))})"
    if step.action_type == "substitute":
        return (
            f"(substitute* {scheme_string(args.get('file', ''))} "
            f"(({scheme_string(args.get('pattern', ''))}) {scheme_string(args.get('replacement', ''))}))"
        )
    if step.action_type == "install-file":
        output = args.get("output") or "out"
        return (
            f"(install-file {scheme_string(args.get('source', ''))} "
            f"(string-append (assoc-ref outputs {scheme_string(output)}) "
            f"{scheme_string('/' + args.get('target', '').strip('/'))}))"
        )
    if step.action_type == "copy":
        return f"(copy-recursively {scheme_string(args.get('source', ''))} {scheme_string(args.get('target', ''))})"
    if step.action_type == "mkdir":
        return f"(mkdir-p {scheme_string(args.get('path', ''))})"
    if step.action_type == "delete":
        return f"(delete-file-recursively {scheme_string(args.get('path', ''))})"
    if step.action_type == "setenv":
        return f"(setenv {scheme_string(args.get('name', ''))} {scheme_string(args.get('value', ''))})"
    if step.action_type == "chdir":
        return f"(chdir {scheme_string(args.get('path', ''))})"
    if step.action_type == "unpack":
        return "(unpack #:source source)"
    return f"({step.action_type})"


def _lambda_expr(steps) -> List[str]:
    lines = ["(lambda* (#:key inputs outputs #:allow-other-keys)"]
    for step in steps:
        lines.append(INDENT + _step_expr(step))
    if not steps:
        lines.append(INDENT + "#t")
    lines[-1] += ")"
    return lines


def _edit_lines(edit: PhaseEdit) -> List[str]:
    if edit.action == "delete":
        return [f"(delete '{edit.phase})"]
    if edit.action == "replace":
        head = f"(replace '{edit.phase}"
    else:
        head = f"({edit.action} '{edit.target} '{edit.phase}"
    body = _lambda_expr(edit.steps)
    lines = [head]
    lines.extend(INDENT + line for line in body)
    lines[-1] += ")"
    return lines


def _input_expr(ref: InputRef) -> str:
    if ref.output != "out":
        return f'`(,{ref.name} {scheme_string(ref.output)})'
    return ref.name


def _indent(lines: List[str], depth: int) -> List[str]:
    return [INDENT * depth + line for line in lines]


def _origin_lines(descriptor: PackageDescriptor) -> List[str]:
    source = descriptor.source
    lines = ["(origin"]
    if isinstance(source, GitSource):
        lines.append(INDENT + "(method git-fetch)")
        lines.append(INDENT + "(uri (git-reference")
        lines.append(INDENT * 3 + f"(url {scheme_string(source.url)})")
        commit_line = INDENT * 3 + f"(commit {scheme_string(source.commit)})"
        if source.recursive:
            lines.append(commit_line)
            lines.append(INDENT * 3 + "(recursive? #t)))")
        else:
            lines.append(commit_line + "))")
        lines.append(INDENT + "(file-name (git-file-name name version))")
    else:
        lines.append(INDENT + "(method url-fetch)")
        if len(source.uris) == 1:
            lines.append(INDENT + f"(uri {scheme_string(source.uris[0])})")
        else:
            uris = " ".join(scheme_string(u) for u in source.uris)
            lines.append(INDENT + f"(uri (list {uris}))")
        if source.file_name:
            lines.append(INDENT + f"(file-name {scheme_string(source.file_name)})")
    lines.append(INDENT + "(sha256")
    lines.append(INDENT * 2 + f"(base32 {scheme_string(source.sha256.base32)}))")
    if source.patches:
        patches = " ".join(scheme_string(p) for p in source.patches)
        lines.append(INDENT + f"(patches (search-patches {patches}))")
    lines[-1] += ")"
    return lines


def _arguments_lines(descriptor: PackageDescriptor) -> List[str]:
    build = descriptor.build
    clauses: List[List[str]] = []
    if build.configure_flags:
        flags = " ".join(scheme_string(f) for f in build.configure_flags)
        clauses.append([f"#:configure-flags (list {flags})"])
    if build.make_flags:
        flags = " ".join(scheme_string(f) for f in build.make_flags)
        clauses.append([f"#:make-flags (list {flags})"])
    if not build.tests:
        clauses.append(["#:tests? #f"])
    if build.install_plan:
        entries = " ".join(
            f"({scheme_string(e.source)} {scheme_string(e.target)})" for e in build.install_plan
        )
        clauses.append([f"#:install-plan '({entries})"])
    if build.phases:
        phase_lines = ["#:phases", INDENT + "(modify-phases %standard-phases"]
        for edit in build.phases:
            phase_lines.extend(_indent(_edit_lines(edit), 2))
        phase_lines[-1] += ")"
        clauses.append(phase_lines)
    if not clauses:
        return []

    lines = ["(arguments"]
    body: List[str] = []
    for clause in clauses:
        body.extend(clause)
    body[0] = "(list " + body[0]
    lines.extend(_indent(body, 1))
    lines[-1] += "))"
    return lines


def render_definition(descriptor: PackageDescriptor) -> str:
    """
    Render `descriptor` as a `(define-public ...)` form.
    """
    fields: List[List[str]] = [
        [f"(name {scheme_string(descriptor.name)})"],
        [f"(version {scheme_string(descriptor.version)})"],
        ["(source"] + _indent(_origin_lines(descriptor), 1),
        [f"(build-system {descriptor.build.build_system}-build-system)"],
    ]
    fields[2][-1] += ")"

    arguments = _arguments_lines(descriptor)
    if arguments:
        fields.append(arguments)

    for kind, keyword in (
        ("native_inputs", "native-inputs"),
        ("inputs", "inputs"),
        ("propagated_inputs", "propagated-inputs"),
    ):
        refs = getattr(descriptor, kind)
        if refs:
            fields.append([f"({keyword} (list {' '.join(_input_expr(r) for r in refs)}))"])

    if descriptor.outputs != ("out",):
        outputs = " ".join(scheme_string(o) for o in descriptor.outputs)
        fields.append([f"(outputs '({outputs}))"])

    fields.append([f"(synopsis {scheme_string(descriptor.synopsis)})"])
    fields.append([f"(description {scheme_string(descriptor.description)})"])
    fields.append([f"(home-page {scheme_string(descriptor.home_page)})"])
    if len(descriptor.license) == 1:
        fields.append([f"(license license:{descriptor.license[0]})"])
    else:
        licenses = " ".join(f"license:{lic}" for lic in descriptor.license)
        fields.append([f"(license (list {licenses}))"])

    lines = [f"(define-public {descriptor.name}", INDENT + "(package"]
    for field in fields:
        lines.extend(_indent(field, 2))
    lines[-1] += "))"
    return "\n".join(lines) + "\n"

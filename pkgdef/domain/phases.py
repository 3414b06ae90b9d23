"""
Standard build phases and phase editing.

Each build system contributes an ordered list of named phases with default
steps. A descriptor's BuildRecipe carries PhaseEdit clauses (the equivalent of a
modify-phases form) which are applied, in order, on top of those defaults.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Sequence

from pkgdef.domain.errors import PhaseError
from pkgdef.domain.models import BuildRecipe, BuildStep, Phase, PhaseEdit

logger = logging.getLogger(__name__)


def _invoke(command: str) -> BuildStep:
    return BuildStep(action_type="invoke", arguments={"command": command})


def _flags(flags: Iterable[str]) -> str:
    return " ".join(flags)


def _gnu_phases(recipe: BuildRecipe) -> List[Phase]:
    configure = './configure --prefix="$out"'
    if recipe.configure_flags:
        configure += " " + _flags(recipe.configure_flags)
    make = "make"
    if recipe.make_flags:
        make += " " + _flags(recipe.make_flags)

    return [
        Phase(name="set-paths"),
        Phase(name="unpack", steps=(BuildStep(action_type="unpack"),)),
        Phase(name="patch-source-shebangs"),
        Phase(name="configure", steps=(_invoke(configure),)),
        Phase(name="build", steps=(_invoke(make),)),
        Phase(name="check", steps=(_invoke(f"{make} check"),) if recipe.tests else ()),
        Phase(name="install", steps=(_invoke(f"{make} install"),)),
        Phase(name="patch-shebangs"),
        Phase(name="strip"),
        Phase(name="install-license-files"),
        Phase(name="compress-documentation"),
    ]


def _cmake_phases(recipe: BuildRecipe) -> List[Phase]:
    configure = 'cmake -S . -B build -DCMAKE_INSTALL_PREFIX="$out"'
    if recipe.configure_flags:
        configure += " " + _flags(recipe.configure_flags)
    build = "cmake --build build"
    if recipe.make_flags:
        build += " -- " + _flags(recipe.make_flags)

    return [
        Phase(name="set-paths"),
        Phase(name="unpack", steps=(BuildStep(action_type="unpack"),)),
        Phase(name="patch-source-shebangs"),
        Phase(name="configure", steps=(_invoke(configure),)),
        Phase(name="build", steps=(_invoke(build),)),
        Phase(name="check", steps=(_invoke("ctest --test-dir build"),) if recipe.tests else ()),
        Phase(name="install", steps=(_invoke("cmake --install build"),)),
        Phase(name="patch-shebangs"),
        Phase(name="strip"),
        Phase(name="install-license-files"),
    ]


def _copy_phases(recipe: BuildRecipe) -> List[Phase]:
    install_steps = tuple(
        BuildStep(
            action_type="install-file",
            arguments={"source": entry.source, "target": entry.target},
        )
        for entry in recipe.install_plan
    )
    return [
        Phase(name="set-paths"),
        Phase(name="unpack", steps=(BuildStep(action_type="unpack"),)),
        Phase(name="install", steps=install_steps),
        Phase(name="install-license-files"),
    ]


def _trivial_phases(recipe: BuildRecipe) -> List[Phase]:
    # Everything is up to the descriptor's own phase edits.
    return [Phase(name="build")]


BUILD_SYSTEMS: Dict[str, Callable[[BuildRecipe], List[Phase]]] = {
    "gnu": _gnu_phases,
    "cmake": _cmake_phases,
    "copy": _copy_phases,
    "trivial": _trivial_phases,
}


def standard_phases(recipe: BuildRecipe) -> List[Phase]:
    """
    Return the default, ordered phases of the recipe's build system.
    """
    try:
        factory = BUILD_SYSTEMS[recipe.build_system]
    except KeyError:
        raise PhaseError(f"Unknown build system '{recipe.build_system}'") from None
    return factory(recipe)


def _position(phases: Sequence[Phase], name: str) -> int:
    for i, phase in enumerate(phases):
        if phase.name == name:
            return i
    return -1


def modify_phases(phases: Sequence[Phase], edits: Iterable[PhaseEdit]) -> List[Phase]:
    """
    Apply phase edits in order and return the resulting phase list.

    `phases` is not modified. Every edit must refer to phases that exist at the
    point it is applied; inserting a phase under a name that is already in use
    is an error.
    """
    result = list(phases)
    for edit in edits:
        if edit.action == "delete":
            pos = _position(result, edit.phase)
            if pos < 0:
                raise PhaseError(f"Cannot delete phase '{edit.phase}': no such phase")
            logger.debug(f"Deleting phase {edit.phase}")
            del result[pos]
        elif edit.action == "replace":
            pos = _position(result, edit.phase)
            if pos < 0:
                raise PhaseError(f"Cannot replace phase '{edit.phase}': no such phase")
            logger.debug(f"Replacing phase {edit.phase}")
            result[pos] = Phase(name=edit.phase, steps=edit.steps)
        else:
            if _position(result, edit.phase) >= 0:
                raise PhaseError(f"Cannot add phase '{edit.phase}': a phase with that name already exists")
            pos = _position(result, edit.target)
            if pos < 0:
                raise PhaseError(
                    f"Cannot add phase '{edit.phase}' {edit.action[len('add-'):]} '{edit.target}': no such phase"
                )
            if edit.action == "add-after":
                pos += 1
            logger.debug(f"Adding phase {edit.phase} {edit.action} {edit.target}")
            result.insert(pos, Phase(name=edit.phase, steps=edit.steps))
    return result


def effective_phases(recipe: BuildRecipe) -> List[Phase]:
    """
    Standard phases of the recipe's build system with its phase edits applied.
    """
    return modify_phases(standard_phases(recipe), recipe.phases)

import pytest

from pkgdef.domain.errors import PhaseError
from pkgdef.domain.models import BuildRecipe, Phase, PhaseEdit
from pkgdef.domain.phases import effective_phases, modify_phases, standard_phases


def names(phases):
    return [p.name for p in phases]


def test_gnu_standard_phases():
    phases = standard_phases(BuildRecipe(configure_flags=("--disable-nls",), make_flags=("V=1",)))
    assert names(phases)[:8] == [
        "set-paths",
        "unpack",
        "patch-source-shebangs",
        "configure",
        "build",
        "check",
        "install",
        "patch-shebangs",
    ]
    by_name = {p.name: p for p in phases}
    assert by_name["configure"].steps[0].arguments["command"] == './configure --prefix="$out" --disable-nls'
    assert by_name["build"].steps[0].arguments["command"] == "make V=1"
    assert by_name["check"].steps[0].arguments["command"] == "make V=1 check"


def test_tests_disabled_keeps_empty_check_phase():
    phases = standard_phases(BuildRecipe(tests=False))
    check = [p for p in phases if p.name == "check"][0]
    assert check.steps == ()


def test_copy_build_system_installs_plan():
    recipe = BuildRecipe(
        build_system="copy",
        install_plan=[{"source": "bin/tool", "target": "bin"}],
    )
    install = [p for p in standard_phases(recipe) if p.name == "install"][0]
    assert install.steps[0].action_type == "install-file"
    assert install.steps[0].arguments == {"source": "bin/tool", "target": "bin"}


def test_trivial_build_system_has_single_phase():
    assert names(standard_phases(BuildRecipe(build_system="trivial"))) == ["build"]


def test_modify_phases_applies_edits_in_order():
    base = [Phase(name="unpack"), Phase(name="configure"), Phase(name="build"), Phase(name="install")]
    edits = [
        PhaseEdit(action="add-after", target="unpack", phase="bootstrap", steps=["./bootstrap"]),
        # refers to the phase added just above
        PhaseEdit(action="add-before", target="bootstrap", phase="patch", steps=["patch -p1 < fix.patch"]),
        PhaseEdit(action="replace", phase="install", steps=["make install-strip"]),
        PhaseEdit(action="delete", phase="configure"),
    ]
    result = modify_phases(base, edits)
    assert names(result) == ["unpack", "patch", "bootstrap", "build", "install"]
    assert result[-1].steps[0].arguments["command"] == "make install-strip"
    # input untouched
    assert names(base) == ["unpack", "configure", "build", "install"]
    assert base[-1].steps == ()


@pytest.mark.parametrize(
    "edit,message",
    [
        (PhaseEdit(action="replace", phase="missing"), "Cannot replace"),
        (PhaseEdit(action="delete", phase="missing"), "Cannot delete"),
        (PhaseEdit(action="add-after", target="missing", phase="x"), "no such phase"),
        (PhaseEdit(action="add-before", target="build", phase="install"), "already exists"),
    ],
)
def test_modify_phases_errors(edit, message):
    base = [Phase(name="build"), Phase(name="install")]
    with pytest.raises(PhaseError, match=message):
        modify_phases(base, [edit])


def test_effective_phases_for_recipe():
    recipe = BuildRecipe(
        phases=[
            {"action": "delete", "phase": "check"},
            {"action": "add-after", "target": "install", "phase": "wrap", "steps": ["true"]},
        ]
    )
    result = names(effective_phases(recipe))
    assert "check" not in result
    assert result[result.index("install") + 1] == "wrap"

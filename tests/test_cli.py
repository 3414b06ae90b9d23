import json

import pytest
from typer.testing import CliRunner

from pkgdef import __version__
from pkgdef.main import app

runner = CliRunner()

EMPTY_SHA256 = "0mdqa9w1p6cmli6976v4wi0sw9r4p5prkj7lzfd1877wk11c9c73"


@pytest.fixture
def loaded(data_dir, samples_dir):
    result = runner.invoke(app, ["add", str(samples_dir / "hello.yaml"), str(samples_dir / "my-hello.yaml")])
    assert result.exit_code == 0, result.output
    return data_dir


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"pkgdef {__version__}" in result.output


def test_add_and_list(loaded):
    assert (loaded / "packages" / "hello" / "2.10" / "package.json").is_file()

    result = runner.invoke(app, ["list"])
    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert lines[0].startswith("hello\t2.10\t")
    assert lines[1].startswith("my-hello\t2.10-1\t")

    result = runner.invoke(app, ["list", "--search", "my-*", "--match", "Wildcard"])
    assert result.output.splitlines() == [lines[1]]

    result = runner.invoke(app, ["list", "-s", "nothing-like-this"])
    assert result.output.strip() == "No packages found"


def test_add_duplicate_fails(loaded, samples_dir):
    result = runner.invoke(app, ["add", str(samples_dir / "hello.yaml")])
    assert result.exit_code == 1
    assert "error:" in result.output

    result = runner.invoke(app, ["add", "--replace", str(samples_dir / "hello.yaml")])
    assert result.exit_code == 0
    assert "added hello@2.10" in result.output


def test_add_is_all_or_nothing(data_dir, samples_dir, tmp_path):
    copy = tmp_path / "hello-again.yaml"
    copy.write_text((samples_dir / "hello.yaml").read_text())

    result = runner.invoke(
        app, ["add", str(samples_dir / "my-hello.yaml"), str(samples_dir / "hello.yaml"), str(copy)]
    )
    assert result.exit_code == 1
    assert "hello@2.10 is given more than once" in result.output
    assert "added" not in result.output

    result = runner.invoke(app, ["list"])
    assert result.output.strip() == "No packages found"


def test_list_with_unknown_match_type(loaded):
    result = runner.invoke(app, ["list", "-s", "hello", "--match", "Fuzzy"])
    assert result.exit_code == 1
    assert "Unknown match type" in result.output


def test_validate(data_dir, samples_dir, tmp_path):
    result = runner.invoke(app, ["validate", str(samples_dir / "my-hello.yaml")])
    assert result.exit_code == 0
    assert "my-hello@2.10-1: OK" in result.output

    # native inputs are not in the empty collection
    result = runner.invoke(app, ["validate", "--check-inputs", str(samples_dir / "my-hello.yaml")])
    assert result.exit_code == 1
    assert "autoconf" in result.output

    bad = tmp_path / "bad.yaml"
    bad.write_text("name: [oops\n")
    result = runner.invoke(app, ["validate", str(bad)])
    assert result.exit_code == 1
    assert "YAML syntax error" in result.output


def test_show_formats(loaded):
    result = runner.invoke(app, ["show", "hello"])
    assert result.exit_code == 0
    assert result.output.startswith("name: hello\n")

    result = runner.invoke(app, ["show", "hello@2.10", "--format", "json"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["source"]["method"] == "url-fetch"

    result = runner.invoke(app, ["show", "my-hello", "-f", "scheme"])
    assert result.exit_code == 0
    assert result.output.startswith("(define-public my-hello")

    result = runner.invoke(app, ["show", "hello", "-f", "xml"])
    assert result.exit_code == 2

    result = runner.invoke(app, ["show", "hello@9.9"])
    assert result.exit_code == 1
    assert "known versions: 2.10" in result.output


def test_remove(loaded):
    result = runner.invoke(app, ["remove", "my-hello@2.10-1"])
    assert result.exit_code == 0
    assert "removed my-hello@2.10-1" in result.output
    assert not (loaded / "packages" / "my-hello").exists()

    result = runner.invoke(app, ["remove", "my-hello"])
    assert result.exit_code == 1


def test_inputs(loaded, samples_dir, tmp_path):
    result = runner.invoke(app, ["inputs", "my-hello"])
    assert result.exit_code == 1
    assert "autoconf" in result.output

    descriptor = tmp_path / "hello-user.yaml"
    descriptor.write_text(
        (samples_dir / "hello.yaml").read_text().replace("name: hello", "name: hello-user")
        + "inputs:\n  - hello@2.10\n"
    )
    runner.invoke(app, ["add", str(descriptor)])
    result = runner.invoke(app, ["inputs", "hello-user"])
    assert result.exit_code == 0, result.output
    assert result.output.strip() == "inputs\thello@2.10\thello@2.10"


def test_hash_command(data_dir, tmp_path):
    empty = tmp_path / "empty"
    empty.write_bytes(b"")
    result = runner.invoke(app, ["hash", str(empty)])
    assert result.exit_code == 0
    assert result.output.strip() == EMPTY_SHA256

    result = runner.invoke(app, ["hash", "-f", "hex", str(empty)])
    assert result.output.strip() == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

    other = tmp_path / "other"
    other.write_text("x")
    result = runner.invoke(app, ["hash", str(empty), str(other)])
    lines = result.output.splitlines()
    assert lines[0] == f"{EMPTY_SHA256}  {empty}"
    assert lines[1].endswith(f"  {other}")

    result = runner.invoke(app, ["hash", str(tmp_path / "missing")])
    assert result.exit_code == 1

    result = runner.invoke(app, ["hash", str(tmp_path)])
    assert result.exit_code == 1
    assert "not a regular file" in result.output


def test_verify(data_dir, samples_dir, tmp_path):
    tarball = tmp_path / "empty-1.0.tar.gz"
    tarball.write_bytes(b"")
    descriptor = tmp_path / "empty.yaml"
    descriptor.write_text(
        "name: empty\n"
        "version: '1.0'\n"
        "source:\n"
        "  method: url-fetch\n"
        "  uri: https://example.org/empty-{version}.tar.gz\n"
        f"  sha256: {EMPTY_SHA256}\n"
        "synopsis: Nothing\n"
        "description: Nothing at all.\n"
        "home_page: https://example.org\n"
        "license: expat\n"
    )
    assert runner.invoke(app, ["add", str(descriptor)]).exit_code == 0

    result = runner.invoke(app, ["verify", "empty", str(tarball)])
    assert result.exit_code == 0
    assert result.output.strip() == f"empty@1.0: source OK ({EMPTY_SHA256})"

    tarball.write_text("tampered")
    result = runner.invoke(app, ["verify", "empty", str(tarball)])
    assert result.exit_code == 1
    assert "error:" in result.output


def test_urls(loaded):
    result = runner.invoke(app, ["urls", "hello"])
    assert result.exit_code == 0
    assert result.output.splitlines() == [
        "https://ftpmirror.gnu.org/gnu/hello/hello-2.10.tar.gz",
        "https://ftp.gnu.org/gnu/hello/hello-2.10.tar.gz",
    ]

    result = runner.invoke(app, ["urls", "my-hello"])
    assert result.output.strip() == "https://git.savannah.gnu.org/git/hello.git"


def test_phases(loaded):
    result = runner.invoke(app, ["phases", "my-hello"])
    assert result.exit_code == 0
    names = result.output.splitlines()
    assert names[:4] == ["set-paths", "unpack", "skip-doc", "bootstrap"]
    assert "strip" not in names

    result = runner.invoke(app, ["phases", "hello", "--steps"])
    assert "    invoke command='make install'" in result.output.splitlines()


def test_script(loaded, tmp_path):
    result = runner.invoke(app, ["script", "hello"])
    assert result.exit_code == 0
    assert result.output.startswith("#!/bin/sh\n")

    target = tmp_path / "build.sh"
    result = runner.invoke(app, ["script", "my-hello", "--source", "/src/hello", "-o", str(target)])
    assert result.exit_code == 0
    assert f"wrote {target}" in result.output
    assert 'SOURCE="${SOURCE:-/src/hello}"' in target.read_text()
    assert target.stat().st_mode & 0o111


def test_actions(data_dir):
    result = runner.invoke(app, ["actions"])
    assert result.exit_code == 0
    assert "invoke: Run a command" in result.output
    assert "    output (optional): Output name (default: out)" in result.output

"""Pytest configuration and fixtures."""

from pathlib import Path
from typing import Any, Dict

import pytest

from pkgdef.core import dependencies
from pkgdef.domain.entities import Repository
from pkgdef.domain.models import PackageDescriptor
from pkgdef.storage.json_db_manager import JsonDatabaseManager

SAMPLES_DIR = Path(__file__).resolve().parents[1] / "samples"

HELLO_SHA256 = "0ssi1wpaf7plaswqqjwigppsg5fyh99vdlb9kzl7c9lng89ndq1i"


def make_mapping(**overrides: Any) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "name": "hello",
        "version": "2.10",
        "source": {
            "method": "url-fetch",
            "uri": "mirror://gnu/hello/hello-2.10.tar.gz",
            "sha256": HELLO_SHA256,
        },
        "synopsis": "Hello, GNU world: An example GNU package",
        "description": "GNU Hello prints the message \"Hello, world!\" and then exits.",
        "home_page": "https://www.gnu.org/software/hello/",
        "license": "gpl3+",
    }
    data.update(overrides)
    return data


@pytest.fixture
def samples_dir() -> Path:
    return SAMPLES_DIR


@pytest.fixture
def hello() -> PackageDescriptor:
    return PackageDescriptor.model_validate(make_mapping())


@pytest.fixture
def db(tmp_path) -> JsonDatabaseManager:
    manager = JsonDatabaseManager(tmp_path / "data")
    manager.initialize()
    return manager


@pytest.fixture
def repo(db) -> Repository:
    return Repository(db)


@pytest.fixture
def data_dir(tmp_path, monkeypatch) -> Path:
    """Point the CLI singletons at a fresh collection."""
    path = tmp_path / "cli-data"
    monkeypatch.setenv(dependencies.DATA_ROOT_ENV_VAR, str(path))
    dependencies.reset()
    yield path
    dependencies.reset()

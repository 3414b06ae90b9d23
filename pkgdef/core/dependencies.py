from pathlib import Path
from typing import Optional
import os

from pkgdef.storage.db_manager import DatabaseManager
from pkgdef.storage.json_db_manager import JsonDatabaseManager
from pkgdef.domain.entities import Repository

DATA_ROOT_ENV_VAR = "PKGDEF_DATA_DIR"
LOG_LEVEL_ENV_VAR = "PKGDEF_LOG_LEVEL"

_db_manager: Optional[DatabaseManager] = None
_repository: Optional[Repository] = None


def get_data_dir() -> Path:
    """
    Determine the data directory path.

    Priority:
    1. Environment variable PKGDEF_DATA_DIR
    2. './data' relative to the current working directory
    """
    env_path = os.environ.get(DATA_ROOT_ENV_VAR)
    if env_path:
        d = Path(env_path).expanduser()
    else:
        d = Path.cwd() / "data"
    d.mkdir(parents=True, exist_ok=True)
    return d


def get_log_level(default: str = "WARNING") -> str:
    return os.environ.get(LOG_LEVEL_ENV_VAR, default).upper()


def get_db_manager() -> DatabaseManager:
    global _db_manager
    if _db_manager is None:
        _db_manager = JsonDatabaseManager(get_data_dir())
        _db_manager.initialize()
    return _db_manager


def get_repository() -> Repository:
    global _repository
    if _repository is None:
        _repository = Repository(get_db_manager())
    return _repository


def reset() -> None:
    """Forget cached singletons, e.g. after PKGDEF_DATA_DIR changed."""
    global _db_manager, _repository
    _db_manager = None
    _repository = None

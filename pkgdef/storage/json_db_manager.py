import json
import shutil
from pathlib import Path
from typing import Optional, List
from datetime import datetime
import logging

from pydantic import ValidationError

from pkgdef.domain.errors import PackageNotFoundError, PkgdefError
from pkgdef.domain.models import (
    CollectionConfig,
    CollectionIndex,
    PackageDescriptor,
    PackageIndex,
)
from pkgdef.storage.db_manager import DatabaseManager

logger = logging.getLogger(__name__)

CONFIG_FILE = "collection.json"
PACKAGES_DIR = "packages"
DESCRIPTOR_FILE = "package.json"


class JsonDatabaseManager(DatabaseManager):
    """
    Stores one JSON file per descriptor:

        <data_dir>/collection.json
        <data_dir>/packages/<name>/<version>/package.json
    """

    def __init__(self, data_dir: Path):
        self._data_dir = data_dir
        self._collection_index = CollectionIndex()
        self._collection_config: Optional[CollectionConfig] = None

        # Ensure data directory exists
        if not self._data_dir.exists():
            self._data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def initialize(self) -> None:
        self._load_collection_config()
        self._build_index_from_disk()

    def get_collection_config(self) -> CollectionConfig:
        if self._collection_config is None:
            return self._load_collection_config()
        return self._collection_config

    def save_collection_config(self, config: CollectionConfig) -> None:
        self._collection_config = config
        config_path = self._data_dir / CONFIG_FILE
        config_path.write_text(config.model_dump_json(indent=2), encoding="utf-8")

    def get_collection_index(self) -> CollectionIndex:
        return self._collection_index

    def get_package(self, name: str) -> Optional[PackageIndex]:
        return self._collection_index.packages.get(name)

    def get_all_packages(self) -> List[PackageIndex]:
        return [self._collection_index.packages[n] for n in sorted(self._collection_index.packages)]

    def _version_dir(self, pkg_dir: Path, version: str) -> Path:
        """
        Folder of one version, refusing anything that escapes `pkg_dir`.
        """
        version_dir = pkg_dir / version
        if version_dir.resolve().parent != pkg_dir.resolve():
            raise PkgdefError(f"Refusing to use version folder {version_dir}: outside {pkg_dir}")
        return version_dir

    def save_descriptor(self, descriptor: PackageDescriptor) -> None:
        pkg_index = self.get_package(descriptor.name)
        if pkg_index is None:
            pkg_dir = self._data_dir / PACKAGES_DIR / descriptor.name
        else:
            pkg_dir = self._data_dir / pkg_index.storage_path
        version_dir = self._version_dir(pkg_dir, descriptor.version)

        if pkg_index is None:
            pkg_index = PackageIndex(
                name=descriptor.name,
                storage_path=str(pkg_dir.relative_to(self._data_dir)),
            )
            self._collection_index.packages[descriptor.name] = pkg_index

        version_dir.mkdir(parents=True, exist_ok=True)

        descriptor_path = version_dir / DESCRIPTOR_FILE
        descriptor_path.write_text(descriptor.model_dump_json(indent=2), encoding="utf-8")
        logger.info(f"Stored {descriptor.full_name} at {descriptor_path}")

        # Update in-memory index
        pkg_index.versions[descriptor.version] = descriptor

    def delete_descriptor(self, name: str, version: str) -> None:
        pkg_index = self.get_package(name)
        if not pkg_index or version not in pkg_index.versions:
            raise PackageNotFoundError(f"Package {name}@{version} not found")

        version_dir = self._version_dir(self._data_dir / pkg_index.storage_path, version)
        if version_dir.exists():
            shutil.rmtree(version_dir)
        del pkg_index.versions[version]

        # Drop the package folder once its last version is gone.
        if not pkg_index.versions:
            self.delete_package(name)

    def delete_package(self, name: str) -> None:
        pkg_index = self.get_package(name)
        if not pkg_index:
            raise PackageNotFoundError(f"Package {name} not found")

        if pkg_index.storage_path:
            pkg_dir = self._data_dir / pkg_index.storage_path
            if pkg_dir.exists():
                shutil.rmtree(pkg_dir)

        del self._collection_index.packages[name]
        logger.info(f"Deleted package {name}")

    def _load_collection_config(self) -> CollectionConfig:
        """
        Load collection.json, merging with defaults for any missing fields,
        and write it back so any new fields are persisted.
        """
        path = self._data_dir / CONFIG_FILE
        if path.exists():
            try:
                raw = json.loads(path.read_text(encoding="utf-8"))
                config = CollectionConfig(**raw)
            except (OSError, UnicodeDecodeError, json.JSONDecodeError, TypeError, ValidationError) as e:
                # If parsing fails, fall back to defaults and overwrite file.
                logger.warning(f"Ignoring unreadable {path}: {e}")
                config = CollectionConfig()
        else:
            config = CollectionConfig()

        # Build systems are fixed by the code, not by collection.json.
        config.build_system_options = CollectionConfig.model_fields[
            "build_system_options"
        ].default_factory()

        path.write_text(config.model_dump_json(indent=2), encoding="utf-8")
        self._collection_config = config
        return config

    def _build_index_from_disk(self) -> None:
        index = CollectionIndex()

        packages_dir = self._data_dir / PACKAGES_DIR
        if packages_dir.exists():
            for pkg_dir in sorted(packages_dir.iterdir()):
                if not pkg_dir.is_dir():
                    continue

                package_index = PackageIndex(
                    name=pkg_dir.name,
                    storage_path=str(pkg_dir.relative_to(self._data_dir)),
                )

                for version_dir in sorted(pkg_dir.iterdir()):
                    descriptor_path = version_dir / DESCRIPTOR_FILE
                    if not descriptor_path.is_file():
                        continue

                    try:
                        raw = json.loads(descriptor_path.read_text(encoding="utf-8"))
                        descriptor = PackageDescriptor.model_validate(raw)
                    except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
                        logger.warning(f"Skipping unreadable descriptor {descriptor_path}: {e}")
                        continue

                    # The JSON fields are authoritative; the folder names are only a layout.
                    if descriptor.name != pkg_dir.name or descriptor.version != version_dir.name:
                        logger.warning(
                            f"Skipping {descriptor_path}: contains {descriptor.full_name}, "
                            f"expected {pkg_dir.name}@{version_dir.name}"
                        )
                        continue

                    package_index.versions[descriptor.version] = descriptor

                if package_index.versions:
                    index.packages[package_index.name] = package_index

        index.last_built_at = datetime.utcnow()
        self._collection_index = index
        logger.debug(f"Indexed {len(index.packages)} packages from {packages_dir}")

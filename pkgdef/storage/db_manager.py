from abc import ABC, abstractmethod
from typing import List, Optional

from pkgdef.domain.models import (
    CollectionConfig,
    CollectionIndex,
    PackageDescriptor,
    PackageIndex,
)


class DatabaseManager(ABC):
    """
    Abstract base class for package collection storage.
    """

    @abstractmethod
    def initialize(self) -> None:
        """Initialize the storage subsystem (e.g. load from disk)."""
        pass

    @abstractmethod
    def get_collection_config(self) -> CollectionConfig:
        """Retrieve collection configuration."""
        pass

    @abstractmethod
    def save_collection_config(self, config: CollectionConfig) -> None:
        """Save collection configuration."""
        pass

    @abstractmethod
    def get_collection_index(self) -> CollectionIndex:
        """Get the full collection index."""
        pass

    @abstractmethod
    def get_package(self, name: str) -> Optional[PackageIndex]:
        """Get a package and all its stored versions by name."""
        pass

    @abstractmethod
    def get_all_packages(self) -> List[PackageIndex]:
        pass

    @abstractmethod
    def save_descriptor(self, descriptor: PackageDescriptor) -> None:
        """Store a descriptor, overwriting any existing one with the same name and version."""
        pass

    @abstractmethod
    def delete_descriptor(self, name: str, version: str) -> None:
        """Delete one version of a package."""
        pass

    @abstractmethod
    def delete_package(self, name: str) -> None:
        """Delete a package and all its versions."""
        pass

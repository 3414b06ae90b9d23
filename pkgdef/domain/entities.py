from typing import List, Optional, Dict, Any, Sequence, Tuple
import logging

from pkgdef.storage.db_manager import DatabaseManager
from pkgdef.domain.errors import (
    DuplicatePackageError,
    MissingInputError,
    PackageNotFoundError,
)
from pkgdef.domain.models import (
    InputRef,
    PackageDescriptor,
    PackageIndex,
    Phase,
    UrlSource,
)
from pkgdef.domain.phases import effective_phases
from pkgdef.domain.pkgdef_utils import match_text, strip_nulls, version_key

logger = logging.getLogger(__name__)


def parse_package_spec(spec: str) -> Tuple[str, Optional[str]]:
    """
    Split "name@version" into its parts; the version is optional.
    """
    name, sep, version = spec.strip().partition("@")
    if not name or (sep and not version):
        raise PackageNotFoundError(f"Invalid package specification '{spec}'")
    return name, version or None


class Package:
    """
    All stored versions of one package name.
    """

    def __init__(self, index: PackageIndex, db: DatabaseManager):
        self.index = index
        self.db = db

    @property
    def name(self) -> str:
        return self.index.name

    @property
    def versions(self) -> List[PackageDescriptor]:
        """Descriptors ordered newest first."""
        return sorted(
            self.index.versions.values(),
            key=lambda d: version_key(d.version),
            reverse=True,
        )

    @property
    def latest(self) -> PackageDescriptor:
        return self.versions[0]

    def get_version(self, version: str) -> Optional[PackageDescriptor]:
        return self.index.versions.get(version)

    def get_summary(self) -> Dict[str, Any]:
        latest = self.latest
        return strip_nulls({
            "Name": self.name,
            "Versions": [d.version for d in self.versions],
            "Synopsis": latest.synopsis,
            "HomePage": latest.home_page,
            "License": list(latest.license),
        })


def get_source_urls(descriptor: PackageDescriptor, mirrors: Optional[Dict[str, List[str]]] = None) -> List[str]:
    if isinstance(descriptor.source, UrlSource):
        return descriptor.source.expand_uris(mirrors)
    return [descriptor.source.url]


def get_phases(descriptor: PackageDescriptor) -> List[Phase]:
    return effective_phases(descriptor.build)


class Repository:
    def __init__(self, db: DatabaseManager):
        self.db = db

    def get_package(self, name: str) -> Optional[Package]:
        idx = self.db.get_package(name)
        if idx and idx.versions:
            return Package(idx, self.db)
        return None

    def get_all_packages(self) -> List[Package]:
        return [Package(idx, self.db) for idx in self.db.get_all_packages() if idx.versions]

    def find(self, name: str, version: Optional[str] = None) -> PackageDescriptor:
        """
        Return a specific version of a package, or its newest version.
        """
        pkg = self.get_package(name)
        if pkg is None:
            raise PackageNotFoundError(f"Package {name} not found")
        if version is None:
            return pkg.latest
        descriptor = pkg.get_version(version)
        if descriptor is None:
            known = ", ".join(d.version for d in pkg.versions)
            raise PackageNotFoundError(f"Package {name}@{version} not found (known versions: {known})")
        return descriptor

    def find_spec(self, spec: str) -> PackageDescriptor:
        name, version = parse_package_spec(spec)
        return self.find(name, version)

    def add(self, descriptor: PackageDescriptor, replace: bool = False) -> None:
        self.add_all([descriptor], replace=replace)

    def add_all(self, descriptors: Sequence[PackageDescriptor], replace: bool = False) -> None:
        """
        Add several descriptors, or none of them.

        Duplicates within the batch are always refused; duplicates of stored
        versions unless `replace` is set.
        """
        seen = set()
        for descriptor in descriptors:
            if descriptor.full_name in seen:
                raise DuplicatePackageError(f"{descriptor.full_name} is given more than once")
            seen.add(descriptor.full_name)
            pkg = self.get_package(descriptor.name)
            if pkg is not None and pkg.get_version(descriptor.version) is not None and not replace:
                raise DuplicatePackageError(f"{descriptor.full_name} is already in the collection")

        for descriptor in descriptors:
            self.db.save_descriptor(descriptor)

    def remove(self, name: str, version: Optional[str] = None) -> None:
        if version is None:
            self.db.delete_package(name)
        else:
            self.db.delete_descriptor(name, version)

    def search(self, keyword: Optional[str] = None, match_type: Optional[str] = None) -> List[Package]:
        """
        Packages whose newest version matches `keyword` in its name, synopsis
        or description. No keyword lists everything.
        """
        packages = self.get_all_packages()
        if not keyword:
            return packages

        results: List[Package] = []
        for pkg in packages:
            latest = pkg.latest
            # Exact/CaseInsensitive/StartsWith only make sense against the name.
            if match_type in ("Exact", "CaseInsensitive", "StartsWith", "Wildcard"):
                candidates = [latest.name]
            else:
                candidates = [latest.name, latest.synopsis, latest.description]
            if any(match_text(value, keyword, match_type) for value in candidates):
                results.append(pkg)
        return results

    def _resolve_ref(self, ref: InputRef) -> Optional[PackageDescriptor]:
        pkg = self.get_package(ref.name)
        if pkg is None:
            return None
        if ref.version is None:
            descriptor = pkg.latest
        else:
            descriptor = pkg.get_version(ref.version)
            if descriptor is None:
                return None
        if ref.output not in descriptor.outputs:
            return None
        return descriptor

    def resolve_inputs(self, descriptor: PackageDescriptor) -> Dict[str, PackageDescriptor]:
        """
        Map every direct input of `descriptor` to a stored descriptor.

        Only direct inputs are looked up; inputs of inputs are not followed.
        Raises MissingInputError naming every input that could not be found.
        """
        resolved: Dict[str, PackageDescriptor] = {}
        missing: List[str] = []
        for _kind, ref in descriptor.all_inputs():
            found = self._resolve_ref(ref)
            if found is None:
                missing.append(ref.spec)
            else:
                resolved[ref.spec] = found

        if missing:
            logger.warning(f"{descriptor.full_name} has unresolved inputs: {', '.join(missing)}")
            raise MissingInputError(descriptor.full_name, missing)
        return resolved

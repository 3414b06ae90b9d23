"""
Content hashing for package sources.

Two modes, matching how sources are pinned:

* flat: SHA256 of a single file's bytes (url-fetch sources).
* recursive: SHA256 of the Nix archive serialization of a file tree
  (git-fetch checkouts). Only file contents, the executable bit, symlink
  targets and entry names contribute, so timestamps and ownership do not.
"""
from __future__ import annotations

import hashlib
import logging
import os
import stat
import struct
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from pkgdef.domain.errors import HashMismatchError, PkgdefError
from pkgdef.domain.models import ContentHash, GitSource, PackageDescriptor

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

VCS_DIRECTORIES = frozenset({".git", ".hg", ".svn", ".bzr", "CVS"})

NAR_MAGIC = "nix-archive-1"


def hash_file(path: Path) -> ContentHash:
    """
    Flat SHA256 of a file, streamed in chunks.
    """
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            h.update(chunk)
    return ContentHash.from_digest(h.digest())


class _NarWriter:
    """Streams the Nix archive serialization of a path into a hash object."""

    def __init__(self, update: Callable[[bytes], None], select: Callable[[Path], bool]):
        self._update = update
        self._select = select

    def _bytes(self, data: bytes) -> None:
        self._update(struct.pack("<Q", len(data)))
        self._update(data)
        padding = (8 - len(data) % 8) % 8
        if padding:
            self._update(b"\0" * padding)

    def _str(self, text: str) -> None:
        self._bytes(text.encode("utf-8"))

    def _contents(self, path: Path, size: int) -> None:
        self._update(struct.pack("<Q", size))
        with path.open("rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                self._update(chunk)
        padding = (8 - size % 8) % 8
        if padding:
            self._update(b"\0" * padding)

    def archive(self, path: Path) -> None:
        self._str(NAR_MAGIC)
        self._node(path)

    def _node(self, path: Path) -> None:
        st = path.lstat()
        self._str("(")
        self._str("type")
        if stat.S_ISLNK(st.st_mode):
            self._str("symlink")
            self._str("target")
            self._str(os.readlink(path))
        elif stat.S_ISREG(st.st_mode):
            self._str("regular")
            if st.st_mode & stat.S_IXUSR:
                self._str("executable")
                self._str("")
            self._str("contents")
            self._contents(path, st.st_size)
        elif stat.S_ISDIR(st.st_mode):
            self._str("directory")
            for child in sorted(path.iterdir(), key=lambda p: p.name.encode("utf-8")):
                if not self._select(child):
                    continue
                self._str("entry")
                self._str("(")
                self._str("name")
                self._str(child.name)
                self._str("node")
                self._node(child)
                self._str(")")
        else:
            raise PkgdefError(f"Cannot hash {path}: unsupported file type")
        self._str(")")


def hash_path(
    path: Path,
    exclude_vcs: bool = False,
    select: Optional[Callable[[Path], bool]] = None,
) -> ContentHash:
    """
    Recursive SHA256 of a file or directory tree.

    `exclude_vcs` skips version-control metadata directories; `select` can
    further filter entries (return False to skip one).
    """

    def _select(child: Path) -> bool:
        if exclude_vcs and child.name in VCS_DIRECTORIES:
            return False
        return select(child) if select else True

    h = hashlib.sha256()
    _NarWriter(h.update, _select).archive(path)
    return ContentHash.from_digest(h.digest())


def hash_source_path(path: Path, recursive: bool, exclude_vcs: bool = False) -> ContentHash:
    if recursive:
        return hash_path(path, exclude_vcs=exclude_vcs)
    if not path.is_file():
        raise PkgdefError(f"{path} is not a regular file; use a recursive hash for directories")
    return hash_file(path)


def verify_source(descriptor: PackageDescriptor, path: Union[str, Path]) -> ContentHash:
    """
    Check a local copy of a descriptor's source against its pinned hash.

    url-fetch sources are hashed flat; git-fetch checkouts recursively with
    VCS directories excluded. Returns the computed hash on success, raises
    HashMismatchError otherwise.
    """
    path = Path(path)
    if not path.exists():
        raise PkgdefError(f"Source path {path} does not exist")

    recursive = isinstance(descriptor.source, GitSource)
    actual = hash_source_path(path, recursive=recursive, exclude_vcs=recursive)
    expected = descriptor.source.sha256

    if actual != expected:
        logger.error(f"Source hash mismatch for {descriptor.full_name}: expected {expected}, got {actual}")
        raise HashMismatchError(descriptor.full_name, expected.value, actual.value)

    logger.info(f"Source of {descriptor.full_name} matches {expected}")
    return actual


def format_hash(value: ContentHash, fmt: str = "nix-base32") -> str:
    if fmt in ("nix-base32", "base32"):
        return value.base32
    if fmt in ("hex", "base16"):
        return value.hex
    raise PkgdefError(f"Unknown hash format '{fmt}' (expected nix-base32 or hex)")


def hash_many(paths: Iterable[Path], recursive: bool = False, exclude_vcs: bool = False):
    for p in paths:
        yield p, hash_source_path(p, recursive=recursive, exclude_vcs=exclude_vcs)

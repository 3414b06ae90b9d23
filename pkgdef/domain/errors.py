"""
Exceptions raised by pkgdef.

All errors derive from ValueError so callers that only care about "bad input"
can keep catching ValueError.
"""

from __future__ import annotations

from typing import Any, List, Optional


class PkgdefError(ValueError):
    """Base class for all pkgdef errors."""


class DescriptorError(PkgdefError):
    """
    A package descriptor could not be parsed or failed validation.

    `errors` holds the pydantic error list when the failure came from
    validation, so the CLI can print one line per offending field.
    """

    def __init__(self, message: str, path: Optional[str] = None, errors: Optional[List[Any]] = None):
        self.path = path
        self.errors = errors or []
        prefix = f"{path}: " if path else ""
        super().__init__(f"{prefix}{message}")


class PhaseError(PkgdefError):
    """A phase edit referred to a phase that does not exist, or clashed with one that does."""


class HashMismatchError(PkgdefError):
    def __init__(self, subject: str, expected: str, actual: str):
        self.subject = subject
        self.expected = expected
        self.actual = actual
        super().__init__(f"Hash mismatch for {subject}: expected {expected}, got {actual}")


class PackageNotFoundError(PkgdefError):
    pass


class DuplicatePackageError(PkgdefError):
    pass


class MissingInputError(PkgdefError):
    def __init__(self, package: str, missing: List[str]):
        self.package = package
        self.missing = list(missing)
        super().__init__(f"{package}: unresolved inputs: {', '.join(self.missing)}")

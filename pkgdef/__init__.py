"""
pkgdef: declarative package definitions.

A package descriptor names a piece of software, pins where its source comes
from with a content hash, lists its dependencies and describes how to build
it as an ordered list of named, editable phases.
"""

__version__ = "0.1.0"

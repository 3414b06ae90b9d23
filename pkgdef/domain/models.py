"""
Pydantic models for pkgdef.

This module defines all data models used throughout the application, including:
- Collection configuration
- Source locators (url-fetch / git-fetch) and content hashes
- Build recipes, phases and phase edits
- The immutable package descriptor
- The in-memory collection index

All models use Pydantic for validation, serialization, and type safety.
"""

from __future__ import annotations

import binascii
import re
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer, model_validator

from pkgdef.domain.pkgdef_utils import FrozenDict, freeze, nix_base32_decode, nix_base32_encode


PACKAGE_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9+._-]*$")

# Versions become directory names in the collection, so "." and ".." are out.
VERSION_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9+._~-]*$")

# Output names become shell variables in build scripts ("-" maps to "_").
OUTPUT_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9-]*$")

SHA256_DIGEST_SIZE = 32


# ---------------------------------------------------------------------------
# Collection Configuration Models
# ---------------------------------------------------------------------------


class CollectionConfig(BaseModel):
    """
    Top-level configuration for a package collection.

    Persisted at: <DATA_DIR>/collection.json
    """

    collection_identifier: str = Field(
        default="pkgdef-local",
        description="Unique identifier for this collection.",
    )
    display_name: str = Field(
        default="Local package collection",
        description="Human-friendly name for this collection.",
    )
    description: str = Field(
        default="JSON-backed collection of declarative package definitions.",
        description="Longer description shown by the CLI.",
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Timestamp when this collection configuration was first created.",
    )

    # Base URLs for mirror:// URIs, tried in order.
    mirrors: Dict[str, List[str]] = Field(
        default_factory=lambda: {
            "gnu": [
                "https://ftpmirror.gnu.org/gnu/",
                "https://ftp.gnu.org/gnu/",
            ],
            "savannah": [
                "https://download.savannah.gnu.org/releases/",
            ],
            "sourceforge": [
                "https://downloads.sourceforge.net/project/",
            ],
        },
        description="Mirror name -> list of base URLs used to expand mirror:// URIs.",
    )
    default_build_system: str = Field(
        default="gnu",
        description="Build system used when a descriptor does not name one.",
    )
    build_system_options: List[str] = Field(
        default_factory=lambda: ["gnu", "cmake", "copy", "trivial"],
        description="Valid build systems.",
    )


# ---------------------------------------------------------------------------
# Source Models
# ---------------------------------------------------------------------------


class ContentHash(BaseModel):
    """
    A SHA256 digest pinning a source.

    Accepts either 64-character hex or 52-character nix-base32 (what
    `guix hash` prints) and always stores the nix-base32 form.
    """

    model_config = ConfigDict(frozen=True)

    algorithm: Literal["sha256"] = "sha256"
    value: str

    @model_validator(mode="before")
    @classmethod
    def _from_string(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"value": data}
        return data

    @field_validator("value")
    @classmethod
    def _normalize(cls, value: str) -> str:
        value = value.strip().lower()
        if len(value) == SHA256_DIGEST_SIZE * 2 and re.fullmatch(r"[0-9a-f]+", value):
            return nix_base32_encode(binascii.unhexlify(value))
        try:
            digest = nix_base32_decode(value)
        except ValueError as e:
            raise ValueError(f"not a hex or nix-base32 sha256: {e}") from e
        if len(digest) != SHA256_DIGEST_SIZE:
            raise ValueError(
                f"sha256 must be 64 hex or 52 nix-base32 characters, got {len(value)} characters"
            )
        return value

    @model_serializer
    def _to_string(self) -> str:
        return self.value

    @property
    def digest(self) -> bytes:
        return nix_base32_decode(self.value)

    @property
    def hex(self) -> str:
        return self.digest.hex()

    @property
    def base32(self) -> str:
        return self.value

    @classmethod
    def from_digest(cls, digest: bytes) -> "ContentHash":
        return cls(value=nix_base32_encode(digest))

    def __str__(self) -> str:
        return self.value


class UrlSource(BaseModel):
    """
    Source obtained by downloading a single file (typically a release tarball).

    Hashed "flat": the SHA256 of the file bytes.
    """

    model_config = ConfigDict(frozen=True)

    method: Literal["url-fetch"] = "url-fetch"
    uris: Tuple[str, ...] = Field(
        description="Download locations; the first is primary, the rest are fallbacks.",
    )
    sha256: ContentHash
    file_name: Optional[str] = Field(
        default=None,
        description="Name to store the download under; defaults to the last URI segment.",
    )
    patches: Tuple[str, ...] = Field(
        default_factory=tuple,
        description="Patch file names applied after unpacking.",
    )

    @model_validator(mode="before")
    @classmethod
    def _single_uri(cls, data: Any) -> Any:
        if isinstance(data, dict) and "uri" in data and "uris" not in data:
            data = dict(data)
            uri = data.pop("uri")
            data["uris"] = [uri] if isinstance(uri, str) else uri
        return data

    @field_validator("uris")
    @classmethod
    def _check_uris(cls, uris: Tuple[str, ...]) -> Tuple[str, ...]:
        if not uris:
            raise ValueError("url-fetch source needs at least one URI")
        for uri in uris:
            if "://" not in uri:
                raise ValueError(f"URI {uri!r} has no scheme")
        return uris

    @property
    def hash_mode(self) -> str:
        return "flat"

    def expand_uris(self, mirrors: Optional[Dict[str, List[str]]] = None) -> List[str]:
        """
        Return concrete URLs for this source, expanding mirror:// URIs.

        Unknown mirror names are kept as-is so the caller can report them.
        """
        mirrors = mirrors or {}
        urls: List[str] = []
        for uri in self.uris:
            if uri.startswith("mirror://"):
                mirror_name, _, rest = uri[len("mirror://"):].partition("/")
                bases = mirrors.get(mirror_name)
                if not bases:
                    urls.append(uri)
                    continue
                for base in bases:
                    urls.append(base.rstrip("/") + "/" + rest)
            else:
                urls.append(uri)
        return urls


class GitSource(BaseModel):
    """
    Source obtained by checking out a commit from a git repository.

    Hashed "recursive": the archive hash of the checkout tree, without `.git`.
    """

    model_config = ConfigDict(frozen=True)

    method: Literal["git-fetch"] = "git-fetch"
    url: str
    commit: str = Field(
        description="Commit id or tag to check out.",
    )
    recursive: bool = Field(
        default=False,
        description="Whether submodules are checked out too.",
    )
    sha256: ContentHash
    file_name: Optional[str] = None
    patches: Tuple[str, ...] = Field(default_factory=tuple)

    @field_validator("commit")
    @classmethod
    def _check_commit(cls, commit: str) -> str:
        commit = commit.strip()
        if not commit:
            raise ValueError("git-fetch source needs a commit or tag")
        return commit

    @property
    def hash_mode(self) -> str:
        return "recursive"


SourceLocator = Annotated[Union[UrlSource, GitSource], Field(discriminator="method")]


# ---------------------------------------------------------------------------
# Build Models
# ---------------------------------------------------------------------------


class BuildStep(BaseModel):
    """
    A single action inside a build phase.

    The action catalogue lives in pkgdef.domain.build_script.
    """

    model_config = ConfigDict(frozen=True)

    action_type: str
    arguments: Dict[str, str] = Field(default_factory=FrozenDict)

    @model_validator(mode="before")
    @classmethod
    def _from_command(cls, data: Any) -> Any:
        # A bare string is shorthand for an "invoke" step.
        if isinstance(data, str):
            return {"action_type": "invoke", "arguments": {"command": data}}
        return data

    @field_validator("arguments")
    @classmethod
    def _freeze_arguments(cls, arguments: Dict[str, str]) -> Dict[str, str]:
        return freeze(arguments)


class Phase(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    steps: Tuple[BuildStep, ...] = Field(default_factory=tuple)


PhaseAction = Literal["replace", "add-before", "add-after", "delete"]


class PhaseEdit(BaseModel):
    """
    One clause of a modify-phases form.

    `target` is the existing phase `phase` is inserted relative to; it is only
    used by add-before / add-after.
    """

    model_config = ConfigDict(frozen=True)

    action: PhaseAction
    phase: str
    target: Optional[str] = None
    steps: Tuple[BuildStep, ...] = Field(default_factory=tuple)

    @model_validator(mode="after")
    def _check_target(self) -> "PhaseEdit":
        if self.action in ("add-before", "add-after") and not self.target:
            raise ValueError(f"{self.action} of phase '{self.phase}' needs a target phase")
        if self.action == "delete" and self.steps:
            raise ValueError(f"delete of phase '{self.phase}' cannot carry steps")
        return self


class InstallPlanEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    target: str


class BuildRecipe(BaseModel):
    model_config = ConfigDict(frozen=True)

    build_system: str = "gnu"
    configure_flags: Tuple[str, ...] = Field(default_factory=tuple)
    make_flags: Tuple[str, ...] = Field(default_factory=tuple)
    tests: bool = Field(
        default=True,
        description="Whether the check phase runs the test suite.",
    )
    install_plan: Tuple[InstallPlanEntry, ...] = Field(
        default_factory=tuple,
        description="Files copied into the output by the copy build system.",
    )
    phases: Tuple[PhaseEdit, ...] = Field(
        default_factory=tuple,
        description="Phase edits applied, in order, to the build system's standard phases.",
    )

    @field_validator("build_system")
    @classmethod
    def _check_build_system(cls, value: str) -> str:
        from pkgdef.domain.phases import BUILD_SYSTEMS

        if value not in BUILD_SYSTEMS:
            raise ValueError(
                f"unknown build system '{value}' (expected one of {', '.join(sorted(BUILD_SYSTEMS))})"
            )
        return value


# ---------------------------------------------------------------------------
# Package Models
# ---------------------------------------------------------------------------


InputKind = Literal["inputs", "native_inputs", "propagated_inputs"]

_INPUT_SPEC = re.compile(r"^(?P<name>[^@:]+)(?:@(?P<version>[^:]+))?(?::(?P<output>.+))?$")


class InputRef(BaseModel):
    """
    Reference to another package used as a dependency.

    Accepts the shorthand "name", "name@version", "name:output" or
    "name@version:output".
    """

    model_config = ConfigDict(frozen=True)

    name: str
    version: Optional[str] = None
    output: str = "out"

    @model_validator(mode="before")
    @classmethod
    def _from_spec(cls, data: Any) -> Any:
        if isinstance(data, str):
            m = _INPUT_SPEC.match(data.strip())
            if not m:
                raise ValueError(f"invalid input reference {data!r}")
            parsed = {"name": m.group("name")}
            if m.group("version"):
                parsed["version"] = m.group("version")
            if m.group("output"):
                parsed["output"] = m.group("output")
            return parsed
        return data

    @field_validator("name")
    @classmethod
    def _check_name(cls, name: str) -> str:
        if not PACKAGE_NAME_PATTERN.match(name):
            raise ValueError(f"invalid package name {name!r}")
        return name

    @property
    def spec(self) -> str:
        text = self.name
        if self.version:
            text += f"@{self.version}"
        if self.output != "out":
            text += f":{self.output}"
        return text


class PackageDescriptor(BaseModel):
    """
    Declarative description of how to obtain, build and install one package.

    Instances are immutable; use `derive` to build a variant.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    source: SourceLocator
    build: BuildRecipe = Field(default_factory=BuildRecipe)

    inputs: Tuple[InputRef, ...] = Field(default_factory=tuple)
    native_inputs: Tuple[InputRef, ...] = Field(
        default_factory=tuple,
        description="Build-time tools that run on the build machine.",
    )
    propagated_inputs: Tuple[InputRef, ...] = Field(
        default_factory=tuple,
        description="Inputs installed alongside this package in user profiles.",
    )
    outputs: Tuple[str, ...] = ("out",)

    synopsis: str
    description: str
    home_page: str
    license: Tuple[str, ...]
    properties: Dict[str, Any] = Field(default_factory=FrozenDict)

    @field_validator("name")
    @classmethod
    def _check_name(cls, name: str) -> str:
        if not PACKAGE_NAME_PATTERN.match(name):
            raise ValueError(
                f"invalid package name {name!r}: use lowercase letters, digits and '+._-'"
            )
        return name

    @field_validator("version")
    @classmethod
    def _check_version(cls, version: str) -> str:
        if not VERSION_PATTERN.match(version):
            raise ValueError(
                f"invalid version {version!r}: start with a letter or digit, "
                "then use letters, digits and '+._~-'"
            )
        return version

    @field_validator("license", mode="before")
    @classmethod
    def _license_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return (value,)
        return value

    @field_validator("license")
    @classmethod
    def _check_license(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        if not value:
            raise ValueError("at least one license is required")
        return value

    @field_validator("outputs")
    @classmethod
    def _check_outputs(cls, outputs: Tuple[str, ...]) -> Tuple[str, ...]:
        if "out" not in outputs:
            raise ValueError("outputs must include 'out'")
        for output in outputs:
            if not OUTPUT_NAME_PATTERN.match(output):
                raise ValueError(
                    f"invalid output name {output!r}: use lowercase letters, digits and '-', "
                    "starting with a letter"
                )
        if len(set(outputs)) != len(outputs):
            raise ValueError("outputs must be unique")
        return outputs

    @field_validator("properties")
    @classmethod
    def _freeze_properties(cls, properties: Dict[str, Any]) -> Dict[str, Any]:
        return freeze(properties)

    @model_validator(mode="after")
    def _check_inputs(self) -> "PackageDescriptor":
        seen: Dict[str, str] = {}
        for kind, ref in self.all_inputs():
            if ref.name in seen:
                raise ValueError(
                    f"input '{ref.name}' listed more than once ({seen[ref.name]} and {kind})"
                )
            seen[ref.name] = kind
        return self

    @property
    def full_name(self) -> str:
        return f"{self.name}@{self.version}"

    def all_inputs(self) -> List[Tuple[str, InputRef]]:
        out: List[Tuple[str, InputRef]] = []
        for kind in ("inputs", "native_inputs", "propagated_inputs"):
            for ref in getattr(self, kind):
                out.append((kind, ref))
        return out

    def source_file_name(self) -> str:
        if self.source.file_name:
            return self.source.file_name
        if isinstance(self.source, GitSource):
            return f"{self.name}-{self.version}-checkout"
        return self.source.uris[0].rstrip("/").rsplit("/", 1)[-1]

    def derive(self, **changes: Any) -> "PackageDescriptor":
        """
        Return a new, re-validated descriptor with `changes` applied.
        """
        data = self.model_dump()
        data.update(changes)
        return PackageDescriptor.model_validate(data)


# ---------------------------------------------------------------------------
# Index Models
# ---------------------------------------------------------------------------


class PackageIndex(BaseModel):
    """
    In-memory representation of a single package name and all stored versions.
    """

    name: str
    versions: Dict[str, PackageDescriptor] = Field(default_factory=dict)
    storage_path: Optional[str] = Field(
        default=None,
        description="Relative path from the data directory to this package's folder.",
    )


class CollectionIndex(BaseModel):
    """
    In-memory index for the entire collection, used to answer queries quickly.
    """

    packages: Dict[str, PackageIndex] = Field(default_factory=dict)
    last_built_at: Optional[datetime] = None

"""
Load package descriptors from YAML files and write them back.

A descriptor file is one YAML mapping. String values inside `source` may use
`{name}` and `{version}` placeholders, e.g.

    uri: mirror://gnu/hello/hello-{version}.tar.gz
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from pkgdef.domain.errors import DescriptorError
from pkgdef.domain.models import PackageDescriptor
from pkgdef.domain.pkgdef_utils import strip_nulls

logger = logging.getLogger(__name__)

_DUMP_ORDER = (
    "name",
    "version",
    "source",
    "build",
    "inputs",
    "native_inputs",
    "propagated_inputs",
    "outputs",
    "synopsis",
    "description",
    "home_page",
    "license",
    "properties",
)


def _expand_templates(value: Any, context: Dict[str, str]) -> Any:
    if isinstance(value, str):
        try:
            return value.format(**context)
        except (KeyError, IndexError, ValueError) as e:
            raise DescriptorError(f"Bad placeholder in {value!r}: {e}") from e
    if isinstance(value, dict):
        return {k: _expand_templates(v, context) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_templates(v, context) for v in value]
    return value


def descriptor_from_mapping(raw: Any, origin: Optional[str] = None) -> PackageDescriptor:
    if not isinstance(raw, dict):
        raise DescriptorError("Descriptor must be a YAML mapping", path=origin)

    raw = dict(raw)
    source = raw.get("source")
    if isinstance(source, dict):
        context = {"name": str(raw.get("name", "")), "version": str(raw.get("version", ""))}
        try:
            raw["source"] = _expand_templates(source, context)
        except DescriptorError as e:
            raise DescriptorError(str(e), path=origin) from e

    try:
        return PackageDescriptor.model_validate(raw)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise DescriptorError(f"Invalid descriptor: {details}", path=origin, errors=e.errors()) from e


def parse_descriptor(text: str, origin: Optional[str] = None) -> PackageDescriptor:
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML descriptor {origin or '<string>'}: {e}")
        raise DescriptorError(f"YAML syntax error: {e}", path=origin) from e
    return descriptor_from_mapping(raw, origin=origin)


def load_descriptor(path: Union[str, Path]) -> PackageDescriptor:
    path = Path(path)
    logger.debug(f"Loading descriptor from {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DescriptorError(f"Cannot read descriptor: {e.strerror}", path=str(path)) from e
    return parse_descriptor(text, origin=str(path))


def descriptor_to_mapping(descriptor: PackageDescriptor) -> Dict[str, Any]:
    """
    Plain-data form of a descriptor with defaults left out, in a stable key order.
    """
    data = descriptor.model_dump(mode="json", exclude_defaults=True)
    # properties is free-form; a null in it is a value, not a missing field.
    properties = data.pop("properties", None)
    data = strip_nulls(data)
    if properties:
        data["properties"] = properties
    # Required fields can still be dropped by exclude_defaults (e.g. the
    # discriminator), so put them back from the full dump.
    full = descriptor.model_dump(mode="json")
    data["source"]["method"] = full["source"]["method"]
    if len(descriptor.license) == 1:
        data["license"] = descriptor.license[0]

    ordered: Dict[str, Any] = {}
    for key in _DUMP_ORDER:
        # Empty lists and mappings are defaults too.
        if key in data and data[key] not in ([], {}):
            ordered[key] = data[key]
    return ordered


def dump_descriptor(descriptor: PackageDescriptor) -> str:
    return yaml.safe_dump(
        descriptor_to_mapping(descriptor),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )

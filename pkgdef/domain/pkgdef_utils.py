import fnmatch
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from pkgdef.domain.errors import PkgdefError

# Alphabet used by `guix hash` / `nix-hash --base32`. Note the missing e, o, u, t.
NIX_BASE32_ALPHABET = "0123456789abcdfghijklmnpqrsvwxyz"

_NIX_BASE32_INDEX = {c: i for i, c in enumerate(NIX_BASE32_ALPHABET)}


class FrozenDict(dict):
    """
    A dict that refuses in-place changes.

    Used for mapping fields of frozen models so a stored descriptor cannot be
    edited through `descriptor.properties[...] = ...`.
    """

    def _immutable(self, *args: Any, **kwargs: Any) -> None:
        raise TypeError(f"{type(self).__name__} is immutable")

    __setitem__ = _immutable
    __delitem__ = _immutable
    __ior__ = _immutable
    clear = _immutable
    pop = _immutable
    popitem = _immutable
    setdefault = _immutable
    update = _immutable

    def __reduce__(self):
        return (type(self), (dict(self),))

    def __repr__(self) -> str:
        return f"FrozenDict({dict.__repr__(self)})"


def freeze(value: Any) -> Any:
    """Recursively turn dicts into FrozenDicts and lists into tuples."""
    if isinstance(value, dict):
        return FrozenDict((k, freeze(v)) for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    return value


def strip_nulls(value: Any) -> Any:
    """
    Drop None-valued keys from mappings, recursively. Sequences come back as lists.
    """
    if isinstance(value, dict):
        return {k: strip_nulls(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [strip_nulls(v) for v in value]
    return value


# Matchers receive (value, keyword); all but Exact see both lowercased.
_MATCHERS: Dict[str, Callable[[str, str], bool]] = {
    "Exact": lambda value, keyword: value == keyword,
    "CaseInsensitive": lambda value, keyword: value == keyword,
    "StartsWith": lambda value, keyword: value.startswith(keyword),
    "Substring": lambda value, keyword: keyword in value,
    "Wildcard": fnmatch.fnmatchcase,
}

MATCH_TYPES = tuple(_MATCHERS)


def match_text(value: str, keyword: str, match_type: Optional[str] = None) -> bool:
    """
    Match one text field against a search keyword.

    `match_type` is one of MATCH_TYPES and defaults to Substring. Only Exact
    is case-sensitive; Wildcard understands `*`, `?` and `[...]`.
    """
    if keyword is None:
        return False
    match = (match_type or "Substring").strip() or "Substring"
    try:
        matcher = _MATCHERS[match]
    except KeyError:
        raise PkgdefError(
            f"Unknown match type '{match_type}' (expected one of {', '.join(MATCH_TYPES)})"
        ) from None
    if match == "Exact":
        return matcher(value, keyword)
    return matcher(value.lower(), keyword.lower())


def version_key(version: str) -> Tuple[Tuple[int, Any], ...]:
    """
    Sort key for version strings.

    Segments are split on '.', '-' and '_'; numeric segments compare
    numerically and always sort after alphabetic ones, so "2.10" > "2.9".
    Mixed segments such as "0rc1" compare lexically.
    """
    parts: List[Tuple[int, Any]] = []
    for segment in re.split(r"[.\-_]", version):
        if segment.isdigit():
            parts.append((1, int(segment)))
        else:
            parts.append((0, segment))
    return tuple(parts)


def nix_base32_encode(data: bytes) -> str:
    """
    Encode bytes with the nix-base32 scheme.

    Unlike RFC 4648 base32, characters are emitted starting from the most
    significant 5-bit group of the little-endian interpretation of `data`.
    """
    length = (len(data) * 8 - 1) // 5 + 1
    chars: List[str] = []
    for n in range(length - 1, -1, -1):
        b = n * 5
        i = b // 8
        j = b % 8
        c = data[i] >> j
        if i + 1 < len(data):
            c |= data[i + 1] << (8 - j)
        chars.append(NIX_BASE32_ALPHABET[c & 0x1F])
    return "".join(chars)


def nix_base32_decode(text: str) -> bytes:
    """
    Decode a nix-base32 string back to bytes. Raises ValueError on bad input.
    """
    size = len(text) * 5 // 8
    out = bytearray(size)
    for n, ch in enumerate(reversed(text)):
        digit = _NIX_BASE32_INDEX.get(ch)
        if digit is None:
            raise ValueError(f"Invalid nix-base32 character {ch!r}")
        b = n * 5
        i = b // 8
        j = b % 8
        if i < size:
            out[i] |= (digit << j) & 0xFF
        elif digit << j:
            raise ValueError("Invalid nix-base32 string: trailing bits set")
        carry = digit >> (8 - j)
        if i + 1 < size:
            out[i + 1] |= carry
        elif carry:
            raise ValueError("Invalid nix-base32 string: trailing bits set")
    return bytes(out)

"""
Normalization of legacy-encoded list columns.

Several columns (product gallery, order product ids, order quantities,
technologies) were written over time as native arrays, JSON strings,
doubly-encoded JSON strings, bracketed strings that are not valid JSON,
comma-separated strings, or single scalars. Every reader goes through
`parse_list` so that all consumers decode them identically.

Examples:
    parse_list(["a", " b "])          -> ["a", "b"]
    parse_list('["a","b"]')           -> ["a", "b"]
    parse_list('"[\\"a\\",\\"b\\"]"') -> ["a", "b"]
    parse_list("[a, 'b']")            -> ["a", "b"]
    parse_list("a,b")                 -> ["a", "b"]
    parse_list("a")                   -> ["a"]
    parse_list(None)                  -> []
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Union

_BRACKET_CHARS = re.compile(r"[\[\]\"']")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


# ---------------------------------------------------------------------------
# Tagged raw field
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Plain:
    """A persisted string that is not valid JSON (comma list or scalar)."""
    text: str


@dataclass(frozen=True)
class Encoded:
    """A persisted string that decodes as JSON; `decoded` is the first decode."""
    text: str
    decoded: Any


RawField = Union[Plain, Encoded]


def read_raw_field(value: Any) -> Optional[RawField]:
    """Classify a persisted string value. Returns None for non-strings."""
    if not isinstance(value, str):
        return None
    try:
        return Encoded(value, json.loads(value))
    except ValueError:
        return Plain(value)


# ---------------------------------------------------------------------------
# List parsing
# ---------------------------------------------------------------------------

def _is_scalar(value: Any) -> bool:
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def _clean_items(items: Sequence[Any]) -> List[str]:
    cleaned = []
    for item in items:
        if not _is_scalar(item):
            continue
        text = str(item).strip()
        if text:
            cleaned.append(text)
    return cleaned


def _parse_plain(text: str) -> List[str]:
    if "[" in text or "]" in text:
        stripped = _BRACKET_CHARS.sub("", text)
        return [part.strip() for part in stripped.split(",") if part.strip()]
    if "," in text:
        return [part.strip() for part in text.split(",") if part.strip()]
    text = text.strip()
    return [text] if text else []


def _scalar_text(field: Encoded) -> List[str]:
    # JSON numbers and booleans keep the text as stored ("1.50" stays "1.50")
    if field.decoded is None or isinstance(field.decoded, dict):
        return []
    text = field.text.strip()
    return [text] if text else []


def _parse_decoded(field: Encoded) -> List[str]:
    decoded = field.decoded
    if isinstance(decoded, (list, tuple)):
        return _clean_items(decoded)
    if isinstance(decoded, str):
        # Double-encoded: the JSON string holds another JSON document
        inner = read_raw_field(decoded)
        if isinstance(inner, Encoded):
            if isinstance(inner.decoded, (list, tuple)):
                return _clean_items(inner.decoded)
            if isinstance(inner.decoded, str):
                text = inner.decoded.strip()
                return [text] if text else []
            return _scalar_text(inner)
        return _parse_plain(decoded)
    return _scalar_text(field)


def parse_list(value: Any) -> List[str]:
    """
    Normalize a legacy list value into an ordered list of trimmed, non-empty strings.

    Never raises; unparseable or absent input yields an empty list. Applying
    it to its own output is a no-op.
    """
    if isinstance(value, (list, tuple)):
        return _clean_items(value)
    if isinstance(value, (Plain, Encoded)):
        raw = value
    elif isinstance(value, str):
        raw = read_raw_field(value)
    elif _is_scalar(value):
        return _clean_items([value])
    else:
        return []

    if isinstance(raw, Encoded):
        return _parse_decoded(raw)
    return _parse_plain(raw.text)


# ---------------------------------------------------------------------------
# Quantities
# ---------------------------------------------------------------------------

def parse_quantity(value: Any, default: int = 1) -> int:
    """Parse one stored quantity with leading-integer semantics ("3 units" -> 3)."""
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else default


def parse_quantities(value: Any, length: int = 0) -> List[int]:
    """
    Parse a legacy quantity list, right-padding with 1s up to `length`.

    `length` is normally the size of the parallel product-id list.
    """
    quantities = [parse_quantity(item, default=1) for item in parse_list(value)]
    if len(quantities) < length:
        quantities.extend([1] * (length - len(quantities)))
    return quantities


# ---------------------------------------------------------------------------
# Order product manifest
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ManifestLine:
    product_id: str
    quantity: int


def decode_manifest(product_ids: Any, quantities: Any) -> List[ManifestLine]:
    """Decode an order's parallel product-id / quantity columns into lines."""
    ids = parse_list(product_ids)
    qtys = parse_quantities(quantities, length=len(ids))
    return [ManifestLine(product_id=pid, quantity=qty) for pid, qty in zip(ids, qtys)]

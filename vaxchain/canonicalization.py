"""
VAX Canonical JSON (VAX-JCS)

Reference canonicalizer for action payloads (SAE). The chain core only
consumes canonical bytes; this module is the default collaborator that
produces them and the default predicate used by full-mode verification.

Rules:
- Object keys sorted by Unicode code point
- No whitespace between tokens
- ASCII-only output: printable ASCII is written as-is, everything else as
  \\uXXXX escapes (UTF-16 code units, lowercase hex); short escapes for
  \\" \\\\ \\b \\f \\n \\r \\t
- Numbers in plain decimal: no exponent, -0 becomes 0, integral floats are
  written without a fraction, NaN and Infinity are rejected
- Arrays preserve order
"""

import json
import math
import re
from decimal import Decimal
from typing import Any, Dict, List, Union

from .errors import InvalidCanonicalizationError

_DECIMAL_LITERAL = re.compile(r'^-?(0|[1-9][0-9]*)(\.[0-9]+)?$')

_SHORT_ESCAPES = {
    '"': '\\"',
    '\\': '\\\\',
    '\b': '\\b',
    '\f': '\\f',
    '\n': '\\n',
    '\r': '\\r',
    '\t': '\\t',
}

_INT64_MIN = -(2 ** 63)
_UINT64_MAX = 2 ** 64 - 1

_UTF8_BOM = b'\xef\xbb\xbf'


def canonicalize(obj: Any) -> bytes:
    """
    Convert an object to VAX-JCS bytes.

    Returns:
        ASCII bytes of canonical JSON

    Raises:
        InvalidCanonicalizationError: On unsupported types, non-string keys,
            NaN or Infinity
    """
    parts: List[str] = []
    _write_value(parts, obj)
    return ''.join(parts).encode('ascii')


def canonicalize_str(obj: Any) -> str:
    """Return canonical JSON as string."""
    return canonicalize(obj).decode('ascii')


def canonicalize_json(data: Union[bytes, str]) -> bytes:
    """
    Re-encode a JSON document in canonical form.

    Raises:
        InvalidCanonicalizationError: If the document is not valid JSON or
            contains values VAX-JCS does not allow
    """
    return canonicalize(parse_json(data))


def parse_json(data: Union[bytes, str]) -> Any:
    """
    Parse JSON the way VAX-JCS reads it.

    Number literals must be plain decimals, duplicate keys are rejected and
    NaN/Infinity literals are refused.
    """
    if isinstance(data, (bytes, bytearray, memoryview)):
        raw = bytes(data)
        if raw.startswith(_UTF8_BOM):
            raise InvalidCanonicalizationError("UTF-8 BOM is not allowed")
        try:
            text = raw.decode('utf-8')
        except UnicodeDecodeError as exc:
            raise InvalidCanonicalizationError(f"invalid UTF-8: {exc}") from exc
    elif isinstance(data, str):
        text = data
    else:
        raise InvalidCanonicalizationError(f"Cannot parse type: {type(data)}")

    try:
        return json.loads(
            text,
            parse_float=_parse_decimal,
            parse_int=_parse_int,
            parse_constant=_reject_constant,
            object_pairs_hook=_unique_object,
        )
    except InvalidCanonicalizationError:
        raise
    except ValueError as exc:
        raise InvalidCanonicalizationError(f"invalid JSON: {exc}") from exc


def is_canonical(data: Union[bytes, str]) -> bool:
    """
    Check that bytes are exactly their own VAX-JCS encoding.

    This is the predicate full-mode verification uses by default.
    """
    if isinstance(data, str):
        try:
            data = data.encode('utf-8')
        except UnicodeEncodeError:
            return False
    if not isinstance(data, (bytes, bytearray, memoryview)):
        return False
    raw = bytes(data)
    try:
        return canonicalize_json(raw) == raw
    except InvalidCanonicalizationError:
        return False


# ============================================================
# Parsing hooks
# ============================================================

def _parse_decimal(literal: str) -> Decimal:
    if not _DECIMAL_LITERAL.match(literal):
        raise InvalidCanonicalizationError(f"non-decimal number not allowed: {literal}")
    return Decimal(literal)


def _parse_int(literal: str) -> int:
    return int(literal)


def _reject_constant(name: str):
    raise InvalidCanonicalizationError(f"{name} is not allowed")


def _unique_object(pairs) -> Dict[str, Any]:
    obj: Dict[str, Any] = {}
    for key, value in pairs:
        if key in obj:
            raise InvalidCanonicalizationError(f"duplicate key: {key}")
        obj[key] = value
    return obj


# ============================================================
# Writers
# ============================================================

def _write_value(parts: List[str], value: Any) -> None:
    if value is None:
        parts.append('null')
    elif value is True:
        parts.append('true')
    elif value is False:
        parts.append('false')
    elif isinstance(value, str):
        _write_string(parts, value)
    elif isinstance(value, int):
        parts.append(_format_int(value))
    elif isinstance(value, (float, Decimal)):
        parts.append(_format_float(float(value)))
    elif isinstance(value, dict):
        _write_object(parts, value)
    elif isinstance(value, (list, tuple)):
        _write_array(parts, value)
    else:
        raise InvalidCanonicalizationError(f"Cannot canonicalize type: {type(value)}")


def _write_object(parts: List[str], obj: Dict[str, Any]) -> None:
    for key in obj:
        if not isinstance(key, str):
            raise InvalidCanonicalizationError(f"object keys must be strings, got {type(key)}")
    parts.append('{')
    for i, key in enumerate(sorted(obj)):
        if i:
            parts.append(',')
        _write_string(parts, key)
        parts.append(':')
        _write_value(parts, obj[key])
    parts.append('}')


def _write_array(parts: List[str], arr) -> None:
    parts.append('[')
    for i, item in enumerate(arr):
        if i:
            parts.append(',')
        _write_value(parts, item)
    parts.append(']')


def _write_string(parts: List[str], s: str) -> None:
    parts.append('"')
    for ch in s:
        escaped = _SHORT_ESCAPES.get(ch)
        if escaped is not None:
            parts.append(escaped)
            continue
        code = ord(ch)
        if 0x20 <= code <= 0x7E:
            parts.append(ch)
        elif code > 0xFFFF:
            code -= 0x10000
            parts.append('\\u%04x\\u%04x' % (0xD800 + (code >> 10), 0xDC00 + (code & 0x3FF)))
        else:
            parts.append('\\u%04x' % code)
    parts.append('"')


def _format_int(value: int) -> str:
    # Outside the 64-bit range numbers are carried as doubles
    if value < _INT64_MIN or value > _UINT64_MAX:
        return _format_float(float(value))
    return str(value)


def _format_float(value: float) -> str:
    if math.isnan(value) or math.isinf(value):
        raise InvalidCanonicalizationError("NaN/Infinity not allowed")
    if value == 0:
        return '0'
    text = format(Decimal(repr(value)), 'f')
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text

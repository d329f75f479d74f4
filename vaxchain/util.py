"""
Utility functions for vaxchain.

Byte-length validation, hex encoding, constant-time comparison and random
material generation.
"""

import binascii
import hmac
import secrets
from typing import Union

from .errors import InvalidInputError

BytesLike = Union[bytes, bytearray, memoryview]

# Fixed-size binary contract
ANCHOR_SIZE = 32
NONCE_SIZE = 32
CHAIN_SECRET_SIZE = 32
GENESIS_SALT_SIZE = 16

MAX_COUNTER = 0xFFFF


def require_bytes(value: object, size: int, field_name: str) -> bytes:
    """
    Validate a fixed-size binary argument.

    Args:
        value: bytes, bytearray or memoryview
        size: Exact expected length
        field_name: Name used in the error message

    Returns:
        An immutable bytes copy of the value

    Raises:
        InvalidInputError: If the value is not bytes-like or has the wrong length
    """
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise InvalidInputError(
            f"{field_name} must be bytes, got {type(value).__name__}",
            {"field": field_name},
        )
    data = bytes(value)
    if len(data) != size:
        raise InvalidInputError(
            f"{field_name} must be {size} bytes, got {len(data)}",
            {"field": field_name, "expected": size, "actual": len(data)},
        )
    return data


def require_counter(value: object, field_name: str = "counter") -> int:
    """Validate an unsigned 16-bit counter."""
    # bool is an int subclass; a True counter is always a bug
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(
            f"{field_name} must be an integer, got {type(value).__name__}",
            {"field": field_name},
        )
    if value < 0 or value > MAX_COUNTER:
        raise InvalidInputError(
            f"{field_name} must be in [0, {MAX_COUNTER}], got {value}",
            {"field": field_name, "actual": value},
        )
    return value


def to_hex(data: BytesLike) -> str:
    """Encode bytes as lowercase hex."""
    return bytes(data).hex()


def from_hex(s: str, expected_size: int = None, field_name: str = "value") -> bytes:
    """
    Decode a hex string to bytes.

    Raises:
        InvalidInputError: On odd length, non-hex characters or a size mismatch
    """
    if not isinstance(s, str):
        raise InvalidInputError(f"{field_name} must be a hex string", {"field": field_name})
    try:
        data = binascii.unhexlify(s.strip())
    except (binascii.Error, ValueError):
        raise InvalidInputError(f"{field_name} is not valid hex", {"field": field_name})
    if expected_size is not None and len(data) != expected_size:
        raise InvalidInputError(
            f"{field_name} must decode to {expected_size} bytes, got {len(data)}",
            {"field": field_name, "expected": expected_size, "actual": len(data)},
        )
    return data


def short_hex(data: BytesLike, chars: int = 16) -> str:
    """Hex prefix of a value, for log lines."""
    return to_hex(data)[:chars]


def constant_time_compare(a: BytesLike, b: BytesLike) -> bool:
    """
    Compare two byte strings in constant time to prevent timing attacks.
    """
    return hmac.compare_digest(bytes(a), bytes(b))


def generate_genesis_salt() -> bytes:
    """Generate a fresh 16-byte genesis salt."""
    return secrets.token_bytes(GENESIS_SALT_SIZE)


def generate_chain_secret() -> bytes:
    """Generate a fresh 32-byte chain secret."""
    return secrets.token_bytes(CHAIN_SECRET_SIZE)

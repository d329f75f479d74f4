"""
VAX Chain Hashing

The three pure derivations the chain is built from:

    SAI_0 = SHA-256("VAX-GENESIS" || actor_id || genesis_salt)
    gi_n  = HMAC-SHA-256(k_chain, "VAX-GI" || u16_be(n))
    SAI_n = SHA-256("VAX-SAI" || SAI_{n-1} || SHA-256(SAE_n) || gi_n)

All functions are stateless and safe to call from any number of threads.
Arguments are validated before any hashing happens; a wrong-sized buffer is
rejected with InvalidInputError.
"""

import hashlib
import hmac
import struct
from typing import Union

from .errors import InvalidInputError, OutOfMemoryError
from .keys import ChainSecret
from .util import (
    ANCHOR_SIZE,
    CHAIN_SECRET_SIZE,
    GENESIS_SALT_SIZE,
    NONCE_SIZE,
    BytesLike,
    require_bytes,
    require_counter,
)

GENESIS_LABEL = b"VAX-GENESIS"
GI_LABEL = b"VAX-GI"
SAI_LABEL = b"VAX-SAI"

_COUNTER_BE = struct.Struct(">H")


def sha256(data: BytesLike) -> bytes:
    """SHA-256 digest as raw bytes."""
    return hashlib.sha256(data).digest()


def _assemble(*parts: bytes) -> bytes:
    try:
        return b"".join(parts)
    except MemoryError as exc:
        raise OutOfMemoryError("failed to assemble hash message") from exc


def _actor_bytes(actor_id: Union[str, BytesLike]) -> bytes:
    if isinstance(actor_id, str):
        data = actor_id.encode("utf-8")
    elif isinstance(actor_id, (bytes, bytearray, memoryview)):
        data = bytes(actor_id)
    else:
        raise InvalidInputError(
            f"actor_id must be str or bytes, got {type(actor_id).__name__}",
            {"field": "actor_id"},
        )
    if not data:
        raise InvalidInputError("actor_id must not be empty", {"field": "actor_id"})
    return data


def _payload_bytes(payload: Union[str, BytesLike]) -> bytes:
    if isinstance(payload, str):
        data = payload.encode("utf-8")
    elif isinstance(payload, (bytes, bytearray, memoryview)):
        data = bytes(payload)
    else:
        raise InvalidInputError(
            f"payload must be str or bytes, got {type(payload).__name__}",
            {"field": "payload"},
        )
    if not data:
        raise InvalidInputError("payload must not be empty", {"field": "payload"})
    return data


def _secret_bytes(chain_secret: Union[ChainSecret, BytesLike]) -> bytes:
    if isinstance(chain_secret, ChainSecret):
        return chain_secret.reveal()
    return require_bytes(chain_secret, CHAIN_SECRET_SIZE, "chain_secret")


def encode_counter(counter: int) -> bytes:
    """
    Encode a counter as 2 big-endian bytes.

    Byte order is part of the wire contract: counter 1 encodes as 00 01 and
    counter 256 as 01 00.
    """
    return _COUNTER_BE.pack(require_counter(counter))


def compute_genesis_anchor(actor_id: Union[str, BytesLike], genesis_salt: BytesLike) -> bytes:
    """
    Compute the genesis anchor SAI_0.

    Args:
        actor_id: Actor identifier (e.g., "user123:device456"); str is UTF-8 encoded
        genesis_salt: 16-byte per-actor salt

    Returns:
        32-byte anchor

    Raises:
        InvalidInputError: If actor_id is empty or the salt is not 16 bytes
    """
    actor = _actor_bytes(actor_id)
    salt = require_bytes(genesis_salt, GENESIS_SALT_SIZE, "genesis_salt")
    return sha256(_assemble(GENESIS_LABEL, actor, salt))


def derive_nonce(chain_secret: Union[ChainSecret, BytesLike], counter: int) -> bytes:
    """
    Derive the per-action nonce gi for a counter.

    Deterministic, so a verifier holding the same secret can re-derive it
    without the nonce ever being transmitted.

    Args:
        chain_secret: 32-byte secret or a ChainSecret
        counter: Action counter in [0, 65535]

    Returns:
        32-byte nonce

    Raises:
        InvalidInputError: If the secret is not 32 bytes or the counter is out of range
    """
    key = _secret_bytes(chain_secret)
    message = _assemble(GI_LABEL, encode_counter(counter))
    return hmac.new(key, message, hashlib.sha256).digest()


def next_anchor(prev_anchor: BytesLike, payload: Union[str, BytesLike], nonce: BytesLike) -> bytes:
    """
    Fold one action into the chain.

    The payload is hashed first so the outer message has a fixed length of
    7 + 32 + 32 + 32 bytes regardless of payload size.

    Args:
        prev_anchor: Previous anchor SAI_{n-1} (32 bytes)
        payload: Canonical action payload (SAE); str is UTF-8 encoded
        nonce: gi_n (32 bytes)

    Returns:
        32-byte anchor SAI_n

    Raises:
        InvalidInputError: On a malformed anchor or nonce, or an empty payload
    """
    prev = require_bytes(prev_anchor, ANCHOR_SIZE, "prev_anchor")
    gi = require_bytes(nonce, NONCE_SIZE, "nonce")
    payload_digest = sha256(_payload_bytes(payload))
    return sha256(_assemble(SAI_LABEL, prev, payload_digest, gi))


def compute_anchor(
    chain_secret: Union[ChainSecret, BytesLike],
    counter: int,
    prev_anchor: BytesLike,
    payload: Union[str, BytesLike],
) -> bytes:
    """Derive gi for the counter and fold the payload in one call."""
    return next_anchor(prev_anchor, payload, derive_nonce(chain_secret, counter))

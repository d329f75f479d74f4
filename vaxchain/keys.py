"""
Chain secret handling.

The chain secret (k_chain) keys nonce derivation for one actor session. It is
held in a mutable buffer so it can be overwritten on disposal, and it never
appears in repr() or log output.
"""

from typing import Union

from .errors import InvalidInputError
from .util import CHAIN_SECRET_SIZE, BytesLike, generate_chain_secret, require_bytes


class ChainSecret:
    """
    32-byte session secret shared between an actor and its verifier.

    Usage:
        with ChainSecret(raw_bytes) as secret:
            nonce = derive_nonce(secret, 1)
        # buffer is zeroized here
    """

    __slots__ = ("_buf", "_disposed")

    def __init__(self, material: BytesLike):
        self._buf = bytearray(require_bytes(material, CHAIN_SECRET_SIZE, "chain_secret"))
        self._disposed = False

    @classmethod
    def generate(cls) -> "ChainSecret":
        """Create a secret from fresh random bytes."""
        return cls(generate_chain_secret())

    @classmethod
    def coerce(cls, value: Union["ChainSecret", BytesLike]) -> "ChainSecret":
        """Accept either a ChainSecret or raw 32-byte material."""
        if isinstance(value, ChainSecret):
            return value
        return cls(value)

    def reveal(self) -> bytes:
        """Return the key material for use as an HMAC key."""
        if self._disposed:
            raise InvalidInputError("chain secret has been zeroized")
        return bytes(self._buf)

    def zeroize(self) -> None:
        """Overwrite the key material in place."""
        for i in range(len(self._buf)):
            self._buf[i] = 0
        self._disposed = True

    @property
    def disposed(self) -> bool:
        return self._disposed

    def __enter__(self) -> "ChainSecret":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.zeroize()

    def __repr__(self) -> str:
        state = "zeroized" if self._disposed else "set"
        return f"ChainSecret(<{state}>)"

    __str__ = __repr__

    def __eq__(self, other: object) -> bool:
        # Secrets are compared through derived values, never directly
        return self is other

    __hash__ = object.__hash__

    def __reduce__(self):
        raise TypeError("ChainSecret cannot be pickled")

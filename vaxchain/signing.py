"""
VAX Envelope Signing

Ed25519 (RFC 8032) signatures over canonical SAE bytes, via PyNaCl.

A signature always covers the canonical bytes of the *unsigned* envelope, so
attaching the signature never changes what was signed.
"""

import base64
import binascii
from dataclasses import dataclass, replace
from typing import Any, Dict, Union

from nacl.exceptions import BadSignatureError, CryptoError
from nacl.signing import SigningKey, VerifyKey

from .errors import InvalidInputError
from .sae import SemanticActionEnvelope

SIGNING_KEY_SIZE = 32
VERIFY_KEY_SIZE = 32


@dataclass
class KeyPair:
    """Ed25519 key pair as raw bytes."""
    signing_key: bytes
    verify_key: bytes
    algorithm: str = "Ed25519"

    def to_dict(self) -> Dict[str, Any]:
        """Public part only; the signing key is never exported."""
        return {
            "algorithm": self.algorithm,
            "public_key": base64.b64encode(self.verify_key).decode('utf-8'),
        }

    def __repr__(self) -> str:
        return f"KeyPair(algorithm={self.algorithm!r}, verify_key={self.verify_key.hex()[:16]}...)"


def generate_key_pair() -> KeyPair:
    """
    Generate an Ed25519 key pair.

    Returns:
        KeyPair with 32-byte signing seed and 32-byte verify key
    """
    signing_key = SigningKey.generate()
    return KeyPair(
        signing_key=bytes(signing_key),
        verify_key=bytes(signing_key.verify_key),
    )


def _signing_key(key: Union[SigningKey, KeyPair, bytes]) -> SigningKey:
    if isinstance(key, SigningKey):
        return key
    if isinstance(key, KeyPair):
        key = key.signing_key
    if not isinstance(key, (bytes, bytearray)) or len(key) != SIGNING_KEY_SIZE:
        raise InvalidInputError("invalid Ed25519 signing key", {"field": "signing_key"})
    return SigningKey(bytes(key))


def _verify_key(key: Union[VerifyKey, KeyPair, bytes, str]) -> VerifyKey:
    if isinstance(key, VerifyKey):
        return key
    if isinstance(key, KeyPair):
        key = key.verify_key
    elif isinstance(key, str):
        try:
            key = base64.b64decode(key, validate=True)
        except (binascii.Error, ValueError):
            raise InvalidInputError("verify key is not valid base64", {"field": "verify_key"})
    if not isinstance(key, (bytes, bytearray)) or len(key) != VERIFY_KEY_SIZE:
        raise InvalidInputError("invalid Ed25519 verify key", {"field": "verify_key"})
    return VerifyKey(bytes(key))


def sign_data(data: bytes, signing_key: Union[SigningKey, KeyPair, bytes]) -> bytes:
    """Sign data with Ed25519 signing key."""
    return _signing_key(signing_key).sign(data).signature


def verify_signature(data: bytes, signature: bytes, verify_key: Union[VerifyKey, KeyPair, bytes, str]) -> bool:
    """Verify Ed25519 signature."""
    key = _verify_key(verify_key)
    try:
        key.verify(data, signature)
        return True
    except (BadSignatureError, CryptoError, ValueError):
        return False


def sign_envelope(
    envelope: SemanticActionEnvelope,
    signing_key: Union[SigningKey, KeyPair, bytes]
) -> SemanticActionEnvelope:
    """
    Sign an SAE.

    Args:
        envelope: Unsigned envelope
        signing_key: 32-byte Ed25519 seed, KeyPair or nacl SigningKey

    Returns:
        A new envelope carrying the signature

    Raises:
        InvalidInputError: If the envelope is already signed or the key is malformed
    """
    if envelope.is_signed:
        raise InvalidInputError("envelope is already signed", {"field": "signature"})
    signature = sign_data(envelope.signing_bytes(), signing_key)
    return replace(envelope, signature=signature)


def verify_envelope(
    envelope: SemanticActionEnvelope,
    verify_key: Union[VerifyKey, KeyPair, bytes, str]
) -> bool:
    """
    Verify the signature on an SAE.

    Returns:
        True if the envelope is signed and the signature is valid, False otherwise
    """
    if not envelope.is_signed:
        return False
    return verify_signature(envelope.signing_bytes(), bytes(envelope.signature), verify_key)


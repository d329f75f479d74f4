"""
VAX Semantic Action Envelope (SAE)

The structured action that gets canonicalized and folded into the chain:

    {"action_type": str, "sdto": {...}, "timestamp": <unix ms>}

``sdto`` carries the action's semantic data. A signature, when present, is
serialized as base64 and covers the canonical bytes of the unsigned envelope.
"""

import base64
import binascii
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from .canonicalization import canonicalize, parse_json
from .errors import InvalidInputError
from .util import BytesLike


@dataclass
class SemanticActionEnvelope:
    """
    Semantic Action Envelope.

    Fields:
    - action_type: Class of action (e.g., "transfer"), non-empty
    - timestamp: Creation time in Unix milliseconds
    - sdto: Action-specific data object
    - signature: Optional Ed25519 signature over the unsigned envelope
    """
    action_type: str
    timestamp: int
    sdto: Dict[str, Any]
    signature: Optional[bytes] = None

    def __post_init__(self):
        self._validate()

    def _validate(self):
        if not isinstance(self.action_type, str) or not self.action_type:
            raise InvalidInputError("action_type must be a non-empty string", {"field": "action_type"})
        if isinstance(self.timestamp, bool) or not isinstance(self.timestamp, int):
            raise InvalidInputError("timestamp must be an integer (Unix ms)", {"field": "timestamp"})
        if not isinstance(self.sdto, dict):
            raise InvalidInputError("sdto must be an object/dict", {"field": "sdto"})
        if self.signature is not None and not isinstance(self.signature, (bytes, bytearray)):
            raise InvalidInputError("signature must be bytes", {"field": "signature"})

    @property
    def is_signed(self) -> bool:
        return self.signature is not None

    def unsigned(self) -> 'SemanticActionEnvelope':
        """Copy of this envelope without its signature."""
        return SemanticActionEnvelope(
            action_type=self.action_type,
            timestamp=self.timestamp,
            sdto=self.sdto,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        d = {
            "action_type": self.action_type,
            "sdto": self.sdto,
            "timestamp": self.timestamp,
        }
        if self.signature is not None:
            d["signature"] = base64.b64encode(self.signature).decode('ascii')
        return d

    def to_bytes(self) -> bytes:
        """Canonical VAX-JCS bytes of the envelope, signature included if set."""
        return canonicalize(self.to_dict())

    def signing_bytes(self) -> bytes:
        """Bytes a signature covers: the canonical unsigned envelope."""
        return self.unsigned().to_bytes()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SemanticActionEnvelope':
        """Create an SAE from a dictionary."""
        required = ["action_type", "sdto", "timestamp"]
        missing = [f for f in required if f not in data]
        if missing:
            raise InvalidInputError(f"Missing required fields: {missing}", {"missing": missing})

        signature = data.get("signature")
        if signature is not None:
            try:
                signature = base64.b64decode(signature, validate=True)
            except (binascii.Error, TypeError, ValueError):
                raise InvalidInputError("signature is not valid base64", {"field": "signature"})

        return cls(
            action_type=data["action_type"],
            timestamp=data["timestamp"],
            sdto=data["sdto"],
            signature=signature,
        )

    @classmethod
    def from_bytes(cls, data: Union[str, BytesLike]) -> 'SemanticActionEnvelope':
        """
        Parse an SAE from its canonical bytes.

        Raises:
            InvalidCanonicalizationError: If the bytes are not valid JSON
            InvalidInputError: If required fields are missing or malformed
        """
        obj = parse_json(data)
        if not isinstance(obj, dict):
            raise InvalidInputError("SAE must be a JSON object")
        return cls.from_dict(obj)


def now_ms() -> int:
    """Current time in Unix milliseconds."""
    return time.time_ns() // 1_000_000


def create_sae(
    action_type: str,
    sdto: Dict[str, Any],
    timestamp: Optional[int] = None
) -> SemanticActionEnvelope:
    """
    Factory function to create an unsigned SAE.

    Args:
        action_type: The class of action (e.g., "transfer")
        sdto: Action-specific data
        timestamp: Unix ms; current time if not provided

    Returns:
        SemanticActionEnvelope instance
    """
    if timestamp is None:
        timestamp = now_ms()
    return SemanticActionEnvelope(action_type=action_type, timestamp=timestamp, sdto=sdto)


def build_sae(
    action_type: str,
    sdto: Dict[str, Any],
    timestamp: Optional[int] = None
) -> bytes:
    """
    Build the canonical payload bytes for one action.

    This is what ChainState.append() and the verifiers consume.

    Raises:
        InvalidInputError: On an empty action_type or a non-dict sdto
        InvalidCanonicalizationError: If sdto holds values VAX-JCS rejects
    """
    return create_sae(action_type, sdto, timestamp).to_bytes()

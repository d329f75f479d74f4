"""
VAX Error Kinds

Every failure of the chain core maps to exactly one ErrorKind. All of them are
terminal for a given submission: the same inputs will always fail the same
way, so callers must apply a policy (reject, resync, alert) instead of
retrying.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    """Failure kinds reported by derivation and verification."""
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_COUNTER = "INVALID_COUNTER"
    INVALID_PREV_ANCHOR = "INVALID_PREV_ANCHOR"
    INVALID_CANONICALIZATION = "INVALID_CANONICALIZATION"
    ANCHOR_MISMATCH = "ANCHOR_MISMATCH"
    COUNTER_OVERFLOW = "COUNTER_OVERFLOW"
    OUT_OF_MEMORY = "OUT_OF_MEMORY"


class VaxError(Exception):
    """Base class for all chain errors."""
    kind: ErrorKind = ErrorKind.INVALID_INPUT
    default_message = "vax error"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


class InvalidInputError(VaxError, ValueError):
    """Malformed or missing argument, e.g. a wrong-sized buffer."""
    kind = ErrorKind.INVALID_INPUT
    default_message = "invalid input"


class InvalidCounterError(VaxError):
    """Submitted counter is not expected_counter + 1."""
    kind = ErrorKind.INVALID_COUNTER
    default_message = "invalid counter"


class InvalidPrevAnchorError(VaxError):
    """Submitted previous anchor does not match the expected one."""
    kind = ErrorKind.INVALID_PREV_ANCHOR
    default_message = "invalid previous anchor"


class InvalidCanonicalizationError(VaxError):
    """Payload is not in canonical form."""
    kind = ErrorKind.INVALID_CANONICALIZATION
    default_message = "payload is not canonical"


class AnchorMismatchError(VaxError):
    """Recomputed anchor disagrees with the claimed anchor."""
    kind = ErrorKind.ANCHOR_MISMATCH
    default_message = "anchor mismatch"


class CounterOverflowError(VaxError):
    """Chain exhausted at the maximum counter."""
    kind = ErrorKind.COUNTER_OVERFLOW
    default_message = "counter overflow"


class OutOfMemoryError(VaxError):
    """Allocation failure while assembling a hash message."""
    kind = ErrorKind.OUT_OF_MEMORY
    default_message = "out of memory"


class SchemaValidationError(InvalidInputError):
    """One or more sdto fields broke their schema; all failures are listed."""
    default_message = "sdto failed schema validation"

    def __init__(self, errors: List[str], details: Optional[Dict[str, Any]] = None):
        self.errors = list(errors)
        details = dict(details or {})
        details["errors"] = self.errors
        super().__init__("; ".join(self.errors) or None, details)


ERRORS_BY_KIND = {
    cls.kind: cls
    for cls in (
        InvalidInputError,
        InvalidCounterError,
        InvalidPrevAnchorError,
        InvalidCanonicalizationError,
        AnchorMismatchError,
        CounterOverflowError,
        OutOfMemoryError,
    )
}


def error_for(kind: ErrorKind, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> VaxError:
    """Build the exception instance matching an ErrorKind."""
    return ERRORS_BY_KIND[ErrorKind(kind)](message, details)

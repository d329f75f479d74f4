"""
VAX Verification Algorithm

Lets a relying party confirm that a submitted action is bound to an actor's
chain at exactly the claimed position, by re-deriving gi and SAI from the
expected cursor and the chain secret.

Verification steps (short-circuit at the first failure):
    0. Validate argument sizes and counter ranges     -> INVALID_INPUT
    1. Overflow guard (expected counter is 65535)     -> COUNTER_OVERFLOW
    2. Sequencing (counter == expected + 1)           -> INVALID_COUNTER
    3. Continuity (prev anchor == expected anchor)    -> INVALID_PREV_ANCHOR
    4. Canonical form of the payload (full mode only) -> INVALID_CANONICALIZATION
    5. Re-derive gi for the submitted counter
    6. Re-derive SAI from the submitted prev anchor
    7. Compare with the claimed anchor                -> ANCHOR_MISMATCH

Two modes, exposed as two functions:
    verify_action              full mode, checks canonical form (step 4)
    verify_action_crypto_only  skips step 4; the caller vouches that the
                               payload is already canonical

Every function here is pure; results never depend on earlier calls.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence, Union

from .canonicalization import is_canonical as default_is_canonical
from .chain import ChainCursor
from .errors import ErrorKind, InvalidInputError, VaxError, error_for
from .hashing import derive_nonce, next_anchor
from .keys import ChainSecret
from .logging_config import ChainAuditLogger, audit_log
from .util import (
    ANCHOR_SIZE,
    MAX_COUNTER,
    BytesLike,
    constant_time_compare,
    require_bytes,
    require_counter,
)

CanonicalPredicate = Callable[[bytes], bool]


class VerificationOutcome(str, Enum):
    """
    VALID: action is bound to the chain at the claimed position
    INVALID: action was rejected; ``error`` says which check failed
    """
    VALID = "VALID"
    INVALID = "INVALID"


class VerificationMode(str, Enum):
    FULL = "full"
    CRYPTO_ONLY = "crypto_only"


@dataclass(frozen=True)
class ActionSubmission:
    """An action as presented for verification."""
    counter: int
    prev_anchor: bytes
    payload: bytes
    anchor: bytes


@dataclass
class VerificationResult:
    """
    Result of verifying one action submission.

    On VALID, ``counter`` and ``anchor`` hold the position the action moved
    the chain to; the caller commits them as the next expected cursor.
    """
    outcome: VerificationOutcome
    error: Optional[ErrorKind] = None
    reason: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    counter: Optional[int] = None
    anchor: Optional[bytes] = None

    def is_valid(self) -> bool:
        return self.outcome == VerificationOutcome.VALID

    def raise_for_error(self) -> None:
        """Raise the exception matching ``error`` if the result is INVALID."""
        if not self.is_valid():
            raise error_for(self.error, self.reason, self.details)

    def to_dict(self) -> Dict[str, Any]:
        d = {"outcome": self.outcome.value}
        if self.error:
            d["error"] = self.error.value
        if self.reason:
            d["reason"] = self.reason
        if self.details:
            d["details"] = self.details
        if self.counter is not None:
            d["counter"] = self.counter
        if self.anchor is not None:
            d["anchor"] = self.anchor.hex()
        return d

    @classmethod
    def valid(cls, counter: int, anchor: bytes) -> 'VerificationResult':
        return cls(outcome=VerificationOutcome.VALID, counter=counter, anchor=anchor)

    @classmethod
    def invalid(cls, error: ErrorKind, reason: str, details: Dict[str, Any] = None) -> 'VerificationResult':
        return cls(outcome=VerificationOutcome.INVALID, error=error, reason=reason, details=details or {})


def _require_payload(payload: Union[str, BytesLike]) -> bytes:
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


def _verify(
    expected_counter: int,
    expected_prev_anchor: BytesLike,
    chain_secret: Union[ChainSecret, BytesLike],
    counter: int,
    prev_anchor: BytesLike,
    payload: Union[str, BytesLike],
    anchor: BytesLike,
    is_canonical: Optional[CanonicalPredicate],
) -> VerificationResult:
    # Step 0: boundary validation, before any cryptographic work
    try:
        require_counter(expected_counter, "expected_counter")
        require_counter(counter, "counter")
        expected_prev = require_bytes(expected_prev_anchor, ANCHOR_SIZE, "expected_prev_anchor")
        prev = require_bytes(prev_anchor, ANCHOR_SIZE, "prev_anchor")
        claimed = require_bytes(anchor, ANCHOR_SIZE, "anchor")
        secret = ChainSecret.coerce(chain_secret)
        sae = _require_payload(payload)
    except VaxError as exc:
        return VerificationResult.invalid(exc.kind, exc.message, exc.details)

    # Step 1: overflow guard
    if expected_counter == MAX_COUNTER:
        return VerificationResult.invalid(
            ErrorKind.COUNTER_OVERFLOW,
            "Chain is exhausted",
            {"expected_counter": expected_counter}
        )

    # Step 2: sequencing
    if counter != expected_counter + 1:
        return VerificationResult.invalid(
            ErrorKind.INVALID_COUNTER,
            "Counter is not expected + 1",
            {"expected": expected_counter + 1, "submitted": counter}
        )

    # Step 3: continuity
    if not constant_time_compare(prev, expected_prev):
        return VerificationResult.invalid(
            ErrorKind.INVALID_PREV_ANCHOR,
            "Previous anchor does not match chain state",
            {"counter": counter}
        )

    # Step 4: canonical form
    if is_canonical is not None and not is_canonical(sae):
        return VerificationResult.invalid(
            ErrorKind.INVALID_CANONICALIZATION,
            "Payload is not in canonical form",
            {"counter": counter}
        )

    # Steps 5-6: re-derive gi and the anchor
    try:
        nonce = derive_nonce(secret, counter)
        computed = next_anchor(prev, sae, nonce)
    except VaxError as exc:
        return VerificationResult.invalid(exc.kind, exc.message, exc.details)

    # Step 7: equality
    if not constant_time_compare(computed, claimed):
        return VerificationResult.invalid(
            ErrorKind.ANCHOR_MISMATCH,
            "Recomputed anchor does not match the claimed anchor",
            {"counter": counter}
        )

    return VerificationResult.valid(counter, claimed)


def verify_action(
    expected_counter: int,
    expected_prev_anchor: BytesLike,
    chain_secret: Union[ChainSecret, BytesLike],
    submitted_counter: int,
    submitted_prev_anchor: BytesLike,
    canonical_payload: Union[str, BytesLike],
    submitted_anchor: BytesLike,
    is_canonical: CanonicalPredicate = default_is_canonical,
) -> VerificationResult:
    """
    Verify an action submission in full mode.

    Args:
        expected_counter: Counter of the verifier's current cursor
        expected_prev_anchor: Anchor of the verifier's current cursor
        chain_secret: Session secret shared with the actor
        submitted_counter: Counter claimed by the actor
        submitted_prev_anchor: Previous anchor claimed by the actor
        canonical_payload: Canonical action payload (SAE)
        submitted_anchor: Anchor claimed by the actor
        is_canonical: Canonical-form predicate; VAX-JCS by default

    Returns:
        VerificationResult; verification failures are reported, not raised

    Raises:
        TypeError: If no predicate is given
    """
    if is_canonical is None:
        raise TypeError("verify_action requires a canonical-form predicate; use verify_action_crypto_only to skip it")
    return _verify(
        expected_counter, expected_prev_anchor, chain_secret,
        submitted_counter, submitted_prev_anchor, canonical_payload, submitted_anchor,
        is_canonical,
    )


def verify_action_crypto_only(
    expected_counter: int,
    expected_prev_anchor: BytesLike,
    chain_secret: Union[ChainSecret, BytesLike],
    submitted_counter: int,
    submitted_prev_anchor: BytesLike,
    canonical_payload: Union[str, BytesLike],
    submitted_anchor: BytesLike,
) -> VerificationResult:
    """
    Verify an action submission without the canonical-form check.

    The caller is trusted to have validated the payload's canonical form
    already (e.g. a gateway that re-encodes every SAE). All other checks,
    counter sequencing included, still run.
    """
    return _verify(
        expected_counter, expected_prev_anchor, chain_secret,
        submitted_counter, submitted_prev_anchor, canonical_payload, submitted_anchor,
        None,
    )


@dataclass
class HistoryReport:
    """Result of replaying a sequence of submissions from a starting cursor."""
    result: VerificationResult
    verified: int
    last_cursor: ChainCursor
    failed_index: Optional[int] = None

    def is_valid(self) -> bool:
        return self.result.is_valid()


class ChainVerifier:
    """
    Relying-party verifier bound to one verification mode.

    The verifier holds no chain state: the caller passes the expected cursor
    in and, on success, stores the cursor returned by commit(). Every outcome
    is written to the chain audit logger; the secret never is.
    """

    def __init__(
        self,
        mode: Union[VerificationMode, str] = VerificationMode.FULL,
        is_canonical: Optional[CanonicalPredicate] = default_is_canonical,
        audit: Optional[ChainAuditLogger] = None,
    ):
        self.mode = VerificationMode(mode)
        if self.mode == VerificationMode.FULL and is_canonical is None:
            raise TypeError("full verification mode requires a canonical-form predicate")
        self.is_canonical = is_canonical
        self._audit = audit or audit_log

    def verify(
        self,
        cursor: ChainCursor,
        submission: ActionSubmission,
        chain_secret: Union[ChainSecret, BytesLike],
    ) -> VerificationResult:
        """
        Verify one submission against the expected cursor.

        Args:
            cursor: The verifier's current (counter, anchor)
            submission: The action as presented by the actor
            chain_secret: Session secret shared with the actor

        Returns:
            VerificationResult
        """
        if self.mode == VerificationMode.CRYPTO_ONLY:
            result = verify_action_crypto_only(
                cursor.counter, cursor.anchor, chain_secret,
                submission.counter, submission.prev_anchor, submission.payload, submission.anchor,
            )
        else:
            result = verify_action(
                cursor.counter, cursor.anchor, chain_secret,
                submission.counter, submission.prev_anchor, submission.payload, submission.anchor,
                is_canonical=self.is_canonical,
            )

        if result.is_valid():
            self._audit.verification_passed(self.mode.value, result.counter, result.anchor)
        else:
            self._audit.verification_failed(
                self.mode.value,
                result.error.value,
                result.reason,
                expected_counter=cursor.counter,
            )
        return result

    @staticmethod
    def commit(result: VerificationResult) -> ChainCursor:
        """
        Return the new expected cursor after a successful verification.

        Raises:
            VaxError: The exception matching the failure if ``result`` is INVALID
        """
        result.raise_for_error()
        return ChainCursor(counter=result.counter, anchor=result.anchor)

    def verify_history(
        self,
        chain_secret: Union[ChainSecret, BytesLike],
        genesis_anchor: Union[ChainCursor, BytesLike],
        submissions: Sequence[ActionSubmission],
    ) -> HistoryReport:
        """
        Replay an ordered list of submissions from genesis.

        ``genesis_anchor`` may also be a ChainCursor to resume from a
        persisted position. Stops at the first failure and reports its index
        together with the last cursor that verified.

        Raises:
            InvalidInputError: If the starting anchor is malformed
        """
        if isinstance(genesis_anchor, ChainCursor):
            cursor = genesis_anchor
        else:
            cursor = ChainCursor(counter=0, anchor=genesis_anchor)

        for index, submission in enumerate(submissions):
            result = self.verify(cursor, submission, chain_secret)
            if not result.is_valid():
                return HistoryReport(
                    result=result,
                    verified=index,
                    last_cursor=cursor,
                    failed_index=index,
                )
            cursor = self.commit(result)

        return HistoryReport(
            result=VerificationResult.valid(cursor.counter, cursor.anchor),
            verified=len(submissions),
            last_cursor=cursor,
        )

"""
VAX Verification Test Suite

Covers the ordered checks of verify_action / verify_action_crypto_only:
- Overflow guard
- Sequencing
- Continuity
- Canonical form (full mode only)
- Anchor equality (tamper detection)
and replaying a history through ChainVerifier.
"""

import os
import unittest
from unittest import mock

from vaxchain import (
    ActionSubmission,
    AnchorMismatchError,
    ChainCursor,
    ChainState,
    ChainVerifier,
    ErrorKind,
    InvalidPrevAnchorError,
    VerificationMode,
    VerificationOutcome,
    build_sae,
    compute_anchor,
    verify_action,
    verify_action_crypto_only,
)

ACTOR = "user123:device456"
SALT = bytes.fromhex("a1a2a3a4a5a6a7a8a9aaabacadaeafb0")
SECRET = b"\x42" * 32

P1 = build_sae("transfer", {"amount": 500, "name": "alice"}, timestamp=1234567890)
P2 = build_sae("transfer", {"amount": 250, "name": "bob"}, timestamp=1234567891)
NON_CANONICAL = b'{"name": "alice", "amount": 500}'


def flip_bit(data: bytes, index: int = 0) -> bytes:
    return data[:index] + bytes([data[index] ^ 0x01]) + data[index + 1:]


def build_chain(payloads):
    """Return (genesis_cursor, [ActionSubmission, ...]) for an honest actor."""
    state = ChainState.new(ACTOR, SECRET, SALT)
    genesis = state.cursor
    submissions = []
    for payload in payloads:
        prev = state.current_anchor
        anchor = state.append(payload)
        submissions.append(ActionSubmission(state.counter, prev, payload, anchor))
    return genesis, submissions


class TestVerifyAction(unittest.TestCase):

    def setUp(self):
        self.genesis, self.subs = build_chain([P1, P2])

    def verify(self, sub, expected=None, **kwargs):
        expected = expected or self.genesis
        return verify_action(
            expected.counter, expected.anchor, SECRET,
            sub.counter, sub.prev_anchor, sub.payload, sub.anchor,
            **kwargs
        )

    def test_two_action_chain_verifies(self):
        s1, s2 = self.subs
        r1 = self.verify(s1)
        self.assertTrue(r1.is_valid())
        self.assertEqual(r1.outcome, VerificationOutcome.VALID)
        self.assertEqual((r1.counter, r1.anchor), (1, s1.anchor))

        r2 = self.verify(s2, expected=ChainCursor(r1.counter, r1.anchor))
        self.assertTrue(r2.is_valid())
        self.assertEqual(r2.counter, 2)

    def test_genesis_substituted_for_prev_anchor(self):
        _, s2 = self.subs
        # Counter is right but the prev anchor is genesis, not SAI_1
        forged = ActionSubmission(
            2, self.genesis.anchor, s2.payload,
            compute_anchor(SECRET, 2, self.genesis.anchor, s2.payload),
        )
        result = self.verify(forged, expected=ChainCursor(1, self.subs[0].anchor))
        self.assertFalse(result.is_valid())
        self.assertEqual(result.error, ErrorKind.INVALID_PREV_ANCHOR)

    def test_skipped_counter(self):
        _, s2 = self.subs
        # Verifier is at genesis (N=0); actor submits N+2
        result = self.verify(s2)
        self.assertEqual(result.error, ErrorKind.INVALID_COUNTER)
        self.assertEqual(result.details, {"expected": 1, "submitted": 2})

    def test_replayed_counter(self):
        s1, _ = self.subs
        result = self.verify(s1, expected=ChainCursor(1, s1.anchor))
        self.assertEqual(result.error, ErrorKind.INVALID_COUNTER)

    def test_tampered_anchor(self):
        s1, _ = self.subs
        tampered = ActionSubmission(s1.counter, s1.prev_anchor, s1.payload, flip_bit(s1.anchor, 31))
        result = self.verify(tampered)
        self.assertEqual(result.error, ErrorKind.ANCHOR_MISMATCH)

    def test_tampered_payload(self):
        s1, _ = self.subs
        payload = P1.replace(b"500", b"900")
        tampered = ActionSubmission(s1.counter, s1.prev_anchor, payload, s1.anchor)
        result = self.verify(tampered)
        self.assertEqual(result.error, ErrorKind.ANCHOR_MISMATCH)

    def test_wrong_secret(self):
        s1, _ = self.subs
        result = verify_action(
            0, self.genesis.anchor, b"\x43" * 32,
            s1.counter, s1.prev_anchor, s1.payload, s1.anchor,
        )
        self.assertEqual(result.error, ErrorKind.ANCHOR_MISMATCH)

    def test_overflow_guard_runs_first(self):
        s1, _ = self.subs
        result = self.verify(s1, expected=ChainCursor(65535, self.genesis.anchor))
        self.assertEqual(result.error, ErrorKind.COUNTER_OVERFLOW)

    def test_sequencing_checked_before_continuity(self):
        s1, _ = self.subs
        bad = ActionSubmission(5, flip_bit(s1.prev_anchor), s1.payload, s1.anchor)
        self.assertEqual(self.verify(bad).error, ErrorKind.INVALID_COUNTER)

    def test_invalid_input(self):
        s1, _ = self.subs
        cases = [
            (0, self.genesis.anchor[:31], SECRET, 1, s1.prev_anchor, s1.payload, s1.anchor),
            (0, self.genesis.anchor, SECRET[:31], 1, s1.prev_anchor, s1.payload, s1.anchor),
            (0, self.genesis.anchor, SECRET, 1, s1.prev_anchor[:1], s1.payload, s1.anchor),
            (0, self.genesis.anchor, SECRET, 1, s1.prev_anchor, s1.payload, s1.anchor + b"\x00"),
            (0, self.genesis.anchor, SECRET, 1, s1.prev_anchor, b"", s1.anchor),
            (0, self.genesis.anchor, SECRET, 70000, s1.prev_anchor, s1.payload, s1.anchor),
            (-1, self.genesis.anchor, SECRET, 1, s1.prev_anchor, s1.payload, s1.anchor),
        ]
        for args in cases:
            result = verify_action(*args)
            self.assertEqual(result.error, ErrorKind.INVALID_INPUT, args)
            result = verify_action_crypto_only(*args)
            self.assertEqual(result.error, ErrorKind.INVALID_INPUT, args)

    def test_result_is_pure(self):
        s1, _ = self.subs
        first = self.verify(s1)
        second = self.verify(s1)
        self.assertEqual(first, second)


class TestVerificationModes(unittest.TestCase):

    def setUp(self):
        state = ChainState.new(ACTOR, SECRET, SALT)
        self.genesis = state.cursor
        self.prev = state.current_anchor
        self.anchor = state.append(NON_CANONICAL)

    def test_full_mode_rejects_non_canonical(self):
        result = verify_action(
            0, self.genesis.anchor, SECRET,
            1, self.prev, NON_CANONICAL, self.anchor,
        )
        self.assertEqual(result.error, ErrorKind.INVALID_CANONICALIZATION)

    def test_crypto_only_accepts_non_canonical(self):
        result = verify_action_crypto_only(
            0, self.genesis.anchor, SECRET,
            1, self.prev, NON_CANONICAL, self.anchor,
        )
        self.assertTrue(result.is_valid())

    def test_crypto_only_still_checks_sequencing(self):
        result = verify_action_crypto_only(
            0, self.genesis.anchor, SECRET,
            2, self.prev, NON_CANONICAL, self.anchor,
        )
        self.assertEqual(result.error, ErrorKind.INVALID_COUNTER)

    def test_custom_predicate(self):
        result = verify_action(
            0, self.genesis.anchor, SECRET,
            1, self.prev, NON_CANONICAL, self.anchor,
            is_canonical=lambda b: True,
        )
        self.assertTrue(result.is_valid())

    def test_full_mode_requires_predicate(self):
        with self.assertRaises(TypeError):
            verify_action(
                0, self.genesis.anchor, SECRET,
                1, self.prev, NON_CANONICAL, self.anchor,
                is_canonical=None,
            )
        with self.assertRaises(TypeError):
            ChainVerifier(mode=VerificationMode.FULL, is_canonical=None)


class TestVerificationResult(unittest.TestCase):

    def test_raise_for_error(self):
        genesis, (s1, _) = build_chain([P1, P2])
        bad = ActionSubmission(1, flip_bit(genesis.anchor), s1.payload, s1.anchor)
        result = verify_action(0, genesis.anchor, SECRET, 1, bad.prev_anchor, bad.payload, bad.anchor)
        with self.assertRaises(InvalidPrevAnchorError) as ctx:
            result.raise_for_error()
        self.assertEqual(ctx.exception.kind, ErrorKind.INVALID_PREV_ANCHOR)

    def test_to_dict(self):
        genesis, (s1, _) = build_chain([P1, P2])
        result = verify_action(0, genesis.anchor, SECRET, 1, s1.prev_anchor, s1.payload, s1.anchor)
        result.raise_for_error()
        self.assertEqual(
            result.to_dict(),
            {"outcome": "VALID", "counter": 1, "anchor": s1.anchor.hex()},
        )


class TestChainVerifier(unittest.TestCase):

    def setUp(self):
        self.genesis, self.subs = build_chain([P1, P2, build_sae("logout", {}, timestamp=1234567892)])
        self.verifier = ChainVerifier(mode=VerificationMode.FULL)

    def test_verify_and_commit(self):
        cursor = self.genesis
        for sub in self.subs:
            result = self.verifier.verify(cursor, sub, SECRET)
            cursor = self.verifier.commit(result)
        self.assertEqual(cursor, ChainCursor(3, self.subs[-1].anchor))

    def test_commit_raises_on_failure(self):
        sub = self.subs[0]
        tampered = ActionSubmission(sub.counter, sub.prev_anchor, sub.payload, flip_bit(sub.anchor))
        result = self.verifier.verify(self.genesis, tampered, SECRET)
        with self.assertRaises(AnchorMismatchError):
            self.verifier.commit(result)

    def test_history_valid(self):
        report = self.verifier.verify_history(SECRET, self.genesis.anchor, self.subs)
        self.assertTrue(report.is_valid())
        self.assertEqual(report.verified, 3)
        self.assertIsNone(report.failed_index)
        self.assertEqual(report.last_cursor, ChainCursor(3, self.subs[-1].anchor))

    def test_history_stops_at_first_failure(self):
        subs = list(self.subs)
        s = subs[1]
        subs[1] = ActionSubmission(s.counter, s.prev_anchor, s.payload, flip_bit(s.anchor))
        report = self.verifier.verify_history(SECRET, self.genesis.anchor, subs)
        self.assertFalse(report.is_valid())
        self.assertEqual(report.failed_index, 1)
        self.assertEqual(report.verified, 1)
        self.assertEqual(report.last_cursor, ChainCursor(1, self.subs[0].anchor))
        self.assertEqual(report.result.error, ErrorKind.ANCHOR_MISMATCH)

    def test_history_detects_reordering(self):
        subs = [self.subs[1], self.subs[0], self.subs[2]]
        report = self.verifier.verify_history(SECRET, self.genesis.anchor, subs)
        self.assertEqual(report.failed_index, 0)
        self.assertEqual(report.result.error, ErrorKind.INVALID_COUNTER)

    def test_history_resumes_from_cursor(self):
        start = ChainCursor(1, self.subs[0].anchor)
        report = self.verifier.verify_history(SECRET, start, self.subs[1:])
        self.assertTrue(report.is_valid())
        self.assertEqual(report.last_cursor.counter, 3)

    def test_empty_history(self):
        report = self.verifier.verify_history(SECRET, self.genesis.anchor, [])
        self.assertTrue(report.is_valid())
        self.assertEqual(report.last_cursor, self.genesis)

    def test_default_mode_is_full(self):
        genesis, (sub,) = build_chain([NON_CANONICAL])
        with mock.patch.dict(os.environ, {"VAX_VERIFY_MODE": "crypto_only"}):
            verifier = ChainVerifier()
            result = verifier.verify(genesis, sub, SECRET)
        self.assertEqual(verifier.mode, VerificationMode.FULL)
        self.assertEqual(result.error, ErrorKind.INVALID_CANONICALIZATION)

    def test_mode_from_string(self):
        self.assertEqual(ChainVerifier(mode="crypto_only").mode, VerificationMode.CRYPTO_ONLY)


if __name__ == "__main__":
    unittest.main()

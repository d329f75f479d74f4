"""
VAX Chain State Tests

Append, sync, overflow and disposal of the per-actor cursor.
"""

import threading
import unittest

from vaxchain import (
    ChainCursor,
    ChainSecret,
    ChainSession,
    ChainState,
    CounterOverflowError,
    InvalidInputError,
    compute_anchor,
    compute_genesis_anchor,
    restore_state,
)

ACTOR = "user123:device456"
SALT = bytes.fromhex("a1a2a3a4a5a6a7a8a9aaabacadaeafb0")
SECRET = b"\x42" * 32
GENESIS_VECTOR = "afc50728cd79e805a8ae06875a1ddf78ca11b0d56ec300b160fb71f50ce658c3"


class TestChainCursor(unittest.TestCase):

    def test_normalizes_anchor(self):
        cursor = ChainCursor(counter=3, anchor=bytearray(32))
        self.assertIsInstance(cursor.anchor, bytes)
        self.assertEqual(cursor.to_dict(), {"counter": 3, "anchor": "00" * 32})

    def test_rejects_bad_values(self):
        with self.assertRaises(InvalidInputError):
            ChainCursor(counter=-1, anchor=bytes(32))
        with self.assertRaises(InvalidInputError):
            ChainCursor(counter=65536, anchor=bytes(32))
        with self.assertRaises(InvalidInputError):
            ChainCursor(counter=0, anchor=bytes(31))

    def test_flags(self):
        self.assertTrue(ChainCursor(0, bytes(32)).is_genesis)
        self.assertTrue(ChainCursor(65535, bytes(32)).is_exhausted)
        self.assertFalse(ChainCursor(1, bytes(32)).is_exhausted)


class TestChainState(unittest.TestCase):

    def setUp(self):
        self.state = ChainState.new(ACTOR, SECRET, SALT)

    def test_starts_at_genesis(self):
        self.assertEqual(self.state.counter, 0)
        self.assertEqual(self.state.current_anchor.hex(), GENESIS_VECTOR)
        self.assertTrue(self.state.cursor.is_genesis)

    def test_two_action_continuity(self):
        genesis = self.state.current_anchor

        a1 = self.state.append(b'{"n":1}')
        self.assertEqual(self.state.counter, 1)
        self.assertEqual(a1, compute_anchor(SECRET, 1, genesis, b'{"n":1}'))

        a2 = self.state.append(b'{"n":2}')
        self.assertEqual(self.state.counter, 2)
        self.assertEqual(self.state.current_anchor, a2)
        self.assertEqual(a2, compute_anchor(SECRET, 2, a1, b'{"n":2}'))

    def test_same_payload_gives_different_anchors(self):
        a1 = self.state.append(b'{"n":1}')
        a2 = self.state.append(b'{"n":1}')
        self.assertNotEqual(a1, a2)

    def test_failed_append_does_not_mutate(self):
        before = self.state.cursor
        with self.assertRaises(InvalidInputError):
            self.state.append(b"")
        self.assertIs(self.state.cursor, before)

    def test_overflow_raises_without_mutation(self):
        anchor = b"\x99" * 32
        self.state.sync(65535, anchor)
        with self.assertRaises(CounterOverflowError):
            self.state.append(b'{"n":1}')
        self.assertEqual(self.state.counter, 65535)
        self.assertEqual(self.state.current_anchor, anchor)
        self.assertTrue(self.state.is_exhausted)

    def test_last_append_reaches_max_counter(self):
        self.state.sync(65534, b"\x01" * 32)
        self.state.append(b'{"n":1}')
        self.assertEqual(self.state.counter, 65535)
        with self.assertRaises(CounterOverflowError):
            self.state.append(b'{"n":2}')

    def test_sync_replaces_cursor(self):
        self.state.sync(10, b"\x22" * 32)
        self.assertEqual(self.state.counter, 10)
        self.assertEqual(self.state.current_anchor, b"\x22" * 32)

        anchor = self.state.append(b'{"n":11}')
        self.assertEqual(anchor, compute_anchor(SECRET, 11, b"\x22" * 32, b'{"n":11}'))

    def test_sync_validates(self):
        before = self.state.cursor
        with self.assertRaises(InvalidInputError):
            self.state.sync(70000, b"\x22" * 32)
        with self.assertRaises(InvalidInputError):
            self.state.sync(1, b"\x22" * 16)
        self.assertIs(self.state.cursor, before)

    def test_close_zeroizes_secret(self):
        secret = ChainSecret(SECRET)
        state = ChainState.new(ACTOR, secret, SALT)
        state.close()
        self.assertTrue(state.closed)
        self.assertTrue(secret.disposed)
        with self.assertRaises(InvalidInputError):
            state.append(b'{"n":1}')
        self.assertEqual(state.counter, 0)

    def test_context_manager_closes(self):
        with ChainState.new(ACTOR, SECRET, SALT) as state:
            state.append(b'{"n":1}')
        self.assertTrue(state.closed)

    def test_repr_hides_secret(self):
        text = repr(self.state)
        self.assertNotIn(SECRET.hex(), text)
        self.assertIn("ChainSecret(<set>)", text)

    def test_invalid_construction(self):
        with self.assertRaises(InvalidInputError):
            ChainState.new("", SECRET, SALT)
        with self.assertRaises(InvalidInputError):
            ChainState.new(ACTOR, SECRET[:16], SALT)
        with self.assertRaises(InvalidInputError):
            ChainState.new(ACTOR, SECRET, SALT[:8])

    def test_restore_state(self):
        self.state.append(b'{"n":1}')
        restored = restore_state(ACTOR, SECRET, self.state.counter, self.state.current_anchor)
        self.assertEqual(
            restored.append(b'{"n":2}'),
            self.state.append(b'{"n":2}'),
        )

    def test_independent_actors(self):
        other = ChainState.new("user999:device1", SECRET, SALT)
        self.assertNotEqual(other.current_anchor, self.state.current_anchor)
        self.assertEqual(
            other.current_anchor,
            compute_genesis_anchor("user999:device1", SALT),
        )


class TestChainSecret(unittest.TestCase):

    def test_repr_and_pickle(self):
        secret = ChainSecret(SECRET)
        self.assertEqual(repr(secret), "ChainSecret(<set>)")
        secret.zeroize()
        self.assertEqual(repr(secret), "ChainSecret(<zeroized>)")
        with self.assertRaises(TypeError):
            secret.__reduce__()

    def test_generate(self):
        a = ChainSecret.generate()
        b = ChainSecret.generate()
        self.assertNotEqual(a.reveal(), b.reveal())
        self.assertEqual(len(a.reveal()), 32)


class TestChainSession(unittest.TestCase):

    def test_concurrent_appends_are_serialised(self):
        session = ChainSession.open(ACTOR, SECRET, SALT)
        errors = []

        def worker():
            try:
                for _ in range(50):
                    session.append(b'{"op":"x"}')
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertEqual(session.snapshot().counter, 200)

        # Rebuild sequentially and compare the final anchor
        replay = ChainState.new(ACTOR, SECRET, SALT)
        for _ in range(200):
            replay.append(b'{"op":"x"}')
        self.assertEqual(session.snapshot().anchor, replay.current_anchor)

    def test_append_returns_cursor(self):
        with ChainSession.open(ACTOR, SECRET, SALT) as session:
            cursor = session.append(b'{"n":1}')
            self.assertEqual(cursor.counter, 1)
            self.assertEqual(session.snapshot(), cursor)
            self.assertEqual(session.actor_id, ACTOR)

            synced = session.sync(5, b"\x05" * 32)
            self.assertEqual(synced, ChainCursor(5, b"\x05" * 32))


if __name__ == "__main__":
    unittest.main()

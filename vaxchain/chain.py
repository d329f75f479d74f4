"""
VAX Chain State

Per-actor cursor over the chain: (counter, current anchor).

Concurrency:
    ChainState is single-writer. The read-derive-write sequence of append()
    is not atomic against a second writer, so callers must serialise appends
    for one actor, either with their own per-actor lock or by going through
    ChainSession, which holds one. Reads see a consistent cursor at any time
    because counter and anchor live in one immutable ChainCursor that is
    replaced with a single reference assignment.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Union

from .errors import CounterOverflowError, InvalidInputError
from .hashing import compute_genesis_anchor, derive_nonce, next_anchor
from .keys import ChainSecret
from .logging_config import audit_log
from .util import ANCHOR_SIZE, MAX_COUNTER, BytesLike, require_bytes, require_counter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainCursor:
    """
    Position of a chain: the anchor after ``counter`` actions.

    Counter 0 is genesis.
    """
    counter: int
    anchor: bytes

    def __post_init__(self):
        require_counter(self.counter)
        object.__setattr__(self, "anchor", require_bytes(self.anchor, ANCHOR_SIZE, "anchor"))

    @property
    def is_genesis(self) -> bool:
        return self.counter == 0

    @property
    def is_exhausted(self) -> bool:
        return self.counter == MAX_COUNTER

    def to_dict(self):
        return {"counter": self.counter, "anchor": self.anchor.hex()}


class ChainState:
    """
    Mutable cursor for one actor session.

    Created at genesis, advanced only by append(), overridden only by sync(),
    and disposed with close(), which zeroizes the chain secret.
    """

    def __init__(
        self,
        actor_id: str,
        chain_secret: Union[ChainSecret, BytesLike],
        cursor: ChainCursor
    ):
        self._actor_id = actor_id
        self._secret = ChainSecret.coerce(chain_secret)
        self._cursor = cursor

    @classmethod
    def new(
        cls,
        actor_id: str,
        chain_secret: Union[ChainSecret, BytesLike],
        genesis_salt: BytesLike
    ) -> "ChainState":
        """
        Start a chain at genesis.

        Args:
            actor_id: Actor identifier (user+device)
            chain_secret: 32-byte session secret
            genesis_salt: 16-byte per-actor salt

        Returns:
            ChainState with counter 0 and the genesis anchor

        Raises:
            InvalidInputError: On an empty actor_id or wrong-sized secret/salt
        """
        secret = ChainSecret.coerce(chain_secret)
        genesis = compute_genesis_anchor(actor_id, genesis_salt)
        state = cls(actor_id, secret, ChainCursor(counter=0, anchor=genesis))
        audit_log.chain_created(str(actor_id), genesis)
        return state

    @property
    def actor_id(self) -> str:
        return self._actor_id

    @property
    def cursor(self) -> ChainCursor:
        return self._cursor

    @property
    def counter(self) -> int:
        return self._cursor.counter

    @property
    def current_anchor(self) -> bytes:
        return self._cursor.anchor

    @property
    def is_exhausted(self) -> bool:
        return self._cursor.is_exhausted

    @property
    def closed(self) -> bool:
        return self._secret.disposed

    def append(self, canonical_payload: Union[str, BytesLike]) -> bytes:
        """
        Bind one action into the chain.

        Derives gi for counter + 1, folds the payload onto the current anchor
        and then advances counter and anchor together. On any error the state
        is left exactly as it was.

        Args:
            canonical_payload: Canonical SAE bytes

        Returns:
            The new 32-byte anchor

        Raises:
            CounterOverflowError: If the chain is already at counter 65535
            InvalidInputError: On an empty payload or a closed state
        """
        current = self._cursor
        if current.is_exhausted:
            audit_log.counter_overflow(str(self._actor_id), current.counter)
            raise CounterOverflowError(
                f"chain for {self._actor_id} is exhausted at counter {current.counter}",
                {"counter": current.counter},
            )

        counter = current.counter + 1
        nonce = derive_nonce(self._secret, counter)
        anchor = next_anchor(current.anchor, canonical_payload, nonce)

        self._cursor = ChainCursor(counter=counter, anchor=anchor)
        audit_log.action_appended(str(self._actor_id), counter, anchor)
        return anchor

    def sync(self, counter: int, anchor: BytesLike) -> None:
        """
        Replace the cursor with values from an authoritative source.

        This is a recovery hatch after reconnect/resynchronization. Nothing
        is recomputed, so the values must come from a verified source.

        Raises:
            InvalidInputError: If the counter or anchor is malformed
        """
        previous = self._cursor
        self._cursor = ChainCursor(counter=counter, anchor=anchor)
        audit_log.chain_synced(str(self._actor_id), previous.counter, counter, self._cursor.anchor)

    def close(self) -> None:
        """Retire the session and zeroize the chain secret."""
        self._secret.zeroize()

    def __enter__(self) -> "ChainState":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"ChainState(actor_id={self._actor_id!r}, counter={self.counter}, "
            f"anchor={self.current_anchor.hex()[:16]}..., secret={self._secret!r})"
        )


class ChainSession:
    """
    Single-writer guard around one actor's ChainState.

    Appends and syncs are serialised with a per-session lock; snapshot()
    returns the immutable cursor without blocking writers. One ChainSession
    should exist per actor session and be owned by the session object, never
    shared through a module-level registry.
    """

    def __init__(self, state: ChainState):
        self._state = state
        self._lock = threading.Lock()

    @classmethod
    def open(
        cls,
        actor_id: str,
        chain_secret: Union[ChainSecret, BytesLike],
        genesis_salt: BytesLike
    ) -> "ChainSession":
        """Create a session whose chain starts at genesis."""
        return cls(ChainState.new(actor_id, chain_secret, genesis_salt))

    @property
    def actor_id(self) -> str:
        return self._state.actor_id

    def snapshot(self) -> ChainCursor:
        return self._state.cursor

    def append(self, canonical_payload: Union[str, BytesLike]) -> ChainCursor:
        """Append under the session lock and return the resulting cursor."""
        with self._lock:
            self._state.append(canonical_payload)
            return self._state.cursor

    def sync(self, counter: int, anchor: BytesLike) -> ChainCursor:
        with self._lock:
            self._state.sync(counter, anchor)
            return self._state.cursor

    def close(self) -> None:
        with self._lock:
            self._state.close()

    def __enter__(self) -> "ChainSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def restore_state(
    actor_id: str,
    chain_secret: Union[ChainSecret, BytesLike],
    counter: int,
    anchor: BytesLike
) -> ChainState:
    """
    Rebuild a ChainState from a persisted (counter, anchor) pair.

    Persistence is the caller's concern; this only reattaches the secret.
    """
    if not actor_id:
        raise InvalidInputError("actor_id must not be empty", {"field": "actor_id"})
    state = ChainState(actor_id, chain_secret, ChainCursor(counter=counter, anchor=anchor))
    logger.debug("restored chain for %s at counter %d", actor_id, counter)
    return state

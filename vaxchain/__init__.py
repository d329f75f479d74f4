"""
VAX Action Chain

Version: 0.1.0

Binds every action an actor performs into a per-actor hash chain, so a
verifier holding the same chain secret can tell whether an action sits at
exactly the claimed position, in order, unmodified and not replayed.

    SAI_0 = SHA-256("VAX-GENESIS" || actor_id || genesis_salt)
    gi_n  = HMAC-SHA-256(k_chain, "VAX-GI" || u16_be(n))
    SAI_n = SHA-256("VAX-SAI" || SAI_{n-1} || SHA-256(SAE_n) || gi_n)

Usage:
    from vaxchain import (
        ChainState,
        ChainVerifier,
        ActionSubmission,
        build_sae,
    )

    # Actor side
    state = ChainState.new("user123:device456", chain_secret, genesis_salt)
    genesis = state.cursor

    payload = build_sae("transfer", {"amount": 500, "name": "alice"})
    prev = state.current_anchor
    anchor = state.append(payload)

    # Verifier side
    verifier = ChainVerifier()
    result = verifier.verify(
        genesis,
        ActionSubmission(state.counter, prev, payload, anchor),
        chain_secret,
    )

    if result.is_valid():
        expected = verifier.commit(result)
    else:
        # INVALID - result.error names the failed check
        reason = result.reason
"""

__version__ = "0.1.0"

# Errors
from .errors import (
    ErrorKind,
    VaxError,
    InvalidInputError,
    InvalidCounterError,
    InvalidPrevAnchorError,
    InvalidCanonicalizationError,
    AnchorMismatchError,
    CounterOverflowError,
    OutOfMemoryError,
    SchemaValidationError,
)

# Hashing
from .hashing import (
    compute_genesis_anchor,
    derive_nonce,
    next_anchor,
    compute_anchor,
    encode_counter,
    sha256,
)

# Secrets
from .keys import ChainSecret

# Chain state
from .chain import (
    ChainCursor,
    ChainState,
    ChainSession,
    restore_state,
)

# Canonicalization
from .canonicalization import (
    canonicalize,
    canonicalize_json,
    canonicalize_str,
    is_canonical,
)

# Verification
from .verifier import (
    ActionSubmission,
    ChainVerifier,
    HistoryReport,
    VerificationMode,
    VerificationOutcome,
    VerificationResult,
    verify_action,
    verify_action_crypto_only,
)

# SAE
from .sae import (
    SemanticActionEnvelope,
    build_sae,
    create_sae,
)

# SDTO schema
from .sdto import (
    FieldSpec,
    FluentAction,
    SchemaBuilder,
    parse_schema,
    validate_data,
)

# Signing
from .signing import (
    KeyPair,
    generate_key_pair,
    sign_envelope,
    verify_envelope,
)

# Utilities
from .util import (
    ANCHOR_SIZE,
    CHAIN_SECRET_SIZE,
    GENESIS_SALT_SIZE,
    MAX_COUNTER,
    NONCE_SIZE,
    from_hex,
    generate_chain_secret,
    generate_genesis_salt,
    to_hex,
)

__all__ = [
    # Version
    "__version__",

    # Errors
    "ErrorKind",
    "VaxError",
    "InvalidInputError",
    "InvalidCounterError",
    "InvalidPrevAnchorError",
    "InvalidCanonicalizationError",
    "AnchorMismatchError",
    "CounterOverflowError",
    "OutOfMemoryError",
    "SchemaValidationError",

    # Hashing
    "compute_genesis_anchor",
    "derive_nonce",
    "next_anchor",
    "compute_anchor",
    "encode_counter",
    "sha256",

    # Secrets
    "ChainSecret",

    # Chain state
    "ChainCursor",
    "ChainState",
    "ChainSession",
    "restore_state",

    # Canonicalization
    "canonicalize",
    "canonicalize_json",
    "canonicalize_str",
    "is_canonical",

    # Verification
    "ActionSubmission",
    "ChainVerifier",
    "HistoryReport",
    "VerificationMode",
    "VerificationOutcome",
    "VerificationResult",
    "verify_action",
    "verify_action_crypto_only",

    # SAE
    "SemanticActionEnvelope",
    "build_sae",
    "create_sae",

    # SDTO schema
    "FieldSpec",
    "FluentAction",
    "SchemaBuilder",
    "parse_schema",
    "validate_data",

    # Signing
    "KeyPair",
    "generate_key_pair",
    "sign_envelope",
    "verify_envelope",

    # Utilities
    "ANCHOR_SIZE",
    "CHAIN_SECRET_SIZE",
    "GENESIS_SALT_SIZE",
    "MAX_COUNTER",
    "NONCE_SIZE",
    "from_hex",
    "generate_chain_secret",
    "generate_genesis_salt",
    "to_hex",
]

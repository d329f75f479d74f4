#!/usr/bin/env python3
"""
VAX Command Line Interface

Usage:
    vaxchain genesis --actor <id> --salt <hex>
    vaxchain nonce --secret <hex> --counter <n>
    vaxchain append --actor <id> --salt <hex> --secret <hex> --payload-file <file> [...]
    vaxchain verify --secret <hex> --expected-counter <n> --expected-prev <hex> --submission <file>
    vaxchain canonicalize --file <file>
    vaxchain demo

Exit codes: 0 success/VALID, 1 chain error or INVALID, 2 usage error.
"""

import argparse
import json
import sys
from typing import List, Optional

from pydantic import ValidationError

from .errors import VaxError
from .util import MAX_COUNTER


def load_bytes(path: str) -> bytes:
    """Load raw bytes from file."""
    with open(path, 'rb') as f:
        return f.read()


def print_json(data: dict):
    print(json.dumps(data, sort_keys=True))


def counter_arg(value: str) -> int:
    """argparse type for a uint16 chain counter."""
    try:
        counter = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid counter: {value!r}")
    if not 0 <= counter <= MAX_COUNTER:
        raise argparse.ArgumentTypeError(f"counter must be in 0..{MAX_COUNTER}, got {counter}")
    return counter


def cmd_genesis(args):
    """Compute the genesis anchor for an actor."""
    from .hashing import compute_genesis_anchor
    from .util import GENESIS_SALT_SIZE, from_hex

    salt = from_hex(args.salt, GENESIS_SALT_SIZE, "salt")
    anchor = compute_genesis_anchor(args.actor, salt)
    print_json({"counter": 0, "anchor": anchor.hex()})
    return 0


def cmd_nonce(args):
    """Derive gi for a counter."""
    from .hashing import derive_nonce
    from .util import CHAIN_SECRET_SIZE, from_hex

    secret = from_hex(args.secret, CHAIN_SECRET_SIZE, "secret")
    nonce = derive_nonce(secret, args.counter)
    print_json({"counter": args.counter, "nonce": nonce.hex()})
    return 0


def cmd_append(args):
    """Build a chain from genesis and print one submission per payload."""
    from .canonicalization import canonicalize_json
    from .chain import ChainState
    from .models import ActionSubmissionModel
    from .util import CHAIN_SECRET_SIZE, GENESIS_SALT_SIZE, from_hex
    from .verifier import ActionSubmission

    salt = from_hex(args.salt, GENESIS_SALT_SIZE, "salt")
    secret = from_hex(args.secret, CHAIN_SECRET_SIZE, "secret")

    with ChainState.new(args.actor, secret, salt) as state:
        for path in args.payload_file:
            # Payload files are JSON; they are appended in canonical form
            payload = canonicalize_json(load_bytes(path))
            prev = state.current_anchor
            anchor = state.append(payload)
            submission = ActionSubmission(
                counter=state.counter,
                prev_anchor=prev,
                payload=payload,
                anchor=anchor,
            )
            print(ActionSubmissionModel.from_submission(submission).model_dump_json())
    return 0


def cmd_verify(args):
    """Verify one action submission."""
    from .chain import ChainCursor
    from .models import ActionSubmissionModel
    from .util import ANCHOR_SIZE, CHAIN_SECRET_SIZE, from_hex
    from .verifier import ChainVerifier, VerificationMode

    secret = from_hex(args.secret, CHAIN_SECRET_SIZE, "secret")
    expected = ChainCursor(
        counter=args.expected_counter,
        anchor=from_hex(args.expected_prev, ANCHOR_SIZE, "expected_prev"),
    )

    try:
        model = ActionSubmissionModel.model_validate_json(load_bytes(args.submission))
    except ValidationError as e:
        print(f"✗ INVALID submission file: {e.error_count()} error(s)", file=sys.stderr)
        for err in e.errors():
            loc = ".".join(str(p) for p in err["loc"])
            print(f"  - {loc}: {err['msg']}", file=sys.stderr)
        return 1

    mode = VerificationMode.CRYPTO_ONLY if args.crypto_only else VerificationMode.FULL
    verifier = ChainVerifier(mode=mode)
    result = verifier.verify(expected, model.to_submission(), secret)

    print_json(result.to_dict())
    if result.is_valid():
        print(f"✓ {result.outcome.value} ({verifier.mode.value})", file=sys.stderr)
        return 0
    print(f"✗ {result.error.value}: {result.reason}", file=sys.stderr)
    return 1


def cmd_canonicalize(args):
    """Print the VAX-JCS form of a JSON file."""
    from .canonicalization import canonicalize_json

    sys.stdout.write(canonicalize_json(load_bytes(args.file)).decode('ascii'))
    sys.stdout.write("\n")
    return 0


def cmd_demo(args):
    """Run a demonstration of a VAX chain."""
    from .chain import ChainCursor, ChainState
    from .sae import create_sae
    from .signing import generate_key_pair, sign_envelope, verify_envelope
    from .util import generate_chain_secret, generate_genesis_salt
    from .verifier import ActionSubmission, ChainVerifier

    print("=" * 60)
    print("VAX Chain Demonstration")
    print("=" * 60)

    actor_id = "user123:device456"
    secret = generate_chain_secret()
    salt = generate_genesis_salt()

    state = ChainState.new(actor_id, secret, salt)
    genesis = state.cursor
    print(f"\nActor: {actor_id}")
    print(f"Genesis anchor: {genesis.anchor.hex()}")

    keys = generate_key_pair()
    actions = [
        create_sae("transfer", {"amount": 500, "name": "alice"}),
        create_sae("transfer", {"amount": 250, "name": "bob"}),
    ]

    submissions = []
    for envelope in actions:
        signed = sign_envelope(envelope, keys)
        payload = envelope.to_bytes()
        prev = state.current_anchor
        anchor = state.append(payload)
        submissions.append(ActionSubmission(state.counter, prev, payload, anchor))
        print(f"\nAction {state.counter}: {payload.decode('ascii')}")
        print(f"  Anchor:    {anchor.hex()}")
        print(f"  Signature: {'valid' if verify_envelope(signed, keys) else 'INVALID'}")
    state.close()

    # Scenario 1: honest history
    print("\n" + "-" * 60)
    print("Scenario 1: Verify the chain from genesis")
    print("-" * 60)

    verifier = ChainVerifier(mode="full")
    report = verifier.verify_history(secret, genesis.anchor, submissions)
    print(f"Outcome: {report.result.outcome.value}")
    print(f"Verified: {report.verified} action(s), now at counter {report.last_cursor.counter}")

    # Scenario 2: one flipped bit in the claimed anchor
    print("\n" + "-" * 60)
    print("Scenario 2: Tampered anchor")
    print("-" * 60)

    first = submissions[0]
    tampered = ActionSubmission(
        first.counter, first.prev_anchor, first.payload,
        bytes([first.anchor[0] ^ 0x01]) + first.anchor[1:],
    )
    result = verifier.verify(genesis, tampered, secret)
    print(f"Outcome: {result.outcome.value} ({result.error.value})")

    # Scenario 3: replaying action 2 where action 1 is expected
    print("\n" + "-" * 60)
    print("Scenario 3: Skipped action")
    print("-" * 60)

    result = verifier.verify(ChainCursor(0, genesis.anchor), submissions[1], secret)
    print(f"Outcome: {result.outcome.value} ({result.error.value})")

    print("\n" + "=" * 60)
    print("Demonstration complete.")
    print("=" * 60)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vaxchain",
        description="VAX action chain CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  vaxchain demo                                    Run demonstration
  vaxchain genesis -a user123:device456 -s a1a2...b0
  vaxchain append -a user123:device456 -s <salt> -k <secret> -p action1.json -p action2.json
  vaxchain verify -k <secret> -c 0 -P <genesis> -f submission.json
  vaxchain canonicalize -f action.json
        """
    )
    parser.add_argument("--log-level", help="Enable logging at this level (DEBUG, INFO, ...)")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # genesis
    genesis_parser = subparsers.add_parser("genesis", help="Compute genesis anchor")
    genesis_parser.add_argument("-a", "--actor", required=True, help="Actor identifier")
    genesis_parser.add_argument("-s", "--salt", required=True, help="16-byte genesis salt (hex)")

    # nonce
    nonce_parser = subparsers.add_parser("nonce", help="Derive gi for a counter")
    nonce_parser.add_argument("-k", "--secret", required=True, help="32-byte chain secret (hex)")
    nonce_parser.add_argument("-n", "--counter", required=True, type=counter_arg, help="Action counter")

    # append
    append_parser = subparsers.add_parser("append", help="Build a chain and print submissions")
    append_parser.add_argument("-a", "--actor", required=True, help="Actor identifier")
    append_parser.add_argument("-s", "--salt", required=True, help="16-byte genesis salt (hex)")
    append_parser.add_argument("-k", "--secret", required=True, help="32-byte chain secret (hex)")
    append_parser.add_argument("-p", "--payload-file", required=True, action="append",
                               help="JSON payload file (repeatable, in order)")

    # verify
    verify_parser = subparsers.add_parser("verify", help="Verify an action submission")
    verify_parser.add_argument("-k", "--secret", required=True, help="32-byte chain secret (hex)")
    verify_parser.add_argument("-c", "--expected-counter", required=True, type=counter_arg,
                               help="Verifier's current counter")
    verify_parser.add_argument("-P", "--expected-prev", required=True,
                               help="Verifier's current anchor (hex)")
    verify_parser.add_argument("-f", "--submission", required=True, help="Submission JSON file")
    verify_parser.add_argument("--crypto-only", action="store_true",
                               help="Skip the canonical-form check")

    # canonicalize
    canon_parser = subparsers.add_parser("canonicalize", help="Print VAX-JCS form of a JSON file")
    canon_parser.add_argument("-f", "--file", required=True, help="JSON file")

    # demo
    subparsers.add_parser("demo", help="Run demonstration")

    return parser


COMMANDS = {
    "genesis": cmd_genesis,
    "nonce": cmd_nonce,
    "append": cmd_append,
    "verify": cmd_verify,
    "canonicalize": cmd_canonicalize,
    "demo": cmd_demo,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        from .logging_config import configure_logging
        configure_logging(level=args.log_level)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 2

    try:
        return handler(args)
    except VaxError as e:
        print(f"✗ {e.kind.value}: {e.message}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

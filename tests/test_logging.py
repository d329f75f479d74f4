"""
Logging and Configuration Tests
"""

import json
import logging

import pytest

from vaxchain import ActionSubmission, ChainState, ChainVerifier, CounterOverflowError, config
from vaxchain.logging_config import (
    ChainAuditLogger,
    StructuredFormatter,
    configure_logging,
    get_request_id,
    set_request_id,
)

SALT = bytes.fromhex("a1a2a3a4a5a6a7a8a9aaabacadaeafb0")
SECRET = b"\x42" * 32


def _audit_records(caplog):
    return [r for r in caplog.records if r.name == "vaxchain.audit"]


def test_chain_lifecycle_is_audited(caplog):
    caplog.set_level(logging.DEBUG, logger="vaxchain.audit")
    state = ChainState.new("user123:device456", SECRET, SALT)
    state.append(b'{"n":1}')
    state.sync(9, b"\x09" * 32)

    events = [r.extra_fields["event_type"] for r in _audit_records(caplog)]
    assert events == ["CHAIN_CREATED", "ACTION_APPENDED", "CHAIN_SYNCED"]

    synced = _audit_records(caplog)[-1]
    assert synced.levelno == logging.WARNING
    assert synced.extra_fields["previous_counter"] == 1
    assert synced.extra_fields["counter"] == 9


def test_overflow_is_logged_as_error(caplog):
    caplog.set_level(logging.DEBUG, logger="vaxchain.audit")
    state = ChainState.new("user123:device456", SECRET, SALT)
    state.sync(65535, b"\x01" * 32)
    with pytest.raises(CounterOverflowError):
        state.append(b'{"n":1}')
    last = _audit_records(caplog)[-1]
    assert last.extra_fields["event_type"] == "COUNTER_OVERFLOW"
    assert last.levelno == logging.ERROR


def test_secret_never_logged(caplog):
    caplog.set_level(logging.DEBUG)
    state = ChainState.new("user123:device456", SECRET, SALT)
    genesis = state.cursor
    prev = state.current_anchor
    anchor = state.append(b'{"n":1}')

    verifier = ChainVerifier(mode="full")
    verifier.verify(genesis, ActionSubmission(1, prev, b'{"n":1}', anchor), SECRET)
    verifier.verify(genesis, ActionSubmission(1, prev, b'{"n":1}', b"\x00" * 32), SECRET)

    formatter = StructuredFormatter()
    output = "\n".join(formatter.format(r) for r in caplog.records)
    assert SECRET.hex() not in output
    assert "VERIFICATION_PASSED" in output
    assert "VERIFICATION_FAILED" in output


def test_anchor_logged_as_prefix(caplog):
    caplog.set_level(logging.INFO, logger="vaxchain.audit")
    state = ChainState.new("user123:device456", SECRET, SALT)
    record = _audit_records(caplog)[0]
    assert record.extra_fields["anchor"] == state.current_anchor.hex()[:config.ANCHOR_LOG_PREFIX]


def test_structured_formatter_emits_json():
    set_request_id("req-123")
    try:
        logger = logging.getLogger("vaxchain.test")
        record = logger.makeRecord("vaxchain.test", logging.INFO, __file__, 10, "hello %s", ("world",), None)
        record.extra_fields = {"counter": 3}
        data = json.loads(StructuredFormatter().format(record))
    finally:
        set_request_id("")

    assert data["message"] == "hello world"
    assert data["level"] == "INFO"
    assert data["request_id"] == "req-123"
    assert data["counter"] == 3


def test_request_id_generated():
    rid = set_request_id()
    try:
        assert rid and get_request_id() == rid
    finally:
        set_request_id("")


def test_disabled_level_skips_record(caplog):
    caplog.set_level(logging.INFO, logger="vaxchain.audit")
    ChainAuditLogger().action_appended("a", 1, b"\x00" * 32)
    assert _audit_records(caplog) == []


def test_configure_logging_uses_config_defaults(monkeypatch, tmp_path):
    log_file = tmp_path / "vax.log"
    monkeypatch.setattr(config, "LOG_LEVEL", "warning")
    monkeypatch.setattr(config, "LOG_JSON", True)
    monkeypatch.setattr(config, "LOG_FILE", str(log_file))

    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging()
        assert root.level == logging.WARNING
        file_handlers = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1
        assert isinstance(file_handlers[0].formatter, StructuredFormatter)
        file_handlers[0].close()
    finally:
        for handler in root.handlers[:]:
            root.removeHandler(handler)
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)

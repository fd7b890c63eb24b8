import io
import json
import logging

from tokenledger import logging as llog
from tokenledger.errors import (
    ErrorCode,
    InsufficientBalanceError,
    StateError,
    ValidationError,
    error_to_envelope_fields,
)
from tokenledger.ledger import LogEventSink, MemoryEventSink, NullEventSink, publish


def test_error_to_dict_and_envelope():
    try:
        try:
            raise OSError("disk")
        except OSError as e:
            raise StateError("failed to read balance", code=ErrorCode.BALANCE_READ, data={"key": b"\x01"}) from e
    except StateError as err:
        d = err.to_dict()
    assert d["kind"] == "STATE"
    assert d["code"] == 7
    assert d["retryable"] is True
    assert d["data"] == {"key": "01"}
    assert d["cause"] == {"type": "OSError", "message": "disk"}

    v = ValidationError("amount must be positive", code=ErrorCode.AMOUNT_NOT_POSITIVE)
    assert error_to_envelope_fields(v) == {"error": "amount must be positive", "code": 702}
    assert v.retryable is False


def test_with_context_returns_new_error():
    e = InsufficientBalanceError("insufficient funds", code=ErrorCode.INSUFFICIENT_FUNDS)
    e2 = e.with_context(owner="bob")
    assert e.data == {}
    assert e2.data == {"owner": "bob"}
    assert type(e2) is InsufficientBalanceError and e2.code == 704


def test_codes_are_unique():
    values = [c.value for c in ErrorCode]
    assert len(values) == len(set(values))


def test_json_formatter_includes_context_and_extras():
    buf = io.StringIO()
    llog.configure(json=True, level="DEBUG", stream=buf)
    try:
        log = llog.get_logger("tokenledger.test")
        with llog.trace_scope(trace_id="abc", op="transfer"):
            log.info("transfer applied", extra={"amount": 300, "key": b"\xff"})
        line = json.loads(buf.getvalue().strip().splitlines()[-1])
    finally:
        logging.getLogger().handlers.clear()
    assert line["msg"] == "transfer applied"
    assert line["trace_id"] == "abc"
    assert line["op"] == "transfer"
    assert line["amount"] == 300
    assert line["key"] == "ff"
    assert llog.context() == {}


def test_text_formatter_one_line():
    buf = io.StringIO()
    llog.configure(json=False, level="INFO", stream=buf)
    try:
        llog.bind(owner="alice")
        llog.get_logger().info("hello")
    finally:
        logging.getLogger().handlers.clear()
        llog.unbind("owner")
    out = buf.getvalue()
    assert "owner=alice" in out and out.rstrip().endswith("| hello")


def test_event_sinks():
    mem = MemoryEventSink()
    assert publish(mem, "transfer", b"{}") is True
    assert mem.events == [("transfer", b"{}")]
    assert publish(NullEventSink(), "transfer", b"{}") is True
    assert publish(LogEventSink(), "transfer", b'{"amount":1}') is True

    class Boom:
        def emit(self, name, payload):
            raise RuntimeError("down")

    assert publish(Boom(), "transfer", b"{}") is False

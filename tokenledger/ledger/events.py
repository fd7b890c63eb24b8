"""
Event channel for ledger notifications.

A sink receives `(name, payload)` pairs where payload is the encoded event
body. Publication is best-effort: the state change an event describes has
already been applied, so a failing sink is logged and otherwise ignored.
"""

from __future__ import annotations

from typing import List, Protocol, Tuple, runtime_checkable

from ..logging import get_logger

log = get_logger(__name__)

TRANSFER_EVENT = "transfer"


@runtime_checkable
class EventSink(Protocol):
    def emit(self, name: str, payload: bytes) -> None: ...


class MemoryEventSink:
    """Records every emitted event in order. Handy for tests and simulations."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, bytes]] = []

    def emit(self, name: str, payload: bytes) -> None:
        self.events.append((name, bytes(payload)))

    def named(self, name: str) -> List[bytes]:
        return [p for n, p in self.events if n == name]

    def clear(self) -> None:
        self.events.clear()

    def __len__(self) -> int:
        return len(self.events)


class LogEventSink:
    """Writes events to the `tokenledger.events` logger at info level."""

    def __init__(self, logger_name: str = "tokenledger.events") -> None:
        self._log = get_logger(logger_name)

    def emit(self, name: str, payload: bytes) -> None:
        self._log.info("event", extra={"event": name, "payload": payload.decode("utf-8")})


class NullEventSink:
    def emit(self, name: str, payload: bytes) -> None:
        return None


def publish(sink: EventSink, name: str, payload: bytes) -> bool:
    """Emit an event; returns False (after logging) if the sink raised."""
    try:
        sink.emit(name, payload)
    except Exception:
        log.warning("event publication failed", extra={"event": name}, exc_info=True)
        return False
    return True


__all__ = [
    "TRANSFER_EVENT",
    "EventSink",
    "MemoryEventSink",
    "LogEventSink",
    "NullEventSink",
    "publish",
]

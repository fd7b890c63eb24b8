"""
tokenledger.logging
-------------------

Structured logging with:
- JSON or concise colored text formats
- Context-local fields via `contextvars` (trace_id, ledger, op, owner)
- Safe JSON serialization (bytes → hex, Paths → str, dataclasses → dict)
- Optional file logging (always JSON)

Usage
-----
    from tokenledger import logging as llog

    llog.configure(json=False, level="INFO")  # once at process start
    log = llog.get_logger(__name__)

    with llog.trace_scope():
        llog.bind(op="transfer")
        log.info("transfer applied", extra={"amount": 300})

The dispatcher binds `op` per invocation so every line emitted underneath
carries it. This module uses only the stdlib.
"""

from __future__ import annotations

import datetime as _dt
import io
import json
import logging
import os
import sys
import traceback
import types
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

LOG_FORMAT_ENV = "TOKENLEDGER_LOG_FORMAT"

_LOG_CONTEXT: ContextVar[Dict[str, Any]] = ContextVar("_LOG_CONTEXT", default={})

DEFAULT_CONTEXT_KEYS = (
    "trace_id",
    "ledger",
    "op",
    "owner",
)

# LogRecord attributes that are never treated as structured extras.
_RESERVED = frozenset(
    (
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
    )
)


# ----------------------------
# Context
# ----------------------------


def context() -> Dict[str, Any]:
    """Return a *copy* of the active logging context."""
    return dict(_LOG_CONTEXT.get())


def bind(**fields: Any) -> None:
    """Merge fields into the active context."""
    cur = dict(_LOG_CONTEXT.get())
    cur.update({k: _coerce_value(v) for k, v in fields.items()})
    _LOG_CONTEXT.set(cur)


def unbind(*keys: str) -> None:
    cur = dict(_LOG_CONTEXT.get())
    for k in keys:
        cur.pop(k, None)
    _LOG_CONTEXT.set(cur)


def clear_context() -> None:
    _LOG_CONTEXT.set({})


@contextmanager
def trace_scope(trace_id: Optional[str] = None, **fields: Any) -> Iterator[str]:
    """
    Ensure a trace_id (plus any extra fields) for the duration of the scope.
    Restores the prior context on exit.
    """
    prev = dict(_LOG_CONTEXT.get())
    tid = trace_id or short_uuid()
    try:
        bind(trace_id=tid, **fields)
        yield tid
    finally:
        _LOG_CONTEXT.set(prev)


def short_uuid() -> str:
    return uuid.uuid4().hex[:12]


# ----------------------------
# Formatters
# ----------------------------


def _utcnow_iso() -> str:
    return _dt.datetime.now(_dt.timezone.utc).isoformat(timespec="milliseconds")


ANSI = types.SimpleNamespace(
    RESET="\x1b[0m",
    BOLD="\x1b[1m",
    RED="\x1b[31m",
    GREEN="\x1b[32m",
    YELLOW="\x1b[33m",
    MAGENTA="\x1b[35m",
    CYAN="\x1b[36m",
    GREY="\x1b[90m",
    WHITE="\x1b[37m",
)

_LEVEL_COLOR = {
    logging.DEBUG: ANSI.GREY,
    logging.INFO: ANSI.GREEN,
    logging.WARNING: ANSI.YELLOW,
    logging.ERROR: ANSI.RED,
    logging.CRITICAL: ANSI.BOLD + ANSI.MAGENTA,
}


def _supports_color(stream: io.TextIOBase) -> bool:
    try:
        return stream.isatty() and os.environ.get("NO_COLOR") is None
    except (AttributeError, ValueError):
        return False


def _coerce_value(v: Any) -> Any:
    if v is None or isinstance(v, (bool, int, float, str, list, dict)):
        return v
    if isinstance(v, (bytes, bytearray)):
        return bytes(v).hex()
    if isinstance(v, Path):
        return str(v)
    if isinstance(v, _dt.datetime):
        if v.tzinfo is None:
            v = v.replace(tzinfo=_dt.timezone.utc)
        return v.isoformat()
    if is_dataclass(v) and not isinstance(v, type):
        return asdict(v)
    return str(v)


def _extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        k: _coerce_value(v)
        for k, v in record.__dict__.items()
        if not k.startswith("_") and k not in _RESERVED
    }


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": _utcnow_iso(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(context())
        for k, v in _extras(record).items():
            payload.setdefault(k, v)
        if record.exc_info:
            payload["err"] = "".join(
                traceback.format_exception(*record.exc_info)
            ).rstrip()
        return json.dumps(payload, default=str, separators=(",", ":"))


class TextFormatter(logging.Formatter):
    """
    Human-friendly one-liner:
      2026-01-05T12:34:56.789+00:00 | INFO  | tokenledger.dispatch | op=transfer amount=300 | transfer applied
    """

    def __init__(self, stream: io.TextIOBase):
        super().__init__()
        self._color = _supports_color(stream)

    def format(self, record: logging.LogRecord) -> str:
        ctx = context()
        fields = [f"{k}={ctx[k]}" for k in DEFAULT_CONTEXT_KEYS if ctx.get(k) is not None]
        fields += [f"{k}={v}" for k, v in _extras(record).items() if k not in ctx]

        lvl = f"{record.levelname:<5}"
        name = record.name
        if self._color:
            lvl = f"{_LEVEL_COLOR.get(record.levelno, ANSI.WHITE)}{lvl}{ANSI.RESET}"
            name = f"{ANSI.CYAN}{name}{ANSI.RESET}"

        line = f"{_utcnow_iso()} | {lvl} | {name}"
        if fields:
            line += " | " + " ".join(fields)
        line += f" | {record.getMessage()}"
        if record.exc_info:
            line += "\n" + "".join(traceback.format_exception(*record.exc_info)).rstrip()
        return line


# ----------------------------
# Public setup API
# ----------------------------


def configure(
    *,
    json: Optional[bool] = None,
    level: str | int = "INFO",
    stream: Optional[io.TextIOBase] = None,
    file_path: Optional[Path | str] = None,
) -> None:
    """
    Configure the root logger.

    Parameters
    ----------
    json : bool | None
        If None, decided by TOKENLEDGER_LOG_FORMAT=(json|text), else JSON when
        the stream is not a TTY.
    level : str | int
        Minimum log level.
    stream : TextIO
        Stream for the console handler (default: the current sys.stderr).
    file_path : Path | str | None
        Optional file to additionally receive JSON lines.
    """
    lvl = _coerce_level(level)
    stream = stream if stream is not None else sys.stderr
    root = logging.getLogger()
    root.setLevel(lvl)
    for h in list(root.handlers):
        root.removeHandler(h)

    console = logging.StreamHandler(stream)
    console.setLevel(lvl)
    console.setFormatter(
        JSONFormatter() if _decide_json(json, stream) else TextFormatter(stream)
    )
    root.addHandler(console)

    if file_path:
        p = Path(file_path).expanduser()
        p.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(p, encoding="utf-8")
        fh.setLevel(lvl)
        fh.setFormatter(JSONFormatter())
        root.addHandler(fh)


def configure_from_config(cfg: Any) -> None:
    """Configure logging from a `tokenledger.config.Config`."""
    fmt = getattr(cfg, "log_format", "auto")
    configure(
        json=None if fmt == "auto" else fmt == "json",
        level=getattr(cfg, "log_level", "INFO"),
        file_path=getattr(cfg, "log_file", None),
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or "tokenledger")


# ----------------------------
# Internals
# ----------------------------


def _coerce_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO


def _decide_json(json_flag: Optional[bool], stream: io.TextIOBase) -> bool:
    if json_flag is not None:
        return json_flag
    env = os.environ.get(LOG_FORMAT_ENV, "").strip().lower()
    if env in ("json", "text"):
        return env == "json"
    return not _supports_color(stream)


__all__ = [
    "configure",
    "configure_from_config",
    "get_logger",
    "bind",
    "unbind",
    "clear_context",
    "context",
    "trace_scope",
    "JSONFormatter",
    "TextFormatter",
]

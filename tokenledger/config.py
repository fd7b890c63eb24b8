"""
tokenledger configuration loader.

Layered config with clear precedence:
    1) Explicit overrides passed to `load()` (highest)
    2) Environment variables (TOKENLEDGER_*)
    3) Config file (TOML or JSON)
    4) Built-in defaults (lowest)

Only operator-facing concerns live here: where the ledger state is stored, how
logs are written, and whether transfer events are echoed to the log. The core
components never read configuration themselves; they receive an injected
store handle.
"""

from __future__ import annotations

import json
import os
import platform
import tomllib
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import ConfigError

DEFAULT_DB_FILENAME = "tokenledger.db"
LOG_FORMATS = ("auto", "json", "text")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_ENV_PREFIX = "TOKENLEDGER_"


def _expand(p: str | Path) -> Path:
    return Path(p).expanduser().resolve()


def _default_data_dir() -> Path:
    override = os.environ.get("TOKENLEDGER_DATA_DIR")
    if override:
        return _expand(override)
    system = platform.system()
    if system == "Darwin":
        return _expand("~/Library/Application Support/tokenledger")
    if system == "Windows":
        appdata = os.environ.get("APPDATA") or os.environ.get("LOCALAPPDATA")
        if appdata:
            return _expand(appdata) / "tokenledger"
    xdg = os.environ.get("XDG_DATA_HOME")
    return (_expand(xdg) if xdg else _expand("~/.local/share")) / "tokenledger"


def _parse_bool(v: str) -> bool:
    return v.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


@dataclass
class Config:
    db_uri: str
    log_level: str = "INFO"
    log_format: str = "auto"  # auto | json | text
    log_file: Optional[Path] = None
    log_events: bool = False  # echo transfer events to the log sink

    @staticmethod
    def defaults() -> "Config":
        return Config(db_uri=f"sqlite:///{_default_data_dir() / DEFAULT_DB_FILENAME}")

    def validate(self) -> None:
        if not self.db_uri.strip():
            raise ConfigError("db_uri must be non-empty")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigError(
                f"log_level must be one of {', '.join(LOG_LEVELS)}",
                data={"log_level": self.log_level},
            )
        if self.log_format not in LOG_FORMATS:
            raise ConfigError(
                f"log_format must be one of {', '.join(LOG_FORMATS)}",
                data={"log_format": self.log_format},
            )

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["log_file"] = str(self.log_file) if self.log_file else None
        return d


# ------------------------------
# File loader (TOML / JSON)
# ------------------------------


def _load_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError("config file not found", data={"path": str(path)})
    suffix = path.suffix.lower()
    try:
        with path.open("rb") as f:
            if suffix in {".toml", ".tml"}:
                data = tomllib.load(f)
            elif suffix == ".json":
                data = json.load(f)
            else:
                raise ConfigError(
                    f"unsupported config format: {suffix}; use .toml or .json",
                    data={"path": str(path)},
                )
    except (tomllib.TOMLDecodeError, json.JSONDecodeError) as e:
        raise ConfigError("config file is not parseable", data={"path": str(path)}) from e
    # Accept either top-level keys or a [tokenledger] table.
    if not isinstance(data, dict):
        raise ConfigError("config file must contain a table", data={"path": str(path)})
    section = data.get("tokenledger", data)
    if not isinstance(section, dict):
        raise ConfigError("config file must contain a table", data={"path": str(path)})
    return section


def _from_env() -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if f"{_ENV_PREFIX}DB_URI" in os.environ:
        out["db_uri"] = os.environ[f"{_ENV_PREFIX}DB_URI"].strip()
    if f"{_ENV_PREFIX}LOG_LEVEL" in os.environ:
        out["log_level"] = os.environ[f"{_ENV_PREFIX}LOG_LEVEL"].strip().upper()
    if f"{_ENV_PREFIX}LOG_FORMAT" in os.environ:
        out["log_format"] = os.environ[f"{_ENV_PREFIX}LOG_FORMAT"].strip().lower()
    if f"{_ENV_PREFIX}LOG_FILE" in os.environ:
        out["log_file"] = os.environ[f"{_ENV_PREFIX}LOG_FILE"].strip() or None
    if f"{_ENV_PREFIX}LOG_EVENTS" in os.environ:
        out["log_events"] = _parse_bool(os.environ[f"{_ENV_PREFIX}LOG_EVENTS"])
    return out


# ------------------------------
# Main loader
# ------------------------------


def load(config_file: Optional[str | Path] = None, **overrides: Any) -> Config:
    """
    Load the ledger configuration.

    Precedence: overrides > env > file > defaults. Overrides whose value is
    None are ignored so CLI options can be passed through unconditionally.
    """
    base = asdict(Config.defaults())

    if config_file:
        base.update(_load_file(_expand(config_file)))
    base.update(_from_env())
    base.update({k: v for k, v in overrides.items() if v is not None})

    known = {f.name for f in fields(Config)}
    unknown = sorted(set(base) - known)
    if unknown:
        raise ConfigError("unknown config keys", data={"keys": unknown})

    if base.get("log_file"):
        base["log_file"] = _expand(base["log_file"])
    base["log_level"] = str(base["log_level"]).upper()
    if isinstance(base["log_events"], str):
        base["log_events"] = _parse_bool(base["log_events"])
    base["log_events"] = bool(base["log_events"])

    cfg = Config(**base)
    cfg.validate()
    return cfg


__all__ = ["Config", "load", "DEFAULT_DB_FILENAME"]

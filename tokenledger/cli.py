"""
tokenledger.cli
---------------

Operator CLI for a token ledger stored in a local versioned KV.

Examples
--------
# Create the token and move some balance
tokenledger --db sqlite:///ledger.db invoke initialize TOK 1000 "demo token" alice
tokenledger --db sqlite:///ledger.db invoke transfer alice bob 300

# Query
tokenledger --db sqlite:///ledger.db invoke balanceOf bob
tokenledger --db sqlite:///ledger.db history alice

# Maintenance
tokenledger --db sqlite:///ledger.db audit
tokenledger --db sqlite:///ledger.db recover

`invoke` prints the JSON envelope and exits 1 when it is an error envelope.
Configuration problems exit 2.
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, NoReturn, Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from . import config as cfgmod
from . import logging as llog
from .db import open_kv
from .dispatch import encode_envelope
from .encoding.codec import to_builtins
from .errors import ConfigError, LedgerError
from .ledger import LogEventSink, NullEventSink, TokenLedger

app = typer.Typer(
    name="tokenledger",
    add_completion=False,
    no_args_is_help=True,
    help="Fungible-token ledger over a versioned key-value store.",
)

console = Console()
err_console = Console(stderr=True)


@dataclass
class _State:
    cfg: cfgmod.Config


def _die(msg: str, code: int = 1) -> NoReturn:
    err_console.print(f"[red]error:[/red] {msg}")
    raise typer.Exit(code)


@contextmanager
def _open_ledger(ctx: typer.Context) -> Iterator[TokenLedger]:
    state: _State = ctx.obj
    try:
        store = open_kv(state.cfg.db_uri)
    except (ValueError, FileNotFoundError) as e:
        _die(f"cannot open store {state.cfg.db_uri!r}: {e}", code=2)
    events = LogEventSink() if state.cfg.log_events else NullEventSink()
    try:
        yield TokenLedger(store, events=events)
    finally:
        store.close()


@app.callback()
def main_callback(
    ctx: typer.Context,
    db: Optional[str] = typer.Option(
        None, "--db", help="Store URI (sqlite:///path.db or memory://)"
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", help="Path to a TOML or JSON config file", envvar="TOKENLEDGER_CONFIG"
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING, ERROR"),
    log_format: Optional[str] = typer.Option(None, "--log-format", help="auto, json or text"),
) -> None:
    """
    Resolve configuration (flags > env > file > defaults) and set up logging.
    """
    try:
        cfg = cfgmod.load(
            config_file,
            db_uri=db,
            log_level=log_level,
            log_format=log_format,
        )
    except ConfigError as e:
        _die(f"{e.message} {json.dumps(e.data)}" if e.data else e.message, code=2)
    llog.configure_from_config(cfg)
    ctx.obj = _State(cfg=cfg)


@app.command(
    "invoke",
    context_settings={"ignore_unknown_options": True, "allow_extra_args": False},
)
def invoke_cmd(
    ctx: typer.Context,
    operation: str = typer.Argument(..., help="initialize | totalSupply | balanceOf | transfer | getHistoryByKey"),
    args: Optional[List[str]] = typer.Argument(None, help="Operation arguments, as strings"),
) -> None:
    """Run one ledger operation and print its envelope."""
    with _open_ledger(ctx) as ledger:
        env = ledger.dispatch(operation, list(args or []))
    typer.echo(encode_envelope(env).decode("utf-8"))
    if not env.ok:
        raise typer.Exit(1)


@app.command("history")
def history_cmd(
    ctx: typer.Context,
    owner: str = typer.Argument(..., help="Owner identity"),
    as_json: bool = typer.Option(False, "--json", help="Print the history payload as JSON"),
) -> None:
    """Show the version history of one owner's balance."""
    with _open_ledger(ctx) as ledger:
        env = ledger.dispatch("getHistoryByKey", [owner])
    if not env.ok:
        typer.echo(encode_envelope(env).decode("utf-8"))
        raise typer.Exit(1)
    page = env.response
    if as_json:
        typer.echo(json.dumps(to_builtins(page), indent=2))
        return

    t = Table(title=f"History of {owner}", box=box.SIMPLE)
    t.add_column("#", justify="right")
    t.add_column("Transaction")
    t.add_column("Timestamp")
    t.add_column("Balance", justify="right")
    for i, entry in enumerate(page.txns, 1):
        t.add_row(
            str(i),
            entry.txn,
            entry.timestamp,
            "[dim]deleted[/dim]" if entry.value is None else str(entry.value),
        )
    console.print(t)
    console.print(f"{page.counter} version(s)")


@app.command("audit")
def audit_cmd(ctx: typer.Context) -> None:
    """Check that the sum of all balances equals the total supply."""
    with _open_ledger(ctx) as ledger:
        try:
            records = ledger.audit()
            supply = ledger.metadata.get_total_supply()
        except LedgerError as e:
            _die(f"[{int(e.code)}] {e.message}")
    console.print(f"[green]ok[/green]: {records} balance record(s) sum to {supply}")


@app.command("recover")
def recover_cmd(ctx: typer.Context) -> None:
    """Complete an interrupted multi-key update, if one is pending."""
    with _open_ledger(ctx) as ledger:
        try:
            intent = ledger.recover()
        except LedgerError as e:
            _die(f"[{int(e.code)}] {e.message}")
    if intent is None:
        console.print("nothing to recover")
        return
    console.print(f"[yellow]recovered[/yellow]: {intent.op} ({len(intent.writes)} write(s))")


@app.command("show-config")
def show_config_cmd(ctx: typer.Context) -> None:
    """Print the resolved configuration as JSON."""
    state: _State = ctx.obj
    typer.echo(json.dumps(state.cfg.to_dict(), indent=2))


def main() -> None:  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()

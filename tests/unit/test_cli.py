import json
import logging

import pytest
from typer.testing import CliRunner

from tokenledger.cli import app
from tokenledger.db import open_sqlite_kv
from tokenledger.db.kv import owner_key
from tokenledger.ledger import TokenLedger

from tests.support import FlakyKV

runner = CliRunner()


@pytest.fixture
def db(tmp_path, monkeypatch):
    for name in ("DB_URI", "LOG_LEVEL", "LOG_FORMAT", "LOG_FILE", "LOG_EVENTS", "CONFIG"):
        monkeypatch.delenv(f"TOKENLEDGER_{name}", raising=False)
    yield f"sqlite:///{tmp_path / 'cli.db'}"
    logging.getLogger().handlers.clear()


def _run(db, *args):
    return runner.invoke(app, ["--db", db, "--log-level", "WARNING", *args])


def test_invoke_flow(db):
    r = _run(db, "invoke", "initialize", "TOK", "1000", "demo", "alice")
    assert r.exit_code == 0, r.output
    assert json.loads(r.stdout)["code"] == 0

    r = _run(db, "invoke", "transfer", "alice", "bob", "300")
    assert r.exit_code == 0
    assert json.loads(r.stdout) == {"response": "Transfer Successful!!!", "code": 0}

    r = _run(db, "invoke", "balanceOf", "bob")
    assert json.loads(r.stdout)["response"] == {"owner": "bob", "balance": 300}


def test_invoke_error_envelope_exits_nonzero(db):
    _run(db, "invoke", "initialize", "TOK", "10", "demo", "alice")
    r = _run(db, "invoke", "transfer", "alice", "bob", "-1")
    assert r.exit_code == 1
    assert json.loads(r.stdout)["code"] == 702


def test_history_table_and_json(db):
    _run(db, "invoke", "initialize", "TOK", "10", "demo", "alice")
    _run(db, "invoke", "transfer", "alice", "bob", "4")

    r = _run(db, "history", "alice")
    assert r.exit_code == 0
    assert "History of alice" in r.stdout
    assert "2 version(s)" in r.stdout

    r = _run(db, "history", "alice", "--json")
    body = json.loads(r.stdout)
    assert body["counter"] == 2
    assert [t["value"] for t in body["txns"]] == [10, 6]


def test_audit(db):
    _run(db, "invoke", "initialize", "TOK", "10", "demo", "alice")
    r = _run(db, "audit")
    assert r.exit_code == 0
    assert "sum to 10" in r.stdout


def test_audit_detects_tampering(db, tmp_path):
    _run(db, "invoke", "initialize", "TOK", "10", "demo", "alice")
    kv = open_sqlite_kv(tmp_path / "cli.db")
    kv.put(owner_key("mallory"), b"5")
    kv.close()
    r = _run(db, "audit")
    assert r.exit_code == 1


def test_recover_nothing_pending(db):
    r = _run(db, "recover")
    assert r.exit_code == 0
    assert "nothing to recover" in r.stdout


def test_show_config_and_bad_config(db, tmp_path):
    r = _run(db, "show-config")
    assert r.exit_code == 0
    assert json.loads(r.stdout)["db_uri"] == db

    r = runner.invoke(app, ["--db", db, "--log-format", "xml", "show-config"])
    assert r.exit_code == 2


def test_recover_via_ledger_matches_cli_semantics():
    store = FlakyKV()
    ledger = TokenLedger(store)
    ledger.dispatch("initialize", ["TOK", "10", "", "alice"])
    store.fail_on("bob")
    assert ledger.dispatch("transfer", ["alice", "bob", "3"]).code == 707
    store.heal()
    assert ledger.recover().op == "transfer"
    assert ledger.audit() == 2

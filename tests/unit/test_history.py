import pytest

from tokenledger.db import MemoryKV
from tokenledger.db.kv import owner_key
from tokenledger.errors import DecodeError, ErrorCode, StateError, ValidationError
from tokenledger.ledger import HistoryReader, TokenMetadataStore, TransferEngine


@pytest.fixture
def reader(memory_kv):
    TokenMetadataStore(memory_kv).initialize("TOK", 1000, "desc", "alice")
    engine = TransferEngine(memory_kv)
    engine.transfer("alice", "bob", 300)
    engine.transfer("alice", "bob", 100)
    return HistoryReader(memory_kv)


def test_collect_is_oldest_first(reader):
    page = reader.collect("alice")
    assert page.counter == len(page.txns) == 3
    assert [e.value for e in page.txns] == [1000, 700, 600]
    assert [e.txn for e in page.txns] == ["tx-00000001", "tx-00000002", "tx-00000003"]


def test_unknown_owner_has_empty_history(reader):
    page = reader.collect("nobody")
    assert page.counter == 0 and page.txns == []


def test_cursor_counts_and_closes_on_exhaustion(reader, memory_kv):
    cur = reader.get_history("alice")
    assert memory_kv.open_iterators == 1
    values = [e.value for e in cur]
    assert values == [1000, 700, 600]
    assert cur.count == 3
    assert cur.closed
    assert memory_kv.open_iterators == 0


def test_early_break_inside_with_releases_store_iterator(reader, memory_kv):
    with reader.get_history("alice") as cur:
        for entry in cur:
            break
    assert entry.value == 1000
    assert cur.closed
    assert memory_kv.open_iterators == 0


def test_error_inside_with_releases_store_iterator(reader, memory_kv):
    with pytest.raises(KeyError):
        with reader.get_history("alice") as cur:
            next(cur)
            raise KeyError("caller bug")
    assert memory_kv.open_iterators == 0


def test_tombstones_have_null_value(memory_kv):
    memory_kv.put(owner_key("zed"), b"5")
    memory_kv.delete(owner_key("zed"))
    page = HistoryReader(memory_kv).collect("zed")
    assert [e.value for e in page.txns] == [5, None]


def test_undecodable_version_closes_cursor(memory_kv):
    memory_kv.put(owner_key("zed"), b"5")
    memory_kv.put(owner_key("zed"), b"oops")
    cur = HistoryReader(memory_kv).get_history("zed")
    assert next(cur).value == 5
    with pytest.raises(DecodeError):
        next(cur)
    assert cur.closed
    assert memory_kv.open_iterators == 0


def test_empty_owner_rejected(reader):
    with pytest.raises(ValidationError) as ei:
        reader.get_history("")
    assert ei.value.code == ErrorCode.EMPTY_OWNER


def test_open_and_read_failures():
    class CannotOpen(MemoryKV):
        def get_history(self, key):
            raise OSError("no cursor")

    with pytest.raises(StateError) as ei:
        HistoryReader(CannotOpen()).get_history("alice")
    assert ei.value.code == ErrorCode.HISTORY_OPEN

    class BadIter:
        closed = False

        def __next__(self):
            raise OSError("lost connection")

        def close(self):
            BadIter.closed = True

    class CannotRead(MemoryKV):
        def get_history(self, key):
            return BadIter()

    cur = HistoryReader(CannotRead()).get_history("alice")
    with pytest.raises(StateError) as ei:
        next(cur)
    assert ei.value.code == ErrorCode.HISTORY_READ
    assert BadIter.closed


def test_sqlite_history_matches(sqlite_kv):
    TokenMetadataStore(sqlite_kv).initialize("TOK", 10, "", "alice")
    TransferEngine(sqlite_kv).transfer("alice", "bob", 4)
    page = HistoryReader(sqlite_kv).collect("alice")
    assert [e.value for e in page.txns] == [10, 6]
    assert all(e.timestamp for e in page.txns)

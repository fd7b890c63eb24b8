import pytest

from tokenledger.db import MemoryKV
from tokenledger.db.kv import META_KEY, owner_key
from tokenledger.encoding import U64_MAX
from tokenledger.errors import DecodeError, ErrorCode, StateError, ValidationError
from tokenledger.ledger import LedgerState, TokenMetadataStore


@pytest.fixture
def meta_store(memory_kv):
    return TokenMetadataStore(memory_kv)


def test_initialize_writes_metadata_and_creator_balance(meta_store, memory_kv):
    assert meta_store.state() is LedgerState.UNINITIALIZED
    meta = meta_store.initialize("TOK", 1000, "desc", "alice")

    assert meta.total_supply == 1000
    assert meta_store.state() is LedgerState.INITIALIZED
    assert meta_store.get_metadata() == meta
    assert meta_store.get_total_supply() == 1000
    assert memory_kv.get(owner_key("alice")) == b"1000"


def test_initialize_lands_both_records_in_one_transaction(meta_store, memory_kv):
    meta_store.initialize("TOK", 1000, "desc", "alice")
    with memory_kv.get_history(META_KEY) as a, memory_kv.get_history(owner_key("alice")) as b:
        assert next(a).tx_id == next(b).tx_id


@pytest.mark.parametrize(
    "args, code",
    [
        (("", 1000, "d", "alice"), ErrorCode.EMPTY_SYMBOL),
        (("TOK", 0, "d", "alice"), ErrorCode.BAD_TOTAL_SUPPLY),
        (("TOK", U64_MAX + 1, "d", "alice"), ErrorCode.BAD_TOTAL_SUPPLY),
        (("TOK", 1000, "d", ""), ErrorCode.EMPTY_CREATOR),
    ],
)
def test_initialize_validation(meta_store, memory_kv, args, code):
    with pytest.raises(ValidationError) as ei:
        meta_store.initialize(*args)
    assert ei.value.code == code
    assert memory_kv.get(META_KEY) is None


def test_max_supply_is_accepted(meta_store):
    assert meta_store.initialize("TOK", U64_MAX, "", "alice").total_supply == U64_MAX


def test_reinitialize_is_rejected(meta_store, memory_kv):
    meta_store.initialize("TOK", 1000, "desc", "alice")
    with pytest.raises(StateError) as ei:
        meta_store.initialize("OTHER", 5, "", "mallory")
    assert ei.value.code == ErrorCode.ALREADY_INITIALIZED
    assert not ei.value.retryable
    assert meta_store.get_total_supply() == 1000
    assert memory_kv.get(owner_key("mallory")) is None


def test_total_supply_before_initialize(meta_store):
    with pytest.raises(StateError) as ei:
        meta_store.get_total_supply()
    assert ei.value.code == ErrorCode.NOT_INITIALIZED


def test_corrupt_metadata_surfaces_decode_error(memory_kv):
    memory_kv.put(META_KEY, b"{garbage")
    with pytest.raises(DecodeError):
        TokenMetadataStore(memory_kv).get_total_supply()


def test_store_read_failure_is_state_error():
    class Broken(MemoryKV):
        def get(self, key):
            raise OSError("io")

    with pytest.raises(StateError) as ei:
        TokenMetadataStore(Broken()).get_total_supply()
    assert ei.value.code == ErrorCode.METADATA_READ
    assert isinstance(ei.value.__cause__, OSError)

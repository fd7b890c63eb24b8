import pytest

from tokenledger.db.kv import owner_key
from tokenledger.errors import DecodeError, ErrorCode, InvariantError, StateError, ValidationError
from tokenledger.ledger import BalanceLedger, WriteJournal


@pytest.fixture
def balances(memory_kv):
    return BalanceLedger(memory_kv)


def test_missing_owner_reads_as_zero(balances):
    assert balances.get_balance("nobody") == 0
    assert balances.read_balance("nobody") == (0, False)


def test_explicit_zero_record_exists(balances):
    balances.write_balance("alice", 0)
    assert balances.read_balance("alice") == (0, True)


def test_empty_owner_rejected(balances):
    with pytest.raises(ValidationError) as ei:
        balances.get_balance("")
    assert ei.value.code == ErrorCode.EMPTY_OWNER


def test_view_shape(balances):
    balances.write_balance("alice", 42)
    view = balances.view("alice")
    assert (view.owner, view.balance) == ("alice", 42)


def test_journal_reads_see_staged_writes(balances, memory_kv):
    j = WriteJournal(memory_kv, op="test")
    balances.write_balance("alice", 5, j)
    assert balances.read_balance("alice", j) == (5, True)
    assert balances.read_balance("alice") == (0, False)


def test_corrupt_balance_is_decode_error(balances, memory_kv):
    memory_kv.put(owner_key("bob"), b"-7")
    with pytest.raises(DecodeError) as ei:
        balances.get_balance("bob")
    assert ei.value.code == ErrorCode.BALANCE_DECODE
    assert ei.value.data["owner"] == "bob"


def test_overlong_balance_is_decode_error(balances, memory_kv):
    memory_kv.put(owner_key("bob"), b"9" * 5000)
    with pytest.raises(DecodeError) as ei:
        balances.read_balance("bob")
    assert ei.value.code == ErrorCode.BALANCE_DECODE


def test_read_failure_is_state_error():
    class Broken:
        def get(self, key):
            raise OSError("io")

    with pytest.raises(StateError) as ei:
        BalanceLedger(Broken()).get_balance("alice")
    assert ei.value.code == ErrorCode.BALANCE_READ


def test_iter_balances_and_audit(balances):
    balances.write_balance("alice", 700)
    balances.write_balance("bob", 300)
    assert dict(balances.iter_balances()) == {"alice": 700, "bob": 300}
    assert balances.audit(1000) == 2

    with pytest.raises(InvariantError) as ei:
        balances.audit(999)
    assert ei.value.code == ErrorCode.CONSERVATION
    assert ei.value.data["sum"] == "1000"


def test_audit_requires_prefix_iteration():
    class NoPrefix:
        def get(self, key):
            return None

    with pytest.raises(StateError) as ei:
        BalanceLedger(NoPrefix()).audit(0)
    assert ei.value.code == ErrorCode.AUDIT_UNSUPPORTED

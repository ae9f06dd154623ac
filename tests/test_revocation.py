import threading
import pytest
from credanchor_core.crypto import Signer
from credanchor_core.errors import (
    ConflictError, LedgerSubmissionError, LedgerTimeoutError, NotFoundError, ValidationError,
)
from credanchor_core.issuance import IssuancePipeline
from credanchor_core.ledger import MemoryLedger, OpType
from credanchor_core.records import VerificationStatus
from credanchor_core.revocation import RevocationStateMachine
from credanchor_core.verification import VerificationEngine


@pytest.fixture
def issued(content, ledger, index, make_draft):
    return IssuancePipeline(content, ledger, index).issue(make_draft())


def test_revoke_marks_record_and_ledger(ledger, index, issued):
    machine = RevocationStateMachine(ledger, index, ledger_timeout=1)
    result = machine.revoke(issued.credential_hash, "issued in error")

    rec = index.get(issued.credential_hash)
    assert rec.is_revoked
    assert rec.revocation_reason == "issued in error"
    assert rec.revocation_date is not None
    assert rec.ledger_tx_hash == result.transaction_hash != issued.transaction_hash
    assert ledger.read(issued.credential_hash).revoked
    assert result.to_dict() == {
        "transactionHash": result.transaction_hash,
        "credentialHash": issued.credential_hash,
    }
    assert index.list_events()[-1]["event_type"] == "credential_revoked"


def test_revoke_unknown_and_missing_hash(ledger, index):
    machine = RevocationStateMachine(ledger, index)
    with pytest.raises(NotFoundError):
        machine.revoke("deadbeef")
    with pytest.raises(ValidationError):
        machine.revoke("")


def test_second_revoke_is_conflict_not_noop(ledger, index, issued):
    machine = RevocationStateMachine(ledger, index)
    machine.revoke(issued.credential_hash, "first")
    with pytest.raises(ConflictError) as exc:
        machine.revoke(issued.credential_hash, "second")
    assert exc.value.message == "already revoked"
    assert index.get(issued.credential_hash).revocation_reason == "first"


@pytest.mark.parametrize("error", [LedgerTimeoutError("slow"), LedgerSubmissionError("rejected")])
def test_ledger_failure_keeps_record_active(ledger, index, issued, error):
    ledger.inject_failure(OpType.REVOKE, issued.credential_hash, error)
    machine = RevocationStateMachine(ledger, index)
    with pytest.raises(type(error)):
        machine.revoke(issued.credential_hash, "x")
    rec = index.get(issued.credential_hash)
    assert not rec.is_revoked
    assert rec.revocation_date is None


def test_retry_adopts_timed_out_revoke_that_landed_later(content, index, make_draft):
    slow = MemoryLedger(Signer.generate(), latency=0.2)
    issued = IssuancePipeline(content, slow, index, ledger_timeout=1).issue(make_draft())
    h = issued.credential_hash

    with pytest.raises(LedgerTimeoutError):
        RevocationStateMachine(slow, index, ledger_timeout=0.05).revoke(h, "fraud")
    [landed] = slow.commit_pending()
    assert slow.read(h).revoked
    assert not index.get(h).is_revoked

    result = RevocationStateMachine(slow, index, ledger_timeout=1).revoke(h, "fraud")
    assert result.transaction_hash == landed.tx_hash
    rec = index.get(h)
    assert rec.is_revoked and rec.revocation_reason == "fraud"
    assert rec.ledger_tx_hash == landed.tx_hash

    engine = VerificationEngine(content, slow, index)
    assert engine.verify(h).status is VerificationStatus.REVOKED
    engine.close()


def test_concurrent_revoke_exactly_one_wins(ledger, index, issued):
    machine = RevocationStateMachine(ledger, index, ledger_timeout=5)
    barrier = threading.Barrier(2)
    outcomes = []

    def worker(reason):
        barrier.wait()
        try:
            outcomes.append(machine.revoke(issued.credential_hash, reason))
        except ConflictError as e:
            outcomes.append(e)

    threads = [threading.Thread(target=worker, args=(r,)) for r in ("a", "b")]
    for t in threads: t.start()
    for t in threads: t.join()

    conflicts = [o for o in outcomes if isinstance(o, ConflictError)]
    assert len(conflicts) == 1
    assert conflicts[0].message == "already revoked"


def test_index_cas_loser_conflicts_after_ledger_revoke(content, index, make_draft, caplog):
    # ledger accepts both revokes; only the index compare-and-set decides
    lax = MemoryLedger(Signer.generate(), reject_duplicates=False)
    issued = IssuancePipeline(content, lax, index).issue(make_draft())
    machine = RevocationStateMachine(lax, index)

    original_get = index.get
    stale = original_get(issued.credential_hash)
    machine.revoke(issued.credential_hash, "winner")
    index.get = lambda h: stale  # second caller read before the first committed
    with pytest.raises(ConflictError):
        machine.revoke(issued.credential_hash, "loser")
    index.get = original_get

    rec = index.get(issued.credential_hash)
    assert rec.revocation_reason == "winner"
    assert "revoke_lost_index_race" in caplog.text

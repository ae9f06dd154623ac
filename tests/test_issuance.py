import threading
import pytest
from credanchor_core.errors import (
    ConfigurationError, ConflictError, ContentStoreError, LedgerSubmissionError, LedgerTimeoutError,
    ValidationError,
)
from credanchor_core.crypto import Signer
from credanchor_core.issuance import IssuancePipeline
from credanchor_core.ledger import MemoryLedger, OpType
from credanchor_core.records import LedgerStatus, VerificationStatus
from credanchor_core.verification import VerificationEngine
from credanchor_core.utils import sha256


def test_issue_stores_content_anchors_and_indexes(content, ledger, index, make_draft):
    pipeline = IssuancePipeline(content, ledger, index, ledger_timeout=1)
    draft = make_draft()
    result = pipeline.issue(draft)

    assert result.credential_hash == draft.credential_hash
    assert result.transaction_hash == ledger.read(draft.credential_hash).issue_tx_hash
    rec = index.get(draft.credential_hash)
    assert rec.record_id == result.record_id
    assert rec.ledger_status is LedgerStatus.CONFIRMED
    assert rec.ledger_tx_hash == result.transaction_hash
    assert rec.issuer_identity == ledger.identity()
    assert content.get(rec.content_locator) == b"diploma of alice"
    assert result.to_dict() == {
        "transactionHash": result.transaction_hash,
        "credentialHash": draft.credential_hash,
        "recordId": result.record_id,
    }
    assert index.list_events()[0]["event_type"] == "credential_issued"


def test_issue_with_existing_locator_skips_content_put(content, ledger, index, make_draft):
    pipeline = IssuancePipeline(content, ledger, index)
    pipeline.issue(make_draft(with_content=False, content_locator="bafyexisting"))
    assert content.blobs == {}
    assert index.get(sha256(b"diploma of alice")).content_locator == "bafyexisting"


def test_issue_existing_hash_conflicts(content, ledger, index, make_draft):
    pipeline = IssuancePipeline(content, ledger, index)
    pipeline.issue(make_draft())
    with pytest.raises(ConflictError):
        pipeline.issue(make_draft(title="other title"))
    assert index.list_records().total == 1


def test_issue_validates_draft(content, ledger, index, make_draft):
    pipeline = IssuancePipeline(content, ledger, index)
    with pytest.raises(ValidationError):
        pipeline.issue(make_draft(title=""))
    with pytest.raises(ValidationError):
        pipeline.issue(make_draft(credential_type="diploma"))
    # bytes that do not hash to the declared credential hash
    with pytest.raises(ValidationError):
        pipeline.issue(make_draft(credential_hash=sha256(b"something else")))
    assert ledger.records == {}


def test_issue_without_signer_is_configuration_error(content, index, make_draft):
    pipeline = IssuancePipeline(content, MemoryLedger(), index)
    with pytest.raises(ConfigurationError):
        pipeline.issue(make_draft())
    assert index.list_records().total == 0


def test_ledger_timeout_leaves_no_index_record(content, ledger, index, make_draft):
    draft = make_draft()
    ledger.inject_failure(OpType.ISSUE, draft.credential_hash, LedgerTimeoutError("no block yet"))
    pipeline = IssuancePipeline(content, ledger, index, ledger_timeout=0.1)

    with pytest.raises(LedgerTimeoutError) as exc:
        pipeline.issue(draft)
    assert exc.value.retryable
    assert index.get(draft.credential_hash) is None
    # the blob stays behind unreferenced
    assert content.exists(draft.credential_hash)

    engine = VerificationEngine(content, ledger, index)
    assert engine.verify(draft.credential_hash).status is VerificationStatus.NOT_FOUND


def test_ledger_rejection_aborts(content, ledger, index, make_draft):
    draft = make_draft()
    ledger.inject_failure(OpType.ISSUE, draft.credential_hash, LedgerSubmissionError("out of gas"))
    pipeline = IssuancePipeline(content, ledger, index)
    with pytest.raises(LedgerSubmissionError) as exc:
        pipeline.issue(draft)
    assert not exc.value.retryable
    assert index.get(draft.credential_hash) is None


def test_retry_after_timeout_succeeds(content, ledger, index, make_draft):
    draft = make_draft()
    ledger.inject_failure(OpType.ISSUE, draft.credential_hash, LedgerTimeoutError("slow"))
    pipeline = IssuancePipeline(content, ledger, index)
    with pytest.raises(LedgerTimeoutError):
        pipeline.issue(draft)
    assert pipeline.issue(make_draft()).credential_hash == draft.credential_hash


def test_retry_adopts_timed_out_issue_that_landed_later(content, ledger, index, make_draft):
    draft = make_draft()
    ledger.inject_failure(OpType.ISSUE, draft.credential_hash, LedgerTimeoutError("no block yet"))
    pipeline = IssuancePipeline(content, ledger, index, ledger_timeout=0.1)
    with pytest.raises(LedgerTimeoutError):
        pipeline.issue(draft)
    # the node includes the abandoned transaction after the caller gave up
    [landed] = ledger.commit_pending()
    assert index.get(draft.credential_hash) is None

    result = pipeline.issue(make_draft())
    assert result.transaction_hash == landed.tx_hash
    rec = index.get(draft.credential_hash)
    assert rec.ledger_tx_hash == landed.tx_hash
    assert rec.ledger_status is LedgerStatus.CONFIRMED

    engine = VerificationEngine(content, ledger, index)
    assert engine.verify(draft.credential_hash).status is VerificationStatus.VALID
    engine.close()


def test_hash_anchored_by_another_issuer_conflicts(content, ledger, index, make_draft):
    draft = make_draft()
    ledger.await_result(ledger.submit(OpType.ISSUE, draft.credential_hash, {}), timeout=1)
    ledger.signer = Signer.generate()
    with pytest.raises(ConflictError):
        IssuancePipeline(content, ledger, index).issue(draft)
    assert index.get(draft.credential_hash) is None


def test_content_store_failure_propagates(ledger, index, make_draft):
    class DownStore:
        def put(self, data):
            raise ContentStoreError("node down")

    pipeline = IssuancePipeline(DownStore(), ledger, index)
    with pytest.raises(ContentStoreError):
        pipeline.issue(make_draft())
    assert ledger.records == {}


def test_concurrent_issue_exactly_one_wins(content, ledger, index, make_draft):
    pipeline = IssuancePipeline(content, ledger, index, ledger_timeout=5)
    barrier = threading.Barrier(2)
    outcomes = []

    def worker():
        barrier.wait()
        try:
            outcomes.append(pipeline.issue(make_draft()))
        except ConflictError as e:
            outcomes.append(e)

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads: t.start()
    for t in threads: t.join()

    assert sum(1 for o in outcomes if isinstance(o, ConflictError)) == 1
    assert index.list_records().total == 1


def test_index_race_loser_gets_conflict(content, index, make_draft):
    # ledger accepts both issues: the index uniqueness insert decides
    lax = MemoryLedger(Signer.generate(), reject_duplicates=False)
    pipeline = IssuancePipeline(content, lax, index)

    original_get = index.get
    index.get = lambda h: None  # both callers pass the pre-check
    pipeline.issue(make_draft())
    with pytest.raises(ConflictError):
        pipeline.issue(make_draft())
    index.get = original_get
    assert index.list_records().total == 1


def test_issue_document_hashes_bytes(content, ledger, index):
    pipeline = IssuancePipeline(content, ledger, index)
    result = pipeline.issue_document(
        b"%PDF-1.7 certificate",
        title="First Aid",
        recipient_identity="0xb0b",
        issuer_user_reference="user-7",
        credential_type="certification",
        metadata_locator="ipfs://meta/bob",
    )
    assert result.credential_hash == sha256(b"%PDF-1.7 certificate")
    assert content.exists(result.credential_hash)
    with pytest.raises(ValidationError):
        pipeline.issue_document(b"", title="x")

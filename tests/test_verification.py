import threading
import time
import pytest
from credanchor_core.errors import ContentStoreError
from credanchor_core.issuance import IssuancePipeline
from credanchor_core.records import CredentialRecord, LedgerStatus, VerificationStatus
from credanchor_core.revocation import RevocationStateMachine
from credanchor_core.verification import VerificationEngine, reconcile


@pytest.fixture
def engine(content, ledger, index):
    e = VerificationEngine(content, ledger, index, read_timeout=0.5)
    yield e
    e.close()


@pytest.fixture
def issued(content, ledger, index, make_draft):
    return IssuancePipeline(content, ledger, index).issue(make_draft())


def test_unknown_hash_is_not_found(engine):
    result = engine.verify("f" * 64)
    assert result.status is VerificationStatus.NOT_FOUND
    assert result.to_dict() == {"status": "not_found"}


def test_matching_content_and_chain_is_valid(engine, issued):
    result = engine.verify(issued.credential_hash)
    assert result.status is VerificationStatus.VALID
    assert result.content_match and result.chain_match
    d = result.to_dict()
    assert d["record"]["credential_hash"] == issued.credential_hash
    assert d["onchain"]["issue_tx_hash"] == issued.transaction_hash


def test_tampered_content_degrades_to_chain_only(engine, content, issued):
    rec_locator = issued.record.content_locator
    content.tamper(rec_locator, b"forged diploma")
    result = engine.verify(issued.credential_hash)
    assert not result.content_match
    assert result.status is VerificationStatus.CHAIN_ONLY


def test_tampered_content_and_unreachable_ledger_is_db_only(engine, content, ledger, issued):
    content.tamper(issued.record.content_locator, b"forged diploma")
    ledger.fail_reads(ConnectionError("node unreachable"))
    assert engine.verify(issued.credential_hash).status is VerificationStatus.DB_ONLY


def test_unreachable_ledger_is_ipfs_only(engine, ledger, issued):
    ledger.fail_reads(ConnectionError("node unreachable"))
    result = engine.verify(issued.credential_hash)
    assert result.status is VerificationStatus.IPFS_ONLY
    assert result.onchain is None


def test_slow_ledger_read_degrades_instead_of_failing(content, index, issued, ledger):
    class SlowLedger:
        def read(self, h):
            time.sleep(1.0)
            return ledger.read(h)

    engine = VerificationEngine(content, SlowLedger(), index, read_timeout=0.05)
    started = time.monotonic()
    assert engine.verify(issued.credential_hash).status is VerificationStatus.IPFS_ONLY
    assert time.monotonic() - started < 0.9
    engine.close()


def test_stuck_ledger_reads_do_not_starve_later_verifies(content, index, issued, ledger):
    release = threading.Event()

    class StuckLedger:
        def read(self, h):
            release.wait(3)
            return ledger.read(h)

    engine = VerificationEngine(content, StuckLedger(), index, read_timeout=0.1, max_workers=2)
    try:
        # every ledger worker is now blocked
        for _ in range(2):
            assert engine.verify(issued.credential_hash).status is VerificationStatus.IPFS_ONLY
        started = time.monotonic()
        assert engine.verify(issued.credential_hash).status is VerificationStatus.IPFS_ONLY
        assert time.monotonic() - started < 1.0
        assert engine.verify("f" * 64).status is VerificationStatus.NOT_FOUND
    finally:
        release.set()
        engine.close()


def test_content_store_failure_degrades(ledger, index, issued):
    class DownStore:
        def exists(self, locator):
            raise ContentStoreError("node down")

    engine = VerificationEngine(DownStore(), ledger, index)
    assert engine.verify(issued.credential_hash).status is VerificationStatus.CHAIN_ONLY
    engine.close()


def test_chain_status_must_agree_with_index(engine, ledger, issued):
    ledger.read(issued.credential_hash).confirmed = False
    result = engine.verify(issued.credential_hash)
    assert not result.chain_match
    assert result.status is VerificationStatus.IPFS_ONLY


def test_revoked_takes_priority(engine, content, ledger, index, issued):
    RevocationStateMachine(ledger, index).revoke(issued.credential_hash, "expelled")
    content.tamper(issued.record.content_locator, b"forged")
    ledger.fail_reads(ConnectionError("down"))
    result = engine.verify(issued.credential_hash)
    assert result.status is VerificationStatus.REVOKED
    assert result.to_dict()["record"]["revocation_reason"] == "expelled"


def test_reconcile_priority_table():
    rec = CredentialRecord(
        credential_hash="h", recipient_identity="r", issuer_identity="i",
        issuer_user_reference="u", credential_type="other", title="t", metadata_locator="m",
        ledger_tx_hash="0x", ledger_status=LedgerStatus.CONFIRMED,
    )
    assert reconcile(None, True, True) is VerificationStatus.NOT_FOUND
    assert reconcile(rec, True, True) is VerificationStatus.VALID
    assert reconcile(rec, True, False) is VerificationStatus.IPFS_ONLY
    assert reconcile(rec, False, True) is VerificationStatus.CHAIN_ONLY
    assert reconcile(rec, False, False) is VerificationStatus.DB_ONLY
    rec.is_revoked = True
    for c in (True, False):
        for ch in (True, False):
            assert reconcile(rec, c, ch) is VerificationStatus.REVOKED

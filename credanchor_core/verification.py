"""
credanchor_core.verification
----------------------------
VerificationEngine: read the index, the content store and the ledger
independently and reconcile them into one verdict.

Priority, first match wins:

    no index record             -> not_found
    record revoked              -> revoked
    content and chain agree     -> valid
    content only                -> ipfs_only
    chain only                  -> chain_only
    neither                     -> db_only

Content and ledger failures (unreachable, slow, missing) downgrade their
signal to False. Index failures propagate: without the index there is no
verdict to give.
"""

from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .constants import DEFAULT_VERIFY_TIMEOUT
from .content.provider import ContentStore
from .ledger.ledger_base import LedgerClient, OnChainRecord
from .logger import get_logger
from .records import CredentialRecord, LedgerStatus, VerificationStatus
from .storage.provider import RecordIndex
from .utils import sha256

log = get_logger("CA.Verification")


@dataclass
class VerificationResult:
    status: VerificationStatus
    record: Optional[CredentialRecord] = None
    onchain: Optional[OnChainRecord] = None
    content_match: bool = False
    chain_match: bool = False

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"status": self.status.value}
        if self.record is not None:
            d["record"] = self.record.to_dict()
        if self.onchain is not None:
            d["onchain"] = self.onchain.to_dict()
        return d


def reconcile(record: Optional[CredentialRecord], content_match: bool, chain_match: bool) -> VerificationStatus:
    if record is None:
        return VerificationStatus.NOT_FOUND
    if record.is_revoked:
        return VerificationStatus.REVOKED
    if content_match and chain_match:
        return VerificationStatus.VALID
    if content_match:
        return VerificationStatus.IPFS_ONLY
    if chain_match:
        return VerificationStatus.CHAIN_ONLY
    return VerificationStatus.DB_ONLY


class VerificationEngine:
    def __init__(self, content: ContentStore, ledger: LedgerClient, index: RecordIndex,
                 read_timeout: float = DEFAULT_VERIFY_TIMEOUT, hasher=sha256, max_workers: int = 8):
        self.content = content
        self.ledger = ledger
        self.index = index
        self.read_timeout = read_timeout
        self.hasher = hasher
        # one pool per remote store so stuck ledger reads never queue content checks;
        # the index is read on the calling thread
        self._chain_pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ca-verify-chain")
        self._content_pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ca-verify-content")

    def verify(self, credential_hash: str) -> VerificationResult:
        chain_f = self._chain_pool.submit(self.ledger.read, credential_hash)

        record = self.index.get(credential_hash)
        if record is None:
            chain_f.cancel()
            return VerificationResult(VerificationStatus.NOT_FOUND)
        if record.is_revoked:
            chain_f.cancel()
            return VerificationResult(VerificationStatus.REVOKED, record=record)

        content_f = self._content_pool.submit(self._content_matches, record)
        onchain = self._await_chain(chain_f, credential_hash)
        chain_match = (
            onchain is not None
            and onchain.credential_hash == credential_hash
            and onchain.confirmed == (record.ledger_status is LedgerStatus.CONFIRMED)
        )
        try:
            content_match = content_f.result(timeout=self.read_timeout)
        except FutureTimeout:
            content_f.cancel()
            log.warning({"event": "content_check_timeout", "credential_hash": credential_hash})
            content_match = False

        status = reconcile(record, content_match, chain_match)
        log.info({"event": "credential_verified", "credential_hash": credential_hash,
                  "status": status.value, "content_match": content_match, "chain_match": chain_match})
        return VerificationResult(status, record, onchain, content_match, chain_match)

    def _await_chain(self, chain_f, credential_hash: str) -> Optional[OnChainRecord]:
        try:
            return chain_f.result(timeout=self.read_timeout)
        except FutureTimeout:
            # drop it if still queued behind stuck reads
            chain_f.cancel()
            log.warning({"event": "ledger_read_timeout", "credential_hash": credential_hash})
        except Exception as e:
            # NotFound and transport failures alike mean "no ledger confirmation"
            log.warning({"event": "ledger_read_failed", "credential_hash": credential_hash, "error": str(e)})
        return None

    def _content_matches(self, record: CredentialRecord) -> bool:
        locator = record.content_locator
        if not locator:
            return False
        try:
            if not self.content.exists(locator):
                return False
            data = self.content.get(locator)
        except Exception as e:
            log.warning({"event": "content_read_failed", "credential_hash": record.credential_hash,
                         "locator": locator, "error": str(e)})
            return False
        return self.hasher(data) == record.credential_hash

    def close(self) -> None:
        self._chain_pool.shutdown(wait=False)
        self._content_pool.shutdown(wait=False)

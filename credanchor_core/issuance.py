"""
credanchor_core.issuance
------------------------
IssuancePipeline: ContentStore -> LedgerClient -> RecordIndex, in that order.

A record reaches the index only after its ledger Issue operation is confirmed.
Pending and failed states exist only inside a single issue() call. Blobs put
before a failed ledger step stay in the content store unreferenced.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict

from .constants import DEFAULT_LEDGER_TIMEOUT
from .content.provider import ContentStore
from .errors import (
    ConflictError,
    LedgerDuplicateError,
    LedgerSubmissionError,
    LedgerTimeoutError,
    ValidationError,
)
from .ledger.ledger_base import LedgerClient, LedgerReceipt, OpType
from .logger import get_logger
from .records import CredentialDraft, CredentialRecord, LedgerStatus
from .storage.provider import RecordIndex
from .utils import sha256

log = get_logger("CA.Issuance")


@dataclass
class IssuanceResult:
    transaction_hash: str
    credential_hash: str
    record_id: str
    record: CredentialRecord

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transactionHash": self.transaction_hash,
            "credentialHash": self.credential_hash,
            "recordId": self.record_id,
        }


class IssuancePipeline:
    def __init__(self, content: ContentStore, ledger: LedgerClient, index: RecordIndex,
                 ledger_timeout: float = DEFAULT_LEDGER_TIMEOUT, hasher=sha256):
        self.content = content
        self.ledger = ledger
        self.index = index
        self.ledger_timeout = ledger_timeout
        self.hasher = hasher

    def issue(self, draft: CredentialDraft) -> IssuanceResult:
        draft.validate()
        h = draft.credential_hash
        issuer = draft.issuer_identity or self.ledger.identity()

        # 1. existing index entry wins
        if self.index.get(h) is not None:
            raise ConflictError(f"Credential with hash {h} already exists")

        # 2. content first; put() is idempotent, so a retried issue re-puts safely
        content_locator = draft.content_locator
        if draft.content is not None:
            if self.hasher(bytes(draft.content)) != h:
                raise ValidationError("content bytes do not hash to credentialHash")
            content_locator = self.content.put(bytes(draft.content))

        record = CredentialRecord.from_draft(draft, issuer_identity=issuer)
        record.content_locator = content_locator

        # 3. ledger
        payload = {
            "title": record.title,
            "recipient": record.recipient_identity,
            "credential_type": record.credential_type.value,
            "metadata_locator": record.metadata_locator,
        }
        try:
            handle = self.ledger.submit(OpType.ISSUE, h, payload)
            receipt = self.ledger.await_result(handle, self.ledger_timeout)
        except LedgerDuplicateError:
            receipt = self._adopt_anchored(h)
        except LedgerTimeoutError:
            log.warning({"event": "issue_ledger_timeout", "credential_hash": h,
                         "timeout": self.ledger_timeout})
            raise
        except LedgerSubmissionError as e:
            log.error({"event": "issue_ledger_rejected", "credential_hash": h, "error": e.message})
            raise

        record.ledger_tx_hash = receipt.tx_hash
        record.ledger_status = LedgerStatus.CONFIRMED

        # 4. atomic insert-if-absent closes the check-then-insert race from step 1
        stored = self.index.insert_if_absent(record)
        if stored is None:
            log.warning({"event": "issue_lost_index_race", "credential_hash": h, "tx": receipt.tx_hash})
            raise ConflictError(f"Credential with hash {h} already exists")

        self.index.log_event("credential_issued", {
            "credential_hash": h,
            "record_id": stored.record_id,
            "tx": receipt.tx_hash,
            "issuer_user_reference": stored.issuer_user_reference,
        })
        log.info({"event": "credential_issued", "credential_hash": h, "tx": receipt.tx_hash})
        return IssuanceResult(receipt.tx_hash, h, stored.record_id, stored)

    def _adopt_anchored(self, h: str) -> LedgerReceipt:
        """
        The ledger refused a second Issue for ``h``. If the existing one was
        signed by our own identity, it is an earlier attempt whose await timed
        out and which committed afterwards: take its tx hash and go on to the
        index. Anything else means another issuer got there first.
        """
        onchain = self.ledger.lookup(h)
        if onchain is None or onchain.issuer != self.ledger.identity() or not onchain.issue_tx_hash:
            log.info({"event": "issue_lost_ledger_race", "credential_hash": h})
            raise ConflictError(f"Credential with hash {h} already exists")
        log.info({"event": "issue_adopted_ledger_record", "credential_hash": h,
                  "tx": onchain.issue_tx_hash})
        return LedgerReceipt(onchain.issue_tx_hash)

    def issue_document(self, data: bytes, **fields) -> IssuanceResult:
        """Issue a credential for raw document bytes; the hash is computed here."""
        if not data:
            raise ValidationError("document is empty")
        draft = CredentialDraft(credential_hash=self.hasher(bytes(data)), content=bytes(data), **fields)
        return self.issue(draft)

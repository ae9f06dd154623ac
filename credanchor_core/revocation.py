# credanchor_core/revocation.py

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .constants import DEFAULT_LEDGER_TIMEOUT
from .errors import (
    ConflictError,
    LedgerDuplicateError,
    LedgerSubmissionError,
    LedgerTimeoutError,
    NotFoundError,
    ValidationError,
)
from .ledger.ledger_base import LedgerClient, LedgerReceipt, OpType
from .logger import get_logger
from .records import CredentialRecord
from .storage.provider import RecordIndex
from .utils import now_ts

log = get_logger("CA.Revocation")

ALREADY_REVOKED = "already revoked"


@dataclass
class RevocationResult:
    transaction_hash: str
    credential_hash: str
    record: CredentialRecord

    def to_dict(self) -> Dict[str, Any]:
        return {"transactionHash": self.transaction_hash, "credentialHash": self.credential_hash}


class RevocationStateMachine:
    """
    active -> revoked, one way.

    The ledger Revoke goes first; the index flips only through
    RecordIndex.revoke_if_active(), a compare-and-set on is_revoked.
    """

    def __init__(self, ledger: LedgerClient, index: RecordIndex,
                 ledger_timeout: float = DEFAULT_LEDGER_TIMEOUT):
        self.ledger = ledger
        self.index = index
        self.ledger_timeout = ledger_timeout

    def revoke(self, credential_hash: str, reason: Optional[str] = None) -> RevocationResult:
        if not credential_hash:
            raise ValidationError("credentialHash is required")
        reason = reason or ""

        rec = self.index.get(credential_hash)
        if rec is None:
            raise NotFoundError(f"Credential {credential_hash} not found")
        if rec.is_revoked:
            raise ConflictError(ALREADY_REVOKED)

        try:
            handle = self.ledger.submit(OpType.REVOKE, credential_hash, {"reason": reason})
            receipt = self.ledger.await_result(handle, self.ledger_timeout)
        except LedgerDuplicateError:
            receipt = self._adopt_revocation(credential_hash)
        except LedgerTimeoutError:
            log.warning({"event": "revoke_ledger_timeout", "credential_hash": credential_hash})
            raise
        except LedgerSubmissionError as e:
            log.error({"event": "revoke_ledger_rejected", "credential_hash": credential_hash, "error": e.message})
            raise

        updated = self.index.revoke_if_active(credential_hash, reason, now_ts(), receipt.tx_hash)
        if updated is None:
            # The ledger now holds a revocation this call does not own in the index.
            log.warning({"event": "revoke_lost_index_race", "credential_hash": credential_hash,
                         "tx": receipt.tx_hash})
            raise ConflictError(ALREADY_REVOKED)

        self.index.log_event("credential_revoked", {
            "credential_hash": credential_hash,
            "reason": reason,
            "tx": receipt.tx_hash,
        })
        log.info({"event": "credential_revoked", "credential_hash": credential_hash, "tx": receipt.tx_hash})
        return RevocationResult(receipt.tx_hash, credential_hash, updated)

    def _adopt_revocation(self, credential_hash: str) -> LedgerReceipt:
        # The ledger already holds a Revoke. Whoever sent it, the index must
        # follow; revoke_if_active() still decides which caller reports success.
        onchain = self.ledger.lookup(credential_hash)
        if onchain is None or not onchain.revoked or not onchain.revoke_tx_hash:
            raise ConflictError(ALREADY_REVOKED)
        log.info({"event": "revoke_adopted_ledger_record", "credential_hash": credential_hash,
                  "tx": onchain.revoke_tx_hash})
        return LedgerReceipt(onchain.revoke_tx_hash)

from __future__ import annotations
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Optional
import time

from credanchor_core.crypto import Signer
from credanchor_core.errors import (
    ConfigurationError,
    CredentialError,
    LedgerTimeoutError,
    NotFoundError,
)


class OpType(str, Enum):
    ISSUE = "issue"
    REVOKE = "revoke"


@dataclass(frozen=True)
class OperationHandle:
    """Returned by submit(); identifies the in-flight ledger operation."""
    op_type: OpType
    credential_hash: str
    tx_hash: str
    submitted_at: float = field(default_factory=time.time)

    @property
    def idempotency_key(self) -> str:
        return f"{self.op_type.value}:{self.credential_hash}"


@dataclass(frozen=True)
class LedgerReceipt:
    tx_hash: str
    version: Optional[int] = None


@dataclass
class OnChainRecord:
    """The ledger's own view of a credential."""
    credential_hash: str
    issuer: str = ""
    confirmed: bool = True
    revoked: bool = False
    issue_tx_hash: Optional[str] = None
    revoke_tx_hash: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class LedgerClient:
    """
    Ledger contract.

    submit() hands an operation to the ledger; await_result() blocks up to
    ``timeout`` seconds for its outcome and raises LedgerTimeoutError when
    the outcome is unknown, LedgerSubmissionError when the ledger rejected it
    (LedgerDuplicateError when the idempotency key was already applied).
    read() raises NotFoundError for hashes the ledger has never seen.
    """
    name: str = "base"

    def __init__(self, signer: Optional[Signer] = None):
        self.signer = signer

    def submit(self, op_type: OpType, credential_hash: str, payload: Dict[str, Any]) -> OperationHandle:
        raise NotImplementedError

    def await_result(self, handle: OperationHandle, timeout: float) -> LedgerReceipt:
        raise NotImplementedError

    def read(self, credential_hash: str) -> OnChainRecord:
        raise NotImplementedError

    def identity(self) -> str:
        return self.require_signer().address

    def require_signer(self) -> Signer:
        if self.signer is None:
            raise ConfigurationError("Signing identity not configured (set CREDANCHOR_SIGNER_KEY)")
        return self.signer

    def close(self) -> None:
        return

    def lookup(self, credential_hash: str) -> Optional[OnChainRecord]:
        """
        read() for callers that must act on the answer: a missing record is
        None, and a failed read is LedgerTimeoutError since the on-chain state
        is still unknown.
        """
        try:
            return self.read(credential_hash)
        except NotFoundError:
            return None
        except CredentialError:
            raise
        except Exception as e:
            raise LedgerTimeoutError(f"ledger read failed for {credential_hash}: {e}")

    # ---------------------------
    # Helpers for adapters
    # ---------------------------
    def build_transaction(self, op_type: OpType, credential_hash: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        signer = self.require_signer()
        body = {
            "sender": signer.address,
            "op_type": OpType(op_type).value,
            "credential_hash": credential_hash,
            "payload": payload or {},
            "expiration_ts": int(time.time()) + 600,
        }
        return {
            "body": body,
            "public_key": signer.public_key.hex(),
            "signature": signer.sign(body),
        }

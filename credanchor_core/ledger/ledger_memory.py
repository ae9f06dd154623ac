# credanchor_core/ledger/ledger_memory.py
from __future__ import annotations
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

from credanchor_core.crypto import Signer
from credanchor_core.errors import (
    CredentialError,
    LedgerDuplicateError,
    LedgerSubmissionError,
    LedgerTimeoutError,
    NotFoundError,
)
from credanchor_core.ledger.ledger_base import (
    LedgerClient,
    LedgerReceipt,
    OnChainRecord,
    OperationHandle,
    OpType,
)
from credanchor_core.logger import get_logger
from credanchor_core.utils import new_id

log = get_logger("CA.Ledger.Memory")


class MemoryLedger(LedgerClient):
    """
    In-process ledger for tests and local runs.

    Operations are applied when awaited, under one lock, the way a chain
    commits a transaction at inclusion time. ``latency`` simulates block
    inclusion; an await with a shorter timeout raises LedgerTimeoutError and
    leaves the operation unapplied but still pending. commit_pending() lands
    every pending operation, the way a node commits after the caller gave up.
    """
    name = "memory"

    def __init__(self, signer: Optional[Signer] = None, latency: float = 0.0, reject_duplicates: bool = True):
        super().__init__(signer)
        self.latency = latency
        self.reject_duplicates = reject_duplicates
        self.records: Dict[str, OnChainRecord] = {}
        self.pending: Dict[str, Tuple[OperationHandle, Dict[str, Any]]] = {}
        self.applied: Dict[str, LedgerReceipt] = {}
        self.rejected: Dict[str, CredentialError] = {}
        self.failures: Dict[Tuple[OpType, str], CredentialError] = {}
        self.read_failure: Optional[Exception] = None
        self.version = 0
        self._lock = threading.Lock()

    # --- failure injection ---

    def inject_failure(self, op_type: OpType, credential_hash: str, error: CredentialError) -> None:
        """Make the next await of (op_type, credential_hash) raise ``error``."""
        self.failures[(OpType(op_type), credential_hash)] = error

    def fail_reads(self, error: Optional[Exception]) -> None:
        self.read_failure = error

    def commit_pending(self) -> List[LedgerReceipt]:
        """Apply every pending operation in submission order."""
        receipts = []
        with self._lock:
            for tx_hash, (handle, tx) in list(self.pending.items()):
                del self.pending[tx_hash]
                try:
                    receipt = self._apply(handle, tx)
                except LedgerSubmissionError as e:
                    self.rejected[tx_hash] = e
                    log.info({"event": "ledger_reject", "op": handle.op_type.value,
                              "credential_hash": handle.credential_hash, "error": e.message})
                    continue
                self.applied[tx_hash] = receipt
                receipts.append(receipt)
        return receipts

    # --- contract ---

    def submit(self, op_type: OpType, credential_hash: str, payload: Dict[str, Any]) -> OperationHandle:
        tx = self.build_transaction(op_type, credential_hash, payload)
        handle = OperationHandle(OpType(op_type), credential_hash, "0x" + new_id() + new_id())
        with self._lock:
            self.pending[handle.tx_hash] = (handle, tx)
        log.debug(f"[MEM SUBMIT] {handle.idempotency_key} tx={handle.tx_hash}")
        return handle

    def await_result(self, handle: OperationHandle, timeout: float) -> LedgerReceipt:
        injected = self.failures.pop((handle.op_type, handle.credential_hash), None)
        if injected is not None:
            with self._lock:
                if not isinstance(injected, LedgerTimeoutError):
                    self.pending.pop(handle.tx_hash, None)
            raise injected

        if self.latency:
            if self.latency > timeout:
                time.sleep(timeout)
                raise LedgerTimeoutError(f"no outcome for {handle.tx_hash} within {timeout}s")
            time.sleep(self.latency)

        with self._lock:
            if handle.tx_hash in self.applied:
                return self.applied[handle.tx_hash]
            if handle.tx_hash in self.rejected:
                raise self.rejected[handle.tx_hash]
            if handle.tx_hash not in self.pending:
                raise LedgerSubmissionError(f"unknown transaction {handle.tx_hash}")
            _, tx = self.pending.pop(handle.tx_hash)
            receipt = self._apply(handle, tx)
            self.applied[handle.tx_hash] = receipt
            return receipt

    def _apply(self, handle: OperationHandle, tx: Dict[str, Any]) -> LedgerReceipt:
        rec = self.records.get(handle.credential_hash)
        if handle.op_type is OpType.ISSUE:
            if rec is not None and self.reject_duplicates:
                raise LedgerDuplicateError(f"credential {handle.credential_hash} already issued")
            self.records[handle.credential_hash] = OnChainRecord(
                credential_hash=handle.credential_hash,
                issuer=tx["body"]["sender"],
                issue_tx_hash=handle.tx_hash,
                payload=dict(tx["body"]["payload"]),
            )
        else:
            if rec is None:
                raise LedgerSubmissionError(f"credential {handle.credential_hash} not issued on ledger")
            if rec.revoked and self.reject_duplicates:
                raise LedgerDuplicateError(f"credential {handle.credential_hash} already revoked")
            rec.revoked = True
            rec.revoke_tx_hash = handle.tx_hash
        self.version += 1
        log.info({"event": "ledger_commit", "op": handle.op_type.value,
                  "credential_hash": handle.credential_hash, "tx": handle.tx_hash})
        return LedgerReceipt(handle.tx_hash, self.version)

    def read(self, credential_hash: str) -> OnChainRecord:
        if self.read_failure is not None:
            raise self.read_failure
        rec = self.records.get(credential_hash)
        if rec is None:
            raise NotFoundError(f"no ledger record for {credential_hash}")
        return rec

# credanchor_core/ledger/ledger_http.py
from __future__ import annotations
import time
from typing import Any, Dict, Optional

import requests

from credanchor_core.crypto import Signer
from credanchor_core.errors import (
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

log = get_logger("CA.Ledger.HTTP")


class HTTPLedgerClient(LedgerClient):
    """
    REST client for a ledger full node.

    Endpoints:
    - POST /transactions                 submit a signed transaction
    - GET  /transactions/by_hash/{hash}  poll until committed
    - GET  /credentials/{hash}           on-chain credential state

    A committed transaction reports ``success``; a committed but aborted one
    carries its ``vm_status``. Duplicate rejections come back as HTTP 409 or
    a vm_status containing ``EALREADY_EXISTS``/``EALREADY_REVOKED``.
    """
    name = "http"

    DUPLICATE_MARKERS = ("EALREADY_EXISTS", "EALREADY_REVOKED")

    def __init__(self, base_url: str, signer: Optional[Signer] = None,
                 poll_interval: float = 1.0, request_timeout: float = 10.0):
        super().__init__(signer)
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval
        self.request_timeout = request_timeout
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    def submit(self, op_type: OpType, credential_hash: str, payload: Dict[str, Any]) -> OperationHandle:
        tx = self.build_transaction(op_type, credential_hash, payload)
        url = f"{self.base_url}/transactions"
        log.debug(f"[HTTP SUBMIT] → {url} | op={OpType(op_type).value} hash={credential_hash}")
        try:
            res = self.session.post(url, json=tx, timeout=self.request_timeout)
        except requests.Timeout as e:
            # the node may have accepted it
            raise LedgerTimeoutError(f"submit timed out: {e}")
        except requests.ConnectionError as e:
            raise LedgerSubmissionError(f"ledger node unreachable: {e}")

        if res.status_code == 409:
            raise LedgerDuplicateError(self._error_message(res))
        if not res.ok:
            log.error(f"[HTTP SUBMIT] {res.status_code}: {res.text}")
            raise LedgerSubmissionError(self._error_message(res))

        try:
            tx_hash = res.json().get("hash")
        except ValueError:
            raise LedgerSubmissionError(f"ledger node returned malformed JSON: {res.text[:200]}")
        if not tx_hash:
            raise LedgerSubmissionError("ledger node returned no transaction hash")
        log.info(f"[HTTP SUBMIT] {res.status_code} tx={tx_hash}")
        return OperationHandle(OpType(op_type), credential_hash, tx_hash)

    def await_result(self, handle: OperationHandle, timeout: float) -> LedgerReceipt:
        url = f"{self.base_url}/transactions/by_hash/{handle.tx_hash}"
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise LedgerTimeoutError(f"no outcome for {handle.tx_hash} within {timeout}s")
            try:
                res = self.session.get(url, timeout=min(self.request_timeout, remaining))
            except requests.RequestException as e:
                # outcome still unknown; keep polling until the deadline
                log.warning(f"[HTTP AWAIT] poll error {e}")
                res = None

            if res is not None and res.ok:
                try:
                    data = res.json()
                except ValueError:
                    # outcome still unknown
                    log.warning(f"[HTTP AWAIT] malformed body: {res.text[:200]}")
                    data = {"type": "pending_transaction"}
                if data.get("type") != "pending_transaction":
                    return self._receipt(handle, data)
            elif res is not None and res.status_code != 404:
                log.warning(f"[HTTP AWAIT] {res.status_code}: {res.text}")

            time.sleep(max(0.0, min(self.poll_interval, deadline - time.monotonic())))

    def _receipt(self, handle: OperationHandle, data: Dict[str, Any]) -> LedgerReceipt:
        if data.get("success"):
            version = data.get("version")
            log.info({"event": "ledger_commit", "op": handle.op_type.value,
                      "credential_hash": handle.credential_hash, "tx": handle.tx_hash})
            return LedgerReceipt(handle.tx_hash, int(version) if version is not None else None)
        vm_status = str(data.get("vm_status", "aborted"))
        if any(marker in vm_status for marker in self.DUPLICATE_MARKERS):
            raise LedgerDuplicateError(vm_status)
        raise LedgerSubmissionError(f"transaction {handle.tx_hash} failed: {vm_status}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def read(self, credential_hash: str) -> OnChainRecord:
        url = f"{self.base_url}/credentials/{credential_hash}"
        res = self.session.get(url, timeout=self.request_timeout)
        if res.status_code == 404:
            raise NotFoundError(f"no ledger record for {credential_hash}")
        res.raise_for_status()
        data = res.json()
        return OnChainRecord(
            credential_hash=data.get("credential_hash", ""),
            issuer=data.get("issuer", ""),
            confirmed=bool(data.get("confirmed", True)),
            revoked=bool(data.get("revoked", False)),
            issue_tx_hash=data.get("issue_tx_hash"),
            revoke_tx_hash=data.get("revoke_tx_hash"),
            payload=data.get("payload") or {},
        )

    def close(self) -> None:
        self.session.close()

    @staticmethod
    def _error_message(res: requests.Response) -> str:
        try:
            return res.json().get("message") or res.text
        except ValueError:
            return res.text or f"HTTP {res.status_code}"

"""
credanchor_core.service
-----------------------
CredentialService wires the three stores to the issuance, verification and
revocation engines and shapes request/response bodies for an outer HTTP
layer. Errors come back as ``{"error": kind, "message": ...}`` bodies.
"""

from __future__ import annotations
from typing import Any, Dict, Optional
import os

from .constants import DEFAULT_LEDGER_TIMEOUT, DEFAULT_VERIFY_TIMEOUT
from .content import ContentStore, load_content_store
from .errors import CredentialError, ValidationError
from .issuance import IssuancePipeline
from .ledger import LedgerClient, ledger_factory
from .logger import get_logger
from .records import CredentialDraft
from .revocation import RevocationStateMachine
from .storage import RecordIndex, load_record_index
from .verification import VerificationEngine

log = get_logger("CA.Service")


def error_response(exc: CredentialError) -> Dict[str, Any]:
    return exc.to_dict()


class CredentialService:
    def __init__(self, content: ContentStore, ledger: LedgerClient, index: RecordIndex,
                 ledger_timeout: float = DEFAULT_LEDGER_TIMEOUT,
                 verify_timeout: float = DEFAULT_VERIFY_TIMEOUT):
        self.content = content
        self.ledger = ledger
        self.index = index
        self.issuance = IssuancePipeline(content, ledger, index, ledger_timeout=ledger_timeout)
        self.revocation = RevocationStateMachine(ledger, index, ledger_timeout=ledger_timeout)
        self.verification = VerificationEngine(content, ledger, index, read_timeout=verify_timeout)

    @classmethod
    def from_config(cls, config: Optional[dict] = None) -> "CredentialService":
        """Build every collaborator from ``config`` with CREDANCHOR_* env fallbacks."""
        config = config or {}
        ledger_timeout = float(config.get("ledger_timeout")
                               or os.getenv("CREDANCHOR_LEDGER_TIMEOUT", DEFAULT_LEDGER_TIMEOUT))
        verify_timeout = float(config.get("verify_timeout")
                               or os.getenv("CREDANCHOR_VERIFY_TIMEOUT", DEFAULT_VERIFY_TIMEOUT))
        svc = cls(
            load_content_store(config),
            ledger_factory(config),
            load_record_index(config),
            ledger_timeout=ledger_timeout,
            verify_timeout=verify_timeout,
        )
        log.info(f"[SERVICE] content={svc.content.name} ledger={svc.ledger.name} "
                 f"index={type(svc.index).__name__}")
        return svc

    # ------------------------------------------------------------------
    # Request handlers
    # ------------------------------------------------------------------
    def issue(self, body: Dict[str, Any], content: Optional[bytes] = None) -> Dict[str, Any]:
        try:
            draft = CredentialDraft.from_request(body or {})
            draft.content = content
            return self.issuance.issue(draft).to_dict()
        except CredentialError as e:
            log.info({"event": "issue_failed", "kind": e.kind, "message": e.message})
            return error_response(e)

    def verify(self, credential_hash: str) -> Dict[str, Any]:
        try:
            if not credential_hash:
                raise ValidationError("credentialHash is required")
            return self.verification.verify(credential_hash).to_dict()
        except CredentialError as e:
            return error_response(e)

    def revoke(self, body: Dict[str, Any]) -> Dict[str, Any]:
        body = body or {}
        try:
            result = self.revocation.revoke(body.get("credentialHash") or "", body.get("revocationReason"))
            return result.to_dict()
        except CredentialError as e:
            log.info({"event": "revoke_failed", "kind": e.kind, "message": e.message})
            return error_response(e)

    def list(self, page=None, limit=None, recipient: Optional[str] = None,
             issuer: Optional[str] = None, revoked: Optional[bool] = None) -> Dict[str, Any]:
        return self.index.list_records(page, limit, recipient=recipient, issuer=issuer,
                                       revoked=revoked).to_dict()

    def close(self) -> None:
        self.verification.close()
        self.ledger.close()
        self.content.close()
        self.index.close()

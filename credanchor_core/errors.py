"""
credanchor_core.errors
----------------------
Error hierarchy for CredAnchor. Every error carries a stable ``kind`` so the
outer surfaces can map it to a response body without string matching.
"""

from __future__ import annotations
from typing import Any, Dict


class CredentialError(Exception):
    """Base exception for all CredAnchor errors."""

    kind: str = "error"
    retryable: bool = False

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind)
        self.message = message or self.kind

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": self.message, "retryable": self.retryable}


class ValidationError(CredentialError):
    """Missing or malformed required field."""
    kind = "validation"


class ConflictError(CredentialError):
    """Duplicate credential hash or credential already revoked."""
    kind = "conflict"


class ConfigurationError(CredentialError):
    """A required collaborator (signing identity, provider) is unavailable."""
    kind = "configuration"


class NotFoundError(CredentialError):
    kind = "not_found"


class LedgerTimeoutError(CredentialError):
    """
    The ledger did not report an outcome in time.

    The operation may still land; callers may retry.
    """
    kind = "ledger_timeout"
    retryable = True


class LedgerSubmissionError(CredentialError):
    """The ledger definitely rejected the operation. Not retryable."""
    kind = "ledger_submission"


class LedgerDuplicateError(LedgerSubmissionError):
    """The (credential_hash, op_type) pair was already applied on the ledger."""
    kind = "ledger_duplicate"


class ContentStoreError(CredentialError):
    """Content store backend unreachable or misbehaving."""
    kind = "content_store"

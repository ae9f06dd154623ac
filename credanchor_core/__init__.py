"""
CredAnchor Core Package
=======================
Issuance, verification and revocation of tamper-evident credential records.

Provides:
- Credential record model and closed enumerations
- Content-addressed blob stores (memory, filesystem, IPFS)
- Ledger clients (memory, HTTP node) with Ed25519 signing
- Record index with atomic insert-if-absent / revoke-if-active (SQLite default)
- Issuance pipeline, verification engine and revocation state machine
"""

from .errors import (
    CredentialError,
    ValidationError,
    ConflictError,
    ConfigurationError,
    NotFoundError,
    LedgerTimeoutError,
    LedgerSubmissionError,
    LedgerDuplicateError,
    ContentStoreError,
)
from .records import (
    CredentialType,
    LedgerStatus,
    VerificationStatus,
    CredentialDraft,
    CredentialRecord,
)
from .issuance import IssuancePipeline, IssuanceResult
from .revocation import RevocationStateMachine, RevocationResult
from .verification import VerificationEngine, VerificationResult
from .service import CredentialService

__all__ = [
    "CredentialError",
    "ValidationError",
    "ConflictError",
    "ConfigurationError",
    "NotFoundError",
    "LedgerTimeoutError",
    "LedgerSubmissionError",
    "LedgerDuplicateError",
    "ContentStoreError",
    "CredentialType",
    "LedgerStatus",
    "VerificationStatus",
    "CredentialDraft",
    "CredentialRecord",
    "IssuancePipeline",
    "IssuanceResult",
    "RevocationStateMachine",
    "RevocationResult",
    "VerificationEngine",
    "VerificationResult",
    "CredentialService",
]

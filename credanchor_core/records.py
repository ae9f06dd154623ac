# credanchor_core/records.py

from __future__ import annotations
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from .constants import DEFAULT_PAGE, DEFAULT_LIMIT, MAX_LIMIT
from .errors import ValidationError
from .utils import now_ts, parse_ts


class CredentialType(str, Enum):
    DEGREE = "degree"
    CERTIFICATION = "certification"
    LICENSE = "license"
    ACHIEVEMENT = "achievement"
    OTHER = "other"

    @classmethod
    def parse(cls, value) -> "CredentialType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            allowed = ", ".join(t.value for t in cls)
            raise ValidationError(f"credentialType must be one of: {allowed}")


class LedgerStatus(str, Enum):
    """Outcome of the most recent ledger operation attempted for a record."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class VerificationStatus(str, Enum):
    VALID = "valid"
    REVOKED = "revoked"
    IPFS_ONLY = "ipfs_only"
    CHAIN_ONLY = "chain_only"
    DB_ONLY = "db_only"
    NOT_FOUND = "not_found"


@dataclass
class CredentialDraft:
    """
    Issuance input.

    ``content`` carries the raw document bytes when the caller has them; when
    it is None, ``content_locator`` may point at a blob stored earlier.
    """
    credential_hash: str
    title: str
    recipient_identity: str
    issuer_user_reference: str
    credential_type: CredentialType
    metadata_locator: str
    description: str = ""
    content_locator: Optional[str] = None
    content: Optional[bytes] = None
    tags: Set[str] = field(default_factory=set)
    metadata: Dict[str, Any] = field(default_factory=dict)
    issue_date: Optional[str] = None
    expiry_date: Optional[str] = None
    issuer_identity: Optional[str] = None

    REQUIRED = ("credential_hash", "title", "recipient_identity",
                "issuer_user_reference", "credential_type", "metadata_locator")

    def validate(self) -> "CredentialDraft":
        missing = [name for name in self.REQUIRED if not getattr(self, name)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        self.credential_type = CredentialType.parse(self.credential_type)
        if self.content is not None and not isinstance(self.content, (bytes, bytearray)):
            raise ValidationError("content must be bytes")
        if not isinstance(self.metadata, dict):
            raise ValidationError("metadata must be an object")
        self.tags = {str(t) for t in (self.tags or ())}
        for name in ("issue_date", "expiry_date"):
            try:
                parse_ts(getattr(self, name))
            except (TypeError, ValueError):
                raise ValidationError(f"{name} is not an ISO-8601 timestamp")
        return self

    @classmethod
    def from_request(cls, data: Dict[str, Any]) -> "CredentialDraft":
        """Build a draft from an issuance request body (camelCase keys)."""
        tags = data.get("tags") or []
        if not isinstance(tags, (list, tuple, set)):
            raise ValidationError("tags must be a list of strings")
        return cls(
            credential_hash=data.get("credentialHash") or "",
            title=data.get("title") or "",
            recipient_identity=data.get("recipientIdentity") or "",
            issuer_user_reference=data.get("issuerUserReference") or "",
            credential_type=data.get("credentialType") or "",
            metadata_locator=data.get("metadataLocator") or "",
            description=data.get("description") or "",
            content_locator=data.get("contentLocator") or None,
            tags=set(tags),
            metadata=data.get("metadata") or {},
            issue_date=data.get("issueDate"),
            expiry_date=data.get("expiryDate"),
        )


@dataclass
class CredentialRecord:
    """
    Indexed metadata entry describing an issued credential.

    ``credential_hash`` is the primary key. ``is_revoked`` only ever moves
    false -> true, and only through RecordIndex.revoke_if_active().
    """
    credential_hash: str
    recipient_identity: str
    issuer_identity: str
    issuer_user_reference: str
    credential_type: CredentialType
    title: str
    metadata_locator: str
    description: str = ""
    content_locator: Optional[str] = None
    ledger_tx_hash: Optional[str] = None
    ledger_status: LedgerStatus = LedgerStatus.PENDING
    issue_date: str = field(default_factory=now_ts)
    expiry_date: Optional[str] = None
    is_revoked: bool = False
    revocation_reason: Optional[str] = None
    revocation_date: Optional[str] = None
    tags: Set[str] = field(default_factory=set)
    metadata: Dict[str, Any] = field(default_factory=dict)
    record_id: Optional[str] = None
    created_at: str = field(default_factory=now_ts)
    updated_at: str = field(default_factory=now_ts)

    def __post_init__(self):
        self.credential_type = CredentialType.parse(self.credential_type)
        self.ledger_status = LedgerStatus(self.ledger_status)
        self.tags = set(self.tags or ())
        if self.ledger_status is LedgerStatus.CONFIRMED and not self.ledger_tx_hash:
            raise ValidationError("a confirmed record requires ledger_tx_hash")
        if self.is_revoked != (self.revocation_date is not None):
            raise ValidationError("revocation_date is set iff the record is revoked")

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        expiry = parse_ts(self.expiry_date)
        if expiry is None:
            return False
        return expiry <= (now or datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["credential_type"] = self.credential_type.value
        d["ledger_status"] = self.ledger_status.value
        d["tags"] = sorted(self.tags)
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CredentialRecord":
        return cls(
            credential_hash=data["credential_hash"],
            recipient_identity=data["recipient_identity"],
            issuer_identity=data["issuer_identity"],
            issuer_user_reference=data.get("issuer_user_reference", ""),
            credential_type=data["credential_type"],
            title=data["title"],
            metadata_locator=data.get("metadata_locator", ""),
            description=data.get("description") or "",
            content_locator=data.get("content_locator"),
            ledger_tx_hash=data.get("ledger_tx_hash"),
            ledger_status=data.get("ledger_status", LedgerStatus.PENDING.value),
            issue_date=data.get("issue_date") or now_ts(),
            expiry_date=data.get("expiry_date"),
            is_revoked=bool(data.get("is_revoked", False)),
            revocation_reason=data.get("revocation_reason"),
            revocation_date=data.get("revocation_date"),
            tags=set(data.get("tags") or ()),
            metadata=dict(data.get("metadata") or {}),
            record_id=data.get("record_id"),
            created_at=data.get("created_at") or now_ts(),
            updated_at=data.get("updated_at") or now_ts(),
        )

    @classmethod
    def from_draft(cls, draft: CredentialDraft, issuer_identity: str) -> "CredentialRecord":
        return cls(
            credential_hash=draft.credential_hash,
            recipient_identity=draft.recipient_identity,
            issuer_identity=issuer_identity,
            issuer_user_reference=draft.issuer_user_reference,
            credential_type=draft.credential_type,
            title=draft.title,
            metadata_locator=draft.metadata_locator,
            description=draft.description or "",
            content_locator=draft.content_locator,
            issue_date=draft.issue_date or now_ts(),
            expiry_date=draft.expiry_date,
            tags=set(draft.tags),
            metadata=dict(draft.metadata),
        )


@dataclass
class Page:
    items: List[CredentialRecord]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return -(-self.total // self.limit)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [r.to_dict() for r in self.items],
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "pages": self.pages,
        }


def clamp_pagination(page=None, limit=None):
    """page defaults to 1 (floor 1); limit defaults to 10, clamped to [1, 100]. Zero means default."""
    try:
        page = int(page or 0) or DEFAULT_PAGE
    except (TypeError, ValueError):
        page = DEFAULT_PAGE
    try:
        limit = int(limit or 0) or DEFAULT_LIMIT
    except (TypeError, ValueError):
        limit = DEFAULT_LIMIT
    return max(page, 1), min(max(limit, 1), MAX_LIMIT)

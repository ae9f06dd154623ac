# credanchor_core/storage/provider.py
from __future__ import annotations
from typing import Any, Dict, List, Optional

from credanchor_core.records import CredentialRecord, Page


class RecordIndex:
    """
    Mutable, queryable credential index keyed uniquely by credential_hash.

    insert_if_absent() and revoke_if_active() are the two compare-and-set
    writes; each must be a single atomic operation in the backend.
    """
    def get(self, credential_hash: str) -> Optional[CredentialRecord]: ...
    def insert_if_absent(self, rec: CredentialRecord) -> Optional[CredentialRecord]: ...
    def revoke_if_active(self, credential_hash: str, reason: str, revoked_at: str,
                         tx_hash: str) -> Optional[CredentialRecord]: ...
    def list_records(self, page: int = 1, limit: int = 10, recipient: Optional[str] = None,
                     issuer: Optional[str] = None, revoked: Optional[bool] = None) -> Page: ...
    def log_event(self, event_type: str, payload: Dict[str, Any]) -> None: ...
    def list_events(self) -> List[Dict[str, Any]]: ...

    def close(self) -> None:
        return

import copy
import threading
from dataclasses import replace
from typing import Dict, Any, List
from credanchor_core.records import CredentialRecord, LedgerStatus, Page, clamp_pagination
from credanchor_core.storage.provider import RecordIndex
from credanchor_core.utils import new_id, now_ts


def _copy(rec: CredentialRecord, **changes) -> CredentialRecord:
    # stored records are never shared with callers, metadata included
    changes.setdefault("metadata", copy.deepcopy(rec.metadata))
    return replace(rec, **changes)


class InMemoryRecordIndex(RecordIndex):
    """
    Records are replaced, never mutated in place, so a reader sees either the
    old record or the new one.
    """

    def __init__(self):
        self.records: Dict[str, CredentialRecord] = {}
        self.audit = []
        self._seq = 0
        self._order: Dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, credential_hash: str):
        with self._lock:
            rec = self.records.get(credential_hash)
        return _copy(rec) if rec else None

    def insert_if_absent(self, rec: CredentialRecord):
        with self._lock:
            if rec.credential_hash in self.records:
                return None
            stored = _copy(rec, record_id=rec.record_id or new_id())
            self.records[rec.credential_hash] = stored
            self._seq += 1
            self._order[rec.credential_hash] = self._seq
        return _copy(stored)

    def revoke_if_active(self, credential_hash: str, reason: str, revoked_at: str, tx_hash: str):
        with self._lock:
            rec = self.records.get(credential_hash)
            if rec is None or rec.is_revoked:
                return None
            revoked = replace(
                rec,
                is_revoked=True,
                revocation_reason=reason,
                revocation_date=revoked_at,
                ledger_tx_hash=tx_hash,
                ledger_status=LedgerStatus.CONFIRMED,
                updated_at=now_ts(),
            )
            self.records[credential_hash] = revoked
        return _copy(revoked)

    def list_records(self, page=1, limit=10, recipient=None, issuer=None, revoked=None) -> Page:
        page, limit = clamp_pagination(page, limit)
        with self._lock:
            matches = [
                r for r in self.records.values()
                if (recipient is None or r.recipient_identity == recipient)
                and (issuer is None or r.issuer_identity == issuer)
                and (revoked is None or r.is_revoked == revoked)
            ]
            order = dict(self._order)
        # newest first
        matches.sort(key=lambda r: order[r.credential_hash], reverse=True)
        start = (page - 1) * limit
        return Page([_copy(r) for r in matches[start:start + limit]], page, limit, len(matches))

    # audit
    def log_event(self, event_type: str, payload: Dict[str, Any]):
        with self._lock:
            self.audit.append({"ts": now_ts(), "event_type": event_type, "payload": dict(payload)})

    def list_events(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self.audit)

from __future__ import annotations
from typing import Optional, Dict, Any, List
import json, sqlite3, os, threading
from credanchor_core.records import CredentialRecord, LedgerStatus, Page, clamp_pagination
from credanchor_core.storage.provider import RecordIndex
from credanchor_core.utils import new_id, now_ts

COLUMNS = (
    "credential_hash", "record_id", "recipient_identity", "issuer_identity",
    "issuer_user_reference", "credential_type", "title", "description",
    "metadata_locator", "content_locator", "ledger_tx_hash", "ledger_status",
    "issue_date", "expiry_date", "is_revoked", "revocation_reason",
    "revocation_date", "tags", "metadata", "created_at", "updated_at",
)


class SQLiteRecordIndex(RecordIndex):
    def __init__(self, path="db/credentials.db"):
        # If no directory, default to current working directory
        dir_path = os.path.dirname(path) or "."
        os.makedirs(dir_path, exist_ok=True)
        self.db = sqlite3.connect(path, check_same_thread=False)
        # one connection shared across threads; statements + commit run under this lock
        self._lock = threading.Lock()

        self._init()

    def _init(self) -> None:
        c = self.db.cursor()

        c.execute("""CREATE TABLE IF NOT EXISTS credentials(
            credential_hash TEXT PRIMARY KEY,
            record_id TEXT NOT NULL UNIQUE,
            recipient_identity TEXT NOT NULL,
            issuer_identity TEXT NOT NULL,
            issuer_user_reference TEXT,
            credential_type TEXT NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            metadata_locator TEXT NOT NULL,
            content_locator TEXT,
            ledger_tx_hash TEXT,
            ledger_status TEXT NOT NULL,
            issue_date TEXT NOT NULL,
            expiry_date TEXT,
            is_revoked INTEGER NOT NULL DEFAULT 0,
            revocation_reason TEXT,
            revocation_date TEXT,
            tags TEXT,
            metadata TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            seq INTEGER
        )""")
        c.execute("CREATE INDEX IF NOT EXISTS idx_credentials_recipient ON credentials(recipient_identity)")
        c.execute("CREATE INDEX IF NOT EXISTS idx_credentials_issuer ON credentials(issuer_identity)")
        c.execute("CREATE INDEX IF NOT EXISTS idx_credentials_revoked ON credentials(is_revoked)")
        c.execute("""CREATE TABLE IF NOT EXISTS audit(
            ts TEXT,
            event_type TEXT,
            payload TEXT
        )""")

        self.db.commit()

    @staticmethod
    def _to_row(rec: CredentialRecord) -> tuple:
        d = rec.to_dict()
        d["is_revoked"] = 1 if rec.is_revoked else 0
        d["tags"] = json.dumps(d["tags"])
        d["metadata"] = json.dumps(d["metadata"], sort_keys=True)
        return tuple(d[col] for col in COLUMNS)

    @staticmethod
    def _from_row(row) -> CredentialRecord:
        d = dict(zip(COLUMNS, row))
        d["is_revoked"] = bool(d["is_revoked"])
        d["tags"] = json.loads(d["tags"]) if d["tags"] else []
        d["metadata"] = json.loads(d["metadata"]) if d["metadata"] else {}
        return CredentialRecord.from_dict(d)

    def get(self, credential_hash: str) -> Optional[CredentialRecord]:
        with self._lock:
            cur = self.db.execute(
                f"SELECT {', '.join(COLUMNS)} FROM credentials WHERE credential_hash=?",
                (credential_hash,),
            )
            row = cur.fetchone()
        if not row: return None
        return self._from_row(row)

    def insert_if_absent(self, rec: CredentialRecord) -> Optional[CredentialRecord]:
        if not rec.record_id:
            rec = CredentialRecord.from_dict({**rec.to_dict(), "record_id": new_id()})
        placeholders = ", ".join(["?"] * len(COLUMNS))
        with self._lock:
            cur = self.db.execute(
                f"INSERT INTO credentials ({', '.join(COLUMNS)}, seq) "
                f"VALUES ({placeholders}, (SELECT COALESCE(MAX(seq), 0) + 1 FROM credentials)) "
                "ON CONFLICT(credential_hash) DO NOTHING",
                self._to_row(rec),
            )
            self.db.commit()
            inserted = cur.rowcount == 1
        return rec if inserted else None

    def revoke_if_active(self, credential_hash: str, reason: str, revoked_at: str,
                         tx_hash: str) -> Optional[CredentialRecord]:
        with self._lock:
            cur = self.db.execute(
                "UPDATE credentials SET is_revoked=1, revocation_reason=?, revocation_date=?, "
                "ledger_tx_hash=?, ledger_status=?, updated_at=? "
                "WHERE credential_hash=? AND is_revoked=0",
                (reason, revoked_at, tx_hash, LedgerStatus.CONFIRMED.value, now_ts(), credential_hash),
            )
            self.db.commit()
            updated = cur.rowcount == 1
        return self.get(credential_hash) if updated else None

    def list_records(self, page=1, limit=10, recipient=None, issuer=None, revoked=None) -> Page:
        page, limit = clamp_pagination(page, limit)
        clauses, params = [], []
        if recipient is not None:
            clauses.append("recipient_identity=?"); params.append(recipient)
        if issuer is not None:
            clauses.append("issuer_identity=?"); params.append(issuer)
        if revoked is not None:
            clauses.append("is_revoked=?"); params.append(1 if revoked else 0)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._lock:
            total = self.db.execute(f"SELECT COUNT(*) FROM credentials{where}", params).fetchone()[0]
            rows = self.db.execute(
                f"SELECT {', '.join(COLUMNS)} FROM credentials{where} ORDER BY seq DESC LIMIT ? OFFSET ?",
                (*params, limit, (page - 1) * limit),
            ).fetchall()
        return Page([self._from_row(r) for r in rows], page, limit, total)

    def log_event(self, event_type: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            self.db.execute("INSERT INTO audit(ts,event_type,payload) VALUES(?,?,?)",
                            (now_ts(), event_type, json.dumps(payload, separators=(",", ":"), sort_keys=True)))
            self.db.commit()

    def list_events(self) -> List[Dict[str, Any]]:
        with self._lock:
            rows = self.db.execute("SELECT ts, event_type, payload FROM audit ORDER BY rowid").fetchall()
        return [{"ts": ts, "event_type": et, "payload": json.loads(p)} for ts, et, p in rows]

    def close(self):
        self.db.close()

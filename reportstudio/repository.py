from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Iterable

from reportstudio.exceptions import DatabaseError

# Entity kinds stored in the documents table.
KINDS = frozenset(
    {
        "organization",
        "organizational_unit",
        "user",
        "catalog_item",
        "period",
        "section",
        "data_point",
        "validation_rule",
        "evidence",
        "assumption",
        "decision",
        "decision_version",
        "gap",
        "remediation_plan",
        "remediation_action",
        "approval_request",
        "rollover_rule",
        "rollover_rule_history",
        "rollover_audit",
        "role",
        "section_access",
        "reminder_config",
        "reminder_history",
        "escalation_config",
        "escalation_history",
        "completion_exception",
        "standard",
        "standard_mapping",
        "maturity_model",
    }
)


class DocumentRepo:
    """
    SQLite document store for Report Studio entities.

    Design goals:
    - Single-file DB (easy deploy + backup)
    - Each entity stored as its full JSON document, keyed by (kind, id)
    - Period/section columns indexed for the common scoped listings
    - Append-only audit table with insertion order preserved by ``seq``
    """

    def __init__(self, db_path: str = "data/reportstudio.db") -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.execute("PRAGMA journal_mode = WAL;")
        conn.execute("PRAGMA synchronous = NORMAL;")
        return conn

    def _init_db(self) -> None:
        try:
            with self._conn() as conn:
                conn.executescript(
                    """
                    CREATE TABLE IF NOT EXISTS documents (
                        kind TEXT NOT NULL,
                        id TEXT NOT NULL,
                        period_id TEXT,
                        section_id TEXT,
                        data_json TEXT NOT NULL,
                        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                        updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
                        PRIMARY KEY (kind, id)
                    );

                    CREATE TABLE IF NOT EXISTS audit_log (
                        seq INTEGER PRIMARY KEY AUTOINCREMENT,
                        id TEXT NOT NULL UNIQUE,
                        timestamp TEXT NOT NULL,
                        entity_type TEXT NOT NULL,
                        entity_id TEXT NOT NULL,
                        user_id TEXT,
                        entry_hash TEXT NOT NULL,
                        data_json TEXT NOT NULL
                    );

                    CREATE INDEX IF NOT EXISTS idx_documents_period ON documents(kind, period_id);
                    CREATE INDEX IF NOT EXISTS idx_documents_section ON documents(kind, section_id);
                    CREATE INDEX IF NOT EXISTS idx_audit_entity ON audit_log(entity_type, entity_id);
                    CREATE INDEX IF NOT EXISTS idx_audit_user ON audit_log(user_id);
                    """
                )
        except sqlite3.Error as exc:
            raise DatabaseError(f"Could not initialise database: {exc}", operation="init") from exc

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    @staticmethod
    def _row_values(kind: str, doc: dict[str, Any]) -> tuple:
        doc_id = str(doc.get("id") or "").strip()
        if not doc_id:
            raise ValueError(f"{kind}.id is required")
        if kind not in KINDS:
            raise ValueError(f"Unknown document kind: {kind}")
        return (
            kind,
            doc_id,
            doc.get("periodId"),
            doc.get("sectionId"),
            json.dumps(doc, ensure_ascii=False),
        )

    def upsert(self, kind: str, doc: dict[str, Any]) -> dict[str, Any]:
        self.upsert_many([(kind, doc)])
        return doc

    def upsert_many(self, items: Iterable[tuple[str, dict[str, Any]]]) -> None:
        """Write several documents in one transaction."""
        rows = [self._row_values(kind, doc) for kind, doc in items]
        if not rows:
            return
        try:
            with self._conn() as conn:
                conn.executemany(
                    """
                    INSERT INTO documents (kind, id, period_id, section_id, data_json, updated_at)
                    VALUES (?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(kind, id) DO UPDATE SET
                        period_id=excluded.period_id,
                        section_id=excluded.section_id,
                        data_json=excluded.data_json,
                        updated_at=CURRENT_TIMESTAMP
                    """,
                    rows,
                )
        except sqlite3.Error as exc:
            raise DatabaseError(f"Could not write documents: {exc}", operation="upsert", table="documents") from exc

    def get(self, kind: str, doc_id: str | None) -> dict[str, Any] | None:
        doc_id = (doc_id or "").strip()
        if not doc_id:
            return None
        with self._conn() as conn:
            row = conn.execute(
                "SELECT data_json FROM documents WHERE kind = ? AND id = ?",
                (kind, doc_id),
            ).fetchone()
            return json.loads(row["data_json"]) if row else None

    def list(
        self,
        kind: str,
        *,
        period_id: str | None = None,
        section_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """List documents of a kind in insertion order."""
        where = ["kind = ?"]
        params: list[Any] = [kind]
        if period_id is not None:
            where.append("period_id = ?")
            params.append(period_id)
        if section_id is not None:
            where.append("section_id = ?")
            params.append(section_id)
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT data_json FROM documents WHERE {' AND '.join(where)} ORDER BY rowid",
                params,
            ).fetchall()
            return [json.loads(row["data_json"]) for row in rows]

    def delete(self, kind: str, doc_id: str) -> bool:
        with self._conn() as conn:
            cur = conn.execute("DELETE FROM documents WHERE kind = ? AND id = ?", (kind, doc_id))
            return cur.rowcount > 0

    def delete_many(self, kind: str, doc_ids: Iterable[str]) -> int:
        ids = [(kind, i) for i in doc_ids]
        if not ids:
            return 0
        with self._conn() as conn:
            cur = conn.executemany("DELETE FROM documents WHERE kind = ? AND id = ?", ids)
            return cur.rowcount

    def count(self, kind: str) -> int:
        with self._conn() as conn:
            row = conn.execute("SELECT COUNT(*) AS c FROM documents WHERE kind = ?", (kind,)).fetchone()
            return int(row["c"] if row else 0)

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    def append_audit(self, entry: dict[str, Any]) -> None:
        try:
            with self._conn() as conn:
                conn.execute(
                    """
                    INSERT INTO audit_log (id, timestamp, entity_type, entity_id, user_id, entry_hash, data_json)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        entry["id"],
                        entry["timestamp"],
                        entry["entityType"],
                        entry["entityId"],
                        entry.get("userId"),
                        entry["entryHash"],
                        json.dumps(entry, ensure_ascii=False),
                    ),
                )
        except sqlite3.Error as exc:
            raise DatabaseError(f"Could not append audit entry: {exc}", operation="insert", table="audit_log") from exc

    def list_audit(
        self,
        *,
        entity_type: str | None = None,
        entity_id: str | None = None,
        user_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """List audit entries oldest first."""
        where: list[str] = []
        params: list[Any] = []
        if entity_type:
            where.append("LOWER(entity_type) = LOWER(?)")
            params.append(entity_type)
        if entity_id:
            where.append("entity_id = ?")
            params.append(entity_id)
        if user_id:
            where.append("user_id = ?")
            params.append(user_id)
        sql = "SELECT data_json FROM audit_log"
        if where:
            sql += " WHERE " + " AND ".join(where)
        with self._conn() as conn:
            rows = conn.execute(sql + " ORDER BY seq", params).fetchall()
            return [json.loads(row["data_json"]) for row in rows]

    def last_audit_hash(self) -> str | None:
        with self._conn() as conn:
            row = conn.execute("SELECT entry_hash FROM audit_log ORDER BY seq DESC LIMIT 1").fetchone()
            return row["entry_hash"] if row else None

"""
Hash-chained audit trail.

Each entry stores the SHA-256 of its canonical JSON together with the hash of
the entry before it, so editing or removing a stored entry breaks the chain
and ``verify_chain`` reports the first entry that no longer matches.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from datetime import datetime, time, timezone
from typing import Any

from reportstudio.config import settings
from reportstudio.logging_config import log_event
from reportstudio.repository import DocumentRepo
from reportstudio.services.base import _write_lock, new_id, parse_date, utc_now

HASH_ALGORITHM = "SHA-256"
EXPORT_FORMAT_VERSION = "1.0"


def canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_entry_hash(entry: dict[str, Any]) -> str:
    body = {k: v for k, v in entry.items() if k != "entryHash"}
    return hashlib.sha256(canonical_json(body).encode("utf-8")).hexdigest()


class AuditTrail:
    def __init__(self, repo: DocumentRepo) -> None:
        self.repo = repo

    def append(
        self,
        *,
        user_id: str,
        user_name: str,
        action: str,
        entity_type: str,
        entity_id: str,
        change_note: str | None = None,
        changes: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        with _write_lock:
            entry: dict[str, Any] = {
                "id": new_id(),
                "timestamp": utc_now(),
                "userId": user_id,
                "userName": user_name,
                "action": action,
                "entityType": entity_type,
                "entityId": entity_id,
                "changeNote": change_note,
                "changes": list(changes or []),
                "previousEntryHash": self.repo.last_audit_hash(),
            }
            entry["entryHash"] = compute_entry_hash(entry)
            self.repo.append_audit(entry)
        return entry

    def query(
        self,
        *,
        entity_type: str | None = None,
        entity_id: str | None = None,
        user_id: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> list[dict[str, Any]]:
        """Entries matching the filters, newest first."""
        entries = self.repo.list_audit(entity_type=entity_type, entity_id=entity_id, user_id=user_id)

        start = parse_date(start_date)
        end = parse_date(end_date)
        if start or end:
            lower = datetime.combine(start, time.min, tzinfo=timezone.utc) if start else None
            upper = datetime.combine(end, time.max, tzinfo=timezone.utc) if end else None
            kept = []
            for entry in entries:
                ts = datetime.fromisoformat(entry["timestamp"])
                if lower and ts < lower:
                    continue
                if upper and ts > upper:
                    continue
                kept.append(entry)
            entries = kept

        entries.reverse()
        return entries

    def verify_chain(self) -> dict[str, Any]:
        previous: str | None = None
        entries = self.repo.list_audit()
        for entry in entries:
            if entry.get("previousEntryHash") != previous or compute_entry_hash(entry) != entry.get("entryHash"):
                log_event("audit_chain_invalid", level="WARNING", entry_id=entry.get("id"))
                return {"valid": False, "entriesChecked": len(entries), "firstInvalidEntryId": entry.get("id")}
            previous = entry["entryHash"]
        return {"valid": True, "entriesChecked": len(entries), "firstInvalidEntryId": None}

    def export(
        self,
        *,
        exported_by: str,
        exported_by_name: str,
        entity_type: str | None = None,
        entity_id: str | None = None,
        user_id: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> dict[str, Any]:
        filters = {
            "entityType": entity_type,
            "entityId": entity_id,
            "userId": user_id,
            "startDate": start_date,
            "endDate": end_date,
        }
        entries = self.query(
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
        )
        content_hash = hashlib.sha256(canonical_json(entries).encode("utf-8")).hexdigest()
        key = settings.audit_signing_key
        if key:
            signature = hmac.new(key.encode("utf-8"), content_hash.encode("utf-8"), hashlib.sha256).hexdigest()
        else:
            signature = content_hash

        log_event("audit_exported", exported_by=exported_by, entry_count=len(entries), signed=bool(key))
        return {
            "metadata": {
                "exportedAt": utc_now(),
                "exportedBy": exported_by,
                "exportedByName": exported_by_name,
                "hashAlgorithm": HASH_ALGORITHM,
                "formatVersion": EXPORT_FORMAT_VERSION,
                "filters": {k: v for k, v in filters.items() if v},
                "entryCount": len(entries),
            },
            "entries": entries,
            "contentHash": content_hash,
            "signature": signature,
        }

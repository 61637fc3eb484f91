from __future__ import annotations

import base64
import binascii
import hashlib
import re
from typing import Any
from urllib.parse import urlparse

from reportstudio.exceptions import ConflictError, NotFoundError, ValidationError
from reportstudio.models import EvidenceRequest
from reportstudio.services.base import ServiceBase, change, is_blank, new_id, require, utc_now
from reportstudio.services.datapoints import auto_completeness

MAX_SOURCE_URL_LENGTH = 2048
_SHA256_HEX = re.compile(r"^[0-9a-f]{64}$")

# Completeness values a user set on purpose; linking evidence leaves them alone.
_MANUAL_COMPLETENESS = frozenset({"missing", "not applicable"})


def decode_file_content(encoded: str) -> bytes:
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("FileContent must be valid base64.", field="fileContent") from exc


def sha256_hex(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


def _valid_source_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class EvidenceService(ServiceBase):
    """Evidence files and source links, their data point links and integrity checks."""

    def list_evidence(self, section_id: str | None = None) -> list[dict[str, Any]]:
        return self.repo.list("evidence", section_id=section_id or None)

    def get_evidence(self, evidence_id: str) -> dict[str, Any]:
        return self._get_or_404("evidence", evidence_id, "Evidence not found.")

    def create_evidence(self, req: EvidenceRequest) -> dict[str, Any]:
        require(req.title, "title", "Title is required.")
        require(req.section_id, "sectionId", "SectionId is required.")
        require(req.uploaded_by, "uploadedBy", "UploadedBy is required.")
        has_file = not is_blank(req.file_name) or not is_blank(req.file_content)
        if not has_file and is_blank(req.source_url):
            raise ValidationError("Either a file or a source URL must be provided.")
        if not is_blank(req.source_url):
            url = req.source_url.strip()
            if len(url) > MAX_SOURCE_URL_LENGTH:
                raise ValidationError(
                    f"Source URL cannot exceed {MAX_SOURCE_URL_LENGTH} characters.", field="sourceUrl"
                )
            if not _valid_source_url(url):
                raise ValidationError("Source URL must be a valid HTTP or HTTPS URL.", field="sourceUrl")
        if self.repo.get("section", req.section_id) is None:
            raise ValidationError(f"Section with ID '{req.section_id}' not found.", field="sectionId")

        checksum = (req.checksum or "").strip().lower() or None
        file_size = req.file_size
        if not is_blank(req.file_content):
            payload = decode_file_content(req.file_content)
            checksum = sha256_hex(payload)
            file_size = len(payload)
        elif checksum and not _SHA256_HEX.match(checksum):
            raise ValidationError("Checksum must be a SHA-256 hex digest.", field="checksum")

        evidence = {
            "id": new_id(),
            "sectionId": req.section_id,
            "title": req.title.strip(),
            "description": req.description,
            "fileName": req.file_name,
            "fileUrl": req.file_url,
            "sourceUrl": (req.source_url or "").strip() or None,
            "uploadedBy": req.uploaded_by,
            "uploadedAt": utc_now(),
            "linkedDataPoints": [],
            "fileSize": file_size,
            "contentType": req.content_type,
            "checksum": checksum,
            "integrityStatus": "valid" if checksum else "not-checked",
        }
        self.repo.upsert("evidence", evidence)
        self.record(
            user_id=req.uploaded_by,
            action="upload",
            entity_type="Evidence",
            entity_id=evidence["id"],
            changes=[change("Title", None, evidence["title"])],
        )
        return evidence

    def _refresh_completeness(self, dp: dict[str, Any]) -> None:
        if dp.get("completenessStatus") not in _MANUAL_COMPLETENESS:
            dp["completenessStatus"] = auto_completeness(dp)

    def link(self, evidence_id: str, data_point_id: str) -> dict[str, Any]:
        require(data_point_id, "dataPointId", "DataPointId is required.")
        with self.lock:
            evidence = self.get_evidence(evidence_id)
            dp = self.repo.get("data_point", data_point_id)
            if dp is None:
                raise NotFoundError("DataPoint not found.", resource_type="data_point", resource_id=data_point_id)
            if data_point_id in evidence["linkedDataPoints"]:
                raise ConflictError("Evidence is already linked to this data point.")
            evidence["linkedDataPoints"].append(data_point_id)
            if evidence_id not in dp.setdefault("evidenceIds", []):
                dp["evidenceIds"].append(evidence_id)
            self._refresh_completeness(dp)
            dp["updatedAt"] = utc_now()
            self.repo.upsert_many([("evidence", evidence), ("data_point", dp)])
        return evidence

    def unlink(self, evidence_id: str, data_point_id: str) -> dict[str, Any]:
        with self.lock:
            evidence = self.get_evidence(evidence_id)
            if data_point_id not in evidence["linkedDataPoints"]:
                raise NotFoundError("Evidence is not linked to this data point.")
            evidence["linkedDataPoints"].remove(data_point_id)
            docs: list[tuple[str, dict[str, Any]]] = [("evidence", evidence)]
            dp = self.repo.get("data_point", data_point_id)
            if dp is not None:
                dp["evidenceIds"] = [i for i in dp.get("evidenceIds") or [] if i != evidence_id]
                self._refresh_completeness(dp)
                dp["updatedAt"] = utc_now()
                docs.append(("data_point", dp))
            self.repo.upsert_many(docs)
        return evidence

    def delete_evidence(self, evidence_id: str, deleted_by: str | None = None) -> None:
        with self.lock:
            evidence = self.get_evidence(evidence_id)
            docs = []
            for data_point_id in evidence["linkedDataPoints"]:
                dp = self.repo.get("data_point", data_point_id)
                if dp is None:
                    continue
                dp["evidenceIds"] = [i for i in dp.get("evidenceIds") or [] if i != evidence_id]
                self._refresh_completeness(dp)
                docs.append(("data_point", dp))
            self.repo.upsert_many(docs)
            self.repo.delete("evidence", evidence_id)
        self.record(
            user_id=deleted_by,
            action="delete",
            entity_type="Evidence",
            entity_id=evidence_id,
            changes=[change("Title", evidence["title"], None)],
        )

    def verify_integrity(self, evidence_id: str, file_content: str) -> dict[str, Any]:
        require(file_content, "fileContent", "FileContent is required.")
        with self.lock:
            evidence = self.get_evidence(evidence_id)
            actual = sha256_hex(decode_file_content(file_content))
            expected = evidence.get("checksum")
            evidence["integrityStatus"] = "valid" if expected and actual == expected else "failed"
            evidence["lastVerifiedAt"] = utc_now()
            self.repo.upsert("evidence", evidence)
        return {
            "evidenceId": evidence_id,
            "isValid": evidence["integrityStatus"] == "valid",
            "expectedChecksum": expected,
            "actualChecksum": actual,
            "integrityStatus": evidence["integrityStatus"],
        }

"""
Reporting standards catalog (ESRS, GRI, ...) and the mappings from standard
references to report sections.
"""

from __future__ import annotations

from typing import Any

from reportstudio.exceptions import ConflictError, NotFoundError, ValidationError
from reportstudio.models import DeprecateStandardRequest, StandardMappingRequest, StandardRequest
from reportstudio.services.base import ServiceBase, change, diff, new_id, parse_date, require, utc_now

TRACKED_FIELDS = {
    "title": "Title",
    "description": "Description",
    "version": "Version",
    "effectiveStartDate": "EffectiveStartDate",
    "effectiveEndDate": "EffectiveEndDate",
}


def _validate_dates(req: StandardRequest) -> None:
    start = parse_date(req.effective_start_date) if req.effective_start_date else None
    end = parse_date(req.effective_end_date) if req.effective_end_date else None
    if req.effective_start_date and start is None:
        raise ValidationError("EffectiveStartDate must be a valid date.", field="effectiveStartDate")
    if req.effective_end_date and end is None:
        raise ValidationError("EffectiveEndDate must be a valid date.", field="effectiveEndDate")
    if start and end and end < start:
        raise ValidationError("EffectiveEndDate must be on or after EffectiveStartDate.", field="effectiveEndDate")


class StandardsCatalogService(ServiceBase):
    def list_standards(self, include_deprecated: bool = False) -> list[dict[str, Any]]:
        standards = self.repo.list("standard")
        if not include_deprecated:
            standards = [s for s in standards if not s.get("isDeprecated")]
        return sorted(standards, key=lambda s: s["identifier"].lower())

    def get_standard(self, standard_id: str) -> dict[str, Any]:
        return self._get_or_404("standard", standard_id, "Standard not found.")

    def create_standard(self, req: StandardRequest) -> dict[str, Any]:
        require(req.identifier, "identifier", "Identifier is required.")
        require(req.title, "title", "Title is required.")
        require(req.version, "version", "Version is required.")
        _validate_dates(req)
        identifier = req.identifier.strip()

        with self.lock:
            if any(s["identifier"].lower() == identifier.lower() for s in self.repo.list("standard")):
                raise ConflictError(f"A standard with identifier '{identifier}' already exists.")
            now = utc_now()
            standard = {
                "id": new_id(),
                "identifier": identifier,
                "title": req.title.strip(),
                "description": req.description,
                "version": req.version.strip(),
                "effectiveStartDate": req.effective_start_date,
                "effectiveEndDate": req.effective_end_date,
                "isDeprecated": False,
                "createdBy": req.created_by,
                "createdAt": now,
                "updatedAt": now,
            }
            self.repo.upsert("standard", standard)
        self.record(
            user_id=req.created_by,
            action="create",
            entity_type="StandardsCatalogItem",
            entity_id=standard["id"],
            changes=[change("Identifier", None, identifier), change("Version", None, standard["version"])],
        )
        return standard

    def update_standard(self, standard_id: str, req: StandardRequest) -> dict[str, Any]:
        """Identifiers are fixed once created; a differing identifier in the body is ignored."""
        require(req.title, "title", "Title is required.")
        require(req.version, "version", "Version is required.")
        _validate_dates(req)
        with self.lock:
            standard = self.get_standard(standard_id)
            before = dict(standard)
            standard.update(
                {
                    "title": req.title.strip(),
                    "description": req.description,
                    "version": req.version.strip(),
                    "effectiveStartDate": req.effective_start_date,
                    "effectiveEndDate": req.effective_end_date,
                    "updatedAt": utc_now(),
                }
            )
            self.repo.upsert("standard", standard)
        changes = diff(before, standard, TRACKED_FIELDS)
        if changes:
            self.record(
                user_id=req.updated_by,
                action="update",
                entity_type="StandardsCatalogItem",
                entity_id=standard_id,
                changes=changes,
            )
        return standard

    def deprecate(self, standard_id: str, req: DeprecateStandardRequest) -> dict[str, Any]:
        with self.lock:
            standard = self.get_standard(standard_id)
            if standard.get("isDeprecated"):
                raise ConflictError("Standard is already deprecated.")
            standard.update({"isDeprecated": True, "updatedAt": utc_now()})
            self.repo.upsert("standard", standard)
        self.record(
            user_id=req.deprecated_by,
            action="deprecate",
            entity_type="StandardsCatalogItem",
            entity_id=standard_id,
            changes=[change("IsDeprecated", "false", "true")],
        )
        return {"message": "Standard has been deprecated successfully."}

    # -- mappings ------------------------------------------------------------

    def list_mappings(self, standard_id: str | None = None, section_id: str | None = None) -> list[dict[str, Any]]:
        mappings = self.repo.list("standard_mapping", section_id=section_id or None)
        if standard_id:
            mappings = [m for m in mappings if m["standardId"] == standard_id]
        return mappings

    def mappings_for_standard(self, standard_id: str) -> list[dict[str, Any]]:
        self.get_standard(standard_id)
        return self.list_mappings(standard_id=standard_id)

    def create_mapping(self, req: StandardMappingRequest) -> dict[str, Any]:
        require(req.standard_id, "standardId", "StandardId is required.")
        require(req.standard_reference, "standardReference", "StandardReference is required.")
        require(req.section_id, "sectionId", "SectionId is required.")
        with self.lock:
            standard = self.repo.get("standard", req.standard_id)
            if standard is None:
                raise ValidationError(f"Standard with ID '{req.standard_id}' not found.", field="standardId")
            if standard.get("isDeprecated"):
                raise ValidationError("Cannot map sections to a deprecated standard.", field="standardId")
            section = self.repo.get("section", req.section_id)
            if section is None:
                raise ValidationError(f"Section with ID '{req.section_id}' not found.", field="sectionId")
            reference = req.standard_reference.strip()
            for existing in self.list_mappings(standard_id=standard["id"], section_id=section["id"]):
                if existing["standardReference"].lower() == reference.lower():
                    raise ConflictError(f"Section is already mapped to '{reference}'.")
            mapping = {
                "id": new_id(),
                "standardId": standard["id"],
                "standardIdentifier": standard["identifier"],
                "standardReference": reference,
                "sectionId": section["id"],
                "sectionTitle": section["title"],
                "createdBy": req.created_by,
                "createdAt": utc_now(),
            }
            self.repo.upsert("standard_mapping", mapping)
        self.record(
            user_id=req.created_by,
            action="create-mapping",
            entity_type="StandardsCatalogItem",
            entity_id=standard["id"],
            changes=[change("Mapping", None, f"{reference} -> {section['title']}")],
        )
        return mapping

    def delete_mapping(self, mapping_id: str, deleted_by: str | None = None) -> None:
        with self.lock:
            mapping = self.repo.get("standard_mapping", mapping_id)
            if mapping is None:
                raise NotFoundError("Mapping not found.", resource_type="standard_mapping", resource_id=mapping_id)
            self.repo.delete("standard_mapping", mapping_id)
        self.record(
            user_id=deleted_by,
            action="delete-mapping",
            entity_type="StandardsCatalogItem",
            entity_id=mapping["standardId"],
            changes=[change("Mapping", f"{mapping['standardReference']} -> {mapping['sectionTitle']}", None)],
        )

from __future__ import annotations

from typing import Any

from reportstudio.config import COVERAGE_TYPES
from reportstudio.exceptions import ConflictError, NotFoundError, ValidationError
from reportstudio.models import OrganizationalUnitRequest, OrganizationRequest
from reportstudio.services.base import ServiceBase, new_id, require, utc_now


class OrganizationService(ServiceBase):
    """The reporting organization and its unit hierarchy."""

    def get_organization(self) -> dict[str, Any] | None:
        orgs = self.repo.list("organization")
        return orgs[-1] if orgs else None

    def require_organization(self) -> dict[str, Any]:
        org = self.get_organization()
        if org is None:
            raise NotFoundError("Organization has not been configured.", resource_type="organization")
        return org

    def _validate(self, req: OrganizationRequest) -> None:
        require(req.name, "name", "Organization name is required.")
        if req.coverage_type not in COVERAGE_TYPES:
            raise ValidationError("CoverageType must be one of: full, limited.", field="coverageType")
        if req.coverage_type == "limited" and not (req.coverage_justification or "").strip():
            raise ValidationError(
                "Coverage justification is required when coverage is limited.",
                field="coverageJustification",
            )

    def create_organization(self, req: OrganizationRequest) -> dict[str, Any]:
        self._validate(req)
        with self.lock:
            # Creating again replaces the organization under its existing id,
            # so periods that reference it stay valid.
            current = self.get_organization()
            org = {
                "id": current["id"] if current else new_id(),
                "name": req.name.strip(),
                "legalForm": req.legal_form,
                "country": req.country,
                "identifier": req.identifier,
                "createdBy": req.created_by,
                "createdAt": utc_now(),
                "coverageType": req.coverage_type,
                "coverageJustification": req.coverage_justification,
            }
            self.repo.upsert("organization", org)
        self.record(user_id=req.created_by, action="create", entity_type="Organization", entity_id=org["id"])
        return org

    def update_organization(self, org_id: str, req: OrganizationRequest) -> dict[str, Any]:
        self._validate(req)
        with self.lock:
            org = self._get_or_404("organization", org_id, "Organization not found.")
            org.update(
                {
                    "name": req.name.strip(),
                    "legalForm": req.legal_form,
                    "country": req.country,
                    "identifier": req.identifier,
                    "coverageType": req.coverage_type,
                    "coverageJustification": req.coverage_justification,
                    "updatedAt": utc_now(),
                }
            )
            self.repo.upsert("organization", org)
        return org

    # -- units -------------------------------------------------------------

    def list_units(self) -> list[dict[str, Any]]:
        return self.repo.list("organizational_unit")

    def get_unit(self, unit_id: str) -> dict[str, Any]:
        return self._get_or_404("organizational_unit", unit_id, "Organizational unit not found.")

    def _check_parent(self, parent_id: str | None) -> None:
        if parent_id and self.repo.get("organizational_unit", parent_id) is None:
            raise ValidationError(f"Parent unit with ID '{parent_id}' not found.", field="parentId")

    def create_unit(self, req: OrganizationalUnitRequest) -> dict[str, Any]:
        require(req.name, "name", "Unit name is required.")
        with self.lock:
            self._check_parent(req.parent_id)
            unit = {
                "id": new_id(),
                "name": req.name.strip(),
                "parentId": req.parent_id or None,
                "description": req.description,
                "createdBy": req.created_by,
                "createdAt": utc_now(),
            }
            self.repo.upsert("organizational_unit", unit)
        return unit

    def update_unit(self, unit_id: str, req: OrganizationalUnitRequest) -> dict[str, Any]:
        require(req.name, "name", "Unit name is required.")
        with self.lock:
            unit = self.get_unit(unit_id)
            parent_id = req.parent_id or None
            if parent_id == unit_id:
                raise ValidationError("An organizational unit cannot be its own parent.", field="parentId")
            self._check_parent(parent_id)
            if parent_id and self._creates_cycle(unit_id, parent_id):
                raise ValidationError(
                    "Setting this parent would create a circular reference in the organizational structure.",
                    field="parentId",
                )
            unit.update({"name": req.name.strip(), "parentId": parent_id, "description": req.description})
            self.repo.upsert("organizational_unit", unit)
        return unit

    def _creates_cycle(self, unit_id: str, parent_id: str) -> bool:
        units = {u["id"]: u for u in self.list_units()}
        visited: set[str] = set()
        current: str | None = parent_id
        while current:
            if current == unit_id:
                return True
            if current in visited:
                return True
            visited.add(current)
            current = (units.get(current) or {}).get("parentId")
        return False

    def delete_unit(self, unit_id: str) -> None:
        with self.lock:
            self.get_unit(unit_id)
            if any(u.get("parentId") == unit_id for u in self.list_units()):
                raise ConflictError(
                    "Cannot delete an organizational unit that has child units. Delete or reassign children first."
                )
            self.repo.delete("organizational_unit", unit_id)

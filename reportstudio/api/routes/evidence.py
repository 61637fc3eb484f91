from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from reportstudio.api.dependencies import acting_user, get_services
from reportstudio.models import EvidenceLinkRequest, EvidenceRequest, IntegrityCheckRequest

router = APIRouter(prefix="/api/evidence", tags=["evidence"])


@router.get("")
def list_evidence(request: Request, section_id: str | None = Query(None, alias="sectionId")) -> list[dict]:
    return get_services(request).evidence.list_evidence(section_id)


@router.get("/{evidence_id}")
def get_evidence(evidence_id: str, request: Request) -> dict:
    return get_services(request).evidence.get_evidence(evidence_id)


@router.post("", status_code=201)
def create_evidence(payload: EvidenceRequest, request: Request) -> dict:
    return get_services(request).evidence.create_evidence(payload)


@router.post("/{evidence_id}/link")
def link(evidence_id: str, payload: EvidenceLinkRequest, request: Request) -> dict:
    return get_services(request).evidence.link(evidence_id, payload.data_point_id)


@router.post("/{evidence_id}/unlink")
def unlink(evidence_id: str, payload: EvidenceLinkRequest, request: Request) -> dict:
    return get_services(request).evidence.unlink(evidence_id, payload.data_point_id)


@router.post("/{evidence_id}/verify-integrity")
def verify_integrity(evidence_id: str, payload: IntegrityCheckRequest, request: Request) -> dict:
    return get_services(request).evidence.verify_integrity(evidence_id, payload.file_content)


@router.delete("/{evidence_id}", status_code=204)
def delete_evidence(
    evidence_id: str, request: Request, deleted_by: str | None = Query(None, alias="deletedBy")
) -> Response:
    get_services(request).evidence.delete_evidence(evidence_id, acting_user(request, deleted_by))
    return Response(status_code=204)

from __future__ import annotations

from typing import Any

from reportstudio.exceptions import ConflictError, NotFoundError, ValidationError
from reportstudio.models import DecisionRequest, DeprecateDecisionRequest
from reportstudio.services.base import ServiceBase, change, diff, new_id, require, utc_now

TRACKED_FIELDS = {
    "title": "Title",
    "context": "Context",
    "decisionText": "DecisionText",
    "alternatives": "Alternatives",
    "consequences": "Consequences",
}


class DecisionService(ServiceBase):
    """Decision log entries, their immutable version history and fragment references."""

    def list_decisions(self, section_id: str | None = None) -> list[dict[str, Any]]:
        return self.repo.list("decision", section_id=section_id or None)

    def get_decision(self, decision_id: str) -> dict[str, Any]:
        return self._get_or_404("decision", decision_id, "Decision not found.")

    def versions(self, decision_id: str) -> list[dict[str, Any]]:
        self.get_decision(decision_id)
        history = [v for v in self.repo.list("decision_version") if v.get("decisionId") == decision_id]
        return sorted(history, key=lambda v: v["version"], reverse=True)

    def list_by_fragment(self, fragment_id: str) -> list[dict[str, Any]]:
        return [d for d in self.repo.list("decision") if fragment_id in (d.get("referencedByFragmentIds") or [])]

    @staticmethod
    def _validate(req: DecisionRequest) -> None:
        require(req.title, "title", "Title is required.")
        require(req.context, "context", "Context is required.")
        require(req.decision_text, "decisionText", "DecisionText is required.")

    def create_decision(self, req: DecisionRequest) -> dict[str, Any]:
        self._validate(req)
        if req.section_id and self.repo.get("section", req.section_id) is None:
            raise ValidationError(f"Section with ID '{req.section_id}' not found.", field="sectionId")
        decision = {
            "id": new_id(),
            "sectionId": req.section_id or None,
            "title": req.title.strip(),
            "context": req.context,
            "decisionText": req.decision_text,
            "alternatives": req.alternatives,
            "consequences": req.consequences,
            "status": "active",
            "version": 1,
            "referencedByFragmentIds": [],
            "changeNote": None,
            "createdBy": req.created_by,
            "createdAt": utc_now(),
            "updatedBy": None,
            "updatedAt": None,
        }
        self.repo.upsert("decision", decision)
        self.record(
            user_id=req.created_by,
            action="create",
            entity_type="Decision",
            entity_id=decision["id"],
            changes=[change("Title", None, decision["title"])],
        )
        return decision

    def update_decision(self, decision_id: str, req: DecisionRequest) -> dict[str, Any]:
        with self.lock:
            decision = self.get_decision(decision_id)
            if decision.get("status") == "deprecated":
                raise ConflictError("Cannot update a deprecated decision.")
            self._validate(req)
            require(req.change_note, "changeNote", "Change note is required when updating a decision.")

            snapshot = {
                "id": new_id(),
                "decisionId": decision_id,
                "version": decision["version"],
                "title": decision["title"],
                "context": decision["context"],
                "decisionText": decision["decisionText"],
                "alternatives": decision["alternatives"],
                "consequences": decision["consequences"],
                "changeNote": decision.get("changeNote"),
                "createdBy": decision.get("updatedBy") or decision.get("createdBy"),
                "createdAt": decision.get("updatedAt") or decision.get("createdAt"),
            }
            before = dict(decision)
            decision.update(
                {
                    "title": req.title.strip(),
                    "context": req.context,
                    "decisionText": req.decision_text,
                    "alternatives": req.alternatives,
                    "consequences": req.consequences,
                    "version": decision["version"] + 1,
                    "changeNote": req.change_note,
                    "updatedBy": req.updated_by,
                    "updatedAt": utc_now(),
                }
            )
            self.repo.upsert_many([("decision_version", snapshot), ("decision", decision)])

        changes = diff(before, decision, TRACKED_FIELDS)
        changes.append(change("Version", before["version"], decision["version"]))
        self.record(
            user_id=req.updated_by,
            action="update",
            entity_type="Decision",
            entity_id=decision_id,
            change_note=req.change_note,
            changes=changes,
        )
        return decision

    def deprecate(self, decision_id: str, req: DeprecateDecisionRequest) -> dict[str, Any]:
        require(req.reason, "reason", "Deprecation reason is required.")
        with self.lock:
            decision = self.get_decision(decision_id)
            if decision.get("status") == "deprecated":
                raise ConflictError("Decision is already deprecated.")
            decision.update(
                {
                    "status": "deprecated",
                    "changeNote": req.reason,
                    "updatedBy": req.deprecated_by,
                    "updatedAt": utc_now(),
                }
            )
            self.repo.upsert("decision", decision)
        self.record(
            user_id=req.deprecated_by,
            action="deprecate",
            entity_type="Decision",
            entity_id=decision_id,
            change_note=req.reason,
            changes=[change("Status", "active", "deprecated")],
        )
        return decision

    def link(self, decision_id: str, fragment_id: str) -> dict[str, Any]:
        require(fragment_id, "fragmentId", "FragmentId is required.")
        with self.lock:
            decision = self.get_decision(decision_id)
            refs = decision.setdefault("referencedByFragmentIds", [])
            if fragment_id in refs:
                raise ConflictError("Decision is already linked to this fragment.")
            refs.append(fragment_id)
            self.repo.upsert("decision", decision)
        return decision

    def unlink(self, decision_id: str, fragment_id: str) -> dict[str, Any]:
        with self.lock:
            decision = self.get_decision(decision_id)
            refs = decision.get("referencedByFragmentIds") or []
            if fragment_id not in refs:
                raise NotFoundError("Decision is not linked to this fragment.")
            decision["referencedByFragmentIds"] = [r for r in refs if r != fragment_id]
            self.repo.upsert("decision", decision)
        return decision

    def delete_decision(self, decision_id: str, deleted_by: str | None = None) -> None:
        with self.lock:
            decision = self.get_decision(decision_id)
            if decision.get("referencedByFragmentIds"):
                raise ConflictError("Cannot delete a decision that is referenced by report fragments.")
            history = [v["id"] for v in self.repo.list("decision_version") if v.get("decisionId") == decision_id]
            self.repo.delete_many("decision_version", history)
            self.repo.delete("decision", decision_id)
        self.record(
            user_id=deleted_by,
            action="delete",
            entity_type="Decision",
            entity_id=decision_id,
            changes=[change("Title", decision["title"], None)],
        )

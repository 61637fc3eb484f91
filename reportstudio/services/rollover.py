"""
Period rollover: creates a new reporting period from an existing one and
optionally copies its structure, open disclosures, data values and
attachments, producing a reconciliation of how source sections were mapped.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from reportstudio.config import ROLLOVER_RULE_TYPES
from reportstudio.exceptions import NotFoundError, ValidationError
from reportstudio.logging_config import log_event, log_execution
from reportstudio.models import RolloverRequest, RolloverRuleRequest
from reportstudio.services.base import ServiceBase, change, new_id, parse_date, require, utc_now
from reportstudio.services.carryforward import CarryForwardService
from reportstudio.services.catalog import CatalogService
from reportstudio.services.periods import PeriodService
from reportstudio.services.sections import SectionService

DRAFT_PREFIX = "[Carried forward - Requires Review] "

UNMAPPED_SUGGESTIONS = [
    "Add a manual mapping to an active catalog section.",
    "Restore or re-create the catalog section for the target reporting mode.",
    "Review the affected data points in the source period before archiving it.",
]


class RolloverService(ServiceBase):
    def __init__(
        self,
        repo,
        audit,
        *,
        periods: PeriodService,
        catalog: CatalogService,
        sections: SectionService,
        carry_forward: CarryForwardService,
    ) -> None:
        super().__init__(repo, audit)
        self.periods = periods
        self.catalog = catalog
        self.sections = sections
        self.carry_forward = carry_forward

    # -- validation --------------------------------------------------------

    def _validate(self, req: RolloverRequest) -> dict[str, Any]:
        source = self.repo.get("period", req.source_period_id)
        if source is None:
            raise NotFoundError("Source period not found.", resource_type="period", resource_id=req.source_period_id)
        if source.get("status") == "draft":
            raise ValidationError(
                "Cannot rollover from a period in 'draft' status. Only active or closed periods can be rolled over."
            )
        options = req.options
        if options.copy_disclosures and not options.copy_structure:
            raise ValidationError("CopyDisclosures requires CopyStructure to be enabled.")
        if options.copy_data_values and not options.copy_structure:
            raise ValidationError("CopyDataValues requires CopyStructure to be enabled.")
        if options.copy_attachments and not options.copy_data_values:
            raise ValidationError("CopyAttachments requires CopyDataValues to be enabled.")
        require(req.target_period_name, "targetPeriodName", "Target period name is required.")
        self.periods.validate_dates(req.target_period_start_date, req.target_period_end_date)
        require(req.performed_by, "performedBy", "PerformedBy is required.")
        for override in req.rule_overrides:
            if override.rule_type not in ROLLOVER_RULE_TYPES:
                raise ValidationError(
                    f"RuleType must be one of: {', '.join(ROLLOVER_RULE_TYPES)}.", field="ruleOverrides"
                )
        return source

    # -- mapping -----------------------------------------------------------

    def _map_sections(
        self, req: RolloverRequest, source_sections: list[dict[str, Any]], target_mode: str
    ) -> tuple[dict[str, tuple[dict[str, Any], str]], dict[str, str]]:
        """Returns (source section id -> (target catalog item, mapping type), source section id -> reason)."""
        in_mode = {item["code"]: item for item in self.catalog.items_for_mode(target_mode)}
        manual = {m.source_catalog_code: m.target_catalog_code for m in req.manual_mappings}
        mapped: dict[str, tuple[dict[str, Any], str]] = {}
        unmapped: dict[str, str] = {}

        for section in source_sections:
            code = section.get("catalogCode")
            if code in in_mode:
                mapped[section["id"]] = (in_mode[code], "automatic")
                continue
            target_code = manual.get(code)
            if target_code:
                target = self.catalog.find_by_code(target_code)
                if target is not None:
                    mapped[section["id"]] = (target, "manual")
                    continue
                unmapped[section["id"]] = (
                    f"Manual mapping target '{target_code}' is not an active catalog section."
                )
                continue
            if self.catalog.find_by_code(code) is None:
                unmapped[section["id"]] = f"Catalog section '{code}' is deprecated or no longer exists."
            else:
                unmapped[section["id"]] = f"Catalog section '{code}' is not included in the {target_mode} reporting mode."
        return mapped, unmapped

    def _rule_for(self, data_type: str, overrides: dict[str, str]) -> str:
        if data_type in overrides:
            return overrides[data_type]
        saved = self._find_rule(data_type)
        return saved["ruleType"] if saved else "copy"

    @staticmethod
    def _copy_data_point(
        dp: dict[str, Any], target_section_id: str, rule_type: str, shift: timedelta
    ) -> dict[str, Any]:
        now = utc_now()
        copy = {
            **dp,
            "id": new_id(),
            "sectionId": target_section_id,
            "evidenceIds": [],
            "reviewStatus": "draft",
            "reviewedBy": None,
            "reviewedAt": None,
            "reviewComments": None,
            "isBlocked": False,
            "blockerReason": None,
            "blockerDueDate": None,
            "isMissing": False,
            "missingReasonCategory": None,
            "missingReason": None,
            "missingFlaggedBy": None,
            "missingFlaggedAt": None,
            "createdAt": now,
            "updatedAt": now,
            "rolloverSourceId": dp["id"],
        }
        if rule_type == "reset":
            copy.update({"content": "", "value": None, "completenessStatus": "missing"})
        elif rule_type == "copy-as-draft":
            copy.update({"content": DRAFT_PREFIX + (dp.get("content") or ""), "completenessStatus": "incomplete"})

        deadline = parse_date(dp.get("deadline"))
        if deadline is not None:
            copy["deadline"] = (deadline + shift).isoformat()
        return copy

    # -- rollover ----------------------------------------------------------

    @log_execution()
    def rollover(self, req: RolloverRequest) -> dict[str, Any]:
        with self.lock:
            source = self._validate(req)
            options = req.options
            target_mode = req.target_reporting_mode or source.get("reportingMode") or "simplified"
            target_scope = req.target_report_scope or source.get("reportScope") or "single-company"
            self.periods.validate_mode(target_mode, target_scope)

            target = self.periods.build_period(
                name=req.target_period_name,
                start_date=req.target_period_start_date,
                end_date=req.target_period_end_date,
                reporting_mode=target_mode,
                report_scope=target_scope,
                owner_id=source.get("ownerId"),
                owner_name=source.get("ownerName"),
                organization_id=source.get("organizationId"),
            )
            target["rolloverSourcePeriodId"] = source["id"]
            self.periods.activate(target)

            target_start = parse_date(req.target_period_start_date)
            if options.due_date_adjustment_days is not None:
                shift = timedelta(days=options.due_date_adjustment_days)
            else:
                shift = target_start - parse_date(source["startDate"])

            source_sections = self.repo.list("section", period_id=source["id"])
            overrides = {o.data_type: o.rule_type for o in req.rule_overrides}
            warnings: list[dict[str, Any]] = []
            mapped_items: list[dict[str, Any]] = []
            unmapped_items: list[dict[str, Any]] = []
            carry_pairs: list[tuple[str, str]] = []
            docs: list[tuple[str, dict[str, Any]]] = []
            sections_copied = data_points_copied = evidence_copied = 0
            gaps_copied = assumptions_copied = 0

            if options.copy_structure:
                mapped, unmapped = self._map_sections(req, source_sections, target_mode)
                target_by_code: dict[str, dict[str, Any]] = {}
                evidence_copies: dict[tuple[str, str], dict[str, Any]] = {}

                for section in source_sections:
                    source_points = self.repo.list("data_point", section_id=section["id"])
                    if section["id"] in unmapped:
                        unmapped_items.append(
                            {
                                "sourceCatalogCode": section.get("catalogCode"),
                                "sourceTitle": section["title"],
                                "reason": unmapped[section["id"]],
                                "affectedDataPoints": len(source_points),
                                "suggestedActions": list(UNMAPPED_SUGGESTIONS),
                            }
                        )
                        continue

                    item, mapping_type = mapped[section["id"]]
                    target_section = target_by_code.get(item["code"])
                    if target_section is None:
                        target_section = self.sections.build_section(
                            target["id"], item, len(target_by_code), section.get("ownerId"), section.get("ownerName")
                        )
                        target_by_code[item["code"]] = target_section
                        docs.append(("section", target_section))
                        sections_copied += 1
                        self._warn_inactive(
                            warnings, "ReportSection", target_section["id"], section["title"], section.get("ownerId")
                        )

                    copied_here = 0
                    if options.copy_data_values:
                        for dp in source_points:
                            copy = self._copy_data_point(
                                dp, target_section["id"], self._rule_for(dp.get("type") or "", overrides), shift
                            )
                            if options.copy_attachments:
                                for evidence_id in dp.get("evidenceIds") or []:
                                    key = (evidence_id, target_section["id"])
                                    evidence = evidence_copies.get(key)
                                    if evidence is None:
                                        original = self.repo.get("evidence", evidence_id)
                                        if original is None:
                                            continue
                                        evidence = {
                                            **original,
                                            "id": new_id(),
                                            "sectionId": target_section["id"],
                                            "linkedDataPoints": [],
                                            "uploadedAt": utc_now(),
                                        }
                                        evidence_copies[key] = evidence
                                    if evidence["id"] in copy["evidenceIds"]:
                                        continue
                                    evidence["linkedDataPoints"].append(copy["id"])
                                    copy["evidenceIds"].append(evidence["id"])
                            docs.append(("data_point", copy))
                            copied_here += 1
                            self._warn_inactive(warnings, "DataPoint", copy["id"], copy["title"], copy.get("ownerId"))
                        data_points_copied += copied_here

                    carry_pairs.append((section["id"], target_section["id"]))
                    mapped_items.append(
                        {
                            "sourceCatalogCode": section.get("catalogCode"),
                            "sourceTitle": section["title"],
                            "targetCatalogCode": item["code"],
                            "targetSectionId": target_section["id"],
                            "mappingType": mapping_type,
                            "dataPointsCopied": copied_here,
                        }
                    )

                docs.extend(("evidence", e) for e in evidence_copies.values())
                evidence_copied = len(evidence_copies)
                self.repo.upsert_many(docs)

                if options.copy_disclosures:
                    for source_section_id, target_section_id in carry_pairs:
                        g, a = self.carry_forward.carry_section(
                            source_section_id,
                            target_section_id,
                            target_start=target_start,
                            performed_by=req.performed_by,
                        )
                        gaps_copied += g
                        assumptions_copied += a

            audit_log = {
                "id": new_id(),
                "sourcePeriodId": source["id"],
                "sourcePeriodName": source["name"],
                "targetPeriodId": target["id"],
                "targetPeriodName": target["name"],
                "performedBy": req.performed_by,
                "performedByName": self.user_name(req.performed_by),
                "performedAt": utc_now(),
                "options": options.model_dump(by_alias=True),
                "sectionsCopied": sections_copied,
                "dataPointsCopied": data_points_copied,
                "gapsCopied": gaps_copied,
                "assumptionsCopied": assumptions_copied,
                "evidenceCopied": evidence_copied,
            }
            self.repo.upsert("rollover_audit", audit_log)

        self.record(
            user_id=req.performed_by,
            action="rollover",
            entity_type="ReportingPeriod",
            entity_id=target["id"],
            change_note=f"Rolled over from '{source['name']}'",
            changes=[change("RolloverSourcePeriodId", None, source["id"])],
        )
        log_event(
            "rollover_completed",
            source_period_id=source["id"],
            target_period_id=target["id"],
            sections_copied=sections_copied,
            data_points_copied=data_points_copied,
            unmapped_sections=len(unmapped_items),
        )
        return {
            "targetPeriod": target,
            "auditLog": audit_log,
            "reconciliation": {
                "totalSourceSections": len(source_sections),
                "mappedSections": len(mapped_items),
                "unmappedSections": len(unmapped_items),
                "mappedItems": mapped_items,
                "unmappedItems": unmapped_items,
            },
            "inactiveOwnerWarnings": warnings,
        }

    def _warn_inactive(
        self, warnings: list[dict[str, Any]], entity_type: str, entity_id: str, title: str, owner_id: str | None
    ) -> None:
        owner = self.find_user(owner_id) if owner_id else None
        if owner is not None and not owner.get("isActive", True):
            warnings.append(
                {
                    "entityType": entity_type,
                    "entityId": entity_id,
                    "entityTitle": title,
                    "userId": owner["id"],
                    "userName": owner["name"],
                }
            )

    def audit_logs(self, target_period_id: str | None = None) -> list[dict[str, Any]]:
        logs = self.repo.list("rollover_audit")
        if target_period_id:
            logs = [log for log in logs if log["targetPeriodId"] == target_period_id]
        return sorted(logs, key=lambda log: log["performedAt"], reverse=True)

    # -- rules -------------------------------------------------------------

    def _find_rule(self, data_type: str) -> dict[str, Any] | None:
        for rule in self.repo.list("rollover_rule"):
            if rule["dataType"] == data_type:
                return rule
        return None

    def list_rules(self) -> list[dict[str, Any]]:
        return self.repo.list("rollover_rule")

    def get_rule(self, data_type: str) -> dict[str, Any]:
        rule = self._find_rule(data_type)
        if rule is None:
            raise NotFoundError(f"No rollover rule configured for data type '{data_type}'.")
        return rule

    def _history(self, rule: dict[str, Any], change_type: str, user_id: str) -> tuple[str, dict[str, Any]]:
        return (
            "rollover_rule_history",
            {
                "id": new_id(),
                "ruleId": rule["id"],
                "dataType": rule["dataType"],
                "ruleType": rule["ruleType"],
                "description": rule.get("description"),
                "version": rule["version"],
                "changeType": change_type,
                "changedBy": user_id,
                "changedByName": self.user_name(user_id),
                "changedAt": utc_now(),
            },
        )

    def save_rule(self, req: RolloverRuleRequest) -> dict[str, Any]:
        require(req.data_type, "dataType", "DataType is required.")
        require(req.saved_by, "savedBy", "SavedBy is required.")
        if req.rule_type not in ROLLOVER_RULE_TYPES:
            raise ValidationError(f"RuleType must be one of: {', '.join(ROLLOVER_RULE_TYPES)}.", field="ruleType")
        with self.lock:
            rule = self._find_rule(req.data_type)
            now = utc_now()
            if rule is None:
                rule = {
                    "id": new_id(),
                    "dataType": req.data_type,
                    "ruleType": req.rule_type,
                    "description": req.description,
                    "version": 1,
                    "createdBy": req.saved_by,
                    "createdAt": now,
                    "updatedBy": None,
                    "updatedAt": None,
                }
                change_type = "created"
            else:
                rule.update(
                    {
                        "ruleType": req.rule_type,
                        "description": req.description,
                        "version": rule["version"] + 1,
                        "updatedBy": req.saved_by,
                        "updatedAt": now,
                    }
                )
                change_type = "updated"
            self.repo.upsert_many([("rollover_rule", rule), self._history(rule, change_type, req.saved_by)])
        return rule

    def delete_rule(self, data_type: str, deleted_by: str) -> None:
        require(deleted_by, "deletedBy", "DeletedBy is required.")
        with self.lock:
            rule = self.get_rule(data_type)
            self.repo.upsert_many([self._history(rule, "deleted", deleted_by)])
            self.repo.delete("rollover_rule", rule["id"])

    def rule_history(self, data_type: str) -> list[dict[str, Any]]:
        history = [h for h in self.repo.list("rollover_rule_history") if h["dataType"] == data_type]
        return list(reversed(history))

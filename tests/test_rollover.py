from __future__ import annotations

import base64

import pytest

from conftest import ADMIN_ID, OWNER_ID
from reportstudio.exceptions import NotFoundError, ValidationError
from reportstudio.models import (
    EvidenceRequest,
    GapRequest,
    RolloverRequest,
    RolloverRuleRequest,
    UserStatusRequest,
)


def _request(period_id: str, **overrides) -> RolloverRequest:
    fields = {
        "source_period_id": period_id,
        "target_period_name": "FY 2025",
        "target_period_start_date": "2025-01-01",
        "target_period_end_date": "2025-12-31",
        "performed_by": ADMIN_ID,
    }
    fields.update(overrides)
    return RolloverRequest(**fields)


def test_unknown_source(services):
    with pytest.raises(NotFoundError, match="Source period not found."):
        services.rollover.rollover(_request("missing"))


def test_draft_source_rejected(services, period):
    stored = services.repo.get("period", period["id"])
    stored["status"] = "draft"
    services.repo.upsert("period", stored)
    with pytest.raises(ValidationError, match="'draft' status"):
        services.rollover.rollover(_request(period["id"]))


@pytest.mark.parametrize(
    "options,message",
    [
        ({"copyStructure": False, "copyDisclosures": True}, "CopyDisclosures requires CopyStructure"),
        ({"copyStructure": False, "copyDataValues": True}, "CopyDataValues requires CopyStructure"),
        ({"copyAttachments": True}, "CopyAttachments requires CopyDataValues"),
    ],
)
def test_option_dependencies(services, period, options, message):
    with pytest.raises(ValidationError, match=message):
        services.rollover.rollover(_request(period["id"], options=options))


def test_structure_only(services, period, make_data_point):
    make_data_point()
    result = services.rollover.rollover(_request(period["id"]))

    target = result["targetPeriod"]
    assert target["status"] == "active"
    assert target["rolloverSourcePeriodId"] == period["id"]
    assert services.periods.get_period(period["id"])["status"] == "closed"

    recon = result["reconciliation"]
    assert recon["totalSourceSections"] == recon["mappedSections"] == 13
    assert recon["unmappedSections"] == 0
    assert {i["mappingType"] for i in recon["mappedItems"]} == {"automatic"}
    assert result["auditLog"]["dataPointsCopied"] == 0
    assert services.data_points.list_data_points(section_id=recon["mappedItems"][0]["targetSectionId"]) == []


def test_data_values_follow_rules(services, period, make_data_point):
    make_data_point(deadline="2024-03-31")
    make_data_point(type="narrative", title="Climate strategy", value=None, unit=None)
    services.rollover.save_rule(RolloverRuleRequest(data_type="metric", rule_type="reset", saved_by=ADMIN_ID))

    result = services.rollover.rollover(
        _request(
            period["id"],
            options={"copyDataValues": True, "dueDateAdjustmentDays": 365},
            rule_overrides=[{"dataType": "narrative", "ruleType": "copy-as-draft"}],
        )
    )
    env = next(i for i in result["reconciliation"]["mappedItems"] if i["sourceCatalogCode"] == "ENV-001")
    assert env["dataPointsCopied"] == 2

    copies = {dp["type"]: dp for dp in services.data_points.list_data_points(section_id=env["targetSectionId"])}
    metric, narrative = copies["metric"], copies["narrative"]
    assert metric["value"] is None
    assert metric["completenessStatus"] == "missing"
    assert metric["deadline"] == "2025-03-31"
    assert metric["reviewStatus"] == "draft"
    assert narrative["content"].startswith("[Carried forward - Requires Review] ")
    assert narrative["rolloverSourceId"] != narrative["id"]


def test_simplified_target_reports_unmapped_sections(services, period, make_data_point):
    result = services.rollover.rollover(_request(period["id"], target_reporting_mode="simplified"))
    recon = result["reconciliation"]
    assert recon["mappedSections"] == 6
    unmapped = {i["sourceCatalogCode"]: i for i in recon["unmappedItems"]}
    assert "ENV-003" in unmapped
    assert "not included in the simplified reporting mode" in unmapped["ENV-003"]["reason"]
    assert unmapped["ENV-003"]["suggestedActions"]


def test_manual_mapping(services, period):
    result = services.rollover.rollover(
        _request(
            period["id"],
            target_reporting_mode="simplified",
            manual_mappings=[{"sourceCatalogCode": "ENV-003", "targetCatalogCode": "ENV-002"}],
        )
    )
    item = next(i for i in result["reconciliation"]["mappedItems"] if i["sourceCatalogCode"] == "ENV-003")
    assert item["mappingType"] == "manual"
    assert item["targetCatalogCode"] == "ENV-002"
    # ENV-002 and the mapped ENV-003 share one target section
    assert result["auditLog"]["sectionsCopied"] == 6


def test_disclosures_and_attachments(services, period, section, make_data_point):
    dp = make_data_point()
    evidence = services.evidence.create_evidence(
        EvidenceRequest(
            section_id=section["id"],
            title="Invoices",
            file_name="invoices.pdf",
            file_content=base64.b64encode(b"pdf").decode(),
            uploaded_by=OWNER_ID,
        )
    )
    services.evidence.link(evidence["id"], dp["id"])
    services.gaps.create_gap(GapRequest(section_id=section["id"], title="Scope 3 missing", impact="high"))

    result = services.rollover.rollover(
        _request(period["id"], options={"copyDisclosures": True, "copyDataValues": True, "copyAttachments": True})
    )
    log = result["auditLog"]
    assert (log["gapsCopied"], log["evidenceCopied"], log["dataPointsCopied"]) == (1, 1, 1)

    env = next(i for i in result["reconciliation"]["mappedItems"] if i["sourceCatalogCode"] == "ENV-001")
    [copy] = services.data_points.list_data_points(section_id=env["targetSectionId"])
    [copied_evidence] = services.evidence.list_evidence(section_id=env["targetSectionId"])
    assert copy["evidenceIds"] == [copied_evidence["id"]]
    assert copied_evidence["linkedDataPoints"] == [copy["id"]]
    assert copied_evidence["checksum"] == evidence["checksum"]


def test_shared_evidence_is_copied_once(services, period, section, make_data_point):
    first = make_data_point(title="Scope 1 emissions")
    second = make_data_point(title="Scope 2 emissions")
    evidence = services.evidence.create_evidence(
        EvidenceRequest(
            section_id=section["id"],
            title="Energy invoices",
            file_name="energy.pdf",
            file_content=base64.b64encode(b"pdf").decode(),
            uploaded_by=OWNER_ID,
        )
    )
    services.evidence.link(evidence["id"], first["id"])
    services.evidence.link(evidence["id"], second["id"])

    result = services.rollover.rollover(
        _request(period["id"], options={"copyDataValues": True, "copyAttachments": True})
    )
    assert result["auditLog"]["evidenceCopied"] == 1

    env = next(i for i in result["reconciliation"]["mappedItems"] if i["sourceCatalogCode"] == "ENV-001")
    copies = services.data_points.list_data_points(section_id=env["targetSectionId"])
    [copied_evidence] = services.evidence.list_evidence(section_id=env["targetSectionId"])
    assert sorted(copied_evidence["linkedDataPoints"]) == sorted(c["id"] for c in copies)
    assert [c["evidenceIds"] for c in copies] == [[copied_evidence["id"]], [copied_evidence["id"]]]
    assert services.evidence.get_evidence(evidence["id"])["linkedDataPoints"] == [first["id"], second["id"]]


def test_inactive_owner_warning(services, period, make_data_point):
    make_data_point()
    services.users.set_active(OWNER_ID, UserStatusRequest(is_active=False, updated_by=ADMIN_ID))

    result = services.rollover.rollover(_request(period["id"], options={"copyDataValues": True}))
    warnings = [w for w in result["inactiveOwnerWarnings"] if w["entityType"] == "DataPoint"]
    assert [(w["userId"], w["entityTitle"]) for w in warnings] == [(OWNER_ID, "Scope 1 emissions")]


def test_audit_logs_listed_by_target(services, period):
    result = services.rollover.rollover(_request(period["id"]))
    logs = services.rollover.audit_logs(result["targetPeriod"]["id"])
    assert [log["sourcePeriodName"] for log in logs] == ["FY 2024"]
    assert services.rollover.audit_logs("other") == []


class TestRules:
    def test_save_update_history_delete(self, services):
        rollover = services.rollover
        rollover.save_rule(RolloverRuleRequest(data_type="narrative", rule_type="copy", saved_by=ADMIN_ID))
        updated = rollover.save_rule(
            RolloverRuleRequest(data_type="narrative", rule_type="copy-as-draft", saved_by=ADMIN_ID)
        )
        assert updated["version"] == 2
        assert rollover.get_rule("narrative")["ruleType"] == "copy-as-draft"

        rollover.delete_rule("narrative", deleted_by=ADMIN_ID)
        with pytest.raises(NotFoundError):
            rollover.get_rule("narrative")
        assert [h["changeType"] for h in rollover.rule_history("narrative")] == ["deleted", "updated", "created"]

    def test_invalid_rule_type(self, services):
        with pytest.raises(ValidationError, match="RuleType must be one of"):
            services.rollover.save_rule(RolloverRuleRequest(data_type="metric", rule_type="move", saved_by=ADMIN_ID))

"""
Page renderers for the Streamlit console.

Each page fetches what it shows, renders it, and on form submit calls the
API and reruns so the next render re-fetches. Backend errors surface as
``st.error`` banners with the API's message.
"""

from __future__ import annotations

import logging
from datetime import date

import streamlit as st

from reportstudio.config import (
    CATEGORY_LABELS,
    EXCEPTION_TYPES,
    IMPACT_LEVELS,
    INFORMATION_TYPES,
    REPORT_SCOPES,
    REPORTING_MODES,
    ROLLOVER_RULE_TYPES,
)
from reportstudio.reference import PERMISSION_GRANTS
from reportstudio.ui.client import ApiError, ReportStudioClient
from reportstudio.ui.session import flash, get_acting_user_id, get_selected_period_id, set_selected_period_id

logger = logging.getLogger(__name__)


def _fetch(label: str, call, *args, **kwargs):
    """Run a read call, rendering the error banner and returning None on failure."""
    try:
        return call(*args, **kwargs)
    except ApiError as e:
        st.error(f"Could not load {label}: {e.message}")
        return None


def _submit(call, *args, success: str, **kwargs) -> bool:
    try:
        call(*args, **kwargs)
    except ApiError as e:
        st.error(e.message)
        return False
    flash(success)
    st.rerun()
    return True


def _period_picker(periods: list[dict]) -> dict | None:
    if not periods:
        st.info("No reporting periods yet.")
        return None
    ids = [p["id"] for p in periods]
    selected = get_selected_period_id()
    index = ids.index(selected) if selected in ids else len(ids) - 1
    choice = st.selectbox(
        "Reporting period",
        periods,
        index=index,
        format_func=lambda p: f"{p['name']} ({p['status']}{', locked' if p.get('isLocked') else ''})",
    )
    set_selected_period_id(choice["id"])
    return choice


def render_organization_page(client: ReportStudioClient) -> None:
    st.header("Organization")
    snapshot = _fetch("organization", client.reporting_data)
    if snapshot is None:
        return
    org = snapshot.get("organization")
    user_id = get_acting_user_id()

    with st.form("organization"):
        name = st.text_input("Name", value=(org or {}).get("name", ""))
        legal_form = st.text_input("Legal form", value=(org or {}).get("legalForm", ""))
        country = st.text_input("Country", value=(org or {}).get("country", ""))
        identifier = st.text_input("Identifier", value=(org or {}).get("identifier", ""))
        coverage_type = st.radio(
            "Coverage", ["full", "limited"], index=0 if (org or {}).get("coverageType", "full") == "full" else 1
        )
        justification = st.text_area("Coverage justification", value=(org or {}).get("coverageJustification") or "")
        if st.form_submit_button("Save organization"):
            body = {
                "name": name,
                "legalForm": legal_form,
                "country": country,
                "identifier": identifier,
                "createdBy": user_id,
                "coverageType": coverage_type,
                "coverageJustification": justification or None,
            }
            if org:
                _submit(client.update_organization, org["id"], body, success="Organization updated.")
            else:
                _submit(client.create_organization, body, success="Organization created.")

    st.subheader("Organizational units")
    units = _fetch("organizational units", client.list_units) or []
    names = {u["id"]: u["name"] for u in units}
    for unit in units:
        cols = st.columns([3, 3, 1])
        cols[0].write(unit["name"])
        cols[1].caption(names.get(unit.get("parentId"), "") or unit.get("description", ""))
        if cols[2].button("Delete", key=f"delete-unit-{unit['id']}"):
            _submit(client.delete_unit, unit["id"], success="Unit deleted.")
    with st.form("unit"):
        unit_name = st.text_input("Unit name")
        parent = st.selectbox("Parent", [None] + units, format_func=lambda u: u["name"] if u else "(none)")
        description = st.text_input("Description")
        if st.form_submit_button("Add unit"):
            _submit(
                client.create_unit,
                {
                    "name": unit_name,
                    "parentId": parent["id"] if parent else None,
                    "description": description,
                    "createdBy": user_id,
                },
                success="Unit added.",
            )


def render_periods_page(client: ReportStudioClient) -> None:
    st.header("Periods & sections")
    snapshot = _fetch("reporting data", client.reporting_data)
    if snapshot is None:
        return
    user_id = get_acting_user_id()

    with st.expander("New reporting period", expanded=not snapshot.get("periods")):
        with st.form("period"):
            name = st.text_input("Name")
            start = st.date_input("Start date", value=date(date.today().year, 1, 1))
            end = st.date_input("End date", value=date(date.today().year, 12, 31))
            mode = st.selectbox("Reporting mode", sorted(REPORTING_MODES), index=1)
            scope = st.selectbox("Report scope", sorted(REPORT_SCOPES), index=1)
            carry = st.checkbox("Carry forward open gaps and active assumptions")
            if st.form_submit_button("Create period"):
                _submit(
                    client.create_period,
                    {
                        "name": name,
                        "startDate": start.isoformat(),
                        "endDate": end.isoformat(),
                        "reportingMode": mode,
                        "reportScope": scope,
                        "ownerId": user_id,
                        "carryForwardGapsAndAssumptions": carry,
                    },
                    success="Period created.",
                )

    period = _period_picker(snapshot.get("periods") or [])
    if period is None:
        return

    with st.form("lock"):
        reason = st.text_input("Reason")
        label = "Unlock period" if period.get("isLocked") else "Lock period"
        if st.form_submit_button(label):
            if period.get("isLocked"):
                _submit(
                    client.unlock_period,
                    period["id"],
                    {"unlockedBy": user_id, "reason": reason},
                    success="Period unlocked.",
                )
            else:
                _submit(
                    client.lock_period, period["id"], {"lockedBy": user_id, "reason": reason}, success="Period locked."
                )

    summaries = _fetch("sections", client.section_summaries, period["id"]) or []
    st.dataframe(
        [
            {
                "Code": s.get("catalogCode"),
                "Section": s["title"],
                "Category": CATEGORY_LABELS.get(s["category"], s["category"]),
                "Owner": s["ownerName"],
                "Data points": s["dataPointCount"],
                "Complete %": s["completenessPercentage"],
                "Progress": s["progressStatus"],
            }
            for s in summaries
        ],
        use_container_width=True,
    )

    users = _fetch("users", client.list_users) or []
    if summaries and users:
        with st.form("owner"):
            section = st.selectbox("Section", summaries, format_func=lambda s: s["title"])
            owner = st.selectbox("New owner", users, format_func=lambda u: u["name"])
            note = st.text_input("Change note")
            if st.form_submit_button("Assign owner"):
                _submit(
                    client.update_section_owner,
                    section["id"],
                    {"ownerId": owner["id"], "updatedBy": user_id, "changeNote": note or None},
                    success="Owner updated.",
                )


def render_data_points_page(client: ReportStudioClient) -> None:
    st.header("Data points")
    snapshot = _fetch("reporting data", client.reporting_data)
    if snapshot is None:
        return
    period = _period_picker(snapshot.get("periods") or [])
    if period is None:
        return
    sections = [s for s in snapshot.get("sections") or [] if s.get("periodId") == period["id"]]
    if not sections:
        st.info("This period has no sections.")
        return
    section = st.selectbox("Section", sections, format_func=lambda s: s["title"])
    user_id = get_acting_user_id()

    points = _fetch("data points", client.list_data_points, section["id"]) or []
    for dp in points:
        with st.expander(f"{dp['title']} · {dp['completenessStatus']} · {dp['reviewStatus']}"):
            st.write(dp.get("content"))
            if dp.get("value"):
                st.caption(f"Value: {dp['value']} {dp.get('unit') or ''}")
            comments = st.text_input("Review comments", key=f"comments-{dp['id']}")
            left, right = st.columns(2)
            if left.button("Approve", key=f"approve-{dp['id']}"):
                _submit(
                    client.approve_data_point,
                    dp["id"],
                    {"reviewedBy": user_id, "reviewComments": comments or None},
                    success="Data point approved.",
                )
            if right.button("Request changes", key=f"changes-{dp['id']}"):
                _submit(
                    client.request_changes,
                    dp["id"],
                    {"reviewedBy": user_id, "reviewComments": comments},
                    success="Changes requested.",
                )

    with st.form("data-point"):
        st.subheader("New data point")
        title = st.text_input("Title")
        content = st.text_area("Content")
        value = st.text_input("Value")
        unit = st.text_input("Unit")
        source = st.text_input("Source")
        information_type = st.selectbox("Information type", INFORMATION_TYPES)
        assumptions = st.text_input("Assumptions")
        if st.form_submit_button("Create data point"):
            _submit(
                client.create_data_point,
                {
                    "sectionId": section["id"],
                    "type": "metric" if value else "narrative",
                    "title": title,
                    "content": content,
                    "value": value or None,
                    "unit": unit or None,
                    "ownerId": section.get("ownerId") or user_id,
                    "source": source,
                    "informationType": information_type,
                    "assumptions": assumptions or None,
                    "updatedBy": user_id,
                },
                success="Data point created.",
            )


def render_gaps_page(client: ReportStudioClient) -> None:
    st.header("Gaps dashboard")
    period_id = get_selected_period_id()
    cols = st.columns(2)
    status = cols[0].selectbox("Status", ["", "open", "resolved"])
    impact = cols[1].selectbox("Impact", [""] + list(IMPACT_LEVELS))
    data = _fetch("gaps", client.gaps_dashboard, periodId=period_id, status=status, impact=impact)
    if data is None:
        return
    summary = data["summary"]
    metrics = st.columns(4)
    metrics[0].metric("Total", summary["totalGaps"])
    metrics[1].metric("Open", summary["openGaps"])
    metrics[2].metric("High impact", summary["highImpact"])
    metrics[3].metric("Without plan", summary["withoutRemediationPlan"])
    st.dataframe(
        [
            {
                "Gap": item["gap"]["title"],
                "Impact": item["gap"]["impact"],
                "Section": item["sectionTitle"],
                "Owner": item["ownerName"],
                "Period": item["duePeriod"],
                "Status": item["status"],
                "Plan": item["remediationPlanStatus"] or "",
            }
            for item in data["gaps"]
        ],
        use_container_width=True,
    )

    if not period_id:
        return
    sections = _fetch("sections", client.section_summaries, period_id) or []
    if not sections:
        return
    with st.form("gap"):
        st.subheader("Record a gap")
        section = st.selectbox("Section", sections, format_func=lambda s: s["title"])
        title = st.text_input("Title")
        description = st.text_area("Description")
        gap_impact = st.selectbox("Impact", list(IMPACT_LEVELS), index=list(IMPACT_LEVELS).index("medium"))
        target_date = st.text_input("Target date (YYYY-MM-DD)")
        if st.form_submit_button("Create gap"):
            _submit(
                client.create_gap,
                {
                    "sectionId": section["id"],
                    "title": title,
                    "description": description,
                    "impact": gap_impact,
                    "targetDate": target_date or None,
                    "createdBy": get_acting_user_id(),
                },
                success="Gap recorded.",
            )


def render_assumptions_page(client: ReportStudioClient) -> None:
    st.header("Assumptions")
    snapshot = _fetch("reporting data", client.reporting_data)
    if snapshot is None:
        return
    sections = snapshot.get("sections") or []
    if not sections:
        st.info("No sections available.")
        return
    section = st.selectbox("Section", sections, format_func=lambda s: s["title"])
    user_id = get_acting_user_id()

    assumptions = _fetch("assumptions", client.list_assumptions, section["id"]) or []
    for item in assumptions:
        with st.expander(f"{item['title']} · v{item['version']} · {item['status']}"):
            st.write(item["description"])
            st.caption(f"Valid {item['validityStartDate']} to {item['validityEndDate']}")
            if item["status"] == "active":
                justification = st.text_input("Justification", key=f"just-{item['id']}")
                if st.button("Mark invalid", key=f"deprecate-{item['id']}"):
                    _submit(
                        client.deprecate_assumption,
                        item["id"],
                        {"justification": justification, "deprecatedBy": user_id},
                        success="Assumption deprecated.",
                    )

    with st.form("assumption"):
        st.subheader("New assumption")
        title = st.text_input("Title")
        description = st.text_area("Description")
        scope = st.text_input("Scope")
        start = st.date_input("Valid from")
        end = st.date_input("Valid to")
        methodology = st.text_area("Methodology")
        limitations = st.text_area("Limitations")
        if st.form_submit_button("Create assumption"):
            _submit(
                client.create_assumption,
                {
                    "sectionId": section["id"],
                    "title": title,
                    "description": description,
                    "scope": scope,
                    "validityStartDate": start.isoformat(),
                    "validityEndDate": end.isoformat(),
                    "methodology": methodology,
                    "limitations": limitations,
                    "createdBy": user_id,
                },
                success="Assumption created.",
            )


def render_rollover_page(client: ReportStudioClient) -> None:
    st.header("Rollover")
    snapshot = _fetch("reporting data", client.reporting_data)
    if snapshot is None:
        return
    periods = snapshot.get("periods") or []
    if not periods:
        st.info("Create a reporting period first.")
        return
    user_id = get_acting_user_id()

    st.subheader("Rules")
    rules = _fetch("rollover rules", client.list_rollover_rules) or []
    if rules:
        st.dataframe([{"Data type": r["dataType"], "Rule": r["ruleType"]} for r in rules], use_container_width=True)
    with st.form("rule"):
        data_type = st.text_input("Data type", value="narrative")
        rule_type = st.selectbox("Rule", ROLLOVER_RULE_TYPES)
        if st.form_submit_button("Save rule"):
            _submit(
                client.save_rollover_rule,
                {"dataType": data_type, "ruleType": rule_type, "savedBy": user_id},
                success="Rule saved.",
            )

    st.subheader("Roll over a period")
    with st.form("rollover"):
        source = st.selectbox("Source period", periods, format_func=lambda p: p["name"])
        name = st.text_input("Target period name")
        start = st.date_input("Target start")
        end = st.date_input("Target end")
        copy_structure = st.checkbox("Copy structure", value=True)
        copy_disclosures = st.checkbox("Copy disclosures")
        copy_values = st.checkbox("Copy data values")
        copy_attachments = st.checkbox("Copy attachments")
        submitted = st.form_submit_button("Run rollover")

    if submitted:
        try:
            result = client.rollover(
                {
                    "sourcePeriodId": source["id"],
                    "targetPeriodName": name,
                    "targetPeriodStartDate": start.isoformat(),
                    "targetPeriodEndDate": end.isoformat(),
                    "performedBy": user_id,
                    "options": {
                        "copyStructure": copy_structure,
                        "copyDisclosures": copy_disclosures,
                        "copyDataValues": copy_values,
                        "copyAttachments": copy_attachments,
                    },
                }
            )
        except ApiError as e:
            st.error(e.message)
            return
        set_selected_period_id(result["targetPeriod"]["id"])
        reconciliation = result["reconciliation"]
        st.success(
            f"Created '{result['targetPeriod']['name']}': "
            f"{reconciliation['mappedSections']} of {reconciliation['totalSourceSections']} sections mapped."
        )
        if reconciliation["unmappedItems"]:
            st.warning("Some sections could not be mapped.")
            st.dataframe(
                [
                    {"Code": u["sourceCatalogCode"], "Section": u["sourceTitle"], "Reason": u["reason"]}
                    for u in reconciliation["unmappedItems"]
                ],
                use_container_width=True,
            )
        for warning in result.get("inactiveOwnerWarnings") or []:
            st.warning(f"{warning['entityTitle']} is owned by inactive user {warning['userName']}.")


def render_roles_page(client: ReportStudioClient) -> None:
    st.header("Roles & users")
    users = _fetch("users", client.list_users)
    roles = _fetch("roles", client.list_roles)
    if users is None or roles is None:
        return
    user_id = get_acting_user_id()

    st.dataframe(
        [
            {"Role": r["name"], "Predefined": r.get("isPredefined", False), "Permissions": ", ".join(r["permissions"])}
            for r in roles
        ],
        use_container_width=True,
    )

    with st.form("role"):
        st.subheader("New role")
        role_name = st.text_input("Role name")
        role_description = st.text_input("Description")
        permissions = st.multiselect("Permissions", sorted(PERMISSION_GRANTS))
        if st.form_submit_button("Create role"):
            _submit(
                client.create_role,
                {
                    "name": role_name,
                    "description": role_description,
                    "permissions": permissions,
                    "createdBy": user_id,
                },
                success="Role created.",
            )

    user = st.selectbox("User", users, format_func=lambda u: f"{u['name']} ({u['email']})")
    assigned = _fetch("user roles", client.user_roles, user["id"]) or []
    for role in assigned:
        cols = st.columns([4, 1])
        cols[0].write(role["name"])
        if cols[1].button("Remove", key=f"remove-{role['id']}"):
            _submit(client.remove_role, user["id"], role["id"], success="Role removed.")

    available = [r for r in roles if r["id"] not in {a["id"] for a in assigned}]
    with st.form("assign"):
        chosen = st.multiselect("Assign roles", available, format_func=lambda r: r["name"])
        if st.form_submit_button("Assign"):
            _submit(
                client.assign_roles,
                user["id"],
                {"roleIds": [r["id"] for r in chosen], "assignedBy": user_id},
                success="Roles assigned.",
            )

    permissions = _fetch("permissions", client.effective_permissions, user["id"])
    if permissions:
        st.subheader("Effective permissions")
        st.json(permissions["resourceActions"])


def render_audit_page(client: ReportStudioClient) -> None:
    st.header("Audit log")
    cols = st.columns(3)
    entity_type = cols[0].text_input("Entity type")
    start = cols[1].text_input("From (YYYY-MM-DD)")
    end = cols[2].text_input("To (YYYY-MM-DD)")

    if st.button("Verify chain"):
        result = _fetch("chain status", client.verify_audit_chain)
        if result and result["valid"]:
            st.success(f"Audit chain intact ({result['entriesChecked']} entries).")
        elif result:
            st.error(f"Audit chain broken at entry {result['firstInvalidEntryId']}.")

    entries = _fetch("audit log", client.audit_log, entityType=entity_type, startDate=start, endDate=end) or []
    st.dataframe(
        [
            {
                "When": e["timestamp"],
                "User": e.get("userName"),
                "Action": e["action"],
                "Entity": f"{e['entityType']} {e['entityId']}",
                "Note": e.get("changeNote") or "",
            }
            for e in entries
        ],
        use_container_width=True,
    )


def render_exceptions_page(client: ReportStudioClient) -> None:
    st.header("Completion exceptions & readiness")
    period_id = get_selected_period_id()
    if not period_id:
        st.info("Pick a reporting period on the Periods page first.")
        return
    user_id = get_acting_user_id()

    readiness = _fetch("readiness", client.readiness_report, periodId=period_id)
    if readiness:
        metrics = readiness["metrics"]
        cols = st.columns(4)
        cols[0].metric("Owned", f"{metrics['ownershipPercentage']}%")
        cols[1].metric("Complete", f"{metrics['completionPercentage']}%")
        cols[2].metric("Blocked", metrics["blockedCount"])
        cols[3].metric("Overdue", metrics["overdueCount"])

    report = _fetch("validation report", client.validation_report, period_id)
    if report:
        summary = report["summary"]
        st.caption(
            f"{summary['completenessPercentage']}% complete, "
            f"{summary['completenessWithExceptionsPercentage']}% counting accepted exceptions"
        )

    sections = _fetch("sections", client.section_summaries, period_id) or []
    section_ids = {s["id"] for s in sections}
    exceptions = [e for e in _fetch("exceptions", client.list_exceptions) or [] if e["sectionId"] in section_ids]
    for exception in exceptions:
        cols = st.columns([4, 2, 1, 1])
        cols[0].write(f"**{exception['title']}** ({exception['exceptionType']})")
        cols[1].write(exception["status"])
        if exception["status"] != "pending":
            continue
        if cols[2].button("Accept", key=f"accept-{exception['id']}"):
            _submit(client.approve_exception, exception["id"], {"approvedBy": user_id}, success="Exception accepted.")
        if cols[3].button("Reject", key=f"reject-{exception['id']}"):
            _submit(
                client.reject_exception,
                exception["id"],
                {"rejectedBy": user_id, "reviewComments": "Rejected from the console."},
                success="Exception rejected.",
            )

    if not sections:
        return
    with st.form("exception"):
        st.subheader("Request an exception")
        section = st.selectbox("Section", sections, format_func=lambda s: s["title"])
        title = st.text_input("Title")
        exception_type = st.selectbox("Type", list(EXCEPTION_TYPES))
        justification = st.text_area("Justification")
        expires = st.text_input("Expires (YYYY-MM-DD)")
        if st.form_submit_button("Request exception"):
            _submit(
                client.create_exception,
                {
                    "sectionId": section["id"],
                    "title": title,
                    "exceptionType": exception_type,
                    "justification": justification,
                    "requestedBy": user_id,
                    "expiresAt": expires or None,
                },
                success="Exception requested.",
            )


def render_standards_page(client: ReportStudioClient) -> None:
    st.header("Standards & maturity")
    user_id = get_acting_user_id()

    standards = _fetch("standards", client.list_standards) or []
    for standard in standards:
        with st.expander(f"{standard['identifier']} {standard['title']} (v{standard['version']})"):
            mappings = _fetch("mappings", client.standard_mappings, standard["id"]) or []
            for mapping in mappings:
                st.write(f"{mapping['standardReference']} -> {mapping['sectionTitle']}")
            if st.button("Deprecate", key=f"deprecate-{standard['id']}"):
                _submit(client.deprecate_standard, standard["id"], success="Standard deprecated.")

    with st.form("standard"):
        st.subheader("Add standard")
        identifier = st.text_input("Identifier")
        title = st.text_input("Title")
        version = st.text_input("Version")
        if st.form_submit_button("Add standard"):
            _submit(
                client.create_standard,
                {"identifier": identifier, "title": title, "version": version, "createdBy": user_id},
                success="Standard added.",
            )

    period_id = get_selected_period_id()
    sections = _fetch("sections", client.section_summaries, period_id) if period_id else None
    if standards and sections:
        with st.form("mapping"):
            st.subheader("Map a section")
            standard = st.selectbox("Standard", standards, format_func=lambda s: s["identifier"])
            reference = st.text_input("Reference", placeholder="ESRS E1-6")
            section = st.selectbox("Section", sections, format_func=lambda s: s["title"])
            if st.form_submit_button("Add mapping"):
                _submit(
                    client.create_mapping,
                    {
                        "standardId": standard["id"],
                        "standardReference": reference,
                        "sectionId": section["id"],
                        "createdBy": user_id,
                    },
                    success="Mapping added.",
                )

    st.subheader("Maturity models")
    for model in _fetch("maturity models", client.list_maturity_models) or []:
        with st.expander(f"{model['name']} (version {model['version']})"):
            for level in model["levels"]:
                st.write(f"{level['order']}. {level['name']}: {len(level['criteria'])} criteria")
            versions = _fetch("versions", client.maturity_versions, model["id"]) or []
            st.caption(f"{len(versions)} version(s)")

    with st.form("maturity"):
        name = st.text_input("Model name")
        levels = st.text_area("Levels, one per line in ascending order")
        if st.form_submit_button("Create model"):
            _submit(
                client.create_maturity_model,
                {
                    "name": name,
                    "levels": [
                        {"name": line.strip(), "order": order}
                        for order, line in enumerate((text for text in levels.splitlines() if text.strip()), start=1)
                    ],
                    "createdBy": user_id,
                },
                success="Maturity model created.",
            )

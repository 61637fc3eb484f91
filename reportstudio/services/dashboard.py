"""
Read-only aggregations for the dashboard: completeness breakdowns,
period-over-period progress and the outstanding-actions list.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from reportstudio.config import CATEGORY_LABELS
from reportstudio.services.base import ServiceBase, now_utc, parse_date
from reportstudio.services.sections import progress_status

_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}


def _breakdown(item_id: str | None, name: str, points: list[dict[str, Any]]) -> dict[str, Any]:
    counts = {"missing": 0, "incomplete": 0, "complete": 0, "not applicable": 0}
    for dp in points:
        status = dp.get("completenessStatus")
        if status in counts:
            counts[status] += 1
    total = len(points)
    return {
        "id": item_id,
        "name": name,
        "missingCount": counts["missing"],
        "incompleteCount": counts["incomplete"],
        "completeCount": counts["complete"],
        "notApplicableCount": counts["not applicable"],
        "totalCount": total,
        "completePercentage": round(100 * counts["complete"] / total, 1) if total else 0.0,
    }


class DashboardService(ServiceBase):
    def _points(self, period_id: str | None, category: str | None) -> list[tuple[dict[str, Any], dict[str, Any]]]:
        """(data point, section) pairs for the period and category."""
        sections = {s["id"]: s for s in self.repo.list("section", period_id=period_id or None)}
        pairs = []
        for dp in self.repo.list("data_point"):
            section = sections.get(dp.get("sectionId"))
            if section is None:
                continue
            if category and section.get("category") != category:
                continue
            pairs.append((dp, section))
        return pairs

    def completeness_stats(
        self,
        period_id: str | None = None,
        category: str | None = None,
        organizational_unit_id: str | None = None,
    ) -> dict[str, Any]:
        pairs = self._points(period_id, category)
        if organizational_unit_id:
            pairs = [
                (dp, s)
                for dp, s in pairs
                if (self.find_user(dp.get("ownerId")) or {}).get("organizationalUnitId") == organizational_unit_id
            ]
        points = [dp for dp, _ in pairs]

        by_category = [
            _breakdown(key, label, [dp for dp, s in pairs if s.get("category") == key])
            for key, label in CATEGORY_LABELS.items()
        ]

        by_owner: dict[str | None, list[dict[str, Any]]] = {}
        for dp in points:
            by_owner.setdefault(dp.get("ownerId") or None, []).append(dp)
        by_unit = [
            _breakdown(owner_id, self.user_name(owner_id, default="Unassigned") if owner_id else "Unassigned", group)
            for owner_id, group in by_owner.items()
        ]

        return {
            "overall": _breakdown(None, "Overall", points),
            "byCategory": by_category,
            "byOrganizationalUnit": by_unit,
        }

    def progress_trends(self, period_id: str | None = None, category: str | None = None) -> dict[str, Any]:
        periods = self.repo.list("period")
        if period_id:
            periods = [p for p in periods if p["id"] == period_id]
        periods.sort(key=lambda p: p.get("startDate") or "")

        trends = []
        for period in periods:
            stats = _breakdown(period["id"], period["name"], [dp for dp, _ in self._points(period["id"], category)])
            trends.append(
                {
                    "periodId": period["id"],
                    "periodName": period["name"],
                    "status": period.get("status"),
                    "isLocked": bool(period.get("isLocked")),
                    "startDate": period.get("startDate"),
                    "endDate": period.get("endDate"),
                    "totalDataPoints": stats["totalCount"],
                    "completeDataPoints": stats["completeCount"],
                    "incompleteDataPoints": stats["incompleteCount"],
                    "missingDataPoints": stats["missingCount"],
                    "notApplicableDataPoints": stats["notApplicableCount"],
                    "completePercentage": stats["completePercentage"],
                }
            )
        return {
            "periods": trends,
            "summary": {
                "totalPeriods": len(trends),
                "lockedPeriods": sum(1 for t in trends if t["isLocked"]),
            },
        }

    def outstanding_actions(
        self, period_id: str | None = None, priority: str | None = None, today: date | None = None
    ) -> dict[str, Any]:
        today = today or now_utc().date()
        sections = {s["id"]: s for s in self.repo.list("section", period_id=period_id or None)}
        actions: list[dict[str, Any]] = []

        def base(kind: str, entity_id: str, title: str, section: dict[str, Any], owner_id: str | None) -> dict[str, Any]:
            return {
                "id": entity_id,
                "actionType": kind,
                "title": title,
                "sectionId": section["id"],
                "sectionTitle": section["title"],
                "category": section.get("category"),
                "ownerId": owner_id,
                "ownerName": self.user_name(owner_id, default="Unassigned") if owner_id else "Unassigned",
            }

        for gap in self.repo.list("gap"):
            section = sections.get(gap.get("sectionId"))
            if section is None or gap.get("resolved"):
                continue
            actions.append(
                {
                    **base("gap", gap["id"], gap["title"], section, section.get("ownerId")),
                    "priority": "high" if gap.get("impact") == "high" else "low",
                    "dueDate": gap.get("targetDate"),
                }
            )

        for dp in self.repo.list("data_point"):
            section = sections.get(dp.get("sectionId"))
            if section is None or dp.get("completenessStatus") not in ("missing", "incomplete"):
                continue
            deadline = parse_date(dp.get("deadline"))
            if deadline is not None and deadline < today:
                level = "high"
            elif deadline is not None and dp.get("completenessStatus") == "incomplete":
                level = "medium"
            else:
                level = "low"
            actions.append(
                {
                    **base("data-point", dp["id"], dp["title"], section, dp.get("ownerId")),
                    "priority": level,
                    "dueDate": dp.get("deadline"),
                    "isOverdue": deadline is not None and deadline < today,
                }
            )

        for plan in self.repo.list("remediation_plan"):
            section = sections.get(plan.get("sectionId"))
            if section is None or plan.get("status") in ("completed", "cancelled"):
                continue
            actions.append(
                {
                    **base("remediation-plan", plan["id"], plan["title"], section, plan.get("ownerId")),
                    "priority": "low",
                    "dueDate": plan.get("targetPeriod"),
                }
            )

        if priority:
            actions = [a for a in actions if a["priority"] == priority]
        actions.sort(key=lambda a: (_PRIORITY_ORDER[a["priority"]], a.get("dueDate") or "9999"))
        return {
            "actions": actions,
            "summary": {
                "totalActions": len(actions),
                "highPriority": sum(1 for a in actions if a["priority"] == "high"),
                "mediumPriority": sum(1 for a in actions if a["priority"] == "medium"),
                "lowPriority": sum(1 for a in actions if a["priority"] == "low"),
            },
        }

    def readiness_report(
        self,
        period_id: str | None = None,
        section_id: str | None = None,
        owner_id: str | None = None,
        category: str | None = None,
        today: date | None = None,
    ) -> dict[str, Any]:
        """
        Ownership and completion readiness over sections and their data points.

        Filters apply to the items: a section filter keeps that section and
        its data points, an owner filter keeps whatever that user owns.
        """
        today = today or now_utc().date()
        sections = self.repo.list("section", period_id=period_id or None)
        if section_id:
            sections = [s for s in sections if s["id"] == section_id]
        if category:
            sections = [s for s in sections if s.get("category") == category]

        items: list[dict[str, Any]] = []
        for section in sections:
            points = self.repo.list("data_point", section_id=section["id"])
            done = sum(1 for dp in points if dp.get("completenessStatus") == "complete")
            section_status = progress_status(points)
            items.append(
                {
                    "id": section["id"],
                    "type": "section",
                    "title": section["title"],
                    "category": section.get("category"),
                    "ownerId": section.get("ownerId"),
                    "ownerName": self.user_name(section.get("ownerId"), default="Unassigned"),
                    "progressStatus": section_status,
                    "isBlocked": section_status == "blocked",
                    "isOverdue": False,
                    "deadline": None,
                    "completenessPercentage": round(100 * done / len(points)) if points else 0,
                }
            )
            for dp in points:
                complete = dp.get("completenessStatus") == "complete"
                deadline = parse_date(dp.get("deadline"))
                blocked = bool(dp.get("isBlocked")) or dp.get("reviewStatus") == "changes-requested"
                items.append(
                    {
                        "id": dp["id"],
                        "type": "datapoint",
                        "title": dp["title"],
                        "category": section.get("category"),
                        "ownerId": dp.get("ownerId"),
                        "ownerName": self.user_name(dp.get("ownerId"), default="Unassigned"),
                        "progressStatus": progress_status([dp]),
                        "isBlocked": blocked,
                        "isOverdue": not complete and deadline is not None and deadline < today,
                        "deadline": dp.get("deadline"),
                        "completenessPercentage": 100 if complete else 0,
                    }
                )

        if owner_id:
            items = [i for i in items if i["ownerId"] == owner_id]

        total = len(items)
        with_owner = sum(1 for i in items if i["ownerId"])
        completed = sum(1 for i in items if i["completenessPercentage"] == 100)
        return {
            "periodId": period_id,
            "metrics": {
                "ownershipPercentage": round(100 * with_owner / total) if total else 0,
                "completionPercentage": round(100 * completed / total) if total else 0,
                "blockedCount": sum(1 for i in items if i["isBlocked"]),
                "overdueCount": sum(1 for i in items if i["isOverdue"]),
                "totalItems": total,
                "itemsWithOwners": with_owner,
                "completedItems": completed,
            },
            "items": items,
        }

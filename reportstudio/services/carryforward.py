from __future__ import annotations

from datetime import date
from typing import Any

from reportstudio.services.base import ServiceBase, new_id, parse_date, utc_now

CARRY_FORWARD_PREFIX = "Carried forward from previous period. "
EXPIRED_LIMITATION_PREFIX = "[EXPIRED - Requires Review] "


class CarryForwardService(ServiceBase):
    """Copies open disclosures (unresolved gaps, active assumptions) between sections."""

    def carry_section(
        self,
        source_section_id: str,
        target_section_id: str,
        *,
        target_start: date | None,
        performed_by: str,
    ) -> tuple[int, int]:
        """Returns (gaps copied, assumptions copied)."""
        now = utc_now()
        docs: list[tuple[str, dict[str, Any]]] = []

        for gap in self.repo.list("gap", section_id=source_section_id):
            if gap.get("resolved"):
                continue
            docs.append(
                (
                    "gap",
                    {
                        **gap,
                        "id": new_id(),
                        "sectionId": target_section_id,
                        "description": CARRY_FORWARD_PREFIX + (gap.get("description") or ""),
                        "createdBy": performed_by or gap.get("createdBy"),
                        "createdAt": now,
                        "resolved": False,
                        "resolvedBy": None,
                        "resolvedAt": None,
                        "resolutionNote": None,
                        "carriedForwardFromId": gap["id"],
                    },
                )
            )
        gaps_copied = len(docs)

        for assumption in self.repo.list("assumption", section_id=source_section_id):
            if assumption.get("status") != "active":
                continue
            description = CARRY_FORWARD_PREFIX + (assumption.get("description") or "")
            limitations = assumption.get("limitations") or ""
            expires = parse_date(assumption.get("validityEndDate"))
            if target_start and expires and expires < target_start:
                description = (
                    f"WARNING: This assumption expired on {expires.isoformat()} and must be reviewed. " + description
                )
                limitations = EXPIRED_LIMITATION_PREFIX + limitations
            docs.append(
                (
                    "assumption",
                    {
                        **assumption,
                        "id": new_id(),
                        "sectionId": target_section_id,
                        "description": description,
                        "limitations": limitations,
                        "version": 1,
                        "status": "active",
                        "linkedDataPointIds": [],
                        "replacementAssumptionId": None,
                        "deprecationJustification": None,
                        "createdBy": performed_by or assumption.get("createdBy"),
                        "createdAt": now,
                        "updatedBy": None,
                        "updatedAt": None,
                        "carriedForwardFromId": assumption["id"],
                    },
                )
            )

        self.repo.upsert_many(docs)
        return gaps_copied, len(docs) - gaps_copied

"""
Section validation rules and their evaluation against data point values.
"""

from __future__ import annotations

import json
from typing import Any

from reportstudio.config import VALIDATION_RULE_TYPES
from reportstudio.exceptions import ValidationError
from reportstudio.models import ValidationRuleRequest
from reportstudio.services.base import ServiceBase, is_blank, new_id, parse_date, require, utc_now


def _as_number(value: Any) -> float | None:
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


class ValidationRuleService(ServiceBase):
    def list_rules(self, section_id: str | None = None) -> list[dict[str, Any]]:
        if section_id:
            return [r for r in self.repo.list("validation_rule", section_id=section_id) if r.get("isActive")]
        return self.repo.list("validation_rule")

    def get_rule(self, rule_id: str) -> dict[str, Any]:
        return self._get_or_404("validation_rule", rule_id, "Validation rule not found.")

    def _check_rule_type(self, rule_type: str) -> None:
        if rule_type not in VALIDATION_RULE_TYPES:
            raise ValidationError(
                f"RuleType must be one of: {', '.join(VALIDATION_RULE_TYPES)}.",
                field="ruleType",
            )

    def create_rule(self, req: ValidationRuleRequest) -> dict[str, Any]:
        require(req.section_id, "sectionId", "SectionId is required.")
        require(req.rule_type, "ruleType", "RuleType is required.")
        require(req.error_message, "errorMessage", "ErrorMessage is required.")
        require(req.created_by, "createdBy", "CreatedBy is required.")
        self._check_rule_type(req.rule_type)
        if self.repo.get("section", req.section_id) is None:
            raise ValidationError(f"Section with ID '{req.section_id}' not found.", field="sectionId")

        rule = {
            "id": new_id(),
            "sectionId": req.section_id,
            "ruleType": req.rule_type,
            "targetField": req.target_field or "value",
            "parameters": req.parameters,
            "errorMessage": req.error_message,
            "isActive": req.is_active,
            "createdBy": req.created_by,
            "createdAt": utc_now(),
        }
        self.repo.upsert("validation_rule", rule)
        return rule

    def update_rule(self, rule_id: str, req: ValidationRuleRequest) -> dict[str, Any]:
        with self.lock:
            rule = self.get_rule(rule_id)
            require(req.rule_type, "ruleType", "RuleType is required.")
            require(req.error_message, "errorMessage", "ErrorMessage is required.")
            self._check_rule_type(req.rule_type)
            rule.update(
                {
                    "ruleType": req.rule_type,
                    "targetField": req.target_field or "value",
                    "parameters": req.parameters,
                    "errorMessage": req.error_message,
                    "isActive": req.is_active,
                    "updatedAt": utc_now(),
                }
            )
            self.repo.upsert("validation_rule", rule)
        return rule

    def delete_rule(self, rule_id: str) -> None:
        self.get_rule(rule_id)
        self.repo.delete("validation_rule", rule_id)

    # -- evaluation --------------------------------------------------------

    def first_failure(self, section_id: str, value: Any, unit: Any) -> str | None:
        """Error message of the first active rule the value breaks, or None."""
        period = self.period_for_section(section_id)
        for rule in self.list_rules(section_id):
            if not self._passes(rule, value, unit, period):
                return rule["errorMessage"]
        return None

    @staticmethod
    def _passes(rule: dict[str, Any], value: Any, unit: Any, period: dict[str, Any] | None) -> bool:
        rule_type = rule.get("ruleType")
        if rule_type == "non-negative":
            number = _as_number(value) if not is_blank(value) else None
            return number is None or number >= 0
        if rule_type == "required-unit":
            return is_blank(value) or not is_blank(unit)
        if rule_type == "allowed-units":
            if is_blank(unit) or is_blank(rule.get("parameters")):
                return True
            try:
                allowed = json.loads(rule["parameters"])
            except (TypeError, ValueError):
                return True
            if not isinstance(allowed, list):
                return True
            return str(unit).strip().lower() in {str(a).strip().lower() for a in allowed}
        if rule_type == "value-within-period":
            when = parse_date(value)
            if when is None or period is None:
                return True
            start, end = parse_date(period.get("startDate")), parse_date(period.get("endDate"))
            if start is None or end is None:
                return True
            return start <= when <= end
        return True

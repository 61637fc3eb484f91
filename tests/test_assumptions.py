from __future__ import annotations

import pytest

from conftest import OWNER_ID
from reportstudio.exceptions import ConflictError, ValidationError
from reportstudio.models import AssumptionRequest, DeprecateAssumptionRequest


def _request(section_id: str, **overrides) -> AssumptionRequest:
    fields = {
        "section_id": section_id,
        "title": "Grid emission factor",
        "description": "National grid average applied to purchased electricity",
        "scope": "Scope 2",
        "validity_start_date": "2024-01-01",
        "validity_end_date": "2024-12-31",
        "methodology": "Location-based",
        "limitations": "Ignores supplier-specific contracts",
        "sources": [{"sourceType": "external", "sourceReference": "IEA 2023", "description": "Emission factors"}],
        "created_by": OWNER_ID,
        "updated_by": OWNER_ID,
    }
    fields.update(overrides)
    return AssumptionRequest(**fields)


@pytest.fixture
def assumption(services, section):
    return services.assumptions.create_assumption(_request(section["id"]))


def test_create(assumption):
    assert assumption["status"] == "active"
    assert assumption["version"] == 1
    assert assumption["sources"][0]["sourceReference"] == "IEA 2023"


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"title": ""}, "Title is required."),
        ({"methodology": " "}, "Methodology is required."),
        ({"validity_end_date": "2023-12-31"}, "Validity end date must be after start date."),
        ({"validity_start_date": "soon"}, "must be valid dates"),
    ],
)
def test_create_validation(services, section, overrides, message):
    with pytest.raises(ValidationError, match=message):
        services.assumptions.create_assumption(_request(section["id"], **overrides))


def test_update_increments_version(services, section, assumption):
    updated = services.assumptions.update_assumption(
        assumption["id"], _request(section["id"], methodology="Market-based")
    )
    assert updated["version"] == 2
    [entry] = services.audit.query(entity_id=assumption["id"])[:1]
    assert {"field": "Version", "oldValue": "1", "newValue": "2"} in entry["changes"]


def test_deprecate_with_replacement(services, section, assumption):
    replacement = services.assumptions.create_assumption(_request(section["id"], title="Supplier factor"))
    result = services.assumptions.deprecate(
        assumption["id"],
        DeprecateAssumptionRequest(replacement_assumption_id=replacement["id"], deprecated_by=OWNER_ID),
    )
    assert result["status"] == "deprecated"
    assert result["replacementAssumptionId"] == replacement["id"]

    with pytest.raises(ConflictError):
        services.assumptions.update_assumption(assumption["id"], _request(section["id"]))


def test_deprecate_without_replacement_needs_justification(services, assumption):
    with pytest.raises(ValidationError, match="Justification is required"):
        services.assumptions.deprecate(assumption["id"], DeprecateAssumptionRequest(deprecated_by=OWNER_ID))

    result = services.assumptions.deprecate(
        assumption["id"], DeprecateAssumptionRequest(justification="Factor withdrawn", deprecated_by=OWNER_ID)
    )
    assert result["status"] == "invalid"


def test_cannot_replace_with_itself(services, assumption):
    with pytest.raises(ValidationError, match="cannot replace itself"):
        services.assumptions.deprecate(
            assumption["id"],
            DeprecateAssumptionRequest(replacement_assumption_id=assumption["id"], deprecated_by=OWNER_ID),
        )


def test_linked_assumption_cannot_be_deleted(services, assumption, make_data_point):
    dp = make_data_point()
    services.assumptions.link(assumption["id"], dp["id"])
    with pytest.raises(ConflictError, match="linked to data points"):
        services.assumptions.delete_assumption(assumption["id"], deleted_by=OWNER_ID)

    services.assumptions.unlink(assumption["id"], dp["id"])
    services.assumptions.delete_assumption(assumption["id"], deleted_by=OWNER_ID)
    assert services.assumptions.list_assumptions() == []


def test_deleting_data_point_unlinks_assumption(services, assumption, make_data_point):
    dp = make_data_point()
    services.assumptions.link(assumption["id"], dp["id"])
    services.data_points.delete_data_point(dp["id"], deleted_by=OWNER_ID)
    assert services.assumptions.get_assumption(assumption["id"])["linkedDataPointIds"] == []

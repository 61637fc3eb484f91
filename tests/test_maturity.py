from __future__ import annotations

import pytest

from conftest import ADMIN_ID
from reportstudio.exceptions import NotFoundError, ValidationError
from reportstudio.models import MaturityCriterionRequest, MaturityLevelRequest, MaturityModelRequest


def _model(name: str = "ESG Reporting Maturity Framework", **overrides) -> MaturityModelRequest:
    fields = {
        "name": name,
        "description": "How mature is our reporting?",
        "levels": [
            MaturityLevelRequest(
                name="Repeatable",
                order=2,
                criteria=[
                    MaturityCriterionRequest(
                        name="Data completeness",
                        criterion_type="data-completeness",
                        min_completion_percentage=80,
                    ),
                    MaturityCriterionRequest(
                        name="Controls",
                        criterion_type="process-control",
                        required_controls=["approval-workflow", "dual-validation", "audit-trail"],
                    ),
                ],
            ),
            MaturityLevelRequest(name="Initial", order=1),
        ],
        "created_by": ADMIN_ID,
        "updated_by": ADMIN_ID,
    }
    fields.update(overrides)
    return MaturityModelRequest(**fields)


def test_create(services):
    model = services.maturity_models.create_model(_model())
    assert (model["version"], model["isActive"], model["createdByName"]) == (1, True, "Admin User")
    assert [level["name"] for level in model["levels"]] == ["Initial", "Repeatable"]
    controls = model["levels"][1]["criteria"][1]
    assert controls["requiredControls"] == ["approval-workflow", "dual-validation", "audit-trail"]
    assert services.maturity_models.get_active()["id"] == model["id"]


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"name": " "}, "Name is required."),
        ({"levels": []}, "At least one maturity level is required."),
        (
            {"levels": [MaturityLevelRequest(name="A", order=1), MaturityLevelRequest(name="B", order=1)]},
            "Maturity level orders must be unique.",
        ),
        (
            {
                "levels": [
                    MaturityLevelRequest(
                        name="A", order=1, criteria=[MaturityCriterionRequest(name="X", criterion_type="vibes")]
                    )
                ]
            },
            "CriterionType must be one of",
        ),
        (
            {
                "levels": [
                    MaturityLevelRequest(
                        name="A", order=1, criteria=[MaturityCriterionRequest(name="X", min_evidence_percentage=120)]
                    )
                ]
            },
            "MinEvidencePercentage must be between 0 and 100.",
        ),
    ],
)
def test_validation(services, overrides, message):
    with pytest.raises(ValidationError, match=message):
        services.maturity_models.create_model(_model(**overrides))


def test_update_writes_new_version(services):
    first = services.maturity_models.create_model(_model(name="Original"))
    second = services.maturity_models.update_model(first["id"], _model(name="Updated"))
    assert (second["version"], second["modelId"], second["createdAt"]) == (2, first["id"], first["createdAt"])
    assert second["id"] != first["id"]

    history = services.maturity_models.version_history(second["id"])
    assert [(m["version"], m["isActive"]) for m in history] == [(2, True), (1, False)]
    assert [m["id"] for m in services.maturity_models.list_models()] == [second["id"]]
    assert len(services.maturity_models.list_models(include_inactive=True)) == 2

    # Updating through an old version id still extends the chain.
    third = services.maturity_models.update_model(first["id"], _model(name="Third"))
    assert third["version"] == 3
    assert services.maturity_models.get_active()["name"] == "Third"


def test_delete_removes_all_versions(services):
    first = services.maturity_models.create_model(_model())
    services.maturity_models.update_model(first["id"], _model(name="v2"))
    result = services.maturity_models.delete_model(first["id"], ADMIN_ID)
    assert result == {"message": "Maturity model deleted successfully."}
    assert services.maturity_models.list_models(include_inactive=True) == []
    with pytest.raises(NotFoundError, match="No active maturity model found."):
        services.maturity_models.get_active()
    with pytest.raises(NotFoundError, match="Maturity model not found."):
        services.maturity_models.version_history(first["id"])

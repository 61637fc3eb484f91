from __future__ import annotations

import pytest

from conftest import OWNER_ID
from reportstudio.exceptions import ConflictError, ValidationError
from reportstudio.models import DecisionRequest, DeprecateDecisionRequest


def _request(**overrides) -> DecisionRequest:
    fields = {
        "title": "Use operational control boundary",
        "context": "Group has several joint ventures",
        "decision_text": "Report emissions under operational control",
        "alternatives": "Equity share",
        "consequences": "JV emissions excluded",
        "created_by": OWNER_ID,
        "updated_by": OWNER_ID,
    }
    fields.update(overrides)
    return DecisionRequest(**fields)


@pytest.fixture
def decision(services):
    return services.decisions.create_decision(_request())


def test_update_requires_change_note_and_keeps_history(services, decision):
    with pytest.raises(ValidationError, match="Change note is required"):
        services.decisions.update_decision(decision["id"], _request())

    services.decisions.update_decision(decision["id"], _request(consequences="Updated", change_note="Board review"))
    updated = services.decisions.update_decision(
        decision["id"], _request(decision_text="Equity share", change_note="Auditor request")
    )
    assert updated["version"] == 3

    history = services.decisions.versions(decision["id"])
    assert [v["version"] for v in history] == [2, 1]
    assert history[1]["decisionText"] == "Report emissions under operational control"
    assert history[0]["changeNote"] == "Board review"


def test_deprecated_decision_is_frozen(services, decision):
    with pytest.raises(ValidationError, match="Deprecation reason is required."):
        services.decisions.deprecate(decision["id"], DeprecateDecisionRequest(deprecated_by=OWNER_ID))
    services.decisions.deprecate(decision["id"], DeprecateDecisionRequest(reason="Superseded", deprecated_by=OWNER_ID))
    with pytest.raises(ConflictError, match="Cannot update a deprecated decision."):
        services.decisions.update_decision(decision["id"], _request(change_note="x"))


def test_fragment_references_block_delete(services, decision):
    services.decisions.link(decision["id"], "fragment-1")
    assert [d["id"] for d in services.decisions.list_by_fragment("fragment-1")] == [decision["id"]]

    with pytest.raises(ConflictError, match="referenced by report fragments"):
        services.decisions.delete_decision(decision["id"], deleted_by=OWNER_ID)

    services.decisions.unlink(decision["id"], "fragment-1")
    services.decisions.delete_decision(decision["id"], deleted_by=OWNER_ID)
    assert services.decisions.list_decisions() == []


def test_unknown_section_rejected(services):
    with pytest.raises(ValidationError, match="Section with ID 'nope' not found."):
        services.decisions.create_decision(_request(section_id="nope"))

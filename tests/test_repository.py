from __future__ import annotations

import pytest

from reportstudio.repository import DocumentRepo


def test_upsert_get_and_update(repo: DocumentRepo):
    repo.upsert("period", {"id": "p1", "name": "FY 2024"})
    assert repo.get("period", "p1") == {"id": "p1", "name": "FY 2024"}

    repo.upsert("period", {"id": "p1", "name": "FY 2024 (restated)"})
    assert repo.get("period", "p1")["name"] == "FY 2024 (restated)"
    assert repo.count("period") == 1


def test_get_missing_or_blank_id_returns_none(repo: DocumentRepo):
    assert repo.get("period", "nope") is None
    assert repo.get("period", "") is None
    assert repo.get("period", None) is None


def test_list_filters_by_period_and_section(repo: DocumentRepo):
    repo.upsert_many(
        [
            ("section", {"id": "s1", "periodId": "p1"}),
            ("section", {"id": "s2", "periodId": "p2"}),
            ("data_point", {"id": "d1", "sectionId": "s1"}),
            ("data_point", {"id": "d2", "sectionId": "s2"}),
            ("data_point", {"id": "d3", "sectionId": "s1"}),
        ]
    )
    assert [s["id"] for s in repo.list("section", period_id="p1")] == ["s1"]
    assert [d["id"] for d in repo.list("data_point", section_id="s1")] == ["d1", "d3"]
    assert [d["id"] for d in repo.list("data_point")] == ["d1", "d2", "d3"]


def test_delete_and_delete_many(repo: DocumentRepo):
    repo.upsert_many([("gap", {"id": f"g{i}"}) for i in range(3)])
    assert repo.delete("gap", "g0") is True
    assert repo.delete("gap", "g0") is False
    repo.delete_many("gap", ["g1", "g2"])
    assert repo.count("gap") == 0


def test_empty_id_rejected(repo: DocumentRepo):
    with pytest.raises(ValueError):
        repo.upsert("period", {"id": "  ", "name": "x"})


def test_unknown_kind_rejected(repo: DocumentRepo):
    with pytest.raises(ValueError):
        repo.upsert("widget", {"id": "w1"})


def test_audit_log_order_and_filters(repo: DocumentRepo):
    for i, (etype, user) in enumerate([("DataPoint", "user-1"), ("Gap", "user-2"), ("DataPoint", "user-2")]):
        repo.append_audit(
            {
                "id": f"a{i}",
                "timestamp": f"2024-01-0{i + 1}T00:00:00+00:00",
                "entityType": etype,
                "entityId": f"e{i}",
                "userId": user,
                "entryHash": f"h{i}",
            }
        )
    assert [e["id"] for e in repo.list_audit()] == ["a0", "a1", "a2"]
    assert [e["id"] for e in repo.list_audit(entity_type="datapoint")] == ["a0", "a2"]
    assert [e["id"] for e in repo.list_audit(user_id="user-2")] == ["a1", "a2"]
    assert repo.last_audit_hash() == "h2"


def test_last_audit_hash_empty(repo: DocumentRepo):
    assert repo.last_audit_hash() is None


def test_data_persists_across_instances(tmp_path):
    path = tmp_path / "persist.db"
    DocumentRepo(str(path)).upsert("user", {"id": "u1", "name": "A"})
    assert DocumentRepo(str(path)).get("user", "u1")["name"] == "A"

from __future__ import annotations

import pytest

from conftest import ADMIN_ID
from reportstudio.exceptions import ConflictError, NotFoundError, ValidationError
from reportstudio.models import DeprecateStandardRequest, StandardMappingRequest, StandardRequest


@pytest.fixture
def esrs(services):
    return services.standards.create_standard(
        StandardRequest(
            identifier="ESRS-E1",
            title="Climate change",
            version="2023",
            effective_start_date="2024-01-01",
            created_by=ADMIN_ID,
        )
    )


class TestCatalog:
    @pytest.mark.parametrize(
        "fields,message",
        [
            ({"title": "Climate", "version": "1"}, "Identifier is required."),
            ({"identifier": "GRI-305", "version": "1"}, "Title is required."),
            ({"identifier": "GRI-305", "title": "Emissions"}, "Version is required."),
            (
                {
                    "identifier": "GRI-305",
                    "title": "Emissions",
                    "version": "2016",
                    "effective_start_date": "2024-01-01",
                    "effective_end_date": "2023-12-31",
                },
                "EffectiveEndDate must be on or after EffectiveStartDate.",
            ),
        ],
    )
    def test_validation(self, services, fields, message):
        with pytest.raises(ValidationError, match=message):
            services.standards.create_standard(StandardRequest(**fields))

    def test_identifier_is_unique(self, services, esrs):
        with pytest.raises(ConflictError, match="'esrs-e1' already exists"):
            services.standards.create_standard(StandardRequest(identifier="esrs-e1", title="Dup", version="1"))

    def test_update_keeps_identifier(self, services, esrs):
        updated = services.standards.update_standard(
            esrs["id"],
            StandardRequest(identifier="CHANGED", title="Climate change", version="2024", updated_by=ADMIN_ID),
        )
        assert updated["identifier"] == "ESRS-E1"
        assert updated["version"] == "2024"
        [entry] = services.audit.query(entity_id=esrs["id"])[:1]
        assert {c["field"] for c in entry["changes"]} == {"Version", "EffectiveStartDate"}

    def test_deprecate_hides_from_default_list(self, services, esrs):
        services.standards.create_standard(StandardRequest(identifier="GRI-305", title="Emissions", version="2016"))
        result = services.standards.deprecate(esrs["id"], DeprecateStandardRequest(deprecated_by=ADMIN_ID))
        assert result == {"message": "Standard has been deprecated successfully."}
        assert [s["identifier"] for s in services.standards.list_standards()] == ["GRI-305"]
        assert [s["identifier"] for s in services.standards.list_standards(include_deprecated=True)] == [
            "ESRS-E1",
            "GRI-305",
        ]
        with pytest.raises(ConflictError, match="already deprecated"):
            services.standards.deprecate(esrs["id"], DeprecateStandardRequest())

    def test_unknown_standard(self, services):
        with pytest.raises(NotFoundError, match="Standard not found."):
            services.standards.get_standard("missing")


class TestMappings:
    def test_map_and_unmap(self, services, esrs, section):
        mapping = services.standards.create_mapping(
            StandardMappingRequest(
                standard_id=esrs["id"], standard_reference="ESRS E1-6", section_id=section["id"], created_by=ADMIN_ID
            )
        )
        assert (mapping["standardIdentifier"], mapping["sectionTitle"]) == ("ESRS-E1", "Energy & Emissions")
        assert services.standards.mappings_for_standard(esrs["id"]) == [mapping]
        assert services.standards.list_mappings(section_id=section["id"]) == [mapping]

        with pytest.raises(ConflictError, match="already mapped"):
            services.standards.create_mapping(
                StandardMappingRequest(standard_id=esrs["id"], standard_reference="esrs e1-6", section_id=section["id"])
            )

        services.standards.delete_mapping(mapping["id"], ADMIN_ID)
        assert services.standards.mappings_for_standard(esrs["id"]) == []
        with pytest.raises(NotFoundError, match="Mapping not found."):
            services.standards.delete_mapping(mapping["id"])

    def test_deprecated_standard_cannot_be_mapped(self, services, esrs, section):
        services.standards.deprecate(esrs["id"], DeprecateStandardRequest())
        with pytest.raises(ValidationError, match="deprecated standard"):
            services.standards.create_mapping(
                StandardMappingRequest(standard_id=esrs["id"], standard_reference="ESRS E1", section_id=section["id"])
            )

    def test_unknown_section(self, services, esrs):
        with pytest.raises(ValidationError, match="Section with ID 'missing' not found."):
            services.standards.create_mapping(
                StandardMappingRequest(standard_id=esrs["id"], standard_reference="ESRS E1", section_id="missing")
            )

"""
Pytest configuration and shared fixtures for Report Studio tests.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable

import pytest

# Add repo root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from reportstudio.models import (  # noqa: E402
    CreatePeriodRequest,
    DataPointRequest,
    OrganizationalUnitRequest,
    OrganizationRequest,
)
from reportstudio.repository import DocumentRepo  # noqa: E402
from reportstudio.services import Services, build_services, seed_reference_data  # noqa: E402

OWNER_ID = "user-1"
ADMIN_ID = "user-2"
CONTRIBUTOR_ID = "user-3"


@pytest.fixture
def repo(tmp_path: Path) -> DocumentRepo:
    return DocumentRepo(str(tmp_path / "reportstudio.db"))


@pytest.fixture
def services(repo: DocumentRepo) -> Services:
    """Services over a seeded database (catalog, sample users, predefined roles)."""
    seed_reference_data(repo)
    return build_services(repo)


@pytest.fixture
def organization(services: Services) -> dict[str, Any]:
    org = services.organization.create_organization(
        OrganizationRequest(name="Acme Industries", legal_form="GmbH", country="DE", created_by=ADMIN_ID)
    )
    services.organization.create_unit(OrganizationalUnitRequest(name="Headquarters", created_by=ADMIN_ID))
    return org


@pytest.fixture
def make_period(services: Services, organization) -> Callable[..., dict[str, Any]]:
    def _make(name: str = "FY 2024", start: str = "2024-01-01", end: str = "2024-12-31", **kwargs) -> dict[str, Any]:
        snapshot = services.periods.create_period(
            CreatePeriodRequest(
                name=name,
                start_date=start,
                end_date=end,
                reporting_mode=kwargs.pop("reporting_mode", "extended"),
                report_scope="single-company",
                owner_id=OWNER_ID,
                owner_name="Sarah Chen",
                **kwargs,
            )
        )
        return next(p for p in snapshot["periods"] if p["name"] == name)

    return _make


@pytest.fixture
def period(make_period) -> dict[str, Any]:
    return make_period()


@pytest.fixture
def section(services: Services, period) -> dict[str, Any]:
    """The ENV-001 section of ``period``."""
    return next(s for s in services.sections.list_sections(period["id"]) if s["catalogCode"] == "ENV-001")


@pytest.fixture
def make_data_point(services: Services, section) -> Callable[..., dict[str, Any]]:
    def _make(**overrides) -> dict[str, Any]:
        fields = {
            "section_id": section["id"],
            "type": "metric",
            "title": "Scope 1 emissions",
            "content": "Direct emissions from owned sources",
            "value": "1250",
            "unit": "tCO2e",
            "owner_id": OWNER_ID,
            "source": "Fuel invoices",
            "information_type": "fact",
            "updated_by": OWNER_ID,
        }
        fields.update(overrides)
        return services.data_points.create_data_point(DataPointRequest(**fields))

    return _make


@pytest.fixture
def api(tmp_path: Path):
    """TestClient over a fresh seeded app; the lifespan runs inside the context."""
    from fastapi.testclient import TestClient

    from reportstudio.api import create_app

    app = create_app(db_path=tmp_path / "api.db", seed=True)
    with TestClient(app) as client:
        yield client

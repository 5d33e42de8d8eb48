"""Pytest configuration and shared fixtures."""

from typing import List
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from bodymetrics.main import app
from bodymetrics.schemas.measurements import CatalogEntry
from bodymetrics.services.cache import CacheService
from fakes import USER_ID, FakeClock, FakeNow


@pytest.fixture
def test_client() -> TestClient:
    """Create FastAPI test client.

    Returns:
        TestClient: FastAPI test client instance
    """
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest.fixture
def user_id() -> UUID:
    return USER_ID


@pytest.fixture
def catalog() -> List[CatalogEntry]:
    """A small catalog covering the body-composition metrics used in tests."""
    return [
        CatalogEntry(key="weight", display_name="Weight", unit="kg", category="body",
                     validation_min=20, validation_max=300, sort_order=1),
        CatalogEntry(key="body_fat_percent", display_name="Body Fat Percentage", unit="%",
                     category="body", validation_min=2, validation_max=70, sort_order=2),
        CatalogEntry(key="visceral_fat_level", display_name="Visceral Fat Level", unit="level",
                     category="body", validation_min=1, validation_max=59, sort_order=3),
        CatalogEntry(key="skeletal_muscle_mass", display_name="Skeletal Muscle Mass", unit="kg",
                     category="body", validation_min=5, validation_max=100, sort_order=4),
        CatalogEntry(key="bmi", display_name="BMI", unit="kg/m2", category="body",
                     validation_min=10, validation_max=80, sort_order=5),
        CatalogEntry(key="hemoglobin", display_name="Hemoglobin", unit="g/dL", category="blood",
                     validation_min=3, validation_max=25, sort_order=6),
    ]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> CacheService:
    return CacheService(max_size=100, default_ttl=300, clock=clock)


@pytest.fixture
def fake_now() -> FakeNow:
    return FakeNow()

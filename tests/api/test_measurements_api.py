"""API tests for the measurement and analysis endpoints."""

import json
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from bodymetrics.api.dependencies import (
    get_analysis_service,
    get_extraction_service,
    get_ingestion_service,
)
from bodymetrics.core.exceptions import ImageDownloadError
from bodymetrics.main import app
from bodymetrics.schemas.analysis import Profile
from bodymetrics.services.analysis.analysis_service import AnalysisService
from bodymetrics.services.analysis.gate import AnalysisGate
from bodymetrics.services.analysis.generator import AnalysisGenerator
from bodymetrics.services.catalog_service import CatalogService
from bodymetrics.services.ingestion.ingestion_service import IngestionService
from bodymetrics.services.ingestion.vision_extractor import VisionExtractor
from fakes import (
    NOW,
    USER_ID,
    FakeAnalysisRepository,
    FakeCatalogRepository,
    FakeMeasurementRepository,
    FakeProfileRepository,
    llm_response,
)

HEADERS = {"X-User-Id": str(USER_ID)}
MEASUREMENTS_URL = "/api/v1/measurements"


@pytest.fixture
def measurement_repository():
    return FakeMeasurementRepository()


@pytest.fixture
def vision_client():
    client = MagicMock()
    client.extract_from_image = AsyncMock()
    return client


@pytest.fixture
def ingestion_service(catalog, cache, measurement_repository, vision_client):
    service = IngestionService(
        catalog_service=CatalogService(FakeCatalogRepository(catalog), cache),
        measurement_repository=measurement_repository,
        cache=cache,
        vision_extractor=VisionExtractor(vision_client),
    )
    app.dependency_overrides[get_ingestion_service] = lambda: service
    app.dependency_overrides[get_extraction_service] = lambda: service
    return service


@pytest.fixture
def analysis_client():
    client = MagicMock()
    client.generate_text = AsyncMock(
        return_value=llm_response(json.dumps({"sum": "Stable weight."}))
    )
    return client


@pytest.fixture
def analysis_repository(fake_now):
    return FakeAnalysisRepository(fake_now)


@pytest.fixture
def analysis_service(analysis_client, analysis_repository, measurement_repository, cache, fake_now):
    for day in range(5):
        measurement_repository.add("weight", 80 + day, "kg", NOW - timedelta(days=day))
    service = AnalysisService(
        gate=AnalysisGate(analysis_repository, cache, now=fake_now),
        generator=AnalysisGenerator(analysis_client),
        analysis_repository=analysis_repository,
        measurement_repository=measurement_repository,
        profile_repository=FakeProfileRepository(Profile(age=30, sex="male")),
    )
    app.dependency_overrides[get_analysis_service] = lambda: service
    return service


class TestAuthentication:

    def test_missing_identity_is_rejected(self, test_client, ingestion_service):
        response = test_client.post(f"{MEASUREMENTS_URL}/ingest", json={"measurements": []})

        assert response.status_code == 401

    def test_malformed_identity_is_rejected(self, test_client, ingestion_service):
        response = test_client.post(
            f"{MEASUREMENTS_URL}/ingest",
            json={"measurements": []},
            headers={"X-User-Id": "not-a-uuid"},
        )

        assert response.status_code == 401


class TestIngestEndpoint:

    def test_ingest_normalizes_and_reports(self, test_client, ingestion_service):
        response = test_client.post(
            f"{MEASUREMENTS_URL}/ingest",
            json={"measurements": [
                {"metric": "Weight", "value": 82.5, "unit": "kg", "confidence": 0.9},
                {"metric": "Favourite colour", "value": 3, "unit": ""},
            ]},
            headers=HEADERS,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] is True
        processed = body["data"]["processed"]
        assert [m["metric"] for m in processed] == ["weight"]
        assert any("Favourite colour" in w for w in body["data"]["warnings"])
        assert body["meta"]["request_id"] == response.headers["X-Request-ID"]

    def test_request_id_is_echoed(self, test_client, ingestion_service):
        response = test_client.post(
            f"{MEASUREMENTS_URL}/ingest",
            json={"measurements": []},
            headers={**HEADERS, "X-Request-ID": "req-123"},
        )

        assert response.headers["X-Request-ID"] == "req-123"
        assert response.json()["meta"]["request_id"] == "req-123"


class TestExtractEndpoint:

    def test_extract_returns_reviewable_rows(self, test_client, ingestion_service, vision_client):
        vision_client.extract_from_image.return_value = llm_response(
            '[{"metric": "Body Fat", "value": "21,4", "unit": "%", "confidence": 0.8}]'
        )
        with patch(
            "bodymetrics.api.v1.endpoints.measurements.fetch_image",
            new=AsyncMock(return_value=(b"img", "image/jpeg")),
        ):
            response = test_client.post(
                f"{MEASUREMENTS_URL}/extract",
                json={"image_url": "https://cdn.example.com/report.jpg"},
                headers=HEADERS,
            )

        assert response.status_code == 200
        item = response.json()["data"]["processed"][0]
        assert item["metric"] == "body_fat_percent"
        assert item["value"] == 21.4

    def test_nothing_extracted_is_bad_request(self, test_client, ingestion_service, vision_client):
        vision_client.extract_from_image.return_value = llm_response("I see a cat")
        with patch(
            "bodymetrics.api.v1.endpoints.measurements.fetch_image",
            new=AsyncMock(return_value=(b"img", "image/png")),
        ):
            response = test_client.post(
                f"{MEASUREMENTS_URL}/extract",
                json={"image_url": "https://cdn.example.com/cat.png"},
                headers=HEADERS,
            )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "no_measurements_found"

    def test_download_failure_is_bad_gateway(self, test_client, ingestion_service):
        with patch(
            "bodymetrics.api.v1.endpoints.measurements.fetch_image",
            new=AsyncMock(side_effect=ImageDownloadError("Failed to download image: 404")),
        ):
            response = test_client.post(
                f"{MEASUREMENTS_URL}/extract",
                json={"image_url": "https://cdn.example.com/gone.png"},
                headers=HEADERS,
            )

        assert response.status_code == 502


class TestSaveEndpoint:

    def test_save_confirmed_rows(self, test_client, ingestion_service, measurement_repository):
        response = test_client.post(
            f"{MEASUREMENTS_URL}/",
            json={"measurements": [
                {"metric": "weight", "value": 82.5, "unit": "kg", "measured_at": NOW.isoformat()},
            ]},
            headers=HEADERS,
        )

        assert response.status_code == 201
        saved = response.json()["data"]["measurements"]
        assert saved[0]["metric"] == "weight"
        assert len(measurement_repository.rows) == 1

    def test_unknown_metric_is_rejected(self, test_client, ingestion_service, measurement_repository):
        response = test_client.post(
            f"{MEASUREMENTS_URL}/",
            json={"measurements": [{"metric": "mood", "value": 7, "unit": "score"}]},
            headers=HEADERS,
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "validation_error"
        assert measurement_repository.rows == []

    def test_empty_batch_is_rejected(self, test_client, ingestion_service):
        response = test_client.post(f"{MEASUREMENTS_URL}/", json={"measurements": []}, headers=HEADERS)

        assert response.status_code == 422


class TestAnalyzeEndpoint:

    def test_generates_then_serves_cached(self, test_client, analysis_service, analysis_client):
        first = test_client.post(f"{MEASUREMENTS_URL}/analyze", headers=HEADERS)
        second = test_client.post(f"{MEASUREMENTS_URL}/analyze", headers=HEADERS)

        assert first.status_code == 200
        assert first.json()["message"] == "Analysis completed"
        assert first.json()["data"]["document"]["summary"] == "Stable weight."
        assert second.json()["message"] == "Returning cached analysis"
        assert second.json()["data"]["analysis_id"] == first.json()["data"]["analysis_id"]
        assert analysis_client.generate_text.await_count == 1

    def test_rate_limited_includes_reset_time(
        self, test_client, analysis_service, analysis_repository, fake_now
    ):
        for hours in (22, 18, 12, 6, 2):
            analysis_repository.add_completed(fake_now() - timedelta(hours=hours))

        response = test_client.post(f"{MEASUREMENTS_URL}/analyze", headers=HEADERS)

        assert response.status_code == 429
        detail = response.json()["detail"]
        assert detail["code"] == "rate_limited"
        expected = fake_now() - timedelta(hours=22) + timedelta(days=1)
        assert detail["reset_at"] == expected.isoformat()

    def test_admin_role_bypasses_quota(
        self, test_client, analysis_service, analysis_repository, fake_now
    ):
        for hours in (22, 18, 12, 6, 2):
            analysis_repository.add_completed(fake_now() - timedelta(hours=hours))

        response = test_client.post(
            f"{MEASUREMENTS_URL}/analyze",
            headers={**HEADERS, "X-User-Role": "Admin"},
        )

        assert response.status_code == 200

    def test_generation_failure_is_bad_gateway(self, test_client, analysis_service, analysis_client):
        analysis_client.generate_text.return_value = llm_response("no json here")

        response = test_client.post(f"{MEASUREMENTS_URL}/analyze", headers=HEADERS)

        assert response.status_code == 502
        assert response.json()["detail"]["code"] == "schema_validation_failed"

    def test_insufficient_history(
        self, test_client, analysis_service, measurement_repository
    ):
        measurement_repository.rows = measurement_repository.rows[:2]

        response = test_client.post(f"{MEASUREMENTS_URL}/analyze", headers=HEADERS)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "insufficient_data"


class TestServiceEndpoints:

    def test_root(self, test_client):
        response = test_client.get("/")

        assert response.status_code == 200
        assert response.json()["message"] == "Server is running"
        assert response.json()["health"] == "/health"

    def test_health_reports_database_state(self, test_client):
        with patch(
            "bodymetrics.api.v1.endpoints.health.database_is_healthy",
            new=AsyncMock(return_value=True),
        ):
            healthy = test_client.get("/health/")
        with patch(
            "bodymetrics.api.v1.endpoints.health.database_is_healthy",
            new=AsyncMock(return_value=False),
        ):
            degraded = test_client.get("/health/")

        assert healthy.json()["status"] == "healthy"
        assert degraded.json()["status"] == "degraded"

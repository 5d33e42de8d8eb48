"""Unit tests for the health analysis orchestrator."""

import json
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from bodymetrics.core.exceptions import (
    APIClientError,
    GenerationError,
    InsufficientDataError,
    RateLimitedError,
    UpstreamServiceError,
)
from bodymetrics.schemas.analysis import Profile
from bodymetrics.services.analysis.analysis_service import AnalysisService
from bodymetrics.services.analysis.gate import AnalysisGate
from bodymetrics.services.analysis.generator import AnalysisGenerator
from fakes import (
    NOW,
    FakeAnalysisRepository,
    FakeMeasurementRepository,
    FakeProfileRepository,
    llm_response,
)

DOCUMENT = json.dumps({
    "sum": "Body fat trending down.",
    "tr": [{"metric": "body_fat_percent", "dir": "down", "d_abs": -1.5}],
    "risk": [{"area": "metabolic", "lvl": "low", "why": "improving"}],
})


@pytest.fixture
def client():
    client = MagicMock()
    client.generate_text = AsyncMock(return_value=llm_response(DOCUMENT, 2000, 500))
    return client


@pytest.fixture
def analysis_repository(fake_now):
    return FakeAnalysisRepository(fake_now)


@pytest.fixture
def measurement_repository():
    repo = FakeMeasurementRepository()
    for day in range(6):
        repo.add("weight", 84 - day * 0.5, "kg", NOW - timedelta(days=7 * day))
        repo.add("body_fat_percent", 22 - day * 0.3, "%", NOW - timedelta(days=7 * day))
    return repo


@pytest.fixture
def service(client, analysis_repository, measurement_repository, cache, fake_now):
    gate = AnalysisGate(analysis_repository, cache, now=fake_now)
    return AnalysisService(
        gate=gate,
        generator=AnalysisGenerator(client, model="gpt-4o"),
        analysis_repository=analysis_repository,
        measurement_repository=measurement_repository,
        profile_repository=FakeProfileRepository(Profile(age=41, sex="female")),
        ai_provider="openai",
    )


class TestRequestAnalysis:

    @pytest.mark.asyncio
    async def test_generates_and_persists(self, service, client, analysis_repository, user_id):
        response = await service.request_analysis(user_id)

        assert response.status == "completed"
        assert response.document["summary"] == "Body fat trending down."
        assert response.document["trends"][0]["direction"] == "down"
        assert response.document["paradoxes"] == []

        record = analysis_repository.records[0]
        assert record.status == "completed"
        assert record.id == response.analysis_id
        assert record.user_age == 41
        assert record.user_sex == "female"
        assert record.metrics_count == 2
        assert record.date_range_end == NOW
        assert record.date_range_start == NOW - timedelta(days=35)
        assert record.prompt_tokens == 2000
        assert record.completion_tokens == 500
        assert record.total_cost == pytest.approx(0.01)
        assert record.model_version == "gpt-4o-2024-08-06"
        assert record.measurements_snapshot.startswith("User Profile:\nAge: 41\nSex: female")

        user_prompt = client.generate_text.await_args.kwargs["user_prompt"]
        assert user_prompt == record.measurements_snapshot

    @pytest.mark.asyncio
    async def test_repeat_inside_window_calls_generator_once(
        self, service, client, fake_now, user_id
    ):
        first = await service.request_analysis(user_id)
        fake_now.advance(minutes=30)
        second = await service.request_analysis(user_id)

        assert client.generate_text.await_count == 1
        assert second.status == "cached"
        assert second.analysis_id == first.analysis_id
        assert second.document == first.document

    @pytest.mark.asyncio
    async def test_new_analysis_after_window(self, service, client, fake_now, user_id):
        await service.request_analysis(user_id)
        fake_now.advance(hours=1, seconds=1)
        response = await service.request_analysis(user_id)

        assert response.status == "completed"
        assert client.generate_text.await_count == 2

    @pytest.mark.asyncio
    async def test_rate_limited_makes_no_generator_call(
        self, service, client, analysis_repository, fake_now, user_id
    ):
        for hours in (20, 16, 12, 8, 4):
            analysis_repository.add_completed(fake_now() - timedelta(hours=hours))

        with pytest.raises(RateLimitedError) as exc_info:
            await service.request_analysis(user_id)

        assert client.generate_text.await_count == 0
        assert exc_info.value.reset_at == fake_now() - timedelta(hours=20) + timedelta(days=1)

    @pytest.mark.asyncio
    async def test_admin_is_not_rate_limited(
        self, service, client, analysis_repository, fake_now, user_id
    ):
        for hours in (20, 16, 12, 8, 4):
            analysis_repository.add_completed(fake_now() - timedelta(hours=hours))

        response = await service.request_analysis(user_id, is_admin=True)

        assert response.status == "completed"

    @pytest.mark.asyncio
    async def test_insufficient_history(self, service, client, measurement_repository, user_id):
        measurement_repository.rows = measurement_repository.rows[:4]

        with pytest.raises(InsufficientDataError):
            await service.request_analysis(user_id)

        assert client.generate_text.await_count == 0

    @pytest.mark.asyncio
    async def test_generation_failure_is_recorded(
        self, service, client, analysis_repository, user_id
    ):
        client.generate_text.return_value = llm_response("I cannot answer that")

        with pytest.raises(GenerationError):
            await service.request_analysis(user_id)

        record = analysis_repository.records[0]
        assert record.status == "failed"
        assert record.error_message == "schema_validation_failed"
        assert record.full_response is None

    @pytest.mark.asyncio
    async def test_failed_record_does_not_block_retry(
        self, service, client, analysis_repository, user_id
    ):
        client.generate_text.return_value = llm_response("nope")
        with pytest.raises(GenerationError):
            await service.request_analysis(user_id)

        client.generate_text.return_value = llm_response(DOCUMENT)
        response = await service.request_analysis(user_id)

        assert response.status == "completed"

    @pytest.mark.asyncio
    async def test_upstream_failure_is_recorded_and_raised(
        self, service, client, analysis_repository, user_id
    ):
        client.generate_text.side_effect = APIClientError("bad key", status_code=401)

        with pytest.raises(UpstreamServiceError):
            await service.request_analysis(user_id)

        assert analysis_repository.records[0].status == "failed"

    @pytest.mark.asyncio
    async def test_failure_record_errors_do_not_mask_generation_error(
        self, service, client, analysis_repository, user_id
    ):
        client.generate_text.return_value = llm_response("nope")
        analysis_repository.insert_analysis = AsyncMock(
            side_effect=OperationalError("INSERT", {}, Exception("db down"))
        )

        with pytest.raises(GenerationError):
            await service.request_analysis(user_id)

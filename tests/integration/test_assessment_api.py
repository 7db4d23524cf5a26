"""Integration tests for the readiness engine HTTP API.

Drives the assessment lifecycle through FastAPI with the repositories,
guest store and post-completion runner swapped for in-memory fakes via
``app.dependency_overrides``. No database is touched.
"""

import uuid
import weakref
from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import AsyncMock

import pytest
from fastapi import status
from httpx import ASGITransport, AsyncClient

from readiness_engine.adapters.database import get_db_session
from readiness_engine.adapters.guest_store import InMemoryGuestStore
from readiness_engine.adapters.question_catalog import StaticQuestionCatalog
from readiness_engine.api.dependencies import (
    get_attempt_repository,
    get_guest_store,
    get_outbox_repository,
    get_post_completion_pipeline,
    get_post_completion_runner,
    get_question_catalog,
)
from readiness_engine.core.domain import ArtifactStatus, TaskKind
from readiness_engine.core.questions import AI_READINESS_SURVEY
from readiness_engine.core.services.post_completion import PostCompletionPipeline
from readiness_engine.main import app
from tests.fakes import SMALL_QUESTIONS, SMALL_SURVEY, InMemoryAttemptRepository, InMemoryOutboxRepository

_ACCOUNT = {"X-User-Id": "user-1"}
_GUEST = {"X-Guest-Token": "guest-abc"}
_BASE = "/api/v1/assessments"
_UNPROCESSABLE = 422


class _RecordingRunner:
    """Stands in for PostCompletionRunner; records which attempts were scheduled."""

    def __init__(self, events: list[str]) -> None:
        self.scheduled: list[uuid.UUID] = []
        self._events = events

    async def run_for_attempt(self, attempt_id: uuid.UUID) -> None:
        self._events.append("run")
        self.scheduled.append(attempt_id)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def events() -> list[str]:
    return []


@pytest.fixture()
def runner(events: list[str]) -> _RecordingRunner:
    return _RecordingRunner(events)


@pytest.fixture()
def db_session(events: list[str]) -> AsyncMock:
    session = AsyncMock()
    session.commit.side_effect = lambda: events.append("commit")
    return session


@pytest.fixture()
def renderer() -> AsyncMock:
    mock = AsyncMock()
    mock.render.return_value = "/reports/api.pdf"
    return mock


@pytest.fixture()
async def api_client(
    attempt_repo: InMemoryAttemptRepository,
    outbox_repo: InMemoryOutboxRepository,
    guest_store: InMemoryGuestStore,
    runner: _RecordingRunner,
    renderer: AsyncMock,
    db_session: AsyncMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client with every storage dependency overridden."""
    catalog = StaticQuestionCatalog([AI_READINESS_SURVEY, SMALL_SURVEY])
    generator = AsyncMock()
    generator.generate.return_value = "Invest in data quality."
    pipeline = PostCompletionPipeline(
        attempt_repo=attempt_repo,
        outbox_repo=outbox_repo,
        recommendation_generator=generator,
        report_renderer=renderer,
        report_locks=weakref.WeakValueDictionary(),
    )

    async def _session() -> AsyncGenerator[AsyncMock, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = _session
    app.dependency_overrides[get_attempt_repository] = lambda: attempt_repo
    app.dependency_overrides[get_outbox_repository] = lambda: outbox_repo
    app.dependency_overrides[get_guest_store] = lambda: guest_store
    app.dependency_overrides[get_question_catalog] = lambda: catalog
    app.dependency_overrides[get_post_completion_runner] = lambda: runner
    app.dependency_overrides[get_post_completion_pipeline] = lambda: pipeline

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver",
    ) as client:
        yield client

    app.dependency_overrides.clear()


async def _start(client: AsyncClient, headers: dict[str, str], **body: Any) -> dict[str, Any]:
    response = await client.post(_BASE, json={"survey_id": SMALL_SURVEY.survey_id, **body}, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()


async def _answer_all(client: AsyncClient, attempt_id: str, headers: dict[str, str], values: list[int]) -> None:
    for question, value in zip(SMALL_QUESTIONS, values, strict=True):
        response = await client.put(
            f"{_BASE}/{attempt_id}/answers/{question.id}", json={"value": value}, headers=headers
        )
        assert response.status_code == status.HTTP_200_OK, response.text


# ---------------------------------------------------------------------------
# Auth and surveys
# ---------------------------------------------------------------------------


class TestAuthAndSurveys:
    """Owner resolution and the survey catalog."""

    @pytest.mark.asyncio()
    async def test_missing_identity_returns_401(self, api_client: AsyncClient) -> None:
        response = await api_client.post(_BASE, json={})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio()
    async def test_get_survey(self, api_client: AsyncClient) -> None:
        response = await api_client.get(f"/api/v1/surveys/{SMALL_SURVEY.survey_id}")
        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["version"] == "test-1"
        assert [q["id"] for q in body["questions"]] == [101, 102, 103, 104]

    @pytest.mark.asyncio()
    async def test_unknown_survey_returns_404(self, api_client: AsyncClient) -> None:
        response = await api_client.get("/api/v1/surveys/999")
        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio()
    async def test_health(self, api_client: AsyncClient) -> None:
        response = await api_client.get("/health")
        assert response.json()["status"] == "ok"


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    """Start, answer, complete."""

    @pytest.mark.asyncio()
    async def test_start_returns_draft(self, api_client: AsyncClient) -> None:
        body = await _start(api_client, _ACCOUNT, industry="5112")
        assert body["status"] == "draft"
        assert body["owner_kind"] == "account"
        assert body["progress"] == 0
        assert body["total_questions"] == 4
        assert all(a["value"] is None for a in body["answers"])
        assert body["category_scores"] == []

    @pytest.mark.asyncio()
    async def test_start_twice_resumes(self, api_client: AsyncClient) -> None:
        first = await _start(api_client, _ACCOUNT)
        second = await _start(api_client, _ACCOUNT)
        assert first["id"] == second["id"]

    @pytest.mark.asyncio()
    async def test_answer_returns_progress_and_preview(self, api_client: AsyncClient) -> None:
        attempt = await _start(api_client, _ACCOUNT)

        response = await api_client.put(
            f"{_BASE}/{attempt['id']}/answers/101", json={"value": 2}, headers=_ACCOUNT
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["status"] == "in-progress"
        assert body["progress"] == 25
        assert body["preview_overall"] == 100

    @pytest.mark.asyncio()
    async def test_invalid_answer_value_returns_422(self, api_client: AsyncClient) -> None:
        attempt = await _start(api_client, _ACCOUNT)
        response = await api_client.put(
            f"{_BASE}/{attempt['id']}/answers/101", json={"value": 5}, headers=_ACCOUNT
        )
        assert response.status_code == _UNPROCESSABLE

    @pytest.mark.asyncio()
    async def test_boolean_answer_value_returns_422(self, api_client: AsyncClient) -> None:
        attempt = await _start(api_client, _ACCOUNT)

        response = await api_client.put(
            f"{_BASE}/{attempt['id']}/answers/101", json={"value": True}, headers=_ACCOUNT
        )
        stored = await api_client.get(f"{_BASE}/{attempt['id']}", headers=_ACCOUNT)

        assert response.status_code == _UNPROCESSABLE
        assert [a["value"] for a in stored.json()["answers"]] == [None, None, None, None]

    @pytest.mark.asyncio()
    async def test_unknown_question_returns_404(self, api_client: AsyncClient) -> None:
        attempt = await _start(api_client, _ACCOUNT)
        response = await api_client.put(
            f"{_BASE}/{attempt['id']}/answers/9999", json={"value": 1}, headers=_ACCOUNT
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio()
    async def test_other_owner_returns_403(self, api_client: AsyncClient) -> None:
        attempt = await _start(api_client, _ACCOUNT)
        response = await api_client.get(f"{_BASE}/{attempt['id']}", headers={"X-User-Id": "user-2"})
        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio()
    async def test_missing_attempt_returns_404(self, api_client: AsyncClient) -> None:
        response = await api_client.get(f"{_BASE}/{uuid.uuid4()}", headers=_ACCOUNT)
        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio()
    async def test_complete_with_unanswered_returns_422(self, api_client: AsyncClient) -> None:
        attempt = await _start(api_client, _ACCOUNT)
        response = await api_client.post(f"{_BASE}/{attempt['id']}/complete", headers=_ACCOUNT)
        assert response.status_code == _UNPROCESSABLE

    @pytest.mark.asyncio()
    async def test_complete_scores_and_schedules_side_effects(
        self,
        api_client: AsyncClient,
        runner: _RecordingRunner,
        outbox_repo: InMemoryOutboxRepository,
    ) -> None:
        attempt = await _start(api_client, _ACCOUNT)
        await _answer_all(api_client, attempt["id"], _ACCOUNT, [2, 2, -2, -2])

        response = await api_client.post(f"{_BASE}/{attempt['id']}/complete", headers=_ACCOUNT)

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["status"] == "completed"
        assert body["score"] == 50
        assert body["recommendations_status"] == "pending"
        assert {c["category"]: c["normalized_score"] for c in body["category_scores"]} == {
            "Strategy & Vision": 10.0,
            "Data & Information": 0.0,
        }
        assert runner.scheduled == [uuid.UUID(attempt["id"])]
        assert len(outbox_repo.of_kind(TaskKind.GENERATE_RECOMMENDATIONS)) == 1

    @pytest.mark.asyncio()
    async def test_complete_commits_before_scheduling_runner(
        self,
        api_client: AsyncClient,
        events: list[str],
    ) -> None:
        attempt = await _start(api_client, _ACCOUNT)
        await _answer_all(api_client, attempt["id"], _ACCOUNT, [1, 0, 1, 0])

        response = await api_client.post(f"{_BASE}/{attempt['id']}/complete", headers=_ACCOUNT)

        assert response.status_code == status.HTTP_200_OK
        assert events == ["commit", "run"]

    @pytest.mark.asyncio()
    async def test_write_after_completion_returns_409(self, api_client: AsyncClient) -> None:
        attempt = await _start(api_client, _ACCOUNT)
        await _answer_all(api_client, attempt["id"], _ACCOUNT, [0, 0, 0, 0])
        await api_client.post(f"{_BASE}/{attempt['id']}/complete", headers=_ACCOUNT)

        answer = await api_client.put(
            f"{_BASE}/{attempt['id']}/answers/101", json={"value": 1}, headers=_ACCOUNT
        )
        again = await api_client.post(f"{_BASE}/{attempt['id']}/complete", headers=_ACCOUNT)

        assert answer.status_code == status.HTTP_409_CONFLICT
        assert again.status_code == status.HTTP_409_CONFLICT

    @pytest.mark.asyncio()
    async def test_list_and_stats(self, api_client: AsyncClient) -> None:
        attempt = await _start(api_client, _ACCOUNT)
        await _answer_all(api_client, attempt["id"], _ACCOUNT, [1, 1, 1, 1])
        await api_client.post(f"{_BASE}/{attempt['id']}/complete", headers=_ACCOUNT)
        await _start(api_client, _ACCOUNT)

        listing = await api_client.get(_BASE, headers=_ACCOUNT)
        stats = await api_client.get(f"{_BASE}/stats", headers=_ACCOUNT)

        assert listing.json()["total"] == 2
        assert stats.json() == {
            "total": 2,
            "completed": 1,
            "draft": 1,
            "in_progress": 0,
            "average_score": 75.0,
        }


# ---------------------------------------------------------------------------
# Post-completion artifacts and benchmarks
# ---------------------------------------------------------------------------


class TestArtifacts:
    """Recommendations, report and benchmark endpoints."""

    @pytest.mark.asyncio()
    async def test_recommendations_on_open_attempt_returns_409(self, api_client: AsyncClient) -> None:
        attempt = await _start(api_client, _ACCOUNT)
        response = await api_client.post(f"{_BASE}/{attempt['id']}/recommendations", headers=_ACCOUNT)
        assert response.status_code == status.HTTP_409_CONFLICT

    @pytest.mark.asyncio()
    async def test_retry_commits_before_scheduling_runner(
        self,
        api_client: AsyncClient,
        attempt_repo: InMemoryAttemptRepository,
        runner: _RecordingRunner,
        events: list[str],
    ) -> None:
        attempt = await _start(api_client, _ACCOUNT)
        await _answer_all(api_client, attempt["id"], _ACCOUNT, [1, 1, 1, 1])
        await api_client.post(f"{_BASE}/{attempt['id']}/complete", headers=_ACCOUNT)
        await attempt_repo.save_recommendations(
            uuid.UUID(attempt["id"]), None, ArtifactStatus.FAILED.value
        )
        events.clear()

        response = await api_client.post(f"{_BASE}/{attempt['id']}/recommendations", headers=_ACCOUNT)

        assert response.status_code == status.HTTP_202_ACCEPTED
        assert events == ["commit", "run"]
        assert runner.scheduled[-1] == uuid.UUID(attempt["id"])

    @pytest.mark.asyncio()
    async def test_report_before_recommendations_returns_409(self, api_client: AsyncClient) -> None:
        attempt = await _start(api_client, _ACCOUNT)
        await _answer_all(api_client, attempt["id"], _ACCOUNT, [1, 1, 1, 1])
        await api_client.post(f"{_BASE}/{attempt['id']}/complete", headers=_ACCOUNT)

        response = await api_client.get(f"{_BASE}/{attempt['id']}/report", headers=_ACCOUNT)

        assert response.status_code == status.HTTP_409_CONFLICT

    @pytest.mark.asyncio()
    async def test_report_rendered_on_demand(
        self,
        api_client: AsyncClient,
        attempt_repo: InMemoryAttemptRepository,
        renderer: AsyncMock,
    ) -> None:
        attempt = await _start(api_client, _ACCOUNT)
        await _answer_all(api_client, attempt["id"], _ACCOUNT, [1, 1, 1, 1])
        await api_client.post(f"{_BASE}/{attempt['id']}/complete", headers=_ACCOUNT)
        await attempt_repo.save_recommendations(
            uuid.UUID(attempt["id"]), "Invest in data quality.", ArtifactStatus.READY.value
        )

        response = await api_client.get(f"{_BASE}/{attempt['id']}/report", headers=_ACCOUNT)
        recommendations = await api_client.get(
            f"{_BASE}/{attempt['id']}/recommendations", headers=_ACCOUNT
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["report_status"] == "ready"
        assert response.json()["report_ref"] == "/reports/api.pdf"
        assert recommendations.json()["recommendations"] == "Invest in data quality."
        renderer.render.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_benchmark_open_attempt_returns_409(self, api_client: AsyncClient) -> None:
        attempt = await _start(api_client, _ACCOUNT)
        response = await api_client.get(f"{_BASE}/{attempt['id']}/benchmark", headers=_ACCOUNT)
        assert response.status_code == status.HTTP_409_CONFLICT

    @pytest.mark.asyncio()
    async def test_benchmark_falls_back_to_global(self, api_client: AsyncClient) -> None:
        peer = await _start(api_client, {"X-User-Id": "peer"}, industry="5112")
        await _answer_all(api_client, peer["id"], {"X-User-Id": "peer"}, [0, 0, 0, 0])
        await api_client.post(f"{_BASE}/{peer['id']}/complete", headers={"X-User-Id": "peer"})
        attempt = await _start(api_client, _ACCOUNT, industry="5112")
        await _answer_all(api_client, attempt["id"], _ACCOUNT, [2, 2, 2, 2])
        await api_client.post(f"{_BASE}/{attempt['id']}/complete", headers=_ACCOUNT)

        response = await api_client.get(f"{_BASE}/{attempt['id']}/benchmark", headers=_ACCOUNT)

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["scope"] == "global"
        assert body["has_industry_data"] is False
        assert body["global_sample_size"] == 1
        for row in body["categories"]:
            assert row["user_score"] == 10.0
            assert row["global_average"] == 5.0
            assert row["industry_average"] is None


# ---------------------------------------------------------------------------
# Guest flow
# ---------------------------------------------------------------------------


class TestGuestClaim:
    """Guest answers carried over to an account."""

    @pytest.mark.asyncio()
    async def test_guest_answers_claimed_by_account(
        self,
        api_client: AsyncClient,
        guest_store: InMemoryGuestStore,
    ) -> None:
        guest_attempt = await _start(api_client, _GUEST)
        await api_client.put(
            f"{_BASE}/{guest_attempt['id']}/answers/102", json={"value": -1}, headers=_GUEST
        )

        response = await api_client.post(
            f"{_BASE}/claim-guest",
            json={"guest_id": "guest-abc", "survey_id": SMALL_SURVEY.survey_id},
            headers=_ACCOUNT,
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["merged"] is True
        assert body["adopted"] == 1
        assert body["attempt"]["owner_kind"] == "account"
        assert [a["value"] for a in body["attempt"]["answers"]] == [None, -1, None, None]

        again = await api_client.post(
            f"{_BASE}/claim-guest",
            json={"guest_id": "guest-abc", "survey_id": SMALL_SURVEY.survey_id},
            headers=_ACCOUNT,
        )
        assert again.json() == {"merged": False, "adopted": 0, "ignored": 0, "attempt": None}

    @pytest.mark.asyncio()
    async def test_posted_buffer_is_merged(self, api_client: AsyncClient) -> None:
        response = await api_client.post(
            f"{_BASE}/claim-guest",
            json={
                "guest_id": "guest-xyz",
                "survey_id": SMALL_SURVEY.survey_id,
                "answers": [
                    {"question_id": 101, "value": 2},
                    {"question_id": 103, "value": 9},
                ],
            },
            headers=_ACCOUNT,
        )

        body = response.json()
        assert body["adopted"] == 1
        assert body["ignored"] == 1

    @pytest.mark.asyncio()
    async def test_guest_cannot_claim(self, api_client: AsyncClient) -> None:
        response = await api_client.post(
            f"{_BASE}/claim-guest",
            json={"guest_id": "guest-abc", "survey_id": SMALL_SURVEY.survey_id},
            headers=_GUEST,
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio()
    async def test_boolean_buffered_value_returns_422(self, api_client: AsyncClient) -> None:
        response = await api_client.post(
            f"{_BASE}/claim-guest",
            json={
                "guest_id": "guest-xyz",
                "survey_id": SMALL_SURVEY.survey_id,
                "answers": [{"question_id": 101, "value": True}],
            },
            headers=_ACCOUNT,
        )
        listing = await api_client.get(_BASE, headers=_ACCOUNT)

        assert response.status_code == _UNPROCESSABLE
        assert listing.json()["total"] == 0

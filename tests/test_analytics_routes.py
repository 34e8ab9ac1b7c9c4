import asyncio
import logging
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from assessment.app import CONSOLE_HANDLER_NAME, app, configure_logging
from assessment.dependencies import backend as backend_deps
from assessment.dependencies.backend import get_analytics_service
from assessment.errors import NetworkError, ServerError, ValidationError
from assessment.models import (
    AnalyticsFilters,
    AssignmentCompletion,
    Attempt,
    AttemptItem,
    AttemptSummary,
)
from assessment.services.analytics_service import AnalyticsService


def _seed(fake_backend, make_question) -> None:
    fake_backend.completions = [
        AssignmentCompletion(
            assignment_id="A1",
            candidate="ana",
            total=4,
            correct=3,
            completed_at=datetime(2024, 3, 1, 9, tzinfo=timezone.utc),
        ),
        AssignmentCompletion(
            assignment_id="A1",
            candidate="ben",
            total=4,
            correct=2,
            completed_at=datetime(2024, 3, 2, 9, tzinfo=timezone.utc),
        ),
    ]
    fake_backend.attempts = [
        Attempt(
            id=1,
            candidate="ana",
            items=[
                AttemptItem(question_id=1, topic="math", difficulty=2, correct=True, time_spent_ms=9000),
                AttemptItem(question_id=2, topic="art", difficulty=5, correct=False, time_spent_ms=61000),
            ],
        )
    ]
    fake_backend.questions = [make_question(1), make_question(2)]


@pytest.fixture
def client(fake_backend):
    app.dependency_overrides[get_analytics_service] = lambda: AnalyticsService(fake_backend)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_health(client) -> None:
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_overview_aggregates_backend_records(client, fake_backend, make_question) -> None:
    _seed(fake_backend, make_question)

    response = client.get("/api/analytics/overview", params={"topic": "math"})

    assert response.status_code == 200
    data = response.json()
    assert data["kpis"] == {"candidates": 2, "exams": 2, "avgScore": 63, "questions": 2}
    assert [p["label"] for p in data["timeline"]] == ["2024-03-01", "2024-03-02"]
    assert len(data["byDifficulty"]) == 5
    assert data["byDifficulty"][1] == {"label": "Easy", "score": 100}
    assert data["topicStats"][0]["topic"] == "math"
    assert data["timeHistogram"]["counts"] == [1, 0, 0, 0, 0, 0]
    assert data["topPerformers"][0]["candidate"] == "ana"


def test_overview_without_topic_skips_question_count(client, fake_backend, make_question) -> None:
    _seed(fake_backend, make_question)

    data = client.get("/api/analytics/overview").json()

    assert data["kpis"]["questions"] == 0
    assert fake_backend.count("questions") == 0
    assert data["timeHistogram"]["counts"] == [1, 0, 0, 0, 0, 1]


def test_overview_maps_backend_errors(client, fake_backend) -> None:
    fake_backend.completions_error = ServerError("backend down", 503)
    response = client.get("/api/analytics/overview")
    assert response.status_code == 503
    assert response.json()["detail"] == "backend down"

    fake_backend.completions_error = NetworkError("offline")
    assert client.get("/api/analytics/overview").status_code == 502


def test_attempt_report(client, fake_backend) -> None:
    fake_backend.summary = AttemptSummary(total_questions=5, correct_questions=2, sequence=[True, False, True])
    fake_backend.items = [
        AttemptItem(question_id=1, correct=True, time_spent_ms=9000),
        AttemptItem(question_id=2, correct=False, time_spent_ms=61000),
        AttemptItem(question_id=3, correct=True, time_spent_ms=12000),
    ]

    response = client.get("/api/attempts/9/report")

    assert response.status_code == 200
    data = response.json()
    assert data["attemptId"] == 9
    assert data["score"] == 40
    assert [p["score"] for p in data["runningAccuracy"]] == [100, 50, 67, 67, 67]


def test_attempt_report_rejects_bad_id(client) -> None:
    assert client.get("/api/attempts/0/report").status_code == 422


def test_attempt_report_forwards_not_found(client, fake_backend) -> None:
    async def missing(attempt_id: int):
        raise ValidationError("Attempt not found", 404)

    fake_backend.get_attempt_summary = missing
    response = client.get("/api/attempts/9/report")
    assert response.status_code == 404


def test_candidates(client, fake_backend, make_question) -> None:
    _seed(fake_backend, make_question)
    assert client.get("/api/analytics/candidates").json() == {"candidates": ["ana", "ben"]}


def test_missing_token_is_rejected(monkeypatch) -> None:
    monkeypatch.setattr(backend_deps, "API_TOKEN", None)
    response = TestClient(app).get("/api/analytics/overview")
    assert response.status_code == 401


def test_service_passes_overview_through(fake_backend) -> None:
    overview = asyncio.run(AnalyticsService(fake_backend).get_overview(AnalyticsFilters(topic="math")))
    assert overview.exams_taken == 3
    assert fake_backend.calls[0] == ("overview", AnalyticsFilters(topic="math"))


def test_question_count_failure_degrades_to_zero(fake_backend) -> None:
    async def failing(**kwargs):
        raise ServerError("down", 500)

    fake_backend.list_questions = failing
    assert asyncio.run(AnalyticsService(fake_backend).count_questions("math")) == 0


def test_configure_logging_adds_one_console_handler() -> None:
    logger = configure_logging(logging.INFO)
    configure_logging(logging.DEBUG)

    consoles = [h for h in logger.handlers if h.get_name() == CONSOLE_HANDLER_NAME]
    assert len(consoles) == 1
    assert logger.level == logging.DEBUG
    assert logging.getLogger("urllib3").level == logging.WARNING

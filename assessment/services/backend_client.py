"""Typed wrappers around the assessment backend endpoints."""
from __future__ import annotations

import logging

from assessment.config import QUESTION_BANK_FETCH_LIMIT
from assessment.errors import ApiError, ServerError
from assessment.models import (
    AnalyticsFilters,
    AnalyticsOverview,
    AnswerRequest,
    AssignmentCompletion,
    Attempt,
    AttemptItem,
    AttemptSummary,
    AttemptTiming,
    Question,
    QuestionStatus,
    StartAttemptRequest,
    SubmitSummary,
    User,
    UserRole,
)
from assessment.services.question_service import (
    difficulty_to_level,
    extract_rows,
    normalize_status,
    question_from_row,
    question_to_payload,
)
from assessment.services.transport import ApiTransport
from assessment.utils import coerce_numeric_id

log = logging.getLogger(__name__)


def _first(row: dict[str, object], *keys: str) -> object:
    for key in keys:
        value = row.get(key)
        if value is not None:
            return value
    return None


def _start_timing(payload: dict[str, object]) -> AttemptTiming:
    meta = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    timing = AttemptTiming(
        remaining=meta.get("timeRemainingSeconds"),
        deadline_at=meta.get("deadlineAt"),
        total=_first(meta, "totalTimeSeconds", "total_time_seconds"),
    )
    if timing.total is None and timing.remaining is not None:
        timing = timing.model_copy(update={"total": timing.remaining})
    return timing


def _position(row: dict[str, object]) -> float:
    value = row.get("position")
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return float("inf")


def attempt_from_row(row: dict[str, object]) -> Attempt:
    """Map an ``/attempts/mine`` (or ``/sessions/mine``) row to an ``Attempt``."""
    items = row.get("items")
    return Attempt(
        id=coerce_numeric_id(row) or 0,
        candidate=_first(row, "candidate", "userName", "userId", "user_id") or "",
        assignment_id=_first(row, "assignmentId", "testId", "test_id"),
        started_at=_first(row, "startedAt", "started_at"),
        finished_at=_first(row, "completedAt", "finishedAt", "finished_at"),
        total_questions=_first(row, "totalQuestions", "total_questions") or 0,
        items=[
            AttemptItem.model_validate(item)
            for item in (items if isinstance(items, list) else [])
            if isinstance(item, dict)
        ],
    )


class BackendClient:
    """Endpoint wrappers. Raises ``ApiError`` subclasses from the transport."""

    def __init__(self, transport: ApiTransport | None = None):
        self.transport = transport or ApiTransport()
        self._start_timings: dict[int, AttemptTiming] = {}

    # Attempts

    async def start_attempt(self, request: StartAttemptRequest) -> int:
        """POST /start; returns the server-assigned numeric attempt id."""
        payload = await self.transport.post("/start", request.to_payload())
        attempt_id = coerce_numeric_id(payload)
        if attempt_id is None:
            log.warning("Could not coerce a numeric attempt id from %r", payload)
            raise ServerError(
                "Server did not return a valid attempt id", 200, payload
            )
        if isinstance(payload, dict):
            timing = _start_timing(payload)
            if not timing.is_empty:
                self._start_timings[attempt_id] = timing
        return attempt_id

    def start_timing(self, attempt_id: int) -> AttemptTiming | None:
        """Clock metadata returned by ``POST /start`` for this attempt, if any."""
        return self._start_timings.get(attempt_id)

    async def record_answer(self, attempt_id: int, item: AttemptItem) -> object:
        body = AnswerRequest.from_item(attempt_id, item).to_payload()
        return await self.transport.post("/answer", body)

    async def submit_attempt(self, attempt_id: int) -> SubmitSummary:
        payload = await self.transport.post("/submit", {"attemptId": attempt_id})
        if not isinstance(payload, dict):
            payload = {}
        return SubmitSummary.model_validate(payload)

    async def list_my_attempts(self) -> list[Attempt]:
        """GET /attempts/mine, falling back to /sessions/mine.

        Returns an empty list if neither listing is available.
        """
        try:
            rows = extract_rows(await self.transport.get("/attempts/mine"))
        except ApiError as exc:
            log.info("/attempts/mine unavailable (%s), trying /sessions/mine", exc)
            try:
                rows = extract_rows(await self.transport.get("/sessions/mine"))
            except ApiError as fallback_exc:
                log.warning("Attempt listing unavailable: %s", fallback_exc)
                return []
            for row in rows:
                row.pop("items", None)
        return [attempt_from_row(row) for row in rows]

    async def get_attempt_summary(self, attempt_id: int) -> AttemptSummary:
        payload = await self.transport.get(f"/attempts/{attempt_id}/summary")
        return AttemptSummary.model_validate(payload if isinstance(payload, dict) else {})

    async def get_attempt_items(
        self,
        attempt_id: int,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[AttemptItem]:
        payload = await self.transport.get(
            f"/attempts/{attempt_id}/items",
            params={"limit": limit, "offset": offset},
        )
        return [AttemptItem.model_validate(row) for row in extract_rows(payload)]

    # Sessions

    async def get_session_questions(self, attempt_id: int) -> list[Question]:
        """GET /sessions/{id}/questions, ordered by position."""
        payload = await self.transport.get(f"/sessions/{attempt_id}/questions")
        rows = sorted(extract_rows(payload), key=_position)
        return [question_from_row(row, QuestionStatus.PUBLISHED) for row in rows]

    async def get_remaining(self, attempt_id: int) -> AttemptTiming:
        payload = await self.transport.get(f"/sessions/{attempt_id}/remaining")
        return AttemptTiming.model_validate(payload if isinstance(payload, dict) else {})

    async def get_session_topic(self, attempt_id: int) -> str | None:
        payload = await self.transport.get(f"/sessions/{attempt_id}/topic")
        topic = payload.get("topic") if isinstance(payload, dict) else None
        if topic is None:
            return None
        return str(topic).strip() or None

    # Completions

    async def get_my_completion(self, assignment_id: str) -> AssignmentCompletion | None:
        """GET /completions/mine?assignmentId=...; None when not completed."""
        payload = await self.transport.get(
            "/completions/mine", params={"assignmentId": assignment_id}
        )
        if isinstance(payload, list):
            payload = payload[0] if payload else None
        if not isinstance(payload, dict) or not payload:
            return None
        return AssignmentCompletion.model_validate(payload)

    async def list_my_completions(self) -> list[AssignmentCompletion]:
        payload = await self.transport.get("/completions/mine")
        return [AssignmentCompletion.model_validate(row) for row in extract_rows(payload)]

    # Analytics

    async def get_analytics_overview(
        self, filters: AnalyticsFilters | None = None
    ) -> AnalyticsOverview:
        filters = filters or AnalyticsFilters()
        payload = await self.transport.get(
            "/analytics/overview",
            params={
                "candidateId": filters.candidate_id,
                "topic": filters.topic or None,
                "difficulty": filters.difficulty or None,
            },
        )
        return AnalyticsOverview.model_validate(payload if isinstance(payload, dict) else {})

    # Question bank

    async def list_questions(
        self,
        topic: str | None = None,
        difficulty: object = None,
        status: str | None = QuestionStatus.PUBLISHED.value,
        limit: int = QUESTION_BANK_FETCH_LIMIT,
        offset: int | None = None,
    ) -> list[Question]:
        normalized_status = normalize_status(status)
        payload = await self.transport.get(
            "/questions",
            params={
                "topic": (topic or "").strip() or None,
                "difficulty": difficulty_to_level(difficulty),
                "status": normalized_status.value if normalized_status else None,
                "limit": limit,
                "offset": offset,
            },
        )
        default_status = normalized_status or QuestionStatus.DRAFT
        return [question_from_row(row, default_status) for row in extract_rows(payload)]

    async def create_question(self, question: Question) -> Question:
        row = await self.transport.post("/questions", question_to_payload(question))
        if not isinstance(row, dict):
            raise ServerError("Server did not return the created question", 200, row)
        return question_from_row(row, question.status)

    async def delete_question(self, question_id: int | str) -> None:
        await self.transport.delete(f"/questions/{question_id}", params={"hard": "true"})

    async def update_question_status(
        self,
        question_id: int | str,
        status: QuestionStatus,
        comment: str | None = None,
        reviewer: str | None = None,
    ) -> Question | None:
        body = {"status": status.value, "comment": comment, "reviewer": reviewer}
        row = await self.transport.patch(
            f"/questions/{question_id}",
            {key: value for key, value in body.items() if value is not None},
        )
        return question_from_row(row, status) if isinstance(row, dict) else None

    # Users

    async def update_user_role(self, user_id: int | str, role: UserRole) -> User | None:
        row = await self.transport.patch(f"/users/{user_id}", {"role": role.value})
        return User.model_validate(row) if isinstance(row, dict) and row.get("id") is not None else None

    async def delete_user(self, user_id: int | str) -> None:
        await self.transport.delete(f"/users/{user_id}")

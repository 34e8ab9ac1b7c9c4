import asyncio
from collections.abc import Callable

import pytest

from assessment.models import (
    AnalyticsOverview,
    AssignmentCompletion,
    Attempt,
    AttemptItem,
    AttemptSummary,
    AttemptTiming,
    Question,
    QuestionStatus,
    QuestionType,
    SubmitSummary,
    User,
)


class FakeBackend:
    """In-memory stand-in for ``BackendClient`` that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, object]] = []
        self.questions: list[Question] = []
        self.completion: AssignmentCompletion | None = None
        self.completion_error: Exception | None = None
        self.completions: list[AssignmentCompletion] = []
        self.completions_error: Exception | None = None
        self.attempts: list[Attempt] = []
        self.attempt_id = 101
        self.start_error: Exception | None = None
        self.before_start: Callable[[], None] | None = None
        self.answer_errors: list[Exception] = []
        self.submit_error: Exception | None = None
        self.submit_payload: dict[str, object] = {}
        self.summary = AttemptSummary()
        self.items: list[AttemptItem] = []
        self.created_id = 500
        self.remote_error: Exception | None = None
        self.session_questions: list[Question] = []
        self.session_error: Exception | None = None
        self.timing = AttemptTiming()
        self.start_timings: dict[int, AttemptTiming] = {}
        self.remaining_error: Exception | None = None
        self.topic: str | None = None
        self.topic_error: Exception | None = None

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    async def _call(self, name: str, payload: object = None) -> None:
        self.calls.append((name, payload))
        await asyncio.sleep(0)

    async def get_my_completion(self, assignment_id: str) -> AssignmentCompletion | None:
        await self._call("completion", assignment_id)
        if self.completion_error is not None:
            raise self.completion_error
        return self.completion

    async def list_my_completions(self) -> list[AssignmentCompletion]:
        await self._call("completions")
        if self.completions_error is not None:
            raise self.completions_error
        return list(self.completions)

    async def list_my_attempts(self) -> list[Attempt]:
        await self._call("attempts")
        return list(self.attempts)

    async def list_questions(self, topic=None, difficulty=None, status=None, limit=None, offset=None):
        await self._call("questions", {"topic": topic, "status": status})
        return list(self.questions)

    async def start_attempt(self, request) -> int:
        await self._call("start", request)
        if self.before_start is not None:
            self.before_start()
        if self.start_error is not None:
            raise self.start_error
        return self.attempt_id

    def start_timing(self, attempt_id: int) -> AttemptTiming | None:
        return self.start_timings.get(attempt_id)

    async def get_session_questions(self, attempt_id: int) -> list[Question]:
        await self._call("session_questions", attempt_id)
        if self.session_error is not None:
            raise self.session_error
        return list(self.session_questions)

    async def get_remaining(self, attempt_id: int) -> AttemptTiming:
        await self._call("remaining", attempt_id)
        if self.remaining_error is not None:
            raise self.remaining_error
        return self.timing

    async def get_session_topic(self, attempt_id: int) -> str | None:
        await self._call("topic", attempt_id)
        if self.topic_error is not None:
            raise self.topic_error
        return self.topic

    async def record_answer(self, attempt_id: int, item: AttemptItem) -> object:
        await self._call("answer", item)
        if self.answer_errors:
            raise self.answer_errors.pop(0)
        return {"ok": True}

    async def submit_attempt(self, attempt_id: int) -> SubmitSummary:
        await self._call("submit", attempt_id)
        if self.submit_error is not None:
            raise self.submit_error
        return SubmitSummary.model_validate(self.submit_payload)

    async def get_attempt_summary(self, attempt_id: int) -> AttemptSummary:
        await self._call("summary", attempt_id)
        return self.summary

    async def get_attempt_items(self, attempt_id: int, limit=None, offset=None) -> list[AttemptItem]:
        await self._call("items", attempt_id)
        return list(self.items)

    async def get_analytics_overview(self, filters=None) -> AnalyticsOverview:
        await self._call("overview", filters)
        return AnalyticsOverview(candidates=2, exams_taken=3)

    async def create_question(self, question: Question) -> Question:
        await self._call("create_question", question)
        if self.remote_error is not None:
            raise self.remote_error
        return question.model_copy(update={"id": self.created_id})

    async def delete_question(self, question_id) -> None:
        await self._call("delete_question", question_id)
        if self.remote_error is not None:
            raise self.remote_error

    async def update_question_status(self, question_id, status, comment=None, reviewer=None):
        await self._call("update_question_status", (question_id, status))
        if self.remote_error is not None:
            raise self.remote_error
        return None

    async def update_user_role(self, user_id, role) -> User | None:
        await self._call("update_user_role", (user_id, role))
        if self.remote_error is not None:
            raise self.remote_error
        return None

    async def delete_user(self, user_id) -> None:
        await self._call("delete_user", user_id)
        if self.remote_error is not None:
            raise self.remote_error


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_question() -> Callable[..., Question]:
    def factory(
        question_id: int | str,
        correct_index: int = 0,
        difficulty: int = 3,
        topic: str | None = "math",
        status: QuestionStatus = QuestionStatus.PUBLISHED,
        type: QuestionType = QuestionType.MCQ,
    ) -> Question:
        return Question(
            id=question_id,
            text=f"Question {question_id}",
            options=("a", "b", "c", "d"),
            correct_index=correct_index,
            difficulty=difficulty,
            topic=topic,
            type=type,
            status=status,
        )

    return factory

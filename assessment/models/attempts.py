"""Attempt-related Pydantic models."""
import math
from datetime import datetime, timezone

from pydantic import AliasChoices, Field, field_validator, model_validator

from assessment.models.base import ApiModel, FrozenApiModel
from assessment.utils.numbers import percent


class Answer(FrozenApiModel):
    """Normalized candidate answer: a selected option or free text."""

    choice_index: int | None = None
    text: str | None = None

    @property
    def is_blank(self) -> bool:
        return self.choice_index is None and not self.text


class AttemptItem(FrozenApiModel):
    """One recorded answer within an attempt. Never mutated once recorded."""

    question_id: int | str
    topic: str | None = None
    difficulty: int | str | None = None
    type: str | None = None
    correct: bool = False
    time_spent_ms: int = Field(0, ge=0)
    answered_at: datetime | None = None


class Attempt(ApiModel):
    """One candidate's run through a question set."""

    id: int
    candidate: str = ""
    assignment_id: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    total_questions: int = 0
    items: list[AttemptItem] = Field(default_factory=list)

    @field_validator("candidate", "assignment_id", mode="before")
    @classmethod
    def _stringify(cls, value: object) -> object:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def is_finished(self) -> bool:
        return self.finished_at is not None


class AssignmentCompletion(FrozenApiModel):
    """Authoritative "already done" record for an assignment."""

    assignment_id: str
    candidate: str = ""
    completed_at: datetime | None = None
    total: int = 0
    correct: int = Field(
        0,
        validation_alias=AliasChoices(
            "correct", "correct_answer", "correctAnswers", "correct_answers"
        ),
    )
    score: int = 0

    @model_validator(mode="before")
    @classmethod
    def _fill_score(cls, data: object) -> object:
        if not isinstance(data, dict) or data.get("score") is not None:
            return data
        data = dict(data)
        correct = next(
            (
                data[key]
                for key in ("correct", "correct_answer", "correctAnswers", "correct_answers")
                if isinstance(data.get(key), int)
            ),
            0,
        )
        total = data.get("total") if isinstance(data.get("total"), int) else 0
        data["score"] = percent(correct, total)
        return data

    @field_validator("assignment_id", "candidate", mode="before")
    @classmethod
    def _stringify(cls, value: object) -> object:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class Result(FrozenApiModel):
    """Completion projection used by analytics."""

    candidate: str
    date: datetime | None = None
    correct: int = 0
    total: int = 0
    score: int = 0


class SubmitSummary(ApiModel):
    """Server summary returned when an attempt is finalized."""

    attempt_id: int | None = Field(
        None, validation_alias=AliasChoices("attemptId", "sessionId", "attempt_id")
    )
    correct_answers: int | None = Field(
        None, validation_alias=AliasChoices("correctAnswers", "correct", "correct_answers")
    )
    total_questions: int | None = Field(
        None, validation_alias=AliasChoices("totalQuestions", "total", "total_questions")
    )
    score: int | None = None
    finished_at: datetime | None = None


class DifficultyAccuracy(FrozenApiModel):
    """Accuracy for one difficulty label."""

    difficulty: str = Field(validation_alias=AliasChoices("difficulty", "label"))
    accuracy_pct: int = Field(
        0, validation_alias=AliasChoices("accuracy_pct", "accuracyPct", "accuracy", "score")
    )


class AttemptSummary(ApiModel):
    """Per-attempt summary served by ``/attempts/{id}/summary``."""

    total_questions: int = Field(
        0, validation_alias=AliasChoices("total_questions", "totalQuestions")
    )
    correct_questions: int = Field(
        0, validation_alias=AliasChoices("correct_questions", "correctQuestions")
    )
    by_difficulty: list[DifficultyAccuracy] = Field(
        default_factory=list, validation_alias=AliasChoices("byDifficulty", "by_difficulty")
    )
    sequence: list[bool] = Field(default_factory=list)


class StartAttemptRequest(ApiModel):
    """Body for ``POST /start``."""

    test_id: int
    topics: list[str] | None = None
    limit: int | None = Field(None, ge=1)
    duration_seconds: int | None = Field(None, gt=0)


class AnswerRequest(ApiModel):
    """Body for ``POST /answer``."""

    attempt_id: int
    question_id: int | str
    correct: bool
    time_spent_ms: int
    answered_at: datetime
    topic: str | None = None
    difficulty: int | str | None = None
    type: str | None = None

    @classmethod
    def from_item(cls, attempt_id: int, item: AttemptItem) -> "AnswerRequest":
        return cls(
            attempt_id=attempt_id,
            question_id=item.question_id,
            correct=item.correct,
            time_spent_ms=item.time_spent_ms,
            answered_at=item.answered_at,
            topic=item.topic,
            difficulty=item.difficulty,
            type=item.type,
        )


class AttemptTiming(ApiModel):
    """Server clock for a whole attempt (``/sessions/{id}/remaining``)."""

    remaining: int | None = Field(
        None,
        validation_alias=AliasChoices(
            "remaining", "timeRemainingSeconds", "time_remaining_seconds"
        ),
    )
    deadline_at: datetime | None = Field(
        None, validation_alias=AliasChoices("deadlineAt", "deadline_at")
    )
    finished: bool = False
    total: int | None = Field(
        None, validation_alias=AliasChoices("total", "totalTimeSeconds", "total_time_seconds")
    )

    @model_validator(mode="before")
    @classmethod
    def _session_total(cls, data: object) -> object:
        if not isinstance(data, dict):
            return data
        session = data.get("session")
        has_total = any(
            data.get(key) is not None
            for key in ("total", "totalTimeSeconds", "total_time_seconds")
        )
        if not has_total and isinstance(session, dict):
            data = {**data, "total": session.get("total_time_seconds")}
        return data

    @field_validator("remaining", "total", mode="before")
    @classmethod
    def _whole_seconds(cls, value: object) -> object:
        if isinstance(value, bool):
            return None
        if isinstance(value, str):
            try:
                value = float(value)
            except ValueError:
                return None
        if isinstance(value, (int, float)) and math.isfinite(value):
            return math.floor(value)
        return None

    @field_validator("finished", mode="before")
    @classmethod
    def _truthy(cls, value: object) -> bool:
        return bool(value)

    @property
    def is_empty(self) -> bool:
        return self.remaining is None and self.deadline_at is None and self.total is None

    def remaining_seconds(self, now: datetime | None = None) -> int | None:
        """Whole seconds left, from ``remaining`` or else ``deadline_at``."""
        if self.remaining is not None:
            return max(0, self.remaining)
        if self.deadline_at is None:
            return None
        deadline = self.deadline_at
        if deadline.tzinfo is None:
            deadline = deadline.replace(tzinfo=timezone.utc)
        now = now or datetime.now(timezone.utc)
        return max(0, math.floor((deadline - now).total_seconds()))

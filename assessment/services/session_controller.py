"""
Attempt session controller.

Drives one timed attempt: completion check, pool building, start or resume,
per question submit (manual or timer driven), local back navigation, the
overall exam deadline and final submit.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import math
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone

from assessment.config import PER_QUESTION_SECONDS, START_LIMIT_MAX, TIMER_TICK_SECONDS
from assessment.errors import (
    ApiError,
    AnswerSyncError,
    AttemptStartError,
    AttemptValidationError,
    CompletionUnknownError,
    InvalidSessionStateError,
    SessionError,
    ValidationError,
)
from assessment.models import (
    Answer,
    AssignmentCompletion,
    AttemptItem,
    AttemptTiming,
    Question,
    QuestionStatus,
    StartAttemptRequest,
    SubmitSummary,
)
from assessment.services.backend_client import BackendClient
from assessment.services.completion_guard import CompletionGuard
from assessment.services.optimistic_store import AttemptItemStore
from assessment.services.pool_service import build_pool, limit_pool
from assessment.services.question_timer import QuestionTimer
from assessment.services.selector import QuestionSelector, SequentialSelector
from assessment.utils import monotonic_ms, normalize_id, percent, validate_id, validate_positive_int

log = logging.getLogger(__name__)

ALREADY_COMPLETED_PATTERN = re.compile(
    r"already\s+(completed|submitted|taken|finished)", re.IGNORECASE
)
EMPTY_POOL_PATTERN = re.compile(r"no published questions", re.IGNORECASE)

# placeholder topics that mean "any topic"
_IGNORED_TOPICS = {"", "-", "\u2014", "general"}


class SessionState(str, enum.Enum):
    """Attempt lifecycle states."""

    UNINITIALIZED = "uninitialized"
    STARTING = "starting"
    ALREADY_COMPLETED = "already_completed"
    EMPTY = "empty"
    READY = "ready"
    IN_PROGRESS = "in_progress"
    LOCALLY_FINISHED = "locally_finished"
    SUBMITTED = "submitted"
    DISPOSED = "disposed"


TERMINAL_STATES = frozenset(
    {
        SessionState.ALREADY_COMPLETED,
        SessionState.EMPTY,
        SessionState.SUBMITTED,
        SessionState.DISPOSED,
    }
)


@dataclass(frozen=True)
class HistoryEntry:
    question: Question
    answer: Answer
    elapsed_ms: float


def normalize_answer(raw: object) -> Answer:
    """Normalize a raw answer into a choice index or free text.

    Ints and digit strings select an option; other strings are free text;
    mappings may carry ``choiceIndex``/``choice_index`` and ``text``.
    """
    if isinstance(raw, Answer):
        return raw
    if raw is None or isinstance(raw, bool):
        return Answer()
    if isinstance(raw, int):
        return Answer(choice_index=raw)
    if isinstance(raw, str):
        cleaned = raw.strip()
        if not cleaned:
            return Answer()
        if cleaned.isdigit():
            return Answer(choice_index=int(cleaned))
        return Answer(text=cleaned)
    if isinstance(raw, Mapping):
        choice = raw.get("choiceIndex", raw.get("choice_index"))
        if choice is not None:
            return normalize_answer(choice)
        text = raw.get("text")
        return Answer(text=str(text).strip() or None) if text is not None else Answer()
    return Answer()


def sanitize_topics(topics: Iterable[object] | str | None) -> list[str] | None:
    """Drop placeholder topics; None when nothing specific remains."""
    if topics is None:
        return None
    if isinstance(topics, str):
        topics = [topics]
    cleaned = [str(t).strip() for t in topics if t is not None]
    kept = [t for t in cleaned if t.lower() not in _IGNORED_TOPICS]
    return kept or None


def coerce_limit(limit: object) -> int | None:
    """Clamp a requested question count to ``1..START_LIMIT_MAX``."""
    if limit is None:
        return None
    if isinstance(limit, bool):
        raise AttemptValidationError(f"Invalid question limit: {limit!r}")
    try:
        value = int(limit)
    except (TypeError, ValueError, OverflowError) as exc:
        raise AttemptValidationError(f"Invalid question limit: {limit!r}") from exc
    return max(1, min(value, START_LIMIT_MAX))


def coerce_duration(duration_seconds: object) -> int | None:
    """Whole seconds to request; non-positive durations are not sent."""
    if duration_seconds is None:
        return None
    if isinstance(duration_seconds, bool):
        raise AttemptValidationError(f"Invalid duration: {duration_seconds!r}")
    try:
        seconds = math.floor(float(duration_seconds))
    except (TypeError, ValueError, OverflowError) as exc:
        raise AttemptValidationError(f"Invalid duration: {duration_seconds!r}") from exc
    return seconds if seconds > 0 else None


class AttemptSessionController:
    """
    State machine for a single attempt.

    One controller drives one attempt. ``STARTING`` doubles as the
    re-entrancy guard for ``start``/``resume`` and every state change after
    an await is skipped once the controller is disposed. Two timers run
    while in progress: the per-question countdown and the exam deadline.
    """

    def __init__(
        self,
        backend: BackendClient,
        candidate: str | None = None,
        guard: CompletionGuard | None = None,
        selector: QuestionSelector | None = None,
        per_question_seconds: int = PER_QUESTION_SECONDS,
        tick_seconds: float = TIMER_TICK_SECONDS,
        clock: Callable[[], float] = monotonic_ms,
    ):
        self.backend = backend
        self.candidate = candidate
        self.guard = guard or CompletionGuard(backend)
        self.selector = selector or SequentialSelector()
        self.per_question_seconds = per_question_seconds
        self.timer = QuestionTimer(self._auto_submit, per_question_seconds, tick_seconds)
        self.exam_timer = QuestionTimer(self._exam_expired, 0, tick_seconds)
        self.items = AttemptItemStore(backend)
        self._clock = clock
        self._submit_lock = asyncio.Lock()
        self._finish_lock = asyncio.Lock()

        self.state = SessionState.UNINITIALIZED
        self.attempt_id: int | None = None
        self.pool: list[Question] = []
        self.total = 0
        self.total_seconds: int | None = None
        self.index = 0
        self.current: Question | None = None
        self.answer = Answer()
        self.history: list[HistoryEntry] = []
        self._redo: list[Question] = []
        self._presented_at = 0.0
        self._elapsed_offset = 0.0

        self.completion: AssignmentCompletion | None = None
        self.summary: SubmitSummary | None = None
        self.last_error: Exception | None = None

    @property
    def alive(self) -> bool:
        return self.state is not SessionState.DISPOSED

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def can_go_back(self) -> bool:
        # a submit in flight will advance past the question it recorded
        return (
            self.state is SessionState.IN_PROGRESS
            and bool(self.history)
            and not self._submit_lock.locked()
        )

    def elapsed_ms(self) -> float:
        """Time spent on the current question, including restored time."""
        return self._elapsed_offset + max(0.0, self._clock() - self._presented_at)

    def hold_answer(self, raw: object) -> Answer:
        """Keep the candidate's current selection (submitted on timer expiry)."""
        self.answer = normalize_answer(raw)
        return self.answer

    # Start

    def _startable(self) -> bool:
        if self.state is SessionState.DISPOSED:
            raise InvalidSessionStateError("Session has been disposed")
        return self.state not in (SessionState.ALREADY_COMPLETED, SessionState.EMPTY)

    async def start(
        self,
        test_ref: object,
        assignment_ref: object = None,
        limit: int | None = None,
        duration_seconds: int | None = None,
        topic: str | None = None,
        question_ids: Iterable[object] | None = None,
    ) -> int | None:
        """Start the attempt and present the first question.

        Returns the attempt id, or None when the attempt cannot start
        (already completed, no eligible questions, or a start already in
        flight). A second call after success returns the same id.
        """
        if self.state is SessionState.STARTING:
            log.debug("start ignored: already starting")
            return None
        if self.attempt_id is not None:
            return self.attempt_id
        if not self._startable():
            return None

        test_id = validate_positive_int("test id", test_ref)
        assignment = normalize_id(assignment_ref)
        if assignment:
            assignment = validate_id("assignment id", assignment)
        limit = coerce_limit(limit)
        duration_seconds = coerce_duration(duration_seconds)

        self.state = SessionState.STARTING
        try:
            return await self._start(
                test_id, assignment, limit, duration_seconds, topic, question_ids
            )
        finally:
            if self.state is SessionState.STARTING:
                self.state = SessionState.UNINITIALIZED

    async def _start(
        self,
        test_id: int,
        assignment: str,
        limit: int | None,
        duration_seconds: int | None,
        topic: str | None,
        question_ids: Iterable[object] | None,
    ) -> int | None:
        if assignment:
            try:
                completion = await self.guard.get_completion(assignment, self.candidate)
            except CompletionUnknownError:
                log.warning("Refusing to start %s: completion status unknown", assignment)
                raise
            if not self.alive:
                return None
            if completion is not None:
                log.info("Assignment %s already completed by %s", assignment, self.candidate)
                self.completion = completion
                self.state = SessionState.ALREADY_COMPLETED
                return None

        try:
            bank = await self.backend.list_questions(
                topic=topic, status=QuestionStatus.PUBLISHED.value
            )
        except ApiError as exc:
            raise AttemptStartError(f"Could not load questions: {exc.message}") from exc
        if not self.alive:
            return None

        pool = limit_pool(build_pool(bank, question_ids), limit)
        if not pool:
            log.info("No eligible questions for test %s", test_id)
            self.state = SessionState.EMPTY
            return None

        request = StartAttemptRequest(
            test_id=test_id,
            topics=sanitize_topics(topic),
            limit=len(pool),
            duration_seconds=duration_seconds,
        )
        try:
            attempt_id = await self.backend.start_attempt(request)
        except ApiError as exc:
            if not self.alive:
                return None
            return self._start_rejected(exc)
        if not self.alive:
            return None

        log.info("Started attempt %s with %s questions", attempt_id, len(pool))
        self.total_seconds = duration_seconds
        self._begin(attempt_id, pool)

        timing = self.backend.start_timing(attempt_id)
        if timing is None or timing.remaining_seconds() is None:
            fetched = await self._lookup_remaining(attempt_id)
            if not self.alive:
                return attempt_id
            if fetched is not None and not fetched.is_empty:
                timing = fetched
        await self._seed_deadline(timing)
        return attempt_id

    def _start_rejected(self, exc: ApiError) -> None:
        if exc.status == 409 or ALREADY_COMPLETED_PATTERN.search(exc.message):
            log.info("Backend reports attempt already completed: %s", exc.message)
            self.state = SessionState.ALREADY_COMPLETED
            return None
        if EMPTY_POOL_PATTERN.search(exc.message):
            self.state = SessionState.EMPTY
            return None
        if isinstance(exc, ValidationError):
            raise AttemptValidationError(exc.message) from exc
        raise AttemptStartError(exc.message or "Failed to start the attempt") from exc

    async def resume(self, attempt_ref: object) -> int | None:
        """Continue an attempt the backend already started.

        Loads the attempt's own questions in position order, presents the
        first one and seeds the exam deadline from the server clock. Returns
        None when the attempt is finished or has no questions.
        """
        if self.state is SessionState.STARTING:
            log.debug("resume ignored: already starting")
            return None
        if self.attempt_id is not None:
            return self.attempt_id
        if not self._startable():
            return None

        attempt_id = validate_positive_int("attempt id", attempt_ref)

        self.state = SessionState.STARTING
        try:
            return await self._resume(attempt_id)
        finally:
            if self.state is SessionState.STARTING:
                self.state = SessionState.UNINITIALIZED

    async def _resume(self, attempt_id: int) -> int | None:
        try:
            questions = await self.backend.get_session_questions(attempt_id)
        except ApiError as exc:
            if isinstance(exc, ValidationError):
                raise AttemptValidationError(exc.message) from exc
            raise AttemptStartError(
                f"Could not load attempt {attempt_id}: {exc.message}"
            ) from exc
        if not self.alive:
            return None

        timing = await self._lookup_remaining(attempt_id)
        if not self.alive:
            return None
        if timing is not None and timing.finished:
            log.info("Attempt %s is already finished", attempt_id)
            self.state = SessionState.ALREADY_COMPLETED
            return None

        pool = build_pool(questions)
        if not pool:
            log.info("Attempt %s has no questions to resume", attempt_id)
            self.state = SessionState.EMPTY
            return None

        log.info("Resumed attempt %s with %s questions", attempt_id, len(pool))
        self._begin(attempt_id, pool)
        await self._seed_deadline(timing)
        return attempt_id

    def _begin(self, attempt_id: int, pool: list[Question]) -> None:
        self.attempt_id = attempt_id
        self.items.attempt_id = attempt_id
        self.pool = pool
        self.total = len(pool)
        self.index = 0
        self.selector.reset()
        self.state = SessionState.READY

        self._present(self.selector.next(pool))
        self.state = SessionState.IN_PROGRESS
        self.timer.reset(self.per_question_seconds)

    def _present(self, question: Question | None, answer: Answer | None = None) -> None:
        self.current = question
        self.answer = answer or Answer()
        self._presented_at = self._clock()
        self._elapsed_offset = 0.0

    # Exam deadline

    async def _lookup_remaining(self, attempt_id: int) -> AttemptTiming | None:
        try:
            return await self.backend.get_remaining(attempt_id)
        except ApiError as exc:
            log.info("Remaining time unavailable for attempt %s: %s", attempt_id, exc)
            return None

    async def _seed_deadline(self, timing: AttemptTiming | None) -> None:
        """Arm the exam timer from server time, else from the local budget."""
        if timing is not None and timing.total:
            self.total_seconds = timing.total
        seconds = timing.remaining_seconds() if timing is not None else None
        if seconds is None:
            fallback = self.total_seconds or self.per_question_seconds * self.total
            self.exam_timer.reset(fallback)
            return
        self.exam_timer.reset(seconds)
        if seconds == 0:
            await self._exam_expired()

    async def _exam_expired(self) -> None:
        """Deadline reached: record the held answer and finalize."""
        if self.state is not SessionState.IN_PROGRESS:
            return
        self.timer.stop()
        async with self._submit_lock:
            if self.state is SessionState.IN_PROGRESS and self.current is not None:
                question, held, elapsed = self.current, self.answer, self.elapsed_ms()
                try:
                    await self.items.record(self._build_item(question, held, elapsed))
                except ApiError as exc:
                    log.warning("Last answer of attempt %s not saved: %s", self.attempt_id, exc)
                else:
                    self.history.append(HistoryEntry(question, held, elapsed))
                    self.index += 1
                self.current = None
        if not self.alive or self.state is SessionState.SUBMITTED:
            return
        try:
            await self.finish()
        except (SessionError, ApiError) as exc:
            self.last_error = exc
            log.warning("Finalizing attempt %s at the deadline failed: %s", self.attempt_id, exc)

    # Answering

    def _build_item(self, question: Question, held: Answer, elapsed: float) -> AttemptItem:
        correct = held.choice_index is not None and held.choice_index == question.correct_index
        return AttemptItem(
            question_id=question.id,
            topic=question.topic,
            difficulty=question.difficulty,
            type=question.type.value,
            correct=correct,
            time_spent_ms=int(round(elapsed)),
            answered_at=datetime.now(timezone.utc),
        )

    async def submit_current(self, answer: object = None) -> SubmitSummary | None:
        """Record the current question's answer and advance.

        Returns the final summary when this was the last question.
        """
        if self.state is not SessionState.IN_PROGRESS or self.current is None:
            raise InvalidSessionStateError(f"Cannot submit in state {self.state.value}")
        if self._submit_lock.locked():
            raise InvalidSessionStateError("A submit is already in progress")

        async with self._submit_lock:
            question = self.current
            held = normalize_answer(answer) if answer is not None else self.answer
            elapsed = self.elapsed_ms()
            item = self._build_item(question, held, elapsed)

            self.timer.stop()
            try:
                await self.items.record(item)
            except ApiError as exc:
                if self.alive:
                    self.timer.reset(self.timer.remaining)
                raise AnswerSyncError(f"Could not save answer: {exc.message}") from exc
            if not self.alive:
                return None

            self.history.append(HistoryEntry(question, held, elapsed))
            self.selector.record(question, item.correct)
            self.index += 1

            next_question = None
            if self.index < self.total:
                next_question = self._redo.pop() if self._redo else self.selector.next(self.pool)
            if next_question is None:
                self.current = None
                self.state = SessionState.LOCALLY_FINISHED
            else:
                self._present(next_question)
                self.timer.reset(self.per_question_seconds)

        if self.state is SessionState.LOCALLY_FINISHED:
            return await self.finish()
        return None

    def back(self) -> bool:
        """Restore the previous question as current (local undo only).

        The earlier answer stays recorded on the backend; submitting again
        appends a second item for the same question.
        """
        if not self.can_go_back:
            return False
        entry = self.history.pop()
        if self.current is not None:
            self._redo.append(self.current)
        self._present(entry.question, entry.answer)
        self._elapsed_offset = entry.elapsed_ms
        self.index -= 1
        self.timer.reset(self.per_question_seconds)
        return True

    async def _auto_submit(self) -> None:
        if self.state is not SessionState.IN_PROGRESS:
            return
        try:
            await self.submit_current()
        except (SessionError, ApiError) as exc:
            self.last_error = exc
            log.warning("Auto-submit failed, attempt left resumable: %s", exc)

    async def session_topic(self) -> str | None:
        """Topic label of the attempt, or None when there is none to show."""
        if self.attempt_id is None:
            return None
        try:
            topic = await self.backend.get_session_topic(self.attempt_id)
        except ApiError as exc:
            log.info("Topic lookup failed for attempt %s: %s", self.attempt_id, exc)
            return None
        topics = sanitize_topics(topic)
        return topics[0] if topics else None

    # Finalizing

    async def finish(self) -> SubmitSummary:
        """Finalize the attempt server-side.

        Safe to retry after a failure; once submitted the stored summary is
        returned without another request.
        """
        async with self._finish_lock:
            if self.state is SessionState.SUBMITTED and self.summary is not None:
                return self.summary
            if (
                self.state not in (SessionState.IN_PROGRESS, SessionState.LOCALLY_FINISHED)
                or self.attempt_id is None
            ):
                raise InvalidSessionStateError(f"Cannot finish in state {self.state.value}")

            self.timer.stop()
            self.exam_timer.stop()
            self.state = SessionState.LOCALLY_FINISHED
            try:
                summary = await self.backend.submit_attempt(self.attempt_id)
            except ApiError as exc:
                log.warning("Submitting attempt %s failed: %s", self.attempt_id, exc)
                self.last_error = exc
                raise
            if not self.alive:
                return summary

            self.summary = self._fill_summary(summary)
            self.state = SessionState.SUBMITTED
            self.last_error = None
            log.info(
                "Attempt %s submitted: %s/%s",
                self.attempt_id,
                self.summary.correct_answers,
                self.summary.total_questions,
            )
            return self.summary

    def _fill_summary(self, summary: SubmitSummary) -> SubmitSummary:
        total = summary.total_questions or self.total
        correct = summary.correct_answers
        if correct is None:
            correct = min(self.items.correct_count, total)
        return summary.model_copy(
            update={
                "attempt_id": summary.attempt_id or self.attempt_id,
                "correct_answers": correct,
                "total_questions": total,
                "score": summary.score if summary.score is not None else percent(correct, total),
                "finished_at": summary.finished_at or datetime.now(timezone.utc),
            }
        )

    def dispose(self) -> None:
        """Tear down: stop the timers and ignore results of in-flight calls."""
        self.timer.stop()
        self.exam_timer.stop()
        self.state = SessionState.DISPOSED

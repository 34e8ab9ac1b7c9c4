"""Question selection strategies for attempt delivery."""
from __future__ import annotations

import logging

from assessment.models import Question
from assessment.services.question_service import DEFAULT_DIFFICULTY

log = logging.getLogger(__name__)


class QuestionSelector:
    """Hands out pool questions one at a time, each exactly once."""

    def __init__(self) -> None:
        self._size: int | None = None
        self._served = 0

    @property
    def started(self) -> bool:
        """False until the first ``next`` call for the current pool."""
        return self._size is not None

    @property
    def exhausted(self) -> bool:
        return self._size is not None and self._served >= self._size

    def reset(self, size: int | None = None) -> None:
        self._size = size
        self._served = 0

    def record(self, question: Question, correct: bool) -> None:
        """Feedback hook called after each answered question."""

    def next(self, pool: list[Question]) -> Question | None:
        if self._size != len(pool):
            self.reset(len(pool))
        if self._served >= len(pool):
            return None
        question = self._pick(pool)
        self._served += 1
        return question

    def _pick(self, pool: list[Question]) -> Question:
        raise NotImplementedError


class SequentialSelector(QuestionSelector):
    """Deterministic walk over the pool in bank order."""

    def reset(self, size: int | None = None) -> None:
        super().reset(size)
        self._order = list(range(size or 0))

    def _pick(self, pool: list[Question]) -> Question:
        return pool[self._order[self._served]]


class DifficultyAdaptiveSelector(QuestionSelector):
    """
    Steps difficulty up after a correct answer and down after a wrong one.

    Picks the unserved question whose difficulty is closest to the target
    level; ties go to bank order.
    """

    def __init__(self, start_difficulty: int = DEFAULT_DIFFICULTY) -> None:
        self.start_difficulty = start_difficulty
        super().__init__()

    def reset(self, size: int | None = None) -> None:
        super().reset(size)
        self._served_indexes: set[int] = set()
        self._target = self.start_difficulty

    def record(self, question: Question, correct: bool) -> None:
        step = 1 if correct else -1
        self._target = max(1, min(5, question.difficulty + step))
        log.debug("Next target difficulty %s", self._target)

    def _pick(self, pool: list[Question]) -> Question:
        index = min(
            (i for i in range(len(pool)) if i not in self._served_indexes),
            key=lambda i: abs(pool[i].difficulty - self._target),
        )
        self._served_indexes.add(index)
        return pool[index]

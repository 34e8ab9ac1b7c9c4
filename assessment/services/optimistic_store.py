"""Owned optimistic caches: apply locally, sync, roll back on failure."""
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Generic, TypeVar

from assessment.errors import ValidationError
from assessment.models import AttemptItem, Question, QuestionStatus, User, UserRole
from assessment.services.backend_client import BackendClient
from assessment.services.question_service import normalize_status
from assessment.utils import normalize_id

log = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class OptimisticStore(Generic[T]):
    """
    Immutable-snapshot cache with optimistic mutations.

    Every mutation swaps in a new tuple; a failed remote call restores the
    exact snapshot object taken before the mutation and re-raises.
    """

    def __init__(self, items: Iterable[T] = ()):
        self._items: tuple[T, ...] = tuple(items)

    @property
    def items(self) -> tuple[T, ...]:
        return self._items

    def __len__(self) -> int:
        return len(self._items)

    def replace(self, items: Iterable[T]) -> tuple[T, ...]:
        self._items = tuple(items)
        return self._items

    async def mutate(
        self,
        optimistic_next: Callable[[tuple[T, ...]], Iterable[T]],
        remote_call: Callable[[], Awaitable[R]],
        reconcile: Callable[[tuple[T, ...], R], Iterable[T]] | None = None,
    ) -> tuple[T, ...]:
        """Apply ``optimistic_next`` now, then confirm with ``remote_call``.

        Returns the resulting snapshot. On failure the pre-mutation snapshot
        is restored and the error propagates.
        """
        snapshot = self._items
        self._items = tuple(optimistic_next(snapshot))
        try:
            result = await remote_call()
        except Exception as exc:
            self._items = snapshot
            log.warning("Optimistic mutation rolled back: %s", exc)
            raise
        if reconcile is not None:
            self._items = tuple(reconcile(self._items, result))
        return self._items


def _without(items: tuple, item_id: object) -> list:
    key = normalize_id(item_id)
    return [item for item in items if normalize_id(item.id) != key]


class QuestionBankStore(OptimisticStore[Question]):
    """Question bank cache owned by one editor/delivery component."""

    def __init__(self, backend: BackendClient, questions: Iterable[Question] = ()):
        super().__init__(questions)
        self.backend = backend
        self._next_temp_id = -1

    def get(self, question_id: object) -> Question | None:
        key = normalize_id(question_id)
        return next((q for q in self.items if normalize_id(q.id) == key), None)

    async def load(
        self, topic: str | None = None, status: str | None = QuestionStatus.PUBLISHED.value
    ) -> tuple[Question, ...]:
        return self.replace(await self.backend.list_questions(topic=topic, status=status))

    async def create(self, question: Question) -> Question:
        """Insert under a negative temporary id, then swap in the server row."""
        temp_id = self._next_temp_id
        self._next_temp_id -= 1
        placeholder = question.model_copy(update={"id": temp_id})
        created: list[Question] = []

        def swap(items: tuple[Question, ...], row: Question) -> list[Question]:
            created.append(row)
            return [row if q.id == temp_id else q for q in items]

        await self.mutate(
            lambda items: [*items, placeholder],
            lambda: self.backend.create_question(question),
            swap,
        )
        return created[0]

    async def delete(self, question_id: object) -> tuple[Question, ...]:
        return await self.mutate(
            lambda items: _without(items, question_id),
            lambda: self.backend.delete_question(question_id),
        )

    async def set_status(
        self,
        question_id: object,
        status: object,
        comment: str | None = None,
        reviewer: str | None = None,
    ) -> tuple[Question, ...]:
        """Change review status; accepts ``approved``/``rejected`` spellings."""
        new_status = normalize_status(status)
        if new_status is None:
            raise ValidationError(f"Unknown question status: {status}", 400, None)
        key = normalize_id(question_id)

        def apply(items: tuple[Question, ...]) -> list[Question]:
            return [
                q.model_copy(update={"status": new_status}) if normalize_id(q.id) == key else q
                for q in items
            ]

        def confirm(items: tuple[Question, ...], row: Question | None) -> list[Question]:
            if row is None:
                return list(items)
            return [row if normalize_id(q.id) == key else q for q in items]

        return await self.mutate(
            apply,
            lambda: self.backend.update_question_status(
                question_id, new_status, comment=comment, reviewer=reviewer
            ),
            confirm,
        )


class UserDirectoryStore(OptimisticStore[User]):
    """Admin user list cache."""

    def __init__(self, backend: BackendClient, users: Iterable[User] = ()):
        super().__init__(users)
        self.backend = backend

    async def change_role(self, user_id: object, role: UserRole) -> tuple[User, ...]:
        key = normalize_id(user_id)

        def apply(items: tuple[User, ...]) -> list[User]:
            return [
                u.model_copy(update={"role": role}) if normalize_id(u.id) == key else u
                for u in items
            ]

        def confirm(items: tuple[User, ...], row: User | None) -> list[User]:
            if row is None:
                return list(items)
            return [row if normalize_id(u.id) == key else u for u in items]

        return await self.mutate(
            apply, lambda: self.backend.update_user_role(user_id, role), confirm
        )

    async def delete(self, user_id: object) -> tuple[User, ...]:
        return await self.mutate(
            lambda items: _without(items, user_id),
            lambda: self.backend.delete_user(user_id),
        )


class AttemptItemStore(OptimisticStore[AttemptItem]):
    """Append-only answer log of one attempt, owned by its controller."""

    def __init__(self, backend: BackendClient, attempt_id: int | None = None):
        super().__init__()
        self.backend = backend
        self.attempt_id = attempt_id

    @property
    def correct_count(self) -> int:
        """Correct answers, counting only the latest item per question."""
        latest = {normalize_id(item.question_id): item.correct for item in self.items}
        return sum(1 for correct in latest.values() if correct)

    async def record(self, item: AttemptItem) -> tuple[AttemptItem, ...]:
        if self.attempt_id is None:
            raise ValidationError("Attempt has not been started", 400, None)
        attempt_id = self.attempt_id
        return await self.mutate(
            lambda items: [*items, item],
            lambda: self.backend.record_answer(attempt_id, item),
        )

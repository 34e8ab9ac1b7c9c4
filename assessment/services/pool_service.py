"""Question pool building for attempts."""
from collections.abc import Iterable

from assessment.models import Question, QuestionStatus, QuestionType
from assessment.utils import normalize_id


def build_pool(
    bank: Iterable[Question],
    assignment_question_ids: Iterable[object] | None = None,
    type_filter: QuestionType | None = QuestionType.MCQ,
) -> list[Question]:
    """Build the eligible, ordered question pool for an attempt.

    Keeps published questions only, intersects with the assignment's id list
    when one is given (ids compared as strings), then restricts to the
    delivery type. Bank order is preserved.
    """
    pool = [q for q in bank if q.status is QuestionStatus.PUBLISHED]

    # an empty id list means the assignment draws from the whole bank
    wanted = {normalize_id(qid) for qid in assignment_question_ids or ()}
    wanted.discard("")
    if wanted:
        pool = [q for q in pool if normalize_id(q.id) in wanted]

    if type_filter is not None:
        pool = [q for q in pool if q.type is type_filter]

    return pool


def limit_pool(pool: list[Question], limit: int | None) -> list[Question]:
    """Return the first ``min(limit, len(pool))`` questions."""
    if limit is None or limit <= 0:
        return list(pool)
    return pool[:limit]

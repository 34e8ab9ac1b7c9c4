"""One-attempt completion guard."""
from __future__ import annotations

import enum
import logging

from assessment.errors import ApiError, CompletionUnknownError
from assessment.models import AssignmentCompletion
from assessment.services.backend_client import BackendClient
from assessment.utils import normalize_id

log = logging.getLogger(__name__)


class GuardStatus(str, enum.Enum):
    """Outcome of a completion check."""

    CLEAR = "clear"
    COMPLETED = "completed"
    UNKNOWN = "unknown"


def _matches(
    completion: AssignmentCompletion, assignment_ref: str, candidate: str | None
) -> bool:
    if normalize_id(completion.assignment_id) != assignment_ref:
        return False
    if candidate and completion.candidate:
        return normalize_id(completion.candidate) == normalize_id(candidate)
    return True


class CompletionGuard:
    """
    Checks whether a candidate already finished an assignment.

    Read-only. The direct lookup falls back to scanning the full completion
    list; when both fail the answer is unknown, never "not completed".
    """

    def __init__(self, backend: BackendClient):
        self.backend = backend

    async def get_completion(
        self, assignment_ref: object, candidate: str | None = None
    ) -> AssignmentCompletion | None:
        """Return the completion record, or None if not completed.

        Raises CompletionUnknownError when neither lookup succeeds.
        """
        ref = normalize_id(assignment_ref)
        if not ref:
            return None

        try:
            completion = await self.backend.get_my_completion(ref)
        except ApiError as exc:
            log.info("Completion lookup for %s failed (%s), scanning list", ref, exc)
        else:
            if completion is None or _matches(completion, ref, candidate):
                return completion

        try:
            completions = await self.backend.list_my_completions()
        except ApiError as exc:
            log.warning("Completion status for %s is unknown: %s", ref, exc)
            raise CompletionUnknownError(
                f"Could not determine completion status for {ref}"
            ) from exc

        return next((c for c in completions if _matches(c, ref, candidate)), None)

    async def is_completed(
        self, assignment_ref: object, candidate: str | None = None
    ) -> bool | None:
        """True/False, or None when the status could not be determined."""
        try:
            completion = await self.get_completion(assignment_ref, candidate)
        except CompletionUnknownError:
            return None
        return completion is not None

    async def check(
        self, assignment_ref: object, candidate: str | None = None
    ) -> GuardStatus:
        completed = await self.is_completed(assignment_ref, candidate)
        if completed is None:
            return GuardStatus.UNKNOWN
        return GuardStatus.COMPLETED if completed else GuardStatus.CLEAR

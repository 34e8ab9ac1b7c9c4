import asyncio

import pytest

from assessment.errors import CompletionUnknownError, NetworkError, ServerError
from assessment.models import AssignmentCompletion
from assessment.services.completion_guard import CompletionGuard, GuardStatus


def _completion(assignment_id: str, candidate: str = "chris", score: int = 80) -> AssignmentCompletion:
    return AssignmentCompletion(
        assignment_id=assignment_id, candidate=candidate, total=5, correct=4, score=score
    )


def test_direct_lookup_returns_completion(fake_backend) -> None:
    fake_backend.completion = _completion("A1")
    guard = CompletionGuard(fake_backend)

    completion = asyncio.run(guard.get_completion("A1", "chris"))

    assert completion is not None
    assert completion.score == 80
    assert asyncio.run(guard.check("A1", "chris")) is GuardStatus.COMPLETED


def test_empty_reference_is_no_constraint(fake_backend) -> None:
    guard = CompletionGuard(fake_backend)

    assert asyncio.run(guard.get_completion("", "chris")) is None
    assert asyncio.run(guard.is_completed(None, "chris")) is False
    assert fake_backend.calls == []


def test_failed_lookup_falls_back_to_scanning_list(fake_backend) -> None:
    fake_backend.completion_error = ServerError("down", 500)
    fake_backend.completions = [_completion("B2"), _completion(7, candidate="chris")]
    guard = CompletionGuard(fake_backend)

    completion = asyncio.run(guard.get_completion("7", "chris"))

    assert completion is not None
    assert completion.assignment_id == "7"
    assert fake_backend.count("completions") == 1


def test_fallback_respects_candidate(fake_backend) -> None:
    fake_backend.completion_error = ServerError("down", 500)
    fake_backend.completions = [_completion("A1", candidate="alex")]
    guard = CompletionGuard(fake_backend)

    assert asyncio.run(guard.check("A1", "chris")) is GuardStatus.CLEAR


def test_unresolved_check_is_unknown_not_clear(fake_backend) -> None:
    fake_backend.completion_error = NetworkError("offline")
    fake_backend.completions_error = NetworkError("offline")
    guard = CompletionGuard(fake_backend)

    with pytest.raises(CompletionUnknownError):
        asyncio.run(guard.get_completion("A1", "chris"))
    assert asyncio.run(guard.is_completed("A1", "chris")) is None
    assert asyncio.run(guard.check("A1", "chris")) is GuardStatus.UNKNOWN

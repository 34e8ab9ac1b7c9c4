"""Fetch analytics records from the backend and aggregate them."""
from __future__ import annotations

import asyncio
import logging

from assessment.errors import ApiError
from assessment.models import (
    AnalyticsDetails,
    AnalyticsFilters,
    AnalyticsOverview,
    AttemptReport,
    Result,
)
from assessment.services.backend_client import BackendClient
from assessment.services.stats_service import (
    build_attempt_report,
    build_details,
    completion_to_result,
)

log = logging.getLogger(__name__)


class AnalyticsService:
    """Analytics queries. Every call recomputes from freshly fetched records."""

    def __init__(self, backend: BackendClient):
        self.backend = backend

    async def list_results(self) -> list[Result]:
        completions = await self.backend.list_my_completions()
        return [completion_to_result(c) for c in completions]

    async def count_questions(self, topic: str | None) -> int:
        """Published questions for a topic; 0 without a topic or on failure."""
        if not (topic or "").strip():
            return 0
        try:
            questions = await self.backend.list_questions(topic=topic)
        except ApiError as exc:
            log.warning("Question count for topic %r unavailable: %s", topic, exc)
            return 0
        return len(questions)

    async def get_details(self, filters: AnalyticsFilters | None = None) -> AnalyticsDetails:
        filters = filters or AnalyticsFilters()
        results, attempts, question_count = await asyncio.gather(
            self.list_results(),
            self.backend.list_my_attempts(),
            self.count_questions(filters.topic),
        )
        log.debug(
            "Aggregating %s results and %s attempts", len(results), len(attempts)
        )
        return build_details(results, attempts, question_count, filters)

    async def get_overview(self, filters: AnalyticsFilters | None = None) -> AnalyticsOverview:
        """Server-side overview, passed through unchanged."""
        return await self.backend.get_analytics_overview(filters)

    async def get_attempt_report(self, attempt_id: int) -> AttemptReport:
        summary, items = await asyncio.gather(
            self.backend.get_attempt_summary(attempt_id),
            self.backend.get_attempt_items(attempt_id),
        )
        return build_attempt_report(attempt_id, summary, items)

    async def list_candidates(self) -> list[str]:
        """Distinct candidate names across completions and attempts, sorted."""
        results, attempts = await asyncio.gather(
            self.list_results(), self.backend.list_my_attempts()
        )
        names = {r.candidate for r in results} | {a.candidate for a in attempts}
        return sorted(name for name in names if name)

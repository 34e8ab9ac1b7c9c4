"""Analytics models: filters, series and dashboard payloads."""
from datetime import datetime

from pydantic import Field

from assessment.models.attempts import AttemptSummary
from assessment.models.base import ApiModel, FrozenApiModel


class AnalyticsFilters(FrozenApiModel):
    """Optional filters applied to analytics queries."""

    candidate: str | None = None
    candidate_id: int | None = None
    topic: str | None = None
    difficulty: str | None = None


class KpiTotals(FrozenApiModel):
    """Headline dashboard metrics."""

    candidates: int = 0
    exams: int = 0
    avg_score: int = 0
    questions: int = 0


class SeriesPoint(FrozenApiModel):
    """Labelled score point (timeline, difficulty accuracy)."""

    label: str
    score: int


class LabelCount(FrozenApiModel):
    label: str
    count: int


class TopicStat(FrozenApiModel):
    """Per-topic accuracy and mean time spent."""

    topic: str
    accuracy: int
    avg_time_sec: int
    total: int = 0


class TimeHistogram(FrozenApiModel):
    labels: list[str]
    counts: list[int]


class TopPerformer(FrozenApiModel):
    candidate: str
    score: int
    attempts: int
    last_active: datetime | None = None


class RecentActivity(FrozenApiModel):
    candidate: str
    date: datetime | None = None
    score: int
    correct: int
    total: int


class CandidateProgression(FrozenApiModel):
    labels: list[str] = Field(default_factory=list)
    scores: list[int] = Field(default_factory=list)


class AnalyticsDetails(ApiModel):
    """Full dashboard payload aggregated from raw records."""

    kpis: KpiTotals
    timeline: list[SeriesPoint]
    by_difficulty: list[SeriesPoint]
    by_difficulty_counts: list[LabelCount]
    topic_stats: list[TopicStat]
    time_histogram: TimeHistogram
    top_performers: list[TopPerformer]
    recent_activity: list[RecentActivity]
    candidate_progression: CandidateProgression


class AnalyticsOverview(ApiModel):
    """Server-side overview served by ``/analytics/overview``."""

    candidates: int = 0
    exams_taken: int = 0
    avg_score: float = 0
    questions: int = 0
    performance_over_time: list[dict[str, object]] = Field(default_factory=list)
    scores_by_difficulty: list[dict[str, object]] = Field(default_factory=list)
    topic_insights: list[dict[str, object]] = Field(default_factory=list)
    time_spent_seconds: list[int] = Field(default_factory=list)


class AttemptReport(ApiModel):
    """Per-attempt result view: summary plus derived series."""

    attempt_id: int
    summary: AttemptSummary
    score: int
    running_accuracy: list[SeriesPoint]
    by_difficulty: list[SeriesPoint]
    topic_stats: list[TopicStat]
    time_histogram: TimeHistogram

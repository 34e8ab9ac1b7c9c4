"""Pure aggregation of attempt and completion records into dashboard stats."""
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone

from assessment.config import RECENT_ACTIVITY_LIMIT, TOP_PERFORMERS_LIMIT
from assessment.models import (
    AnalyticsDetails,
    AnalyticsFilters,
    AssignmentCompletion,
    Attempt,
    AttemptItem,
    AttemptReport,
    AttemptSummary,
    CandidateProgression,
    KpiTotals,
    LabelCount,
    RecentActivity,
    Result,
    SeriesPoint,
    TimeHistogram,
    TopicStat,
    TopPerformer,
)
from assessment.services.question_service import DIFFICULTY_LABELS, difficulty_label
from assessment.utils import percent, round_half_up, utc_day

UNCATEGORIZED_TOPIC = "Uncategorized"

# upper bounds in seconds (inclusive); anything above the last is 60s+
HISTOGRAM_BOUNDS = (10, 20, 30, 45, 60)
HISTOGRAM_LABELS = ("0-10s", "10-20s", "20-30s", "30-45s", "45-60s", "60s+")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _as_utc(value: datetime | None) -> datetime:
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def completion_to_result(completion: AssignmentCompletion) -> Result:
    """Project a completion record onto the analytics result shape."""
    return Result(
        candidate=completion.candidate,
        date=completion.completed_at,
        correct=completion.correct,
        total=completion.total,
        score=completion.score,
    )


def normalize_topic(value: object) -> str:
    topic = str(value).strip() if value is not None else ""
    return topic or UNCATEGORIZED_TOPIC


def filter_results(results: Iterable[Result], filters: AnalyticsFilters) -> list[Result]:
    if not filters.candidate:
        return list(results)
    return [r for r in results if r.candidate == filters.candidate]


def filter_items(attempts: Iterable[Attempt], filters: AnalyticsFilters) -> list[AttemptItem]:
    """Flatten attempt items, applying candidate, topic and difficulty filters."""
    selected = [a for a in attempts if not filters.candidate or a.candidate == filters.candidate]
    items = [item for attempt in selected for item in attempt.items]
    if filters.topic:
        items = [i for i in items if normalize_topic(i.topic) == normalize_topic(filters.topic)]
    if filters.difficulty:
        wanted = difficulty_label(filters.difficulty)
        items = [i for i in items if difficulty_label(i.difficulty) == wanted]
    return items


def compute_kpis(results: Sequence[Result], question_count: int = 0) -> KpiTotals:
    exams = len(results)
    avg_score = round_half_up(sum(r.score for r in results) / exams) if exams else 0
    return KpiTotals(
        candidates=len({r.candidate for r in results}),
        exams=exams,
        avg_score=avg_score,
        questions=question_count,
    )


def compute_timeline(results: Iterable[Result]) -> list[SeriesPoint]:
    """Mean score per UTC day, ascending; days without results are absent."""
    by_day: dict[str, list[int]] = {}
    for result in results:
        day = utc_day(result.date)
        if day is None:
            continue
        by_day.setdefault(day, []).append(result.score)
    return [
        SeriesPoint(label=day, score=round_half_up(sum(scores) / len(scores)))
        for day, scores in sorted(by_day.items())
    ]


def _difficulty_buckets(items: Iterable[AttemptItem]) -> dict[str, list[AttemptItem]]:
    buckets: dict[str, list[AttemptItem]] = {label: [] for label in DIFFICULTY_LABELS}
    for item in items:
        buckets[difficulty_label(item.difficulty)].append(item)
    return buckets


def compute_by_difficulty(items: Iterable[AttemptItem]) -> list[SeriesPoint]:
    """Accuracy per difficulty label; every label present, empty ones at 0."""
    return [
        SeriesPoint(label=label, score=percent(sum(1 for i in bucket if i.correct), len(bucket)))
        for label, bucket in _difficulty_buckets(items).items()
    ]


def compute_difficulty_counts(items: Iterable[AttemptItem]) -> list[LabelCount]:
    return [
        LabelCount(label=label, count=len(bucket))
        for label, bucket in _difficulty_buckets(items).items()
    ]


def compute_topic_stats(items: Iterable[AttemptItem]) -> list[TopicStat]:
    """Accuracy and mean seconds per topic, weakest topics first."""
    by_topic: dict[str, list[AttemptItem]] = {}
    for item in items:
        by_topic.setdefault(normalize_topic(item.topic), []).append(item)

    rows = [
        TopicStat(
            topic=topic,
            accuracy=percent(sum(1 for i in bucket if i.correct), len(bucket)),
            avg_time_sec=round_half_up(sum(i.time_spent_ms for i in bucket) / len(bucket) / 1000),
            total=len(bucket),
        )
        for topic, bucket in by_topic.items()
    ]
    rows.sort(key=lambda row: row.accuracy)
    return rows


def histogram_bucket(time_spent_ms: float) -> int:
    seconds = time_spent_ms / 1000
    for index, bound in enumerate(HISTOGRAM_BOUNDS):
        if seconds <= bound:
            return index
    return len(HISTOGRAM_BOUNDS)


def compute_time_histogram(items: Iterable[AttemptItem]) -> TimeHistogram:
    counts = [0] * len(HISTOGRAM_LABELS)
    for item in items:
        counts[histogram_bucket(item.time_spent_ms)] += 1
    return TimeHistogram(labels=list(HISTOGRAM_LABELS), counts=counts)


def running_accuracy(sequence: Sequence[bool], total: int = 0) -> list[int]:
    """
    Cumulative accuracy after each question.

    Produces ``max(total, len(sequence))`` points. Positions past the end of
    the sequence are unanswered: they count neither as correct nor as
    answered, so the last accuracy carries forward.
    """
    correct = 0
    answered = 0
    points = []
    for index in range(max(total, len(sequence))):
        if index < len(sequence):
            answered += 1
            correct += 1 if sequence[index] else 0
        points.append(percent(correct, answered))
    return points


def running_accuracy_series(sequence: Sequence[bool], total: int = 0) -> list[SeriesPoint]:
    return [
        SeriesPoint(label=f"Q{index}", score=score)
        for index, score in enumerate(running_accuracy(sequence, total), start=1)
    ]


def compute_top_performers(
    results: Iterable[Result], limit: int = TOP_PERFORMERS_LIMIT
) -> list[TopPerformer]:
    ranked = sorted(results, key=lambda r: (-r.score, -r.total))
    return [
        TopPerformer(candidate=r.candidate, score=r.score, attempts=r.total, last_active=r.date)
        for r in ranked[:limit]
    ]


def compute_recent_activity(
    results: Iterable[Result], limit: int = RECENT_ACTIVITY_LIMIT
) -> list[RecentActivity]:
    latest = sorted(results, key=lambda r: _as_utc(r.date), reverse=True)
    return [
        RecentActivity(
            candidate=r.candidate, date=r.date, score=r.score, correct=r.correct, total=r.total
        )
        for r in latest[:limit]
    ]


def compute_candidate_progression(
    results: Iterable[Result], candidate: str | None
) -> CandidateProgression:
    if not candidate:
        return CandidateProgression()
    rows = sorted(
        (r for r in results if r.candidate == candidate and r.date is not None),
        key=lambda r: _as_utc(r.date),
    )
    return CandidateProgression(
        labels=[utc_day(r.date) for r in rows],
        scores=[r.score for r in rows],
    )


def build_details(
    results: Iterable[Result],
    attempts: Iterable[Attempt],
    question_count: int = 0,
    filters: AnalyticsFilters | None = None,
) -> AnalyticsDetails:
    """Assemble the full dashboard payload from raw records."""
    filters = filters or AnalyticsFilters()
    selected = filter_results(results, filters)
    items = filter_items(attempts, filters)
    return AnalyticsDetails(
        kpis=compute_kpis(selected, question_count),
        timeline=compute_timeline(selected),
        by_difficulty=compute_by_difficulty(items),
        by_difficulty_counts=compute_difficulty_counts(items),
        topic_stats=compute_topic_stats(items),
        time_histogram=compute_time_histogram(items),
        top_performers=compute_top_performers(selected),
        recent_activity=compute_recent_activity(selected),
        candidate_progression=compute_candidate_progression(selected, filters.candidate),
    )


def build_attempt_report(
    attempt_id: int, summary: AttemptSummary, items: Sequence[AttemptItem]
) -> AttemptReport:
    """Per-attempt result view; falls back to the items when the summary is sparse."""
    sequence = summary.sequence or [item.correct for item in items]
    total = summary.total_questions or len(items)
    correct = summary.correct_questions or sum(1 for flag in sequence if flag)
    return AttemptReport(
        attempt_id=attempt_id,
        summary=summary,
        score=percent(correct, total),
        running_accuracy=running_accuracy_series(sequence, total),
        by_difficulty=compute_by_difficulty(items),
        topic_stats=compute_topic_stats(items),
        time_histogram=compute_time_histogram(items),
    )

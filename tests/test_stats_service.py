from datetime import datetime, timezone

from assessment.models import (
    AnalyticsFilters,
    AssignmentCompletion,
    Attempt,
    AttemptItem,
    AttemptSummary,
    Result,
)
from assessment.services import stats_service


def _item(correct: bool, ms: int = 5000, topic: str | None = "math", difficulty=3, qid=1) -> AttemptItem:
    return AttemptItem(
        question_id=qid, topic=topic, difficulty=difficulty, correct=correct, time_spent_ms=ms
    )


def _result(candidate: str, score: int, day: int, hour: int = 12, total: int = 10) -> Result:
    return Result(
        candidate=candidate,
        date=datetime(2024, 3, day, hour, tzinfo=timezone.utc),
        correct=score * total // 100,
        total=total,
        score=score,
    )


def test_running_accuracy_pads_with_last_value() -> None:
    assert stats_service.running_accuracy([True, False, True], 5) == [100, 50, 67, 67, 67]


def test_running_accuracy_length_is_max_of_total_and_items() -> None:
    assert len(stats_service.running_accuracy([True] * 4, 2)) == 4
    assert stats_service.running_accuracy([], 3) == [0, 0, 0]
    assert stats_service.running_accuracy([False, True], 0) == [0, 50]


def test_histogram_bucket_boundaries() -> None:
    assert stats_service.histogram_bucket(9000) == 0
    assert stats_service.histogram_bucket(10000) == 0
    assert stats_service.histogram_bucket(10001) == 1
    assert stats_service.histogram_bucket(45000) == 3
    assert stats_service.histogram_bucket(60000) == 4
    assert stats_service.histogram_bucket(61000) == 5


def test_time_histogram_counts_each_item_once() -> None:
    histogram = stats_service.compute_time_histogram(
        [_item(True, 9000), _item(True, 61000), _item(False, 25000)]
    )
    assert histogram.labels == ["0-10s", "10-20s", "20-30s", "30-45s", "45-60s", "60s+"]
    assert histogram.counts == [1, 0, 1, 0, 0, 1]


def test_difficulty_breakdown_keeps_empty_buckets_at_zero() -> None:
    items = [
        _item(True, difficulty=1),
        _item(False, difficulty="very_easy"),
        _item(True, difficulty="HARD"),
        _item(True, difficulty=None),
        _item(False, difficulty="unknown"),
    ]
    by_difficulty = stats_service.compute_by_difficulty(items)

    assert [p.label for p in by_difficulty] == ["Very Easy", "Easy", "Medium", "Hard", "Very Hard"]
    assert [p.score for p in by_difficulty] == [50, 0, 50, 100, 0]

    counts = stats_service.compute_difficulty_counts(items)
    assert [c.count for c in counts] == [2, 0, 2, 1, 0]


def test_topic_stats_sorted_ascending_by_accuracy() -> None:
    items = [
        _item(True, 4000, topic="math"),
        _item(True, 6000, topic="math"),
        _item(False, 20000, topic="history"),
        _item(True, 10000, topic=" "),
        _item(False, 10000, topic=None),
    ]
    rows = stats_service.compute_topic_stats(items)

    assert [r.topic for r in rows] == ["history", "Uncategorized", "math"]
    assert [r.accuracy for r in rows] == [0, 50, 100]
    assert [r.avg_time_sec for r in rows] == [20, 10, 5]
    assert rows == sorted(rows, key=lambda r: r.accuracy)


def test_timeline_groups_by_utc_day_without_zero_fill() -> None:
    results = [
        _result("ana", 80, 3),
        _result("ben", 61, 3, hour=23),
        _result("ana", 90, 1),
        Result(candidate="cy", date=None, score=10),
    ]
    timeline = stats_service.compute_timeline(results)

    assert [(p.label, p.score) for p in timeline] == [("2024-03-01", 90), ("2024-03-03", 71)]


def test_kpis() -> None:
    results = [_result("ana", 80, 1), _result("ana", 71, 2), _result("ben", 60, 2)]
    kpis = stats_service.compute_kpis(results, question_count=12)

    assert kpis.candidates == 2
    assert kpis.exams == 3
    assert kpis.avg_score == 70
    assert kpis.questions == 12
    assert stats_service.compute_kpis([]).avg_score == 0


def test_top_performers_and_recent_activity() -> None:
    results = [
        _result("ana", 80, 1, total=5),
        _result("ben", 80, 2, total=10),
        _result("cy", 95, 3),
        _result("dee", 40, 4),
    ]
    top = stats_service.compute_top_performers(results, limit=3)
    assert [p.candidate for p in top] == ["cy", "ben", "ana"]
    assert top[1].attempts == 10

    recent = stats_service.compute_recent_activity(results, limit=2)
    assert [r.candidate for r in recent] == ["dee", "cy"]


def test_candidate_progression() -> None:
    results = [_result("ana", 70, 5), _result("ben", 50, 1), _result("ana", 60, 2)]
    progression = stats_service.compute_candidate_progression(results, "ana")

    assert progression.labels == ["2024-03-02", "2024-03-05"]
    assert progression.scores == [60, 70]
    assert stats_service.compute_candidate_progression(results, None).labels == []


def test_build_details_applies_filters() -> None:
    attempts = [
        Attempt(id=1, candidate="ana", items=[_item(True, topic="math"), _item(False, topic="art")]),
        Attempt(id=2, candidate="ben", items=[_item(False, topic="math")]),
    ]
    results = [_result("ana", 50, 1), _result("ben", 0, 2)]

    details = stats_service.build_details(
        results, attempts, 4, AnalyticsFilters(candidate="ana", topic="math")
    )

    assert details.kpis.candidates == 1
    assert details.kpis.questions == 4
    assert [t.topic for t in details.topic_stats] == ["math"]
    assert details.by_difficulty[2].score == 100
    assert details.candidate_progression.scores == [50]


def test_completion_to_result() -> None:
    completion = AssignmentCompletion(
        assignment_id="A1", candidate="chris", total=5, correct=4, completed_at="2024-03-01T10:00:00Z"
    )
    result = stats_service.completion_to_result(completion)

    assert result.score == 80
    assert result.candidate == "chris"
    assert result.date.year == 2024


def test_attempt_report_uses_summary_sequence() -> None:
    summary = AttemptSummary(total_questions=5, correct_questions=2, sequence=[True, False, True])
    items = [_item(True, 9000), _item(False, 61000), _item(True, 15000)]

    report = stats_service.build_attempt_report(9, summary, items)

    assert report.score == 40
    assert [p.score for p in report.running_accuracy] == [100, 50, 67, 67, 67]
    assert report.running_accuracy[0].label == "Q1"
    assert report.time_histogram.counts == [1, 1, 0, 0, 0, 1]


def test_attempt_report_falls_back_to_items() -> None:
    report = stats_service.build_attempt_report(9, AttemptSummary(), [_item(True), _item(False)])

    assert report.score == 50
    assert [p.score for p in report.running_accuracy] == [100, 50]

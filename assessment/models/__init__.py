"""Pydantic models."""
from assessment.models.analytics import (
    AnalyticsDetails,
    AnalyticsFilters,
    AnalyticsOverview,
    AttemptReport,
    CandidateProgression,
    KpiTotals,
    LabelCount,
    RecentActivity,
    SeriesPoint,
    TimeHistogram,
    TopicStat,
    TopPerformer,
)
from assessment.models.attempts import (
    Answer,
    AnswerRequest,
    AssignmentCompletion,
    Attempt,
    AttemptItem,
    AttemptSummary,
    AttemptTiming,
    DifficultyAccuracy,
    Result,
    StartAttemptRequest,
    SubmitSummary,
)
from assessment.models.questions import Question, QuestionStatus, QuestionType
from assessment.models.users import User, UserRole

__all__ = [
    "AnalyticsDetails",
    "AnalyticsFilters",
    "AnalyticsOverview",
    "Answer",
    "AnswerRequest",
    "AssignmentCompletion",
    "Attempt",
    "AttemptItem",
    "AttemptReport",
    "AttemptSummary",
    "AttemptTiming",
    "CandidateProgression",
    "DifficultyAccuracy",
    "KpiTotals",
    "LabelCount",
    "Question",
    "QuestionStatus",
    "QuestionType",
    "RecentActivity",
    "Result",
    "SeriesPoint",
    "StartAttemptRequest",
    "SubmitSummary",
    "TimeHistogram",
    "TopicStat",
    "TopPerformer",
    "User",
    "UserRole",
]

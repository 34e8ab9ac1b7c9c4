"""Normalization between backend question rows and ``Question`` models."""
from assessment.models.questions import Question, QuestionStatus, QuestionType

DIFFICULTY_LABELS = ("Very Easy", "Easy", "Medium", "Hard", "Very Hard")
DEFAULT_DIFFICULTY = 3

_LABEL_LEVELS = {
    "very easy": 1,
    "very_easy": 1,
    "easy": 2,
    "medium": 3,
    "hard": 4,
    "very hard": 5,
    "very_hard": 5,
}

_STATUS_ALIASES = {
    "approved": QuestionStatus.PUBLISHED,
    "published": QuestionStatus.PUBLISHED,
    "rejected": QuestionStatus.ARCHIVED,
    "archived": QuestionStatus.ARCHIVED,
    "pending": QuestionStatus.DRAFT,
    "draft": QuestionStatus.DRAFT,
}

_MCQ_ALIASES = {"mcq", "multiple-choice", "multiple_choice", "multiple choice"}


def difficulty_to_level(value: object) -> int | None:
    """Map a numeric (1-5) or textual difficulty to a level, None if unknown."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        level = int(round(value))
        return level if 1 <= level <= 5 else None
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in _LABEL_LEVELS:
            return _LABEL_LEVELS[raw]
        try:
            return difficulty_to_level(float(raw))
        except ValueError:
            return None
    return None


def difficulty_label(value: object) -> str:
    """Map a difficulty to its label. Unmapped or missing values are Medium."""
    level = difficulty_to_level(value) or DEFAULT_DIFFICULTY
    return DIFFICULTY_LABELS[level - 1]


def normalize_status(value: object) -> QuestionStatus | None:
    """Map UI and DB status spellings onto the lifecycle statuses."""
    if isinstance(value, QuestionStatus):
        return value
    if not isinstance(value, str):
        return None
    return _STATUS_ALIASES.get(value.strip().lower())


def normalize_type(value: object) -> QuestionType:
    if isinstance(value, QuestionType):
        return value
    if value is None or str(value).strip().lower() in _MCQ_ALIASES:
        return QuestionType.MCQ
    return QuestionType.FREE_TEXT


def extract_rows(data: object) -> list[dict[str, object]]:
    """Accept a bare list or an ``{items: [...]}`` / ``{rows: [...]}`` envelope."""
    if isinstance(data, dict):
        for key in ("items", "rows", "data"):
            if isinstance(data.get(key), list):
                data = data[key]
                break
    if not isinstance(data, list):
        return []
    return [row for row in data if isinstance(row, dict)]


def _first(row: dict[str, object], *keys: str) -> object:
    for key in keys:
        value = row.get(key)
        if value is not None:
            return value
    return None


def _options_from_row(row: dict[str, object]) -> list[str]:
    raw = _first(row, "options", "choices")
    if not isinstance(raw, list):
        raw = [
            _first(row, f"option_{letter}", f"option{letter.upper()}", f"option{index}")
            for index, letter in enumerate("abcd", start=1)
        ]
    return [str(option) for option in raw if isinstance(option, str) and option.strip()]


def _correct_index(row: dict[str, object], options: list[str]) -> int:
    raw = _first(
        row, "correct_index", "correctIndex", "correct_option", "correct_answer", "correctAnswer"
    )
    if isinstance(raw, str) and not raw.strip().lstrip("-").isdigit():
        raw = None
    if raw is None or isinstance(raw, bool):
        answer = str(row.get("answer") or "").strip().lower()
        for index, option in enumerate(options):
            if option.strip().lower() == answer:
                return index
        return 0
    index = int(raw)
    # stored indices are 0-based; one equal to the option count can only be 1-based
    if index == len(options) and index >= 1:
        index -= 1
    return max(0, min(index, max(0, len(options) - 1)))


def question_from_row(
    row: dict[str, object],
    default_status: QuestionStatus = QuestionStatus.DRAFT,
) -> Question:
    """Build a ``Question`` from a loosely shaped backend row.

    Rows without a status take ``default_status`` (e.g. rows listed under a
    status filter).
    """
    options = _options_from_row(row)
    difficulty = _first(
        row, "difficulty", "numericDifficulty", "difficulty_level", "level", "difficultyLevel"
    )
    topic = _first(row, "topic", "subject")
    tags = row.get("tags")
    return Question(
        id=_first(row, "id", "questionId", "question_id"),
        text=str(_first(row, "question_text", "questionText", "text", "prompt") or ""),
        options=tuple(options),
        correct_index=_correct_index(row, options),
        difficulty=difficulty_to_level(difficulty) or DEFAULT_DIFFICULTY,
        topic=str(topic) if topic is not None else None,
        type=normalize_type(row.get("type")),
        status=normalize_status(row.get("status")) or default_status,
        tags=tuple(str(tag) for tag in tags) if isinstance(tags, list) else (),
    )


def question_to_payload(question: Question) -> dict[str, object]:
    """Serialize a question to the backend's snake_case row shape."""
    return {
        "question_text": question.text,
        "options": list(question.options),
        "correct_answer": question.correct_index,
        "difficulty": question.difficulty,
        "topic": question.topic,
        "tags": list(question.tags),
        "type": "MCQ" if question.type is QuestionType.MCQ else "Short Answer",
        "status": question.status.value,
    }

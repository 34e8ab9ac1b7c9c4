"""Question models."""
import enum

from pydantic import Field

from assessment.models.base import FrozenApiModel


class QuestionType(str, enum.Enum):
    """Delivery type of a question."""

    MCQ = "MCQ"
    FREE_TEXT = "FREE_TEXT"


class QuestionStatus(str, enum.Enum):
    """Lifecycle status of a question."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Question(FrozenApiModel):
    """A bank question as seen by the delivery core."""

    id: int | str
    text: str = ""
    options: tuple[str, ...] = ()
    correct_index: int = 0
    difficulty: int = Field(3, ge=1, le=5)
    topic: str | None = None
    type: QuestionType = QuestionType.MCQ
    status: QuestionStatus = QuestionStatus.DRAFT
    tags: tuple[str, ...] = ()

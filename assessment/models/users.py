"""User directory models."""
import enum

from assessment.models.base import FrozenApiModel


class UserRole(str, enum.Enum):
    """Application roles."""

    ADMIN = "admin"
    EDITOR = "editor"
    RECRUITER = "recruiter"
    CANDIDATE = "candidate"


class User(FrozenApiModel):
    """User as listed in the admin directory."""

    id: int | str
    name: str = ""
    email: str = ""
    role: UserRole = UserRole.CANDIDATE

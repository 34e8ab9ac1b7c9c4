"""Shared pydantic base for wire models."""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict[str, object]:
        """Serialize to a JSON-ready camelCase dict without empty fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class FrozenApiModel(ApiModel):
    """Immutable wire model."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

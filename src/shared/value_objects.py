"""Immutable value objects declared with pydantic.

Field rules live on the model (``Field(min_length=..., max_length=...)``).
A rule violation surfaces as the core ``ValidationError`` keyed by field
name, so callers and the API layer never see pydantic's own error type.
"""

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from shared.exceptions import ValidationError


def error_messages(exc: PydanticValidationError) -> dict[str, list[str]]:
    messages: dict[str, list[str]] = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "_entity"
        messages.setdefault(field, []).append(error["msg"])
    return messages


class ValueObject(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, extra="ignore")

    def __init__(self, **data):
        try:
            super().__init__(**data)
        except PydanticValidationError as exc:
            raise ValidationError(error_messages(exc)) from exc

    def as_dict(self) -> dict:
        return self.model_dump()

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

ModelT = TypeVar("ModelT", bound=BaseModel)


class InputModel(BaseModel):
    """Payloads arrive from the UI in camelCase; snake_case is accepted too."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


class DateRange(InputModel):
    start_date: datetime | None = None
    end_date: datetime | None = None

    @field_validator("start_date", "end_date")
    @classmethod
    def _as_naive_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v

    def conditions(self, column) -> list:
        """SQL filters for `column`; a date-only end bound covers that whole day."""
        out = []
        if self.start_date is not None:
            out.append(column >= self.start_date)
        if self.end_date is not None:
            if self.end_date.time() == time.min:
                out.append(column < self.end_date + timedelta(days=1))
            else:
                out.append(column <= self.end_date)
        return out


def parse(model: type[ModelT], data: Any) -> ModelT:
    if isinstance(data, model):
        return data
    return model.model_validate(data or {})

from datetime import date
from enum import Enum
from typing import Any, Dict, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from medreminder.core.exceptions import ValidationError

# 24-hour clock; single-digit hours are accepted, minutes are always two digits
NOTIFICATION_TIME_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"


class FoodTiming(str, Enum):
    BEFORE = "before"
    AFTER = "after"
    DURING = "during"


class MedicinePlanBase(BaseModel):
    name: str = Field(..., min_length=1)
    dosage: str = Field(..., min_length=1)
    duration: int = Field(..., ge=0, description="Remaining days of treatment")
    food_timing: FoodTiming
    notification_time: str = Field(..., pattern=NOTIFICATION_TIME_PATTERN)
    notifications_enabled: bool = True

    @field_validator("name", "dosage", "notification_time")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class MedicinePlanCreate(MedicinePlanBase):
    """New plan; the store assigns the id"""


class MedicinePlanUpdate(MedicinePlanBase):
    """Full overwrite of the user-editable fields of an existing plan"""
    id: int


class MedicinePlanRead(MedicinePlanBase):
    id: int
    last_notification_date: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_active(self) -> bool:
        return self.notifications_enabled and self.duration > 0


SchemaT = TypeVar("SchemaT", bound=BaseModel)


def coerce_plan(schema: Type[SchemaT], data: Union[SchemaT, Dict[str, Any]]) -> SchemaT:
    """Accept a schema instance or a plain dict, raising our ValidationError on bad input."""
    if isinstance(data, schema):
        return data
    try:
        if isinstance(data, BaseModel):
            return schema.model_validate(data.model_dump())
        return schema.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid {schema.__name__}: {e.error_count()} error(s)",
            errors=e.errors(include_url=False),
        ) from e

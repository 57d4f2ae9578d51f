'''
Class Schedule API Models
'''
from datetime import date, datetime
from typing import Annotated, Any, Literal, Optional, Union
from uuid import UUID

from pydantic import Field, TypeAdapter, field_validator, model_validator

from ..database.db_enums import RecurrenceKindEnum, ExceptionStatusEnum
from .base import APIModel
from .catalogue import InstructorRead, RoomRead


WeekdayNumber = Annotated[int, Field(ge=0, le=6, description="0=Sunday, 6=Saturday")]
MonthDayNumber = Annotated[int, Field(ge=1, le=31)]


class TimeSlot(APIModel):
    """
    A civil time-of-day pair in "HH:mm". Kept as raw strings so the expander
    can report exactly which slot was wrong.
    """
    start: str
    end: str


# --- Recurrence Rule (tagged union) ---

class _RuleBase(APIModel):
    series_start_date: Optional[date] = None
    series_end_date: Optional[date] = None
    interval_unit: int = Field(1, ge=1, description="Every N days (daily) or weeks (weekly/custom)")
    time_slots: list[TimeSlot] = Field(default_factory=list)

    @property
    def kind(self) -> RecurrenceKindEnum:
        return RecurrenceKindEnum(self.recurrence_kind)


class SingleRule(_RuleBase):
    recurrence_kind: Literal["single"]


class DailyRule(_RuleBase):
    recurrence_kind: Literal["daily"]


class WeeklyRule(_RuleBase):
    recurrence_kind: Literal["weekly"]
    weekdays: list[WeekdayNumber] = Field(..., min_length=1)


class MonthlyRule(_RuleBase):
    recurrence_kind: Literal["monthly"]
    month_days: list[MonthDayNumber] = Field(..., min_length=1)


class CustomRule(_RuleBase):
    """
    Two modes: explicit manual dates when any are given,
    otherwise a weekly-style pattern between the series boundaries.
    """
    recurrence_kind: Literal["custom"]
    weekdays: list[WeekdayNumber] = Field(default_factory=list)
    manual_dates: list[str] = Field(default_factory=list)

    @property
    def uses_manual_dates(self) -> bool:
        return len(self.manual_dates) > 0


RecurrenceRule = Annotated[
    Union[SingleRule, DailyRule, WeeklyRule, MonthlyRule, CustomRule],
    Field(discriminator="recurrence_kind")
]
recurrence_rule_adapter = TypeAdapter(RecurrenceRule)

_RULE_MODELS = (SingleRule, DailyRule, WeeklyRule, MonthlyRule, CustomRule)
_RULE_KEYS = {
    key
    for model in _RULE_MODELS
    for name, field in model.model_fields.items()
    for key in (name, field.alias)
    if key
}


def _lift_rule_fields(data: Any) -> Any:
    if isinstance(data, dict) and "rule" not in data:
        data = dict(data)
        data["rule"] = {key: data.pop(key) for key in list(data) if key in _RULE_KEYS}
    return data


# --- Write Models (Input) ---

class SchedulePreview(APIModel):
    """A bare recurrence rule, expanded without being saved."""
    rule: RecurrenceRule

    @model_validator(mode="before")
    @classmethod
    def _collect_rule_fields(cls, data: Any) -> Any:
        return _lift_rule_fields(data)


class ClassSeriesWrite(APIModel):
    """
    Payload for creating or fully replacing a class series.
    The wire body is flat; the rule fields are lifted into `rule`
    so the recurrence is validated once, as its own variant.
    """
    title: str = Field(..., min_length=3)
    instructor_id: UUID
    room_id: UUID
    rule: RecurrenceRule

    @model_validator(mode="before")
    @classmethod
    def _collect_rule_fields(cls, data: Any) -> Any:
        return _lift_rule_fields(data)

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class SingleInstanceUpdate(APIModel):
    """
    Payload for editing or detaching one occurrence.
    Every field is optional; omitted values keep the occurrence's own.
    """
    new_start: Optional[datetime] = None
    new_end: Optional[datetime] = None
    title: Optional[str] = Field(None, min_length=3)
    instructor_id: Optional[UUID] = None
    room_id: Optional[UUID] = None
    reason: Optional[str] = Field(None, description="Defaults to \"Rescheduled\" in place or \"Detached from series\"")


# --- API Read Models (Output) ---

class GeneratedSessionRead(APIModel):
    start: datetime
    end: datetime


class SessionRead(APIModel):
    id: UUID
    start: datetime
    end: datetime
    original_start: datetime


class SeriesExceptionRead(APIModel):
    id: UUID
    anchor: datetime
    status: ExceptionStatusEnum
    reason: Optional[str] = None
    new_start: Optional[datetime] = None
    new_end: Optional[datetime] = None
    created_at: datetime


class ClassSeriesRead(APIModel):
    """
    A series as returned by the API: the stored rule, the authoritative
    session list and the exception history.
    """
    id: UUID
    title: str
    instructor: InstructorRead
    room: RoomRead
    recurrence_kind: RecurrenceKindEnum
    series_start_date: date
    series_end_date: Optional[date] = None
    interval_unit: int
    weekdays: list[int] = Field(default_factory=list)
    month_days: list[int] = Field(default_factory=list)
    manual_dates: list[str] = Field(default_factory=list)
    time_slots: list[TimeSlot] = Field(default_factory=list)
    sessions: list[SessionRead] = Field(default_factory=list)
    exceptions: list[SeriesExceptionRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ClassSeriesPage(APIModel):
    items: list[ClassSeriesRead]
    total: int
    page: int
    limit: int
    total_pages: int


class SingleInstanceResult(APIModel):
    """
    Outcome of a single-occurrence edit. `detached` is the new standalone
    series, or None when the parent was already a single class.
    """
    series: ClassSeriesRead
    detached: Optional[ClassSeriesRead] = None

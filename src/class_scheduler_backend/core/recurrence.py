'''
Recurrence expansion: turns a recurrence rule into concrete class sessions.

Time slots are read as civil times in the configured timezone and every
generated instant is returned in UTC.
'''
import calendar
import re
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Iterator, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..common.config import settings
from ..common.exceptions import InvalidTimeSlotError, MissingBoundaryError, InvalidRangeError, NoFutureSessionsError
from ..common.logger import log
from ..models.schedule import (
    CustomRule, DailyRule, MonthlyRule, SingleRule, TimeSlot, WeeklyRule, RecurrenceRule
)

_CLOCK_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


@dataclass(frozen=True)
class GeneratedSession:
    """
    One materialized occurrence. `anchor` is the start the expander produced,
    which stays fixed even when an exception moves the session.
    """
    start: datetime
    end: datetime
    anchor: datetime

    def moved_to(self, start: datetime, end: datetime) -> "GeneratedSession":
        return replace(self, start=start, end=end)


def resolve_timezone(name: Optional[Union[str, ZoneInfo]] = None) -> ZoneInfo:
    if isinstance(name, ZoneInfo):
        return name
    name = name or settings.TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        log.warning(f"Invalid timezone '{name}', defaulting to UTC.")
        return ZoneInfo("UTC")


def weekday_number(day: date) -> int:
    """0=Sunday ... 6=Saturday."""
    return day.isoweekday() % 7


def last_day_of_month(day: date) -> int:
    return calendar.monthrange(day.year, day.month)[1]


def parse_manual_date(raw) -> Optional[date]:
    """Accepts dates, ISO dates and ISO datetimes. Returns None when unparseable."""
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str):
        return None
    text = raw.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def _parse_clock(value: str, index: int, slot: TimeSlot) -> time:
    match = _CLOCK_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise InvalidTimeSlotError(
            f'Time slot #{index + 1} has an invalid time format. '
            f'Expected "HH:mm" but got start="{slot.start}" and end="{slot.end}".'
        )
    return time(int(match.group(1)), int(match.group(2)))


def validate_time_slots(slots: list[TimeSlot], min_minutes: int) -> list[tuple[time, time]]:
    """
    Parses every slot and checks end > start and the minimum duration.
    Raises InvalidTimeSlotError naming the offending slot.
    """
    if not slots:
        raise InvalidTimeSlotError("At least one time slot is required.")

    parsed = []
    for index, slot in enumerate(slots):
        start = _parse_clock(slot.start, index, slot)
        end = _parse_clock(slot.end, index, slot)
        duration = (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)
        if duration <= 0:
            raise InvalidTimeSlotError(
                f"Time slot #{index + 1} ({slot.start} -> {slot.end}) is invalid: "
                f"end time must be after start time (computed duration {duration} minutes)."
            )
        if duration < min_minutes:
            raise InvalidTimeSlotError(
                f"Time slot #{index + 1} ({slot.start} -> {slot.end}) is too short. "
                f"Minimum allowed: {min_minutes} minutes. Received: {duration} minutes."
            )
        parsed.append((start, end))
    return parsed


# --- Day matchers (one per pattern variant) ---

def _matches_daily(rule: DailyRule, day: date, first_day: date) -> bool:
    return (day - first_day).days % rule.interval_unit == 0


def _matches_weekly(rule: WeeklyRule, day: date, first_day: date) -> bool:
    weeks_since_start = (day - first_day).days // 7
    return weeks_since_start % rule.interval_unit == 0 and weekday_number(day) in rule.weekdays


def _matches_monthly(rule: MonthlyRule, day: date, first_day: date) -> bool:
    if day.day in rule.month_days:
        return True
    # "last day" fallback: 31 (or 30, 29) also lands on a shorter month's last day
    month_length = last_day_of_month(day)
    return day.day == month_length and any(value > month_length for value in rule.month_days)


def _matches_custom_pattern(rule: CustomRule, day: date, first_day: date) -> bool:
    weeks_since_start = (day - first_day).days // 7
    weekday_ok = not rule.weekdays or weekday_number(day) in rule.weekdays
    return weeks_since_start % rule.interval_unit == 0 and weekday_ok


_DAY_MATCHERS: dict[type, Callable] = {
    DailyRule: _matches_daily,
    WeeklyRule: _matches_weekly,
    MonthlyRule: _matches_monthly,
    CustomRule: _matches_custom_pattern,
}


def _require_boundaries(rule: RecurrenceRule) -> tuple[date, date]:
    if rule.series_start_date is None:
        raise MissingBoundaryError(
            f"A {rule.recurrence_kind} schedule requires a series start date.",
            field="seriesStartDate"
        )
    if rule.series_end_date is None:
        raise MissingBoundaryError(
            f"A {rule.recurrence_kind} schedule requires a series end date. "
            "Please specify when this series stops or pick specific dates."
        )
    if rule.series_end_date < rule.series_start_date:
        raise InvalidRangeError(
            f"Series end date {rule.series_end_date.isoformat()} is before "
            f"series start date {rule.series_start_date.isoformat()}."
        )
    return rule.series_start_date, rule.series_end_date


def _manual_days(rule: CustomRule) -> Iterator[date]:
    for index, raw in enumerate(rule.manual_dates):
        day = parse_manual_date(raw)
        if day is None:
            log.warning(f'Invalid manual date at index {index}: "{raw}" - skipping')
            continue
        yield day


def matching_days(rule: RecurrenceRule) -> Iterator[date]:
    """
    Yields every calendar day the rule selects, in walk order.
    Boundary validation happens before the first day is produced.
    """
    if isinstance(rule, SingleRule):
        if rule.series_start_date is None:
            raise MissingBoundaryError("A single class requires a date.", field="seriesStartDate")
        yield rule.series_start_date
        return

    if isinstance(rule, CustomRule) and rule.uses_manual_dates:
        # listed order, repeats dropped since they would collide with each other
        yield from dict.fromkeys(_manual_days(rule))
        return

    first_day, last_day = _require_boundaries(rule)
    matcher = _DAY_MATCHERS[type(rule)]
    day = first_day
    while day <= last_day:
        if matcher(rule, day, first_day):
            yield day
        day += timedelta(days=1)


def _build_session(day: date, start: time, end: time, tz: ZoneInfo, min_duration: timedelta) -> Optional[GeneratedSession]:
    start_at = datetime.combine(day, start, tzinfo=tz).astimezone(timezone.utc)
    end_at = datetime.combine(day, end, tzinfo=tz).astimezone(timezone.utc)
    # wall-clock slots can shrink across a DST change, so re-check real elapsed time
    if end_at - start_at < min_duration:
        log.warning(
            f"Skipped slot {start:%H:%M}-{end:%H:%M} on {day.isoformat()}: "
            f"only {int((end_at - start_at).total_seconds() // 60)} minutes long on that day."
        )
        return None
    return GeneratedSession(start=start_at, end=end_at, anchor=start_at)


def expand_sessions(
    rule: RecurrenceRule,
    now: Optional[datetime] = None,
    tz: Optional[Union[str, ZoneInfo]] = None,
    min_duration_minutes: Optional[int] = None,
    future_buffer_minutes: Optional[int] = None
) -> list[GeneratedSession]:
    """
    Expands a recurrence rule into the list of future sessions.

    Sessions come out day by day, then slot by slot; manual dates keep
    their listed order. Any session starting earlier than `now + future buffer`
    is dropped silently; an expansion that leaves nothing raises
    NoFutureSessionsError.
    """
    zone = resolve_timezone(tz)
    min_minutes = settings.MIN_SESSION_MINUTES if min_duration_minutes is None else min_duration_minutes
    buffer_minutes = settings.FUTURE_BUFFER_MINUTES if future_buffer_minutes is None else future_buffer_minutes

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=zone)
    earliest_allowed_start = now + timedelta(minutes=buffer_minutes)

    slots = validate_time_slots(rule.time_slots, min_minutes)
    min_duration = timedelta(minutes=min_minutes)

    sessions = []
    for day in matching_days(rule):
        for start, end in slots:
            session = _build_session(day, start, end, zone, min_duration)
            if session is None:
                continue
            if session.start >= earliest_allowed_start:
                sessions.append(session)

    if not sessions:
        raise NoFutureSessionsError(
            "No future sessions could be generated. Ensure your selected dates and times are at least "
            f"{buffer_minutes} minutes in the future and that the rule matches at least one day."
        )

    log.info(f"Expanded {rule.recurrence_kind} rule into {len(sessions)} sessions.")
    return sessions

'''
Conflict detection: finds persisted sessions that overlap candidate sessions
for the same room or the same instructor, and explains the collision.
'''
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional, Protocol, Sequence
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..database import models as db_models
from ..database.db_enums import ConflictFieldEnum
from ..common.logger import log
from .recurrence import resolve_timezone


class Interval(Protocol):
    start: datetime
    end: datetime


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open overlap test: touching intervals (a_end == b_start) do not overlap."""
    return a_start < b_end and a_end > b_start


def find_first_overlap(existing: Iterable[Interval], candidates: Sequence[Interval]) -> Optional[Interval]:
    """Returns the first existing interval, in iteration order, that overlaps any candidate."""
    for session in existing:
        if any(overlaps(session.start, session.end, candidate.start, candidate.end) for candidate in candidates):
            return session
    return None


def _ordinal(number: int) -> str:
    if 11 <= number % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
    return f"{number}{suffix}"


def _clock(moment: datetime) -> str:
    return f"{moment.hour % 12 or 12}:{moment:%M} {'AM' if moment.hour < 12 else 'PM'}"


def format_time_range(start: datetime, end: datetime, tz=None) -> str:
    """
    e.g. "Wednesday, February 18th, 2026 at 2:00 PM to 4:00 PM",
    rendered in the configured civil timezone.
    """
    zone = resolve_timezone(tz)
    local_start = start.astimezone(zone)
    local_end = end.astimezone(zone)
    formatted_start = f"{local_start:%A, %B} {_ordinal(local_start.day)}, {local_start.year} at {_clock(local_start)}"
    return f"{formatted_start} to {_clock(local_end)}"


@dataclass(frozen=True)
class ConflictDetail:
    field: ConflictFieldEnum
    message: str
    series_id: UUID
    series_title: str
    session_id: Optional[UUID]
    session_start: Optional[datetime]
    session_end: Optional[datetime]

    def to_detail(self) -> dict[str, Any]:
        return {
            "field": self.field.value,
            "message": self.message,
            "seriesId": str(self.series_id),
            "seriesTitle": self.series_title,
            "sessionId": str(self.session_id) if self.session_id else None,
            "sessionStart": self.session_start.isoformat() if self.session_start else None,
            "sessionEnd": self.session_end.isoformat() if self.session_end else None,
        }


@dataclass(frozen=True)
class ConflictReport:
    """
    Everything that blocks a write. `field` and `message` describe the first
    conflict; a second detail is present when the room and the instructor
    are busy in two different series.
    """
    details: list[ConflictDetail]

    @property
    def field(self) -> str:
        return self.details[0].field.value

    @property
    def message(self) -> str:
        return " ".join(detail.message for detail in self.details)

    def to_detail(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "message": self.message,
            "details": [detail.to_detail() for detail in self.details],
        }


def _chunks(items: Sequence, size: int):
    for index in range(0, len(items), size):
        yield items[index:index + size]


class ConflictDetector:
    """
    Searches persisted series for sessions overlapping a set of candidates.
    One joint query covers both the room and the instructor.
    """
    # keeps the OR-chain of overlap predicates small enough for every dialect
    BATCH_SIZE = 50

    def __init__(self, db: AsyncSession, tz=None):
        self.db = db
        self.tz = tz

    async def find_conflict(
        self,
        candidates: Sequence[Interval],
        room_id: UUID,
        instructor_id: UUID,
        exclude_series_id: Optional[UUID] = None
    ) -> Optional[ConflictReport]:
        """
        Returns a ConflictReport for the first series found to collide with
        the candidates, or None when the slot is free.
        """
        if not candidates:
            return None

        excluded = [exclude_series_id] if exclude_series_id else []
        first_hit = await self._find_conflicting_series(candidates, room_id, instructor_id, excluded)
        if first_hit is None:
            log.info(f"No conflicts for {len(candidates)} candidate sessions (room {room_id}, instructor {instructor_id}).")
            return None

        first_detail = self._describe(first_hit, candidates, instructor_id)
        details = [first_detail]

        # the same series may only block one dimension; look for the other one elsewhere
        second_hit = None
        if first_detail.field == ConflictFieldEnum.INSTRUCTOR and first_hit.room_id != room_id:
            second_hit = await self._find_conflicting_series(candidates, room_id, None, excluded + [first_hit.id])
        elif first_detail.field == ConflictFieldEnum.ROOM:
            second_hit = await self._find_conflicting_series(candidates, None, instructor_id, excluded + [first_hit.id])
        if second_hit is not None:
            details.append(self._describe(second_hit, candidates, instructor_id))

        report = ConflictReport(details=details)
        log.warning(f"Scheduling conflict detected: {report.message}")
        return report

    async def _find_conflicting_series(
        self,
        candidates: Sequence[Interval],
        room_id: Optional[UUID],
        instructor_id: Optional[UUID],
        excluded_ids: list[UUID]
    ) -> Optional[db_models.ClassSeries]:
        ownership = []
        if room_id is not None:
            ownership.append(db_models.ClassSeries.room_id == room_id)
        if instructor_id is not None:
            ownership.append(db_models.ClassSeries.instructor_id == instructor_id)
        if not ownership:
            return None

        for batch in _chunks(list(candidates), self.BATCH_SIZE):
            overlap = or_(*[
                and_(db_models.ClassSessions.start < candidate.end, db_models.ClassSessions.end > candidate.start)
                for candidate in batch
            ])
            filters = [or_(*ownership), overlap]
            if excluded_ids:
                filters.append(db_models.ClassSeries.id.not_in(excluded_ids))

            stmt = select(db_models.ClassSeries).join(db_models.ClassSeries.sessions).options(
                selectinload(db_models.ClassSeries.sessions),
                selectinload(db_models.ClassSeries.instructor),
                selectinload(db_models.ClassSeries.room)
            ).filter(
                *filters
            ).order_by(db_models.ClassSeries.created_at, db_models.ClassSeries.id).limit(1)

            result = await self.db.execute(stmt)
            series = result.scalars().first()
            if series is not None:
                return series
        return None

    def _describe(self, series: db_models.ClassSeries, candidates: Sequence[Interval], instructor_id: UUID) -> ConflictDetail:
        session = find_first_overlap(series.sessions, candidates)
        if session is not None:
            time_range = format_time_range(session.start, session.end, self.tz)
        else:
            log.error(f"Series {series.id} matched the conflict query but no overlapping session was found on re-scan.")
            time_range = "an overlapping time"

        if series.instructor_id == instructor_id:
            conflict_field = ConflictFieldEnum.INSTRUCTOR
            message = f'Instructor {series.instructor.name} is already teaching "{series.title}" on {time_range}.'
        else:
            conflict_field = ConflictFieldEnum.ROOM
            message = f'Room {series.room.room_name} is already reserved for "{series.title}" on {time_range}.'

        return ConflictDetail(
            field=conflict_field,
            message=message,
            series_id=series.id,
            series_title=series.title,
            session_id=getattr(session, "id", None),
            session_start=session.start if session is not None else None,
            session_end=session.end if session is not None else None
        )

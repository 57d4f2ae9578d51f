'''
Business logic for class series: expansion, conflict checks, persistence
and the per-occurrence edits (detach / cancel).
'''
import math
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..common.config import settings
from ..common.exceptions import (
    InvalidTimeSlotError, NoFutureSessionsError, NotFoundError,
    SchedulingConflictError, SchedulingError, to_http_exception
)
from ..common.logger import log
from ..core.conflicts import ConflictDetector
from ..core.reconciliation import reconcile_sessions
from ..core.recurrence import GeneratedSession, expand_sessions, parse_manual_date, resolve_timezone
from ..database import models as db_models
from ..database.db_enums import CacheTagEnum, ExceptionStatusEnum, RecurrenceKindEnum
from ..database.engine import get_db_session
from ..database.locks import scheduling_locks
from ..models import schedule as schedule_models
from .cache_service import CacheService, get_cache_service


class ClassService:
    """
    Service for creating, editing and deleting class series.
    Every write follows: expand -> reconcile -> conflict check -> persist -> invalidate cache.
    """
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        cache: Annotated[CacheService, Depends(get_cache_service)]
    ):
        self.db = db
        self.cache = cache
        self.tz = resolve_timezone(settings.TIMEZONE)
        self.detector = ConflictDetector(db, tz=self.tz)

    # --- Internal Fetchers ---

    async def _get_series_internal(self, series_id: UUID) -> db_models.ClassSeries:
        """
        Fetches a series with sessions, exceptions, instructor and room loaded.
        Raises NotFoundError if absent.
        """
        stmt = select(db_models.ClassSeries).options(
            selectinload(db_models.ClassSeries.sessions),
            selectinload(db_models.ClassSeries.exceptions),
            selectinload(db_models.ClassSeries.instructor),
            selectinload(db_models.ClassSeries.room).selectinload(db_models.Rooms.room_type)
        ).filter(
            db_models.ClassSeries.id == series_id
        ).execution_options(populate_existing=True)

        result = await self.db.execute(stmt)
        series = result.scalars().first()
        if not series:
            log.warning(f"Tried to fetch non-existing class series: {series_id}")
            raise NotFoundError("Class series", series_id, field="seriesId")
        return series

    async def _get_session_internal(self, series_id: UUID, session_id: UUID) -> db_models.ClassSessions:
        stmt = select(db_models.ClassSessions).filter(
            db_models.ClassSessions.id == session_id,
            db_models.ClassSessions.series_id == series_id
        )
        result = await self.db.execute(stmt)
        session = result.scalars().first()
        if not session:
            log.warning(f"Session {session_id} not found in series {series_id}")
            raise NotFoundError("Session", session_id, field="sessionId")
        return session

    async def _ensure_instructor(self, instructor_id: UUID) -> db_models.Instructors:
        instructor = await self.db.get(db_models.Instructors, instructor_id)
        if instructor is None:
            raise NotFoundError("Instructor", instructor_id, field="instructorId")
        return instructor

    async def _ensure_room(self, room_id: UUID) -> db_models.Rooms:
        room = await self.db.get(db_models.Rooms, room_id, options=[selectinload(db_models.Rooms.room_type)])
        if room is None:
            raise NotFoundError("Room", room_id, field="roomId")
        return room

    # --- Helpers ---

    def _prepare_rule(self, rule: schedule_models.RecurrenceRule) -> schedule_models.RecurrenceRule:
        """
        Manual-date rules may omit their boundaries; they are derived from
        the earliest and latest parseable dates so the stored series is bounded.
        """
        if not isinstance(rule, schedule_models.CustomRule) or not rule.uses_manual_dates:
            return rule
        days = [day for day in (parse_manual_date(raw) for raw in rule.manual_dates) if day is not None]
        if not days:
            return rule
        updates = {}
        if rule.series_start_date is None:
            updates["series_start_date"] = min(days)
        if rule.series_end_date is None:
            updates["series_end_date"] = max(days)
        return rule.model_copy(update=updates) if updates else rule

    def _expand(self, rule: schedule_models.RecurrenceRule) -> list[GeneratedSession]:
        return expand_sessions(rule, tz=self.tz)

    @staticmethod
    def _rule_columns(rule: schedule_models.RecurrenceRule) -> dict:
        return {
            "recurrence_kind": rule.recurrence_kind,
            "series_start_date": rule.series_start_date,
            "series_end_date": rule.series_end_date,
            "interval_unit": rule.interval_unit,
            "weekdays": list(getattr(rule, "weekdays", [])),
            "month_days": list(getattr(rule, "month_days", [])),
            "manual_dates": list(getattr(rule, "manual_dates", [])),
            "time_slots": [slot.model_dump() for slot in rule.time_slots],
        }

    @staticmethod
    def _to_session_rows(sessions: list[GeneratedSession]) -> list[db_models.ClassSessions]:
        return [
            db_models.ClassSessions(position=index, start=session.start, end=session.end, original_start=session.anchor)
            for index, session in enumerate(sessions)
        ]

    async def _check_conflicts(self, candidates, room_id: UUID, instructor_id: UUID, exclude_series_id: Optional[UUID] = None):
        """Must run inside `scheduling_locks` for the same room and instructor."""
        report = await self.detector.find_conflict(candidates, room_id, instructor_id, exclude_series_id=exclude_series_id)
        if report is not None:
            raise SchedulingConflictError(report)

    def _as_utc(self, value: datetime) -> datetime:
        """Naive datetimes are read in the configured civil timezone."""
        if value.tzinfo is None:
            value = value.replace(tzinfo=self.tz)
        return value.astimezone(timezone.utc)

    def _validate_interval(self, start: datetime, end: datetime):
        earliest_allowed_start = datetime.now(timezone.utc) + timedelta(minutes=settings.FUTURE_BUFFER_MINUTES)
        if start < earliest_allowed_start:
            raise InvalidTimeSlotError(
                f"New start {start.isoformat()} must be at least {settings.FUTURE_BUFFER_MINUTES} minutes in the future.",
                field="newStart"
            )
        if end <= start:
            raise InvalidTimeSlotError(
                f"New end {end.isoformat()} must be after new start {start.isoformat()}.",
                field="newEnd"
            )
        if end - start < timedelta(minutes=settings.MIN_SESSION_MINUTES):
            minutes = int((end - start).total_seconds() // 60)
            raise InvalidTimeSlotError(
                f"Session is too short. Minimum allowed: {settings.MIN_SESSION_MINUTES} minutes. "
                f"Received: {minutes} minutes.",
                field="newEnd"
            )

    async def _commit_and_invalidate(self):
        await self.db.commit()
        await self.cache.invalidate_resource(CacheTagEnum.CLASSES)

    async def _to_read(self, series_id: UUID) -> schedule_models.ClassSeriesRead:
        series = await self._get_series_internal(series_id)
        return schedule_models.ClassSeriesRead.model_validate(series)

    # --- Public Read Methods (API-Facing) ---

    async def preview(self, data: schedule_models.SchedulePreview) -> list[schedule_models.GeneratedSessionRead]:
        """Expands a rule without touching the database."""
        log.info(f"Previewing {data.rule.recurrence_kind} rule.")
        try:
            sessions = self._expand(self._prepare_rule(data.rule))
            return [schedule_models.GeneratedSessionRead(start=s.start, end=s.end) for s in sessions]
        except SchedulingError as exc:
            log.warning(f"Preview rejected: {exc.message}")
            raise to_http_exception(exc) from exc

    async def get_series_by_id_for_api(self, series_id: UUID) -> schedule_models.ClassSeriesRead:
        log.info(f"Requesting class series {series_id}")
        try:
            return await self._to_read(series_id)
        except SchedulingError as exc:
            raise to_http_exception(exc) from exc
        except Exception as e:
            log.error(f"Error in get_series_by_id_for_api for series {series_id}: {e}", exc_info=True)
            raise

    async def list_series_for_api(self, page: int = 1, limit: int = 10) -> schedule_models.ClassSeriesPage:
        """
        Returns one page of series, newest first, served cache-aside.
        """
        log.info(f"Listing class series page={page} limit={limit}")
        cache_key = self.cache.make_key(CacheTagEnum.CLASSES, "list", {"page": page, "limit": limit})
        cached = await self.cache.get_json(cache_key)
        if cached is not None:
            return schedule_models.ClassSeriesPage.model_validate(cached)

        try:
            total = (await self.db.execute(select(func.count()).select_from(db_models.ClassSeries))).scalar_one()

            stmt = select(db_models.ClassSeries).options(
                selectinload(db_models.ClassSeries.sessions),
                selectinload(db_models.ClassSeries.exceptions),
                selectinload(db_models.ClassSeries.instructor),
                selectinload(db_models.ClassSeries.room).selectinload(db_models.Rooms.room_type)
            ).order_by(
                db_models.ClassSeries.created_at.desc(), db_models.ClassSeries.id
            ).offset((page - 1) * limit).limit(limit)
            result = await self.db.execute(stmt)

            response = schedule_models.ClassSeriesPage(
                items=[schedule_models.ClassSeriesRead.model_validate(series) for series in result.scalars().all()],
                total=total,
                page=page,
                limit=limit,
                total_pages=math.ceil(total / limit) if total else 0
            )
        except Exception as e:
            log.error(f"Database error in list_series_for_api: {e}", exc_info=True)
            raise

        await self.cache.set_json(cache_key, response.model_dump(mode="json", by_alias=True))
        return response

    # --- Public Write Methods (API-Facing) ---

    async def create_series_for_api(self, data: schedule_models.ClassSeriesWrite) -> schedule_models.ClassSeriesRead:
        """
        Expands the rule, rejects conflicts and stores the series with its sessions.
        """
        log.info(f"Creating class series '{data.title}' ({data.rule.recurrence_kind}) for instructor {data.instructor_id} in room {data.room_id}.")
        try:
            instructor = await self._ensure_instructor(data.instructor_id)
            room = await self._ensure_room(data.room_id)

            rule = self._prepare_rule(data.rule)
            generated = self._expand(rule)

            async with scheduling_locks(self.db, data.room_id, data.instructor_id):
                await self._check_conflicts(generated, data.room_id, data.instructor_id)

                new_series = db_models.ClassSeries(
                    title=data.title,
                    instructor=instructor,
                    room=room,
                    sessions=self._to_session_rows(generated),
                    exceptions=[],
                    **self._rule_columns(rule)
                )
                self.db.add(new_series)
                await self.db.flush()
                series_id = new_series.id

                await self._commit_and_invalidate()
            log.info(f"Created class series {series_id} with {len(generated)} sessions.")
            return await self._to_read(series_id)

        except SchedulingError as exc:
            log.warning(f"Create rejected on '{exc.field}': {exc.message}")
            raise to_http_exception(exc) from exc
        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in create_series_for_api: {e}", exc_info=True)
            raise

    async def update_entire_series_for_api(self, series_id: UUID, data: schedule_models.ClassSeriesWrite) -> schedule_models.ClassSeriesRead:
        """
        Replaces the rule of a series. The new expansion is reconciled with the
        recorded exceptions and conflict-checked against every other series.
        """
        log.info(f"Updating entire class series {series_id}.")
        try:
            series = await self._get_series_internal(series_id)
            instructor = await self._ensure_instructor(data.instructor_id)
            room = await self._ensure_room(data.room_id)

            rule = self._prepare_rule(data.rule)
            reconciled = reconcile_sessions(self._expand(rule), series.exceptions)
            if not reconciled:
                raise NoFutureSessionsError(
                    "Every generated session is cancelled by a recorded exception; nothing would remain."
                )

            async with scheduling_locks(self.db, data.room_id, data.instructor_id):
                await self._check_conflicts(reconciled, data.room_id, data.instructor_id, exclude_series_id=series.id)

                series.title = data.title
                series.instructor = instructor
                series.room = room
                for key, value in self._rule_columns(rule).items():
                    setattr(series, key, value)
                series.sessions = self._to_session_rows(reconciled)
                await self.db.flush()

                await self._commit_and_invalidate()
            log.info(f"Class series {series_id} now has {len(reconciled)} sessions.")
            return await self._to_read(series_id)

        except SchedulingError as exc:
            log.warning(f"Update of series {series_id} rejected on '{exc.field}': {exc.message}")
            raise to_http_exception(exc) from exc
        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in update_entire_series_for_api for series {series_id}: {e}", exc_info=True)
            raise

    async def update_single_instance_for_api(
        self,
        series_id: UUID,
        session_id: UUID,
        data: schedule_models.SingleInstanceUpdate
    ) -> schedule_models.SingleInstanceResult:
        """
        Edits one occurrence. A session of a single class is changed in place;
        a session of a recurring series is detached into its own single series.
        Both variants are written in one transaction.
        """
        log.info(f"Updating session {session_id} of series {series_id}.")
        try:
            series = await self._get_series_internal(series_id)
            session = await self._get_session_internal(series_id, session_id)

            new_start = self._as_utc(data.new_start) if data.new_start else session.start
            new_end = self._as_utc(data.new_end) if data.new_end else session.end
            self._validate_interval(new_start, new_end)

            instructor = await self._ensure_instructor(data.instructor_id) if data.instructor_id else series.instructor
            room = await self._ensure_room(data.room_id) if data.room_id else series.room

            candidate = GeneratedSession(start=new_start, end=new_end, anchor=new_start)

            async with scheduling_locks(self.db, room.id, instructor.id):
                await self._check_conflicts([candidate], room.id, instructor.id, exclude_series_id=series.id)

                if series.recurrence_kind == RecurrenceKindEnum.SINGLE.value:
                    series.exceptions.append(db_models.SeriesExceptions(
                        anchor=session.original_start,
                        status=ExceptionStatusEnum.MODIFIED.value,
                        reason=data.reason or "Rescheduled",
                        new_start=new_start,
                        new_end=new_end
                    ))
                    session.start = new_start
                    session.end = new_end
                    series.title = data.title or series.title
                    series.instructor = instructor
                    series.room = room
                    await self.db.flush()

                    await self._commit_and_invalidate()
                    detached_id = None
                else:
                    local_start = new_start.astimezone(self.tz)
                    local_end = new_end.astimezone(self.tz)
                    detached = db_models.ClassSeries(
                        title=data.title or series.title,
                        instructor=instructor,
                        room=room,
                        recurrence_kind=RecurrenceKindEnum.SINGLE.value,
                        series_start_date=local_start.date(),
                        series_end_date=None,
                        interval_unit=1,
                        weekdays=[],
                        month_days=[],
                        manual_dates=[],
                        time_slots=[{"start": f"{local_start:%H:%M}", "end": f"{local_end:%H:%M}"}],
                        sessions=[],
                        exceptions=[]
                    )
                    self.db.add(detached)

                    series.exceptions.append(db_models.SeriesExceptions(
                        anchor=session.original_start,
                        status=ExceptionStatusEnum.CANCELLED.value,
                        reason=data.reason or "Detached from series"
                    ))
                    # the session row keeps its id and moves to the new series
                    series.sessions.remove(session)
                    session.start = new_start
                    session.end = new_end
                    session.original_start = new_start
                    detached.sessions.append(session)
                    await self.db.flush()
                    detached_id = detached.id

                    await self._commit_and_invalidate()

            if detached_id is None:
                log.info(f"Session {session_id} of single class {series_id} modified in place.")
                return schedule_models.SingleInstanceResult(series=await self._to_read(series_id))

            log.info(f"Session {session_id} detached from series {series_id} into new series {detached_id}.")
            return schedule_models.SingleInstanceResult(
                series=await self._to_read(series_id),
                detached=await self._to_read(detached_id)
            )

        except SchedulingError as exc:
            log.warning(f"Single-instance update of {session_id} rejected on '{exc.field}': {exc.message}")
            raise to_http_exception(exc) from exc
        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in update_single_instance_for_api for session {session_id}: {e}", exc_info=True)
            raise

    async def cancel_single_instance_for_api(self, series_id: UUID, session_id: UUID, reason: Optional[str] = None) -> schedule_models.ClassSeriesRead:
        """
        Removes one session and records a CANCELLED exception at its original start,
        so later re-expansions keep it cancelled.
        """
        log.info(f"Cancelling session {session_id} of series {series_id}.")
        try:
            series = await self._get_series_internal(series_id)
            session = await self._get_session_internal(series_id, session_id)

            series.exceptions.append(db_models.SeriesExceptions(
                anchor=session.original_start,
                status=ExceptionStatusEnum.CANCELLED.value,
                reason=reason or "Cancelled"
            ))
            series.sessions.remove(session)
            await self.db.flush()

            await self._commit_and_invalidate()
            if not series.sessions:
                log.warning(f"Series {series_id} has no sessions left after cancelling {session_id}.")
            return await self._to_read(series_id)

        except SchedulingError as exc:
            raise to_http_exception(exc) from exc
        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in cancel_single_instance_for_api for session {session_id}: {e}", exc_info=True)
            raise

    async def delete_series(self, series_id: UUID) -> bool:
        """Deletes a series; its sessions and exceptions go with it."""
        log.info(f"Deleting class series {series_id}.")
        try:
            series = await self._get_series_internal(series_id)
            await self.db.delete(series)
            await self.db.flush()

            await self._commit_and_invalidate()
            return True

        except SchedulingError as exc:
            raise to_http_exception(exc) from exc
        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in delete_series for series {series_id}: {e}", exc_info=True)
            raise

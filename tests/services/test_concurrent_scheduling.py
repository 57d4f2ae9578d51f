'''
Two requests racing for the same room and slot, each with its own session
on one file-backed database.
'''
import asyncio
import pytest
from datetime import date, timedelta
from typing import AsyncGenerator
from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine

from class_scheduler_backend.database import models as db_models
from class_scheduler_backend.database.engine import build_engine, build_session_factory, init_db_schema
from class_scheduler_backend.services.class_service import ClassService
from class_scheduler_backend.models import schedule as schedule_models

from tests.constants import (
    DAYS_AHEAD, TEST_INSTRUCTOR_ID, TEST_OTHER_INSTRUCTOR_ID, TEST_ROOM_ID, TEST_ROOM_TYPE_ID
)


@pytest.fixture(scope="function")
async def file_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'scheduler.db'}")
    await init_db_schema(engine)
    async with build_session_factory(engine)() as session:
        session.add_all([
            db_models.RoomTypes(id=TEST_ROOM_TYPE_ID, name="Lecture Hall"),
            db_models.Rooms(id=TEST_ROOM_ID, room_name="Room A", room_type_id=TEST_ROOM_TYPE_ID, capacity=20),
            db_models.Instructors(id=TEST_INSTRUCTOR_ID, name="Ada Lovelace", email="ada@example.com"),
            db_models.Instructors(id=TEST_OTHER_INSTRUCTOR_ID, name="Grace Hopper", email="grace@example.com"),
        ])
        await session.commit()
    try:
        yield engine
    finally:
        await engine.dispose()


def booking(instructor_id, title: str) -> schedule_models.ClassSeriesWrite:
    day = date.today() + timedelta(days=DAYS_AHEAD)
    return schedule_models.ClassSeriesWrite.model_validate({
        "title": title,
        "instructorId": str(instructor_id),
        "roomId": str(TEST_ROOM_ID),
        "recurrenceKind": "single",
        "seriesStartDate": day.isoformat(),
        "timeSlots": [{"start": "14:00", "end": "15:00"}]
    })


@pytest.mark.anyio
class TestConcurrentScheduling:

    async def test_simultaneous_creates_book_the_room_once(self, file_engine: AsyncEngine, mock_cache):
        factory = build_session_factory(file_engine)

        async def create(instructor_id, title: str):
            async with factory() as session:
                service = ClassService(db=session, cache=mock_cache)
                try:
                    return await service.create_series_for_api(booking(instructor_id, title))
                except HTTPException:
                    await session.rollback()
                    raise

        results = await asyncio.gather(
            create(TEST_INSTRUCTOR_ID, "Algebra I"),
            create(TEST_OTHER_INSTRUCTOR_ID, "Poetry"),
            return_exceptions=True
        )

        created = [r for r in results if isinstance(r, schedule_models.ClassSeriesRead)]
        rejected = [r for r in results if isinstance(r, HTTPException)]
        assert len(created) == 1
        assert len(rejected) == 1
        assert rejected[0].status_code == 409
        assert rejected[0].detail["field"] == "room"

        async with factory() as session:
            stmt = select(func.count()).select_from(db_models.ClassSeries).filter(
                db_models.ClassSeries.room_id == TEST_ROOM_ID
            )
            assert (await session.execute(stmt)).scalar_one() == 1

'''
Pytest configuration for the FastAPI application.

This file sets up fixtures for:
1. Forcing the application into TEST_MODE before any code is imported.
2. Providing a fresh in-memory database and session for each service test.
3. Providing a FastAPI TestClient for endpoint testing.
4. Providing instances of all service classes, pre-injected with a test db session
   and a mocked cache.
'''

import pytest
import os
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

# --- Force test configuration before the application is imported ---
os.environ["TEST_MODE"] = "True"
os.environ["TIMEZONE"] = "UTC"
os.environ.pop("REDIS_URL", None)

# --- FastAPI & Testing Imports ---
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine

# --- Constant Imports ----
from tests.constants import (
    TEST_INSTRUCTOR_ID,
    TEST_OTHER_INSTRUCTOR_ID,
    TEST_ROOM_TYPE_ID,
    TEST_ROOM_ID,
    TEST_OTHER_ROOM_ID,
    TEST_INSTRUCTOR_NAME,
    TEST_INSTRUCTOR_EMAIL,
    TEST_OTHER_INSTRUCTOR_NAME,
    TEST_ROOM_NAME,
    TEST_OTHER_ROOM_NAME,
)
from tests.database import factories

# --- Application Imports ---
from class_scheduler_backend.main import app
from class_scheduler_backend.common.config import settings
from class_scheduler_backend.database.engine import build_engine, build_session_factory, init_db_schema
from class_scheduler_backend.database import models as db_models
from class_scheduler_backend.services.cache_service import CacheService
from class_scheduler_backend.services.class_service import ClassService
from class_scheduler_backend.services.instructor_service import InstructorService
from class_scheduler_backend.services.room_service import RoomService, RoomTypeService


@pytest.fixture(scope="session")
def anyio_backend():
    """
    Override the default 'anyio_backend' fixture.
    1. Forces the backend to 'asyncio'.
    2. Promotes the scope to 'session' (solves 'ScopeMismatch').
    """
    return "asyncio"


# --- 1. Endpoint Client ---

@pytest.fixture(scope="function")
def client() -> TestClient:
    """
    Runs the app's lifespan, which creates a brand-new in-memory database
    for every test, and tears it down afterwards.
    """
    assert settings.TEST_MODE is True, \
        "TEST_MODE was not set to True! Check your .env file or environment."

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# --- 2. Function-Scoped Database (For Service Tests) ---

@pytest.fixture(scope="function")
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """A private in-memory database with the schema in place."""
    engine = build_engine(settings.DATABASE_URL_TEST)
    await init_db_schema(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    session = build_session_factory(db_engine)()
    factories.test_db_session = session
    try:
        yield session
    finally:
        factories.test_db_session = None
        await session.rollback()
        await session.close()


# --- 3. SERVICE FIXTURES ---

@pytest.fixture(scope="function")
def mock_cache() -> CacheService:
    """A cache that always misses and records every invalidation."""
    mock_service = MagicMock(spec=CacheService)
    mock_service.make_key = MagicMock(side_effect=lambda tag, name, params=None: f"cache:{tag.value}:{name}")
    mock_service.get_json = AsyncMock(return_value=None)
    mock_service.set_json = AsyncMock()
    mock_service.invalidate = AsyncMock()
    mock_service.invalidate_resource = AsyncMock()
    return mock_service

@pytest.fixture(scope="function")
def class_service(db_session: AsyncSession, mock_cache: CacheService) -> ClassService:
    return ClassService(db=db_session, cache=mock_cache)

@pytest.fixture(scope="function")
def instructor_service(db_session: AsyncSession, mock_cache: CacheService) -> InstructorService:
    return InstructorService(db=db_session, cache=mock_cache)

@pytest.fixture(scope="function")
def room_type_service(db_session: AsyncSession, mock_cache: CacheService) -> RoomTypeService:
    return RoomTypeService(db=db_session, cache=mock_cache)

@pytest.fixture(scope="function")
def room_service(db_session: AsyncSession, mock_cache: CacheService) -> RoomService:
    return RoomService(db=db_session, cache=mock_cache)


# --- 4. DATA FIXTURES ---

@pytest.fixture(scope="function")
async def test_instructor_orm(db_session: AsyncSession) -> db_models.Instructors:
    instructor = factories.InstructorFactory(id=TEST_INSTRUCTOR_ID, name=TEST_INSTRUCTOR_NAME, email=TEST_INSTRUCTOR_EMAIL)
    await db_session.commit()
    return instructor

@pytest.fixture(scope="function")
async def test_other_instructor_orm(db_session: AsyncSession) -> db_models.Instructors:
    instructor = factories.InstructorFactory(id=TEST_OTHER_INSTRUCTOR_ID, name=TEST_OTHER_INSTRUCTOR_NAME)
    await db_session.commit()
    return instructor

@pytest.fixture(scope="function")
async def test_room_type_orm(db_session: AsyncSession) -> db_models.RoomTypes:
    room_type = factories.RoomTypeFactory(id=TEST_ROOM_TYPE_ID, name="Lecture Hall")
    await db_session.commit()
    return room_type

@pytest.fixture(scope="function")
async def test_room_orm(db_session: AsyncSession, test_room_type_orm: db_models.RoomTypes) -> db_models.Rooms:
    room = factories.RoomFactory(id=TEST_ROOM_ID, room_name=TEST_ROOM_NAME, room_type=test_room_type_orm)
    await db_session.commit()
    return room

@pytest.fixture(scope="function")
async def test_other_room_orm(db_session: AsyncSession, test_room_type_orm: db_models.RoomTypes) -> db_models.Rooms:
    room = factories.RoomFactory(id=TEST_OTHER_ROOM_ID, room_name=TEST_OTHER_ROOM_NAME, room_type=test_room_type_orm)
    await db_session.commit()
    return room

@pytest.fixture(scope="function")
async def seeded_catalogue(
    test_instructor_orm: db_models.Instructors,
    test_other_instructor_orm: db_models.Instructors,
    test_room_orm: db_models.Rooms,
    test_other_room_orm: db_models.Rooms
) -> dict:
    """Two instructors and two rooms, ready to be scheduled."""
    return {
        "instructor": test_instructor_orm,
        "other_instructor": test_other_instructor_orm,
        "room": test_room_orm,
        "other_room": test_other_room_orm,
    }


# --- 5. ENDPOINT DATA FIXTURES ---

@pytest.fixture(scope="function")
def api_catalogue(client: TestClient) -> dict:
    """Seeds one room type, two rooms and two instructors through the API."""
    room_type = client.post("/room-types/", json={"name": "Lecture Hall"}).json()
    room = client.post("/rooms/", json={"roomName": TEST_ROOM_NAME, "roomTypeId": room_type["id"], "capacity": 30}).json()
    other_room = client.post("/rooms/", json={"roomName": TEST_OTHER_ROOM_NAME, "roomTypeId": room_type["id"], "capacity": 12}).json()
    instructor = client.post("/instructors/", json={"name": TEST_INSTRUCTOR_NAME, "email": TEST_INSTRUCTOR_EMAIL}).json()
    other_instructor = client.post("/instructors/", json={"name": TEST_OTHER_INSTRUCTOR_NAME, "email": "grace@example.com"}).json()
    return {
        "room_type": room_type,
        "room": room,
        "other_room": other_room,
        "instructor": instructor,
        "other_instructor": other_instructor,
    }

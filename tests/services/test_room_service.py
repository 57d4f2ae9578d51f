import pytest
from datetime import date, timedelta
from fastapi import HTTPException

from class_scheduler_backend.database import models as db_models
from class_scheduler_backend.database.db_enums import CacheTagEnum
from class_scheduler_backend.services.room_service import RoomService, RoomTypeService
from class_scheduler_backend.services.class_service import ClassService
from class_scheduler_backend.models import catalogue as catalogue_models
from class_scheduler_backend.models import schedule as schedule_models

from tests.constants import MISSING_ID, DAYS_AHEAD


@pytest.mark.anyio
class TestRoomTypeService:

    async def test_create_and_list_room_types(self, room_type_service: RoomTypeService, mock_cache):
        await room_type_service.create_room_type_for_api(catalogue_models.RoomTypeCreate(name="Laboratory"))
        await room_type_service.create_room_type_for_api(catalogue_models.RoomTypeCreate(name=" Auditorium "))

        room_types = await room_type_service.get_all_room_types_for_api()
        assert [room_type.name for room_type in room_types] == ["Auditorium", "Laboratory"]
        mock_cache.invalidate_resource.assert_awaited_with(CacheTagEnum.ROOMS)

    async def test_duplicate_room_type_name(self, room_type_service: RoomTypeService, test_room_type_orm: db_models.RoomTypes):
        with pytest.raises(HTTPException) as e:
            await room_type_service.create_room_type_for_api(catalogue_models.RoomTypeCreate(name="lecture hall"))
        assert e.value.status_code == 400
        assert e.value.detail["field"] == "name"

    async def test_rename_room_type(self, room_type_service: RoomTypeService, test_room_type_orm: db_models.RoomTypes):
        renamed = await room_type_service.update_room_type_for_api(
            test_room_type_orm.id, catalogue_models.RoomTypeUpdate(name="Seminar Room")
        )
        assert renamed.name == "Seminar Room"

    async def test_delete_room_type_in_use(self, room_type_service: RoomTypeService, test_room_orm: db_models.Rooms):
        with pytest.raises(HTTPException) as e:
            await room_type_service.delete_room_type(test_room_orm.room_type_id)
        assert e.value.status_code == 400
        assert e.value.detail["field"] == "roomTypeId"

    async def test_delete_unused_room_type(self, room_type_service: RoomTypeService, test_room_type_orm: db_models.RoomTypes):
        assert await room_type_service.delete_room_type(test_room_type_orm.id) is True
        assert await room_type_service.get_all_room_types_for_api() == []


@pytest.mark.anyio
class TestRoomService:

    async def test_create_room(self, room_service: RoomService, test_room_type_orm: db_models.RoomTypes, mock_cache):
        room = await room_service.create_room_for_api(
            catalogue_models.RoomCreate(room_name="Studio C", room_type_id=test_room_type_orm.id, capacity=8)
        )
        assert room.room_name == "Studio C"
        assert room.capacity == 8
        assert room.room_type.id == test_room_type_orm.id
        mock_cache.invalidate_resource.assert_awaited_once_with(CacheTagEnum.ROOMS)

    async def test_create_room_with_unknown_type(self, room_service: RoomService):
        with pytest.raises(HTTPException) as e:
            await room_service.create_room_for_api(
                catalogue_models.RoomCreate(room_name="Nowhere", room_type_id=MISSING_ID, capacity=8)
            )
        assert e.value.status_code == 404
        assert e.value.detail["field"] == "roomTypeId"

    async def test_list_rooms(self, room_service: RoomService, seeded_catalogue: dict):
        rooms = await room_service.get_all_rooms_for_api()
        assert [room.room_name for room in rooms] == ["Studio A", "Studio B"]
        assert rooms[0].room_type.name == "Lecture Hall"

    async def test_update_room_capacity(self, room_service: RoomService, test_room_orm: db_models.Rooms):
        room = await room_service.update_room_for_api(test_room_orm.id, catalogue_models.RoomUpdate(capacity=45))
        assert room.capacity == 45
        assert room.room_name == test_room_orm.room_name

    async def test_get_missing_room(self, room_service: RoomService):
        with pytest.raises(HTTPException) as e:
            await room_service.get_room_by_id_for_api(MISSING_ID)
        assert e.value.status_code == 404

    async def test_delete_booked_room_is_refused(self, room_service: RoomService, class_service: ClassService, seeded_catalogue: dict):
        day = date.today() + timedelta(days=DAYS_AHEAD)
        await class_service.create_series_for_api(schedule_models.ClassSeriesWrite.model_validate({
            "title": "Pottery",
            "instructorId": str(seeded_catalogue["instructor"].id),
            "roomId": str(seeded_catalogue["room"].id),
            "recurrenceKind": "single",
            "seriesStartDate": day.isoformat(),
            "timeSlots": [{"start": "10:00", "end": "11:00"}]
        }))
        with pytest.raises(HTTPException) as e:
            await room_service.delete_room(seeded_catalogue["room"].id)
        assert e.value.status_code == 400
        assert e.value.detail["field"] == "roomId"

    async def test_delete_free_room(self, room_service: RoomService, test_room_orm: db_models.Rooms):
        assert await room_service.delete_room(test_room_orm.id) is True
        with pytest.raises(HTTPException):
            await room_service.get_room_by_id_for_api(test_room_orm.id)

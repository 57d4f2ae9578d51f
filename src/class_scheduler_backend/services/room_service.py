'''
Room and room type services. Both write under the ROOMS cache tag,
which ripples into CLASSES.
'''
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..common.logger import log
from ..database import models as db_models
from ..database.db_enums import CacheTagEnum
from ..database.engine import get_db_session
from ..models import catalogue as catalogue_models
from .cache_service import CacheService, get_cache_service


class RoomTypeService:
    """
    Service for the room type catalogue.
    """
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        cache: Annotated[CacheService, Depends(get_cache_service)]
    ):
        self.db = db
        self.cache = cache

    async def _get_room_type_by_id_internal(self, room_type_id: UUID) -> db_models.RoomTypes:
        room_type = await self.db.get(db_models.RoomTypes, room_type_id)
        if not room_type:
            log.warning(f"Tried to fetch non-existing room type: {room_type_id}")
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"field": "roomTypeId", "message": f"Room type {room_type_id} was not found."}
            )
        return room_type

    async def _ensure_name_free(self, name: str, current_id: UUID | None = None):
        stmt = select(db_models.RoomTypes.id).filter(func.lower(db_models.RoomTypes.name) == name.lower())
        existing_id = (await self.db.execute(stmt)).scalars().first()
        if existing_id is not None and existing_id != current_id:
            log.warning(f"Rejected duplicate room type name: {name}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"field": "name", "message": f"Room type '{name}' already exists."}
            )

    async def _commit_and_invalidate(self):
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            log.warning(f"Integrity error while saving room type: {e}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"field": "name", "message": "A room type with this name already exists."}
            ) from e
        await self.cache.invalidate_resource(CacheTagEnum.ROOMS)

    async def get_all_room_types_for_api(self) -> list[catalogue_models.RoomTypeRead]:
        log.info("Listing all room types.")
        cache_key = self.cache.make_key(CacheTagEnum.ROOMS, "types")
        cached = await self.cache.get_json(cache_key)
        if cached is not None:
            return [catalogue_models.RoomTypeRead.model_validate(item) for item in cached]

        result = await self.db.execute(select(db_models.RoomTypes).order_by(db_models.RoomTypes.name))
        room_types = [catalogue_models.RoomTypeRead.model_validate(row) for row in result.scalars().all()]

        await self.cache.set_json(cache_key, [item.model_dump(mode="json", by_alias=True) for item in room_types])
        return room_types

    async def create_room_type_for_api(self, data: catalogue_models.RoomTypeCreate) -> catalogue_models.RoomTypeRead:
        log.info(f"Creating room type '{data.name}'.")
        try:
            await self._ensure_name_free(data.name)
            new_room_type = db_models.RoomTypes(name=data.name)
            self.db.add(new_room_type)

            await self._commit_and_invalidate()
            return catalogue_models.RoomTypeRead.model_validate(new_room_type)

        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in create_room_type_for_api: {e}", exc_info=True)
            raise

    async def update_room_type_for_api(self, room_type_id: UUID, data: catalogue_models.RoomTypeUpdate) -> catalogue_models.RoomTypeRead:
        log.info(f"Renaming room type {room_type_id} to '{data.name}'.")
        try:
            room_type = await self._get_room_type_by_id_internal(room_type_id)
            await self._ensure_name_free(data.name, current_id=room_type.id)
            room_type.name = data.name

            await self._commit_and_invalidate()
            return catalogue_models.RoomTypeRead.model_validate(room_type)

        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in update_room_type_for_api for room type {room_type_id}: {e}", exc_info=True)
            raise

    async def delete_room_type(self, room_type_id: UUID) -> bool:
        log.info(f"Deleting room type {room_type_id}.")
        try:
            room_type = await self._get_room_type_by_id_internal(room_type_id)

            stmt = select(func.count()).select_from(db_models.Rooms).filter(db_models.Rooms.room_type_id == room_type_id)
            in_use = (await self.db.execute(stmt)).scalar_one()
            if in_use:
                log.warning(f"Refused to delete room type {room_type_id}: used by {in_use} rooms.")
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail={
                        "field": "roomTypeId",
                        "message": f"Room type '{room_type.name}' is used by {in_use} rooms and cannot be deleted."
                    }
                )

            await self.db.delete(room_type)
            await self._commit_and_invalidate()
            return True

        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in delete_room_type for room type {room_type_id}: {e}", exc_info=True)
            raise


class RoomService:
    """
    Service for room CRUD.
    """
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        cache: Annotated[CacheService, Depends(get_cache_service)]
    ):
        self.db = db
        self.cache = cache

    # --- Internal Fetchers ---

    async def _get_room_by_id_internal(self, room_id: UUID) -> db_models.Rooms:
        """
        Fetches a room with its type loaded. Raises 404 if not found.
        """
        stmt = select(db_models.Rooms).options(
            selectinload(db_models.Rooms.room_type)
        ).filter(
            db_models.Rooms.id == room_id
        ).execution_options(populate_existing=True)
        room = (await self.db.execute(stmt)).scalars().first()
        if not room:
            log.warning(f"Tried to fetch non-existing room: {room_id}")
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"field": "roomId", "message": f"Room {room_id} was not found."}
            )
        return room

    async def _ensure_room_type(self, room_type_id: UUID):
        if await self.db.get(db_models.RoomTypes, room_type_id) is None:
            log.warning(f"Room references non-existing room type: {room_type_id}")
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"field": "roomTypeId", "message": f"Room type {room_type_id} was not found."}
            )

    async def _commit_and_invalidate(self):
        await self.db.commit()
        await self.cache.invalidate_resource(CacheTagEnum.ROOMS)

    # --- Public Read Methods (API-Facing) ---

    async def get_all_rooms_for_api(self) -> list[catalogue_models.RoomRead]:
        log.info("Listing all rooms.")
        cache_key = self.cache.make_key(CacheTagEnum.ROOMS, "list")
        cached = await self.cache.get_json(cache_key)
        if cached is not None:
            return [catalogue_models.RoomRead.model_validate(item) for item in cached]

        try:
            stmt = select(db_models.Rooms).options(
                selectinload(db_models.Rooms.room_type)
            ).order_by(db_models.Rooms.room_name, db_models.Rooms.id)
            result = await self.db.execute(stmt)
            rooms = [catalogue_models.RoomRead.model_validate(row) for row in result.scalars().all()]
        except Exception as e:
            log.error(f"Database error in get_all_rooms_for_api: {e}", exc_info=True)
            raise

        await self.cache.set_json(cache_key, [item.model_dump(mode="json", by_alias=True) for item in rooms])
        return rooms

    async def get_room_by_id_for_api(self, room_id: UUID) -> catalogue_models.RoomRead:
        room = await self._get_room_by_id_internal(room_id)
        return catalogue_models.RoomRead.model_validate(room)

    # --- Public Write Methods (API-Facing) ---

    async def create_room_for_api(self, data: catalogue_models.RoomCreate) -> catalogue_models.RoomRead:
        log.info(f"Creating room '{data.room_name}' (type {data.room_type_id}, capacity {data.capacity}).")
        try:
            await self._ensure_room_type(data.room_type_id)

            new_room = db_models.Rooms(room_name=data.room_name, room_type_id=data.room_type_id, capacity=data.capacity)
            self.db.add(new_room)
            await self.db.flush()
            room_id = new_room.id

            await self._commit_and_invalidate()
            return await self.get_room_by_id_for_api(room_id)

        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in create_room_for_api: {e}", exc_info=True)
            raise

    async def update_room_for_api(self, room_id: UUID, data: catalogue_models.RoomUpdate) -> catalogue_models.RoomRead:
        log.info(f"Updating room {room_id}.")
        try:
            room = await self._get_room_by_id_internal(room_id)

            update_data = data.model_dump(exclude_unset=True, exclude_none=True)
            if not update_data:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update.")

            if "room_type_id" in update_data:
                await self._ensure_room_type(update_data["room_type_id"])

            for key, value in update_data.items():
                setattr(room, key, value)
            await self.db.flush()

            await self._commit_and_invalidate()
            return await self.get_room_by_id_for_api(room_id)

        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in update_room_for_api for room {room_id}: {e}", exc_info=True)
            raise

    async def delete_room(self, room_id: UUID) -> bool:
        """
        Deletes a room. Refused while any class series is held in it.
        """
        log.info(f"Deleting room {room_id}.")
        try:
            room = await self._get_room_by_id_internal(room_id)

            stmt = select(func.count()).select_from(db_models.ClassSeries).filter(db_models.ClassSeries.room_id == room_id)
            booked = (await self.db.execute(stmt)).scalar_one()
            if booked:
                log.warning(f"Refused to delete room {room_id}: used by {booked} class series.")
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail={
                        "field": "roomId",
                        "message": f"Room {room.room_name} is used by {booked} class series and cannot be deleted."
                    }
                )

            await self.db.delete(room)
            await self._commit_and_invalidate()
            return True

        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in delete_room for room {room_id}: {e}", exc_info=True)
            raise

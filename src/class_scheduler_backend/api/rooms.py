'''
API endpoints for managing Rooms and Room Types.
'''
from typing import Annotated, Any, List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from ..models import catalogue as catalogue_models
from ..services.room_service import RoomService, RoomTypeService


class RoomTypesAPI:
    """
    A class to encapsulate CRUD endpoints for Room Types.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/room-types",
            tags=["Room Types"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.list_room_types,
                methods=["GET"],
                response_model=List[catalogue_models.RoomTypeRead])

        self.router.add_api_route(
                "/",
                self.create_room_type,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=catalogue_models.RoomTypeRead)

        self.router.add_api_route(
                "/{room_type_id}",
                self.update_room_type,
                methods=["PATCH"],
                response_model=catalogue_models.RoomTypeRead)

        self.router.add_api_route(
                "/{room_type_id}",
                self.delete_room_type,
                methods=["DELETE"],
                status_code=status.HTTP_204_NO_CONTENT)

    async def list_room_types(
        self,
        room_type_service: Annotated[RoomTypeService, Depends(RoomTypeService)]
    ) -> List[Any]:
        return await room_type_service.get_all_room_types_for_api()

    async def create_room_type(
        self,
        room_type_data: catalogue_models.RoomTypeCreate,
        room_type_service: Annotated[RoomTypeService, Depends(RoomTypeService)]
    ) -> Any:
        return await room_type_service.create_room_type_for_api(room_type_data)

    async def update_room_type(
        self,
        room_type_id: UUID,
        room_type_data: catalogue_models.RoomTypeUpdate,
        room_type_service: Annotated[RoomTypeService, Depends(RoomTypeService)]
    ) -> Any:
        return await room_type_service.update_room_type_for_api(room_type_id, room_type_data)

    async def delete_room_type(
        self,
        room_type_id: UUID,
        room_type_service: Annotated[RoomTypeService, Depends(RoomTypeService)]
    ):
        """
        Deletes a room type that no room uses.
        """
        await room_type_service.delete_room_type(room_type_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)


class RoomsAPI:
    """
    A class to encapsulate CRUD endpoints for Rooms.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/rooms",
            tags=["Rooms"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.list_rooms,
                methods=["GET"],
                response_model=List[catalogue_models.RoomRead])

        self.router.add_api_route(
                "/{room_id}",
                self.get_room,
                methods=["GET"],
                response_model=catalogue_models.RoomRead)

        self.router.add_api_route(
                "/",
                self.create_room,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=catalogue_models.RoomRead)

        self.router.add_api_route(
                "/{room_id}",
                self.update_room,
                methods=["PATCH"],
                response_model=catalogue_models.RoomRead)

        self.router.add_api_route(
                "/{room_id}",
                self.delete_room,
                methods=["DELETE"],
                status_code=status.HTTP_204_NO_CONTENT)

    async def list_rooms(
        self,
        room_service: Annotated[RoomService, Depends(RoomService)]
    ) -> List[Any]:
        return await room_service.get_all_rooms_for_api()

    async def get_room(
        self,
        room_id: UUID,
        room_service: Annotated[RoomService, Depends(RoomService)]
    ) -> Any:
        return await room_service.get_room_by_id_for_api(room_id)

    async def create_room(
        self,
        room_data: catalogue_models.RoomCreate,
        room_service: Annotated[RoomService, Depends(RoomService)]
    ) -> Any:
        return await room_service.create_room_for_api(room_data)

    async def update_room(
        self,
        room_id: UUID,
        room_data: catalogue_models.RoomUpdate,
        room_service: Annotated[RoomService, Depends(RoomService)]
    ) -> Any:
        return await room_service.update_room_for_api(room_id, room_data)

    async def delete_room(
        self,
        room_id: UUID,
        room_service: Annotated[RoomService, Depends(RoomService)]
    ):
        """
        Deletes a room that no class is booked in.
        """
        await room_service.delete_room(room_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)


# Instantiate the classes and export their routers
room_types_api = RoomTypesAPI()
room_types_router = room_types_api.router

rooms_api = RoomsAPI()
router = rooms_api.router

'''
API endpoints for managing Instructors.
'''
from typing import Annotated, Any, List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from ..models import catalogue as catalogue_models
from ..services.instructor_service import InstructorService


class InstructorsAPI:
    """
    A class to encapsulate CRUD endpoints for Instructors.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/instructors",
            tags=["Instructors"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.list_instructors,
                methods=["GET"],
                response_model=List[catalogue_models.InstructorRead])

        self.router.add_api_route(
                "/{instructor_id}",
                self.get_instructor,
                methods=["GET"],
                response_model=catalogue_models.InstructorRead)

        self.router.add_api_route(
                "/",
                self.create_instructor,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=catalogue_models.InstructorRead)

        self.router.add_api_route(
                "/{instructor_id}",
                self.update_instructor,
                methods=["PATCH"],
                response_model=catalogue_models.InstructorRead)

        self.router.add_api_route(
                "/{instructor_id}",
                self.delete_instructor,
                methods=["DELETE"],
                status_code=status.HTTP_204_NO_CONTENT)

    async def list_instructors(
        self,
        instructor_service: Annotated[InstructorService, Depends(InstructorService)]
    ) -> List[Any]:
        return await instructor_service.get_all_instructors_for_api()

    async def get_instructor(
        self,
        instructor_id: UUID,
        instructor_service: Annotated[InstructorService, Depends(InstructorService)]
    ) -> Any:
        return await instructor_service.get_instructor_by_id_for_api(instructor_id)

    async def create_instructor(
        self,
        instructor_data: catalogue_models.InstructorCreate,
        instructor_service: Annotated[InstructorService, Depends(InstructorService)]
    ) -> Any:
        """
        Creates a new instructor. Emails are unique.
        """
        return await instructor_service.create_instructor_for_api(instructor_data)

    async def update_instructor(
        self,
        instructor_id: UUID,
        instructor_data: catalogue_models.InstructorUpdate,
        instructor_service: Annotated[InstructorService, Depends(InstructorService)]
    ) -> Any:
        return await instructor_service.update_instructor_for_api(instructor_id, instructor_data)

    async def delete_instructor(
        self,
        instructor_id: UUID,
        instructor_service: Annotated[InstructorService, Depends(InstructorService)]
    ):
        """
        Deletes an instructor who is not assigned to any class.
        """
        await instructor_service.delete_instructor(instructor_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)


# Instantiate the class and export its router
instructors_api = InstructorsAPI()
router = instructors_api.router

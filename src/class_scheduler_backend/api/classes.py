'''
API endpoints for managing class series and their individual sessions.
'''
from typing import Annotated, Any, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from ..models import schedule as schedule_models
from ..services.class_service import ClassService


class ClassesAPI:
    """
    A class to encapsulate the endpoints for class series.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/classes",
            tags=["Classes"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/preview",
                self.preview_schedule,
                methods=["POST"],
                response_model=List[schedule_models.GeneratedSessionRead])

        self.router.add_api_route(
                "/",
                self.list_classes,
                methods=["GET"],
                response_model=schedule_models.ClassSeriesPage)

        self.router.add_api_route(
                "/{series_id}",
                self.get_class,
                methods=["GET"],
                response_model=schedule_models.ClassSeriesRead)

        self.router.add_api_route(
                "/",
                self.create_class,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=schedule_models.ClassSeriesRead)

        self.router.add_api_route(
                "/{series_id}",
                self.update_class,
                methods=["PUT"],
                response_model=schedule_models.ClassSeriesRead)

        self.router.add_api_route(
                "/{series_id}",
                self.delete_class,
                methods=["DELETE"],
                status_code=status.HTTP_204_NO_CONTENT)

        self.router.add_api_route(
                "/{series_id}/instances/{session_id}",
                self.update_instance,
                methods=["PATCH"],
                response_model=schedule_models.SingleInstanceResult)

        self.router.add_api_route(
                "/{series_id}/instances/{session_id}",
                self.cancel_instance,
                methods=["DELETE"],
                response_model=schedule_models.ClassSeriesRead)

    async def preview_schedule(
        self,
        rule_data: schedule_models.SchedulePreview,
        class_service: Annotated[ClassService, Depends(ClassService)]
    ) -> List[Any]:
        """
        Expands a recurrence rule into sessions without saving anything.
        """
        return await class_service.preview(rule_data)

    async def list_classes(
        self,
        class_service: Annotated[ClassService, Depends(ClassService)],
        page: Annotated[int, Query(ge=1)] = 1,
        limit: Annotated[int, Query(ge=1, le=100)] = 10
    ) -> Any:
        """
        Retrieves one page of class series, newest first.
        """
        return await class_service.list_series_for_api(page=page, limit=limit)

    async def get_class(
        self,
        series_id: UUID,
        class_service: Annotated[ClassService, Depends(ClassService)]
    ) -> Any:
        return await class_service.get_series_by_id_for_api(series_id)

    async def create_class(
        self,
        class_data: schedule_models.ClassSeriesWrite,
        class_service: Annotated[ClassService, Depends(ClassService)]
    ) -> Any:
        """
        Creates a class series. Rejected with 409 when any session collides
        with the instructor's or the room's existing sessions.
        """
        return await class_service.create_series_for_api(class_data)

    async def update_class(
        self,
        series_id: UUID,
        class_data: schedule_models.ClassSeriesWrite,
        class_service: Annotated[ClassService, Depends(ClassService)]
    ) -> Any:
        """
        Replaces the whole rule. Recorded exceptions are re-applied.
        """
        return await class_service.update_entire_series_for_api(series_id, class_data)

    async def delete_class(
        self,
        series_id: UUID,
        class_service: Annotated[ClassService, Depends(ClassService)]
    ):
        await class_service.delete_series(series_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    async def update_instance(
        self,
        series_id: UUID,
        session_id: UUID,
        instance_data: schedule_models.SingleInstanceUpdate,
        class_service: Annotated[ClassService, Depends(ClassService)]
    ) -> Any:
        """
        Edits one occurrence, detaching it from a recurring series.
        """
        return await class_service.update_single_instance_for_api(series_id, session_id, instance_data)

    async def cancel_instance(
        self,
        series_id: UUID,
        session_id: UUID,
        class_service: Annotated[ClassService, Depends(ClassService)],
        reason: Optional[str] = None
    ) -> Any:
        """
        Cancels one occurrence of a series.
        """
        return await class_service.cancel_single_instance_for_api(series_id, session_id, reason)


# Instantiate the class and export its router
classes_api = ClassesAPI()
router = classes_api.router

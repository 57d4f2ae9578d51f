'''

'''
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.logger import log
from ..database import models as db_models
from ..database.db_enums import CacheTagEnum
from ..database.engine import get_db_session
from ..models import catalogue as catalogue_models
from .cache_service import CacheService, get_cache_service


class InstructorService:
    """
    Service for instructor CRUD. Writes invalidate the INSTRUCTORS tag,
    which ripples into CLASSES.
    """
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        cache: Annotated[CacheService, Depends(get_cache_service)]
    ):
        self.db = db
        self.cache = cache

    # --- Internal Fetcher ---

    async def _get_instructor_by_id_internal(self, instructor_id: UUID) -> db_models.Instructors:
        log.info(f"Internal fetch for instructor by ID: {instructor_id}")
        instructor = await self.db.get(db_models.Instructors, instructor_id)
        if not instructor:
            log.warning(f"Tried to fetch non-existing instructor: {instructor_id}")
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"field": "instructorId", "message": f"Instructor {instructor_id} was not found."}
            )
        return instructor

    async def _ensure_email_free(self, email: str, current_id: UUID | None = None):
        stmt = select(db_models.Instructors.id).filter(db_models.Instructors.email == email)
        existing_id = (await self.db.execute(stmt)).scalars().first()
        if existing_id is not None and existing_id != current_id:
            log.warning(f"Rejected duplicate instructor email: {email}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"field": "email", "message": f"An instructor with email {email} already exists."}
            )

    async def _commit_and_invalidate(self):
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            log.warning(f"Integrity error while saving instructor: {e}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"field": "email", "message": "An instructor with this email already exists."}
            ) from e
        await self.cache.invalidate_resource(CacheTagEnum.INSTRUCTORS)

    # --- Public Read Methods (API-Facing) ---

    async def get_all_instructors_for_api(self) -> list[catalogue_models.InstructorRead]:
        log.info("Listing all instructors.")
        cache_key = self.cache.make_key(CacheTagEnum.INSTRUCTORS, "list")
        cached = await self.cache.get_json(cache_key)
        if cached is not None:
            return [catalogue_models.InstructorRead.model_validate(item) for item in cached]

        try:
            stmt = select(db_models.Instructors).order_by(db_models.Instructors.name, db_models.Instructors.id)
            result = await self.db.execute(stmt)
            instructors = [catalogue_models.InstructorRead.model_validate(row) for row in result.scalars().all()]
        except Exception as e:
            log.error(f"Database error in get_all_instructors_for_api: {e}", exc_info=True)
            raise

        await self.cache.set_json(cache_key, [item.model_dump(mode="json", by_alias=True) for item in instructors])
        return instructors

    async def get_instructor_by_id_for_api(self, instructor_id: UUID) -> catalogue_models.InstructorRead:
        instructor = await self._get_instructor_by_id_internal(instructor_id)
        return catalogue_models.InstructorRead.model_validate(instructor)

    # --- Public Write Methods (API-Facing) ---

    async def create_instructor_for_api(self, data: catalogue_models.InstructorCreate) -> catalogue_models.InstructorRead:
        log.info(f"Creating instructor {data.email}.")
        try:
            await self._ensure_email_free(data.email)

            new_instructor = db_models.Instructors(name=data.name, email=data.email)
            self.db.add(new_instructor)

            await self._commit_and_invalidate()
            return catalogue_models.InstructorRead.model_validate(new_instructor)

        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in create_instructor_for_api: {e}", exc_info=True)
            raise

    async def update_instructor_for_api(self, instructor_id: UUID, data: catalogue_models.InstructorUpdate) -> catalogue_models.InstructorRead:
        log.info(f"Updating instructor {instructor_id}.")
        try:
            instructor = await self._get_instructor_by_id_internal(instructor_id)

            update_data = data.model_dump(exclude_unset=True, exclude_none=True)
            if not update_data:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update.")

            if "email" in update_data:
                await self._ensure_email_free(update_data["email"], current_id=instructor.id)

            for key, value in update_data.items():
                setattr(instructor, key, value)

            await self._commit_and_invalidate()
            return catalogue_models.InstructorRead.model_validate(instructor)

        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in update_instructor_for_api for instructor {instructor_id}: {e}", exc_info=True)
            raise

    async def delete_instructor(self, instructor_id: UUID) -> bool:
        """
        Deletes an instructor. Refused while any class series still references them.
        """
        log.info(f"Deleting instructor {instructor_id}.")
        try:
            instructor = await self._get_instructor_by_id_internal(instructor_id)

            stmt = select(func.count()).select_from(db_models.ClassSeries).filter(
                db_models.ClassSeries.instructor_id == instructor_id
            )
            assigned = (await self.db.execute(stmt)).scalar_one()
            if assigned:
                log.warning(f"Refused to delete instructor {instructor_id}: assigned to {assigned} class series.")
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail={
                        "field": "instructorId",
                        "message": f"Instructor {instructor.name} is assigned to {assigned} class series and cannot be deleted."
                    }
                )

            await self.db.delete(instructor)
            await self.db.flush()

            await self._commit_and_invalidate()
            return True

        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Error in delete_instructor for instructor {instructor_id}: {e}", exc_info=True)
            raise

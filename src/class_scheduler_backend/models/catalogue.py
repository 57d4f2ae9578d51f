'''
Instructor, Room Type and Room API Models
'''
from typing import Any, Optional
from uuid import UUID

from pydantic import Field, field_validator

from .base import APIModel


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _lower(value: Any) -> Any:
    return value.lower() if isinstance(value, str) else value


# --- Instructors ---

class InstructorCreate(APIModel):
    name: str = Field(..., min_length=2)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return _strip(value)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value: Any) -> Any:
        return _lower(_strip(value))


class InstructorUpdate(APIModel):
    """All fields optional to allow partial updates (PATCH)."""
    name: Optional[str] = Field(None, min_length=2)
    email: Optional[str] = Field(None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return _strip(value)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value: Any) -> Any:
        return _lower(_strip(value))


class InstructorRead(APIModel):
    id: UUID
    name: str
    email: str


# --- Room Types ---

class RoomTypeCreate(APIModel):
    name: str = Field(..., min_length=2)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return _strip(value)


class RoomTypeUpdate(RoomTypeCreate):
    pass


class RoomTypeRead(APIModel):
    id: UUID
    name: str


# --- Rooms ---

class RoomCreate(APIModel):
    room_name: str = Field(..., min_length=1)
    room_type_id: UUID
    capacity: int = Field(..., gt=0)

    @field_validator("room_name", mode="before")
    @classmethod
    def _strip_room_name(cls, value: Any) -> Any:
        return _strip(value)


class RoomUpdate(APIModel):
    """All fields optional to allow partial updates (PATCH)."""
    room_name: Optional[str] = Field(None, min_length=1)
    room_type_id: Optional[UUID] = None
    capacity: Optional[int] = Field(None, gt=0)


class RoomRead(APIModel):
    id: UUID
    room_name: str
    capacity: int
    room_type: RoomTypeRead

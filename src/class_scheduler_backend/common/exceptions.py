"""
This file contains custom, application-specific exceptions.

Every scheduling failure carries the field it is about and a human-readable
message, so the service layer can turn it into an HTTP error body as-is.
"""
from typing import Any, Optional

from fastapi import HTTPException


class SchedulingError(Exception):
    """Base class for all errors raised by the scheduling core."""
    status_code: int = 400
    field: str = "schedule"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if field is not None:
            self.field = field

    def to_detail(self) -> dict[str, Any]:
        return {"field": self.field, "message": self.message}


class InvalidTimeSlotError(SchedulingError):
    """Raised when a time slot is malformed or shorter than the minimum duration."""
    field = "timeSlots"


class MissingBoundaryError(SchedulingError):
    """Raised when a recurring rule has no series end date."""
    field = "seriesEndDate"


class InvalidRangeError(SchedulingError):
    """Raised when the series end date is before the series start date."""
    field = "seriesEndDate"


class NoFutureSessionsError(SchedulingError):
    """Raised when an expansion leaves no session far enough in the future."""
    field = "sessions"


class SchedulingConflictError(SchedulingError):
    """Raised when a candidate session overlaps a persisted one."""
    status_code = 409

    def __init__(self, report):
        super().__init__(report.message, field=report.field)
        self.report = report

    def to_detail(self) -> dict[str, Any]:
        return self.report.to_detail()


class NotFoundError(SchedulingError):
    """Raised when a referenced series, session, instructor or room does not exist."""
    status_code = 404

    def __init__(self, resource: str, resource_id: Any, field: Optional[str] = None):
        super().__init__(f"{resource} {resource_id} was not found.", field=field or resource.lower())
        self.resource = resource
        self.resource_id = resource_id


def to_http_exception(exc: SchedulingError) -> HTTPException:
    """Wraps a domain error into the HTTPException the routers return."""
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())

'''
Static enums shared by the ORM models, the API models and the services.
'''
import enum


class ListableEnum(str, enum.Enum):
    """A custom Enum base class that can list all member values."""
    @classmethod
    def get_all_names(cls) -> list[str]:
        return [member.value for member in cls]


class RecurrenceKindEnum(ListableEnum):
    SINGLE = "single"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class ExceptionStatusEnum(ListableEnum):
    MODIFIED = "MODIFIED"
    CANCELLED = "CANCELLED"


class ConflictFieldEnum(ListableEnum):
    INSTRUCTOR = "instructor"
    ROOM = "room"


class CacheTagEnum(ListableEnum):
    CLASSES = "CLASSES"
    INSTRUCTORS = "INSTRUCTORS"
    ROOMS = "ROOMS"

import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class UserRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    ORGANIZER = "ORGANIZER"


class ParticipationStatus(str, Enum):
    INTERESTED = "INTERESTED"
    GOING = "GOING"


class EventApprovalStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class CamelModel(BaseModel):
    """Wire models use camelCase keys; Python code uses snake_case attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class UserSummary(CamelModel):
    id: uuid.UUID
    name: Optional[str] = None
    display_name: Optional[str] = None
    email: Optional[str] = None


class SuccessResponse(BaseModel):
    success: bool = True


class ErrorResponse(BaseModel):
    error: str
    message: Optional[str] = None
    details: Optional[object] = None

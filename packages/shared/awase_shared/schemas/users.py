"""User and admin user-management schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field

from .common import CamelModel, SortOrder, UserRole


class UserSortField(str, Enum):
    """Columns the admin user list may be ordered by."""
    CREATED_AT = "created_at"
    EMAIL = "email"
    NAME = "name"
    DISPLAY_NAME = "display_name"
    ROLE = "role"


class UserRoleFilter(str, Enum):
    ALL = "ALL"
    USER = "USER"
    ADMIN = "ADMIN"
    ORGANIZER = "ORGANIZER"


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class UserListQuery(CamelModel):
    """Validated admin list query. Anything outside the enums is rejected."""
    sort_by: UserSortField = UserSortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC
    search: Optional[str] = Field(default=None, max_length=200)
    role: UserRoleFilter = UserRoleFilter.ALL


class UserRoleUpdateRequest(CamelModel):
    role: UserRole


class UserBanRequest(CamelModel):
    is_banned: bool


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserResponse(CamelModel):
    id: uuid.UUID
    email: Optional[str] = None
    name: Optional[str] = None
    display_name: Optional[str] = None
    role: UserRole
    is_banned: bool = False
    deleted_at: Optional[datetime] = None
    created_at: datetime


class UserListResponse(CamelModel):
    data: List[UserResponse]

"""
Group ("awase") schemas shared between the API server and the realtime handlers.

Covers: group creation, joining, leadership transfer, owner note, and the
detail/list views.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import Field, StringConstraints

from .common import CamelModel, UserSummary

GROUP_CODE_PATTERN = r"^[0-9]{8}$"


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class GroupCreateRequest(CamelModel):
    event_id: uuid.UUID
    name: str = Field(..., min_length=1, max_length=100)
    theme: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    max_members: Optional[int] = Field(default=None, ge=1, le=1000)


class JoinGroupRequest(CamelModel):
    """Join by id. `force` is a client-side hint and is not enforced."""
    force: bool = False


class JoinByCodeRequest(JoinGroupRequest):
    group_code: str = Field(..., pattern=GROUP_CODE_PATTERN)


class LeaderChangeRequest(CamelModel):
    new_leader_id: uuid.UUID


class OwnerNoteUpdateRequest(CamelModel):
    owner_note: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=2000)]] = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class GroupCreateResponse(CamelModel):
    group_id: uuid.UUID
    group_code: str


class JoinGroupResponse(CamelModel):
    group_id: uuid.UUID
    group_code: str
    name: str
    member_count: int
    max_members: Optional[int] = None
    already_member: bool = False


class GroupMemberResponse(CamelModel):
    id: uuid.UUID
    name: Optional[str] = None
    display_name: Optional[str] = None
    email: Optional[str] = None
    joined_at: datetime
    is_leader: bool = False


class EventSummary(CamelModel):
    id: uuid.UUID
    name: str
    event_date: Optional[datetime] = None


class GroupDetailResponse(CamelModel):
    id: uuid.UUID
    name: str
    theme: Optional[str] = None
    description: Optional[str] = None
    group_code: str
    max_members: Optional[int] = None
    member_count: int
    is_leader: bool
    owner_note: Optional[str] = None
    event: EventSummary
    leader_user_id: uuid.UUID
    members: List[GroupMemberResponse]
    created_at: datetime


class GroupListItem(CamelModel):
    id: uuid.UUID
    event_id: uuid.UUID
    name: str
    group_code: str
    member_count: int
    is_leader: bool
    joined_at: datetime


class GroupListResponse(CamelModel):
    data: List[GroupListItem]


class OwnerNoteResponse(CamelModel):
    owner_note: Optional[str] = None
    is_leader: bool


class AdminGroupListItem(CamelModel):
    id: uuid.UUID
    name: str
    theme: Optional[str] = None
    group_code: str
    max_members: Optional[int] = None
    member_count: int
    message_count: int
    event: EventSummary
    leader: UserSummary
    created_at: datetime


class AdminGroupListResponse(CamelModel):
    data: List[AdminGroupListItem]

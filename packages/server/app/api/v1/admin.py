"""
Admin API endpoints (ADMIN role only).

GET    /api/v1/admin/users                            — List users (allow-listed sort/filter)
PATCH  /api/v1/admin/users/{userId}/role              — Change a user's role
PATCH  /api/v1/admin/users/{userId}/ban               — Ban or unban a user
DELETE /api/v1/admin/users/{userId}/delete            — Logical delete (hands over led groups)
DELETE /api/v1/admin/users/{userId}/permanent-delete  — Physical delete of a logically deleted user
POST   /api/v1/admin/users/{userId}/restore           — Undo a logical delete
GET    /api/v1/admin/groups                           — List groups (?eventId=, ?search=)
GET    /api/v1/admin/groups/{groupId}                 — Group detail
DELETE /api/v1/admin/groups/{groupId}/members/{userId} — Remove a member
PATCH  /api/v1/admin/groups/{groupId}/leader          — Change a group's leader
DELETE /api/v1/admin/groups/{groupId}/messages/{messageId} — Delete a chat message
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, require_admin
from app.core.database import get_session
from app.models.user import User
from app.services import groups as group_service
from app.services import membership as membership_service
from app.services import messages as message_service
from app.services import users as user_service
from awase_shared.schemas.common import SortOrder, SuccessResponse
from awase_shared.schemas.groups import (
    AdminGroupListResponse,
    GroupDetailResponse,
    LeaderChangeRequest,
)
from awase_shared.schemas.users import (
    UserBanRequest,
    UserListQuery,
    UserListResponse,
    UserResponse,
    UserRoleFilter,
    UserRoleUpdateRequest,
    UserSortField,
)

router = APIRouter()


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        display_name=user.display_name,
        role=user.role,
        is_banned=user.is_banned,
        deleted_at=user.deleted_at,
        created_at=user.created_at,
    )


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

@router.get("/users", response_model=UserListResponse)
async def list_users(
    sortBy: UserSortField = UserSortField.CREATED_AT,
    sortOrder: SortOrder = SortOrder.DESC,
    search: Optional[str] = Query(default=None, max_length=200),
    role: UserRoleFilter = UserRoleFilter.ALL,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    query = UserListQuery(sort_by=sortBy, sort_order=sortOrder, search=search, role=role)
    users = await user_service.list_users(query, session)
    return UserListResponse(data=[_user_response(u) for u in users])


@router.patch("/users/{userId}/role", response_model=UserResponse)
async def update_role(
    userId: uuid.UUID,
    body: UserRoleUpdateRequest,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    user = await user_service.update_role(userId, body.role, session)
    return _user_response(user)


@router.patch("/users/{userId}/ban", response_model=UserResponse)
async def set_ban(
    userId: uuid.UUID,
    body: UserBanRequest,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    user = await user_service.set_banned(userId, body.is_banned, auth.user_id, session)
    return _user_response(user)


@router.delete("/users/{userId}/delete", response_model=SuccessResponse)
async def delete_user(
    userId: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Logically delete a user. Fails with 500 and the group details if a handover fails."""
    await user_service.soft_delete_user(userId, auth.user_id, session)
    return SuccessResponse()


@router.delete("/users/{userId}/permanent-delete", response_model=SuccessResponse)
async def permanently_delete_user(
    userId: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await user_service.hard_delete_user(userId, auth.user_id, session)
    return SuccessResponse()


@router.post("/users/{userId}/restore", response_model=UserResponse)
async def restore_user(
    userId: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    user = await user_service.restore_user(userId, session)
    return _user_response(user)


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------

@router.get("/groups", response_model=AdminGroupListResponse)
async def list_groups(
    eventId: Optional[uuid.UUID] = None,
    search: Optional[str] = Query(default=None, max_length=200),
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    groups = await group_service.list_groups(session, event_id=eventId, search=search)
    return AdminGroupListResponse(data=groups)


@router.get("/groups/{groupId}", response_model=GroupDetailResponse)
async def get_group(
    groupId: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    info = await group_service.get_group_detail(groupId, auth.user_id, session, as_admin=True)
    return GroupDetailResponse(**info)


@router.delete("/groups/{groupId}/members/{userId}", response_model=SuccessResponse)
async def remove_member(
    groupId: uuid.UUID,
    userId: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await membership_service.remove_member(groupId, userId, session)
    return SuccessResponse()


@router.patch("/groups/{groupId}/leader", response_model=SuccessResponse)
async def change_leader(
    groupId: uuid.UUID,
    body: LeaderChangeRequest,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await membership_service.change_leader(groupId, body.new_leader_id, session)
    return SuccessResponse()


@router.delete("/groups/{groupId}/messages/{messageId}", response_model=SuccessResponse)
async def delete_message(
    groupId: uuid.UUID,
    messageId: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await message_service.delete_message(groupId, messageId, session)
    return SuccessResponse()

"""
Group API endpoints.

GET    /api/v1/groups                              — List the caller's groups
POST   /api/v1/groups                              — Create a group (caller becomes leader)
POST   /api/v1/groups/join                         — Join by group code
GET    /api/v1/groups/{groupId}                    — Group detail (members only)
DELETE /api/v1/groups/{groupId}                    — Disband (leader only)
POST   /api/v1/groups/{groupId}/join               — Join by id
DELETE /api/v1/groups/{groupId}/leave              — Leave (non-leaders)
DELETE /api/v1/groups/{groupId}/members/{userId}   — Remove a member (leader only)
PATCH  /api/v1/groups/{groupId}/transfer           — Transfer leadership (leader only)
GET    /api/v1/groups/{groupId}/owner-note         — Read the owner note
PUT    /api/v1/groups/{groupId}/owner-note         — Edit the owner note (leader only)
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, require_user
from app.core.database import get_session
from app.services import groups as group_service
from app.services import membership as membership_service
from awase_shared.schemas.common import SuccessResponse
from awase_shared.schemas.groups import (
    GroupCreateRequest,
    GroupCreateResponse,
    GroupDetailResponse,
    GroupListResponse,
    JoinByCodeRequest,
    JoinGroupRequest,
    JoinGroupResponse,
    LeaderChangeRequest,
    OwnerNoteResponse,
    OwnerNoteUpdateRequest,
)

router = APIRouter()


@router.get("", response_model=GroupListResponse)
async def list_my_groups(
    eventId: Optional[uuid.UUID] = None,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """List the groups the caller belongs to, optionally for one event."""
    items = await group_service.list_user_groups(auth.user_id, session, event_id=eventId)
    return GroupListResponse(data=items)


@router.post("", response_model=GroupCreateResponse, status_code=201)
async def create_group(
    body: GroupCreateRequest,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    group = await group_service.create_group(body, auth.user_id, session)
    return GroupCreateResponse(group_id=group.id, group_code=group.group_code)


@router.post("/join", response_model=JoinGroupResponse)
async def join_by_code(
    body: JoinByCodeRequest,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Join a group using its 8-digit code. Joining twice is harmless."""
    info = await group_service.join_group(auth.user_id, session, group_code=body.group_code)
    return JoinGroupResponse(**info)


@router.get("/{groupId}", response_model=GroupDetailResponse)
async def get_group(
    groupId: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    info = await group_service.get_group_detail(groupId, auth.user_id, session)
    return GroupDetailResponse(**info)


@router.delete("/{groupId}", response_model=SuccessResponse)
async def disband_group(
    groupId: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    await group_service.disband_group(groupId, auth.user_id, session)
    return SuccessResponse()


@router.post("/{groupId}/join", response_model=JoinGroupResponse)
async def join_group(
    groupId: uuid.UUID,
    body: Optional[JoinGroupRequest] = None,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    info = await group_service.join_group(auth.user_id, session, group_id=groupId)
    return JoinGroupResponse(**info)


@router.delete("/{groupId}/leave", response_model=SuccessResponse)
async def leave_group(
    groupId: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    await membership_service.leave_group(groupId, auth.user_id, session)
    return SuccessResponse()


@router.delete("/{groupId}/members/{userId}", response_model=SuccessResponse)
async def remove_member(
    groupId: uuid.UUID,
    userId: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Leader removes a member from their group."""
    await membership_service.remove_member(
        groupId, userId, session, acting_user_id=auth.user_id
    )
    return SuccessResponse()


@router.patch("/{groupId}/transfer", response_model=SuccessResponse)
async def transfer_leadership(
    groupId: uuid.UUID,
    body: LeaderChangeRequest,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    await membership_service.transfer_leadership(
        groupId, auth.user_id, body.new_leader_id, session
    )
    return SuccessResponse()


@router.get("/{groupId}/owner-note", response_model=OwnerNoteResponse)
async def get_owner_note(
    groupId: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    info = await group_service.get_owner_note(groupId, auth.user_id, session)
    return OwnerNoteResponse(**info)


@router.put("/{groupId}/owner-note", response_model=OwnerNoteResponse)
async def update_owner_note(
    groupId: uuid.UUID,
    body: OwnerNoteUpdateRequest,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    info = await group_service.update_owner_note(groupId, auth.user_id, body.owner_note, session)
    return OwnerNoteResponse(**info)

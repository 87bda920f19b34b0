"""
Group chat endpoints.

GET    /api/v1/groups/unread-count                                    — Unread flag per group of the caller
GET    /api/v1/groups/{groupId}/messages                              — History page (cursor: ?before=)
POST   /api/v1/groups/{groupId}/messages                              — Post a message (pushed to connected members)
POST   /api/v1/groups/{groupId}/messages/read-all                     — Mark every message read
POST   /api/v1/groups/{groupId}/messages/{messageId}/read             — Mark one message read
POST   /api/v1/groups/{groupId}/messages/{messageId}/reactions        — Toggle a reaction
DELETE /api/v1/groups/{groupId}/messages/{messageId}/reactions?emoji= — Remove a reaction

Pushes go out as background tasks, after the request's transaction commits.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, require_user
from app.core.database import get_session
from app.core.realtime import publish_to_group
from app.services import messages as message_service
from awase_shared.schemas.common import SuccessResponse
from awase_shared.schemas.messages import (
    MessageListResponse,
    MessagePostRequest,
    MessageResponse,
    ReactionRequest,
    ReactionToggleResponse,
    ReadAllResponse,
)

router = APIRouter()


@router.get("/unread-count", response_model=dict[str, bool])
async def unread_count(
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """``{groupId: hasUnread}`` for each of the caller's groups that has messages."""
    return await message_service.unread_flags(auth.user_id, session)


@router.get("/{groupId}/messages", response_model=MessageListResponse)
async def list_messages(
    groupId: uuid.UUID,
    before: Optional[datetime] = Query(None, description="Return messages older than this timestamp"),
    limit: int = Query(50, ge=1, le=100),
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    items, next_cursor = await message_service.list_messages(
        groupId, auth.user_id, session, before=before, limit=limit
    )
    return MessageListResponse(data=items, next_cursor=next_cursor)


@router.post("/{groupId}/messages", response_model=MessageResponse, status_code=201)
async def post_message(
    groupId: uuid.UUID,
    body: MessagePostRequest,
    background_tasks: BackgroundTasks,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    info = await message_service.post_message(
        groupId, auth.user, body.content, session, is_announcement=body.is_announcement
    )
    message = MessageResponse(**info)
    background_tasks.add_task(
        publish_to_group, groupId, {"message": message.model_dump(mode="json", by_alias=True)}
    )
    return message


@router.post("/{groupId}/messages/read-all", response_model=ReadAllResponse)
async def mark_all_read(
    groupId: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    count = await message_service.mark_all_read(groupId, auth.user_id, session)
    return ReadAllResponse(count=count)


@router.post("/{groupId}/messages/{messageId}/read", response_model=SuccessResponse)
async def mark_read(
    groupId: uuid.UUID,
    messageId: uuid.UUID,
    background_tasks: BackgroundTasks,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    await message_service.mark_read(groupId, messageId, auth.user_id, session)
    background_tasks.add_task(
        publish_to_group,
        groupId,
        {"type": "read-updated", "userId": str(auth.user_id), "messageId": str(messageId)},
    )
    return SuccessResponse()


@router.post("/{groupId}/messages/{messageId}/reactions", response_model=ReactionToggleResponse)
async def toggle_reaction(
    groupId: uuid.UUID,
    messageId: uuid.UUID,
    body: ReactionRequest,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    added = await message_service.toggle_reaction(groupId, messageId, auth.user_id, body.emoji, session)
    return ReactionToggleResponse(added=added)


@router.delete("/{groupId}/messages/{messageId}/reactions", response_model=SuccessResponse)
async def remove_reaction(
    groupId: uuid.UUID,
    messageId: uuid.UUID,
    emoji: Optional[str] = None,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    await message_service.remove_reaction(groupId, messageId, auth.user_id, emoji, session)
    return SuccessResponse()

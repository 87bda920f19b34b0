"""
Event API endpoints.

GET    /api/v1/events                          — List approved events
POST   /api/v1/events/{eventId}/participate    — Mark the caller as participating
DELETE /api/v1/events/{eventId}/participate    — Withdraw participation
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, require_user
from app.core.database import get_session
from app.services import events as event_service
from awase_shared.schemas.common import ParticipationStatus, SuccessResponse
from awase_shared.schemas.events import (
    EventListResponse,
    EventResponse,
    ParticipateRequest,
    ParticipationResponse,
)

router = APIRouter()


@router.get("", response_model=EventListResponse)
async def list_events(session: AsyncSession = Depends(get_session)):
    events = await event_service.list_events(session)
    return EventListResponse(
        data=[
            EventResponse(
                id=e.id,
                name=e.name,
                slug=e.slug,
                event_date=e.event_date,
                approval_status=e.approval_status,
            )
            for e in events
        ]
    )


@router.post("/{eventId}/participate", response_model=ParticipationResponse)
async def participate(
    eventId: uuid.UUID,
    body: Optional[ParticipateRequest] = None,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    status = body.status if body else ParticipationStatus.INTERESTED
    user_event = await event_service.participate(eventId, auth.user_id, status, session)
    return ParticipationResponse(
        event_id=user_event.event_id,
        status=user_event.status,
        group_id=user_event.group_id,
    )


@router.delete("/{eventId}/participate", response_model=SuccessResponse)
async def withdraw(
    eventId: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    await event_service.withdraw(eventId, auth.user_id, session)
    return SuccessResponse()

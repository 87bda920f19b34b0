"""
Event participation service.

A ``UserEvent`` row is the record that a user takes part in an event; joining
any group of that event requires it.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.event import Event
from app.models.group_member import GroupMember
from app.models.user_event import UserEvent
from awase_shared.schemas.common import EventApprovalStatus, ParticipationStatus

log = structlog.get_logger()


async def list_events(session: AsyncSession) -> list[Event]:
    """Approved events, soonest first."""
    result = await session.execute(
        select(Event)
        .where(Event.approval_status == EventApprovalStatus.APPROVED.value)
        .order_by(Event.event_date.asc())
    )
    return list(result.scalars().all())


async def participate(
    event_id: uuid.UUID,
    user_id: uuid.UUID,
    status: ParticipationStatus,
    session: AsyncSession,
) -> UserEvent:
    """Create or update the caller's participation in an event."""
    result = await session.execute(select(Event.id).where(Event.id == event_id))
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="Event not found")

    result = await session.execute(
        select(UserEvent).where(UserEvent.user_id == user_id, UserEvent.event_id == event_id)
    )
    user_event = result.scalar_one_or_none()
    if user_event is None:
        user_event = UserEvent(user_id=user_id, event_id=event_id, status=status.value)
    else:
        user_event.status = status.value
    session.add(user_event)
    await session.flush()

    log.info("event.participation_set", event_id=str(event_id), user_id=str(user_id), status=status.value)
    return user_event


async def withdraw(event_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession) -> None:
    """Drop the caller's participation. Not allowed while they are in one of its groups."""
    result = await session.execute(
        select(UserEvent).where(UserEvent.user_id == user_id, UserEvent.event_id == event_id)
    )
    user_event = result.scalar_one_or_none()
    if user_event is None:
        raise HTTPException(status_code=404, detail="Not participating in this event")

    result = await session.execute(
        select(func.count())
        .select_from(GroupMember)
        .where(GroupMember.user_id == user_id, GroupMember.event_id == event_id)
    )
    if result.scalar_one() > 0:
        raise HTTPException(status_code=400, detail="Leave your groups for this event first")

    await session.delete(user_event)
    await session.flush()
    log.info("event.participation_withdrawn", event_id=str(event_id), user_id=str(user_id))

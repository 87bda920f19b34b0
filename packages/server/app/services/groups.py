"""
Group service — creation, lookup, joining by code, disbanding, owner note, admin listing.

Membership and leadership rules live in ``app.services.membership``.
"""

from __future__ import annotations

import secrets
import uuid
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.models.base import utcnow
from app.models.event import Event
from app.models.group import Group
from app.models.group_member import GroupMember
from app.models.message import GroupMessage
from app.models.user import User
from app.models.user_event import UserEvent
from app.services import membership as membership_service
from awase_shared.schemas.groups import GroupCreateRequest

log = structlog.get_logger()
settings = get_settings()


def generate_group_code() -> str:
    """Random 8-digit numeric code (never starts with 0)."""
    return str(10_000_000 + secrets.randbelow(90_000_000))


async def _unique_group_code(session: AsyncSession) -> str:
    for _ in range(settings.group_code_attempts):
        candidate = generate_group_code()
        result = await session.execute(select(Group.id).where(Group.group_code == candidate))
        if result.scalar_one_or_none() is None:
            return candidate
    log.error("group.code_generation_exhausted", attempts=settings.group_code_attempts)
    raise HTTPException(status_code=500, detail="Failed to generate unique group code")


async def get_group(group_id: uuid.UUID, session: AsyncSession) -> Group:
    result = await session.execute(select(Group).where(Group.id == group_id))
    group = result.scalar_one_or_none()
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    return group


async def create_group(
    req: GroupCreateRequest, creator_id: uuid.UUID, session: AsyncSession
) -> Group:
    """Create a group led by the creator, who becomes its first member."""
    result = await session.execute(select(Event).where(Event.id == req.event_id))
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="Event not found")

    group = Group(
        event_id=req.event_id,
        name=req.name,
        theme=req.theme or None,
        description=req.description or None,
        max_members=req.max_members,
        group_code=await _unique_group_code(session),
        leader_user_id=creator_id,
    )
    session.add(group)
    await session.flush()

    session.add(GroupMember(user_id=creator_id, group_id=group.id, event_id=group.event_id))

    result = await session.execute(
        select(UserEvent).where(UserEvent.user_id == creator_id, UserEvent.event_id == req.event_id)
    )
    user_event = result.scalar_one_or_none()
    if user_event is None:
        session.add(UserEvent(user_id=creator_id, event_id=req.event_id, group_id=group.id))
    elif user_event.group_id is None:
        user_event.group_id = group.id
        session.add(user_event)
    await session.flush()

    log.info(
        "group.created",
        group_id=str(group.id),
        event_id=str(group.event_id),
        leader=str(creator_id),
        group_code=group.group_code,
    )
    return group


async def join_group(
    user_id: uuid.UUID,
    session: AsyncSession,
    *,
    group_id: Optional[uuid.UUID] = None,
    group_code: Optional[str] = None,
) -> dict:
    """Join a group identified by id or by its shareable code."""
    if group_id is not None:
        group = await membership_service.lock_group(group_id, session)
    else:
        result = await session.execute(
            select(Group).where(Group.group_code == group_code).with_for_update()
        )
        group = result.scalar_one_or_none()
        if not group:
            raise HTTPException(status_code=404, detail="Group not found")

    _, created = await membership_service.join_group(group, user_id, session)
    return {
        "group_id": group.id,
        "group_code": group.group_code,
        "name": group.name,
        "member_count": await membership_service.count_members(group.id, session),
        "max_members": group.max_members,
        "already_member": not created,
    }


async def get_group_detail(
    group_id: uuid.UUID,
    viewer_id: uuid.UUID,
    session: AsyncSession,
    *,
    as_admin: bool = False,
) -> dict:
    """Group details with its roster. Members only, unless viewed by an admin."""
    group = await get_group(group_id, session)

    if not as_admin and not await membership_service.get_membership(viewer_id, group.id, session):
        raise HTTPException(status_code=403, detail="You are not a member of this group")

    result = await session.execute(select(Event).where(Event.id == group.event_id))
    event = result.scalar_one()

    result = await session.execute(
        select(User, GroupMember.joined_at)
        .join(GroupMember, GroupMember.user_id == User.id)
        .where(GroupMember.group_id == group.id)
        .order_by(GroupMember.joined_at.asc())
    )
    members = [
        {
            "id": user.id,
            "name": user.name,
            "display_name": user.display_name,
            "email": user.email,
            "joined_at": joined_at,
            "is_leader": user.id == group.leader_user_id,
        }
        for user, joined_at in result.all()
    ]

    return {
        "id": group.id,
        "name": group.name,
        "theme": group.theme,
        "description": group.description,
        "group_code": group.group_code,
        "max_members": group.max_members,
        "member_count": len(members),
        "is_leader": group.leader_user_id == viewer_id,
        "owner_note": group.owner_note,
        "event": {"id": event.id, "name": event.name, "event_date": event.event_date},
        "leader_user_id": group.leader_user_id,
        "members": members,
        "created_at": group.created_at,
    }


async def list_user_groups(
    user_id: uuid.UUID, session: AsyncSession, *, event_id: Optional[uuid.UUID] = None
) -> list[dict]:
    """Every group the user belongs to, earliest joined first."""
    counts = (
        select(GroupMember.group_id, func.count().label("member_count"))
        .group_by(GroupMember.group_id)
        .subquery()
    )
    stmt = (
        select(Group, GroupMember.joined_at, counts.c.member_count)
        .join(GroupMember, GroupMember.group_id == Group.id)
        .join(counts, counts.c.group_id == Group.id)
        .where(GroupMember.user_id == user_id)
        .order_by(GroupMember.joined_at.asc())
    )
    if event_id is not None:
        stmt = stmt.where(Group.event_id == event_id)

    result = await session.execute(stmt)
    return [
        {
            "id": group.id,
            "event_id": group.event_id,
            "name": group.name,
            "group_code": group.group_code,
            "member_count": member_count,
            "is_leader": group.leader_user_id == user_id,
            "joined_at": joined_at,
        }
        for group, joined_at, member_count in result.all()
    ]


async def disband_group(
    group_id: uuid.UUID, acting_user_id: uuid.UUID, session: AsyncSession
) -> None:
    """The leader deletes the group and every membership in it."""
    group = await membership_service.lock_group(group_id, session)
    if group.leader_user_id != acting_user_id:
        raise HTTPException(status_code=403, detail="Only the group leader can disband the group")

    await membership_service.delete_group(group, session)
    log.info("group.disbanded", group_id=str(group_id), leader=str(acting_user_id))


async def get_owner_note(
    group_id: uuid.UUID, viewer_id: uuid.UUID, session: AsyncSession
) -> dict:
    group = await get_group(group_id, session)
    if not await membership_service.get_membership(viewer_id, group.id, session):
        raise HTTPException(status_code=403, detail="You are not a member of this group")
    return {"owner_note": group.owner_note, "is_leader": group.leader_user_id == viewer_id}


async def update_owner_note(
    group_id: uuid.UUID,
    acting_user_id: uuid.UUID,
    owner_note: Optional[str],
    session: AsyncSession,
) -> dict:
    group = await membership_service.lock_group(group_id, session)
    if group.leader_user_id != acting_user_id:
        raise HTTPException(status_code=403, detail="Only the group leader can edit the owner note")

    note = owner_note.strip() if owner_note else None
    if note and len(note) > settings.owner_note_max_length:
        raise HTTPException(status_code=400, detail="Owner note is too long")

    group.owner_note = note or None
    group.updated_at = utcnow()
    session.add(group)
    await session.flush()

    log.info("group.owner_note_updated", group_id=str(group.id))
    return {"owner_note": group.owner_note, "is_leader": True}


async def list_groups(
    session: AsyncSession,
    *,
    event_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
) -> list[dict]:
    """Administrator view of all groups, newest first, with member and message counts."""
    member_counts = (
        select(GroupMember.group_id, func.count().label("n"))
        .group_by(GroupMember.group_id)
        .subquery()
    )
    message_counts = (
        select(GroupMessage.group_id, func.count().label("n"))
        .group_by(GroupMessage.group_id)
        .subquery()
    )
    stmt = (
        select(
            Group,
            Event,
            User,
            func.coalesce(member_counts.c.n, 0),
            func.coalesce(message_counts.c.n, 0),
        )
        .join(Event, Event.id == Group.event_id)
        .join(User, User.id == Group.leader_user_id)
        .outerjoin(member_counts, member_counts.c.group_id == Group.id)
        .outerjoin(message_counts, message_counts.c.group_id == Group.id)
        .order_by(Group.created_at.desc())
    )
    if event_id is not None:
        stmt = stmt.where(Group.event_id == event_id)
    if search and search.strip():
        term = search.strip()
        stmt = stmt.where(
            or_(
                Group.name.icontains(term, autoescape=True),
                Group.group_code.icontains(term, autoescape=True),
                Group.theme.icontains(term, autoescape=True),
            )
        )

    result = await session.execute(stmt)
    return [
        {
            "id": group.id,
            "name": group.name,
            "theme": group.theme,
            "group_code": group.group_code,
            "max_members": group.max_members,
            "member_count": member_count,
            "message_count": message_count,
            "event": {"id": event.id, "name": event.name, "event_date": event.event_date},
            "leader": {
                "id": leader.id,
                "name": leader.name,
                "display_name": leader.display_name,
                "email": leader.email,
            },
            "created_at": group.created_at,
        }
        for group, event, leader, member_count, message_count in result.all()
    ]

"""
Read-only database lookups used by the handlers.

The handlers are synchronous Lambda entry points; each lookup opens its own
session on the server's async engine inside its own event loop. Pooled
connections are bound to that loop, so the pool is disposed afterwards.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Optional

from sqlmodel import select

from app.core.database import engine, get_session_context
from app.models.group_member import GroupMember
from app.models.user import User


async def _load_user(user_id: uuid.UUID) -> Optional[dict]:
    async with get_session_context() as session:
        result = await session.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            return None
        return {"id": str(user.id), "is_banned": user.is_banned, "is_deleted": user.is_deleted}


async def _member_group_ids(user_id: uuid.UUID) -> list[str]:
    async with get_session_context() as session:
        result = await session.execute(
            select(GroupMember.group_id)
            .where(GroupMember.user_id == user_id)
            .order_by(GroupMember.joined_at.asc())
        )
        return [str(gid) for gid in result.scalars().all()]


async def _is_member(user_id: uuid.UUID, group_id: uuid.UUID) -> bool:
    async with get_session_context() as session:
        result = await session.execute(
            select(GroupMember.group_id).where(
                GroupMember.user_id == user_id, GroupMember.group_id == group_id
            )
        )
        return result.scalar_one_or_none() is not None


def _run(lookup, *args):
    async def runner():
        try:
            return await lookup(*args)
        finally:
            await engine.dispose()

    return asyncio.run(runner())


def load_user(user_id: uuid.UUID) -> Optional[dict]:
    return _run(_load_user, user_id)


def member_group_ids(user_id: uuid.UUID) -> list[str]:
    """Every group the user belongs to, across all events."""
    return _run(_member_group_ids, user_id)


def is_member(user_id: uuid.UUID, group_id: uuid.UUID) -> bool:
    return _run(_is_member, user_id, group_id)

"""
Group chat service: history, posting, read receipts, reactions and moderation.

Only members of a group can read or write its chat. A message counts as read
by a user once they hold a read receipt for it; a group is "unread" for a
user when they have no receipt for its newest message.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import case, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.base import utcnow
from app.models.group import Group
from app.models.group_member import GroupMember
from app.models.message import GroupMessage, GroupMessageReaction, GroupMessageRead
from app.models.user import User
from app.services import membership as membership_service
from awase_shared.schemas.messages import EMOJI_MAX_LENGTH

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def _require_member(group_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession) -> Group:
    result = await session.execute(select(Group).where(Group.id == group_id))
    group = result.scalar_one_or_none()
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    if not await membership_service.get_membership(user_id, group.id, session):
        raise HTTPException(status_code=403, detail="You are not a member of this group")
    return group


async def _get_group_message(
    group_id: uuid.UUID, message_id: uuid.UUID, session: AsyncSession
) -> GroupMessage:
    result = await session.execute(select(GroupMessage).where(GroupMessage.id == message_id))
    message = result.scalar_one_or_none()
    if not message or message.group_id != group_id:
        raise HTTPException(status_code=404, detail="Message not found")
    return message


def _sender(user: User) -> dict:
    return {"id": user.id, "name": user.name, "display_name": user.display_name, "email": user.email}


def _message_view(message: GroupMessage, sender: User, reactions: list[dict]) -> dict:
    return {
        "id": message.id,
        "group_id": message.group_id,
        "content": message.content,
        "is_announcement": message.is_announcement,
        "sender": _sender(sender),
        "created_at": message.created_at,
        "reactions": reactions,
    }


async def _reaction_summaries(
    message_ids: list[uuid.UUID], viewer_id: uuid.UUID, session: AsyncSession
) -> dict[uuid.UUID, list[dict]]:
    if not message_ids:
        return {}
    mine = func.max(case((GroupMessageReaction.user_id == viewer_id, 1), else_=0))
    result = await session.execute(
        select(
            GroupMessageReaction.message_id,
            GroupMessageReaction.emoji,
            func.count(),
            mine,
        )
        .where(GroupMessageReaction.message_id.in_(message_ids))
        .group_by(GroupMessageReaction.message_id, GroupMessageReaction.emoji)
        .order_by(GroupMessageReaction.message_id, func.min(GroupMessageReaction.created_at))
    )
    summaries: dict[uuid.UUID, list[dict]] = {}
    for message_id, emoji, count, reacted in result.all():
        summaries.setdefault(message_id, []).append(
            {"emoji": emoji, "count": count, "reacted_by_me": bool(reacted)}
        )
    return summaries


# ---------------------------------------------------------------------------
# History and posting
# ---------------------------------------------------------------------------

async def list_messages(
    group_id: uuid.UUID,
    viewer_id: uuid.UUID,
    session: AsyncSession,
    *,
    before: Optional[datetime] = None,
    limit: int = 50,
) -> tuple[list[dict], Optional[datetime]]:
    """A page of history, oldest first, plus the cursor for the page before it."""
    await _require_member(group_id, viewer_id, session)

    stmt = (
        select(GroupMessage, User)
        .join(User, User.id == GroupMessage.sender_id)
        .where(GroupMessage.group_id == group_id)
    )
    if before is not None:
        stmt = stmt.where(GroupMessage.created_at < before)
    result = await session.execute(
        stmt.order_by(GroupMessage.created_at.desc(), GroupMessage.id.desc()).limit(limit + 1)
    )
    rows = list(result.all())

    has_more = len(rows) > limit
    rows = list(reversed(rows[:limit]))
    next_cursor = rows[0][0].created_at if has_more and rows else None

    reactions = await _reaction_summaries([m.id for m, _ in rows], viewer_id, session)
    return [_message_view(m, sender, reactions.get(m.id, [])) for m, sender in rows], next_cursor


async def post_message(
    group_id: uuid.UUID,
    sender: User,
    content: str,
    session: AsyncSession,
    *,
    is_announcement: bool = False,
) -> dict:
    """Store a message. The sender holds a read receipt for it from the start."""
    text = (content or "").strip()
    if not text:
        raise HTTPException(status_code=400, detail="Content is required")

    await _require_member(group_id, sender.id, session)

    message = GroupMessage(
        group_id=group_id,
        sender_id=sender.id,
        content=text,
        is_announcement=is_announcement,
    )
    session.add(message)
    await session.flush()
    session.add(GroupMessageRead(message_id=message.id, user_id=sender.id))
    await session.flush()

    log.info(
        "message.posted",
        group_id=str(group_id),
        message_id=str(message.id),
        sender_id=str(sender.id),
        announcement=is_announcement,
    )
    return _message_view(message, sender, [])


# ---------------------------------------------------------------------------
# Read receipts
# ---------------------------------------------------------------------------

async def _upsert_read(
    message_id: uuid.UUID, user_id: uuid.UUID, read_at: datetime, session: AsyncSession
) -> None:
    result = await session.execute(
        select(GroupMessageRead).where(
            GroupMessageRead.message_id == message_id, GroupMessageRead.user_id == user_id
        )
    )
    receipt = result.scalar_one_or_none()
    if receipt is None:
        receipt = GroupMessageRead(message_id=message_id, user_id=user_id, read_at=read_at)
    else:
        receipt.read_at = read_at
    session.add(receipt)


async def mark_read(
    group_id: uuid.UUID, message_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> None:
    await _require_member(group_id, user_id, session)
    await _get_group_message(group_id, message_id, session)
    await _upsert_read(message_id, user_id, utcnow(), session)
    await session.flush()


async def mark_all_read(group_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession) -> int:
    """Mark every message of the group read. Returns the number of messages."""
    await _require_member(group_id, user_id, session)

    result = await session.execute(
        select(GroupMessage.id).where(GroupMessage.group_id == group_id)
    )
    message_ids = list(result.scalars().all())
    now = utcnow()
    for message_id in message_ids:
        await _upsert_read(message_id, user_id, now, session)
    await session.flush()

    log.info("message.read_all", group_id=str(group_id), user_id=str(user_id), count=len(message_ids))
    return len(message_ids)


async def unread_flags(user_id: uuid.UUID, session: AsyncSession) -> dict[str, bool]:
    """For each of the user's groups that has messages, whether its newest one is unread."""
    result = await session.execute(
        select(GroupMember.group_id).where(GroupMember.user_id == user_id)
    )
    flags: dict[str, bool] = {}
    for group_id in result.scalars().all():
        latest = await session.execute(
            select(GroupMessage.id)
            .where(GroupMessage.group_id == group_id)
            .order_by(GroupMessage.created_at.desc(), GroupMessage.id.desc())
            .limit(1)
        )
        latest_id = latest.scalar_one_or_none()
        if latest_id is None:
            continue
        receipt = await session.execute(
            select(GroupMessageRead.message_id).where(
                GroupMessageRead.message_id == latest_id, GroupMessageRead.user_id == user_id
            )
        )
        flags[str(group_id)] = receipt.scalar_one_or_none() is None
    return flags


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------

def _clean_emoji(emoji: Optional[str]) -> str:
    value = (emoji or "").strip()
    if not value:
        raise HTTPException(status_code=400, detail="Emoji is required")
    if len(value) > EMOJI_MAX_LENGTH:
        raise HTTPException(status_code=400, detail="Emoji is too long")
    return value


async def _find_reaction(
    message_id: uuid.UUID, user_id: uuid.UUID, emoji: str, session: AsyncSession
) -> Optional[GroupMessageReaction]:
    result = await session.execute(
        select(GroupMessageReaction).where(
            GroupMessageReaction.message_id == message_id,
            GroupMessageReaction.user_id == user_id,
            GroupMessageReaction.emoji == emoji,
        )
    )
    return result.scalar_one_or_none()


async def toggle_reaction(
    group_id: uuid.UUID,
    message_id: uuid.UUID,
    user_id: uuid.UUID,
    emoji: str,
    session: AsyncSession,
) -> bool:
    """Add the reaction, or take it back if the user already gave it. Returns True when added."""
    value = _clean_emoji(emoji)
    await _require_member(group_id, user_id, session)
    await _get_group_message(group_id, message_id, session)

    existing = await _find_reaction(message_id, user_id, value, session)
    if existing is not None:
        await session.delete(existing)
        await session.flush()
        return False

    session.add(GroupMessageReaction(message_id=message_id, user_id=user_id, emoji=value))
    await session.flush()
    return True


async def remove_reaction(
    group_id: uuid.UUID,
    message_id: uuid.UUID,
    user_id: uuid.UUID,
    emoji: Optional[str],
    session: AsyncSession,
) -> None:
    value = _clean_emoji(emoji)
    await _require_member(group_id, user_id, session)
    await _get_group_message(group_id, message_id, session)

    existing = await _find_reaction(message_id, user_id, value, session)
    if existing is None:
        raise HTTPException(status_code=404, detail="Reaction not found")
    await session.delete(existing)
    await session.flush()


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------

async def delete_message(group_id: uuid.UUID, message_id: uuid.UUID, session: AsyncSession) -> None:
    """Administrator removal of a message, with its receipts and reactions."""
    result = await session.execute(select(Group.id).where(Group.id == group_id))
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="Group not found")

    result = await session.execute(select(GroupMessage).where(GroupMessage.id == message_id))
    message = result.scalar_one_or_none()
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")
    if message.group_id != group_id:
        raise HTTPException(status_code=400, detail="Message does not belong to this group")

    await session.execute(delete(GroupMessageRead).where(GroupMessageRead.message_id == message_id))
    await session.execute(
        delete(GroupMessageReaction).where(GroupMessageReaction.message_id == message_id)
    )
    await session.delete(message)
    await session.flush()
    log.info("message.deleted_by_admin", group_id=str(group_id), message_id=str(message_id))

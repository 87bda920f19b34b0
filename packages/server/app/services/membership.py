"""
Group membership service — joins, leaves, removals and leadership.

Owns the two group invariants:

* the leader of a group is always one of its members;
* a user's legacy event pointer (``UserEvent.group_id``) references their
  earliest-joined remaining group in that event, or is null. It is recomputed
  whenever a membership is removed. Joining deliberately leaves it alone.

Every function runs inside the caller's session transaction and only
flushes; the request (or script) owning the session commits or rolls back.
Mutations of a group start by locking its row.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import delete, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import LeadershipTransferError
from app.models.group import Group
from app.models.group_member import GroupMember
from app.models.user_event import UserEvent

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def lock_group(group_id: uuid.UUID, session: AsyncSession) -> Group:
    """Load a group with a row lock; raises 404 if it does not exist."""
    result = await session.execute(
        select(Group).where(Group.id == group_id).with_for_update()
    )
    group = result.scalar_one_or_none()
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    return group


async def get_membership(
    user_id: uuid.UUID, group_id: uuid.UUID, session: AsyncSession
) -> Optional[GroupMember]:
    result = await session.execute(
        select(GroupMember).where(
            GroupMember.user_id == user_id, GroupMember.group_id == group_id
        )
    )
    return result.scalar_one_or_none()


async def count_members(group_id: uuid.UUID, session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count()).select_from(GroupMember).where(GroupMember.group_id == group_id)
    )
    return result.scalar_one()


async def members_by_join_order(
    group_id: uuid.UUID,
    session: AsyncSession,
    *,
    exclude_user_id: Optional[uuid.UUID] = None,
) -> list[GroupMember]:
    """Members of a group, earliest joiner first."""
    stmt = select(GroupMember).where(GroupMember.group_id == group_id)
    if exclude_user_id is not None:
        stmt = stmt.where(GroupMember.user_id != exclude_user_id)
    result = await session.execute(stmt.order_by(GroupMember.joined_at.asc()))
    return list(result.scalars().all())


async def recompute_event_pointer(
    user_id: uuid.UUID, event_id: uuid.UUID, session: AsyncSession
) -> Optional[uuid.UUID]:
    """Point the user's participation record at their earliest remaining group.

    Returns the new pointer value. Users without a participation record are
    left as they are.
    """
    result = await session.execute(
        select(GroupMember.group_id)
        .where(GroupMember.user_id == user_id, GroupMember.event_id == event_id)
        .order_by(GroupMember.joined_at.asc())
        .limit(1)
    )
    earliest = result.scalar_one_or_none()

    result = await session.execute(
        select(UserEvent).where(UserEvent.user_id == user_id, UserEvent.event_id == event_id)
    )
    user_event = result.scalar_one_or_none()
    if user_event is not None and user_event.group_id != earliest:
        user_event.group_id = earliest
        session.add(user_event)
        await session.flush()
    return earliest


# ---------------------------------------------------------------------------
# Join
# ---------------------------------------------------------------------------

async def join_group(
    group: Group, user_id: uuid.UUID, session: AsyncSession
) -> tuple[GroupMember, bool]:
    """Add the user to the group. Returns (membership, created).

    Joining twice is a no-op that returns the existing membership.
    """
    existing = await get_membership(user_id, group.id, session)
    if existing:
        return existing, False

    result = await session.execute(
        select(UserEvent).where(UserEvent.user_id == user_id, UserEvent.event_id == group.event_id)
    )
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=403, detail="You are not participating in this event")

    if group.max_members is not None:
        if await count_members(group.id, session) >= group.max_members:
            raise HTTPException(status_code=400, detail="Group is full")

    membership = GroupMember(user_id=user_id, group_id=group.id, event_id=group.event_id)
    try:
        async with session.begin_nested():
            session.add(membership)
    except IntegrityError:
        # A concurrent join won the unique (user, group) key.
        existing = await get_membership(user_id, group.id, session)
        if existing is None:
            raise
        return existing, False

    log.info("group.member_joined", group_id=str(group.id), user_id=str(user_id))
    return membership, True


# ---------------------------------------------------------------------------
# Leave / remove
# ---------------------------------------------------------------------------

async def _delete_membership(
    group: Group, membership: GroupMember, session: AsyncSession
) -> Optional[uuid.UUID]:
    user_id = membership.user_id
    await session.delete(membership)
    await session.flush()
    return await recompute_event_pointer(user_id, group.event_id, session)


async def leave_group(
    group_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> None:
    """The caller leaves a group. Leaders must transfer or disband instead."""
    group = await lock_group(group_id, session)

    if group.leader_user_id == user_id:
        raise HTTPException(
            status_code=400,
            detail="Group leader must transfer leadership or disband the group instead",
        )

    membership = await get_membership(user_id, group.id, session)
    if not membership:
        raise HTTPException(status_code=403, detail="You are not a member of this group")

    pointer = await _delete_membership(group, membership, session)
    log.info(
        "group.member_left",
        group_id=str(group.id),
        user_id=str(user_id),
        event_pointer=str(pointer) if pointer else None,
    )


async def remove_member(
    group_id: uuid.UUID,
    target_user_id: uuid.UUID,
    session: AsyncSession,
    *,
    acting_user_id: Optional[uuid.UUID] = None,
) -> None:
    """Remove someone else from a group.

    With ``acting_user_id`` the caller must be the group's leader; without it
    the caller is an administrator and has already been authorized.
    """
    group = await lock_group(group_id, session)

    if acting_user_id is not None and group.leader_user_id != acting_user_id:
        raise HTTPException(status_code=403, detail="Only the group leader can remove members")

    if group.leader_user_id == target_user_id:
        raise HTTPException(
            status_code=400,
            detail="Cannot remove the group leader. Change the leader first.",
        )

    membership = await get_membership(target_user_id, group.id, session)
    if not membership:
        raise HTTPException(status_code=404, detail="User is not a member of this group")

    pointer = await _delete_membership(group, membership, session)
    log.info(
        "group.member_removed",
        group_id=str(group.id),
        user_id=str(target_user_id),
        removed_by=str(acting_user_id) if acting_user_id else "admin",
        event_pointer=str(pointer) if pointer else None,
    )


# ---------------------------------------------------------------------------
# Leadership
# ---------------------------------------------------------------------------

async def _set_leader(group: Group, new_leader_id: uuid.UUID, session: AsyncSession) -> None:
    group.leader_user_id = new_leader_id
    session.add(group)
    await session.flush()


async def transfer_leadership(
    group_id: uuid.UUID,
    acting_user_id: uuid.UUID,
    new_leader_id: uuid.UUID,
    session: AsyncSession,
) -> Group:
    """The current leader hands the group to another member."""
    group = await lock_group(group_id, session)

    if group.leader_user_id != acting_user_id:
        raise HTTPException(status_code=403, detail="Only the group leader can transfer ownership")

    if new_leader_id == acting_user_id:
        raise HTTPException(status_code=400, detail="Cannot transfer ownership to yourself")

    if not await get_membership(new_leader_id, group.id, session):
        raise HTTPException(status_code=400, detail="The new leader must be a member of the group")

    await _set_leader(group, new_leader_id, session)
    log.info(
        "group.leadership_transferred",
        group_id=str(group.id),
        from_user=str(acting_user_id),
        to_user=str(new_leader_id),
    )
    return group


async def change_leader(
    group_id: uuid.UUID, new_leader_id: uuid.UUID, session: AsyncSession
) -> Group:
    """Administrator override of a group's leader."""
    group = await lock_group(group_id, session)

    if not await get_membership(new_leader_id, group.id, session):
        raise HTTPException(status_code=400, detail="The new leader must be a member of the group")

    previous = group.leader_user_id
    await _set_leader(group, new_leader_id, session)
    log.info(
        "group.leader_changed",
        group_id=str(group.id),
        from_user=str(previous),
        to_user=str(new_leader_id),
    )
    return group


# ---------------------------------------------------------------------------
# Group deletion
# ---------------------------------------------------------------------------

async def delete_group(group: Group, session: AsyncSession) -> None:
    """Delete a group with its memberships and repoint affected event pointers."""
    result = await session.execute(
        select(UserEvent.user_id).where(UserEvent.group_id == group.id)
    )
    pointed_users = list(result.scalars().all())

    await session.execute(delete(GroupMember).where(GroupMember.group_id == group.id))
    for user_id in pointed_users:
        await recompute_event_pointer(user_id, group.event_id, session)

    await session.delete(group)
    await session.flush()


async def reassign_leadership(
    user_id: uuid.UUID, session: AsyncSession, *, strict: bool
) -> list[dict]:
    """Hand over every group led by a user who is being deleted.

    Each group goes to its earliest-joined other member; a group with no other
    member is deleted. Groups are handled one SAVEPOINT at a time so a failure
    only undoes that group's changes.

    A failed group deletion is logged and skipped. A failed leader update
    raises ``LeadershipTransferError`` when ``strict`` and is logged and
    skipped otherwise.

    Every led group is row-locked before its members are read, so a concurrent
    leave, removal or transfer either finishes first and is seen here, or waits.

    Returns one ``{"group_id", "action", "new_leader_id"}`` entry per group.
    """
    result = await session.execute(
        select(Group)
        .where(Group.leader_user_id == user_id)
        .order_by(Group.created_at.asc())
        .with_for_update()
    )
    groups = list(result.scalars().all())
    outcomes: list[dict] = []

    for group in groups:
        # Captured up front: a rolled-back savepoint expires the instance.
        group_id, group_name = group.id, group.name
        others = await members_by_join_order(group_id, session, exclude_user_id=user_id)

        if not others:
            try:
                async with session.begin_nested():
                    await delete_group(group, session)
            except SQLAlchemyError:
                log.error("group.cascade_delete_failed", group_id=str(group_id), exc_info=True)
                outcomes.append({"group_id": group_id, "action": "delete_failed", "new_leader_id": None})
                continue
            log.info("group.deleted_with_leader", group_id=str(group_id), user_id=str(user_id))
            outcomes.append({"group_id": group_id, "action": "deleted", "new_leader_id": None})
            continue

        new_leader_id = others[0].user_id
        try:
            async with session.begin_nested():
                await _set_leader(group, new_leader_id, session)
        except SQLAlchemyError as exc:
            log.error(
                "group.leadership_reassign_failed",
                group_id=str(group_id),
                user_id=str(user_id),
                strict=strict,
                exc_info=True,
            )
            if strict:
                raise LeadershipTransferError(group_id, group_name, str(exc)) from exc
            outcomes.append({"group_id": group_id, "action": "reassign_failed", "new_leader_id": None})
            continue

        log.info(
            "group.leadership_reassigned",
            group_id=str(group_id),
            from_user=str(user_id),
            to_user=str(new_leader_id),
        )
        outcomes.append({"group_id": group_id, "action": "reassigned", "new_leader_id": new_leader_id})

    return outcomes

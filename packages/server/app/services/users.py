"""
User administration service — listing, roles, bans, and the delete/restore lifecycle.

Logical deletion is reversible, so it refuses to proceed if any led group
cannot be handed over. Physical deletion is only allowed after a logical one
and treats leadership cleanup as best effort.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import HTTPException
from sqlalchemy import delete, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.base import utcnow
from app.models.group import Group
from app.models.group_member import GroupMember
from app.models.user import User
from app.models.user_event import UserEvent
from app.services import membership as membership_service
from awase_shared.schemas.common import SortOrder, UserRole
from awase_shared.schemas.users import UserListQuery, UserRoleFilter, UserSortField

log = structlog.get_logger()

SORT_COLUMNS = {
    UserSortField.CREATED_AT: User.created_at,
    UserSortField.EMAIL: User.email,
    UserSortField.NAME: User.name,
    UserSortField.DISPLAY_NAME: User.display_name,
    UserSortField.ROLE: User.role,
}


async def get_user(user_id: uuid.UUID, session: AsyncSession) -> User:
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def list_users(query: UserListQuery, session: AsyncSession) -> list[User]:
    """Admin user list. Sort and filter fields come from closed enumerations."""
    stmt = select(User)

    if query.role != UserRoleFilter.ALL:
        stmt = stmt.where(User.role == query.role.value)

    if query.search:
        term = query.search.strip()
        stmt = stmt.where(
            or_(
                User.email.icontains(term, autoescape=True),
                User.name.icontains(term, autoescape=True),
            )
        )

    column = SORT_COLUMNS[query.sort_by]
    stmt = stmt.order_by(column.asc() if query.sort_order == SortOrder.ASC else column.desc())

    result = await session.execute(stmt)
    return list(result.scalars().all())


async def update_role(user_id: uuid.UUID, role: UserRole, session: AsyncSession) -> User:
    user = await get_user(user_id, session)
    user.role = role.value
    session.add(user)
    await session.flush()
    log.info("user.role_updated", user_id=str(user_id), role=role.value)
    return user


async def set_banned(
    user_id: uuid.UUID, is_banned: bool, acting_user_id: uuid.UUID, session: AsyncSession
) -> User:
    if user_id == acting_user_id:
        raise HTTPException(status_code=400, detail="You cannot ban yourself")
    user = await get_user(user_id, session)
    user.is_banned = is_banned
    session.add(user)
    await session.flush()
    log.info("user.ban_updated", user_id=str(user_id), is_banned=is_banned)
    return user


async def soft_delete_user(
    user_id: uuid.UUID, acting_user_id: uuid.UUID, session: AsyncSession
) -> User:
    """Logically delete a user after handing over every group they lead.

    Raises ``LeadershipTransferError`` (500) and leaves the user untouched if
    any handover fails.
    """
    if user_id == acting_user_id:
        raise HTTPException(status_code=400, detail="You cannot delete yourself")

    user = await get_user(user_id, session)
    if user.is_deleted:
        raise HTTPException(status_code=400, detail="User is already deleted")

    outcomes = await membership_service.reassign_leadership(user_id, session, strict=True)

    user.deleted_at = utcnow()
    session.add(user)
    await session.flush()

    log.info("user.soft_deleted", user_id=str(user_id), groups_handled=len(outcomes))
    return user


async def hard_delete_user(
    user_id: uuid.UUID, acting_user_id: uuid.UUID, session: AsyncSession
) -> None:
    """Permanently remove a logically deleted user and everything they own."""
    if user_id == acting_user_id:
        raise HTTPException(status_code=400, detail="You cannot delete yourself")

    user = await get_user(user_id, session)
    if not user.is_deleted:
        raise HTTPException(
            status_code=400,
            detail="Only logically deleted users can be permanently deleted. Delete the user first.",
        )

    await membership_service.reassign_leadership(user_id, session, strict=False)

    # Anything still led by the user could not be handed over; it goes with them.
    result = await session.execute(
        select(Group).where(Group.leader_user_id == user_id).with_for_update()
    )
    for group in result.scalars().all():
        log.warning("group.deleted_with_purged_leader", group_id=str(group.id), user_id=str(user_id))
        await membership_service.delete_group(group, session)

    await session.execute(delete(GroupMember).where(GroupMember.user_id == user_id))
    await session.execute(delete(UserEvent).where(UserEvent.user_id == user_id))
    await session.delete(user)
    await session.flush()

    log.info("user.hard_deleted", user_id=str(user_id))


async def restore_user(user_id: uuid.UUID, session: AsyncSession) -> User:
    """Undo a logical deletion. Leadership handed over at deletion stays handed over."""
    user = await get_user(user_id, session)
    user.deleted_at = None
    session.add(user)
    await session.flush()
    log.info("user.restored", user_id=str(user_id))
    return user

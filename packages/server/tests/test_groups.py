"""
Tests for the group and event services.

Covers:
- Group creation (code format, creator membership, pointer set only when empty)
- Join by code, detail view, my-groups listing
- Disband (pointer recomputation) and the owner note
- Event participation and withdrawal
"""

from __future__ import annotations

import re
import uuid
from unittest.mock import patch

import pytest
from fastapi import HTTPException
from sqlmodel import select

from app.models.group import Group
from app.models.group_member import GroupMember
from app.models.user_event import UserEvent
from app.services import events as event_service
from app.services import groups as group_service
from awase_shared.schemas.common import ParticipationStatus
from awase_shared.schemas.groups import GroupCreateRequest
from factories import make_event, make_group, make_user, participate


async def pointer(session, user_id, event_id):
    result = await session.execute(
        select(UserEvent.group_id).where(UserEvent.user_id == user_id, UserEvent.event_id == event_id)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

class TestCreateGroup:
    def test_generated_code_is_eight_digits(self):
        for _ in range(50):
            assert re.fullmatch(r"[0-9]{8}", group_service.generate_group_code())

    @pytest.mark.asyncio
    async def test_creator_becomes_leader_and_member(self, session):
        ev = await make_event(session)
        creator = await make_user(session, "creator")

        group = await group_service.create_group(
            GroupCreateRequest(event_id=ev.id, name="Sakura"), creator.id, session
        )

        assert group.leader_user_id == creator.id
        result = await session.execute(select(GroupMember.user_id).where(GroupMember.group_id == group.id))
        assert result.scalars().all() == [creator.id]
        assert await pointer(session, creator.id, ev.id) == group.id

    @pytest.mark.asyncio
    async def test_existing_pointer_is_kept(self, session):
        ev = await make_event(session)
        creator = await make_user(session, "creator")
        first = await group_service.create_group(
            GroupCreateRequest(event_id=ev.id, name="First"), creator.id, session
        )
        await group_service.create_group(
            GroupCreateRequest(event_id=ev.id, name="Second"), creator.id, session
        )
        assert await pointer(session, creator.id, ev.id) == first.id

    @pytest.mark.asyncio
    async def test_unknown_event(self, session):
        creator = await make_user(session)
        with pytest.raises(HTTPException) as exc_info:
            await group_service.create_group(
                GroupCreateRequest(event_id=uuid.uuid4(), name="Lost"), creator.id, session
            )
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_code_generation_gives_up(self, session):
        ev = await make_event(session)
        leader = await make_user(session)
        taken = await make_group(session, ev, leader)

        with patch("app.services.groups.generate_group_code", return_value=taken.group_code):
            with pytest.raises(HTTPException) as exc_info:
                await group_service.create_group(
                    GroupCreateRequest(event_id=ev.id, name="Dup"), leader.id, session
                )
        assert exc_info.value.status_code == 500


# ---------------------------------------------------------------------------
# Join by code / detail / listing
# ---------------------------------------------------------------------------

class TestJoinAndView:
    @pytest.mark.asyncio
    async def test_join_by_code_twice(self, session):
        ev = await make_event(session)
        leader, user = await make_user(session, "leader"), await make_user(session, "u")
        group = await make_group(session, ev, leader)
        await participate(session, user, ev)

        first = await group_service.join_group(user.id, session, group_code=group.group_code)
        second = await group_service.join_group(user.id, session, group_code=group.group_code)

        assert first["already_member"] is False
        assert second["already_member"] is True
        assert second["member_count"] == 2

    @pytest.mark.asyncio
    async def test_unknown_code(self, session):
        user = await make_user(session)
        with pytest.raises(HTTPException) as exc_info:
            await group_service.join_group(user.id, session, group_code="00000000")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_detail_lists_members_in_join_order(self, session):
        ev = await make_event(session)
        leader, m1, m2 = [await make_user(session, n) for n in ("leader", "m1", "m2")]
        group = await make_group(session, ev, leader, members=(m1, m2))

        detail = await group_service.get_group_detail(group.id, m2.id, session)

        assert [m["id"] for m in detail["members"]] == [leader.id, m1.id, m2.id]
        assert [m["is_leader"] for m in detail["members"]] == [True, False, False]
        assert detail["is_leader"] is False
        assert detail["event"]["id"] == ev.id

    @pytest.mark.asyncio
    async def test_detail_is_for_members_only(self, session):
        ev = await make_event(session)
        leader, outsider = await make_user(session, "leader"), await make_user(session, "x")
        group = await make_group(session, ev, leader)

        with pytest.raises(HTTPException) as exc_info:
            await group_service.get_group_detail(group.id, outsider.id, session)
        assert exc_info.value.status_code == 403

        detail = await group_service.get_group_detail(group.id, outsider.id, session, as_admin=True)
        assert detail["member_count"] == 1

    @pytest.mark.asyncio
    async def test_my_groups_filtered_by_event(self, session):
        ev1, ev2 = await make_event(session, "One"), await make_event(session, "Two")
        user, other = await make_user(session, "u"), await make_user(session, "o")
        g1 = await make_group(session, ev1, user, name="Mine")
        await make_group(session, ev2, other, name="Theirs", members=(user,))

        everything = await group_service.list_user_groups(user.id, session)
        only_one = await group_service.list_user_groups(user.id, session, event_id=ev1.id)

        assert len(everything) == 2
        assert [g["id"] for g in only_one] == [g1.id]
        assert only_one[0]["is_leader"] is True
        assert only_one[0]["member_count"] == 1


# ---------------------------------------------------------------------------
# Disband / owner note
# ---------------------------------------------------------------------------

class TestDisbandAndNote:
    @pytest.mark.asyncio
    async def test_disband_recomputes_member_pointers(self, session):
        ev = await make_event(session)
        leader, other_leader, m1 = [await make_user(session, n) for n in ("leader", "ol", "m1")]
        doomed = await make_group(session, ev, leader, members=(m1,), start=0)
        fallback = await make_group(session, ev, other_leader, members=(m1,), start=10)
        ue = await session.get(UserEvent, (m1.id, ev.id))
        ue.group_id = doomed.id
        await session.flush()
        doomed_id = doomed.id

        await group_service.disband_group(doomed_id, leader.id, session)

        assert (await session.execute(select(Group).where(Group.id == doomed_id))).scalar_one_or_none() is None
        assert await pointer(session, m1.id, ev.id) == fallback.id

    @pytest.mark.asyncio
    async def test_only_leader_disbands(self, session):
        ev = await make_event(session)
        leader, m1 = await make_user(session, "leader"), await make_user(session, "m1")
        group = await make_group(session, ev, leader, members=(m1,))

        with pytest.raises(HTTPException) as exc_info:
            await group_service.disband_group(group.id, m1.id, session)
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_owner_note_read_and_write(self, session):
        ev = await make_event(session)
        leader, m1 = await make_user(session, "leader"), await make_user(session, "m1")
        group = await make_group(session, ev, leader, members=(m1,))

        written = await group_service.update_owner_note(group.id, leader.id, "  Meet at gate B  ", session)
        assert written["owner_note"] == "Meet at gate B"

        read = await group_service.get_owner_note(group.id, m1.id, session)
        assert read == {"owner_note": "Meet at gate B", "is_leader": False}

        with pytest.raises(HTTPException) as exc_info:
            await group_service.update_owner_note(group.id, m1.id, "mine now", session)
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_blank_owner_note_is_cleared(self, session):
        ev = await make_event(session)
        leader = await make_user(session, "leader")
        group = await make_group(session, ev, leader)

        result = await group_service.update_owner_note(group.id, leader.id, "   ", session)
        assert result["owner_note"] is None

    @pytest.mark.asyncio
    async def test_owner_note_limit_counts_trimmed_text(self, session):
        ev = await make_event(session)
        leader = await make_user(session, "leader")
        group = await make_group(session, ev, leader)

        padded = "  " + "x" * 2000 + "\n\n"
        result = await group_service.update_owner_note(group.id, leader.id, padded, session)
        assert result["owner_note"] == "x" * 2000

        with pytest.raises(HTTPException) as exc_info:
            await group_service.update_owner_note(group.id, leader.id, "x" * 2001, session)
        assert exc_info.value.status_code == 400


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

class TestEvents:
    @pytest.mark.asyncio
    async def test_only_approved_events_listed(self, session):
        approved = await make_event(session, "Open")
        await make_event(session, "Draft", approved=False)

        events = await event_service.list_events(session)
        assert [e.id for e in events] == [approved.id]

    @pytest.mark.asyncio
    async def test_participate_upserts(self, session):
        ev = await make_event(session)
        user = await make_user(session)

        await event_service.participate(ev.id, user.id, ParticipationStatus.INTERESTED, session)
        ue = await event_service.participate(ev.id, user.id, ParticipationStatus.GOING, session)

        assert ue.status == "GOING"
        result = await session.execute(select(UserEvent).where(UserEvent.user_id == user.id))
        assert len(result.scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_withdraw_blocked_while_in_a_group(self, session):
        ev = await make_event(session)
        leader = await make_user(session, "leader")
        await make_group(session, ev, leader)

        with pytest.raises(HTTPException) as exc_info:
            await event_service.withdraw(ev.id, leader.id, session)
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_withdraw(self, session):
        ev = await make_event(session)
        user = await make_user(session)
        await participate(session, user, ev)

        await event_service.withdraw(ev.id, user.id, session)

        with pytest.raises(HTTPException) as exc_info:
            await event_service.withdraw(ev.id, user.id, session)
        assert exc_info.value.status_code == 404

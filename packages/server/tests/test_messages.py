"""
Tests for group chat.

Covers:
- Posting and paging history (members only)
- Read receipts, read-all and the per-group unread flags
- Reaction toggling and removal
- Administrator message deletion and group listing
- Fan-out to the realtime broadcast Lambda
- /api/v1/groups/{groupId}/messages and /api/v1/admin/groups routes
"""

from __future__ import annotations

import json
import uuid
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError
from fastapi import HTTPException
from sqlmodel import select

from app.core import realtime
from app.models.message import GroupMessage, GroupMessageReaction, GroupMessageRead
from app.services import groups as group_service
from app.services import messages as message_service
from app.services import users as user_service
from factories import at, bearer, make_event, make_group, make_user


async def add_message(session, group, sender, content: str, minutes: int) -> GroupMessage:
    message = GroupMessage(group_id=group.id, sender_id=sender.id, content=content, created_at=at(minutes))
    session.add(message)
    await session.flush()
    return message


async def chat(session):
    """An event with one group: a leader and one member."""
    ev = await make_event(session)
    leader = await make_user(session, "leader")
    member = await make_user(session, "member")
    group = await make_group(session, ev, leader, name="Sakura", members=(member,))
    return ev, group, leader, member


# ---------------------------------------------------------------------------
# Posting and history
# ---------------------------------------------------------------------------

class TestPostAndList:
    @pytest.mark.asyncio
    async def test_post_stores_trimmed_content_with_sender_receipt(self, session):
        _, group, leader, _ = await chat(session)

        view = await message_service.post_message(group.id, leader, "  hello  ", session)

        assert view["content"] == "hello"
        assert view["sender"]["id"] == leader.id
        receipt = await session.get(GroupMessageRead, (view["id"], leader.id))
        assert receipt is not None

    @pytest.mark.asyncio
    async def test_blank_content_rejected(self, session):
        _, group, leader, _ = await chat(session)
        with pytest.raises(HTTPException) as exc_info:
            await message_service.post_message(group.id, leader, "   ", session)
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "Content is required"

    @pytest.mark.asyncio
    async def test_outsider_cannot_post_or_read(self, session):
        _, group, _, _ = await chat(session)
        outsider = await make_user(session, "outsider")

        with pytest.raises(HTTPException) as exc_info:
            await message_service.post_message(group.id, outsider, "hi", session)
        assert exc_info.value.status_code == 403

        with pytest.raises(HTTPException) as exc_info:
            await message_service.list_messages(group.id, outsider.id, session)
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_group(self, session):
        user = await make_user(session)
        with pytest.raises(HTTPException) as exc_info:
            await message_service.list_messages(uuid.uuid4(), user.id, session)
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_history_pages_oldest_first(self, session):
        _, group, leader, member = await chat(session)
        for n, text in enumerate(["one", "two", "three"]):
            await add_message(session, group, leader if n % 2 == 0 else member, text, n)

        page, cursor = await message_service.list_messages(group.id, member.id, session, limit=2)
        assert [m["content"] for m in page] == ["two", "three"]
        assert cursor is not None

        older, cursor = await message_service.list_messages(
            group.id, member.id, session, before=cursor, limit=2
        )
        assert [m["content"] for m in older] == ["one"]
        assert cursor is None

    @pytest.mark.asyncio
    async def test_history_carries_reaction_summaries(self, session):
        _, group, leader, member = await chat(session)
        message = await add_message(session, group, leader, "party", 0)
        await message_service.toggle_reaction(group.id, message.id, leader.id, "👍", session)
        await message_service.toggle_reaction(group.id, message.id, member.id, "👍", session)
        await message_service.toggle_reaction(group.id, message.id, member.id, "🎉", session)

        page, _ = await message_service.list_messages(group.id, leader.id, session)

        reactions = {r["emoji"]: r for r in page[0]["reactions"]}
        assert reactions["👍"]["count"] == 2
        assert reactions["👍"]["reacted_by_me"] is True
        assert reactions["🎉"]["count"] == 1
        assert reactions["🎉"]["reacted_by_me"] is False


# ---------------------------------------------------------------------------
# Read receipts
# ---------------------------------------------------------------------------

class TestReadReceipts:
    @pytest.mark.asyncio
    async def test_unread_until_latest_is_read(self, session):
        _, group, leader, member = await chat(session)
        await add_message(session, group, leader, "first", 0)
        latest = await add_message(session, group, leader, "second", 1)

        assert await message_service.unread_flags(member.id, session) == {str(group.id): True}

        await message_service.mark_read(group.id, latest.id, member.id, session)
        assert await message_service.unread_flags(member.id, session) == {str(group.id): False}

    @pytest.mark.asyncio
    async def test_groups_without_messages_are_left_out(self, session):
        _, _, _, member = await chat(session)
        assert await message_service.unread_flags(member.id, session) == {}

    @pytest.mark.asyncio
    async def test_read_all_counts_every_message(self, session):
        _, group, leader, member = await chat(session)
        for n in range(3):
            await add_message(session, group, leader, f"m{n}", n)

        assert await message_service.mark_all_read(group.id, member.id, session) == 3
        assert await message_service.mark_all_read(group.id, member.id, session) == 3

        result = await session.execute(
            select(GroupMessageRead).where(GroupMessageRead.user_id == member.id)
        )
        assert len(result.scalars().all()) == 3

    @pytest.mark.asyncio
    async def test_message_from_another_group(self, session):
        ev, group, leader, member = await chat(session)
        other = await make_group(session, ev, leader, name="Other")
        stray = await add_message(session, other, leader, "elsewhere", 0)

        with pytest.raises(HTTPException) as exc_info:
            await message_service.mark_read(group.id, stray.id, member.id, session)
        assert exc_info.value.status_code == 404


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------

class TestReactions:
    @pytest.mark.asyncio
    async def test_toggle_adds_then_removes(self, session):
        _, group, leader, member = await chat(session)
        message = await add_message(session, group, leader, "hi", 0)

        assert await message_service.toggle_reaction(group.id, message.id, member.id, "👍", session) is True
        assert await message_service.toggle_reaction(group.id, message.id, member.id, "👍", session) is False

        result = await session.execute(select(GroupMessageReaction))
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_remove_missing_reaction(self, session):
        _, group, leader, member = await chat(session)
        message = await add_message(session, group, leader, "hi", 0)
        with pytest.raises(HTTPException) as exc_info:
            await message_service.remove_reaction(group.id, message.id, member.id, "👍", session)
        assert exc_info.value.status_code == 404
        assert exc_info.value.detail == "Reaction not found"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "emoji, detail",
        [("", "Emoji is required"), ("   ", "Emoji is required"), ("x" * 11, "Emoji is too long")],
    )
    async def test_emoji_validation(self, session, emoji, detail):
        _, group, leader, _ = await chat(session)
        message = await add_message(session, group, leader, "hi", 0)
        with pytest.raises(HTTPException) as exc_info:
            await message_service.toggle_reaction(group.id, message.id, leader.id, emoji, session)
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == detail


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------

class TestAdministration:
    @pytest.mark.asyncio
    async def test_delete_message_takes_receipts_and_reactions(self, session):
        _, group, leader, member = await chat(session)
        view = await message_service.post_message(group.id, leader, "oops", session)
        await message_service.toggle_reaction(group.id, view["id"], member.id, "😅", session)

        await message_service.delete_message(group.id, view["id"], session)

        assert await session.get(GroupMessage, view["id"]) is None
        assert (await session.execute(select(GroupMessageRead))).scalars().all() == []
        assert (await session.execute(select(GroupMessageReaction))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_delete_message_errors(self, session):
        ev, group, leader, _ = await chat(session)
        other = await make_group(session, ev, leader, name="Other")
        stray = await add_message(session, other, leader, "elsewhere", 0)

        cases = [
            (uuid.uuid4(), stray.id, 404, "Group not found"),
            (group.id, uuid.uuid4(), 404, "Message not found"),
            (group.id, stray.id, 400, "Message does not belong to this group"),
        ]
        for group_id, message_id, status, detail in cases:
            with pytest.raises(HTTPException) as exc_info:
                await message_service.delete_message(group_id, message_id, session)
            assert (exc_info.value.status_code, exc_info.value.detail) == (status, detail)

    @pytest.mark.asyncio
    async def test_list_groups_counts_and_filters(self, session):
        ev, group, leader, _ = await chat(session)
        other_event = await make_event(session, "Autumn Fair")
        await make_group(session, other_event, leader, name="Momiji")
        await add_message(session, group, leader, "one", 0)
        await add_message(session, group, leader, "two", 1)

        rows = await group_service.list_groups(session, event_id=ev.id)
        assert [r["name"] for r in rows] == ["Sakura"]
        assert rows[0]["member_count"] == 2
        assert rows[0]["message_count"] == 2
        assert rows[0]["leader"]["id"] == leader.id

        assert [r["name"] for r in await group_service.list_groups(session, search="momi")] == ["Momiji"]
        assert [r["name"] for r in await group_service.list_groups(session, search=group.group_code)] == ["Sakura"]
        assert await group_service.list_groups(session, search="100%") == []

    @pytest.mark.asyncio
    async def test_purged_user_takes_their_messages(self, session):
        _, group, leader, member = await chat(session)
        admin = await make_user(session, "admin", role="ADMIN")
        theirs = await add_message(session, group, member, "bye", 0)
        kept = await add_message(session, group, leader, "stay", 1)
        member.deleted_at = at(2)
        session.add(member)
        await session.flush()
        session.expunge(theirs)

        await user_service.hard_delete_user(member.id, admin.id, session)

        result = await session.execute(select(GroupMessage.id))
        assert result.scalars().all() == [kept.id]


# ---------------------------------------------------------------------------
# Realtime fan-out
# ---------------------------------------------------------------------------

class TestPublish:
    def test_without_broadcast_function_nothing_is_sent(self):
        client = MagicMock()
        with patch.object(realtime.settings, "broadcast_lambda_arn", ""), patch(
            "app.core.realtime.get_lambda_client", return_value=client
        ):
            realtime.publish_to_group(uuid.uuid4(), {"message": {}})
        client.invoke.assert_not_called()

    def test_invokes_asynchronously(self):
        client = MagicMock()
        gid = uuid.uuid4()
        with patch.object(realtime.settings, "broadcast_lambda_arn", "arn:aws:lambda:fn"), patch(
            "app.core.realtime.get_lambda_client", return_value=client
        ):
            realtime.publish_to_group(gid, {"type": "read-updated", "userId": "u", "messageId": "m"})

        kwargs = client.invoke.call_args.kwargs
        assert kwargs["FunctionName"] == "arn:aws:lambda:fn"
        assert kwargs["InvocationType"] == "Event"
        assert json.loads(kwargs["Payload"]) == {
            "groupId": str(gid),
            "type": "read-updated",
            "userId": "u",
            "messageId": "m",
        }

    def test_invoke_failure_is_logged_not_raised(self):
        client = MagicMock()
        client.invoke.side_effect = ClientError(
            {"Error": {"Code": "TooManyRequestsException", "Message": "throttled"}}, "Invoke"
        )
        with patch.object(realtime.settings, "broadcast_lambda_arn", "arn:aws:lambda:fn"), patch(
            "app.core.realtime.get_lambda_client", return_value=client
        ):
            realtime.publish_to_group(uuid.uuid4(), {"message": {}})
        client.invoke.assert_called_once()


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

class TestMessageRoutes:
    @pytest.mark.asyncio
    async def test_post_list_and_push(self, client, session_factory):
        async with session_factory() as s:
            _, group, leader, member = await chat(s)
            await s.commit()

        with patch("app.api.v1.messages.publish_to_group") as publish:
            resp = await client.post(
                f"/api/v1/groups/{group.id}/messages",
                json={"content": "Meet at gate B", "isAnnouncement": True},
                headers=bearer(leader),
            )
        assert resp.status_code == 201
        body = resp.json()
        assert body["content"] == "Meet at gate B"
        assert body["isAnnouncement"] is True
        assert body["sender"]["id"] == str(leader.id)

        publish.assert_called_once()
        pushed_group, pushed = publish.call_args.args
        assert pushed_group == group.id
        assert pushed["message"]["id"] == body["id"]

        listing = await client.get(f"/api/v1/groups/{group.id}/messages", headers=bearer(member))
        assert listing.status_code == 200
        assert [m["content"] for m in listing.json()["data"]] == ["Meet at gate B"]
        assert listing.json()["nextCursor"] is None

    @pytest.mark.asyncio
    async def test_unread_count_is_not_a_group_id(self, client, session_factory):
        async with session_factory() as s:
            _, group, leader, member = await chat(s)
            await add_message(s, group, leader, "hello", 0)
            await s.commit()

        resp = await client.get("/api/v1/groups/unread-count", headers=bearer(member))
        assert resp.status_code == 200
        assert resp.json() == {str(group.id): True}

    @pytest.mark.asyncio
    async def test_read_pushes_receipt(self, client, session_factory):
        async with session_factory() as s:
            _, group, leader, member = await chat(s)
            message = await add_message(s, group, leader, "hello", 0)
            await s.commit()

        with patch("app.api.v1.messages.publish_to_group") as publish:
            resp = await client.post(
                f"/api/v1/groups/{group.id}/messages/{message.id}/read", headers=bearer(member)
            )
        assert resp.status_code == 200
        publish.assert_called_once_with(
            group.id, {"type": "read-updated", "userId": str(member.id), "messageId": str(message.id)}
        )

        read_all = await client.post(f"/api/v1/groups/{group.id}/messages/read-all", headers=bearer(member))
        assert read_all.json() == {"success": True, "count": 1}

    @pytest.mark.asyncio
    async def test_reaction_routes(self, client, session_factory):
        async with session_factory() as s:
            _, group, leader, member = await chat(s)
            message = await add_message(s, group, leader, "hello", 0)
            await s.commit()

        url = f"/api/v1/groups/{group.id}/messages/{message.id}/reactions"
        added = await client.post(url, json={"emoji": "👍"}, headers=bearer(member))
        assert added.json() == {"added": True}

        removed = await client.delete(url, params={"emoji": "👍"}, headers=bearer(member))
        assert removed.status_code == 200
        again = await client.delete(url, params={"emoji": "👍"}, headers=bearer(member))
        assert again.status_code == 404
        assert again.json() == {"error": "Reaction not found"}

    @pytest.mark.asyncio
    async def test_outsider_is_forbidden(self, client, session_factory):
        async with session_factory() as s:
            _, group, _, _ = await chat(s)
            outsider = await make_user(s, "outsider")
            await s.commit()

        resp = await client.get(f"/api/v1/groups/{group.id}/messages", headers=bearer(outsider))
        assert resp.status_code == 403
        assert resp.json() == {"error": "You are not a member of this group"}


class TestAdminGroupRoutes:
    @pytest.mark.asyncio
    async def test_list_and_delete_message(self, client, session_factory):
        async with session_factory() as s:
            ev, group, leader, member = await chat(s)
            admin = await make_user(s, "admin", role="ADMIN")
            message = await add_message(s, group, member, "spam", 0)
            await s.commit()

        listing = await client.get(
            "/api/v1/admin/groups", params={"eventId": str(ev.id)}, headers=bearer(admin)
        )
        assert listing.status_code == 200
        [row] = listing.json()["data"]
        assert (row["memberCount"], row["messageCount"]) == (2, 1)
        assert row["event"]["id"] == str(ev.id)

        resp = await client.delete(
            f"/api/v1/admin/groups/{group.id}/messages/{message.id}", headers=bearer(admin)
        )
        assert resp.status_code == 200

        listing = await client.get("/api/v1/admin/groups", headers=bearer(admin))
        assert listing.json()["data"][0]["messageCount"] == 0

    @pytest.mark.asyncio
    async def test_members_cannot_moderate(self, client, session_factory):
        async with session_factory() as s:
            _, group, leader, _ = await chat(s)
            message = await add_message(s, group, leader, "hello", 0)
            await s.commit()

        assert (await client.get("/api/v1/admin/groups", headers=bearer(leader))).status_code == 403
        resp = await client.delete(
            f"/api/v1/admin/groups/{group.id}/messages/{message.id}", headers=bearer(leader)
        )
        assert resp.status_code == 403

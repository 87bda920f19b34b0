"""
API Gateway WebSocket route handlers.

$connect     — connect(event, context)     ?userId=<uuid>
$disconnect  — disconnect(event, context)
joinGroup    — join_group(event, context)  {"groupId": "<uuid>"}
leaveGroup   — leave_group(event, context) {"groupId": "<uuid>"}
sendMessage  — send_message(event, context) {"groupId": "<uuid>", "message": {...}}

broadcast(event, context) is invoked directly by the API after a chat write:
{"groupId", "message"} pushes new-message; {"groupId", "type": "read-updated",
"userId", "messageId"} pushes read-updated.

Every handler returns ``{"statusCode": ..., "body": json}``; failures are
logged and reported as 500 ``{"error": "Internal server error"}``.
"""

from __future__ import annotations

import json
import uuid
from functools import lru_cache
from typing import Optional

import structlog

from awase_realtime import fanout, lookups
from awase_realtime.config import get_realtime_settings
from awase_realtime.connections import ConnectionRegistry

log = structlog.get_logger()


@lru_cache
def get_registry() -> ConnectionRegistry:
    return ConnectionRegistry.from_settings(get_realtime_settings())


def _response(status_code: int, body: dict) -> dict:
    return {"statusCode": status_code, "body": json.dumps(body)}


def _error(status_code: int, message: str) -> dict:
    return _response(status_code, {"error": message})


def _connection_id(event: dict) -> Optional[str]:
    return (event.get("requestContext") or {}).get("connectionId")


def _parse_uuid(value) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _body(event: dict) -> dict:
    try:
        body = json.loads(event.get("body") or "{}")
    except json.JSONDecodeError:
        return {}
    return body if isinstance(body, dict) else {}


def _body_group_id(event: dict) -> Optional[uuid.UUID]:
    body = _body(event)
    if not body.get("groupId"):
        return None
    return _parse_uuid(body["groupId"])


def connect(event, context):
    """Register the connection and put it in the room of every group the user is in."""
    connection_id = _connection_id(event)
    params = event.get("queryStringParameters") or {}
    raw_user_id = params.get("userId")
    if not raw_user_id:
        return _error(401, "User ID required")
    user_id = _parse_uuid(raw_user_id)
    if user_id is None:
        return _error(401, "Invalid user ID")

    try:
        user = lookups.load_user(user_id)
        if user is None or user["is_deleted"]:
            return _error(404, "User not found")
        if user["is_banned"]:
            return _error(403, "User is banned")

        registry = get_registry()
        registry.add_connection(connection_id, str(user_id))

        group_ids = lookups.member_group_ids(user_id)
        for group_id in group_ids:
            registry.join_room(group_id, connection_id, str(user_id))

        log.info(
            "ws.connected", connection_id=connection_id, user_id=str(user_id), groups=len(group_ids)
        )
        return _response(200, {"message": "Connected", "groupIds": group_ids})
    except Exception:
        log.exception("ws.connect_failed", connection_id=connection_id)
        return _error(500, "Internal server error")


def disconnect(event, context):
    """Drop the connection and every room row that references it."""
    connection_id = _connection_id(event)
    try:
        registry = get_registry()
        connection = registry.get_connection(connection_id)
        if connection:
            rooms = registry.leave_all_rooms(connection_id)
            registry.remove_connection(connection_id)
            log.info(
                "ws.disconnected",
                connection_id=connection_id,
                user_id=connection.get("userId"),
                rooms=rooms,
            )
        return _response(200, {"message": "Disconnected"})
    except Exception:
        log.exception("ws.disconnect_failed", connection_id=connection_id)
        return _error(500, "Internal server error")


def join_group(event, context):
    connection_id = _connection_id(event)
    try:
        registry = get_registry()
        connection = registry.get_connection(connection_id)
        if not connection:
            return _error(401, "Connection not found")
        user_id = connection["userId"]

        group_id = _body_group_id(event)
        if group_id is None:
            return _error(400, "Group ID required")

        if not lookups.is_member(uuid.UUID(user_id), group_id):
            return _error(403, "Not a member of this group")

        registry.join_room(str(group_id), connection_id, user_id)
        log.info("ws.joined_group", connection_id=connection_id, group_id=str(group_id))
        return _response(200, {"message": "Joined group", "groupId": str(group_id)})
    except Exception:
        log.exception("ws.join_group_failed", connection_id=connection_id)
        return _error(500, "Internal server error")


def leave_group(event, context):
    connection_id = _connection_id(event)
    group_id = _body_group_id(event)
    if group_id is None:
        return _error(400, "Group ID required")

    try:
        get_registry().leave_room(str(group_id), connection_id)
        log.info("ws.left_group", connection_id=connection_id, group_id=str(group_id))
        return _response(200, {"message": "Left group", "groupId": str(group_id)})
    except Exception:
        log.exception("ws.leave_group_failed", connection_id=connection_id)
        return _error(500, "Internal server error")


def send_message(event, context):
    """Relay a client-sent message to everyone in the group room."""
    connection_id = _connection_id(event)
    try:
        registry = get_registry()
        connection = registry.get_connection(connection_id)
        if not connection:
            return _error(401, "Connection not found")
        user_id = connection["userId"]

        body = _body(event)
        group_id = _body_group_id(event)
        if group_id is None or not body.get("message"):
            return _error(400, "Group ID and message required")

        if not lookups.is_member(uuid.UUID(user_id), group_id):
            return _error(403, "Not a member of this group")

        gateway = fanout.get_gateway(fanout.endpoint_for(event))
        payload = {"type": "new-message", "groupId": str(group_id), "message": body["message"]}
        fanout.post_to_room(registry, gateway, str(group_id), payload)
        return _response(200, {"message": "Message sent", "groupId": str(group_id)})
    except Exception:
        log.exception("ws.send_message_failed", connection_id=connection_id)
        return _error(500, "Internal server error")


def broadcast(event, context):
    """Push a stored chat event to the group room. Invoked by the API, not by clients."""
    group_id = event.get("groupId")
    if not group_id:
        return _error(400, "Group ID required")

    if event.get("type") == "read-updated":
        payload = {
            "type": "read-updated",
            "groupId": group_id,
            "userId": event.get("userId"),
            "messageId": event.get("messageId"),
        }
    elif event.get("message"):
        payload = {"type": "new-message", "groupId": group_id, "message": event["message"]}
    else:
        return _error(400, "Invalid event type")

    try:
        registry = get_registry()
        endpoint = get_realtime_settings().websocket_api_endpoint
        if not endpoint:
            raise RuntimeError("WEBSOCKET_API_ENDPOINT must be set")
        sent, _ = fanout.post_to_room(registry, fanout.get_gateway(endpoint), group_id, payload)
        if sent == 0:
            return _response(200, {"message": "No active connections", "groupId": group_id})
        return _response(
            200, {"message": "Message broadcasted", "groupId": group_id, "connections": sent}
        )
    except Exception:
        log.exception("ws.broadcast_failed", group_id=group_id)
        return _error(500, "Internal server error")

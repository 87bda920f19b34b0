"""
DynamoDB-backed registry of open WebSocket connections and group rooms.

Connections table: PK ``connectionId``; ``userId``, ``connectedAt``, ``ttl``.
Group rooms table: PK ``groupId``, SK ``connectionId``; ``userId``, ``joinedAt``, ``ttl``.
Rows expire through DynamoDB TTL if a ``$disconnect`` is never delivered.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key

from awase_realtime.config import RealtimeSettings


class ConnectionRegistry:
    """Thin wrapper over the two tables. One instance per warm Lambda container."""

    def __init__(self, connections_table, group_rooms_table, ttl_seconds: int = 3600):
        self.connections = connections_table
        self.group_rooms = group_rooms_table
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_settings(cls, settings: RealtimeSettings) -> "ConnectionRegistry":
        if not settings.connections_table or not settings.group_rooms_table:
            raise RuntimeError("CONNECTIONS_TABLE and GROUP_ROOMS_TABLE must be set")
        dynamodb = boto3.resource("dynamodb", region_name=settings.aws_region)
        return cls(
            dynamodb.Table(settings.connections_table),
            dynamodb.Table(settings.group_rooms_table),
            ttl_seconds=settings.connection_ttl_seconds,
        )

    def _expiry(self) -> int:
        return int(time.time()) + self.ttl_seconds

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    # -- connections -------------------------------------------------------

    def add_connection(self, connection_id: str, user_id: str) -> None:
        self.connections.put_item(
            Item={
                "connectionId": connection_id,
                "userId": user_id,
                "connectedAt": self._now_iso(),
                "ttl": self._expiry(),
            }
        )

    def get_connection(self, connection_id: str) -> Optional[dict]:
        return self.connections.get_item(Key={"connectionId": connection_id}).get("Item")

    def remove_connection(self, connection_id: str) -> None:
        self.connections.delete_item(Key={"connectionId": connection_id})

    # -- group rooms -------------------------------------------------------

    def join_room(self, group_id: str, connection_id: str, user_id: str) -> None:
        self.group_rooms.put_item(
            Item={
                "groupId": group_id,
                "connectionId": connection_id,
                "userId": user_id,
                "joinedAt": self._now_iso(),
                "ttl": self._expiry(),
            }
        )

    def leave_room(self, group_id: str, connection_id: str) -> None:
        self.group_rooms.delete_item(Key={"groupId": group_id, "connectionId": connection_id})

    def rooms_for_connection(self, connection_id: str) -> list[str]:
        """Group ids the connection is in. Scans, since the table is keyed by group."""
        group_ids: list[str] = []
        kwargs = {"FilterExpression": Attr("connectionId").eq(connection_id)}
        while True:
            page = self.group_rooms.scan(**kwargs)
            group_ids.extend(item["groupId"] for item in page.get("Items", []))
            last_key = page.get("LastEvaluatedKey")
            if not last_key:
                return group_ids
            kwargs["ExclusiveStartKey"] = last_key

    def leave_all_rooms(self, connection_id: str) -> int:
        group_ids = self.rooms_for_connection(connection_id)
        for group_id in group_ids:
            self.leave_room(group_id, connection_id)
        return len(group_ids)

    def connections_in_room(self, group_id: str) -> list[dict]:
        """Room rows for a group, following query pages."""
        items: list[dict] = []
        kwargs = {"KeyConditionExpression": Key("groupId").eq(group_id)}
        while True:
            page = self.group_rooms.query(**kwargs)
            items.extend(page.get("Items", []))
            last_key = page.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

"""
Push payloads to every connection in a group room through the API Gateway
management API. Connections that API Gateway reports as gone lose their room row.
"""

from __future__ import annotations

import json
from functools import lru_cache

import boto3
import structlog
from botocore.exceptions import ClientError

from awase_realtime.connections import ConnectionRegistry

log = structlog.get_logger()


@lru_cache
def get_gateway(endpoint_url: str):
    return boto3.client("apigatewaymanagementapi", endpoint_url=endpoint_url)


def endpoint_for(event: dict) -> str:
    """Management endpoint of the API that delivered a WebSocket event."""
    context = event.get("requestContext") or {}
    return f"https://{context['domainName']}/{context['stage']}"


def post_to_room(registry: ConnectionRegistry, gateway, group_id: str, payload: dict) -> tuple[int, int]:
    """Send ``payload`` to the room. Returns ``(sent, stale)``."""
    data = json.dumps(payload, default=str).encode()
    sent = stale = 0
    for row in registry.connections_in_room(group_id):
        connection_id = row.get("connectionId")
        if not connection_id:
            continue
        try:
            gateway.post_to_connection(ConnectionId=connection_id, Data=data)
            sent += 1
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "GoneException":
                registry.leave_room(group_id, connection_id)
                stale += 1
            else:
                log.warning(
                    "ws.post_failed", group_id=group_id, connection_id=connection_id, exc_info=True
                )
    log.info("ws.room_posted", group_id=group_id, sent=sent, stale=stale, kind=payload.get("type"))
    return sent, stale

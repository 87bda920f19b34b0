"""Push chat events to connected clients through the realtime broadcast Lambda."""

from __future__ import annotations

import json
import uuid
from functools import lru_cache

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import get_settings

log = structlog.get_logger()
settings = get_settings()


@lru_cache
def get_lambda_client():
    return boto3.client("lambda", region_name=settings.aws_region)


def publish_to_group(group_id: uuid.UUID, payload: dict) -> None:
    """Fire-and-forget invoke of the broadcast Lambda for one group.

    Runs as a background task after the request has committed. Delivery is
    best effort: a failed invoke is logged and the stored data is unaffected.
    """
    if not settings.broadcast_lambda_arn:
        return

    event = {"groupId": str(group_id), **payload}
    try:
        get_lambda_client().invoke(
            FunctionName=settings.broadcast_lambda_arn,
            InvocationType="Event",
            Payload=json.dumps(event, default=str).encode(),
        )
    except (BotoCoreError, ClientError):
        log.warning("realtime.publish_failed", group_id=str(group_id), exc_info=True)
        return
    log.info("realtime.published", group_id=str(group_id), kind=payload.get("type", "new-message"))

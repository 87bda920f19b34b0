"""
Realtime handler configuration loaded from the Lambda environment.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class RealtimeSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore")

    connections_table: str = ""
    group_rooms_table: str = ""
    connection_ttl_seconds: int = 3600
    aws_region: Optional[str] = None
    # Management API endpoint for pushes outside a WebSocket request (WEBSOCKET_API_ENDPOINT).
    websocket_api_endpoint: str = ""


@lru_cache
def get_realtime_settings() -> RealtimeSettings:
    return RealtimeSettings()

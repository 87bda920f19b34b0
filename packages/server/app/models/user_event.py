"""Event participation, plus the legacy single-group-per-event pointer."""

from datetime import datetime
from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import timestamp_field


class UserEvent(SQLModel, table=True):
    __tablename__ = "user_events"

    user_id: uuid.UUID = Field(foreign_key="users.id", ondelete="CASCADE", primary_key=True)
    event_id: uuid.UUID = Field(foreign_key="events.id", ondelete="CASCADE", primary_key=True)
    status: str = Field(default="INTERESTED", nullable=False)  # INTERESTED | GOING
    # Earliest-joined group of this user in this event; kept for older views.
    group_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="groups.id", ondelete="SET NULL", index=True
    )
    created_at: datetime = timestamp_field()

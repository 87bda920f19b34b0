"""User-Group membership (join table). A user may belong to several groups of one event."""

from datetime import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import timestamp_field


class GroupMember(SQLModel, table=True):
    __tablename__ = "group_members"
    __table_args__ = (
        sa.Index("ix_group_members_user_event", "user_id", "event_id"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", ondelete="CASCADE", primary_key=True)
    group_id: uuid.UUID = Field(foreign_key="groups.id", ondelete="CASCADE", primary_key=True)
    event_id: uuid.UUID = Field(foreign_key="events.id", ondelete="CASCADE", nullable=False)
    joined_at: datetime = timestamp_field()

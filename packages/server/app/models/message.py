"""Group chat: messages, per-user read receipts and emoji reactions."""

from datetime import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, timestamp_field


class GroupMessage(UUIDMixin, SQLModel, table=True):
    __tablename__ = "group_messages"
    __table_args__ = (
        sa.Index("ix_group_messages_group_created", "group_id", "created_at"),
    )

    group_id: uuid.UUID = Field(foreign_key="groups.id", ondelete="CASCADE", nullable=False)
    sender_id: uuid.UUID = Field(foreign_key="users.id", ondelete="CASCADE", nullable=False, index=True)
    content: str = Field(nullable=False)
    # Announcements are highlighted to every member.
    is_announcement: bool = Field(default=False, nullable=False)
    created_at: datetime = timestamp_field()


class GroupMessageRead(SQLModel, table=True):
    __tablename__ = "group_message_reads"

    message_id: uuid.UUID = Field(
        foreign_key="group_messages.id", ondelete="CASCADE", primary_key=True
    )
    user_id: uuid.UUID = Field(foreign_key="users.id", ondelete="CASCADE", primary_key=True)
    read_at: datetime = timestamp_field()


class GroupMessageReaction(UUIDMixin, SQLModel, table=True):
    __tablename__ = "group_message_reactions"
    __table_args__ = (
        sa.UniqueConstraint("message_id", "user_id", "emoji", name="uq_reaction_message_user_emoji"),
    )

    message_id: uuid.UUID = Field(
        foreign_key="group_messages.id", ondelete="CASCADE", nullable=False, index=True
    )
    user_id: uuid.UUID = Field(foreign_key="users.id", ondelete="CASCADE", nullable=False)
    emoji: str = Field(nullable=False)
    created_at: datetime = timestamp_field()

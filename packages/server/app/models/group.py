"""Group ("awase") model."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Group(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "groups"

    event_id: uuid.UUID = Field(foreign_key="events.id", ondelete="CASCADE", index=True)
    name: str = Field(nullable=False)
    theme: Optional[str] = None
    description: Optional[str] = None
    owner_note: Optional[str] = None
    group_code: str = Field(unique=True, nullable=False, index=True)  # 8 digits, shareable
    max_members: Optional[int] = None
    # Must always reference a current member of the group.
    leader_user_id: uuid.UUID = Field(foreign_key="users.id", index=True)

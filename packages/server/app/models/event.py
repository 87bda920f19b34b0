"""Event model. Groups are scoped to exactly one event."""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, timestamp_field


class Event(UUIDMixin, SQLModel, table=True):
    __tablename__ = "events"

    name: str = Field(nullable=False, index=True)
    slug: str = Field(unique=True, nullable=False, index=True)
    event_date: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    approval_status: str = Field(default="PENDING", nullable=False)  # PENDING | APPROVED | REJECTED
    created_at: datetime = timestamp_field()

"""User model."""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, timestamp_field


class User(UUIDMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: Optional[str] = Field(default=None, unique=True, index=True)
    name: Optional[str] = None
    display_name: Optional[str] = None
    role: str = Field(default="USER", nullable=False, index=True)  # USER | ADMIN | ORGANIZER
    is_banned: bool = Field(default=False, nullable=False)
    # Soft delete marker; a user is only hard-deleted once this is set.
    deleted_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    password_hash: Optional[str] = Field(default=None)  # bcrypt hash for email/password login
    created_at: datetime = timestamp_field()

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

"""Base mixins for SQLModel tables."""

from datetime import datetime, timezone
import sqlalchemy as sa
from sqlmodel import Field, SQLModel
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def timestamp_field(**kwargs) -> datetime:
    """A non-null timezone-aware timestamp defaulting to now."""
    return Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
        sa_column_kwargs={"server_default": sa.func.now(), **kwargs},
    )


class TimestampMixin(SQLModel):
    created_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field(onupdate=utcnow)


class UUIDMixin(SQLModel):
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
        nullable=False,
    )

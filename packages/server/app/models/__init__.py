# SQLModel definitions — imported here to ensure metadata is populated for Alembic.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .event import Event  # noqa: F401
from .group import Group  # noqa: F401
from .group_member import GroupMember  # noqa: F401
from .user_event import UserEvent  # noqa: F401
from .message import GroupMessage, GroupMessageRead, GroupMessageReaction  # noqa: F401

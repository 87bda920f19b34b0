"""
Group chat schemas: posting, history pages, read receipts and reactions.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from .common import CamelModel, UserSummary

MESSAGE_MAX_LENGTH = 5000
EMOJI_MAX_LENGTH = 10


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class MessagePostRequest(CamelModel):
    content: str = Field(..., max_length=MESSAGE_MAX_LENGTH)
    is_announcement: bool = False


class ReactionRequest(CamelModel):
    emoji: str = Field(..., max_length=64)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class ReactionSummary(CamelModel):
    emoji: str
    count: int
    reacted_by_me: bool = False


class MessageResponse(CamelModel):
    id: uuid.UUID
    group_id: uuid.UUID
    content: str
    is_announcement: bool
    sender: UserSummary
    created_at: datetime
    reactions: List[ReactionSummary] = []


class MessageListResponse(CamelModel):
    """One page of history, oldest first. Pass ``next_cursor`` as ``before`` for older messages."""
    data: List[MessageResponse]
    next_cursor: Optional[datetime] = None


class ReactionToggleResponse(CamelModel):
    added: bool


class ReadAllResponse(CamelModel):
    success: bool = True
    count: int

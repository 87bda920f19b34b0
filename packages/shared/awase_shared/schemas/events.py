"""Event and participation schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from .common import CamelModel, EventApprovalStatus, ParticipationStatus


class EventResponse(CamelModel):
    id: uuid.UUID
    name: str
    slug: str
    event_date: Optional[datetime] = None
    approval_status: EventApprovalStatus


class EventListResponse(CamelModel):
    data: List[EventResponse]


class ParticipateRequest(CamelModel):
    status: ParticipationStatus = ParticipationStatus.INTERESTED


class ParticipationResponse(CamelModel):
    event_id: uuid.UUID
    status: ParticipationStatus
    group_id: Optional[uuid.UUID] = None

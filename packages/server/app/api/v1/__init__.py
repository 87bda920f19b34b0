"""
API v1 Router

Groups, chat and events for signed-in users; /admin for administrators.
"""

from fastapi import APIRouter
from . import admin, events, groups, messages

router = APIRouter()

router.include_router(events.router, prefix="/events", tags=["Events"])
# Before groups: "/groups/unread-count" must not be read as a group id.
router.include_router(messages.router, prefix="/groups", tags=["Messages"])
router.include_router(groups.router, prefix="/groups", tags=["Groups"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])


@router.get("/", tags=["API"])
async def api_root():
    """API root — returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/events",
            "/groups",
            "/groups/{groupId}/messages",
            "/admin/users",
            "/admin/groups",
        ],
    }

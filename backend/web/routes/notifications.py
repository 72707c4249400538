"""
Notification API routes (any signed-in role).

Notifications are created as side effects (registration decisions, class
assignments); users can only list and acknowledge their own.
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from web import wiring
from .common import _current_user_id, _serialize
from .security import _csrf_guard, _json_private, _private_error

notifications_router = APIRouter(tags=["Notifications"])


def _caller(request: Request):
    user = getattr(request.state, "user", None)
    if not user:
        return None, _private_error("unauthenticated", status_code=401)
    return user, None


@notifications_router.get("/api/notifications")
async def list_notifications(request: Request, unread: bool = False, limit: int = 50):
    user, error = _caller(request)
    if error:
        return error
    me = _current_user_id(user)
    repo = wiring.get_repo()
    items = [_serialize(n) for n in repo.list_notifications(me, unread_only=unread, limit=max(1, min(100, limit)))]
    unread_count = repo.count_unread(me)
    return _json_private({"notifications": items, "unreadCount": unread_count})


@notifications_router.post("/api/notifications/read-all")
async def mark_all_read(request: Request):
    user, error = _caller(request)
    if error:
        return error
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    updated = wiring.get_repo().mark_all_read(_current_user_id(user))
    return _json_private({"updated": updated})


@notifications_router.post("/api/notifications/{notification_id}/read")
async def mark_read(request: Request, notification_id: int):
    """Mark one of the caller's notifications as read; 404 for unknown or foreign ids."""
    user, error = _caller(request)
    if error:
        return error
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    if not wiring.get_repo().mark_notification_read(notification_id, _current_user_id(user)):
        return _private_error("not_found", status_code=404)
    return _json_private({"id": notification_id, "read": True})

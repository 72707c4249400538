"""
Notifications: listing, unread counts and acknowledgement, scoped to the caller.
"""
from __future__ import annotations

import pytest

from utils.accounts import SAME_ORIGIN, api_client, create_user, sign_in
from web import wiring

pytestmark = pytest.mark.anyio("asyncio")


def _notify(user_id: int, title: str):
    return wiring.get_repo().create_notification(
        user_id=user_id, type="registration_pending", title=title, message=f"{title} body"
    )


@pytest.mark.anyio
async def test_list_newest_first_with_unread_count():
    student = create_user("student")
    _notify(student.id, "first")
    _notify(student.id, "second")
    _notify(create_user("student").id, "someone else")
    async with api_client() as client:
        sign_in(client, student)
        body = (await client.get("/api/notifications")).json()
    assert [n["title"] for n in body["notifications"]] == ["second", "first"]
    assert body["unreadCount"] == 2
    assert body["notifications"][0]["read"] is False


@pytest.mark.anyio
async def test_mark_one_and_all_read():
    student = create_user("student")
    first = _notify(student.id, "first")
    _notify(student.id, "second")
    _notify(student.id, "third")
    async with api_client() as client:
        sign_in(client, student)
        r = await client.post(f"/api/notifications/{first.id}/read", headers=SAME_ORIGIN)
        assert r.status_code == 200
        assert r.json() == {"id": first.id, "read": True}

        unread = (await client.get("/api/notifications", params={"unread": "true"})).json()
        assert [n["title"] for n in unread["notifications"]] == ["third", "second"]
        assert unread["unreadCount"] == 2

        r = await client.post("/api/notifications/read-all", headers=SAME_ORIGIN)
        assert r.json() == {"updated": 2}
        assert (await client.get("/api/notifications")).json()["unreadCount"] == 0


@pytest.mark.anyio
async def test_cannot_acknowledge_foreign_notification():
    owner = create_user("student")
    note = _notify(owner.id, "private")
    async with api_client() as client:
        sign_in(client, create_user("teacher"))
        r = await client.post(f"/api/notifications/{note.id}/read", headers=SAME_ORIGIN)
    assert r.status_code == 404
    assert wiring.get_repo().list_notifications(owner.id, unread_only=True)[0].id == note.id


@pytest.mark.anyio
async def test_limit_is_clamped():
    student = create_user("student")
    for i in range(3):
        _notify(student.id, f"n{i}")
    async with api_client() as client:
        sign_in(client, student)
        body = (await client.get("/api/notifications", params={"limit": 0})).json()
    assert len(body["notifications"]) == 1
    assert body["unreadCount"] == 3


@pytest.mark.anyio
async def test_unread_count_is_not_capped_by_listing():
    student = create_user("student")
    for i in range(1005):
        _notify(student.id, f"n{i}")
    async with api_client() as client:
        sign_in(client, student)
        body = (await client.get("/api/notifications", params={"limit": 500})).json()
    assert len(body["notifications"]) == 100
    assert body["unreadCount"] == 1005
    assert wiring.get_repo().count_unread(student.id) == 1005

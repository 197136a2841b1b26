import re
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from academy.repositories import direct_messages as dm_repo
from academy.repositories import forums as forums_repo
from academy.repositories import profiles as profiles_repo
from academy.routes.forums import thread_slug

from conftest import make_user

pytestmark = pytest.mark.anyio("asyncio")

FORUM_ID = uuid.uuid4()


class FakeForums:
    def __init__(self):
        self.forum = {"id": FORUM_ID, "title": "General", "is_locked": False, "is_archived": False}
        self.threads: dict[str, dict] = {}
        self.replies: list[dict] = []
        self.upvotes: set[tuple[str, str]] = set()

    async def get_forum(self, forum_id):
        return self.forum if str(forum_id) == str(FORUM_ID) else None

    async def create_thread(self, *, forum_id, user_id, title, content, slug):
        thread = {
            "id": uuid.uuid4(),
            "forum_id": forum_id,
            "user_id": user_id,
            "title": title,
            "content": content,
            "slug": slug,
            "is_locked": False,
            "view_count": 0,
            "upvote_count": 0,
        }
        self.threads[str(thread["id"])] = thread
        return thread

    async def get_thread(self, thread_id):
        return self.threads.get(str(thread_id))

    async def increment_view_count(self, thread_id):
        self.threads[str(thread_id)]["view_count"] += 1

    async def list_replies(self, thread_id):
        return [reply for reply in self.replies if str(reply["thread_id"]) == str(thread_id)]

    async def create_reply(self, *, thread_id, user_id, content, parent_reply_id=None):
        reply = {"id": uuid.uuid4(), "thread_id": thread_id, "user_id": user_id, "content": content}
        self.replies.append(reply)
        return reply

    async def toggle_thread_upvote(self, thread_id, user_id):
        key = (str(thread_id), str(user_id))
        thread = self.threads[str(thread_id)]
        if key in self.upvotes:
            self.upvotes.remove(key)
            thread["upvote_count"] -= 1
            return False, thread["upvote_count"]
        self.upvotes.add(key)
        thread["upvote_count"] += 1
        return True, thread["upvote_count"]

    async def moderate_thread(self, thread_id, fields):
        thread = self.threads.get(str(thread_id))
        if thread is not None:
            thread.update(fields)
        return thread


@pytest.fixture
def forums(monkeypatch):
    fake = FakeForums()
    for name in (
        "get_forum",
        "create_thread",
        "get_thread",
        "increment_view_count",
        "list_replies",
        "create_reply",
        "toggle_thread_upvote",
        "moderate_thread",
    ):
        monkeypatch.setattr(forums_repo, name, getattr(fake, name))
    return fake


def test_thread_slug_is_url_safe_and_unique():
    first = thread_slug("Breathing: tips & tricks!")
    second = thread_slug("Breathing: tips & tricks!")
    assert re.fullmatch(r"breathing-tips-tricks-[0-9a-f]{8}", first)
    assert first != second
    assert thread_slug("???").startswith("thread-")


async def test_thread_flow(async_client, student, forums):
    resp = await async_client.post(
        f"/api/forums/{FORUM_ID}/threads",
        json={"title": "Morning routine", "content": "What works for you?"},
    )
    assert resp.status_code == 201, resp.text
    thread_id = resp.json()["thread"]["id"]

    resp = await async_client.post(
        f"/api/forums/threads/{thread_id}/replies", json={"content": "Stretching first."}
    )
    assert resp.status_code == 201

    resp = await async_client.get(f"/api/forums/threads/{thread_id}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["thread"]["view_count"] == 1
    assert [reply["content"] for reply in body["replies"]] == ["Stretching first."]


async def test_locked_forum_rejects_threads(async_client, student, forums):
    forums.forum["is_locked"] = True
    resp = await async_client.post(
        f"/api/forums/{FORUM_ID}/threads", json={"title": "Hello", "content": "there"}
    )
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Forum is locked"


async def test_locked_thread_rejects_replies(async_client, student, forums):
    thread = await forums.create_thread(
        forum_id=FORUM_ID, user_id=student["id"], title="Closed", content="x", slug="closed"
    )
    thread["is_locked"] = True
    resp = await async_client.post(
        f"/api/forums/threads/{thread['id']}/replies", json={"content": "late"}
    )
    assert resp.status_code == 403


async def test_upvote_toggles(async_client, student, forums):
    thread = await forums.create_thread(
        forum_id=FORUM_ID, user_id=student["id"], title="Vote", content="x", slug="vote"
    )
    first = await async_client.post(f"/api/forums/threads/{thread['id']}/upvote")
    second = await async_client.post(f"/api/forums/threads/{thread['id']}/upvote")
    assert first.json() == {"upvoted": True, "upvote_count": 1}
    assert second.json() == {"upvoted": False, "upvote_count": 0}


async def test_moderation_is_admin_only(async_client, login_as, forums):
    thread = await forums.create_thread(
        forum_id=FORUM_ID, user_id=str(uuid.uuid4()), title="Mod", content="x", slug="mod"
    )
    login_as(make_user("teacher"))
    resp = await async_client.patch(
        f"/api/admin/forums/threads/{thread['id']}", json={"is_locked": True}
    )
    assert resp.status_code == 403

    login_as(make_user("admin"))
    resp = await async_client.patch(
        f"/api/admin/forums/threads/{thread['id']}", json={"is_pinned": True, "is_locked": True}
    )
    assert resp.status_code == 200
    assert thread["is_pinned"] is True
    assert thread["is_locked"] is True

    resp = await async_client.patch(f"/api/admin/forums/threads/{thread['id']}", json={})
    assert resp.status_code == 422


class FakeDirectMessages:
    def __init__(self):
        self.threads: dict[str, dict] = {}
        self.messages: list[dict] = []

    async def get_or_create_thread(self, user_a, user_b):
        user1_id, user2_id = dm_repo.ordered_pair(user_a, user_b)
        for thread in self.threads.values():
            if (thread["user1_id"], thread["user2_id"]) == (user1_id, user2_id):
                return thread
        thread = {"id": uuid.uuid4(), "user1_id": user1_id, "user2_id": user2_id}
        self.threads[str(thread["id"])] = thread
        return thread

    async def get_thread(self, thread_id):
        return self.threads.get(str(thread_id))

    async def create_message(self, thread_id, sender_id, content):
        message = {
            "id": uuid.uuid4(),
            "thread_id": thread_id,
            "sender_id": sender_id,
            "content": content,
            "is_read": False,
            "read_at": None,
            "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc)
            + timedelta(minutes=len(self.messages)),
        }
        self.messages.append(message)
        return message

    async def list_messages(self, thread_id, *, limit=50, before=None):
        rows = [m for m in self.messages if str(m["thread_id"]) == str(thread_id)]
        return sorted(rows, key=lambda m: m["created_at"], reverse=True)[:limit]

    async def mark_thread_read(self, thread_id, reader_id):
        count = 0
        for message in self.messages:
            if (
                str(message["thread_id"]) == str(thread_id)
                and str(message["sender_id"]) != str(reader_id)
                and not message["is_read"]
            ):
                message["is_read"] = True
                count += 1
        return count


@pytest.fixture
def dms(monkeypatch):
    fake = FakeDirectMessages()
    known_users: set[str] = set()

    async def fake_user_exists(user_id):
        return str(user_id) in known_users

    for name in (
        "get_or_create_thread",
        "get_thread",
        "create_message",
        "list_messages",
        "mark_thread_read",
    ):
        monkeypatch.setattr(dm_repo, name, getattr(fake, name))
    monkeypatch.setattr(profiles_repo, "user_exists", fake_user_exists)
    fake.known_users = known_users
    return fake


def test_ordered_pair_is_symmetric():
    a, b = str(uuid.uuid4()), str(uuid.uuid4())
    assert dm_repo.ordered_pair(a, b) == dm_repo.ordered_pair(b, a)
    first, second = dm_repo.ordered_pair(a, b)
    assert first < second


async def test_cannot_message_yourself(async_client, student, dms):
    resp = await async_client.post("/api/dm/threads", json={"recipient_id": student["id"]})
    assert resp.status_code == 400


async def test_unknown_recipient(async_client, student, dms):
    resp = await async_client.post("/api/dm/threads", json={"recipient_id": str(uuid.uuid4())})
    assert resp.status_code == 404


async def test_conversation_round_trip(async_client, login_as, dms):
    alice = make_user("student")
    bob = make_user("student")
    dms.known_users.update({alice["id"], bob["id"]})

    login_as(alice)
    resp = await async_client.post(
        "/api/dm/threads", json={"recipient_id": bob["id"], "message": "Hi Bob"}
    )
    assert resp.status_code == 201
    thread_id = resp.json()["thread"]["id"]

    login_as(bob)
    again = await async_client.post("/api/dm/threads", json={"recipient_id": alice["id"]})
    assert again.json()["thread"]["id"] == thread_id
    assert again.json()["message"] is None

    resp = await async_client.post(
        f"/api/dm/threads/{thread_id}/messages", json={"content": "  Hey Alice  "}
    )
    assert resp.status_code == 201
    assert resp.json()["content"] == "Hey Alice"

    resp = await async_client.get(f"/api/dm/threads/{thread_id}/messages")
    assert [m["content"] for m in resp.json()["messages"]] == ["Hi Bob", "Hey Alice"]

    resp = await async_client.post(f"/api/dm/threads/{thread_id}/read")
    assert resp.json() == {"marked_read": 1}


async def test_outsider_cannot_read_thread(async_client, login_as, dms):
    thread = await dms.get_or_create_thread(str(uuid.uuid4()), str(uuid.uuid4()))
    login_as(make_user("student"))
    resp = await async_client.get(f"/api/dm/threads/{thread['id']}/messages")
    assert resp.status_code == 403

    resp = await async_client.get(f"/api/dm/threads/{uuid.uuid4()}/messages")
    assert resp.status_code == 404

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from gymchat.core.errors import EmptyMessage, Forbidden, NotFound
from gymchat.models.models import Announcement, Role

from conftest import GYM, MEMBER, OTHER_GYM, TRAINER, FakeSocket, identity

OWNER = identity(GYM, Role.GYM)


@pytest.fixture
def sockets(registry):
    """Member of GYM and a connection in OTHER_GYM."""
    result = {}
    for user_id, role, gym_id in ((MEMBER, Role.MEMBER, GYM), ("x", Role.MEMBER, OTHER_GYM)):
        socket = FakeSocket()
        conn = registry.connect(socket, identity(user_id, role))
        registry.join(conn.id, gym_id)
        result[gym_id] = socket
    return result


def test_post_broadcasts_to_gym_room(broadcaster, sockets, store):
    announcement = asyncio.run(broadcaster.post(OWNER, GYM, "Closed Monday"))

    assert store.announcements[announcement.id].message == "Closed Monday"
    assert sockets[GYM].sent == [{"type": "announcement", "data": announcement.to_wire()}]
    assert sockets[GYM].sent[0]["data"]["message"] == "Closed Monday"
    assert sockets[OTHER_GYM].sent == []


def test_lifecycle_event_order(broadcaster, sockets):
    async def scenario():
        a = await broadcaster.post(OWNER, GYM, "Closed Monday")
        await broadcaster.update(OWNER, a.id, GYM, "Closed Tuesday")
        await broadcaster.remove(OWNER, a.id, GYM)
        return a

    announcement = asyncio.run(scenario())

    assert sockets[GYM].events() == ["announcement", "announcementUpdate", "announcementDelete"]
    update_frame = sockets[GYM].sent[1]["data"]
    assert update_frame["message"] == "Closed Tuesday"
    assert update_frame["updatedAt"] is not None
    assert sockets[GYM].sent[2]["data"] == announcement.id

    with pytest.raises(NotFound):
        asyncio.run(broadcaster.remove(OWNER, announcement.id, GYM))
    assert len(sockets[GYM].sent) == 3


@pytest.mark.parametrize(
    "caller",
    [identity(TRAINER, Role.TRAINER), identity(MEMBER, Role.MEMBER), identity(OTHER_GYM, Role.GYM)],
)
def test_only_owning_gym_may_post(broadcaster, sockets, store, caller):
    with pytest.raises(Forbidden):
        asyncio.run(broadcaster.post(caller, GYM, "Free smoothies"))
    assert store.announcements == {}
    assert sockets[GYM].sent == []


def test_blank_post(broadcaster, sockets):
    with pytest.raises(EmptyMessage):
        asyncio.run(broadcaster.post(OWNER, GYM, "  "))
    assert sockets[GYM].sent == []


def test_update_by_other_gym_is_forbidden(broadcaster, sockets):
    announcement = asyncio.run(broadcaster.post(OWNER, GYM, "Closed Monday"))
    intruder = identity(OTHER_GYM, Role.GYM)

    with pytest.raises(Forbidden):
        asyncio.run(broadcaster.update(intruder, announcement.id, OTHER_GYM, "Hacked"))
    with pytest.raises(Forbidden):
        asyncio.run(broadcaster.remove(intruder, announcement.id, OTHER_GYM))
    assert sockets[GYM].events() == ["announcement"]


def test_update_missing(broadcaster):
    with pytest.raises(NotFound):
        asyncio.run(broadcaster.update(OWNER, "missing", GYM, "text"))


def test_blank_update_keeps_record(broadcaster, store, sockets):
    announcement = asyncio.run(broadcaster.post(OWNER, GYM, "Closed Monday"))
    with pytest.raises(EmptyMessage):
        asyncio.run(broadcaster.update(OWNER, announcement.id, GYM, ""))
    assert store.announcements[announcement.id].message == "Closed Monday"
    assert sockets[GYM].events() == ["announcement"]


def test_list_newest_first(broadcaster, store):
    stamp = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    async def scenario():
        first = await store.create_announcement(
            Announcement(gym=GYM, sender=GYM, message="first", timestamp=stamp)
        )
        second = await store.create_announcement(
            Announcement(gym=GYM, sender=GYM, message="second", timestamp=stamp)
        )
        older = await store.create_announcement(
            Announcement(gym=GYM, sender=GYM, message="older", timestamp=stamp - timedelta(hours=1))
        )
        return first, second, older, await broadcaster.list_for_gym(GYM)

    first, second, older, listed = asyncio.run(scenario())
    # Same timestamp: the later insert comes first
    assert [a.id for a in listed] == [second.id, first.id, older.id]

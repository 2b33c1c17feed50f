import asyncio
import json
from datetime import datetime, timezone

from gymchat.models.models import Announcement, Message, Role
from gymchat.services.affiliations import RedisAffiliationDirectory
from gymchat.services.chat_store import RedisChatStore
from gymchat.services.redis_pub_sub import AsyncRedisPubSubService

from conftest import GYM, MEMBER, TRAINER, FakeSocket, identity

STAMP = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


class FakeRedis:
    """Just enough of the redis.asyncio API (decode_responses=True) for these backends."""

    def __init__(self):
        self.published = []
        self.strings = {}
        self.hashes = {}
        self.sets = {}
        self.zsets = {}

    async def publish(self, channel, data):
        self.published.append((channel, data))

    async def set(self, key, value):
        self.strings[key] = value

    async def get(self, key):
        return self.strings.get(key)

    async def delete(self, key):
        self.strings.pop(key, None)

    async def hset(self, key, field, value):
        self.hashes.setdefault(key, {})[field] = value

    async def hget(self, key, field):
        return self.hashes.get(key, {}).get(field)

    async def hdel(self, key, field):
        self.hashes.get(key, {}).pop(field, None)

    async def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    async def incr(self, key):
        self.strings[key] = int(self.strings.get(key, 0)) + 1
        return self.strings[key]

    async def sadd(self, key, value):
        self.sets.setdefault(key, set()).add(value)

    async def srem(self, key, value):
        self.sets.get(key, set()).discard(value)

    async def smembers(self, key):
        return set(self.sets.get(key, set()))

    async def zadd(self, key, mapping):
        self.zsets.setdefault(key, {}).update(mapping)

    async def zrem(self, key, member):
        self.zsets.get(key, {}).pop(member, None)

    async def zrange(self, key, start, end):
        items = self.zsets.get(key, {})
        return [m for m, _ in sorted(items.items(), key=lambda kv: kv[1])]

    async def zrevrange(self, key, start, end):
        items = self.zsets.get(key, {})
        return [m for m, _ in sorted(items.items(), key=lambda kv: kv[1], reverse=True)]


def test_pub_sub_broadcast_round_trip(registry):
    client = FakeRedis()
    service = AsyncRedisPubSubService(client, registry)
    socket = FakeSocket()
    conn = registry.connect(socket, identity(MEMBER, Role.MEMBER))
    registry.join(conn.id, GYM)

    asyncio.run(service.broadcast(GYM, "announcementDelete", "ann-1"))

    channel, raw = client.published[0]
    assert channel == f"gym:{GYM}"
    assert json.loads(raw) == {"room_id": GYM, "event": "announcementDelete", "payload": "ann-1"}
    # Nothing is delivered locally until the listener sees it
    assert socket.sent == []

    asyncio.run(service.handle(raw))
    assert socket.sent == [{"type": "announcementDelete", "data": "ann-1"}]


def test_pub_sub_ignores_envelope_without_room(registry):
    service = AsyncRedisPubSubService(FakeRedis(), registry)
    socket = FakeSocket()
    conn = registry.connect(socket, identity(MEMBER, Role.MEMBER))
    registry.join(conn.id, GYM)

    asyncio.run(service.handle(json.dumps({"event": "message", "payload": {}})))
    assert socket.sent == []


def test_redis_store_conversation_is_shared_by_both_directions():
    store = RedisChatStore(FakeRedis())

    async def scenario():
        await store.create_message(
            Message(sender=MEMBER, sender_model="Member", receiver=TRAINER,
                    receiver_model="Trainer", gym=GYM, message="one")
        )
        await store.create_message(
            Message(sender=TRAINER, sender_model="Trainer", receiver=MEMBER,
                    receiver_model="Member", gym=GYM, message="two")
        )
        return await store.find_messages(GYM, TRAINER, MEMBER)

    messages = asyncio.run(scenario())
    assert {m.message for m in messages} == {"one", "two"}


def test_redis_store_announcement_lifecycle():
    store = RedisChatStore(FakeRedis())

    async def scenario():
        created = await store.create_announcement(Announcement(gym=GYM, sender=GYM, message="Closed"))
        updated = await store.update_announcement(created.id, "Open")
        listed = await store.list_announcements(GYM)
        deleted = await store.delete_announcement(created.id)
        deleted_again = await store.delete_announcement(created.id)
        return created, updated, listed, deleted, deleted_again, await store.list_announcements(GYM)

    created, updated, listed, deleted, deleted_again, after = asyncio.run(scenario())
    assert updated.message == "Open"
    assert updated.updated_at is not None
    assert [a.id for a in listed] == [created.id]
    assert deleted is True
    assert deleted_again is False
    assert after == []


def test_redis_affiliations():
    directory = RedisAffiliationDirectory(FakeRedis())

    async def scenario():
        await directory.set_gym_name(GYM, "Iron Temple")
        await directory.assign(TRAINER, Role.TRAINER, GYM, name="Tina Trainer")
        await directory.assign(MEMBER, Role.MEMBER, GYM, name="Mark Member")
        await directory.unassign(MEMBER, Role.MEMBER)
        return (
            await directory.get_gym_for_user(TRAINER, Role.TRAINER),
            await directory.get_gym_for_user(MEMBER, Role.MEMBER),
            await directory.get_gym_for_user(GYM, Role.GYM),
            await directory.list_participants(GYM),
        )

    trainer_gym, member_gym, gym_gym, roster = asyncio.run(scenario())
    assert trainer_gym == GYM
    assert member_gym is None
    assert gym_gym is None
    assert roster.gym_name == "Iron Temple"
    assert roster.trainers == [TRAINER]
    assert roster.members == []
    assert roster.names == {TRAINER: "Tina Trainer"}


def test_redis_store_keeps_insertion_order_on_equal_timestamps():
    store = RedisChatStore(FakeRedis())

    async def scenario():
        first = await store.create_announcement(
            Announcement(gym=GYM, sender=GYM, message="first", timestamp=STAMP)
        )
        second = await store.create_announcement(
            Announcement(gym=GYM, sender=GYM, message="second", timestamp=STAMP)
        )
        for body in ("zz", "aa"):
            await store.create_message(
                Message(sender=MEMBER, sender_model="Member", receiver=TRAINER,
                        receiver_model="Trainer", gym=GYM, message=body, timestamp=STAMP)
            )
        return first, second, await store.list_announcements(GYM), await store.find_messages(GYM, MEMBER, TRAINER)

    first, second, announcements, messages = asyncio.run(scenario())
    assert [a.id for a in announcements] == [second.id, first.id]
    assert [m.message for m in messages] == ["zz", "aa"]

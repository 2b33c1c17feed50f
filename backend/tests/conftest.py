import time

import pytest
from jose import jwt

from gymchat.core.config import Settings
from gymchat.main import create_app
from gymchat.models.models import Identity, Role
from gymchat.services.affiliations import InMemoryAffiliationDirectory
from gymchat.services.announcements import AnnouncementBroadcaster
from gymchat.services.chat_store import InMemoryChatStore
from gymchat.services.connection_manager import ConnectionManager
from gymchat.services.message_relay import MessageRelay
from gymchat.services.room_resolver import RoomResolver

SECRET = "test-secret"

GYM = "gym-1"
TRAINER = "trainer-1"
MEMBER = "member-1"
OTHER_GYM = "gym-2"
OTHER_TRAINER = "trainer-2"
OTHER_MEMBER = "member-2"
LONE_MEMBER = "member-without-gym"


class FakeSocket:
    """Stands in for a WebSocket; records every frame sent to it."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def events(self):
        return [frame["type"] for frame in self.sent]


def make_token(user_id: str, role: str, secret: str = SECRET, expires_in: int = 3600) -> str:
    claims = {"id": user_id, "role": role, "exp": int(time.time()) + expires_in}
    return jwt.encode(claims, secret, algorithm="HS256")


def identity(user_id: str, role: Role) -> Identity:
    return Identity(user_id=user_id, role=role)


@pytest.fixture
def directory():
    d = InMemoryAffiliationDirectory()
    d.add_gym(GYM, name="Iron Temple")
    d.assign(TRAINER, Role.TRAINER, GYM, name="Tina Trainer")
    d.assign(MEMBER, Role.MEMBER, GYM, name="Mark Member")
    d.add_gym(OTHER_GYM, name="Flex Palace")
    d.assign(OTHER_TRAINER, Role.TRAINER, OTHER_GYM, name="Otto Trainer")
    d.assign(OTHER_MEMBER, Role.MEMBER, OTHER_GYM, name="Olga Member")
    return d


@pytest.fixture
def store():
    return InMemoryChatStore()


@pytest.fixture
def registry():
    return ConnectionManager()


@pytest.fixture
def resolver(directory):
    return RoomResolver(directory)


@pytest.fixture
def relay(store, resolver, registry):
    return MessageRelay(store, resolver, registry)


@pytest.fixture
def broadcaster(store, registry):
    return AnnouncementBroadcaster(store, registry)


@pytest.fixture
def settings():
    return Settings(JWT_SECRET=SECRET, JWT_ALGORITHM="HS256", PUB_SUB_SERVICE="memory", STORE_BACKEND="memory")


@pytest.fixture
def app(settings, store, directory):
    return create_app(settings=settings, store=store, affiliations=directory)


def auth(user_id: str, role: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}

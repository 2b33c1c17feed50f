# backend/gymchat/core/state.py
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from gymchat.core.config import Settings
from gymchat.core.logging import get_logger
from gymchat.services.affiliations import (
    AffiliationDirectory,
    InMemoryAffiliationDirectory,
    RedisAffiliationDirectory,
    seed_directory,
)
from gymchat.services.announcements import AnnouncementBroadcaster
from gymchat.services.chat_store import ChatStore, InMemoryChatStore, RedisChatStore
from gymchat.services.connection_manager import ConnectionManager
from gymchat.services.message_relay import MessageRelay
from gymchat.services.redis_pub_sub import AsyncRedisPubSubService, create_redis_client
from gymchat.services.room_resolver import RoomResolver

logger = get_logger(__name__)


@dataclass
class AppState:
    """
    Everything a request handler needs, owned by one FastAPI app.

    Built once per app by ``build_state`` and stored on ``app.state.chat``;
    tests build a fresh one per app so nothing leaks between them.
    """

    settings: Settings
    connection_manager: ConnectionManager
    resolver: RoomResolver
    relay: MessageRelay
    announcements: AnnouncementBroadcaster
    store: ChatStore
    redis_service: Optional[AsyncRedisPubSubService] = None
    app_start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def build_state(
    settings: Settings,
    store: ChatStore | None = None,
    affiliations: AffiliationDirectory | None = None,
    redis_client=None,
) -> AppState:
    """
    Wire the registry, resolver, relay and broadcaster together.

    Explicit ``store``/``affiliations`` win over the configured backends.
    A Redis client is only created when a Redis backend is configured.
    """
    uses_redis = settings.PUB_SUB_SERVICE == "redis" or settings.STORE_BACKEND == "redis"
    if redis_client is None and uses_redis:
        redis_client = create_redis_client(settings.redis_url)

    if store is None:
        store = RedisChatStore(redis_client) if settings.STORE_BACKEND == "redis" else InMemoryChatStore()

    if affiliations is None:
        if settings.STORE_BACKEND == "redis":
            affiliations = RedisAffiliationDirectory(redis_client)
        else:
            affiliations = InMemoryAffiliationDirectory()
            if settings.AFFILIATIONS_FILE:
                with open(settings.AFFILIATIONS_FILE, "r") as f:
                    seed_directory(affiliations, json.load(f))

    connection_manager = ConnectionManager()
    redis_service = None
    broadcaster = connection_manager
    if settings.PUB_SUB_SERVICE == "redis":
        redis_service = AsyncRedisPubSubService(redis_client, connection_manager)
        broadcaster = redis_service

    resolver = RoomResolver(affiliations)
    logger.info(
        "State ready (store=%s, pub/sub=%s)",
        type(store).__name__, settings.PUB_SUB_SERVICE,
    )
    return AppState(
        settings=settings,
        connection_manager=connection_manager,
        resolver=resolver,
        relay=MessageRelay(store, resolver, broadcaster),
        announcements=AnnouncementBroadcaster(store, broadcaster),
        store=store,
        redis_service=redis_service,
    )

# backend/gymchat/services/redis_pub_sub.py
from __future__ import annotations

import json
import logging
from typing import Any

import redis.asyncio as redis

from gymchat.services.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "gym:"


def create_redis_client(url: str) -> redis.Redis:
    return redis.from_url(url, decode_responses=True)


class AsyncRedisPubSubService:
    """
    Cross-process fan-out for gym room events.

    Each process keeps its own ConnectionManager. Broadcasting publishes the
    event on ``gym:<room_id>``; every process runs ``listen()`` and hands
    what it receives to its local registry, so a member connected to
    instance A sees a message sent through instance B.

    Envelope:
        {"room_id": "...", "event": "message", "payload": {...}}
    """

    def __init__(self, client: redis.Redis, connection_manager: ConnectionManager) -> None:
        self.client = client
        self.connection_manager = connection_manager
        self.pubsub = None

    async def connect(self) -> None:
        """Check the Redis connection is usable."""
        await self.client.ping()
        logger.info("✓ Connected to Redis pub/sub")

    async def publish(self, channel: str, message: dict) -> None:
        """Publish message to channel."""
        await self.client.publish(channel, json.dumps(message))
        logger.debug("📤 Published to Redis channel '%s'", channel)

    async def broadcast(self, room_id: str, event: str, payload: Any) -> None:
        """Publish a room event; local delivery happens in ``listen``."""
        await self.publish(
            f"{CHANNEL_PREFIX}{room_id}",
            {"room_id": room_id, "event": event, "payload": payload},
        )
        logger.info("📨 Broadcasted %s to room %s via Redis", event, room_id)

    async def handle(self, raw: str) -> None:
        """Route one received envelope to local connections."""
        data = json.loads(raw)
        room_id = data.get("room_id")
        event = data.get("event")
        if not room_id or not event:
            logger.warning("Redis message without room_id/event - ignoring")
            return
        await self.connection_manager.broadcast(room_id, event, data.get("payload"))

    async def listen(self, pattern: str = f"{CHANNEL_PREFIX}*") -> None:
        """
        Listen for room events and broadcast them to local WebSockets.

        Runs until cancelled; start it as a background task on startup.
        """
        self.pubsub = self.client.pubsub()
        await self.pubsub.psubscribe(pattern)
        logger.info("✓ Subscribed to Redis pattern '%s'", pattern)

        async for message in self.pubsub.listen():
            if message["type"] not in ("message", "pmessage"):
                continue
            try:
                await self.handle(message["data"])
            except Exception as e:
                logger.error("Error processing Redis message: %s", e)

    async def close(self) -> None:
        """Close connections."""
        if self.pubsub:
            await self.pubsub.punsubscribe()
            await self.pubsub.aclose()
        await self.client.aclose()
        logger.info("Redis connection closed")

# backend/gymchat/services/chat_store.py

from __future__ import annotations

import itertools
import logging
from datetime import datetime
from typing import Dict, List, Optional

from gymchat.models.models import Announcement, Message, utcnow

logger = logging.getLogger(__name__)

SEQUENCE_KEY = "chat:sequence"

# ============================================================================
# MESSAGE + ANNOUNCEMENT PERSISTENCE
# ============================================================================


class ChatStore:
    """
    Persistence collaborator for chat messages and gym announcements.

    Every method is a coroutine: these calls are the only points where the
    realtime core suspends. Writes are last-write-wins; there is no version
    check on announcements.
    """

    async def create_message(self, message: Message) -> Message:
        raise NotImplementedError

    async def find_messages(self, gym_id: str, user_a: str, user_b: str) -> List[Message]:
        """Messages in ``gym_id`` exchanged between ``user_a`` and ``user_b``, oldest first."""
        raise NotImplementedError

    async def create_announcement(self, announcement: Announcement) -> Announcement:
        raise NotImplementedError

    async def get_announcement(self, announcement_id: str) -> Optional[Announcement]:
        raise NotImplementedError

    async def update_announcement(
        self, announcement_id: str, body: str, updated_at: datetime | None = None
    ) -> Optional[Announcement]:
        raise NotImplementedError

    async def delete_announcement(self, announcement_id: str) -> bool:
        raise NotImplementedError

    async def list_announcements(self, gym_id: str) -> List[Announcement]:
        """Announcements of ``gym_id``, newest first."""
        raise NotImplementedError


def _is_pair(message: Message, user_a: str, user_b: str) -> bool:
    return {message.sender, message.receiver} == {user_a, user_b}


class InMemoryChatStore(ChatStore):
    """Process-local store. Data is lost on restart."""

    def __init__(self) -> None:
        self.messages: List[Message] = []
        self.announcements: Dict[str, Announcement] = {}
        # Insertion order breaks ties between equal timestamps
        self._sequence = itertools.count()
        self._order: Dict[str, int] = {}

    async def create_message(self, message: Message) -> Message:
        self.messages.append(message)
        return message

    async def find_messages(self, gym_id: str, user_a: str, user_b: str) -> List[Message]:
        found = [
            m for m in self.messages
            if m.gym == gym_id and _is_pair(m, user_a, user_b)
        ]
        return sorted(found, key=lambda m: m.timestamp)

    async def create_announcement(self, announcement: Announcement) -> Announcement:
        self.announcements[announcement.id] = announcement
        self._order.setdefault(announcement.id, next(self._sequence))
        return announcement

    async def get_announcement(self, announcement_id: str) -> Optional[Announcement]:
        return self.announcements.get(announcement_id)

    async def update_announcement(
        self, announcement_id: str, body: str, updated_at: datetime | None = None
    ) -> Optional[Announcement]:
        current = self.announcements.get(announcement_id)
        if current is None:
            return None
        updated = current.model_copy(
            update={"message": body, "updated_at": updated_at or utcnow()}
        )
        self.announcements[announcement_id] = updated
        return updated

    async def delete_announcement(self, announcement_id: str) -> bool:
        self._order.pop(announcement_id, None)
        return self.announcements.pop(announcement_id, None) is not None

    async def list_announcements(self, gym_id: str) -> List[Announcement]:
        found = [a for a in self.announcements.values() if a.gym == gym_id]
        return sorted(found, key=lambda a: (a.timestamp, self._order.get(a.id, 0)), reverse=True)


class RedisChatStore(ChatStore):
    """
    Redis backed store (``redis.asyncio`` client with ``decode_responses=True``).

    Storage Format:
        chat:<gym_id>:<low_id>:<high_id>   ZSET message JSON scored by sequence
        announcement:<id>                  STRING announcement JSON
        gym:<gym_id>:announcements         ZSET announcement ids scored by sequence
        chat:sequence                      INCR counter shared by both sets

    Conversations are keyed by the sorted pair of participant ids so both
    directions land in the same sorted set.
    Scores come from one counter rather than timestamps, so records created
    in the same instant keep their insertion order.
    """

    def __init__(self, client) -> None:
        self.client = client

    @staticmethod
    def _conversation_key(gym_id: str, user_a: str, user_b: str) -> str:
        low, high = sorted((user_a, user_b))
        return f"chat:{gym_id}:{low}:{high}"

    async def _next_score(self) -> int:
        return await self.client.incr(SEQUENCE_KEY)

    @staticmethod
    def _announcement_key(announcement_id: str) -> str:
        return f"announcement:{announcement_id}"

    @staticmethod
    def _gym_announcements_key(gym_id: str) -> str:
        return f"gym:{gym_id}:announcements"

    async def create_message(self, message: Message) -> Message:
        key = self._conversation_key(message.gym, message.sender, message.receiver)
        await self.client.zadd(key, {message.model_dump_json(by_alias=True): await self._next_score()})
        return message

    async def find_messages(self, gym_id: str, user_a: str, user_b: str) -> List[Message]:
        raw = await self.client.zrange(self._conversation_key(gym_id, user_a, user_b), 0, -1)
        return [Message.model_validate_json(item) for item in raw]

    async def create_announcement(self, announcement: Announcement) -> Announcement:
        await self.client.set(
            self._announcement_key(announcement.id),
            announcement.model_dump_json(by_alias=True),
        )
        await self.client.zadd(
            self._gym_announcements_key(announcement.gym),
            {announcement.id: await self._next_score()},
        )
        return announcement

    async def get_announcement(self, announcement_id: str) -> Optional[Announcement]:
        raw = await self.client.get(self._announcement_key(announcement_id))
        if raw is None:
            return None
        return Announcement.model_validate_json(raw)

    async def update_announcement(
        self, announcement_id: str, body: str, updated_at: datetime | None = None
    ) -> Optional[Announcement]:
        current = await self.get_announcement(announcement_id)
        if current is None:
            return None
        updated = current.model_copy(
            update={"message": body, "updated_at": updated_at or utcnow()}
        )
        await self.client.set(
            self._announcement_key(announcement_id),
            updated.model_dump_json(by_alias=True),
        )
        return updated

    async def delete_announcement(self, announcement_id: str) -> bool:
        current = await self.get_announcement(announcement_id)
        if current is None:
            return False
        await self.client.delete(self._announcement_key(announcement_id))
        await self.client.zrem(self._gym_announcements_key(current.gym), announcement_id)
        return True

    async def list_announcements(self, gym_id: str) -> List[Announcement]:
        ids = await self.client.zrevrange(self._gym_announcements_key(gym_id), 0, -1)
        result: List[Announcement] = []
        for announcement_id in ids:
            announcement = await self.get_announcement(announcement_id)
            if announcement is not None:
                result.append(announcement)
            else:
                logger.warning("Announcement %s indexed for gym %s but missing", announcement_id, gym_id)
        return result


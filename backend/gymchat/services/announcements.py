# backend/gymchat/services/announcements.py

from __future__ import annotations

import logging
from typing import List

from gymchat.core.errors import EmptyMessage, Forbidden, NotFound
from gymchat.models.models import Announcement, Identity, Role, utcnow
from gymchat.services.chat_store import ChatStore

logger = logging.getLogger(__name__)

# ============================================================================
# ANNOUNCEMENT BROADCASTER
# ============================================================================


class AnnouncementBroadcaster:
    """
    Gym-wide announcements: persist every change, then push it to the gym room.

    Events sent to room ``gym_id``:
        announcement        full record, after post
        announcementUpdate  full record, after update
        announcementDelete  announcement id, after remove

    Only the gym profile that owns ``gym_id`` may post, edit or delete.
    Concurrent edits of the same announcement are last-write-wins.
    """

    def __init__(self, store: ChatStore, broadcaster) -> None:
        self.store = store
        self.broadcaster = broadcaster
        self.announcement_counter = 0

    @staticmethod
    def _require_owner(caller: Identity, gym_id: str) -> None:
        if caller.role is not Role.GYM or caller.user_id != gym_id:
            logger.info("Forbidden: %s %s acting on gym %s", caller.role.value, caller.user_id, gym_id)
            raise Forbidden("Only the gym profile can manage its announcements")

    @staticmethod
    def _require_body(body: str) -> str:
        if not body or not body.strip():
            raise EmptyMessage("Announcement message is required")
        return body

    async def _load_owned(self, announcement_id: str, gym_id: str) -> Announcement:
        announcement = await self.store.get_announcement(announcement_id)
        if announcement is None:
            raise NotFound("Announcement not found")
        if announcement.gym != gym_id:
            raise Forbidden("Announcement belongs to another gym")
        return announcement

    async def post(self, caller: Identity, gym_id: str, body: str) -> Announcement:
        self._require_owner(caller, gym_id)
        self._require_body(body)

        announcement = await self.store.create_announcement(
            Announcement(gym=gym_id, sender=caller.user_id, message=body)
        )
        self.announcement_counter += 1
        logger.info("✓ Announcement %s posted to gym %s", announcement.id, gym_id)

        await self.broadcaster.broadcast(gym_id, "announcement", announcement.to_wire())
        return announcement

    async def update(self, caller: Identity, announcement_id: str, gym_id: str, body: str) -> Announcement:
        self._require_owner(caller, gym_id)
        await self._load_owned(announcement_id, gym_id)
        self._require_body(body)

        updated = await self.store.update_announcement(announcement_id, body, utcnow())
        if updated is None:
            # Removed while we were checking it
            raise NotFound("Announcement not found")
        self.announcement_counter += 1
        logger.info("✓ Announcement %s updated in gym %s", announcement_id, gym_id)

        await self.broadcaster.broadcast(gym_id, "announcementUpdate", updated.to_wire())
        return updated

    async def remove(self, caller: Identity, announcement_id: str, gym_id: str) -> str:
        self._require_owner(caller, gym_id)
        await self._load_owned(announcement_id, gym_id)

        if not await self.store.delete_announcement(announcement_id):
            raise NotFound("Announcement not found")
        self.announcement_counter += 1
        logger.info("✓ Announcement %s deleted from gym %s", announcement_id, gym_id)

        await self.broadcaster.broadcast(gym_id, "announcementDelete", announcement_id)
        return announcement_id

    async def list_for_gym(self, gym_id: str) -> List[Announcement]:
        return await self.store.list_announcements(gym_id)

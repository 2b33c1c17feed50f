# backend/gymchat/services/room_resolver.py

from __future__ import annotations

import logging
from typing import Optional

from gymchat.core.errors import NotInGym
from gymchat.models.models import Role
from gymchat.services.affiliations import AffiliationDirectory

logger = logging.getLogger(__name__)


class RoomResolver:
    """
    Works out which gym room a user belongs in.

    - gym profile       -> its own id
    - trainer / member  -> the gym they are affiliated with (NotInGym if none)
    - admin             -> None, admins do not take part in gym chat
    """

    def __init__(self, affiliations: AffiliationDirectory) -> None:
        self.affiliations = affiliations

    async def resolve_room(self, user_id: str, role: Role) -> Optional[str]:
        role = Role.parse(role)
        if role is Role.GYM:
            return user_id
        if role is Role.ADMIN:
            return None

        gym_id = await self.affiliations.get_gym_for_user(user_id, role)
        if not gym_id:
            logger.info("%s %s is not in a gym", role.value, user_id)
            raise NotInGym()
        return gym_id

    async def is_affiliated(self, user_id: str, role: Role, gym_id: str) -> bool:
        role = Role.parse(role)
        if role is Role.GYM:
            return user_id == gym_id
        if role is Role.ADMIN:
            return False
        return await self.affiliations.get_gym_for_user(user_id, role) == gym_id

# backend/gymchat/services/affiliations.py

from __future__ import annotations

import json
import logging
from typing import Dict, Iterable, Optional

from gymchat.models.models import GymRoster, Role

logger = logging.getLogger(__name__)

# ============================================================================
# USER -> GYM AFFILIATION LOOKUP
# ============================================================================


class AffiliationDirectory:
    """
    Read-only view of which gym each trainer and member belongs to.

    The gym/member/trainer records themselves are owned by the CRUD side of
    the application; this service only ever asks two questions:

        get_gym_for_user(user_id, role) -> gym id or None
        list_participants(gym_id)       -> GymRoster (trainers + members)
    """

    async def get_gym_for_user(self, user_id: str, role: Role) -> Optional[str]:
        raise NotImplementedError

    async def list_participants(self, gym_id: str) -> GymRoster:
        raise NotImplementedError


class InMemoryAffiliationDirectory(AffiliationDirectory):
    """
    Dictionary backed directory, used for local runs and tests.

    Usage:
        directory = InMemoryAffiliationDirectory()
        directory.add_gym("g1", name="Iron Temple")
        directory.assign("t1", Role.TRAINER, "g1", name="Tina")
        directory.assign("m1", Role.MEMBER, "g1")
    """

    def __init__(self) -> None:
        self.gyms: Dict[str, GymRoster] = {}
        # Map: (role, user_id) -> gym_id
        self.assignments: Dict[tuple[Role, str], str] = {}

    def add_gym(self, gym_id: str, name: str = "") -> GymRoster:
        roster = self.gyms.setdefault(gym_id, GymRoster(gym_id=gym_id, gym_name=name))
        if name:
            roster.gym_name = name
        return roster

    def assign(self, user_id: str, role: Role, gym_id: str, name: str = "") -> None:
        """Affiliate a trainer or member with a gym, leaving any previous gym."""
        role = Role.parse(role)
        if role not in (Role.TRAINER, Role.MEMBER):
            raise ValueError(f"Only trainers and members can join a gym, got {role.value}")

        self.unassign(user_id, role)
        roster = self.add_gym(gym_id)
        bucket = roster.trainers if role is Role.TRAINER else roster.members
        bucket.append(user_id)
        if name:
            roster.names[user_id] = name
        self.assignments[(role, user_id)] = gym_id

    def unassign(self, user_id: str, role: Role) -> None:
        role = Role.parse(role)
        gym_id = self.assignments.pop((role, user_id), None)
        if gym_id is None or gym_id not in self.gyms:
            return
        roster = self.gyms[gym_id]
        bucket = roster.trainers if role is Role.TRAINER else roster.members
        if user_id in bucket:
            bucket.remove(user_id)
        roster.names.pop(user_id, None)

    async def get_gym_for_user(self, user_id: str, role: Role) -> Optional[str]:
        return self.assignments.get((Role.parse(role), user_id))

    async def list_participants(self, gym_id: str) -> GymRoster:
        roster = self.gyms.get(gym_id)
        if roster is None:
            return GymRoster(gym_id=gym_id)
        return roster.model_copy(deep=True)


class RedisAffiliationDirectory(AffiliationDirectory):
    """
    Redis backed directory.

    Storage Format:
        affiliation:trainer   HASH user_id -> gym_id
        affiliation:member    HASH user_id -> gym_id
        gym:<gym_id>:profile  STRING {"name": "..."}
        gym:<gym_id>:trainers SET of trainer ids
        gym:<gym_id>:members  SET of member ids
        gym:<gym_id>:names    HASH user_id -> display name

    The CRUD side writes these keys whenever a join request is accepted or a
    member leaves a gym; ``assign``/``unassign`` mirror that for tooling.
    """

    def __init__(self, client) -> None:
        self.client = client

    @staticmethod
    def _affiliation_key(role: Role) -> str:
        return f"affiliation:{role.value}"

    @staticmethod
    def _roster_key(gym_id: str, role: Role) -> str:
        suffix = "trainers" if role is Role.TRAINER else "members"
        return f"gym:{gym_id}:{suffix}"

    async def assign(self, user_id: str, role: Role, gym_id: str, name: str = "") -> None:
        role = Role.parse(role)
        await self.unassign(user_id, role)
        await self.client.hset(self._affiliation_key(role), user_id, gym_id)
        await self.client.sadd(self._roster_key(gym_id, role), user_id)
        if name:
            await self.client.hset(f"gym:{gym_id}:names", user_id, name)

    async def unassign(self, user_id: str, role: Role) -> None:
        role = Role.parse(role)
        previous = await self.client.hget(self._affiliation_key(role), user_id)
        if previous:
            await self.client.srem(self._roster_key(previous, role), user_id)
            await self.client.hdel(f"gym:{previous}:names", user_id)
            await self.client.hdel(self._affiliation_key(role), user_id)

    async def set_gym_name(self, gym_id: str, name: str) -> None:
        await self.client.set(f"gym:{gym_id}:profile", json.dumps({"name": name}))

    async def get_gym_for_user(self, user_id: str, role: Role) -> Optional[str]:
        role = Role.parse(role)
        if role not in (Role.TRAINER, Role.MEMBER):
            return None
        return await self.client.hget(self._affiliation_key(role), user_id)

    async def list_participants(self, gym_id: str) -> GymRoster:
        trainers = await self.client.smembers(self._roster_key(gym_id, Role.TRAINER))
        members = await self.client.smembers(self._roster_key(gym_id, Role.MEMBER))
        raw_profile = await self.client.get(f"gym:{gym_id}:profile")
        name = json.loads(raw_profile).get("name", "") if raw_profile else ""
        names = await self.client.hgetall(f"gym:{gym_id}:names")
        return GymRoster(
            gym_id=gym_id,
            gym_name=name,
            trainers=sorted(trainers),
            members=sorted(members),
            names=dict(names or {}),
        )


def seed_directory(directory: InMemoryAffiliationDirectory, data: dict) -> None:
    """
    Load a fixture of the form::

        {"gyms": {"g1": {"name": "Iron Temple",
                         "trainers": [{"id": "t1", "name": "Tina"}],
                         "members": ["m1"]}}}

    Participants are plain ids or ``{"id", "name"}`` objects.
    """
    gyms: Dict[str, dict] = data.get("gyms", {})
    for gym_id, gym in gyms.items():
        directory.add_gym(gym_id, name=gym.get("name", ""))
        for trainer_id, name in _entries(gym.get("trainers")):
            directory.assign(trainer_id, Role.TRAINER, gym_id, name=name)
        for member_id, name in _entries(gym.get("members")):
            directory.assign(member_id, Role.MEMBER, gym_id, name=name)
    logger.info("✓ Seeded affiliations for %d gyms", len(gyms))


def _entries(values: Iterable | None) -> list[tuple[str, str]]:
    entries = []
    for value in values or []:
        if isinstance(value, dict):
            entries.append((str(value["id"]), str(value.get("name", ""))))
        else:
            entries.append((str(value), ""))
    return entries

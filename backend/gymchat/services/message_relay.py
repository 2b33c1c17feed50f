# backend/gymchat/services/message_relay.py

from __future__ import annotations

import logging
from typing import List

from gymchat.core.errors import EmptyMessage, InvalidParticipants
from gymchat.models.models import Contact, Message, Role
from gymchat.services.chat_store import ChatStore
from gymchat.services.room_resolver import RoomResolver

logger = logging.getLogger(__name__)

# Who may message whom inside a gym. Pairs are unordered.
ALLOWED_PAIRS = frozenset({
    frozenset({Role.GYM, Role.TRAINER}),
    frozenset({Role.TRAINER, Role.MEMBER}),
})


def is_allowed_pair(sender_role: Role, receiver_role: Role) -> bool:
    return frozenset({sender_role, receiver_role}) in ALLOWED_PAIRS


# ============================================================================
# DIRECT MESSAGE RELAY
# ============================================================================


class MessageRelay:
    """
    Validates, persists and fans out direct messages between gym participants.

    Flow of ``send``:
        1. Reject blank bodies (EmptyMessage)
        2. Reject role pairs other than gym<->trainer, trainer<->member
        3. Reject if either side is not affiliated with the gym
        4. Persist the Message
        5. Broadcast "message" to the gym room

    A rejection in 1-3 persists nothing and broadcasts nothing.

    ``broadcaster`` is either the local ConnectionManager or the Redis
    pub/sub service; both expose ``broadcast(room_id, event, payload)``.
    """

    def __init__(self, store: ChatStore, resolver: RoomResolver, broadcaster) -> None:
        self.store = store
        self.resolver = resolver
        self.broadcaster = broadcaster
        self.message_counter = 0

    async def send(
        self,
        sender_id: str,
        sender_role: Role | str,
        receiver_id: str,
        receiver_role: Role | str,
        gym_id: str,
        body: str,
    ) -> Message:
        if not body or not body.strip():
            raise EmptyMessage()

        try:
            sender_role = Role.parse(sender_role)
            receiver_role = Role.parse(receiver_role)
        except ValueError as exc:
            raise InvalidParticipants("Unknown participant type") from exc

        if sender_id == receiver_id or not is_allowed_pair(sender_role, receiver_role):
            logger.info(
                "Rejected message %s(%s) -> %s(%s): role pair not allowed",
                sender_id, sender_role.value, receiver_id, receiver_role.value,
            )
            raise InvalidParticipants(
                f"A {sender_role.value} cannot message a {receiver_role.value}"
            )

        for user_id, role in ((sender_id, sender_role), (receiver_id, receiver_role)):
            if not await self.resolver.is_affiliated(user_id, role, gym_id):
                logger.info("Rejected message in gym %s: %s is not affiliated", gym_id, user_id)
                raise InvalidParticipants("Both participants must belong to this gym")

        message = Message(
            sender=sender_id,
            sender_model=sender_role.model_name,
            receiver=receiver_id,
            receiver_model=receiver_role.model_name,
            gym=gym_id,
            message=body,
        )
        message = await self.store.create_message(message)
        self.message_counter += 1

        await self.broadcaster.broadcast(gym_id, "message", message.to_wire())
        return message

    async def history(self, gym_id: str, user_id: str, role: Role, counterpart_id: str) -> List[Message]:
        """
        Chronological conversation between the caller and ``counterpart_id``.

        The caller must belong to ``gym_id``.
        """
        if not await self.resolver.is_affiliated(user_id, role, gym_id):
            raise InvalidParticipants("You are not a participant of this gym")
        return await self.store.find_messages(gym_id, user_id, counterpart_id)

    async def contacts(self, user_id: str, role: Role) -> List[Contact]:
        """
        People the caller may message:
            gym     -> its trainers
            trainer -> the gym profile and the gym's members
            member  -> the gym's trainers
        """
        role = Role.parse(role)
        gym_id = await self.resolver.resolve_room(user_id, role)
        if gym_id is None:
            return []

        roster = await self.resolver.affiliations.list_participants(gym_id)
        result: List[Contact] = []
        if role is Role.TRAINER:
            result.append(Contact(id=gym_id, name=roster.gym_name, role=Role.GYM))
            result.extend(
                Contact(id=m, name=roster.names.get(m, ""), role=Role.MEMBER) for m in roster.members
            )
        else:
            result.extend(
                Contact(id=t, name=roster.names.get(t, ""), role=Role.TRAINER)
                for t in roster.trainers
                if t != user_id
            )
        return result

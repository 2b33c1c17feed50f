# backend/gymchat/services/connection_manager.py

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

from gymchat.models.models import Identity

logger = logging.getLogger(__name__)

# ============================================================================
# GYM ROOM CONNECTION REGISTRY
# ============================================================================


@dataclass(eq=False)
class Connection:
    """
    One live WebSocket connection.

    ``websocket`` is anything with an ``async send_json(dict)`` method, which
    keeps the registry usable with plain test doubles.
    """

    websocket: Any
    identity: Identity
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    room_id: Optional[str] = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    joined_at: Optional[datetime] = None


class ConnectionManager:
    """
    Tracks live connections and the single gym room each one sits in.

    Data Structures:
        connections: Maps connection_id -> Connection
        rooms: Maps room_id (= gym id) -> Set of connection ids in that room
               Example: {"gym-123": {"a1f...", "9c0..."}}

    Each connection is in at most one room. Rooms are not persisted: they
    exist only while at least one connection is in them.

    The registry does no authorization. Callers resolve which room a user
    may join (see ``room_resolver``) before calling ``join``.

    Concurrency:
        All methods run on the event loop and never await while the maps are
        half updated, so interleaved join/leave/broadcast calls are safe
        without a lock. Do not share an instance across threads.
    """

    def __init__(self) -> None:
        self.connections: Dict[str, Connection] = {}
        self.rooms: Dict[str, Set[str]] = {}

    @property
    def connection_count(self) -> int:
        return len(self.connections)

    def connect(self, websocket: Any, identity: Identity) -> Connection:
        """
        Register an accepted WebSocket.

        The connection is not in any room until ``join`` is called.
        """
        connection = Connection(websocket=websocket, identity=identity)
        self.connections[connection.id] = connection
        logger.info(
            "✓ %s %s connected. Total: %d",
            identity.role.value, identity.user_id, len(self.connections),
        )
        return connection

    def disconnect(self, connection_id: str) -> None:
        """Remove the connection from its room and forget it."""
        self.leave(connection_id)
        connection = self.connections.pop(connection_id, None)
        if connection is not None:
            logger.info(
                "✗ %s disconnected. Total: %d",
                connection.identity.user_id, len(self.connections),
            )

    def join(self, connection_id: str, room_id: str) -> bool:
        """
        Put a connection in ``room_id``.

        Idempotent: joining the room it is already in changes nothing.
        Joining a different room leaves the old one first.

        Returns:
            True if the connection is now in ``room_id``, False if the
            connection is unknown (already closed).
        """
        connection = self.connections.get(connection_id)
        if connection is None:
            return False

        if connection.room_id == room_id:
            return True

        if connection.room_id is not None:
            self.leave(connection_id)

        self.rooms.setdefault(room_id, set()).add(connection_id)
        connection.room_id = room_id
        connection.joined_at = datetime.now(timezone.utc)

        logger.info(
            "→ %s joined gym room '%s' (%d connected)",
            connection.identity.user_id, room_id, len(self.rooms[room_id]),
        )
        return True

    def leave(self, connection_id: str) -> Optional[str]:
        """
        Take a connection out of its room. No-op if it is not in one.

        Returns:
            The room that was left, or None.
        """
        connection = self.connections.get(connection_id)
        if connection is None or connection.room_id is None:
            return None

        room_id = connection.room_id
        members = self.rooms.get(room_id)
        if members is not None:
            members.discard(connection_id)
            # Clean up empty room
            if not members:
                del self.rooms[room_id]

        connection.room_id = None
        connection.joined_at = None
        logger.info("← %s left gym room '%s'", connection.identity.user_id, room_id)
        return room_id

    def room_of(self, connection_id: str) -> Optional[str]:
        connection = self.connections.get(connection_id)
        return connection.room_id if connection else None

    def members(self, room_id: str) -> Set[str]:
        return set(self.rooms.get(room_id, ()))

    async def broadcast(self, room_id: str, event: str, payload: Any) -> int:
        """
        Send ``{"type": event, "data": payload}`` to every connection in a room.

        Only connections in the room when the call starts are targeted;
        anyone joining meanwhile does not get it, and nothing is replayed.

        Error Handling:
            If a send fails, that connection is disconnected and delivery
            continues with the rest of the room.

        Returns:
            Number of connections the event was delivered to.
        """
        if room_id not in self.rooms:
            logger.info("[routing] Skipped %s: room=%s has 0 connections", event, room_id)
            return 0

        frame = {"type": event, "data": payload}
        # Snapshot to avoid modification during iteration
        targets = [self.connections[cid] for cid in list(self.rooms[room_id]) if cid in self.connections]

        logger.info("📨 Broadcasting %s to room %s: %d clients", event, room_id, len(targets))

        delivered = 0
        failed: list[str] = []
        for connection in targets:
            try:
                await connection.websocket.send_json(frame)
                delivered += 1
            except Exception as e:
                logger.error("Send error to %s: %s", connection.identity.user_id, e)
                failed.append(connection.id)

        for connection_id in failed:
            self.disconnect(connection_id)

        return delivered

    def rooms_info(self) -> Dict[str, dict]:
        """
        Active rooms with their connection counts.

        Used by the /metrics endpoint and for debugging.
        """
        return {
            room_id: {"connections": len(members)}
            for room_id, members in self.rooms.items()
        }

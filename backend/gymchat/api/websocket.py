# backend/gymchat/api/websocket.py

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from gymchat.core.errors import ChatError, Forbidden, InvalidParticipants
from gymchat.core.state import AppState
from gymchat.models.models import Result, Role, SendMessageRequest
from gymchat.services.auth_service import InvalidToken, decode_access_token
from gymchat.services.connection_manager import Connection

logger = logging.getLogger(__name__)

router = APIRouter()

# Close code sent when the token is missing or invalid
UNAUTHORIZED_CLOSE_CODE = 4401

# ============================================================================
# EVENT DISPATCH
# ============================================================================


async def join_gym(state: AppState, connection: Connection, requested: Any) -> Result:
    identity = connection.identity
    room_id = await state.resolver.resolve_room(identity.user_id, identity.role)
    if room_id is None:
        raise Forbidden("Admins do not take part in gym chat")
    if requested and str(requested) != room_id:
        raise Forbidden("You can only join your own gym")

    if not state.connection_manager.join(connection.id, room_id):
        # Dropped by a failed broadcast; the client has to reconnect
        return Result.failure("NotConnected", "Connection is closed, reconnect to join")
    return Result.success({"room_id": room_id})


async def leave_gym(state: AppState, connection: Connection, _data: Any) -> Result:
    left = state.connection_manager.leave(connection.id)
    return Result.success({"room_id": left})


async def send_message(state: AppState, connection: Connection, data: Any) -> Result:
    request = SendMessageRequest.model_validate(data)
    identity = connection.identity
    try:
        claimed_role = Role.parse(request.sender_model)
    except ValueError as exc:
        raise InvalidParticipants("Unknown sender type") from exc
    if request.sender_id != identity.user_id or claimed_role is not identity.role:
        raise InvalidParticipants("Sender does not match the authenticated user")

    message = await state.relay.send(
        request.sender_id,
        claimed_role,
        request.receiver_id,
        request.receiver_model,
        request.gym_id,
        request.message,
    )
    return Result.success(message.to_wire())


HANDLERS = {
    "joinGym": join_gym,
    "leaveGym": leave_gym,
    "sendMessage": send_message,
}


async def dispatch(state: AppState, connection: Connection, action: Any, data: Any) -> Result:
    """
    Run one client event and report the outcome as a tagged Result.

    Rejections are scoped to the event: the connection stays open and
    usable whatever happens here.
    """
    handler = HANDLERS.get(action) if isinstance(action, str) else None
    if handler is None:
        return Result.failure("UnknownAction", f"Unknown action: {action}")

    try:
        return await handler(state, connection, data)
    except ChatError as e:
        logger.info("%s rejected for %s: %s", action, connection.identity.user_id, e.message)
        return Result.failure(e.kind, e.message)
    except ValidationError as e:
        return Result.failure("InvalidPayload", f"Invalid {action} payload: {e.error_count()} error(s)")
    except Exception as e:
        logger.exception("%s failed for %s", action, connection.identity.user_id)
        return Result.failure("InternalError", f"Could not complete {action}: {e.__class__.__name__}")


# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str = ""):
    """
    WebSocket endpoint for gym chat and announcements.

    Protocol:
    =========

    Client -> Server Actions:
    -------------------------
    Join Gym Room:
        {"action": "joinGym", "data": "<gymId>"}
        Ack: {"type": "ack", "action": "joinGym", "ok": true, "data": {"room_id": "<gymId>"}}

    Leave Gym Room:
        {"action": "leaveGym"}

    Send Direct Message:
        {
            "action": "sendMessage",
            "data": {"senderId", "senderModel", "receiverId", "receiverModel", "gymId", "message"}
        }
        Ack: {"type": "ack", "action": "sendMessage", "ok": true, "data": {<message>}}

    Failed acks carry "ok": false, "error": "<kind>", "message": "...".

    Server -> Room Events:
    ----------------------
        {"type": "message", "data": {<message>}}
        {"type": "announcement", "data": {<announcement>}}
        {"type": "announcementUpdate", "data": {<announcement>}}
        {"type": "announcementDelete", "data": "<announcementId>"}

    Lifecycle:
    ==========
    1. Client connects with ?token=<jwt>; bad tokens are closed with 4401
    2. Client sends "joinGym"; the room is resolved from its identity
    3. Client receives events for that room only
    4. On disconnect, it is removed from the room
    """
    state: AppState = websocket.app.state.chat

    try:
        identity = decode_access_token(token, state.settings)
    except InvalidToken as e:
        logger.info("WebSocket rejected: %s", e)
        await websocket.close(code=UNAUTHORIZED_CLOSE_CODE)
        return

    await websocket.accept()
    connection = state.connection_manager.connect(websocket, identity)

    try:
        while True:
            raw = await websocket.receive_text()

            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            if not isinstance(frame, dict):
                await websocket.send_json({"type": "error", "message": "Expected a JSON object"})
                continue

            action = frame.get("action")
            logger.debug("Websocket input: Action: %s, User: %s", action, identity.user_id)

            result = await dispatch(state, connection, action, frame.get("data"))
            await websocket.send_json({"type": "ack", "action": action, **result.model_dump()})

    except WebSocketDisconnect:
        state.connection_manager.disconnect(connection.id)
    except Exception as e:
        logger.error("WebSocket error: %s", e)
        state.connection_manager.disconnect(connection.id)

# backend/gymchat/api/routes/chat.py

from typing import List

from fastapi import APIRouter, Depends

from gymchat.core.errors import Forbidden
from gymchat.core.state import AppState
from gymchat.models.models import AnnouncementRequest, Identity, Role
from gymchat.services.auth_service import get_current_identity
from gymchat.api.routes.utils import get_state

router = APIRouter(prefix="/chat", tags=["Chat"])

# ============================================================================
# MESSAGE HISTORY + CONTACTS
# ============================================================================


@router.get("/messages/{gym_id}/{counterpart_id}")
async def get_messages(
    gym_id: str,
    counterpart_id: str,
    caller: Identity = Depends(get_current_identity),
    state: AppState = Depends(get_state),
) -> List[dict]:
    """
    Conversation between the caller and ``counterpart_id`` in ``gym_id``, oldest first.

    Raises:
        400 InvalidParticipants if the caller is not part of the gym
    """
    messages = await state.relay.history(gym_id, caller.user_id, caller.role, counterpart_id)
    return [m.to_wire() for m in messages]


@router.get("/contacts")
async def get_contacts(
    caller: Identity = Depends(get_current_identity),
    state: AppState = Depends(get_state),
) -> List[dict]:
    """People the caller is allowed to message in their gym."""
    contacts = await state.relay.contacts(caller.user_id, caller.role)
    return [c.to_wire() for c in contacts]


# ============================================================================
# ANNOUNCEMENTS
# ============================================================================


@router.get("/announcements")
async def get_announcements(
    caller: Identity = Depends(get_current_identity),
    state: AppState = Depends(get_state),
) -> List[dict]:
    """Announcements of the caller's gym, newest first (members and trainers)."""
    if caller.role not in (Role.MEMBER, Role.TRAINER):
        raise Forbidden("Only members and trainers have an announcement feed")
    gym_id = await state.resolver.resolve_room(caller.user_id, caller.role)
    return [a.to_wire() for a in await state.announcements.list_for_gym(gym_id)]


@router.get("/announcements/gym")
async def get_own_announcements(
    caller: Identity = Depends(get_current_identity),
    state: AppState = Depends(get_state),
) -> List[dict]:
    """Announcements posted by the calling gym profile."""
    if caller.role is not Role.GYM:
        raise Forbidden()
    return [a.to_wire() for a in await state.announcements.list_for_gym(caller.user_id)]


@router.post("/announcements", status_code=201)
async def post_announcement(
    request: AnnouncementRequest,
    caller: Identity = Depends(get_current_identity),
    state: AppState = Depends(get_state),
):
    """
    Post an announcement to the caller's gym.

    Side Effects:
        "announcement" event broadcast to every connection in the gym room
    """
    announcement = await state.announcements.post(caller, caller.user_id, request.message)
    return {"message": "Announcement posted", "announcement": announcement.to_wire()}


@router.put("/announcements/{announcement_id}")
async def update_announcement(
    announcement_id: str,
    request: AnnouncementRequest,
    caller: Identity = Depends(get_current_identity),
    state: AppState = Depends(get_state),
):
    announcement = await state.announcements.update(
        caller, announcement_id, caller.user_id, request.message
    )
    return {"message": "Announcement updated", "announcement": announcement.to_wire()}


@router.delete("/announcements/{announcement_id}")
async def delete_announcement(
    announcement_id: str,
    caller: Identity = Depends(get_current_identity),
    state: AppState = Depends(get_state),
):
    await state.announcements.remove(caller, announcement_id, caller.user_id)
    return {"message": "Announcement deleted", "announcement_id": announcement_id}

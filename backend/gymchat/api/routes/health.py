# backend/gymchat/api/routes/health.py

from fastapi import APIRouter, Depends

from gymchat.core.state import AppState
from gymchat.api.routes.utils import get_state

router = APIRouter()


@router.get("/health")
async def health(state: AppState = Depends(get_state)):
    """
    Health check endpoint.

    Returns current system status, connection counts and active gym rooms.
    Used by container health checks and monitoring.
    """
    return {
        "status": "healthy",
        "connections": state.connection_manager.connection_count,
        "active_rooms": len(state.connection_manager.rooms),
    }

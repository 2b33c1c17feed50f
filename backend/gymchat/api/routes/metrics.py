# backend/gymchat/api/routes/metrics.py
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from gymchat.core.state import AppState
from gymchat.api.routes.utils import get_state

router = APIRouter()


@router.get("/metrics")
async def get_metrics(state: AppState = Depends(get_state)):
    """
    Usage counters for this process.

    Counts are per instance; with PUB_SUB_SERVICE=redis each instance only
    reports the messages and announcements that were submitted through it.
    """
    uptime_seconds = (datetime.now(timezone.utc) - state.app_start_time).total_seconds()

    if uptime_seconds > 0:
        messages_per_second = state.relay.message_counter / uptime_seconds
    else:
        messages_per_second = 0

    return {
        # Statistics
        "total_messages": state.relay.message_counter,
        "total_announcement_events": state.announcements.announcement_counter,
        "messages_per_second": round(messages_per_second, 4),
        "uptime_hours": round(uptime_seconds / 3600, 2) if uptime_seconds > 0 else 0,

        # Capacity
        "concurrent_connections": state.connection_manager.connection_count,
        "active_rooms": state.connection_manager.rooms_info(),
        "pub_sub_service": state.settings.PUB_SUB_SERVICE,
    }

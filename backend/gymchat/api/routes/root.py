# backend/gymchat/api/routes/root.py

from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "message": "Gym Chat - realtime messages and announcements",
        "version": "1.0",
        "events": {
            "client": ["joinGym", "leaveGym", "sendMessage"],
            "server": ["message", "announcement", "announcementUpdate", "announcementDelete"],
        },
        "endpoints": {
            "websocket": "/ws",
            "messages": "/chat/messages/{gym_id}/{counterpart_id}",
            "contacts": "/chat/contacts",
            "announcements": "/chat/announcements",
            "health": "/health",
            "metrics": "/metrics",
        },
    }

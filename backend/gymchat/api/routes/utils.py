# backend/gymchat/api/routes/utils.py

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from gymchat.core.errors import ChatError
from gymchat.core.state import AppState


def get_state(request: Request) -> AppState:
    """Dependency returning the AppState owned by this app."""
    return request.app.state.chat


async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    """
    Turn a ChatError raised by a route into a JSON error.

    Response body:
        {"detail": "<message>", "kind": "<NotFound|Forbidden|...>"}
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "kind": exc.kind},
    )

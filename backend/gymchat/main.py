# backend/gymchat/main.py

from __future__ import annotations

import asyncio

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gymchat.core.config import Settings, settings as default_settings
from gymchat.core.errors import ChatError
from gymchat.core.logging import setup_logging, get_logger
from gymchat.core.state import build_state
from gymchat.api.routes import root, health, metrics, chat
from gymchat.api.routes.utils import chat_error_handler
from gymchat.api import websocket as websocket_module
from gymchat.services.affiliations import AffiliationDirectory
from gymchat.services.chat_store import ChatStore

# Configure logging first
setup_logging()
logger = get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    store: ChatStore | None = None,
    affiliations: AffiliationDirectory | None = None,
) -> FastAPI:
    """
    Build the FastAPI app with its own registry, relay and broadcaster.

    Nothing is shared between apps, so every test can start from a clean
    set of rooms by calling this again.
    """
    settings = settings or default_settings

    app = FastAPI(title="Gym Chat - Realtime Channel")
    app.state.settings = settings
    app.state.chat = build_state(settings, store=store, affiliations=affiliations)
    app.state.listener_task = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ChatError, chat_error_handler)

    # REST routes
    app.include_router(root.router)
    app.include_router(health.router)
    app.include_router(metrics.router)
    app.include_router(chat.router)

    # WebSocket routes
    app.include_router(websocket_module.router)

    @app.on_event("startup")
    async def startup_event():
        logger.info("🚀 Application starting - gym chat enabled")

        redis_service = app.state.chat.redis_service
        if redis_service is not None:
            await redis_service.connect()
            # Start subscriber in background
            app.state.listener_task = asyncio.create_task(redis_service.listen())

    @app.on_event("shutdown")
    async def on_shutdown():
        task = app.state.listener_task
        if task is not None:
            task.cancel()
        redis_service = app.state.chat.redis_service
        if redis_service is not None:
            await redis_service.close()

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("gymchat.main:create_app", factory=True, host="0.0.0.0", port=8000)

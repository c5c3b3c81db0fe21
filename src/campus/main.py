"""FastAPI application factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from campus.assignments.router import router as assignments_router
from campus.attendance.router import router as attendance_router
from campus.auth.router import router as auth_router
from campus.calls.router import router as calls_router
from campus.campuses.router import router as campuses_router
from campus.chat.router import router as chat_router
from campus.chat.sync_router import router as sync_router
from campus.classes.router import router as classes_router
from campus.config import get_settings
from campus.courses.router import router as courses_router
from campus.database import close_db, init_db
from campus.health.router import router as health_router
from campus.middleware import setup_middleware
from campus.notifications.router import router as notifications_router
from campus.redis_client import close_redis, get_redis, init_redis
from campus.reminders.router import router as reminders_router
from campus.users.router import router as users_router
from campus.ws.bridge import PubSubBridge
from campus.ws.router import router as ws_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    # Redis pub/sub -> WebSocket bridge
    bridge = PubSubBridge(get_redis())
    bridge_task = asyncio.create_task(bridge.start())
    logger.info("app_started", environment=settings.environment, version=settings.app_version)

    yield

    await bridge.stop()
    bridge_task.cancel()
    try:
        await bridge_task
    except asyncio.CancelledError:
        pass

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Campus API",
        description="Multi-tenant school management API with real-time chat and multi-device sync",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(campuses_router)
    app.include_router(users_router)
    app.include_router(classes_router)
    app.include_router(courses_router)
    app.include_router(attendance_router)
    app.include_router(assignments_router)
    app.include_router(chat_router)
    app.include_router(sync_router)
    app.include_router(calls_router)
    app.include_router(reminders_router)
    app.include_router(notifications_router)
    app.include_router(ws_router)

    return app


app = create_app()

"""arq worker: reminder delivery and cleanup.

Import path for arq CLI: arq campus.workers.settings.WorkerSettings
"""

from __future__ import annotations

import redis.asyncio as aioredis
import structlog
from arq import cron
from arq.connections import RedisSettings

from campus.config import get_settings
from campus.database import close_db, get_session_factory, init_db
from campus.reminders.service import cleanup_old_reminders, process_pending_reminders

logger = structlog.get_logger()


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Open the database and the publish-side Redis client."""
    settings = get_settings()
    await init_db(settings.database_url)
    ctx["redis"] = aioredis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
    logger.info("worker_started")


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    redis_client: aioredis.Redis | None = ctx.get("redis")
    if redis_client:
        await redis_client.aclose()
    await close_db()
    logger.info("worker_stopped")


async def send_due_reminders(ctx: dict) -> int:  # type: ignore[type-arg]
    """Every minute: notify owners of reminders due in the next few minutes."""
    async with get_session_factory()() as db:
        processed = await process_pending_reminders(db, redis=ctx.get("redis"))
        await db.commit()
    return processed


async def cleanup_reminders(ctx: dict) -> int:  # type: ignore[type-arg]
    """Daily: retire one-time reminders delivered past the retention window."""
    async with get_session_factory()() as db:
        cleaned = await cleanup_old_reminders(db)
        await db.commit()
    return cleaned


class WorkerSettings:
    """arq worker settings."""

    functions = [send_due_reminders, cleanup_reminders]
    cron_jobs = [
        cron(send_due_reminders, second=0, run_at_startup=True),
        cron(cleanup_reminders, hour=3, minute=0, second=0),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    max_jobs = 4

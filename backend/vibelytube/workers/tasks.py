"""
VibelyTube Celery Worker Tasks

Periodic maintenance for the relational store:
- Expired auth-session cleanup
- Worker health check
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from celery import Celery

from vibelytube.core.config import get_settings
from vibelytube.core.database import Database
from vibelytube.services.database.database_service import database_service

settings = get_settings()
logger = logging.getLogger(__name__)

# ── Celery App ───────────────────────────────────────────────────────────

celery_app = Celery(
    "vibelytube",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_default_queue="default",
)

# ── Periodic Tasks ───────────────────────────────────────────────────────

celery_app.conf.beat_schedule = {
    "cleanup-expired-sessions": {
        "task": "vibelytube.workers.tasks.cleanup_expired_sessions_task",
        "schedule": float(settings.session_cleanup_interval_seconds),
    },
    "health-check-every-minute": {
        "task": "vibelytube.workers.tasks.health_check_task",
        "schedule": 60.0,
    },
}


# ── Helpers ──────────────────────────────────────────────────────────────

def run_async(coro):
    """Run an async coroutine from sync Celery task."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def cleanup_expired_sessions(database_url: str) -> int:
    database = Database(database_url)
    try:
        async with database.session() as db:
            return await database_service.cleanup_expired_sessions(db)
    finally:
        await database.close()


# ── Tasks ────────────────────────────────────────────────────────────────

@celery_app.task(name="vibelytube.workers.tasks.cleanup_expired_sessions_task")
def cleanup_expired_sessions_task() -> int:
    """Delete auth sessions whose expiry has passed."""
    if not settings.database_enabled:
        logger.info("Database not configured; skipping session cleanup")
        return 0
    try:
        return run_async(cleanup_expired_sessions(settings.database_url))
    except Exception as e:
        logger.error(f"Session cleanup failed: {e}")
        raise


@celery_app.task(name="vibelytube.workers.tasks.health_check_task")
def health_check_task():
    """Periodic health check — ensures workers are alive."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

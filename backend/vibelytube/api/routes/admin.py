"""
VibelyTube API — Admin routes.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from vibelytube.api.deps import get_db, get_session_store
from vibelytube.schemas.schemas import StatsData, success
from vibelytube.services.database.database_service import database_service
from vibelytube.services.session.session_store import SessionStore

router = APIRouter(tags=["Admin"])


@router.get("/stats")
async def get_stats(
    store: SessionStore = Depends(get_session_store),
    db: Optional[AsyncSession] = Depends(get_db),
):
    """Session-store counts, plus relational counts when the database is enabled."""
    counts = await store.stats()
    database = await database_service.get_stats(db) if db is not None else None
    return success(StatsData(
        sessions=counts["sessions"],
        analyses=counts["analyses"],
        database=database,
    ))

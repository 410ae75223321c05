"""
Mirror successful analyses and chat turns into the relational store.

Mirroring is best effort: the in-memory session is the source of truth for the
conversation, so a database failure is logged and never fails the request.
"""
from __future__ import annotations

import logging
from typing import Optional

from vibelytube.core.database import Database
from vibelytube.schemas.schemas import VideoAnalysisResult
from vibelytube.services.database.database_service import VideoUpsert, database_service

logger = logging.getLogger(__name__)


def _video_upsert(analysis: VideoAnalysisResult) -> VideoUpsert:
    duration = analysis.duration if isinstance(analysis.duration, int) else None
    return VideoUpsert(
        youtube_id=analysis.video_id,
        title=analysis.title,
        url=analysis.url,
        description=analysis.description,
        thumbnail=analysis.thumbnail_url,
        duration=duration,
    )


async def mirror_analysis(database: Optional[Database], analysis: VideoAnalysisResult) -> None:
    if database is None or not analysis.video_id:
        return
    try:
        async with database.session() as db:
            await database_service.create_or_update_video(db, _video_upsert(analysis))
    except Exception as e:
        logger.warning(f"Failed to mirror analysis {analysis.id} to database: {e}")


async def mirror_chat(
    database: Optional[Database],
    analysis: Optional[VideoAnalysisResult],
    message: str,
    response: str,
) -> None:
    if database is None or analysis is None or not analysis.video_id:
        return
    try:
        async with database.session() as db:
            video = await database_service.create_or_update_video(db, _video_upsert(analysis))
            await database_service.create_chat(db, video.id, message, response)
    except Exception as e:
        logger.warning(f"Failed to mirror chat for analysis {analysis.id} to database: {e}")

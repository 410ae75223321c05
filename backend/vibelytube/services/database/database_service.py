"""
VibelyTube Database Service — CRUD over users, auth sessions, videos and chats.

Every method takes an ``AsyncSession`` owned by the caller; the caller decides
when to commit. Errors are logged with context and re-raised.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vibelytube.models.models import AuthSession, Chat, User, Video

logger = logging.getLogger(__name__)


@dataclass
class VideoUpsert:
    youtube_id: str
    title: str
    url: str
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    duration: Optional[int] = None
    user_id: Optional[uuid.UUID] = None


class DatabaseService:
    """Relational persistence for the optional database-backed deployment."""

    # ── Users ────────────────────────────────────────────────────────────

    async def create_user(
        self, db: AsyncSession, email: str, name: Optional[str] = None, avatar: Optional[str] = None,
    ) -> User:
        try:
            user = User(email=email, name=name, avatar=avatar)
            db.add(user)
            await db.flush()
        except Exception as e:
            logger.error(f"Error creating user {email}: {e}")
            raise
        logger.info(f"User created: {email}")
        return user

    async def get_user_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        return await db.scalar(select(User).where(User.email == email))

    async def get_user_by_id(self, db: AsyncSession, user_id: uuid.UUID) -> Optional[User]:
        return await db.get(User, user_id)

    # ── Auth sessions ────────────────────────────────────────────────────

    async def create_auth_session(
        self, db: AsyncSession, user_id: uuid.UUID, token: str, expires_at: datetime,
    ) -> AuthSession:
        try:
            session = AuthSession(user_id=user_id, token=token, expires_at=expires_at)
            db.add(session)
            await db.flush()
        except Exception as e:
            logger.error(f"Error creating session for user {user_id}: {e}")
            raise
        logger.info(f"Session created for user: {user_id}")
        return session

    async def get_auth_session_by_token(self, db: AsyncSession, token: str) -> Optional[AuthSession]:
        return await db.scalar(select(AuthSession).where(AuthSession.token == token))

    async def delete_auth_session(self, db: AsyncSession, token: str) -> bool:
        result = await db.execute(delete(AuthSession).where(AuthSession.token == token))
        deleted = (result.rowcount or 0) > 0
        if deleted:
            logger.info("Auth session deleted")
        return deleted

    async def cleanup_expired_sessions(self, db: AsyncSession, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        try:
            result = await db.execute(delete(AuthSession).where(AuthSession.expires_at < now))
        except Exception as e:
            logger.error(f"Error cleaning up expired sessions: {e}")
            raise
        count = result.rowcount or 0
        logger.info(f"Cleaned up {count} expired sessions")
        return count

    # ── Videos ───────────────────────────────────────────────────────────

    async def create_or_update_video(self, db: AsyncSession, data: VideoUpsert) -> Video:
        """Upsert by ``youtube_id``. Optional fields left as ``None`` keep their stored value."""
        try:
            video = await self.get_video_by_youtube_id(db, data.youtube_id)
            if video is None:
                video = Video(youtube_id=data.youtube_id, title=data.title, url=data.url)
                db.add(video)
            video.title = data.title
            video.url = data.url
            for field in ("description", "thumbnail", "duration", "user_id"):
                value = getattr(data, field)
                if value is not None:
                    setattr(video, field, value)
            await db.flush()
        except Exception as e:
            logger.error(f"Error creating/updating video {data.youtube_id}: {e}")
            raise
        logger.info(f"Video created/updated: {data.title}")
        return video

    async def get_video_by_youtube_id(self, db: AsyncSession, youtube_id: str) -> Optional[Video]:
        return await db.scalar(select(Video).where(Video.youtube_id == youtube_id))

    async def get_video_by_id(self, db: AsyncSession, video_id: uuid.UUID) -> Optional[Video]:
        return await db.get(Video, video_id)

    async def get_user_videos(self, db: AsyncSession, user_id: uuid.UUID) -> List[Video]:
        result = await db.execute(
            select(Video).where(Video.user_id == user_id).order_by(Video.created_at.desc())
        )
        return list(result.scalars().all())

    # ── Chats ────────────────────────────────────────────────────────────

    async def create_chat(
        self,
        db: AsyncSession,
        video_id: uuid.UUID,
        message: str,
        response: Optional[str] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> Chat:
        try:
            chat = Chat(video_id=video_id, user_id=user_id, message=message, response=response)
            db.add(chat)
            await db.flush()
        except Exception as e:
            logger.error(f"Error creating chat for video {video_id}: {e}")
            raise
        logger.info(f"Chat created for video: {video_id}")
        return chat

    async def get_video_chats(self, db: AsyncSession, video_id: uuid.UUID, limit: int = 20) -> List[Chat]:
        result = await db.execute(
            select(Chat).where(Chat.video_id == video_id)
            .order_by(Chat.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def get_user_chats(self, db: AsyncSession, user_id: uuid.UUID, limit: int = 50) -> List[Chat]:
        result = await db.execute(
            select(Chat).where(Chat.user_id == user_id)
            .order_by(Chat.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    # ── Stats ────────────────────────────────────────────────────────────

    async def get_stats(self, db: AsyncSession) -> Dict[str, int]:
        return {
            "users": await db.scalar(select(func.count(User.id))) or 0,
            "videos": await db.scalar(select(func.count(Video.id))) or 0,
            "chats": await db.scalar(select(func.count(Chat.id))) or 0,
            "sessions": await db.scalar(select(func.count(AuthSession.id))) or 0,
        }


database_service = DatabaseService()

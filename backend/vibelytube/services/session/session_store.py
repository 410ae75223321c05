"""
VibelyTube Session Store — keyed conversation sessions.

A session holds the ordered chat history and the ordered list of analyses for
one conversation. Readers always receive a snapshot; writers replace the
stored sequences wholesale.

Concurrency model:
  - One ``asyncio.Lock`` per session id, created on first use.
  - ``lock()`` is held by callers around a read-modify-write of one session
    (a whole chat turn). ``get_or_create``/``save_history`` do not take the
    lock themselves, so they are safe to call while it is held.
  - ``append_analysis`` takes the lock on its own.
  - Sessions never contend with each other.
"""
from __future__ import annotations

import abc
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional

from vibelytube.schemas.schemas import ChatMessage, Session, VideoAnalysisResult
from vibelytube.utils.ids import new_session_id

logger = logging.getLogger(__name__)


class SessionStore(abc.ABC):
    """Storage contract used by the endpoint layer."""

    @abc.abstractmethod
    async def create(self) -> Session:
        """Create an empty session under a freshly generated id."""

    @abc.abstractmethod
    async def get(self, session_id: str) -> Optional[Session]:
        """Return a snapshot of the session, or ``None`` if it does not exist."""

    @abc.abstractmethod
    async def get_or_create(self, session_id: str) -> Session:
        """Return a snapshot of the session, creating an empty one if needed."""

    @abc.abstractmethod
    async def append_analysis(self, session_id: str, result: VideoAnalysisResult) -> Session:
        """Append ``result`` to the session's analyses (upserting the session)."""

    @abc.abstractmethod
    async def save_history(self, session_id: str, history: List[ChatMessage]) -> None:
        """Replace the stored conversation history of an existing session."""

    @abc.abstractmethod
    def lock(self, session_id: str):
        """Async context manager serializing writers of one session."""

    @abc.abstractmethod
    async def stats(self) -> Dict[str, int]:
        """Counts of live sessions and stored analyses."""


class InMemorySessionStore(SessionStore):
    """Process-local store. Unbounded, no eviction, lost on restart."""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    # ── Locking ──────────────────────────────────────────────────────────

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        return self._locks.setdefault(session_id, asyncio.Lock())

    @asynccontextmanager
    async def lock(self, session_id: str) -> AsyncIterator[None]:
        async with self._lock_for(session_id):
            yield

    # ── Reads ────────────────────────────────────────────────────────────

    @staticmethod
    def _snapshot(session: Session) -> Session:
        return session.model_copy(update={
            "conversation_history": list(session.conversation_history),
            "analyses": list(session.analyses),
        })

    async def get(self, session_id: str) -> Optional[Session]:
        session = self._sessions.get(session_id)
        return self._snapshot(session) if session is not None else None

    # ── Writes ───────────────────────────────────────────────────────────

    def _ensure(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            session = Session(session_id=session_id)
            self._sessions[session_id] = session
            logger.info(f"Created new session: {session_id}")
        return session

    async def create(self) -> Session:
        session_id = new_session_id()
        while session_id in self._sessions:
            session_id = new_session_id()
        return self._snapshot(self._ensure(session_id))

    async def get_or_create(self, session_id: str) -> Session:
        return self._snapshot(self._ensure(session_id))

    async def append_analysis(self, session_id: str, result: VideoAnalysisResult) -> Session:
        async with self._lock_for(session_id):
            session = self._ensure(session_id)
            session.analyses = [*session.analyses, result]
            logger.info(
                f"Stored analysis {result.id} in session {session_id} "
                f"(title={result.title!r}, total={len(session.analyses)})"
            )
            return self._snapshot(session)

    async def save_history(self, session_id: str, history: List[ChatMessage]) -> None:
        session = self._ensure(session_id)
        session.conversation_history = list(history)

    async def stats(self) -> Dict[str, int]:
        return {
            "sessions": len(self._sessions),
            "analyses": sum(len(s.analyses) for s in self._sessions.values()),
        }

"""
VibelyTube API dependencies — services constructed at startup, read from ``app.state``.
"""
from __future__ import annotations

from typing import AsyncIterator, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from vibelytube.core.config import Settings
from vibelytube.core.database import Database
from vibelytube.services.analysis.analysis_service import AnalysisService
from vibelytube.services.chat.chat_service import ChatService
from vibelytube.services.session.session_store import SessionStore


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_analysis_service(request: Request) -> AnalysisService:
    return request.app.state.analysis_service


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_database(request: Request) -> Optional[Database]:
    return request.app.state.database


async def get_db(request: Request) -> AsyncIterator[Optional[AsyncSession]]:
    """Transactional session when the relational store is enabled, else ``None``."""
    database: Optional[Database] = request.app.state.database
    if database is None:
        yield None
        return
    async with database.session() as db:
        yield db

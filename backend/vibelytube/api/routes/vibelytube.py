"""
VibelyTube API — analyze, chat and session routes.

  - POST /analyze             — Analyze a YouTube URL into a session
  - POST /upload              — Analyze an uploaded audio/video/pdf/text file
  - POST /chat                — One chat turn, optionally primed with an analysis
  - GET  /session/{id}        — Visible conversation history
  - POST /session             — Create an empty session
  - GET  /health              — Liveness
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from vibelytube.api.deps import (
    get_analysis_service,
    get_app_settings,
    get_chat_service,
    get_database,
    get_session_store,
)
from vibelytube.core.config import Settings
from vibelytube.core.database import Database
from vibelytube.core.exceptions import (
    ExtractionError,
    GenerationError,
    NotFoundError,
    ValidationError,
    VibelyError,
)
from vibelytube.core.metrics import ANALYSES_TOTAL, CHAT_TURNS_TOTAL, FAILURES_TOTAL
from vibelytube.schemas.schemas import (
    AnalysisData,
    AnalyzeRequest,
    ChatData,
    ChatMessage,
    ChatRequest,
    HealthData,
    Role,
    SessionCreated,
    SessionData,
    VideoAnalysisResult,
    success,
)
from vibelytube.services.analysis.analysis_service import AnalysisService
from vibelytube.services.chat.chat_service import ChatService
from vibelytube.services.chat.context_builder import build_conversation, visible_history
from vibelytube.services.database.mirror import mirror_analysis, mirror_chat
from vibelytube.services.session.session_store import SessionStore

logger = logging.getLogger(__name__)
router = APIRouter(tags=["VibelyTube"])


def _describe(exc: Exception) -> str:
    if isinstance(exc, VibelyError):
        return f"{exc.message}: {exc.details}" if exc.details else exc.message
    return str(exc) or type(exc).__name__


async def _store_analysis(
    store: SessionStore,
    database: Optional[Database],
    session_id: str,
    result: VideoAnalysisResult,
) -> dict:
    await store.append_analysis(session_id, result)
    ANALYSES_TOTAL.labels(source=result.source.value).inc()
    await mirror_analysis(database, result)
    logger.info(f"Analysis completed for session {session_id}: {result.title!r}")
    return success(AnalysisData.from_result(result))


@router.post("/analyze")
async def analyze_video(
    req: AnalyzeRequest,
    store: SessionStore = Depends(get_session_store),
    analysis_service: AnalysisService = Depends(get_analysis_service),
    database: Optional[Database] = Depends(get_database),
):
    """Analyze a YouTube video and store the result in the session."""
    if not req.url or not req.session_id:
        raise ValidationError("Missing required fields: url, sessionId")

    # Extraction runs outside the session lock; only the append is serialized.
    try:
        result = await analysis_service.analyze(req.url)
    except Exception as e:
        FAILURES_TOTAL.labels(kind="extraction").inc()
        logger.error(f"YouTube analysis failed for {req.url}: {_describe(e)}")
        raise ExtractionError("Internal server error during YouTube analysis", _describe(e)) from e

    return await _store_analysis(store, database, req.session_id, result)


@router.post("/upload")
async def analyze_upload(
    file: Optional[UploadFile] = File(None),
    session_id: Optional[str] = Form(None, alias="sessionId"),
    settings: Settings = Depends(get_app_settings),
    store: SessionStore = Depends(get_session_store),
    analysis_service: AnalysisService = Depends(get_analysis_service),
    database: Optional[Database] = Depends(get_database),
):
    """Analyze an uploaded file through the same pipeline contract as /analyze."""
    if file is None or not session_id:
        raise ValidationError("Missing required fields: file, sessionId")

    data = await file.read(settings.upload_max_bytes + 1)
    try:
        result = await analysis_service.analyze_upload(file.filename or "upload", file.content_type or "", data)
    except ValidationError:
        raise
    except Exception as e:
        FAILURES_TOTAL.labels(kind="extraction").inc()
        logger.error(f"File analysis failed for {file.filename}: {_describe(e)}")
        raise ExtractionError("Internal server error during file analysis", _describe(e)) from e
    finally:
        await file.close()

    return await _store_analysis(store, database, session_id, result)


@router.post("/chat")
async def chat(
    req: ChatRequest,
    store: SessionStore = Depends(get_session_store),
    chat_service: ChatService = Depends(get_chat_service),
    database: Optional[Database] = Depends(get_database),
):
    """Send a message and get a persona reply with the analysis as context.

    The whole turn runs under the session lock and is committed only when the
    language model answered, so a failed turn leaves the history untouched.
    """
    if not req.message or not req.session_id:
        raise ValidationError("Missing required fields: message, sessionId")

    session_id = req.session_id
    async with store.lock(session_id):
        session = await store.get_or_create(session_id)
        context = build_conversation(
            session.conversation_history, req.message, req.analysis_id, session.analyses,
        )
        try:
            reply = await chat_service.generate_reply(context.messages)
        except Exception as e:
            FAILURES_TOTAL.labels(kind="generation").inc()
            logger.error(f"Chat failed for session {session_id}: {_describe(e)}")
            raise GenerationError("Internal server error during chat", _describe(e)) from e

        history = [*context.messages, ChatMessage(role=Role.ASSISTANT, content=reply)]
        await store.save_history(session_id, history)

    CHAT_TURNS_TOTAL.labels(with_context=str(context.analysis is not None).lower()).inc()
    await mirror_chat(database, context.analysis, req.message, reply)
    logger.info(f"Chat response generated for session: {session_id}")
    return success(ChatData(response=reply, conversation_history=visible_history(history)))


@router.get("/session/{session_id}")
async def get_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    session = await store.get(session_id)
    if session is None:
        raise NotFoundError("Session not found")
    return success(SessionData(
        session_id=session_id,
        conversation_history=visible_history(session.conversation_history),
    ))


@router.post("/session")
async def create_session(store: SessionStore = Depends(get_session_store)):
    try:
        session = await store.create()
    except Exception as e:
        logger.error(f"Error creating session: {e}")
        raise VibelyError("Gagal membuat session", str(e)) from e
    return success(SessionCreated(session_id=session.session_id))


@router.get("/health")
async def health(settings: Settings = Depends(get_app_settings)):
    return success(HealthData(
        service=settings.service_name,
        status="healthy",
        timestamp=datetime.now(timezone.utc),
    ))

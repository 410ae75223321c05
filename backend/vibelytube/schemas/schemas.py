"""
VibelyTube Schemas — Pydantic v2 models for domain records and the HTTP wire format.

Wire JSON is camelCase (``sessionId``, ``channelTitle``); Python attributes are
snake_case. All response bodies are wrapped in the success/failure envelope.
"""
from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ═══════════════════════════════════════════════════════════════════════
# Domain records
# ═══════════════════════════════════════════════════════════════════════

class Role(str, enum.Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=False)

    role: Role
    content: str

    def to_openai(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class AnalysisSource(str, enum.Enum):
    """Where the transcript of an analysis came from."""
    CAPTIONS = "captions"
    SPEECH_TO_TEXT = "speech_to_text"
    UPLOAD_TEXT = "upload_text"
    UPLOAD_PDF = "upload_pdf"
    NONE = "none"


class VideoAnalysisResult(CamelModel):
    """Normalized metadata + transcript of one analyzed video. Immutable."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    title: str
    description: Optional[str] = None
    channel_title: Optional[str] = None
    duration: Optional[Union[int, str]] = None
    view_count: Optional[int] = Field(None, ge=0)
    like_count: Optional[int] = Field(None, ge=0)
    transcript: Optional[str] = None
    thumbnail_url: Optional[str] = None
    url: str
    video_id: Optional[str] = None
    source: AnalysisSource = AnalysisSource.NONE
    analyzed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Session(BaseModel):
    session_id: str
    conversation_history: List[ChatMessage] = Field(default_factory=list)
    analyses: List[VideoAnalysisResult] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ═══════════════════════════════════════════════════════════════════════
# Requests
# ═══════════════════════════════════════════════════════════════════════
# Required fields are optional at the schema level so that a missing field
# produces the documented 400 envelope rather than a framework 422.

class AnalyzeRequest(CamelModel):
    url: Optional[str] = None
    session_id: Optional[str] = None


class ChatRequest(CamelModel):
    message: Optional[str] = None
    session_id: Optional[str] = None
    analysis_id: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════
# Responses
# ═══════════════════════════════════════════════════════════════════════

class AnalysisData(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    duration: Optional[Union[int, str]] = None
    view_count: Optional[int] = None
    like_count: Optional[int] = None
    channel_title: Optional[str] = None
    transcript: Optional[str] = None
    thumbnail_url: Optional[str] = None
    url: str
    processed_at: datetime

    @classmethod
    def from_result(cls, result: VideoAnalysisResult) -> "AnalysisData":
        return cls(
            id=result.id,
            title=result.title,
            description=result.description,
            duration=result.duration,
            view_count=result.view_count,
            like_count=result.like_count,
            channel_title=result.channel_title,
            transcript=result.transcript,
            thumbnail_url=result.thumbnail_url,
            url=result.url,
            processed_at=datetime.now(timezone.utc),
        )


class ChatData(CamelModel):
    response: str
    conversation_history: List[ChatMessage]


class SessionData(CamelModel):
    session_id: str
    conversation_history: List[ChatMessage] = Field(default_factory=list)


class SessionCreated(CamelModel):
    session_id: str


class HealthData(BaseModel):
    service: str
    status: str
    timestamp: datetime


class StatsData(BaseModel):
    sessions: int
    analyses: int
    database: Optional[Dict[str, int]] = None


def success(data: Any) -> Dict[str, Any]:
    """Wrap ``data`` in the success envelope, serializing models by alias."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", by_alias=True)
    return {"success": True, "data": data}


def failure(error: str, details: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "error": error}
    if details:
        body["details"] = details
    return body

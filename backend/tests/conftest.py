from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Sequence

import pytest
from fastapi.testclient import TestClient

from vibelytube.core.config import Settings
from vibelytube.core.exceptions import GenerationError
from vibelytube.main import create_app
from vibelytube.schemas.schemas import AnalysisSource, ChatMessage, VideoAnalysisResult
from vibelytube.services.analysis.analysis_service import AnalysisService
from vibelytube.services.session.session_store import InMemorySessionStore
from vibelytube.utils.ids import new_analysis_id


class FakeAnalysisService(AnalysisService):
    """Returns canned analyses; upload handling is inherited from the real service."""

    def __init__(self, settings: Settings, titles: Optional[Dict[str, str]] = None):
        super().__init__(settings)
        self.titles = titles or {}
        self.fail_with: Optional[Exception] = None
        self.calls: List[str] = []

    async def analyze(self, url: str) -> VideoAnalysisResult:
        self.calls.append(url)
        if self.fail_with is not None:
            raise self.fail_with
        return VideoAnalysisResult(
            id=new_analysis_id(),
            title=self.titles.get(url, "Intro to Systems"),
            description="A gentle introduction",
            channel_title="Systems Channel",
            duration=754,
            view_count=1200,
            like_count=87,
            transcript=f"transcript of {url}",
            thumbnail_url="https://i.ytimg.com/vi/X/hqdefault.jpg",
            url=url,
            video_id=url.rsplit("=", 1)[-1],
            source=AnalysisSource.CAPTIONS,
        )


class FakeChatService:
    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.fail = False
        self.calls: List[List[ChatMessage]] = []

    async def generate_reply(self, messages: Sequence[ChatMessage]) -> str:
        self.calls.append(list(messages))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise GenerationError("Language model request failed", "upstream exploded")
        return f"Santai bro, jawaban ke-{len(self.calls)}"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        openai_api_key=None,
        youtube_api_key=None,
        database_url=None,
        enable_speech_to_text=False,
        temp_dir=str(tmp_path / "tmp"),
        upload_max_bytes=1024,
    )


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def analysis_service(settings) -> FakeAnalysisService:
    return FakeAnalysisService(settings)


@pytest.fixture
def chat_service() -> FakeChatService:
    return FakeChatService()


@pytest.fixture
def app(settings, store, analysis_service, chat_service):
    return create_app(
        settings,
        session_store=store,
        analysis_service=analysis_service,
        chat_service=chat_service,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c



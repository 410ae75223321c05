"""
VibelyTube Core Settings.

Loaded once from the environment (and ``.env``) before any service is built.
"""
from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8",
        env_prefix="VIBELY_", case_sensitive=False,
    )

    # ── App ──────────────────────────────────────────────────────────────
    app_name: str = "VibelyTube"
    service_name: str = "Intinya aja dongs Backend"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    api_prefix: str = "/api/vibelytube"
    cors_origins: List[str] = ["*"]

    # ── Language model ───────────────────────────────────────────────────
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    chat_temperature: float = 0.7
    chat_max_tokens: int = 2048
    chat_timeout_seconds: float = 60.0

    # ── Video analysis ───────────────────────────────────────────────────
    youtube_api_key: Optional[str] = None
    transcript_languages: List[str] = ["id", "en"]
    analysis_timeout_seconds: float = 300.0
    upload_max_bytes: int = 100 * 1024 * 1024
    upload_allowed_types: List[str] = ["audio/", "video/", "application/pdf", "text/"]

    # ── Speech-to-text (faster-whisper) ──────────────────────────────────
    enable_speech_to_text: bool = True
    whisper_model: str = "small"
    whisper_device: str = "auto"
    whisper_compute_type: str = "int8"
    whisper_beam_size: int = 5

    # ── PostgreSQL (optional relational mirror) ──────────────────────────
    database_url: Optional[str] = None
    database_echo: bool = False

    # ── Celery ───────────────────────────────────────────────────────────
    celery_broker_url: str = "redis://localhost:6379/1"
    celery_result_backend: str = "redis://localhost:6379/2"
    session_cleanup_interval_seconds: int = 3600

    # ── Paths ────────────────────────────────────────────────────────────
    temp_dir: str = "/tmp/vibelytube"

    @property
    def database_enabled(self) -> bool:
        return bool(self.database_url)


@lru_cache()
def get_settings() -> Settings:
    return Settings()

"""
VibelyTube Chat Service — one reply from a hosted language model.

The service takes the full ordered message list (priming message first, user
message last) and returns the assistant text. Upstream failures surface as
``GenerationError``; no retries are attempted here.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI, OpenAIError, RateLimitError

from vibelytube.core.config import Settings
from vibelytube.core.exceptions import GenerationError
from vibelytube.schemas.schemas import ChatMessage

logger = logging.getLogger(__name__)


class ChatService:
    """OpenAI chat-completions backed reply generator."""

    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None):
        self.model = settings.openai_model
        self.temperature = settings.chat_temperature
        self.max_tokens = settings.chat_max_tokens
        self._client = client
        if self._client is None and settings.openai_api_key:
            self._client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                timeout=settings.chat_timeout_seconds,
                max_retries=0,
            )
        if self._client is None:
            logger.warning("No OpenAI API key configured; chat requests will fail")

    async def generate_reply(self, messages: Sequence[ChatMessage]) -> str:
        if self._client is None:
            raise GenerationError("Language model is not configured", "missing OpenAI API key")

        logger.info(f"Requesting reply from {self.model} ({len(messages)} messages)")
        try:
            completion = await self._client.chat.completions.create(
                model=self.model,
                messages=[m.to_openai() for m in messages],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except RateLimitError as e:
            raise GenerationError("Language model rate limit reached", str(e)) from e
        except APITimeoutError as e:
            raise GenerationError("Language model request timed out", str(e)) from e
        except APIConnectionError as e:
            raise GenerationError("Unable to reach the language model", str(e)) from e
        except APIStatusError as e:
            raise GenerationError(f"Language model error: {e.status_code}", str(e)) from e
        except OpenAIError as e:
            raise GenerationError("Language model request failed", str(e)) from e

        if not completion.choices:
            raise GenerationError("Language model returned no choices")
        reply = (completion.choices[0].message.content or "").strip()
        if not reply:
            raise GenerationError("Language model returned an empty reply")
        return reply

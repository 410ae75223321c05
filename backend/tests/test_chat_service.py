import asyncio
from types import SimpleNamespace

import httpx
import pytest
from openai import APIConnectionError, APITimeoutError, RateLimitError

from vibelytube.core.exceptions import GenerationError
from vibelytube.schemas.schemas import ChatMessage, Role
from vibelytube.services.chat.chat_service import ChatService

MESSAGES = [
    ChatMessage(role=Role.SYSTEM, content="Kamu adalah Cecep"),
    ChatMessage(role=Role.USER, content="halo"),
]
REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _client(reply=None, error=None, choices=None):
    calls = []

    async def create(**kwargs):
        calls.append(kwargs)
        if error is not None:
            raise error
        if choices is not None:
            return SimpleNamespace(choices=choices)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])

    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    return client, calls


def test_reply_is_returned_and_messages_forwarded_in_order(settings):
    client, calls = _client(reply="  Santai aja bro  ")
    service = ChatService(settings, client=client)

    assert asyncio.run(service.generate_reply(MESSAGES)) == "Santai aja bro"
    sent = calls[0]
    assert sent["model"] == settings.openai_model
    assert sent["messages"] == [
        {"role": "system", "content": "Kamu adalah Cecep"},
        {"role": "user", "content": "halo"},
    ]
    assert sent["temperature"] == settings.chat_temperature
    assert sent["max_tokens"] == settings.chat_max_tokens


def test_missing_api_key_fails_on_use(settings):
    service = ChatService(settings)
    with pytest.raises(GenerationError, match="not configured"):
        asyncio.run(service.generate_reply(MESSAGES))


@pytest.mark.parametrize("error, message", [
    (APITimeoutError(request=REQUEST), "Language model request timed out"),
    (APIConnectionError(request=REQUEST), "Unable to reach the language model"),
    (
        RateLimitError("slow down", response=httpx.Response(429, request=REQUEST), body=None),
        "Language model rate limit reached",
    ),
])
def test_upstream_errors_become_generation_errors(settings, error, message):
    client, _ = _client(error=error)
    service = ChatService(settings, client=client)
    with pytest.raises(GenerationError) as exc:
        asyncio.run(service.generate_reply(MESSAGES))
    assert exc.value.message == message


def test_empty_reply_is_an_error(settings):
    client, _ = _client(reply="   ")
    service = ChatService(settings, client=client)
    with pytest.raises(GenerationError, match="empty reply"):
        asyncio.run(service.generate_reply(MESSAGES))


def test_no_choices_is_an_error(settings):
    client, _ = _client(choices=[])
    service = ChatService(settings, client=client)
    with pytest.raises(GenerationError, match="no choices"):
        asyncio.run(service.generate_reply(MESSAGES))

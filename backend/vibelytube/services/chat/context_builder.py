"""
VibelyTube Conversation Context — assembles the message list for one chat turn.

Steps:
  1. No analysis id → history + user message, nothing injected.
  2. Resolve the analysis by exact id; if that misses and the session has
     analyses, use the most recently appended one.
  3. Build the Cecep priming message from the analysis (full transcript,
     no truncation).
  4. Put it at the front of the history unless a system message already
     mentions the analysis title.
  5. Append the user message.

The input history is never mutated; the caller commits the returned list only
after the language model has answered.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from vibelytube.schemas.schemas import ChatMessage, Role, VideoAnalysisResult

logger = logging.getLogger(__name__)

PERSONA_INTRO = (
    "Kamu adalah Cecep, chatbot yang santai dan casual. "
    "Kamu sedang membahas video YouTube berikut:"
)
PERSONA_RULES = (
    "PENTING: Gunakan kepribadian Cecep yang santai, casual, dan ramah. "
    "Gunakan bahasa gaul Indonesia dan jawab berdasarkan konten video di atas. "
    "Jangan gunakan fallback response umum. "
    "Selalu merujuk ke isi video yang sudah kamu analisis."
)
UNKNOWN_CHANNEL = "Tidak diketahui"
NO_DESCRIPTION = "Tidak ada deskripsi"
NO_TRANSCRIPT = "Transkrip tidak tersedia."


@dataclass
class ConversationContext:
    messages: List[ChatMessage]
    analysis: Optional[VideoAnalysisResult] = None
    injected: bool = False
    used_fallback: bool = False


def resolve_analysis(
    analysis_id: Optional[str],
    analyses: Sequence[VideoAnalysisResult],
) -> tuple[Optional[VideoAnalysisResult], bool]:
    """Return ``(analysis, used_fallback)`` for ``analysis_id``.

    An unknown id resolves to the latest analysis when one exists. This keeps
    chats working when the client holds a stale id, at the cost of possibly
    answering about a different video than the one the client meant.
    """
    if not analysis_id:
        return None, False
    for analysis in analyses:
        if analysis.id == analysis_id:
            return analysis, False
    if analyses:
        latest = analyses[-1]
        logger.warning(
            f"Analysis {analysis_id} not found; using latest analysis {latest.id} as fallback "
            f"(available={[a.id for a in analyses]})"
        )
        return latest, True
    logger.warning(f"Analysis {analysis_id} not found and session has no analyses")
    return None, False


def build_priming_message(analysis: VideoAnalysisResult) -> ChatMessage:
    transcript_block = (
        f"Transkrip lengkap video:\n{analysis.transcript}"
        if analysis.transcript else NO_TRANSCRIPT
    )
    duration = analysis.duration if analysis.duration is not None else "-"
    content = "\n".join([
        PERSONA_INTRO,
        "",
        f"Judul: {analysis.title}",
        f"Channel: {analysis.channel_title or UNKNOWN_CHANNEL}",
        f"Durasi: {duration}",
        f"Deskripsi: {analysis.description or NO_DESCRIPTION}",
        "",
        transcript_block,
        "",
        PERSONA_RULES,
    ])
    return ChatMessage(role=Role.SYSTEM, content=content)


def has_priming_for(history: Iterable[ChatMessage], title: str) -> bool:
    return any(m.role == Role.SYSTEM and title in m.content for m in history)


def build_conversation(
    history: Sequence[ChatMessage],
    user_message: str,
    analysis_id: Optional[str],
    analyses: Sequence[VideoAnalysisResult],
) -> ConversationContext:
    """Produce the ordered messages to send for this turn (user message last)."""
    messages = list(history)
    analysis, used_fallback = resolve_analysis(analysis_id, analyses)

    injected = False
    if analysis is not None:
        if has_priming_for(messages, analysis.title):
            logger.debug(f"Priming message for {analysis.title!r} already present")
        else:
            messages.insert(0, build_priming_message(analysis))
            injected = True
            logger.info(f"Injected context for analysis {analysis.id} ({analysis.title!r})")

    messages.append(ChatMessage(role=Role.USER, content=user_message))
    return ConversationContext(
        messages=messages,
        analysis=analysis,
        injected=injected,
        used_fallback=used_fallback,
    )


def visible_history(history: Iterable[ChatMessage]) -> List[ChatMessage]:
    """History as shown to clients: system messages removed."""
    return [m for m in history if m.role != Role.SYSTEM]

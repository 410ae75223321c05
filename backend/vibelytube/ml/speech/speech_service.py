"""
VibelyTube Speech Service — transcription with faster-whisper.

Used when a video has no captions and for uploaded audio/video files.

  - Model loaded lazily on first use, then reused
  - VAD filtering to skip silence
  - Degradation ladder: retries with cheaper decoding settings on failure
  - Hallucination filtering (repetition loops, impossible timestamps)
"""
from __future__ import annotations

import logging
import re
import threading
from collections import Counter
from dataclasses import dataclass
from typing import List, Optional

from vibelytube.core.config import Settings

logger = logging.getLogger(__name__)

# Hallucination patterns: repeated phrases Whisper generates on silence/noise
HALLUCINATION_PATTERNS = [
    re.compile(r"(.{10,}?)\1{3,}"),
    re.compile(r"(terima kasih\.?\s*){4,}", re.IGNORECASE),
    re.compile(r"(thank you\.?\s*){4,}", re.IGNORECASE),
    re.compile(r"(please subscribe\.?\s*){3,}", re.IGNORECASE),
    re.compile(r"(\.\.\.){5,}"),
]


@dataclass
class SpeechSegment:
    start_time: float
    end_time: float
    text: str


@dataclass
class TranscriptionResult:
    segments: List[SpeechSegment]
    language: str
    language_confidence: float
    full_text: str


class SpeechService:
    """Whisper-based speech-to-text."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._model = None
        self._model_lock = threading.Lock()

    def _load_model(self):
        from faster_whisper import WhisperModel

        with self._model_lock:
            if self._model is not None:
                return
            logger.info(
                f"Loading Whisper model: {self.settings.whisper_model} on "
                f"{self.settings.whisper_device} ({self.settings.whisper_compute_type})"
            )
            self._model = WhisperModel(
                self.settings.whisper_model,
                device=self.settings.whisper_device,
                compute_type=self.settings.whisper_compute_type,
            )
            logger.info("Whisper model loaded.")

    def transcribe(self, audio_path: str, language: Optional[str] = None) -> TranscriptionResult:
        """Transcribe an audio/video file. Raises the last error if every attempt fails."""
        last_error: Optional[Exception] = None
        for attempt, params in enumerate(self._transcription_params()):
            try:
                return self._run_transcription(audio_path, language, params, attempt)
            except Exception as e:
                last_error = e
                logger.warning(f"Transcription attempt {attempt + 1} failed: {e}")
        logger.error(f"All transcription attempts failed for {audio_path}")
        raise RuntimeError(f"Speech-to-text failed: {last_error}") from last_error

    def _transcription_params(self):
        """Degradation ladder: configured quality → fast fallback."""
        return [
            {"beam_size": self.settings.whisper_beam_size, "best_of": 5},
            {"beam_size": 1, "best_of": 1},
        ]

    def _run_transcription(self, audio_path, language, params, attempt) -> TranscriptionResult:
        if self._model is None:
            self._load_model()

        segments_iter, info = self._model.transcribe(
            audio_path,
            language=language,
            beam_size=params["beam_size"],
            best_of=params["best_of"],
            condition_on_previous_text=True,
            vad_filter=True,
            vad_parameters=dict(min_silence_duration_ms=400, speech_pad_ms=200),
        )
        segments = [
            SpeechSegment(start_time=round(s.start, 2), end_time=round(s.end, 2), text=s.text.strip())
            for s in segments_iter
        ]
        logger.info(
            f"Transcribed (attempt {attempt + 1}): lang={info.language} "
            f"({info.language_probability:.2f}), segments={len(segments)}"
        )

        segments = self.filter_hallucinations(segments)
        full_text = " ".join(s.text for s in segments)
        return TranscriptionResult(
            segments=segments,
            language=info.language,
            language_confidence=info.language_probability,
            full_text=full_text,
        )

    @staticmethod
    def filter_hallucinations(segments: List[SpeechSegment]) -> List[SpeechSegment]:
        """Drop segments that look like Whisper hallucinations."""
        filtered = []
        for seg in segments:
            text = seg.text.strip()
            if not text:
                continue
            if seg.end_time < seg.start_time:
                logger.warning(f"Impossible timestamp at {seg.start_time:.1f}s")
                continue
            if any(p.search(text) for p in HALLUCINATION_PATTERNS):
                logger.warning(f"Hallucination detected at {seg.start_time:.1f}s: '{text[:80]}'")
                continue
            words = text.lower().split()
            if len(words) > 5:
                word, count = Counter(words).most_common(1)[0]
                if count / len(words) > 0.6:
                    logger.warning(f"Repetition hallucination at {seg.start_time:.1f}s: '{word}' is {count}/{len(words)}")
                    continue
            filtered.append(seg)
        return filtered

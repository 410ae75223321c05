"""
VibelyTube Analysis Service — turns a YouTube URL (or an uploaded file) into a
``VideoAnalysisResult``.

Pipeline for URLs:
 1. Parse the video id
 2. Metadata: YouTube Data API v3 when an API key is configured, yt-dlp otherwise
    (and as the fallback when the Data API call fails)
 3. Transcript: YouTube captions (youtube-transcript-api)
 4. No captions → download audio with yt-dlp and run faster-whisper

A missing transcript alone is not an error. The call fails with a single
``ExtractionError`` when the URL is invalid, the pipeline times out, or neither
metadata nor transcript could be obtained. Partial failures are logged only.

All provider clients are blocking; the pipeline runs in a worker thread.
"""
from __future__ import annotations

import asyncio
import io
import logging
import tempfile
from pathlib import Path
from typing import Dict, Optional

import yt_dlp
from googleapiclient.discovery import build
from pypdf import PdfReader
from youtube_transcript_api import NoTranscriptFound, TranscriptsDisabled, VideoUnavailable, YouTubeTranscriptApi

from vibelytube.core.config import Settings
from vibelytube.core.exceptions import ExtractionError, ValidationError
from vibelytube.ml.speech.speech_service import SpeechService
from vibelytube.schemas.schemas import AnalysisSource, VideoAnalysisResult
from vibelytube.utils.ids import new_analysis_id
from vibelytube.utils.youtube import canonical_watch_url, extract_video_id

logger = logging.getLogger(__name__)


def _to_int(value) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class AnalysisService:
    """Extracts metadata + transcript for a video and normalizes the result."""

    def __init__(self, settings: Settings, speech_service: Optional[SpeechService] = None):
        self.settings = settings
        self.speech_service = speech_service or SpeechService(settings)
        self._transcript_api = YouTubeTranscriptApi()

    # ── Public API ───────────────────────────────────────────────────────

    async def analyze(self, url: str) -> VideoAnalysisResult:
        video_id = extract_video_id(url)
        if not video_id:
            raise ExtractionError("Invalid YouTube URL", f"could not find a video id in {url!r}")

        logger.info(f"Starting YouTube analysis: {url} (video_id={video_id})")
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._analyze_sync, url, video_id),
                timeout=self.settings.analysis_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ExtractionError(
                "YouTube analysis timed out",
                f"no result after {self.settings.analysis_timeout_seconds:.0f}s",
            ) from e

    async def analyze_upload(self, filename: str, content_type: str, data: bytes) -> VideoAnalysisResult:
        """Analyze an uploaded audio, video, PDF or text file."""
        content_type = (content_type or "").lower()
        if not any(content_type.startswith(t) for t in self.settings.upload_allowed_types):
            raise ValidationError("File type not supported", content_type or "unknown")
        if len(data) > self.settings.upload_max_bytes:
            raise ValidationError(
                "File too large",
                f"{len(data)} bytes exceeds limit of {self.settings.upload_max_bytes}",
            )
        if not data:
            raise ValidationError("Uploaded file is empty")

        logger.info(f"Starting upload analysis: {filename} ({content_type}, {len(data)} bytes)")
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._analyze_upload_sync, filename, content_type, data),
                timeout=self.settings.analysis_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ExtractionError("File analysis timed out") from e

    # ── URL pipeline ─────────────────────────────────────────────────────

    def _analyze_sync(self, url: str, video_id: str) -> VideoAnalysisResult:
        metadata = self._fetch_metadata(video_id)

        source = AnalysisSource.NONE
        transcript = self._fetch_captions(video_id)
        if transcript:
            source = AnalysisSource.CAPTIONS
        elif self.settings.enable_speech_to_text:
            transcript = self._transcribe_video(video_id)
            if transcript:
                source = AnalysisSource.SPEECH_TO_TEXT

        if metadata is None and not transcript:
            raise ExtractionError(
                "Could not extract video data",
                f"no metadata and no transcript available for {video_id}",
            )

        metadata = metadata or {}
        result = VideoAnalysisResult(
            id=new_analysis_id(),
            title=metadata.get("title") or f"YouTube video {video_id}",
            description=metadata.get("description"),
            channel_title=metadata.get("channel_title"),
            duration=metadata.get("duration"),
            view_count=metadata.get("view_count"),
            like_count=metadata.get("like_count"),
            transcript=transcript or None,
            thumbnail_url=metadata.get("thumbnail_url") or f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg",
            url=url,
            video_id=video_id,
            source=source,
        )
        logger.info(
            f"Analysis complete: {result.title!r} "
            f"(transcript={len(result.transcript or '')} chars, source={source.value})"
        )
        return result

    def _fetch_metadata(self, video_id: str) -> Optional[Dict]:
        if self.settings.youtube_api_key:
            try:
                return self._metadata_from_data_api(video_id)
            except Exception as e:
                logger.warning(f"YouTube Data API failed for {video_id}, falling back to yt-dlp: {e}")
        try:
            return self._metadata_from_ytdlp(video_id)
        except Exception as e:
            logger.warning(f"yt-dlp metadata extraction failed for {video_id}: {e}")
            return None

    def _metadata_from_data_api(self, video_id: str) -> Dict:
        youtube = build("youtube", "v3", developerKey=self.settings.youtube_api_key, cache_discovery=False)
        response = youtube.videos().list(
            part="snippet,contentDetails,statistics", id=video_id,
        ).execute()
        items = response.get("items") or []
        if not items:
            raise LookupError(f"video {video_id} not found")

        item = items[0]
        snippet = item.get("snippet", {})
        stats = item.get("statistics", {})
        thumbs = snippet.get("thumbnails", {})
        thumb = next(
            (thumbs[k]["url"] for k in ("maxres", "high", "medium", "default") if k in thumbs),
            None,
        )
        return {
            "title": snippet.get("title"),
            "description": snippet.get("description"),
            "channel_title": snippet.get("channelTitle"),
            "duration": item.get("contentDetails", {}).get("duration"),
            "view_count": _to_int(stats.get("viewCount")),
            "like_count": _to_int(stats.get("likeCount")),
            "thumbnail_url": thumb,
        }

    def _metadata_from_ytdlp(self, video_id: str) -> Dict:
        ydl_opts = {"quiet": True, "no_warnings": True, "skip_download": True}
        with yt_dlp.YoutubeDL(ydl_opts) as ydl:
            info = ydl.extract_info(canonical_watch_url(video_id), download=False)
        return {
            "title": info.get("title"),
            "description": info.get("description"),
            "channel_title": info.get("channel") or info.get("uploader"),
            "duration": _to_int(info.get("duration")),
            "view_count": _to_int(info.get("view_count")),
            "like_count": _to_int(info.get("like_count")),
            "thumbnail_url": info.get("thumbnail"),
        }

    def _fetch_captions(self, video_id: str) -> Optional[str]:
        try:
            fetched = self._transcript_api.fetch(video_id, languages=tuple(self.settings.transcript_languages))
        except (TranscriptsDisabled, NoTranscriptFound, VideoUnavailable) as e:
            logger.info(f"No captions for {video_id}: {type(e).__name__}")
            return None
        except Exception as e:
            logger.warning(f"Caption fetch failed for {video_id}: {e}")
            return None

        joined = " ".join(s["text"].strip() for s in fetched.to_raw_data() if s.get("text"))
        return " ".join(joined.split()) or None

    def _download_audio(self, video_id: str, destination: Path) -> Path:
        ydl_opts = {
            "format": "bestaudio/best",
            "outtmpl": str(destination / f"{video_id}.%(ext)s"),
            "quiet": True,
            "no_warnings": True,
        }
        with yt_dlp.YoutubeDL(ydl_opts) as ydl:
            ydl.download([canonical_watch_url(video_id)])

        downloaded = list(destination.glob(f"{video_id}.*"))
        if not downloaded:
            raise FileNotFoundError("yt-dlp failed to download audio")
        return downloaded[0]

    def _transcribe_video(self, video_id: str) -> Optional[str]:
        Path(self.settings.temp_dir).mkdir(parents=True, exist_ok=True)
        try:
            with tempfile.TemporaryDirectory(prefix="vibely_", dir=self.settings.temp_dir) as tmpdir:
                audio_path = self._download_audio(video_id, Path(tmpdir))
                result = self.speech_service.transcribe(str(audio_path))
        except Exception as e:
            logger.warning(f"Speech-to-text fallback failed for {video_id}: {e}")
            return None
        return result.full_text or None

    # ── Upload pipeline ──────────────────────────────────────────────────

    def _analyze_upload_sync(self, filename: str, content_type: str, data: bytes) -> VideoAnalysisResult:
        duration = None
        if content_type.startswith("text/"):
            text = data.decode("utf-8", errors="replace")
            source = AnalysisSource.UPLOAD_TEXT
        elif content_type == "application/pdf":
            text = self._extract_pdf_text(data)
            source = AnalysisSource.UPLOAD_PDF
        else:
            text, duration = self._transcribe_upload(filename, data)
            source = AnalysisSource.SPEECH_TO_TEXT

        text = (text or "").strip()
        if not text:
            raise ExtractionError("Could not extract any text from the uploaded file", filename)

        return VideoAnalysisResult(
            id=new_analysis_id(),
            title=filename or "Uploaded file",
            duration=duration,
            transcript=text,
            url=f"upload://{filename}",
            source=source,
        )

    @staticmethod
    def _extract_pdf_text(data: bytes) -> str:
        try:
            reader = PdfReader(io.BytesIO(data))
            return "\n".join(page.extract_text() or "" for page in reader.pages)
        except Exception as e:
            raise ExtractionError("Could not read PDF file", str(e)) from e

    def _transcribe_upload(self, filename: str, data: bytes):
        suffix = Path(filename or "upload").suffix or ".bin"
        Path(self.settings.temp_dir).mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(prefix="vibely_", dir=self.settings.temp_dir) as tmpdir:
            media_path = Path(tmpdir) / f"upload{suffix}"
            media_path.write_bytes(data)
            try:
                result = self.speech_service.transcribe(str(media_path))
            except Exception as e:
                raise ExtractionError("Speech-to-text failed for uploaded file", str(e)) from e
        duration = int(result.segments[-1].end_time) if result.segments else None
        return result.full_text, duration

"""Validation helpers for YouTube URLs and identifiers."""
from __future__ import annotations

import re
from typing import Optional
from urllib.parse import parse_qs, urlparse

_VIDEO_ID_PATTERN = re.compile(r"^[0-9A-Za-z_-]{11}$")
_PATH_ID_PATTERN = re.compile(r"^/(?:embed|shorts|live|v)/([0-9A-Za-z_-]{11})")


def extract_video_id(url: str) -> Optional[str]:
    """Return the 11-character video id in ``url``, or ``None`` if there is none.

    Accepts bare ids, ``watch?v=`` links, ``youtu.be`` short links and
    ``/embed/``, ``/shorts/``, ``/live/`` paths, with or without a scheme.
    """
    stripped = (url or "").strip()
    if not stripped:
        return None
    if _VIDEO_ID_PATTERN.fullmatch(stripped):
        return stripped

    if "://" not in stripped:
        stripped = f"https://{stripped}"
    parsed = urlparse(stripped)
    host = (parsed.hostname or "").lower()

    if host in {"youtu.be", "www.youtu.be"}:
        candidate = parsed.path.lstrip("/").split("/")[0]
        return candidate if _VIDEO_ID_PATTERN.fullmatch(candidate) else None

    if host == "youtube.com" or host.endswith(".youtube.com"):
        if parsed.path == "/watch":
            candidates = parse_qs(parsed.query).get("v", [])
            if candidates and _VIDEO_ID_PATTERN.fullmatch(candidates[0]):
                return candidates[0]
            return None
        match = _PATH_ID_PATTERN.match(parsed.path)
        if match:
            return match.group(1)

    return None


def canonical_watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"

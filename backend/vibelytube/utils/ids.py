"""
Identifier generation for sessions and analyses.

Both ids embed the current unix time in milliseconds. Analysis ids are kept
strictly increasing so two analyses created within the same millisecond still
get distinct ids.
"""
from __future__ import annotations

import secrets
import string
import threading
import time

_BASE36 = string.digits + string.ascii_lowercase
_SUFFIX_LENGTH = 9

_analysis_lock = threading.Lock()
_last_analysis_ms = 0


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def new_session_id() -> str:
    """``session_<unix-ms>_<9 random base36 chars>``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(_SUFFIX_LENGTH))
    return f"session_{_now_ms()}_{suffix}"


def new_analysis_id() -> str:
    """``analysis_<unix-ms>``, unique for the lifetime of the process."""
    global _last_analysis_ms
    with _analysis_lock:
        stamp = max(_now_ms(), _last_analysis_ms + 1)
        _last_analysis_ms = stamp
    return f"analysis_{stamp}"

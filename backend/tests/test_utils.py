import re
import threading

import pytest

from vibelytube.utils.ids import new_analysis_id, new_session_id
from vibelytube.utils.youtube import canonical_watch_url, extract_video_id


@pytest.mark.parametrize("url", [
    "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
    "https://youtube.com/watch?v=dQw4w9WgXcQ&t=42s",
    "youtube.com/watch?v=dQw4w9WgXcQ",
    "https://m.youtube.com/watch?v=dQw4w9WgXcQ",
    "https://youtu.be/dQw4w9WgXcQ",
    "https://youtu.be/dQw4w9WgXcQ?si=abc",
    "https://www.youtube.com/embed/dQw4w9WgXcQ",
    "https://www.youtube.com/shorts/dQw4w9WgXcQ",
    "https://www.youtube.com/live/dQw4w9WgXcQ",
    "dQw4w9WgXcQ",
])
def test_extract_video_id_accepts_known_forms(url):
    assert extract_video_id(url) == "dQw4w9WgXcQ"


@pytest.mark.parametrize("url", [
    "",
    "not a url",
    "https://example.com/watch?v=dQw4w9WgXcQ",
    "https://www.youtube.com/watch?v=short",
    "https://www.youtube.com/channel/UC123",
])
def test_extract_video_id_rejects_others(url):
    assert extract_video_id(url) is None


def test_canonical_watch_url():
    assert canonical_watch_url("dQw4w9WgXcQ") == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


def test_session_id_format():
    assert re.fullmatch(r"session_\d{13}_[0-9a-z]{9}", new_session_id())
    assert new_session_id() != new_session_id()


def test_analysis_ids_strictly_increase_across_threads():
    ids = []
    lock = threading.Lock()

    def worker():
        local = [new_analysis_id() for _ in range(200)]
        with lock:
            ids.extend(local)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(set(ids)) == 800
    assert all(re.fullmatch(r"analysis_\d+", i) for i in ids)

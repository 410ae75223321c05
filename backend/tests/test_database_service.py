import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from vibelytube.core.database import Database
from vibelytube.main import create_app
from vibelytube.services.database.database_service import VideoUpsert, database_service
from vibelytube.workers.tasks import cleanup_expired_sessions

PREFIX = "/api/vibelytube"


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'vibely.db'}"


def run_with_database(url, scenario):
    async def wrapper():
        database = Database(url)
        try:
            await database.init_db()
            return await scenario(database)
        finally:
            await database.close()

    return asyncio.run(wrapper())


def test_users_and_auth_sessions(database_url):
    async def scenario(database):
        now = datetime.now(timezone.utc)
        async with database.session() as db:
            user = await database_service.create_user(db, "cecep@example.com", name="Cecep")
            await database_service.create_auth_session(db, user.id, "expired", now - timedelta(hours=1))
            await database_service.create_auth_session(db, user.id, "live", now + timedelta(hours=1))
            user_id = user.id

        async with database.session() as db:
            found = await database_service.get_user_by_email(db, "cecep@example.com")
            assert found.id == user_id
            assert (await database_service.get_user_by_id(db, user_id)).name == "Cecep"
            assert await database_service.get_auth_session_by_token(db, "live") is not None

        async with database.session() as db:
            removed = await database_service.cleanup_expired_sessions(db, now=now)

        async with database.session() as db:
            remaining = await database_service.get_auth_session_by_token(db, "expired")
            deleted = await database_service.delete_auth_session(db, "live")
            stats = await database_service.get_stats(db)
        return removed, remaining, deleted, stats

    removed, remaining, deleted, stats = run_with_database(database_url, scenario)
    assert removed == 1
    assert remaining is None
    assert deleted is True
    assert stats == {"users": 1, "videos": 0, "chats": 0, "sessions": 0}


def test_video_upsert_and_chats(database_url):
    async def scenario(database):
        async with database.session() as db:
            first = await database_service.create_or_update_video(
                db, VideoUpsert(youtube_id="dQw4w9WgXcQ", title="Old title", url="https://youtu.be/dQw4w9WgXcQ"),
            )
            video_id = first.id

        async with database.session() as db:
            second = await database_service.create_or_update_video(
                db, VideoUpsert(
                    youtube_id="dQw4w9WgXcQ", title="New title",
                    url="https://youtu.be/dQw4w9WgXcQ", duration=213,
                ),
            )
            assert second.id == video_id
            for i in range(25):
                await database_service.create_chat(db, video_id, f"pesan {i}", f"balasan {i}")

        async with database.session() as db:
            video = await database_service.get_video_by_id(db, video_id)
            chats = await database_service.get_video_chats(db, video_id)
            stats = await database_service.get_stats(db)
        return video, chats, stats

    video, chats, stats = run_with_database(database_url, scenario)
    assert video.title == "New title"
    assert video.duration == 213
    assert len(chats) == 20
    assert stats["videos"] == 1
    assert stats["chats"] == 25


def test_celery_cleanup_helper(database_url):
    async def scenario(database):
        async with database.session() as db:
            user = await database_service.create_user(db, "a@example.com")
            await database_service.create_auth_session(
                db, user.id, "old", datetime.now(timezone.utc) - timedelta(days=1),
            )
        return await cleanup_expired_sessions(database_url)

    assert run_with_database(database_url, scenario) == 1


def test_analysis_and_chat_are_mirrored(database_url, settings, store, analysis_service, chat_service):
    async def scenario(database):
        app = create_app(
            settings,
            session_store=store,
            analysis_service=analysis_service,
            chat_service=chat_service,
            database=database,
        )
        async with app.router.lifespan_context(app):
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
                analysis = (await ac.post(f"{PREFIX}/analyze", json={
                    "url": "https://youtube.com/watch?v=dQw4w9WgXcQ", "sessionId": "s1",
                })).json()["data"]
                await ac.post(f"{PREFIX}/chat", json={
                    "message": "halo", "sessionId": "s1", "analysisId": analysis["id"],
                })
                await ac.post(f"{PREFIX}/chat", json={"message": "tanpa konteks", "sessionId": "s1"})
                stats = (await ac.get(f"{PREFIX}/stats")).json()["data"]

        async with database.session() as db:
            video = await database_service.get_video_by_youtube_id(db, "dQw4w9WgXcQ")
            chats = await database_service.get_video_chats(db, video.id)
        return video, chats, stats

    video, chats, stats = run_with_database(database_url, scenario)
    assert video.title == "Intro to Systems"
    assert [c.message for c in chats] == ["halo"]
    assert chats[0].response == "Santai bro, jawaban ke-1"
    assert stats["database"] == {"users": 0, "videos": 1, "chats": 1, "sessions": 0}


def test_mirroring_failure_does_not_fail_the_request(settings, store, analysis_service, chat_service, tmp_path):
    async def scenario():
        # No tables are created, so every mirror write fails.
        database = Database(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        app = create_app(
            settings,
            session_store=store,
            analysis_service=analysis_service,
            chat_service=chat_service,
        )
        try:
            async with app.router.lifespan_context(app):
                app.state.database = database
                transport = httpx.ASGITransport(app=app)
                async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
                    return await ac.post(f"{PREFIX}/analyze", json={
                        "url": "https://youtube.com/watch?v=dQw4w9WgXcQ", "sessionId": "s1",
                    })
        finally:
            await database.close()

    resp = asyncio.run(scenario())
    assert resp.status_code == 200
    assert resp.json()["success"] is True


def test_per_user_videos_and_chats(database_url):
    async def scenario(database):
        async with database.session() as db:
            user = await database_service.create_user(db, "pengguna@example.com")
            video = await database_service.create_or_update_video(db, VideoUpsert(
                youtube_id="abcdefghijk", title="Milik pengguna",
                url="https://youtu.be/abcdefghijk", user_id=user.id,
            ))
            await database_service.create_or_update_video(db, VideoUpsert(
                youtube_id="zyxwvutsrqp", title="Anonim", url="https://youtu.be/zyxwvutsrqp",
            ))
            await database_service.create_chat(db, video.id, "punya user", "ok", user_id=user.id)
            await database_service.create_chat(db, video.id, "anonim", "ok")
            user_id = user.id

        async with database.session() as db:
            videos = await database_service.get_user_videos(db, user_id)
            chats = await database_service.get_user_chats(db, user_id)
        return videos, chats

    videos, chats = run_with_database(database_url, scenario)
    assert [v.title for v in videos] == ["Milik pengguna"]
    assert [c.message for c in chats] == ["punya user"]


def test_upsert_without_owner_keeps_existing_owner(database_url):
    async def scenario(database):
        async with database.session() as db:
            user = await database_service.create_user(db, "pemilik@example.com")
            await database_service.create_or_update_video(db, VideoUpsert(
                youtube_id="abcdefghijk", title="Video pemilik", url="https://youtu.be/abcdefghijk",
                description="deskripsi awal", user_id=user.id,
            ))
            user_id = user.id

        async with database.session() as db:
            await database_service.create_or_update_video(db, VideoUpsert(
                youtube_id="abcdefghijk", title="Judul baru", url="https://youtu.be/abcdefghijk",
            ))

        async with database.session() as db:
            return await database_service.get_user_videos(db, user_id)

    videos = run_with_database(database_url, scenario)
    assert [v.title for v in videos] == ["Judul baru"]
    assert videos[0].description == "deskripsi awal"

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from trackfinder.core.config import Settings
from trackfinder.factory import create_app
from trackfinder.models.track import TrackCreate
from trackfinder.services.container import build_services

ADMIN_KEY = "test-admin-key"
BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'trackfinder.db'}",
        storage_mode="local",
        local_storage_dir=str(tmp_path / "blobs"),
        public_base_url="http://testserver/media",
        admin_api_key=ADMIN_KEY,
        stats_max_retries=500,
        _env_file=None,
    )


@pytest.fixture
def services(settings):
    svc = build_services(settings)
    svc.db.init()
    yield svc
    svc.db.dispose()


@pytest.fixture
def client(settings, services):
    app = create_app(settings, services)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_headers():
    return {"x-admin-key": ADMIN_KEY}


@pytest.fixture
def make_track(services):
    """Insert a track directly through the store. created_at advances per call."""
    counter = {"n": 0}

    def _make(
        title: str = "Song",
        artist: str = "Artist",
        genre: str = "house",
        approved: bool = True,
        created_at: datetime | None = None,
    ):
        counter["n"] += 1
        return services.tracks.insert(
            TrackCreate(
                artist=artist,
                title=f"{title} {counter['n']}",
                genre=genre,
                track_url=f"http://testserver/media/tracks/{counter['n']}.mp3",
                artwork_url="http://testserver/default.png",
                owner_identity="artist@example.com",
                approved=approved,
                audio_key=f"tracks/uploads/{counter['n']}.mp3",
                created_at=created_at or BASE_TIME + timedelta(minutes=counter["n"]),
            )
        )

    return _make

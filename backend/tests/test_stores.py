from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import text

from trackfinder.core.errors import StoreUnavailable, TrackNotFound
from trackfinder.models.track import TrackCreate
from trackfinder.models.winner import WinnerCreate


def test_new_track_has_zeroed_counters(make_track):
    track = make_track()
    assert (track.play_count, track.vote_count, track.average_rating) == (0, 0, 0.0)


def test_update_only_descriptive_fields(services, make_track):
    track = make_track()
    assert services.tracks.update(track.id, {"genre": "techno"}).genre == "techno"
    with pytest.raises(ValueError):
        services.tracks.update(track.id, {"vote_count": 99})
    with pytest.raises(TrackNotFound):
        services.tracks.update("missing", {"genre": "techno"})


def test_delete_removes_votes(services, make_track):
    track = make_track()
    services.ratings.record_vote(track.id, 4)
    deleted = services.tracks.delete(track.id)
    assert deleted.id == track.id
    assert services.tracks.votes(track.id) == []
    with pytest.raises(TrackNotFound):
        services.tracks.read(track.id)


def test_cas_rejects_stale_count(services, make_track):
    track = make_track()
    assert services.tracks.apply_play_if(track.id, 0, 1) is True
    assert services.tracks.apply_play_if(track.id, 0, 1) is False
    assert services.tracks.apply_vote_if(track.id, 1, 2, 5.0, 5) is False
    assert services.tracks.votes(track.id) == []


def test_consume_flips_once(services):
    token = services.tokens.insert("a@x.com", "ABC123")
    assert services.tokens.consume(token.id) is True
    assert services.tokens.consume(token.id) is False
    assert services.tokens.consume("missing") is False


def test_winners_are_append_only_newest_first(services):
    record = WinnerCreate(
        period="2025-05",
        track_id="t1",
        artist="a",
        title="t",
        genre="house",
        artwork_url="u",
        average_rating=8.0,
        vote_count=2,
        play_count=1,
        composite_score=17.0,
    )
    first = services.winners.append(record)
    second = services.winners.append(record.model_copy(update={"period": "2025-06"}))
    assert [w.id for w in services.winners.list()] == [second.id, first.id]
    assert [w.id for w in services.winners.list("2025-05")] == [first.id]


def test_driver_errors_become_store_unavailable(services):
    with pytest.raises(StoreUnavailable) as exc_info:
        with services.db.session() as s:
            s.execute(text("SELECT * FROM no_such_table"))
    assert "no_such_table" not in exc_info.value.detail


def test_timestamps_are_utc_on_insert_and_read(services, make_track):
    inserted = make_track()
    read = services.tracks.read(inserted.id)
    listed = services.tracks.list()[0]
    assert inserted.created_at.tzinfo is not None
    assert inserted.created_at == read.created_at == listed.created_at
    assert read.created_at.utcoffset() == timedelta(0)
    assert inserted.model_dump_json(include={"created_at"}) == read.model_dump_json(include={"created_at"})

    token = services.tokens.insert("a@x.com", "ABC123")
    services.tokens.consume(token.id)
    assert services.tokens.get(token.id).used_at.tzinfo is not None


def test_pending_track_is_hidden_until_published(services):
    track = services.tracks.insert(
        TrackCreate(
            artist="a",
            title="t",
            track_url="u",
            artwork_url="u",
            owner_identity="a@x.com",
            audio_key="tracks/uploads/t.mp3",
            pending=True,
        )
    )
    assert track.pending is True
    with pytest.raises(TrackNotFound):
        services.tracks.read(track.id)
    assert services.tracks.read(track.id, include_pending=True).id == track.id
    assert services.tracks.list(approved_only=False) == []
    assert services.tracks.count(approved_only=False) == 0
    assert services.tracks.apply_play_if(track.id, 0, 1) is False
    assert services.tracks.apply_vote_if(track.id, 0, 1, 5.0, 5) is False
    with pytest.raises(TrackNotFound):
        services.tracks.update(track.id, {"genre": "techno"})

    published = services.tracks.publish(track.id)
    assert published.pending is False
    assert [t.id for t in services.tracks.list()] == [track.id]
    with pytest.raises(TrackNotFound):
        services.tracks.publish(track.id)

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import BASE_TIME
from trackfinder.core.errors import ValidationError


def test_genre_filter_and_pagination(services, make_track):
    for _ in range(5):
        make_track(genre="house")
    make_track(genre="techno")

    first = services.charts.list_charts(genre="house", offset=0, limit=2)
    assert len(first) == 2
    assert all(t.genre == "house" for t in first)

    last = services.charts.list_charts(genre="house", offset=4, limit=2)
    assert len(last) == 1


@pytest.mark.parametrize("genre", [None, "", "all", "ALL"])
def test_all_genres_sentinel(services, make_track, genre):
    make_track(genre="house")
    make_track(genre="techno")
    assert len(services.charts.list_charts(genre=genre)) == 2


def test_genre_match_is_exact(services, make_track):
    make_track(genre="house")
    assert services.charts.list_charts(genre="House") == []


def test_only_approved_tracks_are_listed(services, make_track):
    visible = make_track()
    make_track(approved=False)
    assert [t.id for t in services.charts.list_charts()] == [visible.id]
    assert len(services.charts.list_all()) == 2


def test_ordering_rating_then_newest_then_id(services, make_track):
    older = make_track(created_at=BASE_TIME)
    newer = make_track(created_at=BASE_TIME + timedelta(days=1))
    rated = make_track(created_at=BASE_TIME - timedelta(days=1))
    services.ratings.record_vote(rated.id, 3)

    ids = [t.id for t in services.charts.list_charts()]
    assert ids == [rated.id, newer.id, older.id]


def test_ties_on_rating_and_time_break_by_id(services, make_track):
    a = make_track(created_at=BASE_TIME)
    b = make_track(created_at=BASE_TIME)
    ids = [t.id for t in services.charts.list_charts()]
    assert ids == sorted([a.id, b.id])


def test_pages_cover_the_set_exactly_once(services, make_track):
    created = [make_track(genre="house") for _ in range(11)]
    for i, t in enumerate(created[:6]):
        services.ratings.record_vote(t.id, (i % 3) + 5)

    full = [t.id for t in services.charts.list_charts(limit=50)]
    paged = []
    for offset in range(0, 20, 3):
        paged.extend(t.id for t in services.charts.list_charts(offset=offset, limit=3))

    assert paged == full
    assert len(set(paged)) == len(created)


def test_page_parameter_maps_to_offset(services, make_track):
    for _ in range(5):
        make_track()
    full = services.charts.list_charts(limit=50)
    assert services.charts.list_charts(page=2, limit=2) == full[2:4]


def test_limit_is_clamped(services, make_track):
    for _ in range(3):
        make_track()
    services.charts.max_page_size = 2
    assert len(services.charts.list_charts(limit=1000)) == 2
    assert len(services.charts.list_charts(limit=0)) == 1


def test_offset_past_end_is_empty(services, make_track):
    make_track()
    assert services.charts.list_charts(offset=100) == []


@pytest.mark.parametrize("kwargs", [{"offset": -1}, {"page": 0}, {"page": 2, "offset": 3}])
def test_bad_paging_is_rejected(services, kwargs):
    with pytest.raises(ValidationError):
        services.charts.list_charts(**kwargs)

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Optional

from trackfinder.core.errors import NoEligibleTracks, ValidationError
from trackfinder.db.stores import TrackStore, WinnerStore
from trackfinder.models.track import Track
from trackfinder.models.winner import PERIOD_PATTERN, WinnerCreate, WinnerRecord
from trackfinder.services.ratings import composite_score

logger = logging.getLogger(__name__)

ALL_GENRES = "all"

_PERIOD_RE = re.compile(PERIOD_PATTERN)


def current_period(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m")


def normalize_genre(genre: Optional[str]) -> Optional[str]:
    """
    None, blank and "all" mean no filter. Anything else matches exactly.
    """
    if genre is None:
        return None
    if not genre.strip() or genre.strip().lower() == ALL_GENRES:
        return None
    return genre


def winner_sort_key(track: Track) -> tuple:
    """
    Ascending sort key whose first element is the winner:
    highest composite score, then more votes, then earliest upload, then id.
    """
    # Rounded so float noise in the mean cannot outrank the vote-count tie-break
    return (-round(composite_score(track), 9), -track.vote_count, track.created_at, track.id)


class ChartService:
    """
    Public chart listing and periodic winner selection.

    Ordering policy (charts and admin listing alike): average rating desc,
    then upload time desc, then id asc.
    """

    def __init__(
        self,
        tracks: TrackStore,
        winners: WinnerStore,
        default_page_size: int = 20,
        max_page_size: int = 50,
    ):
        self.tracks = tracks
        self.winners = winners
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def clamp_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            limit = self.default_page_size
        return max(1, min(self.max_page_size, limit))

    def resolve_offset(self, offset: Optional[int], page: Optional[int], limit: int) -> int:
        if page is not None:
            if page < 1:
                raise ValidationError("page must be >= 1")
            if offset:
                raise ValidationError("Use either offset or page, not both")
            return (page - 1) * limit
        offset = offset or 0
        if offset < 0:
            raise ValidationError("offset must be >= 0")
        return offset

    def list_charts(
        self,
        genre: Optional[str] = None,
        offset: Optional[int] = 0,
        limit: Optional[int] = None,
        page: Optional[int] = None,
    ) -> list[Track]:
        limit = self.clamp_limit(limit)
        offset = self.resolve_offset(offset, page, limit)
        return self.tracks.list(genre=normalize_genre(genre), approved_only=True, offset=offset, limit=limit)

    def list_all(self, offset: int = 0, limit: Optional[int] = None, page: Optional[int] = None) -> list[Track]:
        """Admin view: same ordering, unapproved tracks included."""
        limit = self.clamp_limit(limit)
        offset = self.resolve_offset(offset, page, limit)
        return self.tracks.list(approved_only=False, offset=offset, limit=limit)

    def finalize_winner(self, period: Optional[str] = None) -> WinnerRecord:
        """
        Select the approved track with the highest composite score and
        append it to the winner log. Tracks are not modified.

        Every call appends, including repeated calls for the same period.
        """
        period = period or current_period()
        if not _PERIOD_RE.match(period):
            raise ValidationError("period must look like YYYY-MM")

        candidates = self.tracks.list(approved_only=True)
        if not candidates:
            raise NoEligibleTracks()

        winner = min(candidates, key=winner_sort_key)
        score = composite_score(winner)
        record = self.winners.append(
            WinnerCreate(
                period=period,
                track_id=winner.id,
                artist=winner.artist,
                title=winner.title,
                genre=winner.genre,
                artwork_url=winner.artwork_url,
                average_rating=winner.average_rating,
                vote_count=winner.vote_count,
                play_count=winner.play_count,
                composite_score=score,
            )
        )
        logger.info(
            f"Winner finalized: period={period} track_id={winner.id} "
            f"score={score:.3f} candidates={len(candidates)}"
        )
        return record

    def list_winners(self, period: Optional[str] = None) -> list[WinnerRecord]:
        if period is not None and not _PERIOD_RE.match(period):
            raise ValidationError("period must look like YYYY-MM")
        return self.winners.list(period)

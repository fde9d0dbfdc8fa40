from __future__ import annotations

import logging

from trackfinder.core.errors import InvalidScore, StoreUnavailable
from trackfinder.db.stores import TrackStore
from trackfinder.models.track import PlayResult, Track, VoteResult

logger = logging.getLogger(__name__)


def incremental_mean(old_average: float, old_count: int, score: float) -> tuple[int, float]:
    """
    O(1) running-mean update: returns (new_count, new_average).
    """
    new_count = old_count + 1
    return new_count, (old_average * old_count + score) / new_count


def composite_score(track: Track) -> float:
    """
    Winner ranking: rating weighted by vote volume, plus raw plays.
    """
    return track.average_rating * track.vote_count + track.play_count


class RatingAggregator:
    """
    Vote and play statistics, updated with compare-and-swap on the prior
    counter value and retried when another request got there first.
    """

    def __init__(self, tracks: TrackStore, min_score: int = 1, max_score: int = 10, max_retries: int = 20):
        if min_score > max_score:
            raise ValueError("min_score must not exceed max_score")
        self.tracks = tracks
        self.min_score = min_score
        self.max_score = max_score
        self.max_retries = max_retries

    def validate_score(self, score) -> int:
        # bool is an int subclass; True must not count as a score of 1
        if isinstance(score, bool) or not isinstance(score, int):
            raise InvalidScore(f"Score must be an integer between {self.min_score} and {self.max_score}")
        if not self.min_score <= score <= self.max_score:
            raise InvalidScore(f"Score must be between {self.min_score} and {self.max_score}")
        return score

    def record_vote(self, track_id: str, score: int) -> VoteResult:
        score = self.validate_score(score)

        for attempt in range(1, self.max_retries + 1):
            current = self.tracks.read(track_id)
            new_count, new_average = incremental_mean(current.average_rating, current.vote_count, score)
            if self.tracks.apply_vote_if(track_id, current.vote_count, new_count, new_average, score):
                logger.debug(f"Vote recorded: track_id={track_id} score={score} attempt={attempt}")
                return VoteResult(track_id=track_id, vote_count=new_count, average_rating=new_average)
            logger.debug(f"Vote CAS conflict: track_id={track_id} attempt={attempt}")

        logger.warning(f"Vote gave up after {self.max_retries} conflicts: track_id={track_id}")
        raise StoreUnavailable("Too much contention, try again")

    def record_play(self, track_id: str) -> PlayResult:
        for attempt in range(1, self.max_retries + 1):
            current = self.tracks.read(track_id)
            new_count = current.play_count + 1
            if self.tracks.apply_play_if(track_id, current.play_count, new_count):
                return PlayResult(track_id=track_id, play_count=new_count)
            logger.debug(f"Play CAS conflict: track_id={track_id} attempt={attempt}")

        logger.warning(f"Play gave up after {self.max_retries} conflicts: track_id={track_id}")
        raise StoreUnavailable("Too much contention, try again")

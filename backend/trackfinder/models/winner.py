from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from trackfinder.models.common import UTCDateTime

PERIOD_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class WinnerCreate(BaseModel):
    period: str = Field(pattern=PERIOD_PATTERN)
    track_id: str
    artist: str
    title: str
    genre: str
    artwork_url: str
    average_rating: float
    vote_count: int
    play_count: int
    composite_score: float


class WinnerRecord(WinnerCreate):
    """
    Snapshot of the winning track at selection time.
    """
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: UTCDateTime


class FinalizePayload(BaseModel):
    period: Optional[str] = Field(default=None, pattern=PERIOD_PATTERN)

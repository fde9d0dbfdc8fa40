from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from trackfinder.models.common import UTCDateTime


class TrackBase(BaseModel):
    artist: str = Field(min_length=1)
    title: str = Field(min_length=1)
    genre: str = ""
    track_url: str
    preview_url: Optional[str] = None
    artwork_url: str
    allow_download: bool = False


class TrackCreate(TrackBase):
    """
    Insert payload for a freshly uploaded track.
    Counters are not accepted here; they always start at zero.
    """
    owner_identity: str
    approved: bool = True
    pending: bool = False
    audio_key: str
    artwork_key: Optional[str] = None
    preview_key: Optional[str] = None
    created_at: Optional[datetime] = None


class Track(TrackBase):
    """
    Validated track record, built straight from a store row.
    """
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_identity: str
    approved: bool
    pending: bool = False
    audio_key: str
    artwork_key: Optional[str] = None
    preview_key: Optional[str] = None
    play_count: int = Field(ge=0)
    vote_count: int = Field(ge=0)
    average_rating: float = Field(ge=0)
    created_at: UTCDateTime


class TrackPublic(TrackBase):
    """
    Public chart entry: no owner identity, no blob keys.
    """
    id: str
    play_count: int
    vote_count: int
    average_rating: float
    created_at: UTCDateTime

    @classmethod
    def from_track(cls, track: Track) -> "TrackPublic":
        return cls(**track.model_dump(exclude={"owner_identity", "approved", "pending", "audio_key", "artwork_key", "preview_key"}))


class TrackAdmin(TrackPublic):
    owner_identity: str
    approved: bool


class Vote(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    track_id: str
    score: int
    cast_at: UTCDateTime


class VoteRequest(BaseModel):
    track_id: str = Field(min_length=1)
    # Range is checked by the rating aggregator against MIN_SCORE/MAX_SCORE.
    score: int = Field(strict=True)


class VoteResult(BaseModel):
    track_id: str
    vote_count: int
    average_rating: float


class PlayResult(BaseModel):
    track_id: str
    play_count: int


class ApprovePayload(BaseModel):
    approved: bool = True

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from trackfinder.models.common import UTCDateTime


class UploadToken(BaseModel):
    """
    Single-use admission token. Mutated exactly once (used=False -> True).
    """
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_identity: str
    secret: str
    used: bool
    created_at: UTCDateTime
    used_at: Optional[UTCDateTime] = None


class TokenIssueRequest(BaseModel):
    owner_identity: str = Field(min_length=1)


class TokenIssued(BaseModel):
    id: str
    owner_identity: str
    secret: str
    created_at: UTCDateTime

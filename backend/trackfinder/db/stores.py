"""
Store collaborators over the relational tables.

Every method opens its own short transaction and returns validated pydantic
records; ORM rows never leave this module.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, func, select, update

from trackfinder.core.errors import TrackNotFound
from trackfinder.db.session import Database
from trackfinder.db.tables import TrackRow, UploadTokenRow, VoteRow, WinnerRow, utcnow
from trackfinder.models.token import UploadToken
from trackfinder.models.track import Track, TrackCreate, Vote
from trackfinder.models.winner import WinnerCreate, WinnerRecord

logger = logging.getLogger(__name__)

# Descriptive fields an administrator may change; counters go through the CAS methods.
UPDATABLE_TRACK_FIELDS = frozenset(
    {"artist", "title", "genre", "preview_url", "artwork_url", "allow_download", "approved"}
)

# Chart ordering: best rated first, newest first among equals, id for determinism.
CHART_ORDER = (TrackRow.average_rating.desc(), TrackRow.created_at.desc(), TrackRow.id.asc())


def _new_id() -> str:
    return str(uuid.uuid4())


class TokenStore:
    def __init__(self, db: Database):
        self.db = db

    def insert(self, owner_identity: str, secret: str) -> UploadToken:
        with self.db.session() as s:
            row = UploadTokenRow(
                id=_new_id(),
                owner_identity=owner_identity,
                secret=secret,
                used=False,
                created_at=utcnow(),
            )
            s.add(row)
            s.flush()
            return UploadToken.model_validate(row)

    def get(self, token_id: str) -> Optional[UploadToken]:
        with self.db.session() as s:
            row = s.get(UploadTokenRow, token_id)
            return UploadToken.model_validate(row) if row is not None else None

    def lookup(self, owner_identity: str, secret: str) -> Optional[UploadToken]:
        """Exact, case-sensitive match on (identity, secret)."""
        stmt = select(UploadTokenRow).where(
            UploadTokenRow.owner_identity == owner_identity,
            UploadTokenRow.secret == secret,
        )
        with self.db.session() as s:
            row = s.execute(stmt).scalar_one_or_none()
            return UploadToken.model_validate(row) if row is not None else None

    def consume(self, token_id: str) -> bool:
        """
        Atomically flip used=False -> True.
        Returns True only for the single caller whose update matched the row.
        """
        stmt = (
            update(UploadTokenRow)
            .where(UploadTokenRow.id == token_id, UploadTokenRow.used.is_(False))
            .values(used=True, used_at=utcnow())
        )
        with self.db.session() as s:
            result = s.execute(stmt)
            return result.rowcount == 1


class TrackStore:
    def __init__(self, db: Database):
        self.db = db

    def insert(self, record: TrackCreate) -> Track:
        data = record.model_dump(exclude_none=True)
        data.setdefault("created_at", utcnow())
        with self.db.session() as s:
            row = TrackRow(
                id=_new_id(),
                play_count=0,
                vote_count=0,
                average_rating=0.0,
                **data,
            )
            s.add(row)
            s.flush()
            return Track.model_validate(row)

    def _get_live(self, s, track_id: str, include_pending: bool = False) -> TrackRow:
        row = s.get(TrackRow, track_id)
        if row is None or (row.pending and not include_pending):
            raise TrackNotFound(track_id)
        return row

    def read(self, track_id: str, include_pending: bool = False) -> Track:
        with self.db.session() as s:
            return Track.model_validate(self._get_live(s, track_id, include_pending))

    def publish(self, track_id: str) -> Track:
        """Make a pending upload visible. Called once its token is consumed."""
        stmt = (
            update(TrackRow)
            .where(TrackRow.id == track_id, TrackRow.pending.is_(True))
            .values(pending=False)
        )
        with self.db.session() as s:
            if s.execute(stmt).rowcount != 1:
                raise TrackNotFound(track_id)
            return Track.model_validate(s.get(TrackRow, track_id))

    def update(self, track_id: str, fields: dict[str, Any]) -> Track:
        unknown = set(fields) - UPDATABLE_TRACK_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable: {sorted(unknown)}")
        with self.db.session() as s:
            row = self._get_live(s, track_id)
            for k, v in fields.items():
                setattr(row, k, v)
            s.flush()
            return Track.model_validate(row)

    def delete(self, track_id: str) -> Track:
        """Delete the row (and its votes); returns the deleted record. Pending rows included."""
        with self.db.session() as s:
            row = s.get(TrackRow, track_id)
            if row is None:
                raise TrackNotFound(track_id)
            track = Track.model_validate(row)
            s.execute(delete(VoteRow).where(VoteRow.track_id == track_id))
            s.delete(row)
            return track

    def list(
        self,
        genre: Optional[str] = None,
        approved_only: bool = True,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[Track]:
        stmt = select(TrackRow).where(TrackRow.pending.is_(False))
        if approved_only:
            stmt = stmt.where(TrackRow.approved.is_(True))
        if genre is not None:
            stmt = stmt.where(TrackRow.genre == genre)
        stmt = stmt.order_by(*CHART_ORDER).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self.db.session() as s:
            return [Track.model_validate(r) for r in s.execute(stmt).scalars()]

    def count(self, genre: Optional[str] = None, approved_only: bool = True) -> int:
        stmt = select(func.count()).select_from(TrackRow).where(TrackRow.pending.is_(False))
        if approved_only:
            stmt = stmt.where(TrackRow.approved.is_(True))
        if genre is not None:
            stmt = stmt.where(TrackRow.genre == genre)
        with self.db.session() as s:
            return s.execute(stmt).scalar_one()

    # -------------------------
    # Compare-and-swap statistics
    # -------------------------

    def apply_vote_if(
        self,
        track_id: str,
        expected_count: int,
        new_count: int,
        new_average: float,
        score: int,
    ) -> bool:
        """
        Write the new vote statistics only if vote_count still equals
        expected_count, recording the vote in the same transaction.
        The transaction starts with the UPDATE so the row lock is taken first.
        """
        stmt = (
            update(TrackRow)
            .where(
                TrackRow.id == track_id,
                TrackRow.pending.is_(False),
                TrackRow.vote_count == expected_count,
            )
            .values(vote_count=new_count, average_rating=new_average)
        )
        with self.db.session() as s:
            result = s.execute(stmt)
            if result.rowcount != 1:
                return False
            s.add(VoteRow(track_id=track_id, score=score, cast_at=utcnow()))
            return True

    def apply_play_if(self, track_id: str, expected_count: int, new_count: int) -> bool:
        stmt = (
            update(TrackRow)
            .where(
                TrackRow.id == track_id,
                TrackRow.pending.is_(False),
                TrackRow.play_count == expected_count,
            )
            .values(play_count=new_count)
        )
        with self.db.session() as s:
            return s.execute(stmt).rowcount == 1

    def votes(self, track_id: str) -> list[Vote]:
        stmt = select(VoteRow).where(VoteRow.track_id == track_id).order_by(VoteRow.id)
        with self.db.session() as s:
            return [Vote.model_validate(r) for r in s.execute(stmt).scalars()]


class WinnerStore:
    """Append-only log of period winners."""

    def __init__(self, db: Database):
        self.db = db

    def append(self, record: WinnerCreate, created_at: Optional[datetime] = None) -> WinnerRecord:
        with self.db.session() as s:
            row = WinnerRow(**record.model_dump(), created_at=created_at or utcnow())
            s.add(row)
            s.flush()
            return WinnerRecord.model_validate(row)

    def list(self, period: Optional[str] = None) -> list[WinnerRecord]:
        stmt = select(WinnerRow)
        if period is not None:
            stmt = stmt.where(WinnerRow.period == period)
        stmt = stmt.order_by(WinnerRow.created_at.desc(), WinnerRow.id.desc())
        with self.db.session() as s:
            return [WinnerRecord.model_validate(r) for r in s.execute(stmt).scalars()]

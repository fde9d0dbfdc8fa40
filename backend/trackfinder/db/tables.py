"""SQLAlchemy table models for tokens, tracks, votes and winners"""
import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class UploadTokenRow(Base):
    """
    Single-use upload tokens. Rows are never deleted (audit trail).
    """
    __tablename__ = 'upload_tokens'
    __table_args__ = (UniqueConstraint('owner_identity', 'secret', name='uq_token_owner_secret'),)

    id = Column(String(36), primary_key=True)
    owner_identity = Column(String, nullable=False, index=True)
    secret = Column(String, nullable=False)
    used = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    used_at = Column(DateTime(timezone=True), nullable=True)


class TrackRow(Base):
    """
    Uploaded track with its running statistics.
    """
    __tablename__ = 'tracks'

    id = Column(String(36), primary_key=True)
    artist = Column(String, nullable=False)
    title = Column(String, nullable=False)
    genre = Column(String, nullable=False, default='', index=True)
    track_url = Column(String, nullable=False)
    preview_url = Column(String, nullable=True)
    artwork_url = Column(String, nullable=False)
    # Blob keys, needed to release storage on delete
    audio_key = Column(String, nullable=False)
    artwork_key = Column(String, nullable=True)
    preview_key = Column(String, nullable=True)
    owner_identity = Column(String, nullable=False)
    allow_download = Column(Boolean, nullable=False, default=False)
    approved = Column(Boolean, nullable=False, default=True, index=True)
    # True until the upload's token is consumed; pending rows are invisible to every reader
    pending = Column(Boolean, nullable=False, default=False, index=True)
    play_count = Column(Integer, nullable=False, default=0)
    vote_count = Column(Integer, nullable=False, default=0)
    average_rating = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class VoteRow(Base):
    __tablename__ = 'votes'

    id = Column(Integer, primary_key=True, autoincrement=True)
    track_id = Column(String(36), ForeignKey('tracks.id', ondelete='CASCADE'), nullable=False, index=True)
    score = Column(Integer, nullable=False)
    cast_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class WinnerRow(Base):
    """
    Append-only winner log. No foreign key: winners outlive deleted tracks.
    """
    __tablename__ = 'winners'

    id = Column(Integer, primary_key=True, autoincrement=True)
    period = Column(String(7), nullable=False, index=True)
    track_id = Column(String(36), nullable=False)
    artist = Column(String, nullable=False)
    title = Column(String, nullable=False)
    genre = Column(String, nullable=False)
    artwork_url = Column(String, nullable=False)
    average_rating = Column(Float, nullable=False)
    vote_count = Column(Integer, nullable=False)
    play_count = Column(Integer, nullable=False)
    composite_score = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

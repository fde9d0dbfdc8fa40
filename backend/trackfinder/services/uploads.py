from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from trackfinder.core.errors import (
    PartialUploadFailure,
    StoreUnavailable,
    TokenAlreadyUsed,
    TrackFinderError,
    ValidationError,
)
from trackfinder.db.stores import TrackStore
from trackfinder.models.token import UploadToken
from trackfinder.models.track import Track, TrackCreate
from trackfinder.services.admission import AdmissionControl
from trackfinder.services.storage import BlobStore, build_blob_key, guess_content_type

logger = logging.getLogger(__name__)


class UploadState(str, Enum):
    RECEIVED = "received"
    TOKEN_VALIDATED = "token_validated"
    BLOB_STORED = "blob_stored"
    METADATA_PERSISTED = "metadata_persisted"
    TOKEN_CONSUMED = "token_consumed"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class UploadPayload:
    filename: str
    data: bytes
    content_type: Optional[str] = None


@dataclass
class UploadRequest:
    title: str
    artist: str
    genre: str
    owner_identity: str
    secret: str
    audio: Optional[UploadPayload]
    artwork: Optional[UploadPayload] = None
    preview: Optional[UploadPayload] = None
    allow_download: bool = False


@dataclass
class UploadOutcome:
    """Progress of one upload through the state machine."""

    state: UploadState = UploadState.RECEIVED
    history: list[UploadState] = field(default_factory=lambda: [UploadState.RECEIVED])
    track: Optional[Track] = None
    token: Optional[UploadToken] = None
    stored_keys: list[str] = field(default_factory=list)
    error: Optional[TrackFinderError] = None

    def advance(self, state: UploadState) -> None:
        self.state = state
        self.history.append(state)


class UploadService:
    """
    Token-gated upload:
    RECEIVED -> TOKEN_VALIDATED -> BLOB_STORED -> METADATA_PERSISTED -> TOKEN_CONSUMED -> COMPLETE

    Steps run strictly in order; FAILED is reachable from any of them.
    """

    def __init__(
        self,
        admission: AdmissionControl,
        tracks: TrackStore,
        blobs: BlobStore,
        default_artwork_url: str,
        auto_approve: bool = True,
    ):
        self.admission = admission
        self.tracks = tracks
        self.blobs = blobs
        self.default_artwork_url = default_artwork_url
        self.auto_approve = auto_approve

    def finalize(self, req: UploadRequest) -> UploadOutcome:
        outcome = UploadOutcome()
        try:
            self._run(req, outcome)
        except TrackFinderError as e:
            outcome.error = e
            outcome.advance(UploadState.FAILED)
            logger.info(f"Upload failed: state_history={[s.value for s in outcome.history]} error={e.code}")
            raise
        return outcome

    # -------------------------
    # Steps
    # -------------------------

    def _run(self, req: UploadRequest, outcome: UploadOutcome) -> None:
        self._validate(req)

        outcome.token = self.admission.admit(req.owner_identity, req.secret)
        outcome.advance(UploadState.TOKEN_VALIDATED)

        track_url = self._store_audio(req.audio, outcome)
        artwork_key, artwork_url = self._store_optional("artworks", req.artwork, outcome)
        preview_key, preview_url = self._store_optional("previews", req.preview, outcome)
        outcome.advance(UploadState.BLOB_STORED)

        record = TrackCreate(
            artist=req.artist.strip(),
            title=req.title.strip(),
            genre=(req.genre or "").strip(),
            track_url=track_url,
            preview_url=preview_url,
            artwork_url=artwork_url or self.default_artwork_url,
            allow_download=req.allow_download,
            owner_identity=req.owner_identity,
            approved=self.auto_approve,
            pending=True,
            audio_key=outcome.stored_keys[0],
            artwork_key=artwork_key,
            preview_key=preview_key,
        )
        try:
            outcome.track = self.tracks.insert(record)
        except TrackFinderError:
            self._cleanup_blobs(outcome)
            raise
        outcome.advance(UploadState.METADATA_PERSISTED)

        self._consume_token(outcome)
        outcome.advance(UploadState.TOKEN_CONSUMED)

        self._publish(outcome)

        outcome.advance(UploadState.COMPLETE)
        logger.info(f"Upload complete: track_id={outcome.track.id} token_id={outcome.token.id}")

    def _validate(self, req: UploadRequest) -> None:
        missing = [
            name
            for name, value in (
                ("title", req.title),
                ("artist", req.artist),
                ("uploader_email", req.owner_identity),
                ("token", req.secret),
            )
            if not value or not value.strip()
        ]
        if req.audio is None or not req.audio.data:
            missing.append("track")
        if missing:
            raise ValidationError(f"Missing {', '.join(missing)}")

    def _store_audio(self, audio: UploadPayload, outcome: UploadOutcome) -> str:
        key = build_blob_key("tracks", audio.filename)
        url = self.blobs.put(key, audio.data, audio.content_type or guess_content_type(audio.filename))
        outcome.stored_keys.append(key)
        return url

    def _store_optional(
        self, kind: str, upload: Optional[UploadPayload], outcome: UploadOutcome
    ) -> tuple[Optional[str], Optional[str]]:
        """Artwork/preview failures degrade to (None, None) instead of failing the upload."""
        if upload is None or not upload.data:
            return None, None
        key = build_blob_key(kind, upload.filename)
        try:
            url = self.blobs.put(key, upload.data, upload.content_type or guess_content_type(upload.filename))
        except StoreUnavailable:
            logger.warning(f"Optional {kind} blob not stored, continuing without it: key={key}")
            return None, None
        outcome.stored_keys.append(key)
        return key, url

    def _consume_token(self, outcome: UploadOutcome) -> None:
        track, token = outcome.track, outcome.token
        try:
            self.admission.consume(token)
        except TokenAlreadyUsed:
            # Another upload consumed the token first: undo this one.
            try:
                self.tracks.delete(track.id)
            except TrackFinderError as e:
                logger.error(
                    f"Reconcile needed: track_id={track.id} persisted with token_id={token.id} "
                    f"consumed by another upload; removal failed: {e.code}"
                )
                raise PartialUploadFailure(track_id=track.id, token_id=token.id) from e
            self._cleanup_blobs(outcome)
            raise
        except StoreUnavailable as e:
            logger.error(
                f"Reconcile needed: track_id={track.id} persisted but token_id={token.id} "
                f"was not marked used"
            )
            raise PartialUploadFailure(track_id=track.id, token_id=token.id) from e

    def _publish(self, outcome: UploadOutcome) -> None:
        """The row stays pending, hidden from charts and votes, until its token is consumed."""
        track, token = outcome.track, outcome.token
        try:
            outcome.track = self.tracks.publish(track.id)
        except TrackFinderError as e:
            logger.error(
                f"Reconcile needed: track_id={track.id} still pending after token_id={token.id} was consumed"
            )
            raise PartialUploadFailure(track_id=track.id, token_id=token.id) from e

    def _cleanup_blobs(self, outcome: UploadOutcome) -> None:
        """Best effort; failures are logged and never replace the original error."""
        for key in outcome.stored_keys:
            try:
                self.blobs.delete(key)
            except Exception as e:
                logger.warning(f"Blob cleanup failed: key={key} err={e}")

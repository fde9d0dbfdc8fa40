from __future__ import annotations

from typing import Optional


class TrackFinderError(Exception):
    """Base error. `detail` is safe to show to untrusted callers."""

    status_code: int = 500
    code: str = "internal_error"
    default_detail: str = "Internal error"

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(TrackFinderError):
    """Malformed or missing input. Never retried."""

    status_code = 400
    code = "validation_error"
    default_detail = "Invalid request"


class InvalidScore(ValidationError):
    code = "invalid_score"
    default_detail = "Score out of range"


class TokenInvalid(TrackFinderError):
    """No unused token matches the (identity, secret) pair."""

    status_code = 401
    code = "token_invalid"
    default_detail = "Invalid upload token"


class TokenAlreadyUsed(TrackFinderError):
    status_code = 403
    code = "token_already_used"
    default_detail = "Upload token has already been used"


class AdminAuthError(TrackFinderError):
    status_code = 401
    code = "admin_unauthorized"
    default_detail = "Invalid admin key"


class TrackNotFound(TrackFinderError):
    status_code = 404
    code = "track_not_found"
    default_detail = "Track not found"

    def __init__(self, track_id: str) -> None:
        super().__init__()
        self.track_id = track_id


class NoEligibleTracks(TrackFinderError):
    status_code = 404
    code = "no_eligible_tracks"
    default_detail = "No eligible tracks"


class StoreUnavailable(TrackFinderError):
    """Transient backend failure. Safe for the caller to retry the whole request."""

    status_code = 500
    code = "store_unavailable"
    default_detail = "Storage backend unavailable"


class PartialUploadFailure(TrackFinderError):
    """A later upload step failed after an earlier one committed.

    Carries the identities an operator needs to reconcile the records.
    """

    status_code = 500
    code = "partial_upload_failure"
    default_detail = "Upload partially completed; it will be reconciled"

    def __init__(
        self,
        track_id: Optional[str] = None,
        token_id: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(detail)
        self.track_id = track_id
        self.token_id = token_id

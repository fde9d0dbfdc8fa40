from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from trackfinder.core.auth import require_admin
from trackfinder.core.deps import get_services
from trackfinder.models.track import PlayResult, TrackPublic, VoteRequest, VoteResult
from trackfinder.models.winner import FinalizePayload, WinnerRecord
from trackfinder.services.container import Services
from trackfinder.services.uploads import UploadPayload, UploadRequest

router = APIRouter()


def _to_payload(upload: Optional[UploadFile]) -> Optional[UploadPayload]:
    if upload is None:
        return None
    return UploadPayload(
        filename=upload.filename or "upload",
        data=upload.file.read(),
        content_type=upload.content_type,
    )


@router.post("/upload-track")
def upload_track(
    title: str = Form(default=""),
    artist: str = Form(default=""),
    genre: str = Form(default=""),
    uploader_email: str = Form(default=""),
    token: str = Form(default=""),
    allow_download: bool = Form(default=False),
    track: Optional[UploadFile] = File(default=None),
    artwork: Optional[UploadFile] = File(default=None),
    preview: Optional[UploadFile] = File(default=None),
    services: Services = Depends(get_services),
):
    """
    Token-gated upload. The token is spent only once the track is persisted.
    """
    outcome = services.uploads.finalize(
        UploadRequest(
            title=title,
            artist=artist,
            genre=genre,
            owner_identity=uploader_email,
            secret=token,
            allow_download=allow_download,
            audio=_to_payload(track),
            artwork=_to_payload(artwork),
            preview=_to_payload(preview),
        )
    )
    return {
        "success": True,
        "message": "Track uploaded",
        "track": TrackPublic.from_track(outcome.track).model_dump(mode="json"),
    }


@router.get("/tracks", response_model=list[TrackPublic])
def list_tracks(
    genre: Optional[str] = Query(default=None),
    offset: Optional[int] = Query(default=None),
    page: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None),
    services: Services = Depends(get_services),
):
    """
    Public chart: approved tracks, best rated first.
    genre=all (or no genre) disables filtering; limit is capped at MAX_PAGE_SIZE.
    """
    tracks = services.charts.list_charts(genre=genre, offset=offset, limit=limit, page=page)
    return [TrackPublic.from_track(t) for t in tracks]


@router.post("/vote", response_model=VoteResult)
def vote(req: VoteRequest, services: Services = Depends(get_services)):
    return services.ratings.record_vote(req.track_id, req.score)


@router.post("/track-play/{track_id}", response_model=PlayResult)
def track_play(track_id: str, services: Services = Depends(get_services)):
    return services.ratings.record_play(track_id)


@router.get("/winners", response_model=list[WinnerRecord])
def winners(period: Optional[str] = Query(default=None), services: Services = Depends(get_services)):
    return services.charts.list_winners(period)


@router.post("/finalize-winners", response_model=WinnerRecord, dependencies=[Depends(require_admin)])
def finalize_winners(payload: Optional[FinalizePayload] = None, services: Services = Depends(get_services)):
    """
    Admin-only. Appends one winner record per call for the given (or current) month.
    """
    period = payload.period if payload else None
    return services.charts.finalize_winner(period)

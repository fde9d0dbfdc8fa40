from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from trackfinder.core.auth import require_admin
from trackfinder.core.deps import get_services
from trackfinder.models.token import TokenIssued, TokenIssueRequest
from trackfinder.models.track import ApprovePayload, TrackAdmin
from trackfinder.services.container import Services

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/tracks", response_model=list[TrackAdmin])
def list_tracks(
    offset: Optional[int] = Query(default=None),
    page: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None),
    services: Services = Depends(get_services),
):
    """
    All tracks, unapproved included, in chart order.
    """
    tracks = services.charts.list_all(offset=offset, limit=limit, page=page)
    return [TrackAdmin(**t.model_dump()) for t in tracks]


@router.delete("/tracks/{track_id}")
def delete_track(track_id: str, services: Services = Depends(get_services)):
    services.catalog.delete_track(track_id)
    return {"ok": True, "deleted": track_id}


@router.post("/tracks/{track_id}/approve", response_model=TrackAdmin)
def approve_track(track_id: str, payload: ApprovePayload, services: Services = Depends(get_services)):
    track = services.catalog.set_approved(track_id, payload.approved)
    return TrackAdmin(**track.model_dump())


@router.post("/tokens", response_model=TokenIssued, status_code=201)
def issue_token(payload: TokenIssueRequest, services: Services = Depends(get_services)):
    """
    Create a single-use upload token and dispatch it to its owner.
    """
    token = services.admission.issue(payload.owner_identity)
    return TokenIssued(
        id=token.id,
        owner_identity=token.owner_identity,
        secret=token.secret,
        created_at=token.created_at,
    )

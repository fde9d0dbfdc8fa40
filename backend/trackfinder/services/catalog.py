# backend/trackfinder/services/catalog.py
from __future__ import annotations

import logging

from trackfinder.db.stores import TrackStore
from trackfinder.models.track import Track
from trackfinder.services.storage import BlobStore

logger = logging.getLogger(__name__)


class CatalogService:
    """
    Administrative catalog writes:

    - approve / hide a track from the public chart
    - delete a track and release its blobs
    """

    def __init__(self, tracks: TrackStore, blobs: BlobStore):
        self.tracks = tracks
        self.blobs = blobs

    def set_approved(self, track_id: str, approved: bool) -> Track:
        track = self.tracks.update(track_id, {"approved": approved})
        logger.info(f"Track approval changed: track_id={track_id} approved={approved}")
        return track

    def delete_track(self, track_id: str) -> Track:
        """
        Remove the row first, then release audio/artwork/preview blobs.
        A blob that cannot be released is logged for manual cleanup.
        """
        track = self.tracks.delete(track_id)
        for key in (track.audio_key, track.artwork_key, track.preview_key):
            if not key:
                continue
            try:
                self.blobs.delete(key)
            except Exception as e:
                logger.error(f"Orphaned blob after delete: track_id={track_id} key={key} err={e}")
        logger.info(f"Track deleted: track_id={track_id}")
        return track

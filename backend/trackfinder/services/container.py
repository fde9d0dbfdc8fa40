from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from trackfinder.core.config import Settings
from trackfinder.db.session import Database
from trackfinder.db.stores import TokenStore, TrackStore, WinnerStore
from trackfinder.services.admission import AdmissionControl
from trackfinder.services.catalog import CatalogService
from trackfinder.services.charts import ChartService
from trackfinder.services.notify import LogNotifier, Notifier
from trackfinder.services.ratings import RatingAggregator
from trackfinder.services.storage import BlobStore, build_blob_store
from trackfinder.services.uploads import UploadService


@dataclass
class Services:
    """Every component, wired once from one Settings object."""

    settings: Settings
    db: Database
    blobs: BlobStore
    tokens: TokenStore
    tracks: TrackStore
    winners: WinnerStore
    admission: AdmissionControl
    ratings: RatingAggregator
    charts: ChartService
    uploads: UploadService
    catalog: CatalogService


def build_services(
    settings: Settings,
    blobs: Optional[BlobStore] = None,
    notifier: Optional[Notifier] = None,
) -> Services:
    db = Database(settings.database_url)
    blobs = blobs or build_blob_store(settings)

    tokens = TokenStore(db)
    tracks = TrackStore(db)
    winners = WinnerStore(db)

    admission = AdmissionControl(tokens, notifier or LogNotifier())
    ratings = RatingAggregator(
        tracks,
        min_score=settings.min_score,
        max_score=settings.max_score,
        max_retries=settings.stats_max_retries,
    )
    charts = ChartService(
        tracks,
        winners,
        default_page_size=settings.default_page_size,
        max_page_size=settings.max_page_size,
    )
    uploads = UploadService(
        admission,
        tracks,
        blobs,
        default_artwork_url=settings.default_artwork_url,
        auto_approve=settings.auto_approve_uploads,
    )
    catalog = CatalogService(tracks, blobs)

    return Services(
        settings=settings,
        db=db,
        blobs=blobs,
        tokens=tokens,
        tracks=tracks,
        winners=winners,
        admission=admission,
        ratings=ratings,
        charts=charts,
        uploads=uploads,
        catalog=catalog,
    )

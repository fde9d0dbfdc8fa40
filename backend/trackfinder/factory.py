from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from fastapi.staticfiles import StaticFiles

from trackfinder.admin.routes import router as admin_router
from trackfinder.api.routes import router as api_router
from trackfinder.core.config import Settings, get_settings
from trackfinder.core.errors import TrackFinderError
from trackfinder.core.logging import configure_logging
from trackfinder.services.container import Services, build_services

logger = logging.getLogger(__name__)

MEDIA_MOUNT = "/media"


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    """
    Build the API from one explicit Settings object.
    Every component hangs off app.state.services; nothing is module-global.
    """
    settings = settings or get_settings()
    services = services or build_services(settings)
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services.db.init()
        logger.info(f"Track Finder backend ready: env={settings.env} storage={settings.storage_mode}")
        yield
        services.db.dispose()

    app = FastAPI(
        title="Track Finder Charts API",
        version="1.0.0",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(TrackFinderError)
    async def trackfinder_error_handler(request: Request, exc: TrackFinderError):
        return ORJSONResponse(status_code=exc.status_code, content={"error": exc.code, "detail": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        # Field names only; pydantic messages can echo the submitted input.
        fields = [".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()]
        return ORJSONResponse(
            status_code=400,
            content={"error": "validation_error", "detail": "Invalid fields: " + ", ".join(f for f in fields if f)},
        )

    # Local blobs are served by the API itself
    if not settings.r2_required():
        media_dir = Path(settings.local_storage_dir)
        media_dir.mkdir(parents=True, exist_ok=True)
        app.mount(MEDIA_MOUNT, StaticFiles(directory=str(media_dir)), name="media")

    # Routers
    app.include_router(api_router, prefix="/api", tags=["charts"])
    app.include_router(admin_router, prefix="/admin", tags=["admin"])

    @app.get("/")
    def root():
        return {"message": "Track Finder Charts Backend Running"}

    @app.get("/health")
    def health():
        return {"ok": True, "service": "trackfinder-backend"}

    return app

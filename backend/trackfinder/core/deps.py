from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Request

from trackfinder.core.config import Settings

if TYPE_CHECKING:
    from trackfinder.services.container import Services


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_services(request: Request) -> "Services":
    return request.app.state.services

from __future__ import annotations

import secrets

from fastapi import Depends, Header, HTTPException, status

from trackfinder.core.config import Settings
from trackfinder.core.deps import get_app_settings
from trackfinder.core.errors import AdminAuthError


def require_admin(
    x_admin_key: str | None = Header(default=None),
    settings: Settings = Depends(get_app_settings),
) -> bool:
    """
    Static shared-secret gate for administrative endpoints.
    The header must equal ADMIN_API_KEY exactly.
    """
    if not settings.admin_api_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="ADMIN_API_KEY not configured",
        )
    if x_admin_key is None or not secrets.compare_digest(
        x_admin_key.encode("utf-8"), settings.admin_api_key.encode("utf-8")
    ):
        raise AdminAuthError()
    return True

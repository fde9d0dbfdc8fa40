from __future__ import annotations

import logging
from typing import Protocol

from trackfinder.models.token import UploadToken

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Outbound channel that delivers a freshly issued upload token to its owner."""

    def send_upload_token(self, token: UploadToken) -> None:
        ...


class LogNotifier:
    """
    Default channel: records the issuance only. The secret is never logged.
    Swap in an email-backed implementation for production delivery.
    """

    def send_upload_token(self, token: UploadToken) -> None:
        logger.info(f"Upload token issued: token_id={token.id} owner={token.owner_identity}")

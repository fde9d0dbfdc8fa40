from __future__ import annotations

import logging
import secrets

from trackfinder.core.errors import TokenAlreadyUsed, TokenInvalid, ValidationError
from trackfinder.db.stores import TokenStore
from trackfinder.models.token import UploadToken
from trackfinder.services.notify import LogNotifier, Notifier

logger = logging.getLogger(__name__)


class AdmissionControl:
    """
    Gates uploads on single-use tokens.

    admit() only reads. consume() is the single atomic write that decides
    which of several racing uploads owns the token; the store's conditional
    update serializes them, so no in-process lock is involved.
    """

    def __init__(self, tokens: TokenStore, notifier: Notifier | None = None):
        self.tokens = tokens
        self.notifier = notifier or LogNotifier()

    def admit(self, owner_identity: str, secret: str) -> UploadToken:
        if not owner_identity or not secret:
            raise TokenInvalid()

        token = self.tokens.lookup(owner_identity, secret)
        if token is None:
            logger.info(f"Admission denied: no token for owner={owner_identity}")
            raise TokenInvalid()
        if token.used:
            logger.info(f"Admission denied: token_id={token.id} already used")
            raise TokenAlreadyUsed()
        return token

    def consume(self, token: UploadToken) -> None:
        if not self.tokens.consume(token.id):
            logger.warning(f"Token consumption lost race: token_id={token.id}")
            raise TokenAlreadyUsed()
        logger.info(f"Token consumed: token_id={token.id}")

    def issue(self, owner_identity: str) -> UploadToken:
        """
        Administrative: create a fresh token and hand it to the notifier.
        """
        owner_identity = owner_identity.strip()
        if not owner_identity:
            raise ValidationError("owner_identity is required")

        token = self.tokens.insert(owner_identity, secrets.token_urlsafe(16))
        self.notifier.send_upload_token(token)
        return token

from __future__ import annotations

import logging

from models.token_store import RefreshTokenStore

logger = logging.getLogger(__name__)


class RevocationService:
    """Cascade revocation over a whole family (or every family of a user)."""

    def __init__(self, store: RefreshTokenStore):
        self.store = store

    def revoke_family(self, family_id: str, reason: str = "security") -> int:
        count = self.store.revoke_family(family_id)
        logger.warning("revoked refresh token family %s (%s): %d record(s)", family_id, reason, count)
        return count

    def revoke_user(self, user_id: str) -> int:
        """Sign out everywhere."""
        count = self.store.revoke_user(user_id)
        logger.info("revoked all refresh tokens of user %s: %d record(s)", user_id, count)
        return count

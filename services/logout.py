from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from models.errors import StorageUnavailable
from models.token_store import RefreshTokenStore
from utils.security import TokenCodec, TokenDecodeError

logger = logging.getLogger(__name__)


class LogoutHandler:
    """
    Retires exactly the presented refresh token. Siblings in the same family
    keep working; only rotation violations widen the blast radius.
    Never raises: a logout always looks successful to the client.
    """

    def __init__(self, refresh_codec: TokenCodec, store: RefreshTokenStore):
        self.refresh_codec = refresh_codec
        self.store = store

    def logout(self, raw_token: Optional[str] = None) -> None:
        if not raw_token:
            return

        try:
            # expired tokens may still log out, as long as the signature holds
            decoded = self.refresh_codec.decode(raw_token, verify_exp=False)
        except TokenDecodeError as exc:
            logger.warning("logout: refresh token could not be verified: %s", exc)
            return

        jti = decoded.get("jti")
        if not jti:
            logger.warning("logout: verified refresh token carries no jti")
            return

        try:
            count = self.store.revoke_token(jti)
        except (StorageUnavailable, SQLAlchemyError) as exc:
            logger.error("logout: could not revoke jti=%s: %s", jti, exc)
            return
        if not count:
            logger.info("logout: no record for jti=%s", jti)

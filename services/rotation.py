"""
Refresh token rotation with reuse detection.

A record moves ISSUED -> USED (handed off to exactly one successor) or
ISSUED/USED -> REVOKED. Any anomaly on a refresh attempt revokes the whole
family: every generation descended from the same login.

rotate() steps:
1. verify signature/expiry; failure -> InvalidToken, store untouched
2. require sub/jti/fam; missing -> MalformedToken, store untouched
3. load the record; missing/revoked/expired/wrong owner -> TokenInvalidated,
   already used or fingerprint mismatch -> TokenReuseDetected (all revoke the family)
4. conditional used=False -> True together with the successor insert;
   losing that race -> TokenReuseDetected, family revoked
5. return the new access token and the successor refresh token
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, NoReturn

from models.token_store import RefreshTokenStore, RotationResult
from services.errors import InvalidToken, MalformedToken, TokenInvalidated, TokenReuseDetected
from services.issuer import TokenIssuer
from services.revocation import RevocationService
from utils.security import TokenDecodeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    family_id: str
    jti: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "family_id": self.family_id,
            "jti": self.jti,
        }


class RotationProtocol:
    def __init__(self, issuer: TokenIssuer, store: RefreshTokenStore, revocation: RevocationService):
        self.issuer = issuer
        self.store = store
        self.revocation = revocation

    def _violation(self, family_id: str, jti: str, reason: str, reuse: bool = False) -> NoReturn:
        logger.warning("refresh token violation jti=%s family=%s: %s", jti, family_id, reason)
        self.revocation.revoke_family(family_id, reason=reason)
        if reuse:
            raise TokenReuseDetected("Refresh token reuse detected", family_id=family_id)
        raise TokenInvalidated("Refresh token invalidated", family_id=family_id)

    def rotate(self, raw_token: str) -> TokenPair:
        if not raw_token:
            raise InvalidToken("Missing refresh token")

        try:
            decoded = self.issuer.refresh_codec.decode(raw_token)
        except TokenDecodeError as exc:
            raise InvalidToken("Invalid refresh token", detail={"reason": str(exc)}) from exc

        user_id = decoded.get("sub")
        jti = decoded.get("jti")
        family_id = decoded.get("fam")
        claims = decoded.get("claims") or {}
        if not user_id or not jti or not family_id:
            raise MalformedToken("Malformed refresh token")

        record = self.store.get_by_jti(jti)
        if record is None:
            self._violation(family_id, jti, "unknown jti")
        if record.revoked:
            self._violation(family_id, jti, "revoked")
        if record.used:
            self._violation(family_id, jti, "already used", reuse=True)
        if record.user_id != str(user_id) or record.family_id != family_id:
            self._violation(family_id, jti, "owner mismatch")
        if record.is_expired(self.issuer.clock()):
            self._violation(family_id, jti, "expired record")

        if not self.issuer.hasher.verify(raw_token, record.fingerprint_hash):
            self._violation(family_id, jti, "fingerprint mismatch", reuse=True)

        successor = self.issuer.mint_refresh_token(user_id, claims, family_id)
        result = self.store.consume_and_replace(jti, successor.record)
        if result is RotationResult.LOST_RACE:
            self._violation(family_id, jti, "concurrent use", reuse=True)

        logger.debug("rotated refresh token jti=%s -> %s family=%s", jti, successor.jti, family_id)
        return TokenPair(
            access_token=self.issuer.issue_access_token(user_id, claims),
            refresh_token=successor.raw,
            family_id=family_id,
            jti=successor.jti,
        )

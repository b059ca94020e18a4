"""
TokenIssuer: mints access tokens (stateless) and refresh tokens (persisted).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

from models.refresh_token import RefreshToken
from models.token_store import RefreshTokenStore
from services.settings import TokenSettings
from utils.security import (
    Clock,
    FingerprintHasher,
    TokenCodec,
    generate_family_id,
    generate_jti,
    utcnow,
)


@dataclass(frozen=True)
class MintedRefreshToken:
    raw: str
    record: RefreshToken

    @property
    def jti(self) -> str:
        return self.record.jti


class TokenIssuer:
    def __init__(
        self,
        settings: TokenSettings,
        store: RefreshTokenStore,
        hasher: Optional[FingerprintHasher] = None,
        clock: Optional[Clock] = None,
    ):
        self.settings = settings
        self.store = store
        self.clock = clock or utcnow
        self.access_codec = TokenCodec(
            settings.access_secret, "access", settings.algorithm, settings.issuer, self.clock
        )
        self.refresh_codec = TokenCodec(
            settings.refresh_secret, "refresh", settings.algorithm, settings.issuer, self.clock
        )
        self.hasher = hasher or FingerprintHasher(
            scheme=settings.fingerprint_scheme,
            key=settings.refresh_secret,
            time_cost=settings.argon2_time_cost,
            memory_cost=settings.argon2_memory_cost,
        )

    @staticmethod
    def new_family_id() -> str:
        return generate_family_id()

    def issue_access_token(self, user_id: str, claims: Dict[str, Any]) -> str:
        return self.access_codec.encode(user_id, claims, self.settings.access_ttl_seconds)

    def mint_refresh_token(self, user_id: str, claims: Dict[str, Any], family_id: str) -> MintedRefreshToken:
        """Sign a refresh token and build its record without writing it."""
        jti = generate_jti()
        ttl = self.settings.refresh_ttl_seconds
        now = self.clock()
        raw = self.refresh_codec.encode(user_id, claims, ttl, jti=jti, fam=family_id)
        record = RefreshToken(
            user_id=str(user_id),
            family_id=family_id,
            jti=jti,
            fingerprint_hash=self.hasher.hash(raw),
            used=False,
            revoked=False,
            expires_at=now + timedelta(seconds=ttl),
            created_at=now,
            updated_at=now,
        )
        return MintedRefreshToken(raw=raw, record=record)

    def issue_refresh_token(self, user_id: str, claims: Dict[str, Any], family_id: str) -> Tuple[str, str]:
        minted = self.mint_refresh_token(user_id, claims, family_id)
        self.store.add(minted.record)
        return minted.raw, minted.jti

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

DEFAULT_ACCESS_TTL_SECONDS = 900
DEFAULT_REFRESH_TTL_SECONDS = 60 * 60 * 24 * 30


@dataclass(frozen=True)
class TokenSettings:
    """Secrets and lifetimes handed to the issuer, rotation protocol and logout handler."""

    access_secret: str
    refresh_secret: str
    access_ttl_seconds: int = DEFAULT_ACCESS_TTL_SECONDS
    refresh_ttl_seconds: int = DEFAULT_REFRESH_TTL_SECONDS
    algorithm: str = "HS256"
    issuer: str = "session-rotation-api"
    fingerprint_scheme: str = "argon2"
    argon2_time_cost: int = 2
    argon2_memory_cost: int = 19456

    def __post_init__(self):
        if not self.access_secret or not self.refresh_secret:
            raise ValueError("Both access and refresh signing secrets are required")
        if self.access_secret == self.refresh_secret:
            raise ValueError("Access and refresh tokens must use different signing secrets")
        if self.access_ttl_seconds <= 0 or self.refresh_ttl_seconds <= 0:
            raise ValueError("Token lifetimes must be positive")

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "TokenSettings":
        """Build from a Flask config (or any mapping using the same keys)."""
        return cls(
            access_secret=config.get("JWT_ACCESS_SECRET") or "",
            refresh_secret=config.get("JWT_REFRESH_SECRET") or "",
            access_ttl_seconds=int(config.get("ACCESS_TOKEN_TTL_SECONDS", DEFAULT_ACCESS_TTL_SECONDS)),
            refresh_ttl_seconds=int(config.get("REFRESH_TOKEN_TTL_SECONDS", DEFAULT_REFRESH_TTL_SECONDS)),
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            issuer=config.get("JWT_ISSUER", "session-rotation-api"),
            fingerprint_scheme=config.get("FINGERPRINT_SCHEME", "argon2"),
            argon2_time_cost=int(config.get("FINGERPRINT_ARGON2_TIME_COST", 2)),
            argon2_memory_cost=int(config.get("FINGERPRINT_ARGON2_MEMORY_COST", 19456)),
        )

"""
RefreshToken model: one row per issued refresh token generation.
Fields:
- jti (unique) - identifier of this generation
- user_id (String(36)) - owning principal
- family_id (String(36)) - rotation lineage started by one login/registration
- fingerprint_hash - slow salted hash of the raw token; the raw value is never stored
- used / revoked (bool) - terminal flags, only ever flipped to True
- expires_at - absolute expiry (UTC), independent of the flags
- created_at (from BaseModel)
"""
from datetime import datetime
from enum import Enum

from sqlalchemy import Column, String, Boolean, DateTime, Index
from sqlalchemy.orm import validates

from models.base_model import BaseModel, Base, as_utc


class TokenState(str, Enum):
    ISSUED = "ISSUED"
    USED = "USED"
    REVOKED = "REVOKED"


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    # No FK to users: the store does not depend on how principals are looked up
    user_id = Column(String(36), nullable=False)
    family_id = Column(String(36), nullable=False)
    jti = Column(String(64), nullable=False)
    fingerprint_hash = Column(String(255), nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    revoked = Column(Boolean, default=False, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_refresh_jti_unique", "jti", unique=True),
        Index("idx_refresh_family", "family_id"),
        Index("idx_refresh_user", "user_id"),
    )

    @validates("used", "revoked")
    def _terminal_flag(self, key, value):
        if getattr(self, key) and not value:
            raise ValueError(f"{key} is terminal and cannot be reset")
        return value

    @property
    def state(self) -> TokenState:
        if self.revoked:
            return TokenState.REVOKED
        if self.used:
            return TokenState.USED
        return TokenState.ISSUED

    def expires_at_utc(self) -> datetime:
        return as_utc(self.expires_at)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at_utc() <= now

    def __repr__(self):
        return f"<RefreshToken jti={self.jti} family={self.family_id} state={self.state.value}>"

"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT creation/verification via PyJWT (TokenCodec)
- Refresh token fingerprints (FingerprintHasher)
- JTI / family identifier generation
"""
from __future__ import annotations

import hashlib
import hmac
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

ph = PasswordHasher()

Clock = Callable[[], datetime]


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerifyMismatchError, InvalidHashError):
        return False


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def generate_family_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenDecodeError(Exception):
    """Signature, structure or type check failed; the payload must not be trusted."""


class TokenExpired(TokenDecodeError):
    pass


class TokenCodec:
    """
    Signs and verifies one kind of token ("access" or "refresh").
    Each kind gets its own codec and its own secret.
    """

    def __init__(
        self,
        secret: str,
        token_type: str,
        algorithm: str = "HS256",
        issuer: str = "session-rotation-api",
        clock: Optional[Clock] = None,
    ):
        self._secret = secret
        self.token_type = token_type
        self._algorithm = algorithm
        self._issuer = issuer
        self._clock = clock or utcnow

    def encode(self, subject: str, claims: Dict[str, Any], ttl_seconds: int, **extra: Any) -> str:
        now = self._clock()
        payload = {
            "iss": self._issuer,
            "sub": str(subject),
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=ttl_seconds)).timestamp()),
            "type": self.token_type,
            "claims": dict(claims or {}),
        }
        payload.update(extra)
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode(self, token: str, verify_exp: bool = True) -> Dict[str, Any]:
        """
        Decode and validate a JWT. Raises TokenExpired / TokenDecodeError.
        verify_exp=False still checks the signature.
        """
        try:
            decoded = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options={"verify_exp": verify_exp, "require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpired("Token expired") from exc
        except jwt.InvalidTokenError as exc:
            raise TokenDecodeError(f"Invalid token: {exc}") from exc

        if decoded.get("type") != self.token_type:
            raise TokenDecodeError("Wrong token type")
        return decoded


class FingerprintHasher:
    """
    Fingerprint of a raw refresh token.

    "argon2": salted Argon2 over the SHA-256 hex digest of the token (slow, default).
    "hmac":   HMAC-SHA256 keyed with the refresh secret, compared in constant time.
    """

    SCHEMES = ("argon2", "hmac")

    def __init__(self, scheme: str = "argon2", key: str = "", time_cost: int = 2, memory_cost: int = 19456):
        if scheme not in self.SCHEMES:
            raise ValueError(f"Unknown fingerprint scheme: {scheme}")
        if scheme == "hmac" and not key:
            raise ValueError("hmac fingerprints need a key")
        self.scheme = scheme
        self._key = key.encode("utf-8")
        self._ph = PasswordHasher(time_cost=time_cost, memory_cost=memory_cost, parallelism=1)

    @staticmethod
    def _digest(raw_token: str) -> str:
        return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()

    def hash(self, raw_token: str) -> str:
        if self.scheme == "hmac":
            return hmac.new(self._key, raw_token.encode("utf-8"), hashlib.sha256).hexdigest()
        return self._ph.hash(self._digest(raw_token))

    def verify(self, raw_token: str, fingerprint_hash: str) -> bool:
        if self.scheme == "hmac":
            return hmac.compare_digest(self.hash(raw_token), fingerprint_hash)
        try:
            return self._ph.verify(fingerprint_hash, self._digest(raw_token))
        except (VerificationError, InvalidHashError):
            return False

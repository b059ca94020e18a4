from __future__ import annotations

from typing import Optional

from models.errors import StorageUnavailable


class AuthError(Exception):
    """Expected authentication outcome; the client has to re-authenticate.

    Carries the HTTP status and the stable error code used in the error envelope.
    """

    status_code: int = 401
    error_code: str = "UNAUTHORIZED"

    def __init__(self, message: str, *, detail: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class InvalidCredentials(AuthError):
    """Login with an unknown email or a wrong password."""
    error_code = "INVALID_CREDENTIALS"


class InvalidToken(AuthError):
    """Signature, structure or expiry check failed. No store access happened."""
    error_code = "INVALID_TOKEN"


class MalformedToken(AuthError):
    """Signature verified but required claims are missing. No store access happened."""
    error_code = "MALFORMED_TOKEN"


class TokenInvalidated(AuthError):
    """The stored record rejected the token; its family has been revoked."""
    status_code = 403
    error_code = "TOKEN_INVALIDATED"

    def __init__(self, message: str, *, family_id: Optional[str] = None, detail: Optional[dict] = None) -> None:
        super().__init__(message, detail=detail)
        self.family_id = family_id


class TokenReuseDetected(TokenInvalidated):
    """Fingerprint mismatch or a second presentation of one token; family revoked."""
    error_code = "TOKEN_REUSE_DETECTED"


__all__ = [
    "AuthError",
    "InvalidCredentials",
    "InvalidToken",
    "MalformedToken",
    "TokenInvalidated",
    "TokenReuseDetected",
    "StorageUnavailable",
]

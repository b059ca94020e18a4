"""
Route guards backed by access tokens.

`jwt_required` only ever accepts access tokens: refresh tokens are signed
with a different secret and carry type "refresh", so they fail decoding.
"""
from __future__ import annotations

from functools import wraps
from typing import Iterable

from flask import request, g, abort, current_app

from models import storage
from models.user import User
from services.errors import InvalidToken
from utils.security import TokenDecodeError, TokenExpired


def _bearer_token() -> str:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme != "Bearer" or not token.strip():
        abort(401, description="Missing or invalid Authorization header")
    return token.strip()


def jwt_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                decoded = current_app.extensions["auth_service"].decode_access_token(_bearer_token())
            except TokenExpired:
                raise InvalidToken("Access token expired", detail={"reason": "expired"})
            except TokenDecodeError as e:
                raise InvalidToken("Invalid access token", detail={"reason": str(e)})

            user = storage.get(User, decoded.get("sub"))
            if user is None:
                abort(401, description="User not found")
            g.current_user = user
            g.current_user_roles = set((decoded.get("claims") or {}).get("roles") or user.roles or [])
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: Iterable[str]):
    """403 unless the access token grants at least one of `required_roles`."""
    required = set(required_roles)

    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            if not g.current_user_roles & required:
                abort(403, description="Insufficient role")
            return fn(*args, **kwargs)

        return wrapper

    return decorator

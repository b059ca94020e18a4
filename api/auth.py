"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- POST /auth/logout-all
- GET  /auth/me
- GET  /auth/families/<family_id>          (admin only)
- POST /auth/families/<family_id>/revoke   (admin only)

The implementation:
- Uses argon2 for password hashing (via utils.security)
- Issues short-lived access tokens and longer-lived refresh tokens (JWTs, separate secrets)
- Refresh tokens are single use: every refresh rotates to a new generation in the same
  family, and any reuse or anomaly revokes the whole family
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g, abort, current_app
from marshmallow import ValidationError

from models import storage
from models.user import User
from models.schemas.user import UserCreateSchema, UserOutSchema, UserLoginSchema
from models.schemas.token import RefreshRequestSchema, TokenPairOutSchema, TokenRecordOutSchema
from services.auth_service import AuthService
from services.errors import InvalidCredentials

from utils.decorators import jwt_required, roles_required

REFRESH_COOKIE = "refresh_token"

bp = Blueprint("auth", __name__)

user_create_schema = UserCreateSchema()
user_out_schema = UserOutSchema()
user_login_schema = UserLoginSchema()
refresh_request_schema = RefreshRequestSchema()
token_pair_out_schema = TokenPairOutSchema()
token_records_out_schema = TokenRecordOutSchema(many=True)


def _auth_service() -> AuthService:
    return current_app.extensions["auth_service"]


def _token_payload(tokens: dict) -> dict:
    tokens = dict(tokens, expires_in=_auth_service().settings.access_ttl_seconds)
    return token_pair_out_schema.dump(tokens)


def _presented_refresh_token(lenient: bool = False) -> str | None:
    """Body first, then the refresh_token cookie.

    With `lenient`, a body that does not validate counts as carrying no token.
    """
    try:
        payload = refresh_request_schema.load(request.get_json(silent=True) or {})
    except ValidationError:
        if not lenient:
            raise
        payload = {}
    return payload.get("refresh_token") or request.cookies.get(REFRESH_COOKIE)


@bp.post("/register")
def register():
    """
    Register a new user and start a refresh token family.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
            password: { type: string }
            f_name: { type: string }
            l_name: { type: string }
    responses:
      201:
        description: Created (returns user and tokens)
      409:
        description: Email already registered
      422:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    data = user_create_schema.load(payload)

    if User.find_by_email(storage.get_session(), data["email"]):
        abort(409, description="Email already registered")

    user = User(
        email=data["email"],
        password=data["password"],
        f_name=data.get("f_name"),
        l_name=data.get("l_name"),
    )
    user.save()

    tokens = _auth_service().register(user.id, user.token_claims())
    return jsonify(
        {
            "data": user_out_schema.dump(user),
            **_token_payload(tokens),
        }
    ), 201


@bp.post("/login")
def login():
    """
    Login: return access_token and refresh_token (new family)
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Invalid credentials
    """
    payload = user_login_schema.load(request.get_json(silent=True) or {})

    user = User.find_by_email(storage.get_session(), payload["email"])
    if not user or not user.check_password(payload["password"]):
        raise InvalidCredentials("Invalid credentials")

    tokens = _auth_service().login(user.id, user.token_claims())
    return jsonify(_token_payload(tokens)), 200


@bp.post("/refresh")
def refresh():
    """
    Exchange a refresh token for a new access/refresh pair (rotation).
    A refresh token works once; presenting it again revokes its whole family.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: OK (returns the next generation)
      401:
        description: Invalid or malformed refresh token
      403:
        description: Refresh token invalidated or reused; family revoked
      503:
        description: Token store unavailable
    """
    token = _presented_refresh_token()
    if not token:
        abort(422, description="refresh_token is required")

    tokens = _auth_service().refresh(token)
    return jsonify(_token_payload(tokens)), 200


@bp.post("/logout")
def logout():
    """
    Logout: retires the presented refresh token only. Always succeeds.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      204:
        description: ""
    """
    _auth_service().logout(_presented_refresh_token(lenient=True))
    return ("", 204)


@bp.post("/logout-all")
@jwt_required()
def logout_all():
    """
    Sign out everywhere: revokes every refresh token of the current user.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK (number of revoked records)
      401:
        description: Unauthorized
    """
    revoked = _auth_service().sign_out_everywhere(g.current_user.id)
    return jsonify({"revoked": revoked}), 200


@bp.get("/me")
@jwt_required()
def me():
    """
    Get current user info.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return jsonify({"data": user_out_schema.dump(g.current_user)}), 200


@bp.get("/families/<family_id>")
@roles_required(["admin"])
def family_records(family_id: str):
    """
    Admin-only: list every generation of a refresh token family.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    parameters:
      -  in: path
         name: family_id
         type: string
         required: true
    responses:
      200: { description: OK }
      403: { description: Insufficient role }
    """
    records = _auth_service().family_records(family_id)
    return jsonify({"data": token_records_out_schema.dump(records)}), 200


@bp.post("/families/<family_id>/revoke")
@roles_required(["admin"])
def revoke_family(family_id: str):
    """
    Admin-only: revoke a whole refresh token family.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    parameters:
      -  in: path
         name: family_id
         type: string
         required: true
    responses:
      200: { description: OK (number of revoked records) }
      403: { description: Insufficient role }
    """
    revoked = _auth_service().revoke_family(family_id)
    return jsonify({"family_id": family_id, "revoked": revoked}), 200

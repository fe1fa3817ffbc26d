"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- GET  /auth/me

The views only parse input and shape output; api.auth_flow.AuthFlow does the
work (Argon2 hashing, HS256 JWTs, refresh-token rotation).
"""
from __future__ import annotations

from datetime import datetime, timezone

from flask import Blueprint, request, jsonify, g

from api.auth_flow import TokenPair, get_auth_flow
from models.schemas.user import RefreshSchema, UserCreateSchema, UserLoginSchema, UserOutSchema
from utils.decorators import jwt_required

bp = Blueprint("auth", __name__, url_prefix="/auth")

user_create_schema = UserCreateSchema()
user_login_schema = UserLoginSchema()
refresh_schema = RefreshSchema()
user_out_schema = UserOutSchema()


def _expires_in(expires_at: datetime) -> int:
    return max(0, int((expires_at - datetime.now(timezone.utc)).total_seconds()))


def _token_body(pair: TokenPair) -> dict:
    return {
        "access_token": pair.access_token,
        "refresh_token": pair.refresh_token,
        "token_type": "bearer",
        "expires_in": _expires_in(pair.access_expires_at),
        "refresh_expires_in": _expires_in(pair.refresh_expires_at),
    }


@bp.post("/register")
def register():
    """
    Register a new user. Does not log in.
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
          required: [email, password, name]
          properties:
            email: { type: string }
            password: { type: string }
            name: { type: string }
            phone: { type: string }
    responses:
      201:
        description: Created
      400:
        description: DUPLICATE_IDENTIFIER or WEAK_SECRET
      422:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    data = user_create_schema.load(payload)
    user = get_auth_flow().register(
        email=data["email"],
        password=data["password"],
        name=data["name"],
        phone=data.get("phone"),
    )
    return jsonify(
        {
            "message": "User registered successfully",
            "data": user_out_schema.dump(user),
        }
    ), 201


@bp.post("/login")
def login():
    """
    Login: return access_token and refresh_token
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
        description: INVALID_CREDENTIALS
    """
    payload = request.get_json(silent=True) or {}
    data = user_login_schema.load(payload)
    pair = get_auth_flow().login(data["email"], data["password"])

    body = _token_body(pair)
    body["user"] = user_out_schema.dump(pair.user)
    return jsonify({"data": body}), 200


@bp.post("/refresh")
def refresh():
    """
    Use refresh token to obtain new access and refresh tokens (rotation)
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
        description: OK (returns a new token pair)
      401:
        description: TOKEN_INVALID, TOKEN_EXPIRED, TOKEN_KIND_MISMATCH or REFRESH_TOKEN_REVOKED
    """
    payload = request.get_json(silent=True) or {}
    data = refresh_schema.load(payload)
    pair = get_auth_flow().refresh(data["refresh_token"])
    return jsonify({"data": _token_body(pair)}), 200


@bp.post("/logout")
@jwt_required()
def logout():
    """
    Logout: revokes the current refresh token. Idempotent.
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
    get_auth_flow().logout(user_id=g.current_user.id)
    return jsonify({"message": "Logged out successfully"}), 200


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

from __future__ import annotations

from typing import Tuple

from flask import Blueprint, request, jsonify, g, abort, current_app
from sqlalchemy import func
from sqlalchemy.orm.attributes import flag_modified

from models import storage
from models.session_ledger import SessionLedger
from models.user import User
from models.schemas.user import (
    LeaderboardEntrySchema,
    ProfileUpdateSchema,
    RoleUpdateSchema,
    UserOutSchema,
)
from utils.decorators import jwt_required, roles_required

MAX_LIMIT = 100
POINTS_PER_LEVEL = 100
MERGED_FIELDS = ("address", "profile", "preferences")

bp = Blueprint("users", __name__, url_prefix="/users")

profile_update_schema = ProfileUpdateSchema()
role_update_schema = RoleUpdateSchema()
user_out_schema = UserOutSchema()
user_list_out_schema = UserOutSchema(many=True)
leaderboard_schema = LeaderboardEntrySchema(many=True)


def parse_pagination() -> Tuple[int, int]:
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args.get("limit", "20"))
        page = max(page, 1)
        limit = max(1, min(limit, MAX_LIMIT))
        return page, limit
    except ValueError:
        abort(400, description="page and limit must be integers")


def _get_user_or_404(user_id: str) -> User:
    user = storage.get(User, user_id)
    if not user:
        abort(404, description="User not found")
    return user


def level_for(points: int) -> int:
    return (points or 0) // POINTS_PER_LEVEL + 1


@bp.get("/profile")
@jwt_required()
def get_profile():
    """
    Current user's profile
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200: { description: OK }
      401: { description: Unauthorized }
    """
    return jsonify({"data": {"user": user_out_schema.dump(g.current_user)}}), 200


@bp.put("/profile")
@jwt_required()
def update_profile():
    """
    Update the current user's profile. address, profile and preferences are
    merged key by key into the stored objects.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            name: { type: string }
            phone: { type: string }
            address: { type: object }
            profile: { type: object }
            preferences: { type: object }
    responses:
      200: { description: OK }
      422: { description: Validation error }
    """
    payload = request.get_json(silent=True) or {}
    data = profile_update_schema.load(payload)
    user: User = g.current_user

    for key in ("name", "phone"):
        if key in data:
            setattr(user, key, data[key])
    for key in MERGED_FIELDS:
        if key in data:
            setattr(user, key, {**(getattr(user, key) or {}), **data[key]})
            flag_modified(user, key)
    user.save()
    return jsonify(
        {
            "message": "Profile updated successfully",
            "data": {"user": user_out_schema.dump(user)},
        }
    ), 200


@bp.delete("/profile/avatar")
@jwt_required()
def delete_avatar():
    """
    Remove the current user's avatar
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200: { description: OK }
    """
    user: User = g.current_user
    if user.profile and user.profile.get("avatar"):
        user.profile = {**user.profile, "avatar": None}
        flag_modified(user, "profile")
        user.save()
    return jsonify({"message": "Avatar removed successfully"}), 200


@bp.get("/leaderboard")
@jwt_required()
def leaderboard():
    """
    Top active users by points, plus the caller's rank
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: query
        name: limit
        type: integer
        default: 10
    responses:
      200: { description: OK }
    """
    try:
        limit = int(request.args.get("limit", "10"))
    except ValueError:
        limit = 10
    limit = max(1, min(limit, MAX_LIMIT))

    session = storage.get_session()
    rows = (
        session.query(User)
        .filter(User.is_active.is_(True))
        .order_by(User.points.desc(), User.created_at.asc())
        .limit(limit)
        .all()
    )
    me: User = g.current_user
    my_points = me.points or 0
    ahead = (
        session.query(func.count(User.id))
        .filter(User.is_active.is_(True), User.points > my_points)
        .scalar()
    )
    entries = [
        {
            "rank": index + 1,
            "name": user.name,
            "avatar": (user.profile or {}).get("avatar"),
            "points": user.points or 0,
            "level": level_for(user.points),
        }
        for index, user in enumerate(rows)
    ]
    return jsonify(
        {
            "data": {
                "leaderboard": leaderboard_schema.dump(entries),
                "current_user": {"rank": ahead + 1, "points": my_points, "level": level_for(my_points)},
            }
        }
    ), 200


@bp.get("")
@roles_required(["admin"])
def list_users():
    """
    List all users - admin
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200: { description: OK }
      403: { description: Forbidden }
    """
    session = storage.get_session()
    page, limit = parse_pagination()

    query = session.query(User)
    total = query.count()
    rows = query.order_by(User.created_at.asc(), User.email.asc()).offset((page - 1) * limit).limit(limit).all()
    return jsonify(
        {
            "data": user_list_out_schema.dump(rows),
            "meta": {"page": page, "limit": limit, "total": total},
        }
    ), 200


@bp.patch("/<user_id>/role")
@roles_required(["admin"])
def set_role(user_id: str):
    """
    Admin-only: change a user's role.
    Body: { "role": "admin" }
    ---
    tags:
      - Users
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: path
         name: user_id
         type: string
         required: true
      -  in: body
         name: body
         schema:
           type: object
           properties:
             role: { type: string }
    responses:
      200: { description: OK }
      404: { description: Not found }
      422: { description: Role not allowed }
    """
    payload = request.get_json(silent=True) or {}
    role = role_update_schema.load(payload)["role"]
    allowed = set(current_app.config.get("ALLOWED_ROLES", ["user", "admin"]))
    if role not in allowed:
        abort(422, description=f"Role must be one of {sorted(allowed)}")

    user = _get_user_or_404(user_id)
    user.role = role
    user.save()
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.delete("/<user_id>")
@roles_required(["admin"])
def deactivate_user(user_id: str):
    """
    Admin-only: deactivate a user and end their session.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      -  in: path
         name: user_id
         type: string
         required: true
    responses:
      200: { description: OK }
      404: { description: Not found }
    """
    user = _get_user_or_404(user_id)
    user.deactivate()
    SessionLedger(storage).revoke(user.id)
    return jsonify({"data": user_out_schema.dump(user)}), 200

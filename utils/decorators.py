from __future__ import annotations
from functools import wraps
from flask import request, g
from utils.exceptions import AppError, Forbidden, Unauthenticated
from utils.security import ACCESS, get_codec
from models import storage
from models.user import User


def _bearer_token() -> str | None:
    auth = request.headers.get("Authorization", "")
    scheme, _, token = auth.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def jwt_required():
    """
    Require a valid access token. Expired or invalid tokens are a plain 401:
    refreshing is the client's job, never done here.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = _bearer_token()
            if token is None:
                raise Unauthenticated("Missing or invalid Authorization header")
            try:
                claims = get_codec().verify(token, expected_kind=ACCESS)
            except AppError as exc:
                raise Unauthenticated(exc.message)

            user = storage.get(User, claims.user_id)
            if user is None or not user.is_active:
                raise Unauthenticated("Account not found or inactive")
            g.current_user = user
            # role from the record, not the token: role changes apply immediately
            g.current_user_role = user.role
            g.current_token_jti = claims.jti
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: list[str]):
    """
    Allow access if the user's role is one of required_roles, 403 otherwise.
    """
    req = set(required_roles or [])
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            if getattr(g, "current_user_role", None) not in req:
                raise Forbidden()
            return fn(*args, **kwargs)

        return wrapper

    return decorator

"""
Application error taxonomy.

Each layer raises one of these explicitly; api/errors.py maps them to HTTP
responses in one place using the class attributes.
"""
from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Fatal misconfiguration detected at startup (e.g. missing SIGNING_KEY)."""


class AppError(Exception):
    status = 500
    code = "INTERNAL_ERROR"
    message = "An unexpected error occurred"

    def __init__(self, message: str | None = None, details: dict | None = None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)


class InvalidCredentials(AppError):
    status = 401
    code = "INVALID_CREDENTIALS"
    message = "Invalid email or password"


class DuplicateIdentifier(AppError):
    status = 400
    code = "DUPLICATE_IDENTIFIER"
    message = "Email already registered"


class WeakSecret(AppError):
    status = 400
    code = "WEAK_SECRET"
    message = "Password does not meet the strength requirements"


class TokenExpired(AppError):
    status = 401
    code = "TOKEN_EXPIRED"
    message = "Token expired"


class TokenInvalid(AppError):
    status = 401
    code = "TOKEN_INVALID"
    message = "Invalid token"


class TokenKindMismatch(AppError):
    status = 401
    code = "TOKEN_KIND_MISMATCH"
    message = "Wrong token type"


class RefreshTokenRevoked(AppError):
    status = 401
    code = "REFRESH_TOKEN_REVOKED"
    message = "Refresh token has been revoked, please log in again"


class Unauthenticated(AppError):
    status = 401
    code = "UNAUTHENTICATED"
    message = "Authentication required"


class Forbidden(AppError):
    status = 403
    code = "FORBIDDEN"
    message = "Insufficient role"


class ServiceUnavailable(AppError):
    status = 503
    code = "SERVICE_UNAVAILABLE"
    message = "Service temporarily unavailable"

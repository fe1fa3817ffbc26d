"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT creation/verification via PyJWT (TokenCodec)
- JTI generation and refresh-token markers
"""
from __future__ import annotations

import hashlib
import hmac
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from flask import current_app

from utils.exceptions import TokenExpired, TokenInvalid, TokenKindMismatch, WeakSecret

ACCESS = "access"
REFRESH = "refresh"

ph = PasswordHasher()

# Verified against when the identifier is unknown, so both login failure
# paths pay for one Argon2 verification.
_DUMMY_HASH = ph.hash("ecomanager-dummy-password")


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """ Verify a plaintext password using argon2.
    A missing hash still costs one verification and always fails.
    """
    try:
        matched = ph.verify(password_hash or _DUMMY_HASH, password)
    except (VerificationError, InvalidHashError):
        return False
    return matched and password_hash is not None


def check_password_strength(password: str, min_length: int = 8) -> None:
    """Raise WeakSecret unless the password has length, upper, lower and digit."""
    problems = []
    if len(password or "") < min_length:
        problems.append(f"at least {min_length} characters")
    if not re.search(r"[a-z]", password or ""):
        problems.append("a lowercase letter")
    if not re.search(r"[A-Z]", password or ""):
        problems.append("an uppercase letter")
    if not re.search(r"\d", password or ""):
        problems.append("a digit")
    if problems:
        raise WeakSecret(
            "Password must contain " + ", ".join(problems),
            details={"requirements": problems},
        )


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def hash_marker(jti: str) -> str:
    """Marker persisted on the user for the live refresh token."""
    return hashlib.sha256(jti.encode("utf-8")).hexdigest()


def markers_match(jti: str, stored: Optional[str]) -> bool:
    if not stored:
        return False
    return hmac.compare_digest(hash_marker(jti), stored)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    kind: str
    jti: Optional[str]
    role: Optional[str]
    expires_at: datetime


class TokenCodec:
    """Signs and verifies access / refresh JWTs. No I/O."""

    def __init__(
        self,
        signing_key: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        issuer: str = "ecomanager-api",
    ):
        self.signing_key = signing_key
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.issuer = issuer

    @classmethod
    def from_config(cls, config) -> "TokenCodec":
        return cls(
            signing_key=config["SIGNING_KEY"],
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            access_ttl=config["ACCESS_TTL"],
            refresh_ttl=config["REFRESH_TTL"],
            issuer=config.get("JWT_ISSUER", "ecomanager-api"),
        )

    def _encode(self, claims: dict, ttl: timedelta) -> Tuple[str, datetime]:
        now = _now()
        exp = now + ttl
        payload = {
            "iss": self.issuer,
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
            **claims,
        }
        return jwt.encode(payload, self.signing_key, algorithm=self.algorithm), exp

    def issue_access_token(self, user_id: str, role: str) -> Tuple[str, datetime]:
        return self._encode(
            {"sub": str(user_id), "role": role, "type": ACCESS, "jti": generate_jti()},
            self.access_ttl,
        )

    def issue_refresh_token(self, user_id: str, jti: str) -> Tuple[str, datetime]:
        return self._encode(
            {"sub": str(user_id), "type": REFRESH, "jti": jti},
            self.refresh_ttl,
        )

    def verify(self, token: str, expected_kind: str = ACCESS) -> TokenClaims:
        """
        Decode and validate a JWT.
        Raises TokenExpired, TokenInvalid or TokenKindMismatch.
        """
        if not token or not isinstance(token, str):
            raise TokenInvalid()
        try:
            decoded = jwt.decode(
                token,
                self.signing_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["exp", "iat", "sub", "type"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpired()
        except jwt.InvalidTokenError:
            raise TokenInvalid()

        if decoded.get("type") not in (ACCESS, REFRESH):
            raise TokenInvalid()
        if decoded["type"] != expected_kind:
            raise TokenKindMismatch(f"Expected {expected_kind} token, got {decoded['type']} token")
        if expected_kind == REFRESH and not decoded.get("jti"):
            raise TokenInvalid()

        return TokenClaims(
            user_id=str(decoded["sub"]),
            kind=decoded["type"],
            jti=decoded.get("jti"),
            role=decoded.get("role"),
            expires_at=datetime.fromtimestamp(decoded["exp"], tz=timezone.utc),
        )


def get_codec() -> TokenCodec:
    """Codec for the current Flask app, cached on app.extensions."""
    codec = current_app.extensions.get("token_codec")
    if codec is None:
        codec = TokenCodec.from_config(current_app.config)
        current_app.extensions["token_codec"] = codec
    return codec

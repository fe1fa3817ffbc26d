"""
Register / login / refresh / logout.

Blueprints call into AuthFlow and never touch tokens or password hashes
directly. Every failure is one of the utils.exceptions variants.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from flask import current_app

from models import storage
from models.credential_store import CredentialStore, normalize_identifier
from models.session_ledger import SessionLedger
from models.user import User
from utils.exceptions import (
    DuplicateIdentifier,
    InvalidCredentials,
    RefreshTokenRevoked,
    TokenExpired,
    TokenInvalid,
    TokenKindMismatch,
)
from utils.security import (
    REFRESH,
    TokenCodec,
    check_password_strength,
    generate_jti,
    get_codec,
    hash_password,
)

logger = logging.getLogger(__name__)


@dataclass
class TokenPair:
    access_token: str
    access_expires_at: datetime
    refresh_token: str
    refresh_expires_at: datetime
    user: Optional[User] = None


class AuthFlow:
    def __init__(
        self,
        store: CredentialStore,
        ledger: SessionLedger,
        codec: TokenCodec,
        min_password_length: int = 8,
        reuse_detection: bool = True,
        default_role: str = "user",
    ):
        self.store = store
        self.ledger = ledger
        self.codec = codec
        self.min_password_length = min_password_length
        self.reuse_detection = reuse_detection
        self.default_role = default_role

    def register(self, email: str, password: str, name: str, **fields) -> User:
        """Create an account. No tokens are issued; the caller logs in next."""
        if self.store.find_by_identifier(email) is not None:
            raise DuplicateIdentifier()
        check_password_strength(password, self.min_password_length)
        user = self.store.create(
            email=email,
            password_hash=hash_password(password),
            name=name,
            role=self.default_role,
            **fields,
        )
        logger.info("Registered user %s", user.id)
        return user

    def _issue_pair(self, user: User) -> TokenPair:
        jti = generate_jti()
        access, access_exp = self.codec.issue_access_token(user.id, user.role)
        refresh, refresh_exp = self.codec.issue_refresh_token(user.id, jti)
        self.ledger.record(user.id, jti)
        return TokenPair(access, access_exp, refresh, refresh_exp, user)

    def login(self, email: str, password: str) -> TokenPair:
        """
        Unknown email, wrong password and deactivated account all raise the
        same InvalidCredentials.
        """
        user = self.store.find_by_identifier(normalize_identifier(email))
        valid = self.store.verify_secret(user, password)
        if not valid or not user.is_active:
            logger.info("Failed login attempt")
            raise InvalidCredentials()
        pair = self._issue_pair(user)
        logger.info("User %s logged in", user.id)
        return pair

    def refresh(self, refresh_token: str) -> TokenPair:
        """Rotate: the presented refresh token is spent, a new pair is issued."""
        claims = self.codec.verify(refresh_token, expected_kind=REFRESH)
        user = self.store.get(claims.user_id)
        if user is None or not user.is_active:
            raise RefreshTokenRevoked()
        if not self.ledger.is_current(user, claims.jti):
            if self.reuse_detection and self.ledger.has_session(user):
                # an already-rotated token came back: assume it leaked
                logger.warning("Refresh token reuse detected for user %s, revoking session", user.id)
                self.ledger.revoke(user.id)
            raise RefreshTokenRevoked()
        pair = self._issue_pair(user)
        logger.info("Rotated refresh token for user %s", user.id)
        return pair

    def logout(self, user_id: Optional[str] = None, refresh_token: Optional[str] = None) -> None:
        """Clear the user's refresh marker. Always succeeds."""
        if user_id is None and refresh_token:
            try:
                user_id = self.codec.verify(refresh_token, expected_kind=REFRESH).user_id
            except (TokenExpired, TokenInvalid, TokenKindMismatch):
                return
        if user_id is None:
            return
        self.ledger.revoke(user_id)


def get_auth_flow() -> AuthFlow:
    """AuthFlow wired to the global storage and the current app's settings."""
    cfg = current_app.config
    return AuthFlow(
        store=CredentialStore(storage),
        ledger=SessionLedger(storage),
        codec=get_codec(),
        min_password_length=cfg.get("PASSWORD_MIN_LENGTH", 8),
        reuse_detection=cfg.get("REFRESH_REUSE_DETECTION", True),
        default_role=cfg.get("DEFAULT_ROLE", "user"),
    )

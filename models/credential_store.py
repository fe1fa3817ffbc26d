"""
Credential store: the only place the auth flow touches user records for
lookup and secret verification.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from models.user import User
from utils.exceptions import DuplicateIdentifier
from utils.security import verify_password


def normalize_identifier(email: str) -> str:
    return email.strip().lower() if isinstance(email, str) else email


class CredentialStore:
    def __init__(self, storage):
        self.storage = storage

    def find_by_identifier(self, email: str) -> Optional[User]:
        session = self.storage.get_session()
        return (
            session.query(User)
            .filter(func.lower(User.email) == normalize_identifier(email))
            .first()
        )

    def get(self, user_id: str) -> Optional[User]:
        return self.storage.get(User, user_id)

    def create(self, email: str, password_hash: str, name: str, role: str = "user", **fields) -> User:
        """Insert a user. The unique index on email is the final duplicate check."""
        user = User(
            email=normalize_identifier(email),
            password_hash=password_hash,
            name=name,
            role=role,
            **fields,
        )
        self.storage.new(user)
        try:
            self.storage.save()
        except IntegrityError:
            raise DuplicateIdentifier()
        return user

    @staticmethod
    def verify_secret(user: Optional[User], secret: str) -> bool:
        """False for unknown users too, after the same amount of hashing work."""
        return verify_password(secret, user.password_hash if user else None)

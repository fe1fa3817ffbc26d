"""
Refresh-token ledger.

One live refresh token per user: its jti is hashed and stored on
users.refresh_token_hash. Recording a new one overwrites the old one, and
the UPDATE is the serialization point between concurrent refreshes (last
write wins).
"""
from __future__ import annotations

import logging

from sqlalchemy import update

from models.user import User
from utils.security import hash_marker, markers_match

logger = logging.getLogger(__name__)


class SessionLedger:
    def __init__(self, storage):
        self.storage = storage

    def _set_marker(self, user_id: str, marker: str | None) -> None:
        session = self.storage.get_session()
        session.execute(
            update(User)
            .where(User.id == str(user_id))
            .values(refresh_token_hash=marker)
            .execution_options(synchronize_session="fetch")
        )
        self.storage.save()

    def record(self, user_id: str, jti: str) -> None:
        self._set_marker(user_id, hash_marker(jti))

    def is_current(self, user: User, jti: str) -> bool:
        return markers_match(jti, user.refresh_token_hash)

    def has_session(self, user: User) -> bool:
        return bool(user.refresh_token_hash)

    def revoke(self, user_id: str) -> None:
        """Clear the marker. Revoking twice is a no-op."""
        self._set_marker(user_id, None)
        logger.info("Refresh session cleared for user %s", user_id)

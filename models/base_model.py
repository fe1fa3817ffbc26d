#!/usr/bin/env python3
"""
Shared SQLAlchemy base and mixins for the EcoManager API.

- UUID primary key (String(36)) with defaults, never reassigned
- created_at / updated_at timestamps
- save() that goes through the global DBStorage
- ActiveFlagMixin: accounts are deactivated, never hard-deleted

Notes:
- Server-side defaults (func.now()) so timestamps are set consistently by the DB.
- For SQLite, func.now() maps to CURRENT_TIMESTAMP.
"""

from __future__ import annotations

from datetime import datetime, timezone
import uuid

# Importing 'models' gives access to the global 'storage' instance (DBStorage)
# defined in models/__init__.py.
import models

from sqlalchemy import Boolean, Column, String, DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

# Declarative base for all models
Base = declarative_base()


def _uuid_str() -> str:
    """Return a canonical UUIDv4 string (36 chars, with hyphens)."""
    return str(uuid.uuid4())


class BaseModel:
    """
    Base mixin for all persistent models: id, created_at, updated_at and
    save() wired to DBStorage. API output goes through marshmallow schemas.
    """

    id = Column(String(36), primary_key=True, default=_uuid_str, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __init__(self, *args, **kwargs):
        """
        Allow attribute initialization via kwargs without requiring a session here.
        DB defaults handle created_at/updated_at on insert.
        """
        for key, value in kwargs.items():
            if key != "__class__":
                setattr(self, key, value)
        if getattr(self, "id", None) is None:
            self.id = _uuid_str()

    def __str__(self) -> str:
        return f"[{self.__class__.__name__}] ({self.id})"

    def save(self):
        """Touch updated_at and commit through DBStorage."""
        self.updated_at = datetime.now(timezone.utc)
        models.storage.new(self)
        models.storage.save()


class ActiveFlagMixin:
    """
    Adds an is_active flag. deactivate() is the only removal path for rows
    using it.
    """

    is_active = Column(Boolean, nullable=False, default=True)

    def deactivate(self):
        self.is_active = False
        self.save()

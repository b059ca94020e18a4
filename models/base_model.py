#!/usr/bin/env python3
"""
Shared SQLAlchemy base and mixin for the session API.

- UUID primary key (String(36)) generated on construction
- created_at / updated_at timestamps, database defaults unless given
- save() that goes through the global DBStorage

Token records are never deleted by the rotation protocol, so there is no
delete() here; pruning lives in RefreshTokenStore.prune().
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
import uuid

# Importing 'models' gives access to the global 'storage' instance (DBStorage)
# defined in models/__init__.py
import models

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

# Declarative base for all models
Base = declarative_base()


def _uuid_str() -> str:
    """Return a canonical UUIDv4 string (36 chars, with hyphens)."""
    return str(uuid.uuid4())


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; every timestamp is written as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class BaseModel:
    """
    Base mixin for all persistent models.

    Services that need deterministic timestamps (token issuance under a
    test clock) pass created_at/updated_at explicitly.
    """

    id = Column(String(36), primary_key=True, default=_uuid_str, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __init__(self, **kwargs):
        for key, value in kwargs.items():
            setattr(self, key, value)
        if getattr(self, "id", None) is None:
            self.id = _uuid_str()

    def save(self):
        """Persist the instance through the request-scoped DBStorage session."""
        self.updated_at = datetime.now(timezone.utc)
        models.storage.new(self)
        models.storage.save()

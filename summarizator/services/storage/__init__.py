"""Persistence layer: async SQLAlchemy engine, ORM rows and the storage facade."""

from summarizator.services.storage.database import Database, session_scope
from summarizator.services.storage.service import StorageService

__all__ = [
    "Database",
    "StorageService",
    "session_scope",
]

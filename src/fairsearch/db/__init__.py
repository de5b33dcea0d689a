"""Database layer."""

from .base import Base, StringPrimaryKeyMixin, TimestampMixin, create_engine, create_session_factory
from .models import EntryModel
from .repositories import BaseRepository, EntryRepository, EntryStore
from .session import DatabaseManager

__all__ = [
    # Base
    "Base",
    "StringPrimaryKeyMixin",
    "TimestampMixin",
    "create_engine",
    "create_session_factory",
    # Models
    "EntryModel",
    # Repositories
    "BaseRepository",
    "EntryRepository",
    "EntryStore",
    # Session
    "DatabaseManager",
]

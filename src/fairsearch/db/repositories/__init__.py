"""Repository implementations."""

from .base import BaseRepository
from .entry import EntryRepository, EntryStore

__all__ = ["BaseRepository", "EntryRepository", "EntryStore"]

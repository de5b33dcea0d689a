"""Database models."""

from .entry import EntryModel

__all__ = ["EntryModel"]

"""Core enums and type definitions."""

from enum import StrEnum


class Category(StrEnum):
    """Fixed set of directory categories an entry belongs to."""

    ENERGY = "energy"
    FOOD = "food"
    MOBILITY = "mobility"
    HOUSING = "housing"
    CONSUMER_GOODS = "consumer_goods"
    FINANCE = "finance"
    EDUCATION = "education"
    COMMUNITY = "community"
    RECYCLING = "recycling"
    OTHER = "other"


class ChangeOperation(StrEnum):
    """Kinds of committed store mutations announced on the change feed."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class IndexOperation(StrEnum):
    """Index mutations driven by the consistency coordinator."""

    UPSERT = "upsert"
    REMOVE = "remove"


class WriteOutcome(StrEnum):
    """Result of a single index write."""

    APPLIED = "applied"
    STALE = "stale"  # index already holds an equal or newer version
    NOOP = "noop"  # nothing to remove


class EntryState(StrEnum):
    """Per-entry indexing state tracked by the reconciliation ledger."""

    UNTRACKED = "untracked"
    INDEXED = "indexed"
    DELETED = "deleted"


class ReconcileAction(StrEnum):
    """What reconciliation did for one entry."""

    INSERTED = "inserted"
    UPDATED = "updated"
    REMOVED = "removed"
    UNCHANGED = "unchanged"


class SearchBackendName(StrEnum):
    """Available index storage engines."""

    MEMORY = "memory"
    MEILISEARCH = "meilisearch"

"""Keeping the index consistent with the entry store."""

from fairsearch.sync.alerts import Alert, AlertSink, LoggingAlertSink
from fairsearch.sync.coordinator import ConsistencyCoordinator, RetryPolicy
from fairsearch.sync.feed import ChangeFeed
from fairsearch.sync.ledger import ReconciliationLedger
from fairsearch.sync.locks import KeyedLock
from fairsearch.sync.reconciliation import Reconciler
from fairsearch.sync.store import EntrySource

__all__ = [
    # Coordinator
    "ConsistencyCoordinator",
    "RetryPolicy",
    "Reconciler",
    # State
    "ReconciliationLedger",
    "KeyedLock",
    # Collaborators
    "ChangeFeed",
    "EntrySource",
    # Alerts
    "Alert",
    "AlertSink",
    "LoggingAlertSink",
]

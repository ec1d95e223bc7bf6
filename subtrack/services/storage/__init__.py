"""
Storage Services Package

Provides the abstract store interface, the LiveQuery handle and two
backends: Cloud Firestore and an in-memory store.
"""

from subtrack.services.storage.interface import (
    SUBSCRIPTIONS_PATH,
    LiveQuery,
    NotFoundError,
    ReadFailureError,
    StorageError,
    StoreUnavailableError,
    SubscriptionStoreInterface,
    WriteFailureError,
)
from subtrack.services.storage.memory import InMemorySubscriptionStore

__all__ = [
    # Interfaces
    "SUBSCRIPTIONS_PATH",
    "LiveQuery",
    "SubscriptionStoreInterface",
    # Exceptions
    "NotFoundError",
    "ReadFailureError",
    "StorageError",
    "StoreUnavailableError",
    "WriteFailureError",
    # In-memory implementation
    "InMemorySubscriptionStore",
]

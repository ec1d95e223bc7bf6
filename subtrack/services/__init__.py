"""Services package."""

from subtrack.services.auth import (
    AuthFailureError,
    AuthProviderInterface,
    AuthUser,
    FirebaseAuthProvider,
    InMemoryAuthProvider,
    SessionBootstrapper,
    SessionState,
)
from subtrack.services.storage import (
    InMemorySubscriptionStore,
    LiveQuery,
    NotFoundError,
    ReadFailureError,
    StorageError,
    StoreUnavailableError,
    SubscriptionStoreInterface,
    WriteFailureError,
)

__all__ = [
    # Auth services
    "AuthFailureError",
    "AuthProviderInterface",
    "AuthUser",
    "FirebaseAuthProvider",
    "InMemoryAuthProvider",
    "SessionBootstrapper",
    "SessionState",
    # Storage services
    "InMemorySubscriptionStore",
    "LiveQuery",
    "NotFoundError",
    "ReadFailureError",
    "StorageError",
    "StoreUnavailableError",
    "SubscriptionStoreInterface",
    "WriteFailureError",
]

"""Authentication services package."""

from subtrack.services.auth.interface import (
    AuthFailureError,
    AuthProviderInterface,
    AuthUser,
)
from subtrack.services.auth.firebase_auth import FirebaseAuthProvider
from subtrack.services.auth.memory import InMemoryAuthProvider
from subtrack.services.auth.session import (
    ANONYMOUS_USER_ID,
    AUTH_FAILURE_MESSAGE,
    SessionBootstrapper,
    SessionState,
)

__all__ = [
    "ANONYMOUS_USER_ID",
    "AUTH_FAILURE_MESSAGE",
    "AuthFailureError",
    "AuthProviderInterface",
    "AuthUser",
    "FirebaseAuthProvider",
    "InMemoryAuthProvider",
    "SessionBootstrapper",
    "SessionState",
]

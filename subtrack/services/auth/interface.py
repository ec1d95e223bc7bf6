"""
Abstract Auth Provider Interface

The page needs very little from authentication: sign in with a custom
token or anonymously, know who the current user is, and hear about
changes. Everything else belongs to the provider.
"""

import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

import structlog
from pydantic import BaseModel, Field


logger = structlog.get_logger(__name__)

AuthStateCallback = Callable[[Optional["AuthUser"]], None]


class AuthFailureError(Exception):
    """Sign-in was rejected or the auth service was unreachable."""

    def __init__(self, message: str, code: Optional[str] = None):
        self.code = code
        super().__init__(message)


class AuthUser(BaseModel):
    """An authenticated identity."""

    uid: str = Field(default="", description="Provider user ID (may be empty)")
    is_anonymous: bool = False
    id_token: Optional[str] = Field(default=None, repr=False)
    refresh_token: Optional[str] = Field(default=None, repr=False)


class AuthProviderInterface(ABC):
    """
    Abstract interface for the auth provider.

    Concrete providers implement the two sign-in calls; the base class
    owns the current user and notifies auth-state listeners.
    """

    def __init__(self):
        self._current_user: Optional[AuthUser] = None
        self._listeners: list[AuthStateCallback] = []
        self._lock = threading.Lock()

    @property
    def current_user(self) -> Optional[AuthUser]:
        return self._current_user

    def on_auth_state_changed(self, callback: AuthStateCallback) -> Callable[[], None]:
        """
        Register a listener for sign-in/sign-out.

        The callback fires once immediately with the current user (or None),
        then on every change. Returns an unsubscribe function.
        """
        with self._lock:
            self._listeners.append(callback)
        callback(self._current_user)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def _set_current_user(self, user: Optional[AuthUser]) -> None:
        with self._lock:
            self._current_user = user
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback(user)
            except Exception:
                logger.exception("auth_state_callback_failed")

    def sign_out(self) -> None:
        self._set_current_user(None)

    @abstractmethod
    async def sign_in_with_token(self, token: str) -> AuthUser:
        """
        Sign in with a custom token issued by the hosting platform.

        Raises:
            AuthFailureError: If the token is rejected
        """
        pass

    @abstractmethod
    async def sign_in_anonymously(self) -> AuthUser:
        """
        Create and sign in an anonymous user.

        Raises:
            AuthFailureError: If anonymous sign-in is rejected
        """
        pass

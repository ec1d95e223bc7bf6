"""
Session Bootstrapper

Establishes who the user is before anything else runs:
1. Reuse the provider's current user if there already is one
2. Otherwise sign in with the platform's custom token, if one was supplied
3. Otherwise sign in anonymously

The resulting SessionState gates every dependent component: the live
query and all writes wait for `is_ready`. A failed sign-in does not raise
into the page; it leaves the session not-ready with `error` set so the
page can show a fatal banner.
"""

from typing import Callable, Optional

from pydantic import BaseModel

from subtrack.audit import ActivityLogger
from subtrack.services.auth.interface import (
    AuthFailureError,
    AuthProviderInterface,
    AuthUser,
)


ANONYMOUS_USER_ID = "anonymous"
AUTH_FAILURE_MESSAGE = "We couldn't sign you in. Please reload the page to try again."


class SessionState(BaseModel):
    """Identity as seen by the rest of the app."""

    user_id: Optional[str] = None
    is_ready: bool = False
    is_anonymous: bool = False
    method: Optional[str] = None
    error: Optional[str] = None


class SessionBootstrapper:
    """Runs sign-in once and tracks auth-state changes afterwards."""

    def __init__(
        self,
        provider: AuthProviderInterface,
        initial_token: Optional[str] = None,
        activity_logger: Optional[ActivityLogger] = None,
    ):
        self._provider = provider
        self._initial_token = initial_token
        self._activity_logger = activity_logger
        self._state = SessionState()
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def state(self) -> SessionState:
        return self._state

    def _ready_state(self, user: AuthUser, method: str) -> SessionState:
        return SessionState(
            user_id=user.uid or ANONYMOUS_USER_ID,
            is_ready=True,
            is_anonymous=user.is_anonymous,
            method=method,
        )

    async def start(self) -> SessionState:
        """
        Sign in (if needed) and mark the session ready.

        Safe to call again: a ready session is returned unchanged.
        """
        if self._state.is_ready:
            return self._state

        user = self._provider.current_user
        method = "existing"
        if user is None:
            try:
                if self._initial_token:
                    method = "token"
                    user = await self._provider.sign_in_with_token(self._initial_token)
                else:
                    method = "anonymous"
                    user = await self._provider.sign_in_anonymously()
            except AuthFailureError as e:
                self._state = SessionState(method=method, error=AUTH_FAILURE_MESSAGE)
                if self._activity_logger:
                    self._activity_logger.log_session_failed(str(e))
                return self._state

        self._state = self._ready_state(user, method)
        if self._activity_logger:
            self._activity_logger.log_session_started(self._state.user_id, method)

        if self._unsubscribe is None:
            self._unsubscribe = self._provider.on_auth_state_changed(
                self._on_auth_state_changed
            )
        return self._state

    def _on_auth_state_changed(self, user: Optional[AuthUser]) -> None:
        if user is None:
            self._state = SessionState()
            return
        user_id = user.uid or ANONYMOUS_USER_ID
        if user_id != self._state.user_id:
            self._state = self._ready_state(user, self._state.method or "existing")

    def close(self) -> None:
        """Stop listening for auth-state changes."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

"""In-memory auth provider for offline runs and tests."""

from typing import Optional
from uuid import uuid4

from subtrack.services.auth.interface import (
    AuthFailureError,
    AuthProviderInterface,
    AuthUser,
)


class InMemoryAuthProvider(AuthProviderInterface):
    """
    Accepts any token listed in `token_users` and hands out random
    anonymous IDs. Either path can be switched off to simulate a
    rejected sign-in.
    """

    def __init__(
        self,
        token_users: Optional[dict[str, str]] = None,
        allow_anonymous: bool = True,
    ):
        super().__init__()
        self._token_users = dict(token_users or {})
        self._allow_anonymous = allow_anonymous
        self.sign_in_calls: list[str] = []

    async def sign_in_with_token(self, token: str) -> AuthUser:
        self.sign_in_calls.append("token")
        uid = self._token_users.get(token)
        if uid is None:
            raise AuthFailureError("Invalid custom token", code="INVALID_CUSTOM_TOKEN")
        user = AuthUser(uid=uid)
        self._set_current_user(user)
        return user

    async def sign_in_anonymously(self) -> AuthUser:
        self.sign_in_calls.append("anonymous")
        if not self._allow_anonymous:
            raise AuthFailureError(
                "Anonymous sign-in is disabled",
                code="ADMIN_ONLY_OPERATION",
            )
        user = AuthUser(uid=uuid4().hex, is_anonymous=True)
        self._set_current_user(user)
        return user

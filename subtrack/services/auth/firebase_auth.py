"""
Firebase Authentication over the Identity Toolkit REST API

Two calls are enough for this app:
- accounts:signInWithCustomToken for a platform-issued token
- accounts:signUp with no credentials, which creates an anonymous user

signInWithCustomToken does not return the user ID, so it is followed by
accounts:lookup on the fresh ID token.
"""

from typing import Any, Optional

import httpx

from subtrack.config import get_settings
from subtrack.config.settings import FirebaseSettings
from subtrack.services.auth.interface import (
    AuthFailureError,
    AuthProviderInterface,
    AuthUser,
)


class FirebaseAuthProvider(AuthProviderInterface):
    """
    Auth provider backed by Firebase Authentication.

    Args:
        settings: Firebase settings; loaded from the environment if None
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        settings: Optional[FirebaseSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__()
        self._settings = settings or get_settings().firebase
        self._transport = transport

    async def _post(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._settings.auth_base_url.rstrip('/')}/accounts:{method}"
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.auth_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    url,
                    json=payload,
                    params={"key": self._settings.web_api_key},
                )
        except httpx.HTTPError as e:
            raise AuthFailureError(f"Auth service unreachable: {e}") from e

        if response.status_code != 200:
            code = None
            try:
                code = response.json().get("error", {}).get("message")
            except ValueError:
                pass
            raise AuthFailureError(
                f"Sign-in failed ({response.status_code}): {code or 'unknown error'}",
                code=code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise AuthFailureError("Auth service returned invalid JSON") from e

    async def sign_in_with_token(self, token: str) -> AuthUser:
        data = await self._post(
            "signInWithCustomToken",
            {"token": token, "returnSecureToken": True},
        )
        id_token = data.get("idToken")
        if not id_token:
            raise AuthFailureError("Sign-in response carried no ID token")

        lookup = await self._post("lookup", {"idToken": id_token})
        users = lookup.get("users") or [{}]

        user = AuthUser(
            uid=users[0].get("localId", ""),
            is_anonymous=False,
            id_token=id_token,
            refresh_token=data.get("refreshToken"),
        )
        self._set_current_user(user)
        return user

    async def sign_in_anonymously(self) -> AuthUser:
        data = await self._post("signUp", {"returnSecureToken": True})
        user = AuthUser(
            uid=data.get("localId", ""),
            is_anonymous=True,
            id_token=data.get("idToken"),
            refresh_token=data.get("refreshToken"),
        )
        self._set_current_user(user)
        return user

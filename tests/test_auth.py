"""Tests for the auth providers and the session bootstrapper."""

import httpx
import pytest

from subtrack.audit import ActivityLogger
from subtrack.services.auth import (
    ANONYMOUS_USER_ID,
    AUTH_FAILURE_MESSAGE,
    AuthFailureError,
    AuthUser,
    FirebaseAuthProvider,
    InMemoryAuthProvider,
    SessionBootstrapper,
)


def identity_toolkit(request: httpx.Request) -> httpx.Response:
    """Fake Identity Toolkit: accepts the token "good-token" only."""
    method = request.url.path.rsplit(":", 1)[-1]
    if method == "signUp":
        return httpx.Response(200, json={"localId": "anon-1", "idToken": "id-anon"})
    if method == "signInWithCustomToken":
        if b"good-token" not in request.content:
            return httpx.Response(400, json={"error": {"message": "INVALID_CUSTOM_TOKEN"}})
        return httpx.Response(200, json={"idToken": "id-1", "refreshToken": "r-1"})
    if method == "lookup":
        return httpx.Response(200, json={"users": [{"localId": "user-1"}]})
    return httpx.Response(404)


class TestFirebaseAuthProvider:
    """Tests for the Identity Toolkit REST client."""

    @pytest.fixture
    def provider(self, firebase_settings):
        return FirebaseAuthProvider(
            firebase_settings,
            transport=httpx.MockTransport(identity_toolkit),
        )

    @pytest.mark.asyncio
    async def test_anonymous_sign_in(self, provider):
        user = await provider.sign_in_anonymously()
        assert user.uid == "anon-1"
        assert user.is_anonymous
        assert provider.current_user == user

    @pytest.mark.asyncio
    async def test_token_sign_in_looks_up_user(self, provider):
        user = await provider.sign_in_with_token("good-token")
        assert user.uid == "user-1"
        assert not user.is_anonymous
        assert user.refresh_token == "r-1"

    @pytest.mark.asyncio
    async def test_rejected_token_raises(self, provider):
        with pytest.raises(AuthFailureError) as exc_info:
            await provider.sign_in_with_token("bad-token")
        assert exc_info.value.code == "INVALID_CUSTOM_TOKEN"
        assert provider.current_user is None

    @pytest.mark.asyncio
    async def test_sends_api_key(self, firebase_settings):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return identity_toolkit(request)

        provider = FirebaseAuthProvider(firebase_settings, transport=httpx.MockTransport(handler))
        await provider.sign_in_anonymously()
        assert seen[0].url.params["key"] == "test-web-key"
        assert seen[0].url.path.endswith("/accounts:signUp")

    @pytest.mark.asyncio
    async def test_unreachable_service_raises(self, firebase_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        provider = FirebaseAuthProvider(firebase_settings, transport=httpx.MockTransport(handler))
        with pytest.raises(AuthFailureError):
            await provider.sign_in_anonymously()


class TestAuthStateListeners:
    """Tests for auth-state notifications."""

    @pytest.mark.asyncio
    async def test_listener_fires_immediately_and_on_change(self):
        provider = InMemoryAuthProvider()
        seen = []
        unsubscribe = provider.on_auth_state_changed(seen.append)
        user = await provider.sign_in_anonymously()
        unsubscribe()
        provider.sign_out()
        assert seen == [None, user]


class TestSessionBootstrapper:
    """Tests for the sign-in sequence."""

    @pytest.mark.asyncio
    async def test_anonymous_when_no_token(self):
        provider = InMemoryAuthProvider()
        session = SessionBootstrapper(provider, activity_logger=ActivityLogger())
        state = await session.start()
        assert state.is_ready
        assert state.is_anonymous
        assert state.method == "anonymous"
        assert provider.sign_in_calls == ["anonymous"]

    @pytest.mark.asyncio
    async def test_token_when_supplied(self):
        provider = InMemoryAuthProvider(token_users={"tok": "user-9"})
        session = SessionBootstrapper(provider, initial_token="tok")
        state = await session.start()
        assert state.user_id == "user-9"
        assert state.method == "token"
        assert provider.sign_in_calls == ["token"]

    @pytest.mark.asyncio
    async def test_rejected_token_does_not_fall_back(self):
        provider = InMemoryAuthProvider(token_users={})
        session = SessionBootstrapper(provider, initial_token="bad")
        state = await session.start()
        assert not state.is_ready
        assert state.error == AUTH_FAILURE_MESSAGE
        assert provider.sign_in_calls == ["token"]

    @pytest.mark.asyncio
    async def test_rejected_anonymous_sign_in(self):
        provider = InMemoryAuthProvider(allow_anonymous=False)
        session = SessionBootstrapper(provider, activity_logger=ActivityLogger())
        state = await session.start()
        assert not state.is_ready
        assert state.user_id is None
        assert state.error == AUTH_FAILURE_MESSAGE

    @pytest.mark.asyncio
    async def test_existing_user_is_reused(self):
        provider = InMemoryAuthProvider()
        await provider.sign_in_anonymously()
        session = SessionBootstrapper(provider)
        state = await session.start()
        assert state.method == "existing"
        assert provider.sign_in_calls == ["anonymous"]

    @pytest.mark.asyncio
    async def test_empty_uid_becomes_anonymous_id(self):
        provider = InMemoryAuthProvider()
        provider._set_current_user(AuthUser(uid=""))
        session = SessionBootstrapper(provider)
        state = await session.start()
        assert state.user_id == ANONYMOUS_USER_ID

    @pytest.mark.asyncio
    async def test_start_twice_signs_in_once(self):
        provider = InMemoryAuthProvider()
        session = SessionBootstrapper(provider)
        first = await session.start()
        second = await session.start()
        assert first.user_id == second.user_id
        assert provider.sign_in_calls == ["anonymous"]

    @pytest.mark.asyncio
    async def test_sign_out_resets_state(self):
        provider = InMemoryAuthProvider()
        session = SessionBootstrapper(provider)
        await session.start()
        provider.sign_out()
        assert not session.state.is_ready
        assert session.state.user_id is None

    @pytest.mark.asyncio
    async def test_close_stops_following_changes(self):
        provider = InMemoryAuthProvider()
        session = SessionBootstrapper(provider)
        state = await session.start()
        session.close()
        provider.sign_out()
        assert session.state.user_id == state.user_id

"""Shared fixtures: in-memory services and a mocked report endpoint."""

import httpx
import pytest

from subtrack.agents import SpendingReportAgent
from subtrack.config.settings import AppSettings, FirebaseSettings, GeminiSettings
from subtrack.orchestrator import ClientContext
from subtrack.services.auth import InMemoryAuthProvider
from subtrack.services.storage import InMemorySubscriptionStore
from tests.factories import gemini_body


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(
        app_id="test-app",
        initial_auth_token=None,
        use_cloud_backend=False,
        currency_symbol="₹",
    )


@pytest.fixture
def gemini_settings() -> GeminiSettings:
    return GeminiSettings(api_key="test-gemini-key", model_name="test-model")


@pytest.fixture
def firebase_settings() -> FirebaseSettings:
    return FirebaseSettings(project_id="test-project", web_api_key="test-web-key")


@pytest.fixture
def gemini_requests() -> list:
    """Every request the mocked report endpoint received."""
    return []


@pytest.fixture
def make_context(app_settings, gemini_settings, gemini_requests):
    """
    Build a ClientContext over in-memory services.

    `handler` answers report requests; it defaults to a 200 with REPORT_TEXT.
    `auth` pins one provider for every tracker; by default each tracker
    gets a fresh InMemoryAuthProvider.
    """
    contexts = []

    def _make(handler=None, auth=None, store=None, settings=None):
        def default_handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=gemini_body())

        respond = handler or default_handler

        def recording_handler(request: httpx.Request) -> httpx.Response:
            gemini_requests.append(request)
            return respond(request)

        agent = SpendingReportAgent(
            settings=gemini_settings,
            transport=httpx.MockTransport(recording_handler),
        )
        context = ClientContext(
            app_settings=settings or app_settings,
            auth_factory=(lambda: auth) if auth is not None else InMemoryAuthProvider,
            store=store or InMemorySubscriptionStore("test-app"),
            report_agent=agent,
        )
        contexts.append(context)
        return context

    yield _make

    for context in contexts:
        context.close()


@pytest.fixture
def context(make_context) -> ClientContext:
    return make_context()

"""Tests for settings and activity logging."""

from unittest.mock import MagicMock

import pytest

from subtrack.audit import ActivityLogger, create_correlation_id
from subtrack.config import get_settings, validate_all_settings
from subtrack.config.settings import AppSettings, GeminiSettings
from subtrack.models.activity import ActivityEvent, ActivityEventType


class TestSettings:
    """Tests for environment-driven configuration."""

    def test_gemini_endpoint(self):
        settings = GeminiSettings(
            api_key="k",
            model_name="gemini-test",
            base_url="https://example.test/v1beta/",
        )
        assert settings.endpoint == "https://example.test/v1beta/models/gemini-test:generateContent"

    def test_blank_token_is_none(self):
        assert AppSettings(initial_auth_token="   ").initial_auth_token is None
        assert AppSettings(initial_auth_token="tok").initial_auth_token == "tok"

    def test_log_level_is_uppercased(self):
        assert AppSettings(log_level="debug").log_level == "DEBUG"

    def test_app_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv("APP_ID", "env-app")
        monkeypatch.setenv("CURRENCY_SYMBOL", "$")
        settings = AppSettings()
        assert settings.app_id == "env-app"
        assert settings.currency_symbol == "$"

    def test_validate_all_settings_reports_missing_keys(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "")
        monkeypatch.setenv("FIREBASE_PROJECT_ID", "p")
        monkeypatch.setenv("FIREBASE_WEB_API_KEY", "k")
        get_settings.cache_clear()

        status = validate_all_settings()

        assert status["firebase"] is True
        assert status["gemini"] is False
        assert "GEMINI_API_KEY" in status["gemini_error"]
        assert status["app"] is True


class TestActivityLogger:
    """Tests for level selection and failure handling."""

    @pytest.fixture
    def activity_logger(self):
        activity_logger = ActivityLogger()
        activity_logger._logger = MagicMock()
        return activity_logger

    def test_error_events_log_at_error(self, activity_logger):
        activity_logger.log_write_failed("u1", "delete", "boom", subscription_id="doc-1")
        activity_logger._logger.error.assert_called_once()
        fields = activity_logger._logger.error.call_args.kwargs
        assert fields["event_type"] == "write_failed"
        assert fields["entity_id"] == "doc-1"
        assert fields["error_message"] == "boom"

    def test_live_query_events_log_at_debug(self, activity_logger):
        activity_logger.log_live_query("u1", "artifacts/a/users/u1/subscriptions", opened=False)
        fields = activity_logger._logger.debug.call_args.kwargs
        assert fields["event_type"] == "live_query_closed"
        activity_logger._logger.info.assert_not_called()

    def test_saved_subscription_is_user_action(self, activity_logger):
        activity_logger.log_subscription_saved(
            ActivityEventType.SUBSCRIPTION_CREATED,
            "u1", "doc-1", "Netflix", create_correlation_id(),
        )
        fields = activity_logger._logger.info.call_args.kwargs
        assert fields["event_type"] == "subscription_created"
        assert fields["is_user_action"] is True

    def test_report_failure_logs_at_error(self, activity_logger):
        activity_logger.log_report_finished(
            "u1", create_correlation_id(), error_message="HTTP error! status: 500", status_code=500
        )
        fields = activity_logger._logger.error.call_args.kwargs
        assert fields["event_type"] == "report_failed"
        assert fields["details"] == {"status_code": 500}

    def test_logging_failure_returns_false(self, activity_logger):
        activity_logger._logger.info.side_effect = RuntimeError("handler broke")
        event = ActivityEvent(
            event_type=ActivityEventType.SESSION_STARTED,
            description="Signed in",
        )
        assert activity_logger.log(event) is False

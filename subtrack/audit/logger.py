"""
Activity Logger

Every significant action in the system is logged as a structured event:
sign-in, live-query lifecycle, each write, each report, and every failure.

The activity logger:
- Never raises (a logging failure must not break the page)
- Picks the log level from the event severity
- Supports correlation IDs to trace the steps of one user action
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from subtrack.models.activity import (
    ActivityEvent,
    ActivityEventType,
    ActivitySeverity,
)


_configured = False

_LOG_METHODS = {
    ActivitySeverity.DEBUG: "debug",
    ActivitySeverity.WARNING: "warning",
    ActivitySeverity.ERROR: "error",
    ActivitySeverity.CRITICAL: "error",
}


def configure_logging(level: str = "INFO") -> None:
    """
    Configure stdlib logging and structlog once per process.

    Safe to call repeatedly; Streamlit re-executes the page script on
    every interaction.
    """
    global _configured
    if _configured:
        return

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


class ActivityLogger:
    """
    Central activity logging service.

    One instance lives in the client context and is shared by the
    session, the store adapter hooks and the tracker.
    """

    def __init__(self, logger_name: str = "subtrack.activity"):
        self._logger = structlog.get_logger(logger_name)

    def log(self, event: ActivityEvent) -> bool:
        """
        Log an activity event.

        Returns False if the log call itself failed.
        """
        method = _LOG_METHODS.get(event.severity, "info")
        try:
            getattr(self._logger, method)("activity_event", **event.to_log_dict())
        except Exception:
            logging.getLogger(__name__).exception("activity logging failed")
            return False
        return True

    def _record(
        self,
        event_type: ActivityEventType,
        description: str,
        severity: ActivitySeverity = ActivitySeverity.INFO,
        **fields,
    ) -> None:
        self.log(ActivityEvent(
            event_type=event_type,
            severity=severity,
            description=description,
            **fields,
        ))

    def log_session_started(self, user_id: str, method: str) -> None:
        self._record(
            ActivityEventType.SESSION_STARTED,
            f"Signed in ({method})",
            user_id=user_id,
            details={"method": method},
        )

    def log_session_failed(self, error_message: str) -> None:
        self._record(
            ActivityEventType.SESSION_FAILED,
            "Sign-in failed",
            ActivitySeverity.CRITICAL,
            error_message=error_message,
        )

    def log_live_query(self, user_id: str, path: str, opened: bool = True) -> None:
        self._record(
            ActivityEventType.LIVE_QUERY_OPENED if opened else ActivityEventType.LIVE_QUERY_CLOSED,
            f"{'Listening' if opened else 'Stopped listening'} on {path}",
            ActivitySeverity.DEBUG,
            user_id=user_id,
        )

    def log_read_failed(self, user_id: str, error_message: str) -> None:
        self._record(
            ActivityEventType.READ_FAILED,
            "Live query reported an error",
            ActivitySeverity.ERROR,
            user_id=user_id,
            error_message=error_message,
        )

    def log_validation_failed(
        self,
        user_id: Optional[str],
        fields: list[str],
        correlation_id: UUID,
    ) -> None:
        self._record(
            ActivityEventType.VALIDATION_FAILED,
            f"Form rejected: {', '.join(fields)}",
            ActivitySeverity.WARNING,
            user_id=user_id,
            correlation_id=correlation_id,
            details={"fields": fields},
            is_user_action=True,
        )

    def log_subscription_saved(
        self,
        event_type: ActivityEventType,
        user_id: str,
        subscription_id: str,
        name: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a successful create, update or delete."""
        self._record(
            event_type,
            f"{event_type.value}: {name}" if name else event_type.value,
            user_id=user_id,
            entity_id=subscription_id,
            correlation_id=correlation_id,
            is_user_action=True,
        )

    def log_write_failed(
        self,
        user_id: str,
        operation: str,
        error_message: str,
        subscription_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self._record(
            ActivityEventType.WRITE_FAILED,
            f"Failed to {operation} subscription",
            ActivitySeverity.ERROR,
            user_id=user_id,
            entity_id=subscription_id,
            correlation_id=correlation_id,
            details={"operation": operation},
            error_message=error_message,
        )

    def log_report_requested(
        self,
        user_id: str,
        subscription_count: int,
        correlation_id: UUID,
    ) -> None:
        self._record(
            ActivityEventType.REPORT_REQUESTED,
            "Spending report requested",
            user_id=user_id,
            correlation_id=correlation_id,
            details={"subscription_count": subscription_count},
            is_user_action=True,
        )

    def log_report_finished(
        self,
        user_id: str,
        correlation_id: UUID,
        characters: Optional[int] = None,
        error_message: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        """Log the outcome of a report request; an error message marks a failure."""
        if error_message is None:
            self._record(
                ActivityEventType.REPORT_GENERATED,
                "Spending report generated",
                user_id=user_id,
                correlation_id=correlation_id,
                details={"characters": characters},
            )
            return
        self._record(
            ActivityEventType.REPORT_FAILED,
            "Spending report failed",
            ActivitySeverity.ERROR,
            user_id=user_id,
            correlation_id=correlation_id,
            details={"status_code": status_code},
            error_message=error_message,
        )

    def log_error(self, error_type: str, error_message: str) -> None:
        self._record(
            ActivityEventType.SYSTEM_ERROR,
            f"System error: {error_type}",
            ActivitySeverity.ERROR,
            error_message=error_message,
        )


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a form submit).
    Pass it through all subsequent operations.
    """
    return uuid4()

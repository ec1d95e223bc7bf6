"""
Activity Models for Subtrack

Every user action and every failure produces one ActivityEvent.
Events are emitted as structured log records; they give:
1. Traceability of every create/update/delete
2. Debugging information when an external service misbehaves
3. A correlation ID tying together the steps of one user action
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class ActivityEventType(str, Enum):
    """Types of events we record."""
    # Session
    SESSION_STARTED = "session_started"
    SESSION_FAILED = "session_failed"

    # Live query
    LIVE_QUERY_OPENED = "live_query_opened"
    LIVE_QUERY_CLOSED = "live_query_closed"
    READ_FAILED = "read_failed"

    # Form
    VALIDATION_FAILED = "validation_failed"

    # Persistence
    SUBSCRIPTION_CREATED = "subscription_created"
    SUBSCRIPTION_UPDATED = "subscription_updated"
    SUBSCRIPTION_DELETED = "subscription_deleted"
    WRITE_FAILED = "write_failed"

    # Reports
    REPORT_REQUESTED = "report_requested"
    REPORT_GENERATED = "report_generated"
    REPORT_FAILED = "report_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class ActivitySeverity(str, Enum):
    """Severity level for activity events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ActivityEvent(BaseModel):
    """A single recorded event."""

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: ActivityEventType
    severity: ActivitySeverity = ActivitySeverity.INFO

    user_id: Optional[str] = Field(
        default=None,
        description="Owner of the data this event touched"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Subscription document ID, when there is one"
    )
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID shared by all events of one user action"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

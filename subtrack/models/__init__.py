"""
Data Models Package

This package contains all Pydantic models used in Subtrack.
All data flowing through the system must conform to these schemas.
"""

from subtrack.models.subscription import (
    MONTHS_PER_YEAR,
    BillingCycle,
    ErrorKind,
    OperationResult,
    SpendTotals,
    Subscription,
    SubscriptionDraft,
    SubscriptionSnapshot,
)
from subtrack.models.activity import (
    ActivityEvent,
    ActivityEventType,
    ActivitySeverity,
)

__all__ = [
    # Subscription models
    "MONTHS_PER_YEAR",
    "BillingCycle",
    "ErrorKind",
    "OperationResult",
    "SpendTotals",
    "Subscription",
    "SubscriptionDraft",
    "SubscriptionSnapshot",
    # Activity models
    "ActivityEvent",
    "ActivityEventType",
    "ActivitySeverity",
]

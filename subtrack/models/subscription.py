"""
Core Data Models for Subtrack

These models define the schemas for everything that flows between the
document store, the form and the page:
1. Subscription - the only persisted entity
2. SubscriptionDraft - the payload of a create/update
3. SubscriptionSnapshot - one full emission of the live query
4. SpendTotals - the aggregate monthly/yearly spend
5. OperationResult - the outcome of a write or a report call

Field names on the wire follow the document store (`createdAt`);
Python code uses snake_case through pydantic aliases.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


MONTHS_PER_YEAR = 12


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class BillingCycle(str, Enum):
    """How often a subscription is charged."""
    MONTHLY = "monthly"
    YEARLY = "yearly"


class ErrorKind(str, Enum):
    """
    Failure taxonomy surfaced to the user.

    Every failure is reported through the same transient message;
    the kind tells the caller what went wrong without parsing text.
    """
    AUTH = "auth_failure"
    READ = "read_failure"
    VALIDATION = "validation_failure"
    WRITE = "write_failure"
    REPORT = "report_failure"
    BUSY = "busy"


# =============================================================================
# SUBSCRIPTION MODELS
# =============================================================================

class SubscriptionDraft(BaseModel):
    """
    The user-editable part of a subscription.

    This is what the form produces and what create/update send to the store.
    `createdAt` is deliberately absent: it is set once on create by the store
    and never rewritten on update.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name (e.g., Netflix)"
    )
    cost: float = Field(
        ...,
        gt=0,
        description="Amount charged per cycle"
    )
    cycle: BillingCycle = Field(
        default=BillingCycle.MONTHLY,
        description="Billing cycle"
    )

    def to_document(self) -> dict[str, Any]:
        """Fields as written to the document store."""
        return {
            "name": self.name,
            "cost": self.cost,
            "cycle": self.cycle.value,
        }


class Subscription(SubscriptionDraft):
    """
    A subscription as delivered by the live query.

    CRITICAL: instances are only ever built from a snapshot.
    The page never edits them in place.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        frozen=True,
    )

    id: str = Field(
        ...,
        min_length=1,
        description="Document ID assigned by the store"
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        alias="createdAt",
        description="When the subscription was created"
    )

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "Subscription":
        """
        Build a Subscription from a stored document and its ID.

        The document ID wins over a stray `id` field in the stored data.
        """
        fields = {k: v for k, v in data.items() if k != "id"}
        return cls(id=doc_id, **fields)

    @property
    def monthly_equivalent(self) -> float:
        """Cost normalized to one month."""
        if self.cycle == BillingCycle.YEARLY:
            return self.cost / MONTHS_PER_YEAR
        return self.cost

    @property
    def yearly_equivalent(self) -> float:
        """Cost normalized to one year."""
        if self.cycle == BillingCycle.MONTHLY:
            return self.cost * MONTHS_PER_YEAR
        return self.cost


class SubscriptionSnapshot(BaseModel):
    """
    A complete, point-in-time copy of one user's subscriptions.

    Snapshots replace each other; they are never merged.
    """

    subscriptions: list[Subscription] = Field(default_factory=list)
    received_at: datetime = Field(default_factory=utc_now)
    sequence: int = Field(
        default=0,
        ge=0,
        description="Position of this snapshot in the live query's stream"
    )

    @property
    def is_empty(self) -> bool:
        return not self.subscriptions


class SpendTotals(BaseModel):
    """Aggregate spend across a set of subscriptions."""

    monthly: float = 0.0
    yearly: float = 0.0
    count: int = Field(default=0, ge=0)


# =============================================================================
# OPERATION RESULTS
# =============================================================================

class OperationResult(BaseModel):
    """
    Explicit outcome of a user-triggered operation.

    Writes and reports never retry on their own; the caller
    inspects this and decides what to do next.
    """

    ok: bool
    message: str
    error_kind: Optional[ErrorKind] = None
    subscription_id: Optional[str] = None

    @classmethod
    def success(
        cls,
        message: str,
        subscription_id: Optional[str] = None,
    ) -> "OperationResult":
        return cls(ok=True, message=message, subscription_id=subscription_id)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        subscription_id: Optional[str] = None,
    ) -> "OperationResult":
        return cls(
            ok=False,
            message=message,
            error_kind=kind,
            subscription_id=subscription_id,
        )

"""
Spend Aggregation

Deterministic, side-effect-free totals over a subscription set.
Recomputed from scratch on every snapshot; never updated incrementally.

Rounding is a display concern: totals keep full float precision and
`format_amount` rounds to two decimals when rendering.
"""

from typing import Iterable, Optional

from subtrack.models.subscription import (
    SpendTotals,
    Subscription,
    SubscriptionSnapshot,
)


def compute_totals(subscriptions: Iterable[Subscription]) -> SpendTotals:
    """
    Sum monthly- and yearly-equivalent cost across subscriptions.

    An empty set yields exactly zero for both totals.
    """
    monthly = 0.0
    yearly = 0.0
    count = 0
    for subscription in subscriptions:
        monthly += subscription.monthly_equivalent
        yearly += subscription.yearly_equivalent
        count += 1
    return SpendTotals(monthly=monthly, yearly=yearly, count=count)


def totals_for_snapshot(snapshot: Optional[SubscriptionSnapshot]) -> SpendTotals:
    """Totals for a snapshot; no snapshot yet means nothing to sum."""
    if snapshot is None:
        return SpendTotals()
    return compute_totals(snapshot.subscriptions)


def format_amount(amount: float, currency_symbol: str = "₹") -> str:
    """Render an amount with two decimals, e.g. ₹624.92."""
    return f"{currency_symbol}{amount:.2f}"

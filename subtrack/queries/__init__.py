"""Spend aggregation package."""

from subtrack.queries.totals import compute_totals, format_amount, totals_for_snapshot

__all__ = ["compute_totals", "format_amount", "totals_for_snapshot"]

"""AI agents package."""

from subtrack.agents.report_agent import (
    REPORT_FAILURE_MESSAGE,
    ReportFailureError,
    SpendingReport,
    SpendingReportAgent,
    extract_report_text,
)

__all__ = [
    "REPORT_FAILURE_MESSAGE",
    "ReportFailureError",
    "SpendingReport",
    "SpendingReportAgent",
    "extract_report_text",
]

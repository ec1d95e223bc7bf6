"""
Spending Report Agent

Turns the user's subscriptions into a fixed advisor prompt and asks the
Gemini `generateContent` endpoint for a friendly spending summary.

CRITICAL BOUNDARIES:
- The prompt is built ONLY from the current snapshot and its totals
- One request per click: no caching, no retry
- Any non-2xx status, transport error or missing text is a failure;
  a partial report is never shown
- The returned text is stored verbatim
"""

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

import httpx
from pydantic import BaseModel, Field

from subtrack.config import get_settings
from subtrack.config.settings import GeminiSettings
from subtrack.models.subscription import SpendTotals, Subscription


REPORT_FAILURE_MESSAGE = "Failed to generate report. Please try again later."

PROMPT_PREAMBLE = (
    "You are a financial advisor. Here is a list of a user's subscriptions and "
    "their total monthly cost. Generate a report that includes a summary of their "
    "spending, identifies their most expensive subscriptions, and offers 3 to 4 "
    "actionable, friendly tips on how to manage or reduce their subscription "
    "spending. Make the tone encouraging and helpful. The subscriptions are:"
)


class ReportFailureError(Exception):
    """The text-generation endpoint failed or returned no text."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class SpendingReport(BaseModel):
    """A generated report, kept exactly as returned."""

    text: str = Field(..., min_length=1)
    generated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    model_name: str


def extract_report_text(body: Any) -> Optional[str]:
    """
    Read `candidates[0].content.parts[0].text` from a response body.

    Returns None if any step of the path is missing or the wrong shape.
    """
    try:
        text = body["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(text, str) or not text:
        return None
    return text


class SpendingReportAgent:
    """
    Client for the report endpoint.

    Args:
        settings: Gemini settings; loaded from the environment if None
        transport: Optional httpx transport (tests use httpx.MockTransport)
        currency_symbol: Symbol used in the prompt's amounts
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        currency_symbol: str = "₹",
    ):
        self._settings = settings or get_settings().gemini
        self._transport = transport
        self._currency = currency_symbol

    def build_prompt(
        self,
        subscriptions: Iterable[Subscription],
        totals: SpendTotals,
    ) -> str:
        """Build the fixed advisor prompt for the given subscriptions."""
        lines = [
            f"Name: {sub.name}, Cost: {self._currency}{sub.cost:.2f}, Cycle: {sub.cycle.value}"
            for sub in subscriptions
        ]
        return (
            f"{PROMPT_PREAMBLE}\n\n"
            + "\n".join(lines)
            + f"\n\nTotal monthly cost: {self._currency}{totals.monthly:.2f}"
            + f"\nTotal yearly cost: {self._currency}{totals.yearly:.2f}"
        )

    async def generate_report(
        self,
        subscriptions: Iterable[Subscription],
        totals: SpendTotals,
    ) -> SpendingReport:
        """
        Request a spending report.

        Raises:
            ReportFailureError: On transport errors, non-2xx responses,
                invalid JSON or a missing text field
        """
        prompt = self.build_prompt(subscriptions, totals)
        payload = {"contents": [{"parts": [{"text": prompt}]}]}

        try:
            async with httpx.AsyncClient(
                timeout=self._settings.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self._settings.endpoint,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                    params={"key": self._settings.api_key},
                )
        except httpx.HTTPError as e:
            raise ReportFailureError(f"Report request failed: {e}") from e

        if not response.is_success:
            raise ReportFailureError(
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ReportFailureError(
                "Report endpoint returned invalid JSON",
                status_code=response.status_code,
            ) from e

        text = extract_report_text(body)
        if text is None:
            raise ReportFailureError(
                "No text returned from the report endpoint.",
                status_code=response.status_code,
            )

        return SpendingReport(text=text, model_name=self._settings.model_name)

"""
Subscription Form Controller

Holds the transient state of the add/edit form and turns it into a
SubscriptionDraft. The form never writes anything itself: the tracker
validates it, dispatches the write and then resets it.

Validation NEVER silently fixes input. An empty name, an empty cost or
a cost that is not a positive number is reported back to the user and
no write is issued.
"""

import math
from typing import Optional

from pydantic import BaseModel, ValidationError

from subtrack.models.subscription import BillingCycle, Subscription, SubscriptionDraft


EMPTY_FIELDS_MESSAGE = "Please fill in both the name and cost."
INVALID_COST_MESSAGE = "Please enter a cost greater than zero."
INVALID_DETAILS_MESSAGE = "Please check the subscription details and try again."


class ValidationFailureError(Exception):
    """The form is missing required fields or holds an unusable value."""

    def __init__(self, message: str, fields: list[str]):
        self.fields = fields
        super().__init__(message)


def format_cost_input(cost: float) -> str:
    """Render a stored cost back into the form's text field (500.0 -> "500")."""
    if float(cost).is_integer():
        return str(int(cost))
    return str(cost)


class SubscriptionForm(BaseModel):
    """
    Form state: name, cost as typed, cycle and the optional edit target.

    Defaults are the empty "add" form.
    """

    name: str = ""
    cost: str = ""
    cycle: BillingCycle = BillingCycle.MONTHLY
    editing_id: Optional[str] = None

    @property
    def is_editing(self) -> bool:
        return self.editing_id is not None

    @property
    def is_blank(self) -> bool:
        return self == SubscriptionForm()

    def start_edit(self, subscription: Subscription) -> None:
        """Copy an existing subscription into the form and target it."""
        self.name = subscription.name
        self.cost = format_cost_input(subscription.cost)
        self.cycle = subscription.cycle
        self.editing_id = subscription.id

    def cancel_edit(self) -> None:
        """Drop the edit target and clear the fields. Nothing is written."""
        self.reset()

    def reset(self) -> None:
        self.name = ""
        self.cost = ""
        self.cycle = BillingCycle.MONTHLY
        self.editing_id = None

    def validate_draft(self) -> SubscriptionDraft:
        """
        Build the write payload from the current fields.

        Raises:
            ValidationFailureError: If a required field is empty or the
                cost is not a positive number
        """
        missing = []
        if not self.name.strip():
            missing.append("name")
        if not self.cost.strip():
            missing.append("cost")
        if missing:
            raise ValidationFailureError(EMPTY_FIELDS_MESSAGE, missing)

        try:
            cost = float(self.cost.strip())
        except ValueError:
            raise ValidationFailureError(INVALID_COST_MESSAGE, ["cost"])
        if not math.isfinite(cost) or cost <= 0:
            raise ValidationFailureError(INVALID_COST_MESSAGE, ["cost"])

        try:
            return SubscriptionDraft(name=self.name, cost=cost, cycle=self.cycle)
        except ValidationError as e:
            fields = [str(err["loc"][0]) for err in e.errors() if err.get("loc")]
            raise ValidationFailureError(INVALID_DETAILS_MESSAGE, fields or ["name"])

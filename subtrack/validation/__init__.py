"""Form validation package."""

from subtrack.validation.form import (
    EMPTY_FIELDS_MESSAGE,
    INVALID_COST_MESSAGE,
    SubscriptionForm,
    ValidationFailureError,
    format_cost_input,
)

__all__ = [
    "EMPTY_FIELDS_MESSAGE",
    "INVALID_COST_MESSAGE",
    "SubscriptionForm",
    "ValidationFailureError",
    "format_cost_input",
]

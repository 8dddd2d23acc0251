"""Error taxonomy for provider calls and translation from Stripe errors.

Callers never see raw ``stripe`` exceptions. Each Stripe error is re-raised as
one of the classes below, keeping the provider's message, code, HTTP status
and request id untouched and chaining the original as ``__cause__``.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

import stripe

# Stripe error codes reported when the object exists but its state forbids
# the requested transition.
CONFLICT_CODES = frozenset(
    {
        "charge_already_captured",
        "charge_already_refunded",
        "invoice_not_editable",
        "payment_intent_unexpected_state",
        "resource_already_exists",
        "setup_intent_unexpected_state",
    }
)

NOT_FOUND_CODES = frozenset({"resource_missing", "invoice_upcoming_none"})


class BillingError(Exception):
    """Base class for every error surfaced by the billing service."""

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        http_status: Optional[int] = None,
        request_id: Optional[str] = None,
        provider_error: Optional[stripe.StripeError] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.http_status = http_status
        self.request_id = request_id
        self.provider_error = provider_error


class NotFoundError(BillingError):
    """Referenced entity does not exist at the provider."""


class ValidationError(BillingError):
    """Request payload was malformed or rejected."""


class ConflictError(BillingError):
    """Entity is in a state that forbids the requested transition."""


class ProviderError(BillingError):
    """Transport fault, rate limit, or provider-side failure."""


def classify(error: stripe.StripeError) -> type[BillingError]:
    """Pick the billing error class for a Stripe error."""
    if isinstance(error, stripe.IdempotencyError):
        return ConflictError
    if isinstance(error, stripe.InvalidRequestError):
        if error.http_status == 404 or error.code in NOT_FOUND_CODES:
            return NotFoundError
        if error.http_status == 409 or error.code in CONFLICT_CODES:
            return ConflictError
        return ValidationError
    return ProviderError


def translate(error: stripe.StripeError) -> BillingError:
    """Build the billing error corresponding to ``error``."""
    error_class = classify(error)
    return error_class(
        error.user_message or str(error),
        code=error.code,
        http_status=error.http_status,
        request_id=error.request_id,
        provider_error=error,
    )


@contextmanager
def translate_stripe_errors() -> Iterator[None]:
    """Re-raise any Stripe error inside the block as a BillingError."""
    try:
        yield
    except stripe.StripeError as e:
        raise translate(e) from e

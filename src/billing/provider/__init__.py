"""Payment provider collaborators and error translation."""

from billing.provider.errors import (
    BillingError,
    ConflictError,
    NotFoundError,
    ProviderError,
    ValidationError,
)
from billing.provider.gateways import ProviderGateways
from billing.provider.stripe_gateways import configure_stripe, stripe_gateways

__all__ = [
    "BillingError",
    "ConflictError",
    "NotFoundError",
    "ProviderError",
    "ProviderGateways",
    "ValidationError",
    "configure_stripe",
    "stripe_gateways",
]

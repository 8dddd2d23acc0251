"""Narrow collaborator interfaces, one per provider resource.

The facade and the reconciler depend only on these protocols, so each
resource can be substituted independently (fakes in tests, Stripe in
production). Every method is a single provider round trip.
"""

from dataclasses import dataclass
from typing import Any, Protocol


class SubscriptionGateway(Protocol):
    async def list(self, *, limit: int) -> Any: ...

    async def get(self, subscription_id: str) -> Any: ...

    async def update(self, subscription_id: str, /, **options: Any) -> Any: ...

    async def cancel(self, subscription_id: str, /, **options: Any) -> Any: ...

    async def create(self, **options: Any) -> Any: ...


class SubscriptionItemGateway(Protocol):
    async def create(self, **options: Any) -> Any: ...

    async def delete(self, item_id: str) -> Any: ...


class InvoiceGateway(Protocol):
    async def get(self, invoice_id: str, *, expand: list[str]) -> Any: ...

    async def pay(self, invoice_id: str) -> Any: ...

    async def upcoming(self, *, customer: str, subscription: str) -> Any:
        """Fetch the not-yet-finalized invoice preview for a subscription."""
        ...


class InvoiceItemGateway(Protocol):
    async def delete(self, invoice_item_id: str) -> Any: ...


class PaymentIntentGateway(Protocol):
    async def get(self, payment_intent_id: str, *, expand: list[str]) -> Any: ...

    async def create(self, **options: Any) -> Any: ...

    async def update(self, payment_intent_id: str, /, **options: Any) -> Any: ...

    async def confirm(self, payment_intent_id: str) -> Any: ...


class RefundGateway(Protocol):
    async def create(self, **options: Any) -> Any: ...


class PaymentMethodGateway(Protocol):
    async def get(self, payment_method_id: str) -> Any: ...


class ChargeGateway(Protocol):
    async def get(self, charge_id: str) -> Any: ...

    async def list(self, *, customer: str, limit: int) -> Any: ...


class ConnectionTokenGateway(Protocol):
    async def create(self) -> Any:
        """Issue a short-lived token for pairing a terminal reader."""
        ...


class CustomerGateway(Protocol):
    async def get(self, customer_id: str, *, expand: list[str] | None = None) -> Any: ...


@dataclass
class ProviderGateways:
    """The full set of provider collaborators used by the service."""

    subscriptions: SubscriptionGateway
    subscription_items: SubscriptionItemGateway
    invoices: InvoiceGateway
    invoice_items: InvoiceItemGateway
    payment_intents: PaymentIntentGateway
    refunds: RefundGateway
    payment_methods: PaymentMethodGateway
    charges: ChargeGateway
    connection_tokens: ConnectionTokenGateway
    customers: CustomerGateway

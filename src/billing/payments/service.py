"""Payments facade over the provider gateways.

Every operation is a single provider call with light parameter shaping,
except ``update_subscription``, which runs the reconciler.
"""

import logging
from typing import Any, Optional

from billing.config.settings import AppConfig
from billing.db.pool import get_pool
from billing.payments.locks import (
    AdvisorySubscriptionLocks,
    LocalSubscriptionLocks,
    NoSubscriptionLocks,
    SubscriptionLocks,
)
from billing.payments.reconcile import SubscriptionReconciler
from billing.provider.gateways import ProviderGateways
from billing.provider.stripe_gateways import stripe_gateways

logger = logging.getLogger(__name__)

INVOICE_EXPANSIONS = [
    "charge",
    "payment_intent",
    "subscription",
    "subscription.default_payment_method",
]
PAYMENT_INTENT_EXPANSIONS = ["payment_method"]
CUSTOMER_SOURCES_EXPANSIONS = ["sources"]


class PaymentsService:
    """Subscription, invoice, payment, refund, terminal and customer operations."""

    def __init__(
        self,
        gateways: ProviderGateways,
        locks: Optional[SubscriptionLocks] = None,
        subscription_list_limit: int = 10,
        customer_charges_limit: int = 1,
    ) -> None:
        self.gateways = gateways
        self.subscription_list_limit = subscription_list_limit
        self.customer_charges_limit = customer_charges_limit
        self.reconciler = SubscriptionReconciler(
            subscriptions=gateways.subscriptions,
            subscription_items=gateways.subscription_items,
            invoices=gateways.invoices,
            invoice_items=gateways.invoice_items,
            locks=locks,
        )

    # Subscriptions

    async def list_subscriptions(self, limit: Optional[int] = None) -> Any:
        return await self.gateways.subscriptions.list(
            limit=limit or self.subscription_list_limit
        )

    async def get_subscription(self, subscription_id: str) -> Any:
        logger.debug(f"Fetching subscription {subscription_id}")
        return await self.gateways.subscriptions.get(subscription_id)

    async def update_subscription(self, subscription_id: str, /, **options: Any) -> Any:
        """Update a subscription and clean up the items it supersedes.

        See SubscriptionReconciler.reconcile. Proration is always disabled.
        """
        return await self.reconciler.reconcile(subscription_id, options)

    async def cancel_subscription(self, subscription_id: str) -> Any:
        """Cancel immediately, with no proration credit and no final invoice."""
        subscription = await self.gateways.subscriptions.cancel(
            subscription_id,
            prorate=False,
            invoice_now=False,
        )
        logger.info(f"Canceled subscription {subscription_id}")
        return subscription

    async def cancel_subscription_at_period_end(self, subscription_id: str) -> Any:
        """Schedule cancellation for the end of the current billing period."""
        subscription = await self.gateways.subscriptions.update(
            subscription_id,
            cancel_at_period_end=True,
        )
        logger.info(f"Subscription {subscription_id} will cancel at period end")
        return subscription

    async def create_subscription(self, **options: Any) -> Any:
        subscription = await self.gateways.subscriptions.create(**options)
        logger.info(f"Created subscription {subscription['id']}")
        return subscription

    async def create_subscription_item(self, **options: Any) -> Any:
        return await self.gateways.subscription_items.create(**options)

    async def delete_subscription_item(self, item_id: str) -> None:
        await self.gateways.subscription_items.delete(item_id)
        logger.info(f"Deleted subscription item {item_id}")

    # Invoices

    async def get_invoice(self, invoice_id: str) -> Any:
        """Fetch an invoice with its charge, payment intent and subscription."""
        return await self.gateways.invoices.get(invoice_id, expand=INVOICE_EXPANSIONS)

    async def pay_invoice(self, invoice_id: str) -> Any:
        invoice = await self.gateways.invoices.pay(invoice_id)
        logger.info(f"Paid invoice {invoice_id}")
        return invoice

    # Payment intents

    async def get_payment_intent(self, payment_intent_id: str) -> Any:
        return await self.gateways.payment_intents.get(
            payment_intent_id, expand=PAYMENT_INTENT_EXPANSIONS
        )

    async def create_payment_intent(self, **options: Any) -> Any:
        return await self.gateways.payment_intents.create(**options)

    async def update_payment_intent(self, payment_intent_id: str, /, **options: Any) -> Any:
        return await self.gateways.payment_intents.update(payment_intent_id, **options)

    async def confirm_payment_intent(self, payment_intent_id: str) -> Any:
        intent = await self.gateways.payment_intents.confirm(payment_intent_id)
        logger.info(f"Confirmed payment intent {payment_intent_id}")
        return intent

    # Refunds

    async def create_refund(self, **options: Any) -> Any:
        refund = await self.gateways.refunds.create(**options)
        logger.info(f"Created refund {refund['id']}")
        return refund

    # Payment methods

    async def get_payment_method(self, payment_method_id: str) -> Any:
        return await self.gateways.payment_methods.get(payment_method_id)

    async def get_card_brand(self, payment_method_id: str) -> Any:
        """Card details (brand, last4, expiry) of a payment method.

        Returns None for payment methods that are not cards.
        """
        payment_method = await self.get_payment_method(payment_method_id)
        try:
            return payment_method["card"]
        except KeyError:
            return None

    # Charges

    async def get_charge(self, charge_id: str) -> Any:
        return await self.gateways.charges.get(charge_id)

    async def list_customer_charges(self, customer_id: str, limit: Optional[int] = None) -> Any:
        return await self.gateways.charges.list(
            customer=customer_id,
            limit=limit or self.customer_charges_limit,
        )

    # Terminal

    async def create_connection_token(self) -> Any:
        """Issue a connection token for pairing a terminal reader."""
        return await self.gateways.connection_tokens.create()

    # Customers

    async def get_customer(self, customer_id: str) -> Any:
        return await self.gateways.customers.get(customer_id)

    async def get_customer_payment_sources(self, customer_id: str) -> Any:
        return await self.gateways.customers.get(
            customer_id, expand=CUSTOMER_SOURCES_EXPANSIONS
        )


def build_locks(config: AppConfig) -> SubscriptionLocks:
    """Pick the reconciliation lock configured by reconcile_lock."""
    if config.reconcile_lock == "advisory":
        return AdvisorySubscriptionLocks(get_pool)
    if config.reconcile_lock == "local":
        return LocalSubscriptionLocks()
    logger.warning("Reconciliation lock disabled - callers must not overlap updates")
    return NoSubscriptionLocks()


def build_service(config: AppConfig, gateways: Optional[ProviderGateways] = None) -> PaymentsService:
    """Wire the facade with Stripe gateways and the configured lock."""
    return PaymentsService(
        gateways=gateways or stripe_gateways(),
        locks=build_locks(config),
        subscription_list_limit=config.subscription_list_limit,
        customer_charges_limit=config.customer_charges_limit,
    )

"""Stripe-backed implementations of the provider gateways."""

import logging
from typing import Any

import stripe

from billing.config.settings import AppConfig
from billing.provider.errors import translate_stripe_errors
from billing.provider.gateways import ProviderGateways

logger = logging.getLogger(__name__)


def configure_stripe(config: AppConfig) -> None:
    """Apply the provider credential and SDK settings process-wide.

    Raises:
        ValueError: If stripe_secret is not configured
    """
    secret = config.stripe_secret.get_secret_value()
    if not secret:
        raise ValueError("stripe_secret not configured")

    stripe.api_key = secret
    if config.stripe_api_version:
        stripe.api_version = config.stripe_api_version
    stripe.max_network_retries = config.stripe_max_network_retries
    # All provider calls are async; share the aiohttp stack with the API server.
    stripe.default_http_client = stripe.AIOHTTPClient()

    logger.info(
        f"Stripe configured: api_version={config.stripe_api_version or 'account default'}, "
        f"max_network_retries={config.stripe_max_network_retries}"
    )


class StripeSubscriptions:
    async def list(self, *, limit: int) -> stripe.ListObject:
        with translate_stripe_errors():
            return await stripe.Subscription.list_async(limit=limit)

    async def get(self, subscription_id: str) -> stripe.Subscription:
        with translate_stripe_errors():
            return await stripe.Subscription.retrieve_async(subscription_id)

    async def update(self, subscription_id: str, /, **options: Any) -> stripe.Subscription:
        with translate_stripe_errors():
            return await stripe.Subscription.modify_async(subscription_id, **options)

    async def cancel(self, subscription_id: str, /, **options: Any) -> stripe.Subscription:
        with translate_stripe_errors():
            return await stripe.Subscription.cancel_async(subscription_id, **options)

    async def create(self, **options: Any) -> stripe.Subscription:
        with translate_stripe_errors():
            return await stripe.Subscription.create_async(**options)


class StripeSubscriptionItems:
    async def create(self, **options: Any) -> stripe.SubscriptionItem:
        with translate_stripe_errors():
            return await stripe.SubscriptionItem.create_async(**options)

    async def delete(self, item_id: str) -> stripe.SubscriptionItem:
        with translate_stripe_errors():
            return await stripe.SubscriptionItem.delete_async(item_id)


class StripeInvoices:
    async def get(self, invoice_id: str, *, expand: list[str]) -> stripe.Invoice:
        with translate_stripe_errors():
            return await stripe.Invoice.retrieve_async(invoice_id, expand=expand)

    async def pay(self, invoice_id: str) -> stripe.Invoice:
        with translate_stripe_errors():
            return await stripe.Invoice.pay_async(invoice_id)

    async def upcoming(self, *, customer: str, subscription: str) -> stripe.Invoice:
        # Invoice previews replace the retired "upcoming invoice" endpoint and
        # return the same draft shape.
        with translate_stripe_errors():
            return await stripe.Invoice.create_preview_async(
                customer=customer,
                subscription=subscription,
            )


class StripeInvoiceItems:
    async def delete(self, invoice_item_id: str) -> stripe.InvoiceItem:
        with translate_stripe_errors():
            return await stripe.InvoiceItem.delete_async(invoice_item_id)


class StripePaymentIntents:
    async def get(self, payment_intent_id: str, *, expand: list[str]) -> stripe.PaymentIntent:
        with translate_stripe_errors():
            return await stripe.PaymentIntent.retrieve_async(payment_intent_id, expand=expand)

    async def create(self, **options: Any) -> stripe.PaymentIntent:
        with translate_stripe_errors():
            return await stripe.PaymentIntent.create_async(**options)

    async def update(self, payment_intent_id: str, /, **options: Any) -> stripe.PaymentIntent:
        with translate_stripe_errors():
            return await stripe.PaymentIntent.modify_async(payment_intent_id, **options)

    async def confirm(self, payment_intent_id: str) -> stripe.PaymentIntent:
        with translate_stripe_errors():
            return await stripe.PaymentIntent.confirm_async(payment_intent_id)


class StripeRefunds:
    async def create(self, **options: Any) -> stripe.Refund:
        with translate_stripe_errors():
            return await stripe.Refund.create_async(**options)


class StripePaymentMethods:
    async def get(self, payment_method_id: str) -> stripe.PaymentMethod:
        with translate_stripe_errors():
            return await stripe.PaymentMethod.retrieve_async(payment_method_id)


class StripeCharges:
    async def get(self, charge_id: str) -> stripe.Charge:
        with translate_stripe_errors():
            return await stripe.Charge.retrieve_async(charge_id)

    async def list(self, *, customer: str, limit: int) -> stripe.ListObject:
        with translate_stripe_errors():
            return await stripe.Charge.list_async(customer=customer, limit=limit)


class StripeConnectionTokens:
    async def create(self) -> stripe.terminal.ConnectionToken:
        with translate_stripe_errors():
            return await stripe.terminal.ConnectionToken.create_async()


class StripeCustomers:
    async def get(self, customer_id: str, *, expand: list[str] | None = None) -> stripe.Customer:
        params = {"expand": expand} if expand else {}
        with translate_stripe_errors():
            return await stripe.Customer.retrieve_async(customer_id, **params)


def stripe_gateways() -> ProviderGateways:
    """Build the gateway bundle backed by the Stripe SDK."""
    return ProviderGateways(
        subscriptions=StripeSubscriptions(),
        subscription_items=StripeSubscriptionItems(),
        invoices=StripeInvoices(),
        invoice_items=StripeInvoiceItems(),
        payment_intents=StripePaymentIntents(),
        refunds=StripeRefunds(),
        payment_methods=StripePaymentMethods(),
        charges=StripeCharges(),
        connection_tokens=StripeConnectionTokens(),
        customers=StripeCustomers(),
    )

"""Subscription update with post-update cleanup of stale items.

Changing a subscription's price leaves the previous subscription item and its
pending invoice item behind. After every update, the reconciler keeps only
the newest subscription item and the invoice item of the last line on the
upcoming invoice, deleting the rest.
"""

import logging
from typing import Any, Mapping, Optional

from billing.payments.locks import NoSubscriptionLocks, SubscriptionLocks
from billing.provider.gateways import (
    InvoiceGateway,
    InvoiceItemGateway,
    SubscriptionGateway,
    SubscriptionItemGateway,
)

logger = logging.getLogger(__name__)


def _field(obj: Any, key: str) -> Any:
    """Read ``key`` from a provider object or mapping, None when absent."""
    if obj is None:
        return None
    try:
        return obj[key]
    except (KeyError, TypeError):
        return None


def _object_id(value: Any) -> Optional[str]:
    """Id of a reference that may be a bare id or an expanded object."""
    if value is None or isinstance(value, str):
        return value
    return _field(value, "id")


def latest_item(items: list) -> Any:
    """Newest subscription item; equal timestamps resolve to the greatest id."""
    if not items:
        return None
    return max(items, key=lambda item: (_field(item, "created") or 0, _field(item, "id") or ""))


def invoice_item_id(line: Any) -> Optional[str]:
    """Invoice item behind an invoice line.

    Older API versions expose it as ``line.invoice_item``; newer ones nest it
    under ``line.parent.invoice_item_details.invoice_item``.
    """
    direct = _field(line, "invoice_item")
    if direct is not None:
        return _object_id(direct)
    details = _field(_field(line, "parent"), "invoice_item_details")
    return _object_id(_field(details, "invoice_item"))


class SubscriptionReconciler:
    """Applies a subscription update and prunes what it leaves behind."""

    def __init__(
        self,
        subscriptions: SubscriptionGateway,
        subscription_items: SubscriptionItemGateway,
        invoices: InvoiceGateway,
        invoice_items: InvoiceItemGateway,
        locks: Optional[SubscriptionLocks] = None,
    ) -> None:
        self._subscriptions = subscriptions
        self._subscription_items = subscription_items
        self._invoices = invoices
        self._invoice_items = invoice_items
        self._locks = locks or NoSubscriptionLocks()

    async def reconcile(self, subscription_id: str, options: Mapping[str, Any]) -> Any:
        """Update a subscription without proration, then remove stale items.

        Steps:
            1. Submit the update with proration_behavior forced to "none"
            2. Re-read the subscription and delete every item but the newest
            3. Delete every invoice item on the upcoming invoice except the
               one behind its last invoice-item line

        Args:
            subscription_id: Subscription to update
            options: Update parameters accepted by the provider

        Returns:
            The subscription as returned by the update call (pre-cleanup)

        Raises:
            NotFoundError: If the subscription does not exist
            BillingError: If any provider call is rejected. Cleanup stops at
                the first failed delete; remaining stale items are left for a
                later pass.
        """
        params = {**options, "proration_behavior": "none"}

        async with self._locks.hold(subscription_id):
            updated = await self._subscriptions.update(subscription_id, **params)
            logger.info(f"Updated subscription {subscription_id} without proration")

            subscription = await self._subscriptions.get(subscription_id)
            await self._prune_subscription_items(subscription)

            customer_id = _object_id(_field(subscription, "customer"))
            await self._prune_upcoming_invoice_lines(customer_id, _field(subscription, "id"))

        return updated

    async def _prune_subscription_items(self, subscription: Any) -> None:
        items = list(_field(_field(subscription, "items"), "data") or [])
        keep = latest_item(items)
        if keep is None:
            logger.debug(f"Subscription {_field(subscription, 'id')} has no items")
            return

        stale = [item["id"] for item in items if item["id"] != keep["id"]]
        await self._delete_all(
            stale,
            self._subscription_items.delete,
            f"subscription item of {_field(subscription, 'id')}",
        )

    async def _prune_upcoming_invoice_lines(
        self, customer_id: Optional[str], subscription_id: str
    ) -> None:
        invoice = await self._invoices.upcoming(
            customer=customer_id,
            subscription=subscription_id,
        )
        lines = _field(invoice, "lines")
        data = list(_field(lines, "data") or [])
        if not data:
            logger.debug(f"Upcoming invoice for {subscription_id} has no lines")
            return

        if _field(lines, "has_more"):
            logger.warning(
                f"Upcoming invoice for {subscription_id} has more than "
                f"{len(data)} lines; only the first page is pruned"
            )

        # Subscription lines carry no invoice item and are not deletable here.
        pending = [invoice_item_id(line) for line in data]
        pending = [item_id for item_id in pending if item_id is not None]
        if not pending:
            logger.debug(f"Upcoming invoice for {subscription_id} has no invoice items")
            return

        keep = pending[-1]
        stale = list(dict.fromkeys(item_id for item_id in pending if item_id != keep))
        await self._delete_all(
            stale,
            self._invoice_items.delete,
            f"upcoming invoice item of {subscription_id}",
        )

    async def _delete_all(self, ids: list[str], delete, label: str) -> None:
        for index, object_id in enumerate(ids):
            try:
                await delete(object_id)
            except Exception:
                logger.error(
                    f"Failed to delete {label} {object_id}; "
                    f"left in place: {ids[index:]}"
                )
                raise
            logger.info(f"Deleted {label}: {object_id}")

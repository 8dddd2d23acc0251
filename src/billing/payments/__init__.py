"""Payments facade, subscription reconciliation and HTTP API.

Wraps the Stripe subscription, invoice, payment intent, refund, payment
method, charge, terminal and customer operations behind one service, and
cleans up stale subscription and invoice items after subscription updates.
"""

from billing.payments.reconcile import SubscriptionReconciler
from billing.payments.service import PaymentsService, build_service

__all__ = [
    "PaymentsService",
    "SubscriptionReconciler",
    "build_service",
]

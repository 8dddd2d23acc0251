"""Stripe-backed payments service with subscription reconciliation."""

__version__ = "0.1.0"

"""Pytest fixtures providing in-memory provider gateways."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from billing.provider.gateways import ProviderGateways


def _gateway(*methods: str) -> MagicMock:
    gateway = MagicMock()
    for name in methods:
        setattr(gateway, name, AsyncMock(name=name))
    return gateway


@pytest.fixture
def gateways() -> ProviderGateways:
    """Gateway bundle whose every provider call is an AsyncMock."""
    return ProviderGateways(
        subscriptions=_gateway("list", "get", "update", "cancel", "create"),
        subscription_items=_gateway("create", "delete"),
        invoices=_gateway("get", "pay", "upcoming"),
        invoice_items=_gateway("delete"),
        payment_intents=_gateway("get", "create", "update", "confirm"),
        refunds=_gateway("create"),
        payment_methods=_gateway("get"),
        charges=_gateway("get", "list"),
        connection_tokens=_gateway("create"),
        customers=_gateway("get"),
    )

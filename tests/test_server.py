"""Tests for the payments HTTP API."""

import pytest
from aiohttp import test_utils

from billing.payments.server import create_app
from billing.payments.service import PaymentsService
from billing.provider.errors import ConflictError, NotFoundError, ProviderError
from factories import make_invoice, make_subscription


@pytest.fixture
def service(gateways) -> PaymentsService:
    return PaymentsService(gateways)


async def _client(service) -> test_utils.TestClient:
    client = test_utils.TestClient(test_utils.TestServer(create_app(service)))
    await client.start_server()
    return client


class TestRoutes:
    """Test route registration."""

    def test_routes_registered(self, service):
        app = create_app(service)

        routes = {
            (r.method, r.resource.canonical)
            for r in app.router.routes()
            if hasattr(r.resource, "canonical")
        }

        assert ("POST", "/subscriptions/{id}") in routes
        assert ("DELETE", "/subscriptions/{id}") in routes
        assert ("POST", "/terminal/connection-tokens") in routes


class TestSubscriptionEndpoints:
    """Test subscription endpoints."""

    @pytest.mark.asyncio
    async def test_list_subscriptions_with_limit(self, service, gateways):
        gateways.subscriptions.list.return_value = {"object": "list", "data": [{"id": "sub_123"}]}
        client = await _client(service)
        try:
            resp = await client.get("/subscriptions", params={"limit": "5"})
            body = await resp.json()
        finally:
            await client.close()

        assert resp.status == 200
        assert body["data"][0]["id"] == "sub_123"
        gateways.subscriptions.list.assert_awaited_once_with(limit=5)

    @pytest.mark.asyncio
    async def test_invalid_limit_rejected(self, service, gateways):
        client = await _client(service)
        try:
            resp = await client.get("/subscriptions", params={"limit": "many"})
            body = await resp.json()
        finally:
            await client.close()

        assert resp.status == 400
        assert body["error"]["type"] == "ValidationError"
        gateways.subscriptions.list.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_runs_reconciliation(self, service, gateways):
        gateways.subscriptions.update.return_value = {"id": "sub_123", "status": "active"}
        gateways.subscriptions.get.return_value = make_subscription(
            "sub_123", [("item_1", 100), ("item_2", 200)]
        )
        gateways.invoices.upcoming.return_value = make_invoice([("line_2", "item_2")])
        client = await _client(service)
        try:
            resp = await client.post(
                "/subscriptions/sub_123",
                json={"items": [{"price": "price_new"}], "proration_behavior": "always_invoice"},
            )
            body = await resp.json()
        finally:
            await client.close()

        assert resp.status == 200
        assert body == {"id": "sub_123", "status": "active"}
        gateways.subscriptions.update.assert_awaited_once_with(
            "sub_123", items=[{"price": "price_new"}], proration_behavior="none"
        )
        gateways.subscription_items.delete.assert_awaited_once_with("item_1")

    @pytest.mark.asyncio
    async def test_update_body_may_name_subscription_id(self, service, gateways):
        """A body field called subscription_id is an update option, not the path id."""
        gateways.subscriptions.update.return_value = {"id": "sub_123"}
        gateways.subscriptions.get.return_value = make_subscription("sub_123", [("item_1", 100)])
        gateways.invoices.upcoming.return_value = make_invoice([])
        client = await _client(service)
        try:
            resp = await client.post("/subscriptions/sub_123", json={"subscription_id": "x"})
        finally:
            await client.close()

        assert resp.status == 200
        gateways.subscriptions.update.assert_awaited_once_with(
            "sub_123", subscription_id="x", proration_behavior="none"
        )

    @pytest.mark.asyncio
    async def test_update_rejects_non_object_body(self, service, gateways):
        client = await _client(service)
        try:
            resp = await client.post("/subscriptions/sub_123", json=["not", "an", "object"])
        finally:
            await client.close()

        assert resp.status == 400
        gateways.subscriptions.update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_subscription_is_404(self, service, gateways):
        gateways.subscriptions.get.side_effect = NotFoundError(
            "No such subscription: 'sub_missing'", code="resource_missing", http_status=404
        )
        client = await _client(service)
        try:
            resp = await client.get("/subscriptions/sub_missing")
            body = await resp.json()
        finally:
            await client.close()

        assert resp.status == 404
        assert body["error"] == {
            "type": "NotFoundError",
            "message": "No such subscription: 'sub_missing'",
            "code": "resource_missing",
        }

    @pytest.mark.asyncio
    async def test_cancel_conflict_is_409(self, service, gateways):
        gateways.subscriptions.cancel.side_effect = ConflictError("Already canceled")
        client = await _client(service)
        try:
            resp = await client.delete("/subscriptions/sub_123")
        finally:
            await client.close()

        assert resp.status == 409

    @pytest.mark.asyncio
    async def test_provider_failure_is_502(self, service, gateways):
        gateways.invoices.pay.side_effect = ProviderError("Too many requests", http_status=429)
        client = await _client(service)
        try:
            resp = await client.post("/invoices/in_123/pay")
        finally:
            await client.close()

        assert resp.status == 502


class TestOtherEndpoints:
    """Test terminal, payment method and customer endpoints."""

    @pytest.mark.asyncio
    async def test_connection_token(self, service, gateways):
        gateways.connection_tokens.create.return_value = {
            "object": "terminal.connection_token",
            "secret": "pst_test_123",
        }
        client = await _client(service)
        try:
            resp = await client.post("/terminal/connection-tokens")
            body = await resp.json()
        finally:
            await client.close()

        assert resp.status == 200
        assert body["secret"] == "pst_test_123"

    @pytest.mark.asyncio
    async def test_non_card_payment_method_is_404(self, service, gateways):
        gateways.payment_methods.get.return_value = {"id": "pm_123", "type": "us_bank_account"}
        client = await _client(service)
        try:
            resp = await client.get("/payment-methods/pm_123/card")
        finally:
            await client.close()

        assert resp.status == 404

    @pytest.mark.asyncio
    async def test_customer_charges(self, service, gateways):
        gateways.charges.list.return_value = {"object": "list", "data": []}
        client = await _client(service)
        try:
            resp = await client.get("/customers/cus_123/charges")
        finally:
            await client.close()

        assert resp.status == 200
        gateways.charges.list.assert_awaited_once_with(customer="cus_123", limit=1)

    @pytest.mark.asyncio
    async def test_create_refund(self, service, gateways):
        gateways.refunds.create.return_value = {"id": "re_123", "status": "succeeded"}
        client = await _client(service)
        try:
            resp = await client.post("/refunds", json={"charge": "ch_123"})
            body = await resp.json()
        finally:
            await client.close()

        assert resp.status == 200
        assert body["id"] == "re_123"
        gateways.refunds.create.assert_awaited_once_with(charge="ch_123")

    @pytest.mark.asyncio
    async def test_non_utf8_body_rejected(self, service, gateways):
        client = await _client(service)
        try:
            resp = await client.post(
                "/refunds",
                data=b"\xff\xfe",
                headers={"Content-Type": "application/json"},
            )
            body = await resp.json()
        finally:
            await client.close()

        assert resp.status == 400
        assert body["error"]["type"] == "ValidationError"
        gateways.refunds.create.assert_not_awaited()

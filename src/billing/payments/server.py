"""Lightweight HTTP API over the payments facade."""

import asyncio
import logging
import signal
from typing import Any, Optional

from aiohttp import web

from billing.payments.service import PaymentsService
from billing.provider.errors import (
    BillingError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

SERVICE_KEY = web.AppKey("service", PaymentsService)

ERROR_STATUS = {
    NotFoundError: 404,
    ValidationError: 400,
    ConflictError: 409,
}


def _serialize(obj: Any) -> Any:
    to_dict = getattr(obj, "to_dict", None)
    return to_dict() if callable(to_dict) else obj


def _ok(obj: Any) -> web.Response:
    return web.json_response(_serialize(obj))


def _error_response(error: BillingError) -> web.Response:
    status = ERROR_STATUS.get(type(error), 502)
    body = {
        "error": {
            "type": type(error).__name__,
            "message": error.message,
            "code": error.code,
        }
    }
    return web.json_response(body, status=status)


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Render billing errors as JSON with a matching HTTP status."""
    try:
        return await handler(request)
    except BillingError as e:
        logger.warning(f"{request.method} {request.path} failed: {type(e).__name__}: {e}")
        return _error_response(e)


def _service(request: web.Request) -> PaymentsService:
    return request.app[SERVICE_KEY]


def _limit(request: web.Request) -> Optional[int]:
    raw = request.query.get("limit")
    if raw is None:
        return None
    try:
        limit = int(raw)
    except ValueError:
        raise ValidationError(f"limit must be an integer, got {raw!r}")
    if not 1 <= limit <= 100:
        raise ValidationError("limit must be between 1 and 100")
    return limit


async def _json_options(request: web.Request) -> dict:
    if not request.can_read_body:
        return {}
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Request body is not valid JSON")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


async def list_subscriptions(request: web.Request) -> web.Response:
    return _ok(await _service(request).list_subscriptions(limit=_limit(request)))


async def get_subscription(request: web.Request) -> web.Response:
    return _ok(await _service(request).get_subscription(request.match_info["id"]))


async def update_subscription(request: web.Request) -> web.Response:
    options = await _json_options(request)
    return _ok(await _service(request).update_subscription(request.match_info["id"], **options))


async def cancel_subscription(request: web.Request) -> web.Response:
    return _ok(await _service(request).cancel_subscription(request.match_info["id"]))


async def cancel_subscription_at_period_end(request: web.Request) -> web.Response:
    return _ok(
        await _service(request).cancel_subscription_at_period_end(request.match_info["id"])
    )


async def get_invoice(request: web.Request) -> web.Response:
    return _ok(await _service(request).get_invoice(request.match_info["id"]))


async def pay_invoice(request: web.Request) -> web.Response:
    return _ok(await _service(request).pay_invoice(request.match_info["id"]))


async def get_payment_intent(request: web.Request) -> web.Response:
    return _ok(await _service(request).get_payment_intent(request.match_info["id"]))


async def confirm_payment_intent(request: web.Request) -> web.Response:
    return _ok(await _service(request).confirm_payment_intent(request.match_info["id"]))


async def create_refund(request: web.Request) -> web.Response:
    options = await _json_options(request)
    return _ok(await _service(request).create_refund(**options))


async def get_card_brand(request: web.Request) -> web.Response:
    card = await _service(request).get_card_brand(request.match_info["id"])
    if card is None:
        raise NotFoundError(f"Payment method {request.match_info['id']} is not a card")
    return _ok(card)


async def get_customer(request: web.Request) -> web.Response:
    return _ok(await _service(request).get_customer(request.match_info["id"]))


async def list_customer_charges(request: web.Request) -> web.Response:
    return _ok(
        await _service(request).list_customer_charges(
            request.match_info["id"], limit=_limit(request)
        )
    )


async def create_connection_token(request: web.Request) -> web.Response:
    return _ok(await _service(request).create_connection_token())


def create_app(service: PaymentsService) -> web.Application:
    """Create aiohttp application with the payments routes.

    Args:
        service: Facade the handlers delegate to

    Returns:
        Configured aiohttp Application
    """
    app = web.Application(middlewares=[error_middleware])
    app[SERVICE_KEY] = service

    app.router.add_get("/subscriptions", list_subscriptions)
    app.router.add_get("/subscriptions/{id}", get_subscription)
    app.router.add_post("/subscriptions/{id}", update_subscription)
    app.router.add_delete("/subscriptions/{id}", cancel_subscription)
    app.router.add_post(
        "/subscriptions/{id}/cancel-at-period-end", cancel_subscription_at_period_end
    )
    app.router.add_get("/invoices/{id}", get_invoice)
    app.router.add_post("/invoices/{id}/pay", pay_invoice)
    app.router.add_get("/payment-intents/{id}", get_payment_intent)
    app.router.add_post("/payment-intents/{id}/confirm", confirm_payment_intent)
    app.router.add_post("/refunds", create_refund)
    app.router.add_get("/payment-methods/{id}/card", get_card_brand)
    app.router.add_get("/customers/{id}", get_customer)
    app.router.add_get("/customers/{id}/charges", list_customer_charges)
    app.router.add_post("/terminal/connection-tokens", create_connection_token)

    return app


async def run_server(
    service: PaymentsService,
    host: str,
    port: int,
    shutdown_event: Optional[asyncio.Event] = None,
) -> None:
    """Run the API server until shutdown signal.

    Args:
        service: Facade the handlers delegate to
        host: Interface to bind
        port: Port to listen on
        shutdown_event: Optional event to signal shutdown
    """
    app = create_app(service)

    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"Payments API listening on {host}:{port}")

    if shutdown_event:
        await shutdown_event.wait()
    else:
        await asyncio.Event().wait()

    logger.info("Shutting down payments API...")
    await runner.cleanup()


def install_signal_handlers(shutdown_event: asyncio.Event) -> None:
    """Set shutdown_event on SIGTERM/SIGINT."""

    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}")
        shutdown_event.set()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

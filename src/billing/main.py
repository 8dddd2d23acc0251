"""Application entry point."""

import asyncio
import logging
import sys

from billing.config import get_config
from billing.db.pool import close_pool, get_pool
from billing.payments.server import install_signal_handlers, run_server
from billing.payments.service import build_service
from billing.provider.stripe_gateways import configure_stripe


async def boot() -> None:
    """
    Boot sequence: load config → configure Stripe → initialize pool → serve.

    Raises:
        SystemExit: On configuration or database errors
    """
    logger = logging.getLogger(__name__)

    try:
        # Load and validate configuration
        config = get_config()
        logger.info(f"Configuration loaded: env={config.env}")

        # Point the Stripe SDK at the configured account
        configure_stripe(config)

        # Initialize the advisory lock pool with its health check
        if config.reconcile_lock == "advisory":
            await get_pool()

        service = build_service(config)
    except Exception as e:
        logger.error(f"Boot sequence failed: {e}")
        await close_pool()
        raise SystemExit(1) from e

    # Serve until SIGINT or SIGTERM
    shutdown_event = asyncio.Event()
    install_signal_handlers(shutdown_event)

    try:
        await run_server(
            service,
            host=config.api_server_host,
            port=config.api_server_port,
            shutdown_event=shutdown_event,
        )
    finally:
        # Clean shutdown
        await close_pool()
        logger.info("Application shutdown complete")


def main() -> None:
    """Main entry point with logging configuration."""
    # Configure logging
    config = get_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Run boot sequence
    try:
        asyncio.run(boot())
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        sys.exit(0)
    except SystemExit:
        raise
    except Exception as e:
        logging.error(f"Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

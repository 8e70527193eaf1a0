"""Main entry point for the client alert bot."""

import argparse
import asyncio
import logging
import sys

from .bot import Bot
from .config import Config, load_config
from .conversation import ConversationMachine, ConversationService, ConversationStateStore
from .identifiers import ENSResolver
from .services import (
    AlertService,
    DeliveryService,
    RateLimitService,
    RegistrationService,
    init_db_service,
)
from .webhook_server import create_app

RATE_LIMIT_CLEANUP_INTERVAL = 15 * 60


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("telegram").setLevel(logging.WARNING)
    logging.getLogger("web3").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)


async def cleanup_rate_limits(rate_limiter: RateLimitService, logger) -> None:
    """Periodically drop elapsed rate limit windows."""
    while True:
        await asyncio.sleep(RATE_LIMIT_CLEANUP_INTERVAL)
        removed = await rate_limiter.cleanup_expired()
        if removed:
            logger.debug("Removed %d expired rate limit windows", removed)


def build_server_config(app, config: Config, port: int, verbose: bool = False):
    """uvicorn settings for the HTTP API.

    Access logging stays off: the webhook path carries a secret, which by
    default is the bot token.
    """
    import uvicorn

    return uvicorn.Config(
        app,
        host=config.server.host,
        port=port,
        log_level="info" if verbose else "warning",
        access_log=False,
    )


async def cancel_task(task: asyncio.Task) -> None:
    """Cancel a background task and wait for it to finish."""
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


async def async_main(args, logger, config: Config) -> int:
    """Start the Telegram bot and the HTTP server, and run until interrupted."""
    import uvicorn

    logger.info("Initializing database at %s", config.bot.database_path)
    db_service = await init_db_service(config.bot.database_path)
    logger.info("Database initialized successfully")

    resolver = ENSResolver(config.ens.rpc_url, timeout=config.ens.timeout)
    registrations = RegistrationService(db_service, resolver)
    delivery = DeliveryService(timeout=config.telegram.send_timeout)
    rate_limiter = RateLimitService(
        config.alerts.rate_limit_max,
        config.alerts.rate_limit_window_seconds,
        max_keys=config.alerts.rate_limit_max_keys,
    )
    alert_service = AlertService(config.alerts, registrations, rate_limiter, delivery)
    conversation = ConversationService(ConversationMachine(registrations), ConversationStateStore())
    bot = Bot(config.telegram, conversation, delivery)

    cleanup_task = None
    try:
        await bot.start()

        app = create_app(config, alert_service, bot)
        port = args.port or config.server.port
        server = uvicorn.Server(build_server_config(app, config, port, args.verbose))

        cleanup_task = asyncio.create_task(cleanup_rate_limits(rate_limiter, logger))

        logger.info("All services started successfully")
        logger.info("Telegram bot is ready (%s mode)", "webhook" if bot.uses_webhook else "polling")
        logger.info("API server listening on %s:%d", config.server.host, port)
        logger.info("Limit: %s per identifier", rate_limiter.describe())

        await server.serve()
        return 0

    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1
    finally:
        logger.info("Shutting down...")
        if cleanup_task is not None:
            await cancel_task(cleanup_task)
        await bot.stop()
        await db_service.close()
        logger.info("Database connection closed")


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Telegram alert relay for Ethereum client operators",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                              # Run with default config.yaml
  %(prog)s -c myconfig.yaml             # Run with custom config
  %(prog)s -v                           # Run with verbose logging
  %(prog)s --port 8080                  # Override the HTTP port
        """,
    )

    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the HTTP server (default: server.port from config)",
    )

    args = parser.parse_args()

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        logger.info("Loading configuration from %s", args.config)
        config = load_config(args.config)
    except FileNotFoundError as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    try:
        return asyncio.run(async_main(args, logger, config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.exception("Startup failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())

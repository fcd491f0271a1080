# affiliate-network/affiliate_server.py
"""
Affiliate network - main entry point.
Loads configuration, prepares the database and serves the order webhook.
"""
import asyncio
import logging
import sys

from config import Config, ConfigurationError
from core.db import setup_database
from order_sync.webhook_handler import start_webhook_server

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler('affiliate.log')
    ]
)

logger = logging.getLogger(__name__)


async def main():
    """Main entry point."""
    logger.info("=" * 60)
    logger.info("AFFILIATE NETWORK STARTUP")
    logger.info("=" * 60)

    try:
        Config.initialize_from_env()
        logging.getLogger().setLevel(Config.get(Config.LOG_LEVEL, "INFO"))
        Config.validate_critical_keys()
    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}")
        sys.exit(1)

    setup_database()
    runner = await start_webhook_server()

    try:
        # Serve until cancelled
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()
        logger.info("Webhook server stopped")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Server stopped")

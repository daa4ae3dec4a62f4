"""Connector service entry point: backfill configured markets once."""

import asyncio
import logging
import os
import sys
from datetime import timedelta
from typing import Any, Dict, List, Optional

from .clients.bittrex_rest import BittrexRESTClient
from .collector import DataCollector
from .config.settings import ConnectorSettings, load_settings
from .models import Trade
from .utils.logging import setup_logging
from .utils.timestamps import utcnow

logger = logging.getLogger(__name__)


class ConnectorService:
    """Runs a backfill pass over every configured market."""

    def __init__(self, config: ConnectorSettings):
        self.config = config
        setup_logging(self.config.logging, self.config.service_name)
        logger.info("Connector service initialized")

    async def run(self, lookback: timedelta) -> List[Dict[str, Any]]:
        start_time = utcnow() - lookback
        results = []

        client = BittrexRESTClient(
            config=self.config.bittrex,
            retry_config=self.config.retry,
            tick_interval_seconds=self.config.backfill.tick_interval_seconds
        )
        async with client:
            collector = DataCollector(self.config, client)

            for symbol in self.config.bittrex.symbols:
                def _log_page(page: List[Trade], symbol=symbol) -> bool:
                    logger.info(
                        f"{symbol}: {len(page)} trades "
                        f"{page[0].timestamp.isoformat()} .. {page[-1].timestamp.isoformat()}"
                    )
                    return True

                stats = await collector.collect_historical_trades(symbol, start_time, _log_page)
                logger.info(f"Backfill summary for {symbol}: {stats}")
                results.append(stats)

        return results


async def main(config_file: Optional[str] = None):
    """Main entry point."""
    config_file = config_file or os.getenv("CONFIG_FILE")
    lookback_hours = float(os.getenv("BACKFILL_LOOKBACK_HOURS", "1"))

    service = ConnectorService(load_settings(config_file))
    try:
        await service.run(timedelta(hours=lookback_hours))
    except Exception as e:
        logger.error(f"Service failed: {e}", exc_info=True)
        sys.exit(1)


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()

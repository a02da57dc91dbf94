#!/usr/bin/env python3
"""
Priority Fee Watcher

Subscribes to the Drift priority fee service and logs the cached fee
levels for every watched market until interrupted.

Usage:
    python main.py                  # Run with default config
    python main.py --config my.yaml # Run with custom config
    python main.py --once           # Load once, print fees and exit
"""

import argparse
import asyncio
import signal
import sys
from typing import Optional

from loguru import logger

from fee_watcher.config import load_config, setup_logging, subscriber_config
from fee_watcher.priority_fee import PriorityFeeError, PriorityFeeSubscriberMap


class FeeWatcher:
    """Owns the subscriber map and periodically reports what it holds"""

    REPORT_INTERVAL = 30

    def __init__(self, config_path: str = "config.yaml"):
        self.config = load_config(config_path)
        self.fee_map: Optional[PriorityFeeSubscriberMap] = None
        self._stop_event = asyncio.Event()

    def _report(self):
        for market in self.fee_map.watched_markets or ():
            fees = self.fee_map.get_priority_fees(market.market_type, market.market_index)
            if fees is None:
                logger.info(f"{market.market_type}-{market.market_index}: no data")
                continue
            levels = ", ".join(f"{k}={v}" for k, v in fees.levels.items())
            logger.info(f"{market.market_type}-{market.market_index}: {levels}")

    async def run(self, once: bool = False):
        setup_logging(self.config)
        self.fee_map = PriorityFeeSubscriberMap(subscriber_config(self.config))

        if once:
            await self.fee_map.load()
            self._report()
            return

        await self.fee_map.subscribe()
        logger.info("Priority fee watcher started")

        try:
            while not self._stop_event.is_set():
                self._report()
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.REPORT_INTERVAL)
                except asyncio.TimeoutError:
                    pass
        finally:
            await self.fee_map.unsubscribe()
            logger.info(f"Priority fee watcher stopped: {self.fee_map.get_stats()}")

    def stop(self):
        logger.info("Received shutdown signal")
        self._stop_event.set()


async def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description="Priority Fee Watcher - Drift priority fee cache"
    )
    parser.add_argument(
        '--config', '-c',
        default='config.yaml',
        help='Path to configuration file'
    )
    parser.add_argument(
        '--once',
        action='store_true',
        help='Load fees once, print them and exit'
    )
    args = parser.parse_args()

    watcher = FeeWatcher(args.config)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, watcher.stop)

    try:
        await watcher.run(once=args.once)
    except PriorityFeeError as e:
        logger.error(f"Priority fee watcher failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())

"""
Priority fee subscriber map.

Keeps the latest fee levels for a watch list of markets and refreshes them
from the fee service on a fixed interval.
"""

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Sequence

from loguru import logger

from .errors import ConfigurationError
from .fetcher import fetch_priority_fees
from .types import (
    DEFAULT_PRIORITY_FEE_MAP_FREQUENCY_MS,
    KNOWN_MARKET_TYPES,
    MarketRef,
    PriorityFeeLevels,
    PriorityFeeSubscriberMapConfig,
)

# (endpoint, market_types, market_indexes) -> fee levels
PriorityFeeFetcher = Callable[
    [str, Sequence[str], Sequence[int]],
    Awaitable[list[PriorityFeeLevels]],
]


class PriorityFeeSubscriberMap:
    """
    Locally cached, periodically refreshed priority fees.

    Lifecycle:
    - Construction does no I/O; the cache starts empty
    - subscribe() loads once inline, then polls in a background task
    - get_priority_fees() reads the cache and never awaits

    Cache mutations run without awaiting, so on the event loop a reader
    sees either all of one response or none of it. The lock serializes
    refreshes and subscribe(); the polling path releases it while the
    request is in flight.
    """

    def __init__(
        self,
        config: PriorityFeeSubscriberMapConfig,
        fetcher: Optional[PriorityFeeFetcher] = None,
    ):
        """
        Initialize the subscriber map.

        Args:
            config: Endpoint, refresh interval and initial watch list
            fetcher: Async fee fetcher (defaults to the HTTP client)
        """
        frequency_ms = config.frequency_ms
        if frequency_ms is None:
            frequency_ms = DEFAULT_PRIORITY_FEE_MAP_FREQUENCY_MS
        if frequency_ms <= 0:
            raise ValueError(f"frequency_ms must be positive, got {frequency_ms}")

        self.frequency_ms = frequency_ms
        self.endpoint = config.endpoint
        self._fetcher = fetcher or fetch_priority_fees

        self._drift_markets: Optional[list[MarketRef]] = (
            list(config.drift_markets) if config.drift_markets is not None else None
        )
        self._fees_map: dict[str, dict[int, PriorityFeeLevels]] = {
            market_type: {} for market_type in KNOWN_MARKET_TYPES
        }

        self._lock = asyncio.Lock()
        self._poll_task: Optional[asyncio.Task] = None

        # Refreshes are numbered when they snapshot the watch list; a response
        # older than the last committed one is discarded
        self._next_load_seq = 0
        self._committed_load_seq = -1

        # Stats
        self._loads = 0
        self._failed_ticks = 0
        self._last_error: Optional[str] = None
        self._last_update: Optional[datetime] = None

    @property
    def is_subscribed(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def watched_markets(self) -> Optional[tuple[MarketRef, ...]]:
        if self._drift_markets is None:
            return None
        return tuple(self._drift_markets)

    # ==================== Cache ====================

    def update_fees_map(self, fees: Sequence[PriorityFeeLevels]):
        """
        Store fee levels, overwriting any previous entry for the same market.

        Records for unknown market types are dropped.
        """
        for fee in fees:
            bucket = self._fees_map.get(fee.market_type)
            if bucket is None:
                logger.debug(f"Dropping priority fees for unknown market type {fee.market_type!r}")
                continue
            bucket[fee.market_index] = fee

    def update_watched_markets(self, markets: Optional[Sequence[MarketRef]]):
        """Replace the watch list wholesale"""
        self._drift_markets = list(markets) if markets is not None else None

    def get_priority_fees(self, market_type: str, market_index: int) -> Optional[PriorityFeeLevels]:
        """
        Get the cached fee levels for a market.

        Returns:
            PriorityFeeLevels or None if the market was never fetched
        """
        bucket = self._fees_map.get(market_type)
        if bucket is None:
            return None
        return bucket.get(market_index)

    # ==================== Refresh ====================

    async def load(self):
        """
        Refresh fee levels for the watch list.

        The lock is released while the request is in flight. If a refresh
        started later has already committed, this one's response is dropped.

        Raises:
            ConfigurationError: markets are watched but no endpoint is set
            FetchError: the fee service call failed; nothing is modified
        """
        async with self._lock:
            markets = self._snapshot_markets()
            seq = self._take_load_seq()
        if not markets:
            return

        fees = await self._fetch(markets)

        async with self._lock:
            self._commit(fees, seq)

    async def _load_locked(self):
        """Refresh while the caller holds the lock across the request"""
        markets = self._snapshot_markets()
        seq = self._take_load_seq()
        if not markets:
            return

        fees = await self._fetch(markets)
        self._commit(fees, seq)

    def _snapshot_markets(self) -> list[MarketRef]:
        if not self._drift_markets:
            return []
        if not self.endpoint:
            raise ConfigurationError("Priority fee endpoint is not configured")
        return list(self._drift_markets)

    async def _fetch(self, markets: list[MarketRef]) -> list[PriorityFeeLevels]:
        return await self._fetcher(
            self.endpoint,
            [market.market_type for market in markets],
            [market.market_index for market in markets],
        )

    def _take_load_seq(self) -> int:
        seq = self._next_load_seq
        self._next_load_seq += 1
        return seq

    def _commit(self, fees: list[PriorityFeeLevels], seq: int):
        if seq < self._committed_load_seq:
            logger.debug(f"Discarding stale priority fee response (load {seq} < {self._committed_load_seq})")
            return
        self._committed_load_seq = seq

        # The response decides which markets exist
        self.update_watched_markets([fee.market for fee in fees])
        self.update_fees_map(fees)

        self._loads += 1
        self._last_update = datetime.now(timezone.utc)

    # ==================== Subscription ====================

    async def subscribe(self):
        """
        Load fee levels once, then keep them fresh in the background.

        Does nothing if already subscribed. If the first load fails the
        error propagates and no polling task is started.
        """
        async with self._lock:
            if self.is_subscribed:
                return

            await self._load_locked()

            self._poll_task = asyncio.create_task(self._poll())

        logger.info(
            f"Priority fee map subscribed: {len(self._drift_markets or [])} markets "
            f"every {self.frequency_ms}ms"
        )

    async def unsubscribe(self):
        """Stop the polling task, waiting out a subscribe() still in its first load"""
        async with self._lock:
            task = self._poll_task
            self._poll_task = None
        if task is None:
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Priority fee map unsubscribed")

    async def _poll(self):
        """Refresh on a fixed schedule; a failed tick never ends the loop"""
        loop = asyncio.get_running_loop()
        interval = self.frequency_ms / 1000
        next_tick = loop.time() + interval

        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            next_tick += interval

            try:
                await self.load()
                logger.debug("Priority fees refreshed")
            except Exception as e:
                self._failed_ticks += 1
                self._last_error = repr(e)
                logger.warning(f"Priority fee refresh failed: {e}")

            # Skip ticks we fell behind on rather than firing them back to back
            now = loop.time()
            if next_tick < now:
                next_tick += ((now - next_tick) // interval + 1) * interval

    def get_stats(self) -> dict:
        """Get subscriber statistics"""
        return {
            "running": self.is_subscribed,
            "frequency_ms": self.frequency_ms,
            "watched_markets": len(self._drift_markets or []),
            "cached_markets": sum(len(bucket) for bucket in self._fees_map.values()),
            "loads": self._loads,
            "failed_ticks": self._failed_ticks,
            "last_error": self._last_error,
            "last_update": (
                self._last_update.isoformat() if self._last_update else None
            ),
        }

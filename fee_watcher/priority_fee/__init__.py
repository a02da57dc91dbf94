"""
Priority fee cache for Drift markets.
Polls the fee service in the background and serves the latest levels locally.
"""

from .errors import ConfigurationError, FetchError, PriorityFeeError
from .fetcher import fetch_priority_fees
from .subscriber_map import PriorityFeeSubscriberMap
from .types import (
    DEFAULT_PRIORITY_FEE_MAP_FREQUENCY_MS,
    KNOWN_MARKET_TYPES,
    MarketRef,
    PriorityFeeLevels,
    PriorityFeeSubscriberMapConfig,
)

__all__ = [
    "ConfigurationError",
    "FetchError",
    "PriorityFeeError",
    "fetch_priority_fees",
    "PriorityFeeSubscriberMap",
    "DEFAULT_PRIORITY_FEE_MAP_FREQUENCY_MS",
    "KNOWN_MARKET_TYPES",
    "MarketRef",
    "PriorityFeeLevels",
    "PriorityFeeSubscriberMapConfig",
]

"""
Types shared by the priority fee fetcher and subscriber map.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

# Refresh interval used when the config leaves it out
DEFAULT_PRIORITY_FEE_MAP_FREQUENCY_MS = 10_000

# Market categories the fee service reports on; anything else is dropped
KNOWN_MARKET_TYPES = ("perp", "spot")


@dataclass(frozen=True)
class MarketRef:
    """A single market, identified by its category and index"""
    market_type: str  # perp or spot
    market_index: int

    def __post_init__(self):
        if self.market_index < 0:
            raise ValueError(f"market_index must be non-negative, got {self.market_index}")

    @classmethod
    def from_dict(cls, data: dict) -> "MarketRef":
        return cls(
            market_type=str(data["market_type"]).lower(),
            market_index=int(data["market_index"]),
        )

    def __repr__(self):
        return f"<MarketRef {self.market_type}-{self.market_index}>"


@dataclass(frozen=True)
class PriorityFeeLevels:
    """
    Fee levels reported by the service for one market.

    Snapshots are never mutated; a refresh replaces the whole object.
    The named levels are kept as a read-only mapping so new fields the
    service starts reporting are carried through untouched.
    """
    market_type: str
    market_index: int
    levels: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        # Freeze the level mapping so callers can't edit a cached snapshot
        object.__setattr__(self, "levels", MappingProxyType(dict(self.levels)))

    @property
    def market(self) -> MarketRef:
        return MarketRef(self.market_type, self.market_index)

    def get(self, level: str) -> Optional[float]:
        return self.levels.get(level)

    @property
    def low(self) -> Optional[float]:
        return self.levels.get("low")

    @property
    def medium(self) -> Optional[float]:
        return self.levels.get("medium")

    @property
    def high(self) -> Optional[float]:
        return self.levels.get("high")

    @property
    def very_high(self) -> Optional[float]:
        return self.levels.get("veryHigh")

    @property
    def unsafe_max(self) -> Optional[float]:
        return self.levels.get("unsafeMax")

    @property
    def min(self) -> Optional[float]:
        return self.levels.get("min")

    @classmethod
    def from_json(cls, data: dict) -> "PriorityFeeLevels":
        """
        Parse one record of a batchPriorityFees response.

        Args:
            data: e.g. {"marketType": "perp", "marketIndex": 0, "low": 10, ...}

        Raises:
            KeyError/ValueError/TypeError on malformed records
        """
        market_type = str(data["marketType"]).lower()

        raw_index = data["marketIndex"]
        if isinstance(raw_index, bool):
            raise TypeError(f"marketIndex must be an integer, got {raw_index!r}")
        if isinstance(raw_index, float) and not raw_index.is_integer():
            raise ValueError(f"marketIndex must be an integer, got {raw_index!r}")
        market_index = int(raw_index)
        if market_index < 0:
            raise ValueError(f"marketIndex must be non-negative, got {market_index}")

        levels: dict[str, float] = {}
        for key, value in data.items():
            if key in ("marketType", "marketIndex"):
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            levels[key] = value

        return cls(market_type=market_type, market_index=market_index, levels=levels)

    def to_dict(self) -> dict[str, Any]:
        return {
            "marketType": self.market_type,
            "marketIndex": self.market_index,
            **self.levels,
        }

    def __eq__(self, other):
        if not isinstance(other, PriorityFeeLevels):
            return NotImplemented
        return (
            self.market_type == other.market_type
            and self.market_index == other.market_index
            and dict(self.levels) == dict(other.levels)
        )

    def __hash__(self):
        return hash((self.market_type, self.market_index, tuple(sorted(self.levels.items()))))


@dataclass
class PriorityFeeSubscriberMapConfig:
    """Settings for PriorityFeeSubscriberMap"""
    endpoint: Optional[str] = None
    frequency_ms: Optional[int] = None
    drift_markets: Optional[list[MarketRef]] = None

    @classmethod
    def from_dict(cls, config: dict) -> "PriorityFeeSubscriberMapConfig":
        """Build from the `priority_fees` section of config.yaml"""
        markets = config.get("markets")
        return cls(
            endpoint=config.get("endpoint"),
            frequency_ms=config.get("frequency_ms"),
            drift_markets=[MarketRef.from_dict(m) for m in markets] if markets is not None else None,
        )

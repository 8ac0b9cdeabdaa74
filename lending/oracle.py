"""
oracle.py - Price feeds and the oracle publisher

The pool trusts exactly one identity to set the collateral price. This
module provides the pieces on the feed side of that trust boundary:

- PriceFeed: Protocol for anything that can quote a price at a timestamp
- StaticPriceFeed: Time-independent price
- TimeSeriesPriceFeed: Historical prices, point-in-time lookup
- PriceOracle: Publishes feed prices into a pool under the oracle identity

All prices are fixed-point integers at UNIT scale.
"""

from __future__ import annotations
from bisect import bisect_right
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Protocol, Tuple, TYPE_CHECKING, runtime_checkable

from .core import InvalidPrice, require_identity

if TYPE_CHECKING:
    from .pool import LendingPool


def validate_price(price) -> int:
    """
    Check that a price is a positive fixed-point integer.

    Raises:
        InvalidPrice: For non-integers, booleans, zero, or negative values.
    """
    if isinstance(price, bool) or not isinstance(price, int):
        raise InvalidPrice(f"price must be a fixed-point integer, got {type(price).__name__}")
    if price <= 0:
        raise InvalidPrice(f"price must be positive, got {price}")
    return price


@runtime_checkable
class PriceFeed(Protocol):
    """
    Protocol for price feeds.

    Returns None when no price is available at the requested time.
    """

    def get_price(self, timestamp: datetime) -> Optional[int]:
        ...


class StaticPriceFeed:
    """Price feed with a single time-independent price."""

    def __init__(self, price: int):
        self.price = validate_price(price)

    def get_price(self, timestamp: datetime) -> Optional[int]:
        """Get static price (timestamp is ignored)."""
        return self.price

    def update_price(self, price: int) -> None:
        self.price = validate_price(price)

    def __repr__(self):
        return f"StaticPriceFeed({self.price})"


class TimeSeriesPriceFeed:
    """
    Price feed with time-varying prices.

    Uses the most recent observation at or before the requested timestamp.
    """

    def __init__(self, observations: Optional[Iterable[Tuple[datetime, int]]] = None):
        """
        Args:
            observations: Optional (timestamp, price) pairs, in any order.

        Example:
            feed = TimeSeriesPriceFeed([(t0, 2 * UNIT), (t1, UNIT)])
            feed.get_price(t0 + timedelta(hours=1))  # 2 * UNIT
        """
        self.history: List[Tuple[datetime, int]] = []
        self._timestamps: List[datetime] = []
        if observations:
            for timestamp, price in observations:
                validate_price(price)
                self.history.append((timestamp, price))
            self.history.sort(key=lambda x: x[0])
            self._timestamps = [ts for ts, _ in self.history]

    @classmethod
    def from_path(
        cls,
        start: datetime,
        step: timedelta,
        prices: Iterable[int],
    ) -> 'TimeSeriesPriceFeed':
        """Build a feed from evenly spaced prices starting at start."""
        return cls((start + i * step, int(p)) for i, p in enumerate(prices))

    def add_price(self, timestamp: datetime, price: int) -> None:
        """Add an observation, keeping history in chronological order."""
        validate_price(price)
        idx = bisect_right(self._timestamps, timestamp)
        self._timestamps.insert(idx, timestamp)
        self.history.insert(idx, (timestamp, price))

    def get_price(self, timestamp: datetime) -> Optional[int]:
        """
        Get price at or before the specified timestamp.

        Uses binary search for O(log n) lookup.
        """
        idx = bisect_right(self._timestamps, timestamp)
        if idx == 0:
            return None
        return self.history[idx - 1][1]

    def timestamps(self) -> List[datetime]:
        return list(self._timestamps)

    def __len__(self) -> int:
        return len(self.history)

    def __repr__(self):
        return f"TimeSeriesPriceFeed({len(self.history)} observations)"


class PriceOracle:
    """
    Publisher that pushes feed prices into a pool.

    The pool accepts the update only if this oracle's identity is the pool's
    configured oracle; otherwise LendingPool.update_price raises Unauthorized.
    """

    def __init__(self, identity: str, feed: PriceFeed):
        self.identity = require_identity(identity, "oracle identity")
        self.feed = feed
        self.last_published: Optional[int] = None

    def publish(self, pool: 'LendingPool', timestamp: datetime) -> Optional[int]:
        """
        Publish the feed price at timestamp.

        Returns:
            The published price, or None if the feed had no price (nothing
            is sent to the pool in that case).
        """
        price = self.feed.get_price(timestamp)
        if price is None:
            return None
        pool.update_price(self.identity, price)
        self.last_published = price
        return price

    def __repr__(self):
        return f"PriceOracle({self.identity}, {self.feed!r})"

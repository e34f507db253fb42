"""
Asset Models.

An asset pairs a value token with the price feed that values it.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict

if TYPE_CHECKING:
    from ..core.protocols import PriceFeed, ValueToken


@dataclass(frozen=True)
class RoundData:
    """
    Latest answer reported by a price feed.

    Attributes:
        round_id: Monotonically increasing round identifier
        answer: Price scaled by the feed's decimals
        started_at: Round start timestamp
        updated_at: Last update timestamp
    """

    round_id: int
    answer: int
    started_at: int
    updated_at: int


@dataclass(frozen=True)
class Asset:
    """A registered fund asset: {token handle, price feed handle}."""

    token: "ValueToken"
    feed: "PriceFeed"

    @property
    def address(self) -> str:
        return self.token.address

    @property
    def feed_address(self) -> str:
        return self.feed.address

    @property
    def symbol(self) -> str:
        return getattr(self.token, "symbol", self.token.address)

    @property
    def decimals(self) -> int:
        return self.token.decimals()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "token": self.address,
            "feed": self.feed_address,
            "symbol": self.symbol,
            "decimals": self.decimals,
        }

"""
Asset Registry.

Ordered, append-only set of the assets the fund holds.
"""

from typing import List

from fund_ledger.core import AssetNotFoundError, DuplicateAssetError, get_logger

from ..models.assets import Asset
from .protocols import PriceFeed, ValueToken
from .state import FundState

logger = get_logger(__name__)


class AssetRegistry:
    """
    Registry of fund assets.

    The deposit asset sits at index 0 from initialization. Assets are only
    ever appended, so indices are stable.

    Example:
        >>> registry = AssetRegistry()
        >>> asset = registry.add_asset(state, weth, weth_feed)
        >>> registry.index_of(state, weth.address)
        1
    """

    def add_asset(self, state: FundState, token: ValueToken, feed: PriceFeed) -> Asset:
        """
        Append an asset.

        Args:
            state: Fund state to extend
            token: Value token of the asset
            feed: Price feed valuing the token

        Returns:
            The registered Asset

        Raises:
            DuplicateAssetError: If the token is already registered
        """
        if self.contains(state, token.address):
            raise DuplicateAssetError(
                f"Asset {token.address} already registered",
                details={"token": token.address},
            )

        asset = Asset(token=token, feed=feed)
        state.assets.append(asset)
        state.balances.setdefault(asset.address, 0)
        logger.info(f"Asset registered: {asset.symbol} ({asset.address}) at index {len(state.assets) - 1}")
        return asset

    def contains(self, state: FundState, token_address: str) -> bool:
        return any(a.address == token_address for a in state.assets)

    def get(self, state: FundState, token_address: str) -> Asset:
        """
        Get a registered asset by token address.

        Raises:
            AssetNotFoundError: If the token is not registered
        """
        for asset in state.assets:
            if asset.address == token_address:
                return asset
        raise AssetNotFoundError(
            f"Asset {token_address} is not registered",
            details={"token": token_address},
        )

    def index_of(self, state: FundState, token_address: str) -> int:
        for index, asset in enumerate(state.assets):
            if asset.address == token_address:
                return index
        raise AssetNotFoundError(
            f"Asset {token_address} is not registered",
            details={"token": token_address},
        )

    def assets(self, state: FundState) -> List[Asset]:
        """Registered assets in registration order."""
        return list(state.assets)

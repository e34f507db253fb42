"""
Valuation Engine.

Prices every registered asset through its feed and sums the holdings into
the fund's net asset value (NAV), expressed in base units of the deposit
asset.
"""

from typing import Dict, List, Tuple

from fund_ledger.core import ExternalFailureError, get_logger, mul_div

from ..models.assets import Asset
from ..models.records import AssetValuation
from .protocols import call_collaborator
from .state import FundState

logger = get_logger(__name__)


class ValuationEngine:
    """
    Computes NAV across a dynamic asset set.

    Each asset contributes ``balance * price / (10**token_decimals *
    10**feed_decimals)`` in USD; the sum is scaled to deposit-asset base
    units. All terms are brought to a common denominator so that truncation
    happens once, at the final step.

    Example:
        >>> engine = ValuationEngine()
        >>> nav = engine.total_value(state)
    """

    def read_price(self, asset: Asset) -> Tuple[int, int]:
        """
        Read an asset's latest price.

        Returns:
            (answer, feed decimals)

        Raises:
            ExternalFailureError: If the feed fails or reports a negative price
        """
        description = f"Price feed for {asset.symbol}"
        details = {"feed": asset.feed_address}
        round_data = call_collaborator(description, asset.feed.latest_round_data, details=details)
        decimals = call_collaborator(description, asset.feed.decimals, details=details)

        if round_data.answer < 0:
            raise ExternalFailureError(
                f"{description} reported a negative price",
                details={**details, "answer": round_data.answer},
            )
        return round_data.answer, decimals

    def _terms(
        self,
        state: FundState,
        amounts: Dict[str, int],
    ) -> List[Tuple[Asset, int, int, int]]:
        """(asset, amount, price, combined exponent) for every registered asset."""
        terms = []
        for asset in state.assets:
            price, price_decimals = self.read_price(asset)
            terms.append(
                (asset, amounts.get(asset.address, 0), price, asset.decimals + price_decimals)
            )
        return terms

    def value_of(self, state: FundState, amounts: Dict[str, int]) -> int:
        """
        Value of a basket of registered assets in deposit-asset base units.

        Args:
            amounts: Base-unit amount per token address (missing tokens count as 0)

        Returns:
            Basket value, truncated once after summation
        """
        terms = self._terms(state, amounts)
        if not terms:
            return 0

        max_exponent = max(exponent for _, _, _, exponent in terms)
        numerator = sum(
            amount * price * 10 ** (max_exponent - exponent)
            for _, amount, price, exponent in terms
        )
        return mul_div(numerator, 10**state.base_asset.decimals, 10**max_exponent)

    def total_value(self, state: FundState) -> int:
        """
        Total value of all holdings in deposit-asset base units.

        Returns:
            NAV, truncated once after summation
        """
        nav = self.value_of(state, state.balances)
        logger.debug(f"NAV computed over {len(state.assets)} assets: {nav}")
        return nav

    def asset_valuations(self, state: FundState) -> List[AssetValuation]:
        """
        Per-asset valuation breakdown.

        Individual values are truncated separately, so their sum may be
        below ``total_value`` by a few units.
        """
        base_decimals = state.base_asset.decimals
        valuations = []
        for asset, balance, price, exponent in self._terms(state, state.balances):
            valuations.append(
                AssetValuation(
                    address=asset.address,
                    symbol=asset.symbol,
                    balance=balance,
                    price=price,
                    price_decimals=exponent - asset.decimals,
                    token_decimals=asset.decimals,
                    value=mul_div(balance * price, 10**base_decimals, 10**exponent),
                )
            )
        return valuations

    def share_price(self, state: FundState) -> int:
        """
        Value of one whole share in deposit-asset base units.

        Returns 0 while no shares exist.
        """
        if state.share_supply == 0:
            return 0
        nav = self.total_value(state)
        return mul_div(nav, 10**state.parameters.share_decimals, state.share_supply)

"""
Asset Registry and Valuation Tests.

Tests for asset registration and NAV computation across differing token
and feed precisions.
"""

import pytest

from fund_ledger.core import AssetNotFoundError, DuplicateAssetError, ExternalFailureError
from fund_ledger.fund import (
    Asset,
    AssetRegistry,
    FundState,
    InMemoryToken,
    MockPriceFeed,
    ValuationEngine,
)
from tests.helpers import START_TIME, USDC, WBTC, WETH
from tests.mocks import BrokenFeed


@pytest.fixture
def state(usdc, usdc_feed) -> FundState:
    return FundState.create(
        owner="gov",
        account="fund",
        base_asset=Asset(token=usdc, feed=usdc_feed),
        now=START_TIME,
    )


class TestAssetRegistry:
    """Test AssetRegistry."""

    def test_base_asset_at_index_zero(self, state, usdc):
        registry = AssetRegistry()

        assert registry.index_of(state, usdc.address) == 0
        assert state.base_asset.address == usdc.address

    def test_add_asset_appends(self, state, weth, weth_feed, wbtc, wbtc_feed):
        registry = AssetRegistry()
        registry.add_asset(state, weth, weth_feed)
        registry.add_asset(state, wbtc, wbtc_feed)

        assert [a.symbol for a in registry.assets(state)] == ["USDC", "WETH", "WBTC"]
        assert registry.index_of(state, wbtc.address) == 2
        assert state.balance_of(wbtc.address) == 0

    def test_duplicate_rejected(self, state, weth, weth_feed):
        registry = AssetRegistry()
        registry.add_asset(state, weth, weth_feed)

        with pytest.raises(DuplicateAssetError):
            registry.add_asset(state, weth, weth_feed)
        assert len(state.assets) == 2

    def test_unknown_asset(self, state):
        registry = AssetRegistry()

        assert registry.contains(state, "doge") is False
        with pytest.raises(AssetNotFoundError):
            registry.get(state, "doge")
        with pytest.raises(AssetNotFoundError):
            registry.index_of(state, "doge")


class TestValuationEngine:
    """Test ValuationEngine."""

    def test_empty_fund_is_worth_nothing(self, state):
        engine = ValuationEngine()

        assert engine.total_value(state) == 0
        assert engine.share_price(state) == 0

    def test_mixed_token_and_feed_decimals(self, state, weth, weth_feed, wbtc, wbtc_feed):
        """Test 1 USDC + 0.5 WETH + 0.01 WBTC (18-decimal feed) == 1601 USDC."""
        registry = AssetRegistry()
        registry.add_asset(state, weth, weth_feed)
        registry.add_asset(state, wbtc, wbtc_feed)
        state.balances.update(
            {
                "usdc": 1 * USDC,
                "weth": WETH // 2,
                "wbtc": WBTC // 100,
            }
        )

        engine = ValuationEngine()
        assert engine.total_value(state) == 1_601 * USDC

        values = {v.symbol: v.value for v in engine.asset_valuations(state)}
        assert values == {"USDC": 1 * USDC, "WETH": 1_000 * USDC, "WBTC": 600 * USDC}

    def test_truncation_happens_once(self, state):
        """Test sub-unit values are summed before truncating."""
        registry = AssetRegistry()
        for name in ("dust1", "dust2"):
            token = InMemoryToken(name, name.upper(), 18)
            registry.add_asset(state, token, MockPriceFeed(f"{name}-usd", 10**8))
            # 0.6 base units of USDC worth each
            state.balances[name] = 6 * 10**11

        engine = ValuationEngine()
        assert engine.total_value(state) == 1
        assert sum(v.value for v in engine.asset_valuations(state)) == 0

    def test_share_price(self, state):
        state.balances["usdc"] = 100_000 * USDC
        state.share_supply = 1_000 * 10**18

        assert ValuationEngine().share_price(state) == 100 * USDC

    def test_broken_feed_is_external_failure(self, state):
        AssetRegistry().add_asset(state, InMemoryToken("x", "X", 18), BrokenFeed())

        with pytest.raises(ExternalFailureError) as exc_info:
            ValuationEngine().total_value(state)
        assert "feed unreachable" in str(exc_info.value)
        assert exc_info.value.details["feed"] == "broken-feed"

    def test_negative_price_rejected(self, state, weth):
        AssetRegistry().add_asset(state, weth, MockPriceFeed("bad-usd", -1))

        with pytest.raises(ExternalFailureError):
            ValuationEngine().total_value(state)

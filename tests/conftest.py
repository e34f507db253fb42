"""
Pytest configuration and fixtures for fund ledger tests.
"""

from typing import Callable

import pytest

from fund_ledger.fund import (
    FundController,
    FundParameters,
    InMemoryToken,
    ManualClock,
    MockPriceFeed,
    OracleRouter,
)
from tests.helpers import START_TIME, USDC, add_liquidity


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(START_TIME)


@pytest.fixture
def usdc() -> InMemoryToken:
    return InMemoryToken("usdc", "USDC", 6)


@pytest.fixture
def weth() -> InMemoryToken:
    return InMemoryToken("weth", "WETH", 18)


@pytest.fixture
def wbtc() -> InMemoryToken:
    return InMemoryToken("wbtc", "WBTC", 8)


@pytest.fixture
def usdc_feed(clock) -> MockPriceFeed:
    """$1.00 with 8 decimals."""
    return MockPriceFeed("usdc-usd", 1 * 10**8, timestamp=clock.now)


@pytest.fixture
def weth_feed(clock) -> MockPriceFeed:
    """$2,000 with 8 decimals."""
    return MockPriceFeed("weth-usd", 2_000 * 10**8, timestamp=clock.now)


@pytest.fixture
def wbtc_feed(clock) -> MockPriceFeed:
    """$60,000 with 18 decimals."""
    return MockPriceFeed("wbtc-usd", 60_000 * 10**18, decimals=18, timestamp=clock.now)


@pytest.fixture
def router(usdc, weth, wbtc) -> OracleRouter:
    """Fee-free router with liquidity in every asset."""
    router = OracleRouter("router", fee_bps=0)
    add_liquidity(router, usdc, weth, wbtc)
    return router


# =============================================================================
# Fund
# =============================================================================


@pytest.fixture
def make_fund(clock, usdc, usdc_feed, weth, weth_feed) -> Callable[..., FundController]:
    """Build a fund owned by "gov" with WETH registered next to USDC."""

    def _make(router, parameters=None, repository=None) -> FundController:
        fund = FundController.create(
            owner="gov",
            base_token=usdc,
            base_feed=usdc_feed,
            router=router,
            parameters=parameters or FundParameters(),
            clock=clock,
            repository=repository,
        )
        fund.add_asset("gov", weth, weth_feed)
        return fund

    return _make


@pytest.fixture
def fund(make_fund, router) -> FundController:
    return make_fund(router)


@pytest.fixture
def deposit(usdc) -> Callable[[FundController, str, int], int]:
    """Mint, approve and deposit whole USDC for a holder; returns shares minted."""

    def _deposit(fund: FundController, holder: str, whole_usdc: int) -> int:
        amount = whole_usdc * USDC
        usdc.mint(holder, amount)
        usdc.approve(holder, fund.account, amount)
        return fund.issue(holder, amount)

    return _deposit


@pytest.fixture
def funded_fund(fund, deposit) -> FundController:
    """Fund after alice bootstraps it with 100,000 USDC."""
    deposit(fund, "alice", 100_000)
    return fund

"""
Swap Coordinator Tests.

Tests for proposal execution through the exchange router, including
pre-flight checks and unwinding of partially executed proposals.
"""

import pytest

from fund_ledger.core import ExternalFailureError, InsufficientFundsError, SlippageError
from fund_ledger.fund import AssetRegistry, OracleRouter, ProposalState, SwapCoordinator, SwapLeg
from tests.helpers import USDC, WETH, add_liquidity
from tests.mocks import FailingRouter, ShortchangingRouter


@pytest.fixture
def build(make_fund, deposit, usdc, weth, wbtc):
    """Funded fund (100,000 USDC from alice) behind a given router."""

    def _build(router):
        add_liquidity(router, usdc, weth, wbtc)
        fund = make_fund(router)
        deposit(fund, "alice", 100_000)
        return fund

    return _build


def accept(fund, legs):
    proposal = fund.create_proposal("bob", legs)
    return fund.accept_proposal("gov", proposal.id)


class TestExecution:
    """Test successful execution."""

    def test_value_moves_into_output_asset(self, funded_fund, usdc, weth):
        """Test a fee-free trade leaves NAV unchanged."""
        nav_before = funded_fund.total_value()

        proposal = accept(funded_fund, [SwapLeg("usdc", "weth", 2_000 * USDC)])

        assert proposal.amounts_out == [1 * WETH]
        assert funded_fund.state.balance_of("usdc") == 98_000 * USDC
        assert funded_fund.state.balance_of("weth") == 1 * WETH
        assert funded_fund.total_value() == nav_before
        assert funded_fund.check_holdings() == {"usdc": 98_000 * USDC, "weth": 1 * WETH}

    def test_nav_drops_only_by_fee(self, build):
        fund = build(OracleRouter("router", fee_bps=30))

        proposal = accept(fund, [SwapLeg("usdc", "weth", 2_000 * USDC)])

        assert proposal.amounts_out == [997 * WETH // 1_000]
        assert fund.total_value() == 99_994 * USDC

    def test_legs_chain_on_projected_balances(self, funded_fund):
        """Test a later leg may sell what an earlier leg bought."""
        proposal = accept(
            funded_fund,
            [
                SwapLeg("usdc", "weth", 2_000 * USDC),
                SwapLeg("weth", "usdc", WETH // 2),
            ],
        )

        assert proposal.amounts_out == [1 * WETH, 1_000 * USDC]
        assert funded_fund.state.balance_of("usdc") == 99_000 * USDC
        assert funded_fund.state.balance_of("weth") == WETH // 2

    def test_preflight_quotes(self, funded_fund, router):
        coordinator = SwapCoordinator(router, AssetRegistry())
        proposal = funded_fund.create_proposal("bob", [SwapLeg("usdc", "weth", 4_000 * USDC)])

        assert coordinator.preflight(funded_fund.state, proposal) == [2 * WETH]
        assert router.swap_count == 0


class TestPreflightRejection:
    """Test checks that fail before any swap."""

    def test_quote_below_minimum(self, funded_fund, router):
        proposal = funded_fund.create_proposal(
            "bob", [SwapLeg("usdc", "weth", 2_000 * USDC, 1 * WETH + 1)]
        )

        with pytest.raises(SlippageError) as exc_info:
            funded_fund.accept_proposal("gov", proposal.id)

        assert exc_info.value.amount_out == 1 * WETH
        assert router.swap_count == 0
        assert funded_fund.get_proposal(proposal.id).state == ProposalState.ACTIVE

    def test_selling_more_than_held(self, funded_fund, router):
        proposal = funded_fund.create_proposal(
            "bob",
            [
                SwapLeg("usdc", "weth", 2_000 * USDC),
                SwapLeg("weth", "usdc", 2 * WETH),
            ],
        )

        with pytest.raises(InsufficientFundsError):
            funded_fund.accept_proposal("gov", proposal.id)
        assert router.swap_count == 0
        assert funded_fund.state.balance_of("usdc") == 100_000 * USDC


class TestUnwind:
    """Test rollback of partially executed proposals."""

    def test_failed_leg_unwinds_earlier_legs(self, build, usdc):
        """Test the fee lost on the round trip is recorded as a correction."""
        router = FailingRouter(fail_on=2, fee_bps=30)
        fund = build(router)
        proposal = fund.create_proposal(
            "bob",
            [
                SwapLeg("usdc", "weth", 1_000 * USDC),
                SwapLeg("weth", "usdc", WETH // 4),
            ],
        )

        with pytest.raises(ExternalFailureError) as exc_info:
            fund.accept_proposal("gov", proposal.id)

        assert "router offline" in str(exc_info.value)
        assert exc_info.value.details["balance_corrections"] == {"usdc": -5_991_000}
        assert router.attempts == 3
        assert fund.state.balance_of("usdc") == 100_000 * USDC - 5_991_000
        assert fund.state.balance_of("weth") == 0
        assert fund.check_holdings()["usdc"] == usdc.balance_of("fund")
        assert fund.get_proposal(proposal.id).state == ProposalState.ACTIVE
        assert fund.current_epoch.total_accepted == 0

    def test_short_delivery_detected(self, build):
        fund = build(ShortchangingRouter(shortfall=1))
        proposal = fund.create_proposal("bob", [SwapLeg("usdc", "weth", 2_000 * USDC)])

        with pytest.raises(ExternalFailureError) as exc_info:
            fund.accept_proposal("gov", proposal.id)

        assert exc_info.value.details["reported"] == 1 * WETH
        assert exc_info.value.details["received"] == 1 * WETH - 1
        assert exc_info.value.details["balance_corrections"] == {"usdc": -1}
        fund.check_holdings()

    def test_first_leg_failure_needs_no_correction(self, build):
        fund = build(FailingRouter(fail_on=1))
        proposal = fund.create_proposal("bob", [SwapLeg("usdc", "weth", 2_000 * USDC)])

        with pytest.raises(ExternalFailureError) as exc_info:
            fund.accept_proposal("gov", proposal.id)

        assert "balance_corrections" not in exc_info.value.details
        assert fund.state.balance_of("usdc") == 100_000 * USDC
        fund.check_holdings()

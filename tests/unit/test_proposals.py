"""
Proposal Registry Tests.

Tests for the proposal state machine: creation, intent, timelock,
expiry, cancellation and pruning.
"""

import pytest

from fund_ledger.core import (
    AssetNotFoundError,
    InvalidAmountError,
    InvalidStateError,
    ProposalNotFoundError,
    TimelockActiveError,
)
from fund_ledger.fund import (
    Asset,
    AssetRegistry,
    FundParameters,
    FundState,
    ProposalRegistry,
    ProposalState,
    SwapLeg,
)
from tests.helpers import START_TIME, USDC

NOW = START_TIME


@pytest.fixture
def make_state(usdc, usdc_feed, weth, weth_feed):
    def _make(**params) -> FundState:
        state = FundState.create(
            owner="gov",
            account="fund",
            base_asset=Asset(token=usdc, feed=usdc_feed),
            now=NOW,
            parameters=FundParameters(**params),
        )
        AssetRegistry().add_asset(state, weth, weth_feed)
        return state

    return _make


@pytest.fixture
def state(make_state) -> FundState:
    return make_state()


@pytest.fixture
def registry() -> ProposalRegistry:
    return ProposalRegistry()


def leg(amount: int = 2_000 * USDC) -> SwapLeg:
    return SwapLeg("usdc", "weth", amount)


class TestCreate:
    """Test proposal creation and validation."""

    def test_ids_are_monotonic(self, state, registry):
        first = registry.create(state, "bob", [leg()], NOW)
        second = registry.create(state, "carol", [leg()], NOW)
        registry.cancel(state, first.id)
        third = registry.create(state, "bob", [leg()], NOW)

        assert (first.id, second.id, third.id) == (1, 2, 3)
        assert first.state == ProposalState.CANCELLED
        assert [p.id for p in state.proposals] == [2, 3]

    def test_new_proposal_is_active(self, state, registry):
        proposal = registry.create(state, "bob", [leg()], NOW)

        assert proposal.state == ProposalState.ACTIVE
        assert proposal.created_at == NOW
        assert proposal.intent_to_accept_at is None

    @pytest.mark.parametrize(
        "legs, error",
        [
            ([], InvalidAmountError),
            ([SwapLeg("usdc", "doge", 1)], AssetNotFoundError),
            ([SwapLeg("usdc", "usdc", 1)], InvalidStateError),
            ([SwapLeg("usdc", "weth", 0)], InvalidAmountError),
            ([SwapLeg("usdc", "weth", 1, -1)], InvalidAmountError),
        ],
    )
    def test_invalid_legs(self, state, registry, legs, error):
        with pytest.raises(error):
            registry.create(state, "bob", legs, NOW)
        assert state.proposals == []
        assert state.next_proposal_id == 1


class TestAcceptance:
    """Test intent and acceptance checks."""

    def test_no_timelock_accepts_active(self, state, registry):
        proposal = registry.create(state, "bob", [leg()], NOW)

        assert registry.check_acceptable(state, proposal.id, NOW) is proposal

    def test_intent_only_from_active(self, state, registry):
        proposal = registry.create(state, "bob", [leg()], NOW)
        registry.intent_to_accept(state, proposal.id, NOW + 5)

        assert proposal.state == ProposalState.INTENT_SIGNALED
        assert proposal.intent_to_accept_at == NOW + 5
        with pytest.raises(InvalidStateError):
            registry.intent_to_accept(state, proposal.id, NOW + 6)

    def test_timelock_requires_intent(self, make_state, registry):
        state = make_state(acceptance_timelock=3_600)
        proposal = registry.create(state, "bob", [leg()], NOW)

        with pytest.raises(InvalidStateError):
            registry.check_acceptable(state, proposal.id, NOW + 10_000)

    def test_timelock_boundary(self, make_state, registry):
        """Test acceptance opens exactly at intent time plus timelock."""
        state = make_state(acceptance_timelock=3_600)
        proposal = registry.create(state, "bob", [leg()], NOW)
        registry.intent_to_accept(state, proposal.id, NOW)

        with pytest.raises(TimelockActiveError) as exc_info:
            registry.check_acceptable(state, proposal.id, NOW + 3_599)
        assert exc_info.value.unlocks_at == NOW + 3_600

        assert registry.check_acceptable(state, proposal.id, NOW + 3_600) is proposal

    def test_unknown_id(self, state, registry):
        with pytest.raises(ProposalNotFoundError) as exc_info:
            registry.check_acceptable(state, 42, NOW)
        assert exc_info.value.proposal_id == 42

    def test_executed_proposal_leaves_active_set(self, state, registry):
        proposal = registry.create(state, "bob", [leg()], NOW)
        registry.mark_executed(state, proposal, "gov", [10**18], NOW)

        assert proposal.state == ProposalState.EXECUTED
        assert proposal.approver == "gov"
        with pytest.raises(ProposalNotFoundError):
            registry.check_acceptable(state, proposal.id, NOW)


class TestExpiry:
    """Test proposal time-to-live."""

    def test_expired_proposal_cannot_be_signalled_or_accepted(self, make_state, registry):
        state = make_state(proposal_ttl=100)
        proposal = registry.create(state, "bob", [leg()], NOW)

        with pytest.raises(InvalidStateError):
            registry.intent_to_accept(state, proposal.id, NOW + 100)
        with pytest.raises(InvalidStateError):
            registry.check_acceptable(state, proposal.id, NOW + 100)

    def test_active_excludes_expired(self, make_state, registry):
        state = make_state(proposal_ttl=100)
        old = registry.create(state, "bob", [leg()], NOW)
        fresh = registry.create(state, "carol", [leg()], NOW + 50)

        assert registry.active(state, NOW + 120) == [fresh]
        assert old in state.proposals

    def test_prune_expired(self, make_state, registry):
        state = make_state(proposal_ttl=100)
        old = registry.create(state, "bob", [leg()], NOW)
        registry.create(state, "carol", [leg()], NOW + 50)

        pruned = registry.prune_expired(state, NOW + 120)

        assert pruned == [old]
        assert old.state == ProposalState.CANCELLED
        assert [p.proposer for p in state.proposals] == ["carol"]

    def test_prune_without_ttl_is_noop(self, state, registry):
        registry.create(state, "bob", [leg()], NOW)

        assert registry.prune_expired(state, NOW + 10**9) == []
        assert len(state.proposals) == 1

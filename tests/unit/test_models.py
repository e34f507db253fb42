"""
Fund Model Tests.

Tests for parameters, proposals, epoch records and payout results.
"""

from decimal import Decimal

import pytest

from fund_ledger.fund.models import (
    ONE_DAY,
    REWARD_RATE_SCALE,
    EpochRecord,
    FundParameters,
    PayoutResult,
    Proposal,
    ProposalState,
    RewardRole,
    SwapLeg,
    rate_from_fraction,
    rate_to_fraction,
)


class TestFundParameters:
    """Test FundParameters."""

    def test_defaults(self):
        """Test default parameter values."""
        params = FundParameters()

        assert params.epoch_duration == ONE_DAY
        assert params.proposer_reward_rate == 10**16
        assert params.approver_reward_rate == 10**16
        assert params.acceptance_timelock == 0
        assert params.proposal_ttl == 0
        assert params.share_decimals == 18
        assert params.minting_unit_conversion == 100

    def test_fractional_rates_converted(self):
        """Test human fractions become fixed-point rates."""
        params = FundParameters(proposer_reward_rate="0.02", approver_reward_rate=Decimal("0.005"))

        assert params.proposer_reward_rate == 2 * 10**16
        assert params.approver_reward_rate == 5 * 10**15

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"epoch_duration": 0},
            {"proposer_reward_rate": REWARD_RATE_SCALE + 1},
            {"approver_reward_rate": -1},
            {"acceptance_timelock": -1},
            {"proposal_ttl": -5},
            {"minting_unit_conversion": 0},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            FundParameters(**kwargs)

    def test_dict_round_trip(self):
        params = FundParameters(epoch_duration=3600, acceptance_timelock=60, share_symbol="POOL")
        restored = FundParameters.from_dict(params.to_dict())

        assert restored == params

    def test_rate_helpers(self):
        assert rate_from_fraction("0.01") == 10**16
        assert rate_from_fraction("0.0000000000000000019") == 1
        assert rate_to_fraction(10**16) == Decimal("0.01")


class TestProposal:
    """Test Proposal."""

    def _proposal(self) -> Proposal:
        return Proposal(
            id=1,
            proposer="bob",
            legs=[SwapLeg("usdc", "weth", 2_000, 1), SwapLeg("weth", "wbtc", 5, 0)],
            created_at=1_000,
        )

    def test_leg_views(self):
        proposal = self._proposal()

        assert proposal.input_assets == ["usdc", "weth"]
        assert proposal.output_assets == ["weth", "wbtc"]
        assert proposal.amounts_in == [2_000, 5]
        assert proposal.min_amounts_out == [1, 0]

    def test_expiry(self):
        """Test TTL 0 never expires and expiry is inclusive of the deadline."""
        proposal = self._proposal()

        assert proposal.is_expired(10**12, 0) is False
        assert proposal.is_expired(1_099, 100) is False
        assert proposal.is_expired(1_100, 100) is True

    def test_unlocks_at(self):
        proposal = self._proposal()
        assert proposal.unlocks_at(60) is None

        proposal.intent_to_accept_at = 1_500
        assert proposal.unlocks_at(60) == 1_560

    def test_open_states(self):
        proposal = self._proposal()
        assert proposal.is_open

        proposal.state = ProposalState.INTENT_SIGNALED
        assert proposal.is_open

        proposal.state = ProposalState.EXECUTED
        assert not proposal.is_open

    def test_dict_round_trip_keeps_large_amounts(self):
        proposal = self._proposal()
        proposal.amounts_out = [10**30]
        restored = Proposal.from_dict(proposal.to_dict())

        assert restored.amounts_out == [10**30]
        assert restored.legs == proposal.legs


class TestEpochRecord:
    """Test EpochRecord."""

    def test_record_acceptance(self):
        epoch = EpochRecord(index=0, start_time=0, duration=100)
        epoch.record_acceptance("bob", "gov")
        epoch.record_acceptance("carol", "gov")

        assert epoch.total_accepted == 2
        assert epoch.proposer_counts == {"bob": 1, "carol": 1}
        assert epoch.approver_counts == {"gov": 2}
        assert epoch.end_time == 100

    def test_outstanding_rewards_only_counts_unpaid_sides(self):
        epoch = EpochRecord(
            index=0,
            start_time=0,
            duration=100,
            settled_supply=1_000,
            proposer_rewards={"bob": 10},
            approver_rewards={"gov": 7},
        )
        assert epoch.outstanding_rewards == 17

        epoch.proposers_paid = True
        assert epoch.outstanding_rewards == 7
        assert not epoch.paid

        epoch.approvers_paid = True
        assert epoch.outstanding_rewards == 0
        assert epoch.paid

    def test_copy_is_independent(self):
        epoch = EpochRecord(index=0, start_time=0, duration=100)
        epoch.record_acceptance("bob", "gov")
        copied = epoch.copy()
        copied.record_acceptance("bob", "gov")

        assert epoch.proposer_counts == {"bob": 1}
        assert copied.proposer_counts == {"bob": 2}

    def test_from_dict(self):
        epoch = EpochRecord.from_dict(
            {
                "index": 4,
                "start_time": 400,
                "duration": 100,
                "proposer_counts": {"bob": "2"},
                "approver_counts": {"gov": 2},
                "total_accepted": 2,
                "closed": True,
                "settled_supply": str(10**21),
                "proposer_rewards": {"bob": str(10**19)},
            }
        )

        assert epoch.is_settled
        assert epoch.settled_supply == 10**21
        assert epoch.proposer_counts == {"bob": 2}
        assert epoch.proposer_rewards == {"bob": 10**19}
        assert epoch.approver_rewards is None


class TestPayoutResult:
    """Test PayoutResult."""

    def test_accumulates_rewards(self):
        result = PayoutResult(role=RewardRole.PROPOSER, timestamp=0)
        assert result.is_noop

        result.add_reward("bob", 5)
        result.add_reward("bob", 7)
        result.epochs_paid.append(0)

        assert result.rewards == {"bob": 12}
        assert result.total_minted == 12
        assert not result.is_noop
        assert result.to_dict()["total_minted"] == "12"

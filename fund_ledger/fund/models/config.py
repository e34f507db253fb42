"""
Fund Parameter Models.

Defines the mutable parameters that drive issuance, rewards and proposals.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict

from fund_ledger.core import to_base_units

# Reward rates are fixed-point fractions: 10**16 == 1%
REWARD_RATE_DECIMALS = 18
REWARD_RATE_SCALE = 10**REWARD_RATE_DECIMALS

ONE_HOUR = 60 * 60
ONE_DAY = 24 * ONE_HOUR


def rate_from_fraction(value: Decimal | float | str) -> int:
    """
    Convert a human fraction to a fixed-point reward rate.

    Example:
        >>> rate_from_fraction("0.01")
        10000000000000000
    """
    return to_base_units(value, REWARD_RATE_DECIMALS)


def rate_to_fraction(rate: int) -> Decimal:
    """Convert a fixed-point reward rate back to a Decimal fraction."""
    return (Decimal(rate) / Decimal(REWARD_RATE_SCALE)).normalize()


@dataclass
class FundParameters:
    """
    Fund parameters held in the fund state.

    Attributes:
        epoch_duration: Length of a reward epoch in seconds
        proposer_reward_rate: Share of supply minted to proposers per epoch
            (fixed point, REWARD_RATE_SCALE == 100%)
        approver_reward_rate: Share of supply minted to approvers per epoch
        acceptance_timelock: Seconds between intent-to-accept and accept;
            0 disables the intent step
        proposal_ttl: Seconds after creation a proposal stays acceptable;
            0 means proposals never expire
        share_decimals: Decimal precision of the share token
        share_symbol: Share token symbol
        minting_unit_conversion: Bootstrap peg, deposit-asset units
            (at price 1) per whole share on the first issue
    """

    epoch_duration: int = ONE_DAY
    proposer_reward_rate: int = 10**16
    approver_reward_rate: int = 10**16
    acceptance_timelock: int = 0
    proposal_ttl: int = 0
    share_decimals: int = 18
    share_symbol: str = "FUND"
    minting_unit_conversion: int = 100

    def __post_init__(self) -> None:
        """Convert fractional rates and validate ranges."""
        if isinstance(self.proposer_reward_rate, (Decimal, float, str)):
            self.proposer_reward_rate = rate_from_fraction(self.proposer_reward_rate)
        if isinstance(self.approver_reward_rate, (Decimal, float, str)):
            self.approver_reward_rate = rate_from_fraction(self.approver_reward_rate)

        if self.epoch_duration <= 0:
            raise ValueError("epoch_duration must be positive")
        for name in ("proposer_reward_rate", "approver_reward_rate"):
            rate = getattr(self, name)
            if not 0 <= rate <= REWARD_RATE_SCALE:
                raise ValueError(f"{name} must be within [0, {REWARD_RATE_SCALE}]")
        if self.acceptance_timelock < 0:
            raise ValueError("acceptance_timelock cannot be negative")
        if self.proposal_ttl < 0:
            raise ValueError("proposal_ttl cannot be negative")
        if self.share_decimals < 0:
            raise ValueError("share_decimals cannot be negative")
        if self.minting_unit_conversion <= 0:
            raise ValueError("minting_unit_conversion must be positive")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "epoch_duration": self.epoch_duration,
            "proposer_reward_rate": str(self.proposer_reward_rate),
            "approver_reward_rate": str(self.approver_reward_rate),
            "acceptance_timelock": self.acceptance_timelock,
            "proposal_ttl": self.proposal_ttl,
            "share_decimals": self.share_decimals,
            "share_symbol": self.share_symbol,
            "minting_unit_conversion": self.minting_unit_conversion,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FundParameters":
        """Create from dictionary (rates are fixed-point integers)."""
        return cls(
            epoch_duration=int(data.get("epoch_duration", ONE_DAY)),
            proposer_reward_rate=int(data.get("proposer_reward_rate", 10**16)),
            approver_reward_rate=int(data.get("approver_reward_rate", 10**16)),
            acceptance_timelock=int(data.get("acceptance_timelock", 0)),
            proposal_ttl=int(data.get("proposal_ttl", 0)),
            share_decimals=int(data.get("share_decimals", 18)),
            share_symbol=data.get("share_symbol", "FUND"),
            minting_unit_conversion=int(data.get("minting_unit_conversion", 100)),
        )

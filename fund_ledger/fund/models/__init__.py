"""
Fund Models.

Data models for fund parameters, assets and records.
"""

from .assets import Asset, RoundData
from .config import (
    ONE_DAY,
    ONE_HOUR,
    REWARD_RATE_SCALE,
    FundParameters,
    rate_from_fraction,
    rate_to_fraction,
)
from .records import (
    AssetValuation,
    EpochRecord,
    EventKind,
    LedgerEvent,
    PayoutResult,
    Proposal,
    ProposalState,
    RewardRole,
    RolloverResult,
    SwapLeg,
)

__all__ = [
    "Asset",
    "RoundData",
    "FundParameters",
    "REWARD_RATE_SCALE",
    "ONE_DAY",
    "ONE_HOUR",
    "rate_from_fraction",
    "rate_to_fraction",
    "AssetValuation",
    "EpochRecord",
    "EventKind",
    "LedgerEvent",
    "PayoutResult",
    "Proposal",
    "ProposalState",
    "RewardRole",
    "RolloverResult",
    "SwapLeg",
]

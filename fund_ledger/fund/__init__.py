"""
Fund Module.

Pooled-asset fund ledger: depositors receive shares against a NAV priced
through oracles, participants propose trades that the owner executes, and
proposers and approvers earn epoch rewards in newly minted shares.

Includes:
- FundController: Public entry points with atomic, serialized calls
- Core components: registry, valuation, shares, proposals, swaps, epochs
- FundRepository: SQLite persistence of the fund state
- Reference collaborators for demos and tests
"""

from .controller import DEFAULT_FUND_ACCOUNT, FundController
from .core import (
    AssetRegistry,
    EpochRewardLedger,
    ExchangeRouter,
    FundState,
    PriceFeed,
    ProposalRegistry,
    ShareLedger,
    SwapCoordinator,
    ValuationEngine,
    ValueToken,
    rollover,
)
from .models import (
    REWARD_RATE_SCALE,
    Asset,
    AssetValuation,
    EpochRecord,
    EventKind,
    FundParameters,
    LedgerEvent,
    PayoutResult,
    Proposal,
    ProposalState,
    RewardRole,
    RolloverResult,
    RoundData,
    SwapLeg,
    rate_from_fraction,
    rate_to_fraction,
)
from .simulation import InMemoryToken, ManualClock, MockPriceFeed, OracleRouter
from .storage import FundRepository

__all__ = [
    # Controller
    "FundController",
    "DEFAULT_FUND_ACCOUNT",
    # Core
    "FundState",
    "AssetRegistry",
    "ValuationEngine",
    "ShareLedger",
    "ProposalRegistry",
    "SwapCoordinator",
    "EpochRewardLedger",
    "rollover",
    # Collaborators
    "PriceFeed",
    "ValueToken",
    "ExchangeRouter",
    "InMemoryToken",
    "MockPriceFeed",
    "OracleRouter",
    "ManualClock",
    # Models
    "Asset",
    "RoundData",
    "FundParameters",
    "REWARD_RATE_SCALE",
    "rate_from_fraction",
    "rate_to_fraction",
    "SwapLeg",
    "Proposal",
    "ProposalState",
    "EpochRecord",
    "RolloverResult",
    "RewardRole",
    "PayoutResult",
    "AssetValuation",
    "EventKind",
    "LedgerEvent",
    # Storage
    "FundRepository",
]

"""
Fund Ledger Core Components.

Core functionality for valuation, share issuance, proposals, swaps and
epoch rewards.
"""

from .epochs import EpochRewardLedger, rollover
from .proposals import ProposalRegistry
from .protocols import ExchangeRouter, PriceFeed, ValueToken, call_collaborator
from .registry import AssetRegistry
from .shares import ShareLedger
from .state import FundState
from .swap import ExecutedLeg, SwapCoordinator
from .valuation import ValuationEngine

__all__ = [
    # State
    "FundState",
    # Collaborators
    "PriceFeed",
    "ValueToken",
    "ExchangeRouter",
    "call_collaborator",
    # Assets and valuation
    "AssetRegistry",
    "ValuationEngine",
    # Shares
    "ShareLedger",
    # Proposals and swaps
    "ProposalRegistry",
    "SwapCoordinator",
    "ExecutedLeg",
    # Epochs
    "EpochRewardLedger",
    "rollover",
]

"""
Fund State.

Single explicit container for all mutable fund data. Every component
operation receives the state it works on; nothing is kept in module or
class globals.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from ..models.assets import Asset
from ..models.config import FundParameters
from ..models.records import EpochRecord, Proposal


@dataclass
class FundState:
    """
    Mutable fund ledger state.

    Attributes:
        owner: Identity holding the owner/approver role
        account: Account under which the fund holds its assets
        parameters: Reconfigurable fund parameters
        assets: Registered assets in registration order (index 0 is the
            deposit asset)
        balances: Tracked holdings per token address
        share_supply: Total share supply
        share_balances: Share balance per holder
        share_allowances: owner -> spender -> allowance
        proposals: Active proposal list (unordered append list)
        next_proposal_id: Id handed to the next proposal
        current_epoch: The open reward epoch
        pending_epochs: Closed epochs not yet fully paid, oldest first
    """

    owner: str
    account: str
    parameters: FundParameters
    current_epoch: EpochRecord
    assets: List[Asset] = field(default_factory=list)
    balances: Dict[str, int] = field(default_factory=dict)
    share_supply: int = 0
    share_balances: Dict[str, int] = field(default_factory=dict)
    share_allowances: Dict[str, Dict[str, int]] = field(default_factory=dict)
    proposals: List[Proposal] = field(default_factory=list)
    next_proposal_id: int = 1
    pending_epochs: List[EpochRecord] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        owner: str,
        account: str,
        base_asset: Asset,
        now: int,
        parameters: Optional[FundParameters] = None,
    ) -> "FundState":
        """Create a fresh state with the deposit asset registered at index 0."""
        parameters = parameters or FundParameters()
        return cls(
            owner=owner,
            account=account,
            parameters=parameters,
            current_epoch=EpochRecord(
                index=0,
                start_time=now,
                duration=parameters.epoch_duration,
            ),
            assets=[base_asset],
            balances={base_asset.address: 0},
        )

    @property
    def base_asset(self) -> Asset:
        return self.assets[0]

    def balance_of(self, token_address: str) -> int:
        """Tracked holdings of a token."""
        return self.balances.get(token_address, 0)

    def snapshot(self) -> "FundState":
        """
        Copy everything a failed call could have touched.

        Assets are immutable and shared; collaborators are never copied.
        """
        return FundState(
            owner=self.owner,
            account=self.account,
            parameters=replace(self.parameters),
            current_epoch=self.current_epoch.copy(),
            assets=list(self.assets),
            balances=dict(self.balances),
            share_supply=self.share_supply,
            share_balances=dict(self.share_balances),
            share_allowances={k: dict(v) for k, v in self.share_allowances.items()},
            proposals=[Proposal.from_dict(p.to_dict()) for p in self.proposals],
            next_proposal_id=self.next_proposal_id,
            pending_epochs=[e.copy() for e in self.pending_epochs],
        )

    def restore(self, snapshot: "FundState") -> None:
        """Restore this state in place from a snapshot."""
        self.owner = snapshot.owner
        self.account = snapshot.account
        self.parameters = snapshot.parameters
        self.current_epoch = snapshot.current_epoch
        self.assets = snapshot.assets
        self.balances = snapshot.balances
        self.share_supply = snapshot.share_supply
        self.share_balances = snapshot.share_balances
        self.share_allowances = snapshot.share_allowances
        self.proposals = snapshot.proposals
        self.next_proposal_id = snapshot.next_proposal_id
        self.pending_epochs = snapshot.pending_epochs

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (assets as token/feed addresses)."""
        return {
            "owner": self.owner,
            "account": self.account,
            "parameters": self.parameters.to_dict(),
            "assets": [
                {"token": a.address, "feed": a.feed_address} for a in self.assets
            ],
            "balances": {k: str(v) for k, v in self.balances.items()},
            "share_supply": str(self.share_supply),
            "share_balances": {k: str(v) for k, v in self.share_balances.items()},
            "proposals": [p.to_dict() for p in self.proposals],
            "next_proposal_id": self.next_proposal_id,
            "current_epoch": self.current_epoch.to_dict(),
            "pending_epochs": [e.to_dict() for e in self.pending_epochs],
        }

"""
Fund Record Models.

Data models for proposals, reward epochs, payouts and the ledger event
history. Amounts are integers in base units; ``to_dict`` renders them as
strings because they routinely exceed 64 bits.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ProposalState(Enum):
    """
    Proposal lifecycle state.

    Lifecycle: ACTIVE -> (INTENT_SIGNALED) -> EXECUTED or CANCELLED
    """

    ACTIVE = "active"
    INTENT_SIGNALED = "intent_signaled"
    EXECUTED = "executed"
    CANCELLED = "cancelled"


class RewardRole(Enum):
    """Participant role that earns epoch rewards."""

    PROPOSER = "proposer"
    APPROVER = "approver"


class EventKind(Enum):
    """Kinds of ledger history events."""

    ISSUE = "issue"
    REDEEM = "redeem"
    SHARE_TRANSFER = "share_transfer"
    PROPOSAL_CREATED = "proposal_created"
    PROPOSAL_INTENT = "proposal_intent"
    PROPOSAL_ACCEPTED = "proposal_accepted"
    PROPOSAL_CANCELLED = "proposal_cancelled"
    PAYOUT = "payout"
    ASSET_ADDED = "asset_added"
    PARAMETER_CHANGED = "parameter_changed"
    OWNERSHIP_TRANSFERRED = "ownership_transferred"


@dataclass
class SwapLeg:
    """
    One asset exchange inside a proposal.

    Attributes:
        asset_in: Token address sold by the fund
        asset_out: Token address bought by the fund
        amount_in: Exact amount of asset_in to sell (base units)
        min_amount_out: Minimum acceptable output; 0 disables the guard
    """

    asset_in: str
    asset_out: str
    amount_in: int
    min_amount_out: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "asset_in": self.asset_in,
            "asset_out": self.asset_out,
            "amount_in": str(self.amount_in),
            "min_amount_out": str(self.min_amount_out),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SwapLeg":
        """Create from dictionary."""
        return cls(
            asset_in=data["asset_in"],
            asset_out=data["asset_out"],
            amount_in=int(data["amount_in"]),
            min_amount_out=int(data.get("min_amount_out", 0)),
        )


@dataclass
class Proposal:
    """
    Trade proposal.

    Attributes:
        id: Monotonic 1-based identifier, never reused
        proposer: Identity that created the proposal
        legs: Ordered swap legs
        created_at: Creation timestamp
        intent_to_accept_at: When the approver signalled intent, if ever
        state: Lifecycle state
        executed_at: Execution timestamp
        approver: Identity that accepted the proposal
        amounts_out: Output amounts returned by the exchange, per leg
    """

    id: int
    proposer: str
    legs: List[SwapLeg]
    created_at: int
    intent_to_accept_at: Optional[int] = None
    state: ProposalState = ProposalState.ACTIVE
    executed_at: Optional[int] = None
    approver: Optional[str] = None
    amounts_out: List[int] = field(default_factory=list)

    @property
    def input_assets(self) -> List[str]:
        return [leg.asset_in for leg in self.legs]

    @property
    def output_assets(self) -> List[str]:
        return [leg.asset_out for leg in self.legs]

    @property
    def amounts_in(self) -> List[int]:
        return [leg.amount_in for leg in self.legs]

    @property
    def min_amounts_out(self) -> List[int]:
        return [leg.min_amount_out for leg in self.legs]

    @property
    def is_open(self) -> bool:
        """Check if the proposal can still be signalled or accepted."""
        return self.state in (ProposalState.ACTIVE, ProposalState.INTENT_SIGNALED)

    def is_expired(self, now: int, ttl: int) -> bool:
        """Check if the proposal outlived its time-to-live (0 = never)."""
        return ttl > 0 and now >= self.created_at + ttl

    def unlocks_at(self, timelock: int) -> Optional[int]:
        """Earliest acceptance time once intent is signalled."""
        if self.intent_to_accept_at is None:
            return None
        return self.intent_to_accept_at + timelock

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "proposer": self.proposer,
            "legs": [leg.to_dict() for leg in self.legs],
            "created_at": self.created_at,
            "intent_to_accept_at": self.intent_to_accept_at,
            "state": self.state.value,
            "executed_at": self.executed_at,
            "approver": self.approver,
            "amounts_out": [str(a) for a in self.amounts_out],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Proposal":
        """Create from dictionary."""
        return cls(
            id=int(data["id"]),
            proposer=data["proposer"],
            legs=[SwapLeg.from_dict(leg) for leg in data.get("legs", [])],
            created_at=int(data["created_at"]),
            intent_to_accept_at=data.get("intent_to_accept_at"),
            state=ProposalState(data.get("state", "active")),
            executed_at=data.get("executed_at"),
            approver=data.get("approver"),
            amounts_out=[int(a) for a in data.get("amounts_out", [])],
        )


@dataclass
class EpochRecord:
    """
    Participation tally for one reward epoch.

    Settlement fixes both reward pools the first time a payout reaches a
    closed epoch; each payout side then mints its part.

    Attributes:
        index: Sequential epoch number (0 for the first epoch)
        start_time: Epoch start timestamp
        duration: Epoch length in seconds
        proposer_counts: Accepted proposals per proposer
        approver_counts: Accepted proposals per approver
        total_accepted: Proposals accepted during the epoch
        closed: Whether the epoch window has elapsed
        settled_supply: Supply figure used to size both pools
        proposer_rewards: Per-proposer reward, fixed at settlement
        approver_rewards: Per-approver reward, fixed at settlement
        proposers_paid: Proposer rewards minted
        approvers_paid: Approver rewards minted
    """

    index: int
    start_time: int
    duration: int
    proposer_counts: Dict[str, int] = field(default_factory=dict)
    approver_counts: Dict[str, int] = field(default_factory=dict)
    total_accepted: int = 0
    closed: bool = False
    settled_supply: Optional[int] = None
    proposer_rewards: Optional[Dict[str, int]] = None
    approver_rewards: Optional[Dict[str, int]] = None
    proposers_paid: bool = False
    approvers_paid: bool = False

    @property
    def end_time(self) -> int:
        return self.start_time + self.duration

    @property
    def is_empty(self) -> bool:
        return self.total_accepted == 0

    @property
    def is_settled(self) -> bool:
        return self.settled_supply is not None

    @property
    def paid(self) -> bool:
        """Both reward sides minted."""
        return self.proposers_paid and self.approvers_paid

    @property
    def outstanding_rewards(self) -> int:
        """Rewards fixed at settlement but not minted yet."""
        outstanding = 0
        if self.proposer_rewards is not None and not self.proposers_paid:
            outstanding += sum(self.proposer_rewards.values())
        if self.approver_rewards is not None and not self.approvers_paid:
            outstanding += sum(self.approver_rewards.values())
        return outstanding

    def record_acceptance(self, proposer: str, approver: str) -> None:
        """Tally one accepted proposal."""
        self.proposer_counts[proposer] = self.proposer_counts.get(proposer, 0) + 1
        self.approver_counts[approver] = self.approver_counts.get(approver, 0) + 1
        self.total_accepted += 1

    def copy(self) -> "EpochRecord":
        """Independent copy (dict fields are not shared)."""
        return EpochRecord(
            index=self.index,
            start_time=self.start_time,
            duration=self.duration,
            proposer_counts=dict(self.proposer_counts),
            approver_counts=dict(self.approver_counts),
            total_accepted=self.total_accepted,
            closed=self.closed,
            settled_supply=self.settled_supply,
            proposer_rewards=(
                dict(self.proposer_rewards) if self.proposer_rewards is not None else None
            ),
            approver_rewards=(
                dict(self.approver_rewards) if self.approver_rewards is not None else None
            ),
            proposers_paid=self.proposers_paid,
            approvers_paid=self.approvers_paid,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""

        def _amounts(rewards: Optional[Dict[str, int]]) -> Optional[Dict[str, str]]:
            if rewards is None:
                return None
            return {k: str(v) for k, v in rewards.items()}

        return {
            "index": self.index,
            "start_time": self.start_time,
            "duration": self.duration,
            "end_time": self.end_time,
            "proposer_counts": dict(self.proposer_counts),
            "approver_counts": dict(self.approver_counts),
            "total_accepted": self.total_accepted,
            "closed": self.closed,
            "settled_supply": (
                str(self.settled_supply) if self.settled_supply is not None else None
            ),
            "proposer_rewards": _amounts(self.proposer_rewards),
            "approver_rewards": _amounts(self.approver_rewards),
            "proposers_paid": self.proposers_paid,
            "approvers_paid": self.approvers_paid,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EpochRecord":
        """Create from dictionary."""

        def _amounts(rewards: Optional[Dict[str, Any]]) -> Optional[Dict[str, int]]:
            if rewards is None:
                return None
            return {k: int(v) for k, v in rewards.items()}

        settled = data.get("settled_supply")
        return cls(
            index=int(data["index"]),
            start_time=int(data["start_time"]),
            duration=int(data["duration"]),
            proposer_counts={k: int(v) for k, v in data.get("proposer_counts", {}).items()},
            approver_counts={k: int(v) for k, v in data.get("approver_counts", {}).items()},
            total_accepted=int(data.get("total_accepted", 0)),
            closed=data.get("closed", False),
            settled_supply=int(settled) if settled is not None else None,
            proposer_rewards=_amounts(data.get("proposer_rewards")),
            approver_rewards=_amounts(data.get("approver_rewards")),
            proposers_paid=data.get("proposers_paid", False),
            approvers_paid=data.get("approvers_paid", False),
        )


@dataclass
class RolloverResult:
    """
    Outcome of a rollover check.

    Attributes:
        current: The open epoch after the check
        closed: Epochs closed by this check, oldest first
        skipped_empty: Whole windows that elapsed with no activity at all
    """

    current: EpochRecord
    closed: List[EpochRecord] = field(default_factory=list)
    skipped_empty: int = 0

    @property
    def rolled_over(self) -> bool:
        return bool(self.closed) or self.skipped_empty > 0


@dataclass
class AssetValuation:
    """Valuation of one registered asset."""

    address: str
    symbol: str
    balance: int
    price: int
    price_decimals: int
    token_decimals: int
    value: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "address": self.address,
            "symbol": self.symbol,
            "balance": str(self.balance),
            "price": str(self.price),
            "price_decimals": self.price_decimals,
            "token_decimals": self.token_decimals,
            "value": str(self.value),
        }


@dataclass
class PayoutResult:
    """
    Result of a reward payout call.

    Attributes:
        role: Which participants were paid
        timestamp: Clock reading of the call
        epochs_paid: Epoch indices whose rewards were minted
        epochs_discarded: Epoch indices dropped with zero acceptances
        rewards: Minted amount per participant, summed over epochs
    """

    role: RewardRole
    timestamp: int
    epochs_paid: List[int] = field(default_factory=list)
    epochs_discarded: List[int] = field(default_factory=list)
    rewards: Dict[str, int] = field(default_factory=dict)

    @property
    def total_minted(self) -> int:
        return sum(self.rewards.values())

    @property
    def is_noop(self) -> bool:
        return not self.epochs_paid and not self.epochs_discarded

    def add_reward(self, participant: str, amount: int) -> None:
        """Accumulate a minted reward."""
        self.rewards[participant] = self.rewards.get(participant, 0) + amount

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "role": self.role.value,
            "timestamp": self.timestamp,
            "epochs_paid": list(self.epochs_paid),
            "epochs_discarded": list(self.epochs_discarded),
            "rewards": {k: str(v) for k, v in self.rewards.items()},
            "total_minted": str(self.total_minted),
        }


@dataclass
class LedgerEvent:
    """
    Entry in the fund's event history.

    Attributes:
        id: Unique event identifier
        timestamp: Clock reading of the call that produced the event
        kind: Event kind
        actor: Calling identity
        data: Event payload (JSON-serialisable)
    """

    kind: EventKind
    actor: str
    timestamp: int
    data: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "kind": self.kind.value,
            "actor": self.actor,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerEvent":
        """Create from dictionary."""
        return cls(
            id=data.get("id", str(uuid.uuid4())),
            timestamp=int(data["timestamp"]),
            kind=EventKind(data["kind"]),
            actor=data.get("actor", ""),
            data=data.get("data", {}),
        )

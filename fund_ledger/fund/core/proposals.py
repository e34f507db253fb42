"""
Proposal Registry.

Lifecycle of trade proposals:
- Creation by any caller, with a fresh monotonic id
- Optional intent-to-accept signal starting the acceptance timelock
- Acceptance checks (state, timelock, expiry) ahead of execution
- Cancellation and expiry pruning
"""

from typing import List, Sequence

from fund_ledger.core import (
    AssetNotFoundError,
    InvalidAmountError,
    InvalidStateError,
    ProposalNotFoundError,
    TimelockActiveError,
    get_logger,
)

from ..models.records import Proposal, ProposalState, SwapLeg
from .state import FundState

logger = get_logger(__name__)


class ProposalRegistry:
    """
    Active proposal list with its state machine.

    States: ACTIVE -> INTENT_SIGNALED (optional) -> EXECUTED or CANCELLED.
    Terminal proposals leave the active list; lookups are a linear scan.

    Example:
        >>> registry = ProposalRegistry()
        >>> proposal = registry.create(state, "bob", [SwapLeg(usdc, weth, 2_000)], now)
        >>> registry.intent_to_accept(state, proposal.id, now)
    """

    # =========================================================================
    # Creation
    # =========================================================================

    def validate_legs(self, state: FundState, legs: Sequence[SwapLeg]) -> None:
        """
        Validate proposal legs against the registered assets.

        Raises:
            InvalidAmountError: Empty leg list, or a non-positive/negative amount
            AssetNotFoundError: If a leg references an unregistered asset
            InvalidStateError: If a leg swaps an asset into itself
        """
        if not legs:
            raise InvalidAmountError("Proposal needs at least one swap leg")

        registered = {asset.address for asset in state.assets}
        for position, leg in enumerate(legs):
            for token in (leg.asset_in, leg.asset_out):
                if token not in registered:
                    raise AssetNotFoundError(
                        f"Leg {position} references unregistered asset {token}",
                        details={"leg": position, "token": token},
                    )
            if leg.asset_in == leg.asset_out:
                raise InvalidStateError(
                    f"Leg {position} swaps {leg.asset_in} into itself",
                    details={"leg": position},
                )
            if leg.amount_in <= 0:
                raise InvalidAmountError(
                    f"Leg {position} amount_in must be positive",
                    details={"leg": position, "amount_in": leg.amount_in},
                )
            if leg.min_amount_out < 0:
                raise InvalidAmountError(
                    f"Leg {position} min_amount_out cannot be negative",
                    details={"leg": position, "min_amount_out": leg.min_amount_out},
                )

    def create(
        self,
        state: FundState,
        proposer: str,
        legs: Sequence[SwapLeg],
        now: int,
    ) -> Proposal:
        """
        Register a new ACTIVE proposal.

        Args:
            state: Fund state
            proposer: Identity creating the proposal
            legs: Ordered swap legs
            now: Clock reading

        Returns:
            The created Proposal
        """
        self.validate_legs(state, legs)

        proposal = Proposal(
            id=state.next_proposal_id,
            proposer=proposer,
            legs=list(legs),
            created_at=now,
        )
        state.next_proposal_id += 1
        state.proposals.append(proposal)

        logger.info(f"Proposal #{proposal.id} created by {proposer} with {len(proposal.legs)} leg(s)")
        return proposal

    # =========================================================================
    # Lookup
    # =========================================================================

    def find(self, state: FundState, proposal_id: int) -> Proposal:
        """
        Find an active proposal by id.

        Raises:
            ProposalNotFoundError: If the id is not in the active list
        """
        for proposal in state.proposals:
            if proposal.id == proposal_id:
                return proposal
        raise ProposalNotFoundError(
            f"Proposal #{proposal_id} is not active",
            proposal_id=proposal_id,
        )

    def active(self, state: FundState, now: int) -> List[Proposal]:
        """Active proposals that have not expired, in creation order."""
        ttl = state.parameters.proposal_ttl
        return [p for p in state.proposals if not p.is_expired(now, ttl)]

    # =========================================================================
    # Transitions
    # =========================================================================

    def _require_unexpired(self, state: FundState, proposal: Proposal, now: int) -> None:
        if proposal.is_expired(now, state.parameters.proposal_ttl):
            raise InvalidStateError(
                f"Proposal #{proposal.id} has expired",
                details={
                    "proposal_id": proposal.id,
                    "created_at": proposal.created_at,
                    "ttl": state.parameters.proposal_ttl,
                },
            )

    def intent_to_accept(self, state: FundState, proposal_id: int, now: int) -> Proposal:
        """
        Signal intent to accept, starting the timelock clock.

        Raises:
            ProposalNotFoundError: Unknown or inactive id
            InvalidStateError: Proposal not ACTIVE, or expired
        """
        proposal = self.find(state, proposal_id)
        if proposal.state != ProposalState.ACTIVE:
            raise InvalidStateError(
                f"Proposal #{proposal_id} is {proposal.state.value}, expected active",
                details={"proposal_id": proposal_id, "state": proposal.state.value},
            )
        self._require_unexpired(state, proposal, now)

        proposal.state = ProposalState.INTENT_SIGNALED
        proposal.intent_to_accept_at = now
        logger.info(f"Intent to accept proposal #{proposal_id} signalled at {now}")
        return proposal

    def check_acceptable(self, state: FundState, proposal_id: int, now: int) -> Proposal:
        """
        Verify a proposal may be accepted now.

        With a timelock configured the proposal must be INTENT_SIGNALED and
        the timelock must have elapsed; without one, ACTIVE also suffices.

        Raises:
            ProposalNotFoundError: Unknown or already executed id
            InvalidStateError: Wrong state or expired
            TimelockActiveError: Timelock not yet elapsed
        """
        proposal = self.find(state, proposal_id)
        if not proposal.is_open:
            raise InvalidStateError(
                f"Proposal #{proposal_id} is {proposal.state.value}",
                details={"proposal_id": proposal_id, "state": proposal.state.value},
            )
        self._require_unexpired(state, proposal, now)

        timelock = state.parameters.acceptance_timelock
        if timelock > 0:
            if proposal.state != ProposalState.INTENT_SIGNALED:
                raise InvalidStateError(
                    f"Proposal #{proposal_id} needs an intent signal before acceptance",
                    details={"proposal_id": proposal_id, "timelock": timelock},
                )
            unlocks_at = proposal.unlocks_at(timelock)
            if now < unlocks_at:
                raise TimelockActiveError(
                    f"Proposal #{proposal_id} is timelocked",
                    unlocks_at=unlocks_at,
                    details={"proposal_id": proposal_id, "now": now},
                )
        return proposal

    def mark_executed(
        self,
        state: FundState,
        proposal: Proposal,
        approver: str,
        amounts_out: List[int],
        now: int,
    ) -> None:
        """Close an accepted proposal and drop it from the active list."""
        proposal.state = ProposalState.EXECUTED
        proposal.approver = approver
        proposal.amounts_out = list(amounts_out)
        proposal.executed_at = now
        state.proposals = [p for p in state.proposals if p.id != proposal.id]

    def cancel(self, state: FundState, proposal_id: int) -> Proposal:
        """
        Cancel an open proposal and drop it from the active list.

        Raises:
            ProposalNotFoundError: Unknown or inactive id
        """
        proposal = self.find(state, proposal_id)
        proposal.state = ProposalState.CANCELLED
        state.proposals = [p for p in state.proposals if p.id != proposal_id]
        logger.info(f"Proposal #{proposal_id} cancelled")
        return proposal

    def prune_expired(self, state: FundState, now: int) -> List[Proposal]:
        """
        Cancel and remove expired proposals.

        Returns:
            The pruned proposals
        """
        ttl = state.parameters.proposal_ttl
        if ttl <= 0:
            return []

        expired = [p for p in state.proposals if p.is_expired(now, ttl)]
        if expired:
            for proposal in expired:
                proposal.state = ProposalState.CANCELLED
            expired_ids = {p.id for p in expired}
            state.proposals = [p for p in state.proposals if p.id not in expired_ids]
            logger.info(f"Pruned {len(expired)} expired proposal(s): {sorted(expired_ids)}")
        return expired

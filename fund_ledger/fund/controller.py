"""
Fund Controller.

Public entry points of the fund ledger. Each mutating call runs as one
serialized transaction: the state is snapshotted, epoch rollover is
checked, the operation runs, and any error restores the snapshot.
"""

import threading
from contextlib import contextmanager
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, Dict, Generator, List, Optional, Sequence, Union

from fund_ledger.core import (
    AuditLogger,
    AuthorizationError,
    FundLedgerError,
    InvalidAmountError,
    InvalidStateError,
    ReentrancyError,
    clear_request_context,
    get_audit_logger,
    get_logger,
    now_timestamp,
    set_correlation_id,
    set_request_context,
)

from .core.epochs import EpochRewardLedger
from .core.proposals import ProposalRegistry
from .core.protocols import ExchangeRouter, PriceFeed, ValueToken, call_collaborator
from .core.registry import AssetRegistry
from .core.shares import ShareLedger
from .core.state import FundState
from .core.swap import SwapCoordinator
from .core.valuation import ValuationEngine
from .models.assets import Asset
from .models.config import REWARD_RATE_SCALE, FundParameters, rate_from_fraction
from .models.records import (
    AssetValuation,
    EpochRecord,
    EventKind,
    LedgerEvent,
    PayoutResult,
    Proposal,
    RewardRole,
    SwapLeg,
)

if TYPE_CHECKING:
    from .storage.repository import FundRepository

logger = get_logger(__name__)

DEFAULT_FUND_ACCOUNT = "fund"

RateInput = Union[int, Decimal, str]


class FundController:
    """
    Fund ledger entry points.

    Owner-only calls (intent, accept, asset registration, setters) check the
    caller identity before touching state. Calls made from inside an
    in-flight entry point, e.g. by a router during a swap, are rejected
    with ReentrancyError; calls from other threads wait for the lock.

    Example:
        >>> fund = FundController.create("gov", usdc, usdc_feed, router)
        >>> shares = fund.issue("alice", 100_000 * 10**6)
        >>> proposal = fund.propose_swap("bob", usdc.address, weth.address, 2_000 * 10**6)
        >>> fund.accept_proposal("gov", proposal.id)
        >>> fund.payout_proposers("anyone")
    """

    def __init__(
        self,
        state: FundState,
        router: ExchangeRouter,
        clock: Optional[Callable[[], int]] = None,
        repository: Optional["FundRepository"] = None,
        audit: Optional[AuditLogger] = None,
        max_history: int = 1000,
    ):
        """
        Initialize FundController.

        Args:
            state: Fund state to operate on
            router: Exchange router used to execute proposals
            clock: Callable returning the current UNIX time in seconds
            repository: Optional repository saved after every successful call
            audit: Audit logger (defaults to the shared "fund" channel)
            max_history: Ledger events kept in memory
        """
        self.state = state
        self._clock = clock or now_timestamp
        self._repository = repository
        self._audit = audit or get_audit_logger()

        # Components
        self._registry = AssetRegistry()
        self._valuation = ValuationEngine()
        self._shares = ShareLedger(self._valuation)
        self._proposals = ProposalRegistry()
        self._swaps = SwapCoordinator(router, self._registry)
        self._epochs = EpochRewardLedger(self._shares)

        # Transaction state
        self._lock = threading.Lock()
        self._active_thread: Optional[int] = None
        self._pending_events: List[LedgerEvent] = []
        self._unsaved_events: List[LedgerEvent] = []

        self._history: List[LedgerEvent] = []
        self._max_history = max_history

        logger.info(
            f"FundController initialized: owner={state.owner}, "
            f"base asset={state.base_asset.symbol}"
        )

    @classmethod
    def create(
        cls,
        owner: str,
        base_token: ValueToken,
        base_feed: PriceFeed,
        router: ExchangeRouter,
        parameters: Optional[FundParameters] = None,
        account: str = DEFAULT_FUND_ACCOUNT,
        clock: Optional[Callable[[], int]] = None,
        repository: Optional["FundRepository"] = None,
        audit: Optional[AuditLogger] = None,
    ) -> "FundController":
        """Create a fresh fund with the deposit asset registered at index 0."""
        clock = clock or now_timestamp
        state = FundState.create(
            owner=owner,
            account=account,
            base_asset=Asset(token=base_token, feed=base_feed),
            now=clock(),
            parameters=parameters,
        )
        return cls(state, router, clock=clock, repository=repository, audit=audit)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def owner(self) -> str:
        return self.state.owner

    @property
    def account(self) -> str:
        """Account under which the fund holds its assets."""
        return self.state.account

    @property
    def parameters(self) -> FundParameters:
        return self.state.parameters

    @property
    def router(self) -> ExchangeRouter:
        return self._swaps.router

    @property
    def total_supply(self) -> int:
        return self.state.share_supply

    @property
    def current_epoch(self) -> EpochRecord:
        return self.state.current_epoch

    @property
    def pending_epochs(self) -> List[EpochRecord]:
        return list(self.state.pending_epochs)

    # =========================================================================
    # Transactions
    # =========================================================================

    def _guard_reentry(self, operation: str) -> None:
        if self._active_thread == threading.get_ident():
            raise ReentrancyError(
                f"{operation} called while another fund operation is in flight",
                details={"operation": operation},
            )

    @contextmanager
    def _transaction(self, operation: str, caller: str) -> Generator[int, None, None]:
        """
        Run a mutating entry point atomically.

        The in-memory commit happens once the operation returns; a failed
        save afterwards is logged and retried with the next commit.

        Yields:
            Clock reading for the call (after the rollover check)
        """
        self._guard_reentry(operation)

        with self._lock:
            self._active_thread = threading.get_ident()
            set_correlation_id()
            set_request_context(caller)
            snapshot = self.state.snapshot()
            self._pending_events = []
            now: Optional[int] = None
            try:
                now = self._clock()
                self._epochs.check_rollover(self.state, now)
                yield now
            except Exception as e:
                self.state.restore(snapshot)
                self._pending_events = []
                self._apply_corrections(e, caller, now)
                if isinstance(e, FundLedgerError):
                    self._audit.call_rejected(operation, caller, e)
                    logger.warning(f"{operation} by {caller} rejected: {e}")
                else:
                    logger.error(f"{operation} by {caller} failed: {e}")
                raise
            else:
                self._commit()
            finally:
                self._active_thread = None
                clear_request_context()

    @contextmanager
    def _read(self, operation: str) -> Generator[None, None, None]:
        """Serialize a read against in-flight transactions."""
        self._guard_reentry(operation)
        with self._lock:
            yield

    def _commit(self) -> None:
        events = self._pending_events
        self._pending_events = []
        self._history.extend(events)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]
        self._persist(events)

    def _persist(self, events: List[LedgerEvent]) -> None:
        """Save the committed state; unsaved events carry over to the next save."""
        if self._repository is None:
            return
        events = self._unsaved_events + events
        try:
            self._repository.save(self.state, events)
        except Exception as e:
            self._unsaved_events = events
            logger.error(f"Saving fund state failed, {len(events)} event(s) held for retry: {e}")
        else:
            self._unsaved_events = []

    def _apply_corrections(self, error: Exception, caller: str, now: Optional[int]) -> None:
        """
        Settle effects that left the fund before the call failed.

        ``balance_corrections`` keep tracked balances equal to holdings;
        ``share_burns`` retire the shares paid for by a partial redemption.
        """
        if not isinstance(error, FundLedgerError) or now is None:
            return
        corrections: Dict[str, int] = error.details.get("balance_corrections") or {}
        burns: Dict[str, int] = error.details.get("share_burns") or {}
        if not corrections and not burns:
            return

        for token, delta in corrections.items():
            self.state.balances[token] = self.state.balance_of(token) + delta
        logger.warning(f"Tracked balances corrected after partial failure: {corrections}")

        for holder, shares in burns.items():
            self._shares.burn(self.state, holder, shares)
            delivered = {token: -delta for token, delta in corrections.items()}
            self._record(
                EventKind.REDEEM,
                holder,
                now,
                shares=str(shares),
                amounts={k: str(v) for k, v in delivered.items()},
                partial=True,
            )
            self._audit.shares_redeemed(holder, shares, delivered)
            logger.warning(f"Burned {shares} shares of {holder} for delivered payouts {delivered}")

        self._commit()

    def _record(self, kind: EventKind, actor: str, now: int, **data: Any) -> None:
        self._pending_events.append(
            LedgerEvent(kind=kind, actor=actor, timestamp=now, data=data)
        )

    def _require_owner(self, caller: str, operation: str) -> None:
        if caller != self.state.owner:
            raise AuthorizationError(
                f"{operation} is restricted to the owner",
                details={"caller": caller, "operation": operation},
            )

    # =========================================================================
    # Shares
    # =========================================================================

    def issue(self, caller: str, amount: int) -> int:
        """
        Deposit the base asset and mint shares.

        The caller must have approved the fund account on the base token.

        Returns:
            Shares minted
        """
        with self._transaction("issue", caller) as now:
            shares = self._shares.issue(self.state, caller, amount)
            self._record(EventKind.ISSUE, caller, now, deposit=str(amount), shares=str(shares))
            self._audit.shares_issued(caller, amount, shares)
        return shares

    def redeem(self, caller: str, share_amount: int) -> Dict[str, int]:
        """
        Burn shares for a proportional slice of every held asset.

        Returns:
            Amount paid per token address
        """
        with self._transaction("redeem", caller) as now:
            payouts = self._shares.redeem(self.state, caller, share_amount)
            self._record(
                EventKind.REDEEM,
                caller,
                now,
                shares=str(share_amount),
                amounts={k: str(v) for k, v in payouts.items()},
            )
            self._audit.shares_redeemed(caller, share_amount, payouts)
        return payouts

    def transfer_shares(self, caller: str, recipient: str, amount: int) -> None:
        with self._transaction("transfer_shares", caller) as now:
            self._shares.transfer(self.state, caller, recipient, amount)
            self._record(
                EventKind.SHARE_TRANSFER, caller, now, recipient=recipient, amount=str(amount)
            )

    def approve_shares(self, caller: str, spender: str, amount: int) -> None:
        with self._transaction("approve_shares", caller):
            self._shares.approve(self.state, caller, spender, amount)

    def transfer_shares_from(self, caller: str, owner: str, recipient: str, amount: int) -> None:
        """Move an owner's shares using the caller's allowance."""
        with self._transaction("transfer_shares_from", caller) as now:
            self._shares.transfer_from(self.state, caller, owner, recipient, amount)
            self._record(
                EventKind.SHARE_TRANSFER,
                caller,
                now,
                owner=owner,
                recipient=recipient,
                amount=str(amount),
            )

    # =========================================================================
    # Proposals
    # =========================================================================

    def create_proposal(self, caller: str, legs: Sequence[SwapLeg]) -> Proposal:
        """
        Register an ACTIVE trade proposal.

        Args:
            caller: Proposer identity (no role required)
            legs: Ordered swap legs

        Returns:
            The created Proposal
        """
        with self._transaction("create_proposal", caller) as now:
            self._proposals.prune_expired(self.state, now)
            proposal = self._proposals.create(self.state, caller, legs, now)
            self._record(
                EventKind.PROPOSAL_CREATED,
                caller,
                now,
                proposal_id=proposal.id,
                legs=[leg.to_dict() for leg in proposal.legs],
            )
        return proposal

    def propose_swap(
        self,
        caller: str,
        asset_in: str,
        asset_out: str,
        amount_in: int,
        min_amount_out: int = 0,
    ) -> Proposal:
        """Single-leg form of ``create_proposal``."""
        return self.create_proposal(
            caller,
            [SwapLeg(asset_in, asset_out, amount_in, min_amount_out)],
        )

    def intent_to_accept(self, caller: str, proposal_id: int) -> Proposal:
        """Signal intent to accept a proposal (owner only)."""
        with self._transaction("intent_to_accept", caller) as now:
            self._require_owner(caller, "intent_to_accept")
            proposal = self._proposals.intent_to_accept(self.state, proposal_id, now)
            self._record(EventKind.PROPOSAL_INTENT, caller, now, proposal_id=proposal_id)
        return proposal

    def accept_proposal(self, caller: str, proposal_id: int) -> Proposal:
        """
        Execute a proposal through the router (owner only).

        Returns:
            The executed Proposal with ``amounts_out`` filled in
        """
        with self._transaction("accept_proposal", caller) as now:
            self._require_owner(caller, "accept_proposal")
            proposal = self._proposals.check_acceptable(self.state, proposal_id, now)
            amounts_out = self._swaps.execute(self.state, proposal)
            self._proposals.mark_executed(self.state, proposal, caller, amounts_out, now)
            self._epochs.record_acceptance(self.state, proposal.proposer, caller)
            self._proposals.prune_expired(self.state, now)

            self._record(
                EventKind.PROPOSAL_ACCEPTED,
                caller,
                now,
                proposal_id=proposal.id,
                proposer=proposal.proposer,
                epoch=self.state.current_epoch.index,
                amounts_out=[str(a) for a in amounts_out],
            )
            self._audit.proposal_accepted(proposal.id, caller, proposal.proposer, amounts_out)
        return proposal

    def cancel_proposal(self, caller: str, proposal_id: int) -> Proposal:
        """Cancel an open proposal (its proposer or the owner)."""
        with self._transaction("cancel_proposal", caller) as now:
            proposal = self._proposals.find(self.state, proposal_id)
            if caller not in (proposal.proposer, self.state.owner):
                raise AuthorizationError(
                    f"Only the proposer or the owner may cancel proposal #{proposal_id}",
                    details={"caller": caller, "proposal_id": proposal_id},
                )
            self._proposals.cancel(self.state, proposal_id)
            self._record(EventKind.PROPOSAL_CANCELLED, caller, now, proposal_id=proposal_id)
        return proposal

    # =========================================================================
    # Rewards
    # =========================================================================

    def payout_proposers(self, caller: str) -> PayoutResult:
        """Mint proposer rewards for every closed epoch."""
        return self._payout(caller, RewardRole.PROPOSER)

    def payout_approvers(self, caller: str) -> PayoutResult:
        """Mint approver rewards for every closed epoch."""
        return self._payout(caller, RewardRole.APPROVER)

    def _payout(self, caller: str, role: RewardRole) -> PayoutResult:
        with self._transaction(f"payout_{role.value}s", caller) as now:
            result = self._epochs.payout(self.state, role, now)
            if not result.is_noop:
                self._record(EventKind.PAYOUT, caller, now, **result.to_dict())
                self._audit.rewards_paid(role.value, result.epochs_paid, result.rewards)
        return result

    # =========================================================================
    # Administration
    # =========================================================================

    def add_asset(self, caller: str, token: ValueToken, feed: PriceFeed) -> Asset:
        """Register a new asset (owner only)."""
        with self._transaction("add_asset", caller) as now:
            self._require_owner(caller, "add_asset")
            asset = self._registry.add_asset(self.state, token, feed)
            self._record(
                EventKind.ASSET_ADDED, caller, now, token=asset.address, feed=asset.feed_address
            )
            self._audit.asset_added(caller, asset.address, asset.feed_address)
        return asset

    def _set_parameters(self, caller: str, operation: str, **changes: Any) -> None:
        with self._transaction(operation, caller) as now:
            self._require_owner(caller, operation)
            for name, value in changes.items():
                old = getattr(self.state.parameters, name)
                if name == "epoch_duration":
                    # Windows elapsed under the old duration were closed by the
                    # rollover check; the open epoch switches from here on
                    self.state.current_epoch.duration = value
                setattr(self.state.parameters, name, value)
                self._record(
                    EventKind.PARAMETER_CHANGED,
                    caller,
                    now,
                    parameter=name,
                    old=str(old),
                    new=str(value),
                )
                self._audit.config_changed(caller, name, old, value)
                logger.info(f"Parameter {name} changed: {old} -> {value}")

    def set_epoch_duration(self, caller: str, duration: int) -> None:
        if duration <= 0:
            raise InvalidAmountError("Epoch duration must be positive", details={"duration": duration})
        self._set_parameters(caller, "set_epoch_duration", epoch_duration=duration)

    def _to_rate(self, value: RateInput) -> int:
        rate = value if isinstance(value, int) else rate_from_fraction(value)
        if not 0 <= rate <= REWARD_RATE_SCALE:
            raise InvalidAmountError(
                f"Reward rate must be within [0, {REWARD_RATE_SCALE}]",
                details={"rate": rate},
            )
        return rate

    def set_proposer_reward_rate(self, caller: str, rate: RateInput) -> None:
        """Set the proposer rate (fixed-point int, or a fraction such as "0.01")."""
        self._set_parameters(
            caller, "set_proposer_reward_rate", proposer_reward_rate=self._to_rate(rate)
        )

    def set_approver_reward_rate(self, caller: str, rate: RateInput) -> None:
        self._set_parameters(
            caller, "set_approver_reward_rate", approver_reward_rate=self._to_rate(rate)
        )

    def set_reward_rates(self, caller: str, proposer_rate: RateInput, approver_rate: RateInput) -> None:
        self._set_parameters(
            caller,
            "set_reward_rates",
            proposer_reward_rate=self._to_rate(proposer_rate),
            approver_reward_rate=self._to_rate(approver_rate),
        )

    def set_timelock_duration(self, caller: str, duration: int) -> None:
        if duration < 0:
            raise InvalidAmountError("Timelock cannot be negative", details={"duration": duration})
        self._set_parameters(caller, "set_timelock_duration", acceptance_timelock=duration)

    def set_proposal_ttl(self, caller: str, ttl: int) -> None:
        if ttl < 0:
            raise InvalidAmountError("Proposal TTL cannot be negative", details={"ttl": ttl})
        self._set_parameters(caller, "set_proposal_ttl", proposal_ttl=ttl)

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        """Hand the owner/approver role to another identity (owner only)."""
        with self._transaction("transfer_ownership", caller) as now:
            self._require_owner(caller, "transfer_ownership")
            if not new_owner:
                raise InvalidStateError("New owner identity cannot be empty")
            self.state.owner = new_owner
            self._record(EventKind.OWNERSHIP_TRANSFERRED, caller, now, new_owner=new_owner)
            self._audit.ownership_transferred(caller, new_owner)
        logger.info(f"Ownership transferred: {caller} -> {new_owner}")

    # =========================================================================
    # Queries
    # =========================================================================

    def total_value(self) -> int:
        """NAV in deposit-asset base units."""
        with self._read("total_value"):
            return self._valuation.total_value(self.state)

    def asset_valuations(self) -> List[AssetValuation]:
        with self._read("asset_valuations"):
            return self._valuation.asset_valuations(self.state)

    def share_price(self) -> int:
        """Value of one whole share in deposit-asset base units."""
        with self._read("share_price"):
            return self._valuation.share_price(self.state)

    def balance_of(self, holder: str) -> int:
        with self._read("balance_of"):
            return self._shares.balance_of(self.state, holder)

    def allowance(self, owner: str, spender: str) -> int:
        with self._read("allowance"):
            return self._shares.allowance(self.state, owner, spender)

    def get_assets(self) -> List[Asset]:
        with self._read("get_assets"):
            return self._registry.assets(self.state)

    def get_active_proposals(self) -> List[Proposal]:
        """Open proposals that have not expired."""
        with self._read("get_active_proposals"):
            return self._proposals.active(self.state, self._clock())

    def get_proposal(self, proposal_id: int) -> Proposal:
        with self._read("get_proposal"):
            return self._proposals.find(self.state, proposal_id)

    def history(self, kind: Optional[EventKind] = None, limit: int = 100) -> List[LedgerEvent]:
        """Most recent ledger events, newest last."""
        with self._read("history"):
            events = self._history
            if kind is not None:
                events = [e for e in events if e.kind == kind]
            return events[-limit:]

    def check_holdings(self) -> Dict[str, int]:
        """
        Compare tracked balances with actual token holdings.

        Returns:
            Actual holdings per token address

        Raises:
            InvalidStateError: If any tracked balance differs from holdings
        """
        with self._read("check_holdings"):
            holdings = {}
            drift = {}
            for asset in self.state.assets:
                held = call_collaborator(
                    f"Balance query of {asset.symbol}",
                    asset.token.balance_of,
                    self.state.account,
                )
                holdings[asset.address] = held
                tracked = self.state.balance_of(asset.address)
                if held != tracked:
                    drift[asset.address] = {"tracked": tracked, "held": held}

        if drift:
            raise InvalidStateError("Tracked balances drifted from holdings", details={"drift": drift})
        return holdings

    def get_status(self) -> Dict[str, Any]:
        """Summary of the fund for reporting."""
        with self._read("get_status"):
            return {
                "owner": self.state.owner,
                "account": self.state.account,
                "share_symbol": self.state.parameters.share_symbol,
                "share_supply": str(self.state.share_supply),
                "nav": str(self._valuation.total_value(self.state)),
                "assets": [v.to_dict() for v in self._valuation.asset_valuations(self.state)],
                "active_proposals": len(self.state.proposals),
                "current_epoch": self.state.current_epoch.to_dict(),
                "pending_epochs": len(self.state.pending_epochs),
                "parameters": self.state.parameters.to_dict(),
            }

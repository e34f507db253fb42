"""
Swap Coordinator.

Hands an accepted proposal to the exchange router leg by leg and records
the resulting balance changes. Every leg is quoted before the first swap;
legs already executed are unwound when a later one fails.
"""

from dataclasses import dataclass
from typing import Dict, List

from fund_ledger.core import (
    ExternalFailureError,
    FundLedgerError,
    InsufficientFundsError,
    SlippageError,
    get_logger,
)

from ..models.assets import Asset
from ..models.records import Proposal
from .protocols import ExchangeRouter, call_collaborator
from .registry import AssetRegistry
from .state import FundState

logger = get_logger(__name__)


@dataclass
class ExecutedLeg:
    """A leg whose swap went through."""

    asset_in: Asset
    asset_out: Asset
    amount_in: int
    amount_out: int


class SwapCoordinator:
    """
    Executes proposal legs through the exchange router.

    Per leg: approve the router, swap, verify the received amount, then
    debit ``amount_in`` and credit the returned ``amount_out``. Tracked
    balances only move after the router call returns.

    Example:
        >>> coordinator = SwapCoordinator(router, AssetRegistry())
        >>> amounts_out = coordinator.execute(state, proposal)
    """

    def __init__(self, router: ExchangeRouter, registry: AssetRegistry):
        self.router = router
        self._registry = registry

    def preflight(self, state: FundState, proposal: Proposal) -> List[int]:
        """
        Quote every leg against cumulative balances before any swap.

        Returns:
            Quoted output per leg

        Raises:
            InsufficientFundsError: If a leg sells more than the fund will hold
            SlippageError: If a quote is below the leg's minimum output
        """
        projected: Dict[str, int] = dict(state.balances)
        quotes = []

        for position, leg in enumerate(proposal.legs):
            asset_in = self._registry.get(state, leg.asset_in)
            asset_out = self._registry.get(state, leg.asset_out)

            available = projected.get(asset_in.address, 0)
            if leg.amount_in > available:
                raise InsufficientFundsError(
                    f"Leg {position} sells {leg.amount_in} {asset_in.symbol}, fund holds {available}",
                    details={"leg": position, "token": asset_in.address, "available": available},
                )

            quote = call_collaborator(
                f"Quote for {asset_in.symbol}->{asset_out.symbol}",
                self.router.get_amount_out,
                asset_in,
                asset_out,
                leg.amount_in,
            )
            if quote < leg.min_amount_out:
                raise SlippageError(
                    f"Leg {position} quote below minimum output",
                    amount_out=quote,
                    min_amount_out=leg.min_amount_out,
                    details={"leg": position},
                )

            projected[asset_in.address] = available - leg.amount_in
            projected[asset_out.address] = projected.get(asset_out.address, 0) + quote
            quotes.append(quote)

        return quotes

    def execute(self, state: FundState, proposal: Proposal) -> List[int]:
        """
        Execute all legs of a proposal.

        Returns:
            Amount received per leg

        Raises:
            InsufficientFundsError: Pre-check failure, nothing executed
            ExternalFailureError: Router failure; executed legs were unwound
                and ``details["balance_corrections"]`` holds any residual
                holdings change the unwind could not reverse
        """
        self.preflight(state, proposal)

        executed: List[ExecutedLeg] = []
        for position, leg in enumerate(proposal.legs):
            asset_in = self._registry.get(state, leg.asset_in)
            asset_out = self._registry.get(state, leg.asset_out)
            try:
                amount_out = self._swap_leg(state, executed, asset_in, asset_out, leg.amount_in, leg.min_amount_out)
            except FundLedgerError as e:
                corrections = self._unwind(state, executed)
                logger.error(
                    f"Proposal #{proposal.id} leg {position} failed; "
                    f"unwound {len(executed)} leg(s): {e}"
                )
                if corrections:
                    e.details["balance_corrections"] = corrections
                raise

            state.balances[asset_in.address] = state.balance_of(asset_in.address) - leg.amount_in
            state.balances[asset_out.address] = state.balance_of(asset_out.address) + amount_out
            logger.info(
                f"Swapped {leg.amount_in} {asset_in.symbol} for {amount_out} {asset_out.symbol}"
            )

        return [leg.amount_out for leg in executed]

    def _swap_leg(
        self,
        state: FundState,
        executed: List[ExecutedLeg],
        asset_in: Asset,
        asset_out: Asset,
        amount_in: int,
        min_amount_out: int,
    ) -> int:
        account = state.account
        held_before = call_collaborator(
            f"Balance query of {asset_out.symbol}", asset_out.token.balance_of, account
        )
        call_collaborator(
            f"Router approval of {asset_in.symbol}",
            asset_in.token.approve,
            account,
            self.router.address,
            amount_in,
        )
        amount_out = call_collaborator(
            f"Swap {asset_in.symbol}->{asset_out.symbol}",
            self.router.swap,
            asset_in,
            asset_out,
            amount_in,
            min_amount_out,
            account,
        )
        held_after = call_collaborator(
            f"Balance query of {asset_out.symbol}", asset_out.token.balance_of, account
        )
        received = held_after - held_before

        # The router call went through, so the leg is live from here on
        executed.append(ExecutedLeg(asset_in, asset_out, amount_in, received))

        if amount_out < min_amount_out:
            raise SlippageError(
                f"Router returned {amount_out} {asset_out.symbol}, minimum is {min_amount_out}",
                amount_out=amount_out,
                min_amount_out=min_amount_out,
            )
        if received != amount_out:
            raise ExternalFailureError(
                f"Router reported {amount_out} {asset_out.symbol} but {received} arrived",
                details={"reported": amount_out, "received": received},
            )
        return amount_out

    def _unwind(self, state: FundState, executed: List[ExecutedLeg]) -> Dict[str, int]:
        """
        Reverse executed legs, newest first.

        Returns:
            Net holdings change per token left after the unwind (non-zero only)
        """
        corrections: Dict[str, int] = {}

        def _adjust(token: str, delta: int) -> None:
            corrections[token] = corrections.get(token, 0) + delta

        for leg in reversed(executed):
            _adjust(leg.asset_in.address, -leg.amount_in)
            _adjust(leg.asset_out.address, leg.amount_out)
            if leg.amount_out <= 0:
                continue
            try:
                leg.asset_out.token.approve(state.account, self.router.address, leg.amount_out)
                returned = self.router.swap(
                    leg.asset_out, leg.asset_in, leg.amount_out, 0, state.account
                )
            except Exception as e:
                logger.error(
                    f"Unwind of {leg.asset_in.symbol}->{leg.asset_out.symbol} failed: {e}"
                )
                continue
            _adjust(leg.asset_out.address, -leg.amount_out)
            _adjust(leg.asset_in.address, returned)

        return {token: delta for token, delta in corrections.items() if delta != 0}

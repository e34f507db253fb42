"""
Share Ledger.

Issues shares against deposits of the base asset and redeems shares for a
proportional slice of every held asset. Also carries the fungible-token
bookkeeping (mint, burn, transfer, allowances) of the share token.
"""

from typing import Dict

from fund_ledger.core import (
    FundLedgerError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidStateError,
    get_logger,
    mul_div,
)

from .protocols import call_collaborator
from .state import FundState
from .valuation import ValuationEngine

logger = get_logger(__name__)


class ShareLedger:
    """
    Share issuance, redemption and token bookkeeping.

    Example:
        >>> ledger = ShareLedger(ValuationEngine())
        >>> minted = ledger.issue(state, "alice", 100_000 * 10**6)
        >>> payouts = ledger.redeem(state, "alice", minted // 2)
    """

    def __init__(self, valuation: ValuationEngine):
        self._valuation = valuation

    # =========================================================================
    # Token bookkeeping
    # =========================================================================

    def balance_of(self, state: FundState, holder: str) -> int:
        return state.share_balances.get(holder, 0)

    def mint(self, state: FundState, to: str, amount: int) -> None:
        if amount < 0:
            raise InvalidAmountError("Cannot mint a negative amount")
        if amount == 0:
            return
        state.share_balances[to] = state.share_balances.get(to, 0) + amount
        state.share_supply += amount

    def burn(self, state: FundState, holder: str, amount: int) -> None:
        balance = self.balance_of(state, holder)
        if amount > balance:
            raise InsufficientFundsError(
                f"Cannot burn {amount} shares, {holder} holds {balance}",
                details={"holder": holder, "balance": balance, "amount": amount},
            )
        remaining = balance - amount
        if remaining:
            state.share_balances[holder] = remaining
        else:
            state.share_balances.pop(holder, None)
        state.share_supply -= amount

    def transfer(self, state: FundState, sender: str, recipient: str, amount: int) -> None:
        """
        Move shares between holders.

        Raises:
            InvalidAmountError: If amount is not positive
            InsufficientFundsError: If sender holds fewer shares
        """
        if amount <= 0:
            raise InvalidAmountError("Transfer amount must be positive")
        self.burn(state, sender, amount)
        self.mint(state, recipient, amount)

    def allowance(self, state: FundState, owner: str, spender: str) -> int:
        return state.share_allowances.get(owner, {}).get(spender, 0)

    def approve(self, state: FundState, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise InvalidAmountError("Allowance cannot be negative")
        state.share_allowances.setdefault(owner, {})[spender] = amount

    def transfer_from(
        self,
        state: FundState,
        spender: str,
        owner: str,
        recipient: str,
        amount: int,
    ) -> None:
        """Move shares on behalf of owner using spender's allowance."""
        allowed = self.allowance(state, owner, spender)
        if amount > allowed:
            raise InsufficientFundsError(
                f"Allowance {allowed} below transfer amount {amount}",
                details={"owner": owner, "spender": spender},
            )
        self.transfer(state, owner, recipient, amount)
        state.share_allowances[owner][spender] = allowed - amount

    # =========================================================================
    # Issuance
    # =========================================================================

    def preview_issue(self, state: FundState, deposit_amount: int) -> int:
        """
        Shares a deposit of the base asset would mint.

        Bootstrap (no supply): the configured peg converts the deposit's USD
        value into shares. Otherwise shares are proportional to the deposit's
        value relative to the NAV before the deposit.

        Raises:
            InvalidAmountError: If deposit_amount is not positive
            InvalidStateError: If shares exist but the fund is worth nothing
        """
        if deposit_amount <= 0:
            raise InvalidAmountError(
                "Deposit amount must be positive",
                details={"amount": deposit_amount},
            )

        base = state.base_asset
        price, price_decimals = self._valuation.read_price(base)
        params = state.parameters

        if state.share_supply == 0:
            return mul_div(
                deposit_amount * price,
                10**params.share_decimals,
                10**base.decimals * 10**price_decimals * params.minting_unit_conversion,
            )

        nav = self._valuation.total_value(state)
        if nav == 0:
            raise InvalidStateError(
                "Fund has outstanding shares but zero value",
                details={"share_supply": state.share_supply},
            )
        return mul_div(deposit_amount * price, state.share_supply, nav * 10**price_decimals)

    def issue(self, state: FundState, depositor: str, deposit_amount: int) -> int:
        """
        Pull a base-asset deposit and mint shares for it.

        Args:
            state: Fund state
            depositor: Identity depositing (must have approved the fund account)
            deposit_amount: Base-asset amount in base units

        Returns:
            Shares minted

        Raises:
            InvalidAmountError: Zero deposit, or a deposit too small to mint a share unit
            ExternalFailureError: If the token transfer fails
        """
        shares = self.preview_issue(state, deposit_amount)
        if shares == 0:
            raise InvalidAmountError(
                "Deposit too small to mint any shares",
                details={"amount": deposit_amount},
            )

        base = state.base_asset
        call_collaborator(
            f"Deposit transfer of {base.symbol}",
            base.token.transfer_from,
            state.account,
            depositor,
            state.account,
            deposit_amount,
        )

        state.balances[base.address] = state.balance_of(base.address) + deposit_amount
        self.mint(state, depositor, shares)

        logger.info(f"Issued {shares} shares to {depositor} for {deposit_amount} {base.symbol}")
        return shares

    # =========================================================================
    # Redemption
    # =========================================================================

    def preview_redeem(self, state: FundState, share_amount: int) -> Dict[str, int]:
        """
        Per-asset amounts a redemption would pay out.

        ``amount_out = balance * share_amount // supply_before_burn``
        """
        if share_amount <= 0:
            raise InvalidAmountError(
                "Redeem amount must be positive",
                details={"amount": share_amount},
            )
        if share_amount > state.share_supply:
            raise InsufficientFundsError(
                f"Cannot redeem {share_amount} shares, supply is {state.share_supply}"
            )
        return {
            asset.address: mul_div(state.balance_of(asset.address), share_amount, state.share_supply)
            for asset in state.assets
        }

    def redeem(self, state: FundState, holder: str, share_amount: int) -> Dict[str, int]:
        """
        Burn shares and pay out a proportional slice of every asset.

        When a transfer fails after others went out, the error carries
        ``balance_corrections`` for the delivered amounts and ``share_burns``
        for the shares they are worth, so the caller can settle what left.

        Returns:
            Amount paid per token address

        Raises:
            InvalidAmountError: If share_amount is not positive
            InsufficientFundsError: If holder owns fewer shares
            InvalidStateError: If actual holdings no longer cover tracked balances
            ExternalFailureError: If a payout transfer fails
        """
        balance = self.balance_of(state, holder)
        if share_amount > balance:
            raise InsufficientFundsError(
                f"Cannot redeem {share_amount} shares, {holder} holds {balance}",
                details={"holder": holder, "balance": balance, "amount": share_amount},
            )

        payouts = self.preview_redeem(state, share_amount)

        # Every payout must be covered before the first transfer goes out
        for asset in state.assets:
            amount = payouts[asset.address]
            held = call_collaborator(
                f"Balance query of {asset.symbol}",
                asset.token.balance_of,
                state.account,
            )
            if amount > held:
                raise InvalidStateError(
                    f"Holdings of {asset.symbol} ({held}) below payout {amount}",
                    details={"token": asset.address, "held": held, "payout": amount},
                )

        for asset in state.assets:
            state.balances[asset.address] = state.balance_of(asset.address) - payouts[asset.address]
        self.burn(state, holder, share_amount)

        delivered: Dict[str, int] = {}
        for asset in state.assets:
            amount = payouts[asset.address]
            if amount == 0:
                continue
            try:
                call_collaborator(
                    f"Redemption transfer of {asset.symbol}",
                    asset.token.transfer,
                    state.account,
                    holder,
                    amount,
                )
            except FundLedgerError as e:
                if delivered:
                    burned = self._partial_burn(state, share_amount, payouts, delivered)
                    e.details["balance_corrections"] = {
                        token: -paid for token, paid in delivered.items()
                    }
                    e.details["share_burns"] = {holder: burned}
                    logger.error(
                        f"Redemption for {holder} stopped at {asset.symbol}: "
                        f"{len(delivered)} transfer(s) already delivered, {burned} shares owed"
                    )
                raise
            delivered[asset.address] = amount

        logger.info(f"Redeemed {share_amount} shares for {holder}")
        return payouts

    def _partial_burn(
        self,
        state: FundState,
        share_amount: int,
        payouts: Dict[str, int],
        delivered: Dict[str, int],
    ) -> int:
        """
        Shares matching the value of the transfers that did go out.

        Rounds up. Burns the full amount when the delivered slice cannot be
        priced.
        """
        try:
            delivered_value = self._valuation.value_of(state, delivered)
            owed_value = self._valuation.value_of(state, payouts)
        except FundLedgerError as e:
            logger.error(f"Cannot price partial redemption, burning all {share_amount} shares: {e}")
            return share_amount
        if owed_value == 0:
            return share_amount
        return min(share_amount, -(-share_amount * delivered_value // owed_value))

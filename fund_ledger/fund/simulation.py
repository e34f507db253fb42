"""
Reference Collaborators.

In-memory implementations of the value token, price feed and exchange
router contracts. Used by the demo command and by tests.
"""

from typing import Dict, Optional

from fund_ledger.core import (
    ExternalFailureError,
    InsufficientFundsError,
    InvalidAmountError,
    SlippageError,
    get_logger,
    now_timestamp,
)

from .models.assets import Asset, RoundData

logger = get_logger(__name__)

BPS_DENOMINATOR = 10_000


class InMemoryToken:
    """
    Fungible value token with balances and allowances.

    Example:
        >>> usdc = InMemoryToken("usdc", "USDC", 6)
        >>> usdc.mint("alice", 1_000 * 10**6)
        >>> usdc.approve("alice", "fund", 500 * 10**6)
    """

    def __init__(self, address: str, symbol: str, decimals: int = 18):
        self.address = address
        self.symbol = symbol
        self._decimals = decimals
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[str, Dict[str, int]] = {}
        self.total_supply = 0

    def __repr__(self) -> str:
        return f"InMemoryToken({self.symbol}, decimals={self._decimals})"

    def decimals(self) -> int:
        return self._decimals

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get(owner, {}).get(spender, 0)

    def mint(self, account: str, amount: int) -> None:
        """Create tokens out of thin air (test and demo funding)."""
        if amount < 0:
            raise InvalidAmountError("Cannot mint a negative amount")
        self._balances[account] = self.balance_of(account) + amount
        self.total_supply += amount

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise InvalidAmountError("Cannot transfer a negative amount")
        balance = self.balance_of(sender)
        if amount > balance:
            raise InsufficientFundsError(
                f"{self.symbol}: {sender} holds {balance}, cannot send {amount}",
                details={"token": self.address, "account": sender},
            )
        self._balances[sender] = balance - amount
        self._balances[recipient] = self.balance_of(recipient) + amount

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> None:
        allowed = self.allowance(owner, spender)
        if amount > allowed:
            raise InsufficientFundsError(
                f"{self.symbol}: allowance {allowed} of {spender} below {amount}",
                details={"token": self.address, "owner": owner, "spender": spender},
            )
        self.transfer(owner, recipient, amount)
        self._allowances[owner][spender] = allowed - amount

    def approve(self, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise InvalidAmountError("Allowance cannot be negative")
        self._allowances.setdefault(owner, {})[spender] = amount


class MockPriceFeed:
    """
    Price feed with a settable answer.

    Each update opens a new round with an incremented round id.
    """

    def __init__(self, address: str, answer: int, decimals: int = 8, timestamp: Optional[int] = None):
        self.address = address
        self._decimals = decimals
        self._round = RoundData(
            round_id=1,
            answer=answer,
            started_at=timestamp or now_timestamp(),
            updated_at=timestamp or now_timestamp(),
        )

    def __repr__(self) -> str:
        return f"MockPriceFeed({self.address}, answer={self._round.answer})"

    def decimals(self) -> int:
        return self._decimals

    def latest_round_data(self) -> RoundData:
        return self._round

    def update_answer(self, answer: int, timestamp: Optional[int] = None) -> RoundData:
        """Publish a new price."""
        ts = timestamp or now_timestamp()
        self._round = RoundData(
            round_id=self._round.round_id + 1,
            answer=answer,
            started_at=ts,
            updated_at=ts,
        )
        logger.debug(f"Feed {self.address} updated to {answer} (round {self._round.round_id})")
        return self._round


class OracleRouter:
    """
    Exchange router pricing swaps from the assets' feeds.

    Output is the oracle-equivalent amount less a fee in basis points,
    paid from the router's own liquidity.

    Example:
        >>> router = OracleRouter("router", fee_bps=30)
        >>> weth.mint(router.address, 1_000 * 10**18)
    """

    def __init__(self, address: str = "router", fee_bps: int = 30):
        if not 0 <= fee_bps < BPS_DENOMINATOR:
            raise ValueError(f"fee_bps must be within [0, {BPS_DENOMINATOR})")
        self.address = address
        self.fee_bps = fee_bps
        self.swap_count = 0

    def get_amount_out(self, asset_in: Asset, asset_out: Asset, amount_in: int) -> int:
        price_in = asset_in.feed.latest_round_data().answer
        price_out = asset_out.feed.latest_round_data().answer
        if price_in <= 0 or price_out <= 0:
            raise ExternalFailureError("Router cannot price a non-positive feed answer")

        scale_in = 10 ** (asset_in.decimals + asset_in.feed.decimals())
        scale_out = 10 ** (asset_out.decimals + asset_out.feed.decimals())
        gross = (amount_in * price_in * scale_out) // (scale_in * price_out)
        return (gross * (BPS_DENOMINATOR - self.fee_bps)) // BPS_DENOMINATOR

    def swap(
        self,
        asset_in: Asset,
        asset_out: Asset,
        amount_in: int,
        min_amount_out: int,
        account: str,
    ) -> int:
        """Pull asset_in from account and deliver asset_out from liquidity."""
        amount_out = self.get_amount_out(asset_in, asset_out, amount_in)
        if amount_out < min_amount_out:
            raise SlippageError(
                f"Swap output {amount_out} below minimum {min_amount_out}",
                amount_out=amount_out,
                min_amount_out=min_amount_out,
            )

        liquidity = asset_out.token.balance_of(self.address)
        if amount_out > liquidity:
            raise ExternalFailureError(
                f"Router liquidity of {asset_out.symbol} ({liquidity}) below {amount_out}",
                details={"token": asset_out.address},
            )

        asset_in.token.transfer_from(self.address, account, self.address, amount_in)
        asset_out.token.transfer(self.address, account, amount_out)
        self.swap_count += 1
        return amount_out


class ManualClock:
    """Clock advanced explicitly; pass as the controller's ``clock``."""

    def __init__(self, start: int):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds

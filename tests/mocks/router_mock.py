"""
Misbehaving exchange routers and price feeds for failure-path tests.
"""

from typing import Callable, List, Optional

from fund_ledger.core import FundLedgerError
from fund_ledger.fund.models.assets import Asset, RoundData
from fund_ledger.fund.simulation import OracleRouter


class FailingRouter(OracleRouter):
    """Router whose nth swap attempt raises a non-ledger exception."""

    def __init__(self, fail_on: int, address: str = "router", fee_bps: int = 0):
        super().__init__(address, fee_bps)
        self.fail_on = fail_on
        self.attempts = 0

    def swap(
        self,
        asset_in: Asset,
        asset_out: Asset,
        amount_in: int,
        min_amount_out: int,
        account: str,
    ) -> int:
        self.attempts += 1
        if self.attempts == self.fail_on:
            raise RuntimeError("router offline")
        return super().swap(asset_in, asset_out, amount_in, min_amount_out, account)


class ShortchangingRouter(OracleRouter):
    """Router that reports the full output but delivers less on one call."""

    def __init__(self, shortfall: int, on_call: int = 1, address: str = "router", fee_bps: int = 0):
        super().__init__(address, fee_bps)
        self.shortfall = shortfall
        self.on_call = on_call
        self.calls = 0

    def swap(
        self,
        asset_in: Asset,
        asset_out: Asset,
        amount_in: int,
        min_amount_out: int,
        account: str,
    ) -> int:
        self.calls += 1
        if self.calls != self.on_call:
            return super().swap(asset_in, asset_out, amount_in, min_amount_out, account)

        amount_out = self.get_amount_out(asset_in, asset_out, amount_in)
        asset_in.token.transfer_from(self.address, account, self.address, amount_in)
        asset_out.token.transfer(self.address, account, amount_out - self.shortfall)
        self.swap_count += 1
        return amount_out


class ReentrantRouter(OracleRouter):
    """Router that calls back into the fund in the middle of a swap."""

    def __init__(self, address: str = "router", fee_bps: int = 0):
        super().__init__(address, fee_bps)
        self.callback: Optional[Callable[[], object]] = None
        self.reentry_errors: List[FundLedgerError] = []

    def swap(
        self,
        asset_in: Asset,
        asset_out: Asset,
        amount_in: int,
        min_amount_out: int,
        account: str,
    ) -> int:
        if self.callback is not None:
            try:
                self.callback()
            except FundLedgerError as e:
                self.reentry_errors.append(e)
        return super().swap(asset_in, asset_out, amount_in, min_amount_out, account)


class BrokenFeed:
    """Price feed whose reads always fail."""

    def __init__(self, address: str = "broken-feed"):
        self.address = address

    def decimals(self) -> int:
        return 8

    def latest_round_data(self) -> RoundData:
        raise ConnectionError("feed unreachable")

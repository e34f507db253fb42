"""
Collaborator Protocols.

Interfaces of the external services the fund consumes: price feeds,
value tokens and the exchange router. Callers are identified explicitly
because there is no ambient "message sender".
"""

from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Protocol, TypeVar

from fund_ledger.core import ExternalFailureError, FundLedgerError

from ..models.assets import RoundData

if TYPE_CHECKING:
    from ..models.assets import Asset


T = TypeVar("T")


def call_collaborator(
    description: str,
    func: Callable[..., T],
    *args: Any,
    details: Optional[Dict[str, Any]] = None,
) -> T:
    """
    Invoke a collaborator, mapping foreign exceptions to ExternalFailureError.

    Ledger errors raised by the collaborator keep their taxonomy.
    """
    try:
        return func(*args)
    except FundLedgerError:
        raise
    except Exception as e:
        raise ExternalFailureError(f"{description} failed: {e}", details=details) from e


class PriceFeed(Protocol):
    """Price oracle returning the latest answer and its precision."""

    address: str

    def latest_round_data(self) -> RoundData:
        """Get the latest round (round_id, answer, started_at, updated_at)."""
        ...

    def decimals(self) -> int:
        """Get the decimal precision of ``answer``."""
        ...


class ValueToken(Protocol):
    """Transferable value token (balances and allowances)."""

    address: str

    def decimals(self) -> int:
        ...

    def balance_of(self, account: str) -> int:
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        """Move ``amount`` from sender to recipient; raise on failure."""
        ...

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> None:
        """Move ``amount`` from owner to recipient using spender's allowance."""
        ...

    def approve(self, owner: str, spender: str, amount: int) -> None:
        ...


class ExchangeRouter(Protocol):
    """Exchange collaborator that converts one asset into another."""

    address: str

    def get_amount_out(self, asset_in: "Asset", asset_out: "Asset", amount_in: int) -> int:
        """Quote the output of a swap without executing it."""
        ...

    def swap(
        self,
        asset_in: "Asset",
        asset_out: "Asset",
        amount_in: int,
        min_amount_out: int,
        account: str,
    ) -> int:
        """
        Swap ``amount_in`` of asset_in held by ``account`` into asset_out.

        Pulls asset_in from account (via allowance), delivers asset_out to
        account and returns the delivered amount. Must fail without any
        effect when the output would be below ``min_amount_out``.
        """
        ...

"""
Custom exceptions for the fund ledger.

Exception hierarchy:
    FundLedgerError (base)
    ├── AuthorizationError
    ├── InvalidAmountError
    ├── NotFoundError
    │   ├── ProposalNotFoundError
    │   └── AssetNotFoundError
    ├── InvalidStateError
    │   ├── DuplicateAssetError
    │   ├── TimelockActiveError
    │   └── ReentrancyError
    ├── InsufficientFundsError
    └── ExternalFailureError
        └── SlippageError
"""

from enum import Enum
from typing import Any


class ErrorKind(Enum):
    """Error taxonomy kinds reported in the ``code`` of every ledger error."""

    AUTHORIZATION = "authorization"
    INVALID_AMOUNT = "invalid_amount"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    EXTERNAL_FAILURE = "external_failure"


class FundLedgerError(Exception):
    """Base exception for all fund ledger errors."""

    default_message = "Fund ledger error occurred"
    kind: ErrorKind | None = None

    def __init__(
        self,
        message: str | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.default_message
        self.code = code or (self.kind.value if self.kind else None)
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.code:
            parts.append(f"[{self.code}]")
        if self.details:
            parts.append(f"Details: {self.details}")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r})"
        )


class AuthorizationError(FundLedgerError):
    """Caller lacks the role required by the operation."""

    default_message = "Caller is not authorized"
    kind = ErrorKind.AUTHORIZATION


class InvalidAmountError(FundLedgerError):
    """Zero, negative or otherwise unusable amount."""

    default_message = "Invalid amount"
    kind = ErrorKind.INVALID_AMOUNT


# Lookup errors
class NotFoundError(FundLedgerError):
    """Requested entity not found."""

    default_message = "Not found"
    kind = ErrorKind.NOT_FOUND


class ProposalNotFoundError(NotFoundError):
    """Proposal id is absent from the active set."""

    default_message = "Proposal not found"

    def __init__(
        self,
        message: str | None = None,
        proposal_id: int | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code, details)
        self.proposal_id = proposal_id

    def __str__(self) -> str:
        base = super().__str__()
        if self.proposal_id is not None:
            return f"{base} proposal_id={self.proposal_id}"
        return base


class AssetNotFoundError(NotFoundError):
    """Asset is not registered with the fund."""

    default_message = "Asset not registered"


# State errors
class InvalidStateError(FundLedgerError):
    """Operation not allowed in the current state."""

    default_message = "Invalid state for operation"
    kind = ErrorKind.INVALID_STATE


class DuplicateAssetError(InvalidStateError):
    """Asset is already registered."""

    default_message = "Asset already registered"


class TimelockActiveError(InvalidStateError):
    """Acceptance attempted before the timelock elapsed."""

    default_message = "Acceptance timelock has not elapsed"

    def __init__(
        self,
        message: str | None = None,
        unlocks_at: int | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code, details)
        self.unlocks_at = unlocks_at

    def __str__(self) -> str:
        base = super().__str__()
        if self.unlocks_at is not None:
            return f"{base} (unlocks at {self.unlocks_at})"
        return base


class ReentrancyError(InvalidStateError):
    """Entry point invoked while another entry point is in flight."""

    default_message = "Reentrant call rejected"


class InsufficientFundsError(FundLedgerError):
    """Amount exceeds the available balance."""

    default_message = "Insufficient funds"
    kind = ErrorKind.INSUFFICIENT_FUNDS


# External collaborator errors
class ExternalFailureError(FundLedgerError):
    """External collaborator failed or returned an unusable result."""

    default_message = "External collaborator failed"
    kind = ErrorKind.EXTERNAL_FAILURE


class SlippageError(ExternalFailureError):
    """Exchange output is below the minimum-output bound."""

    default_message = "Output below minimum amount"

    def __init__(
        self,
        message: str | None = None,
        amount_out: int | None = None,
        min_amount_out: int | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code, details)
        self.amount_out = amount_out
        self.min_amount_out = min_amount_out

    def __str__(self) -> str:
        base = super().__str__()
        if self.amount_out is not None and self.min_amount_out is not None:
            return f"{base} amount_out={self.amount_out} min={self.min_amount_out}"
        return base

"""
Core module for the fund ledger.

Provides logging utilities, the audit channel and the exception hierarchy.
"""

from .audit import (
    AuditEvent,
    AuditLogger,
    clear_request_context,
    get_audit_logger,
    get_correlation_id,
    set_correlation_id,
    set_request_context,
)
from .exceptions import (
    AssetNotFoundError,
    AuthorizationError,
    DuplicateAssetError,
    ErrorKind,
    ExternalFailureError,
    FundLedgerError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidStateError,
    NotFoundError,
    ProposalNotFoundError,
    ReentrancyError,
    SlippageError,
    TimelockActiveError,
)
from .logger import add_file_handler, get_logger, set_log_level, setup_logger
from .utils import mul_div, now_timestamp, timestamp_to_datetime, to_base_units, to_human

__all__ = [
    # Basic logging
    "setup_logger",
    "get_logger",
    "set_log_level",
    "add_file_handler",
    # Audit logging
    "AuditLogger",
    "AuditEvent",
    "get_audit_logger",
    "set_correlation_id",
    "get_correlation_id",
    "set_request_context",
    "clear_request_context",
    # Exceptions
    "ErrorKind",
    "FundLedgerError",
    "AuthorizationError",
    "InvalidAmountError",
    "NotFoundError",
    "ProposalNotFoundError",
    "AssetNotFoundError",
    "InvalidStateError",
    "DuplicateAssetError",
    "TimelockActiveError",
    "ReentrancyError",
    "InsufficientFundsError",
    "ExternalFailureError",
    "SlippageError",
    # Utils
    "now_timestamp",
    "timestamp_to_datetime",
    "to_human",
    "to_base_units",
    "mul_div",
]

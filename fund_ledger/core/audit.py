"""
Structured audit logging.

Every privileged or value-moving fund operation leaves one JSON line in
``<audit_dir>/audit.jsonl``. Lines carry the correlation ID and calling
identity of the controller call that produced them, so all records of a
single call can be grouped.
"""

import json
import logging
import os
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

AUDIT_CHANNEL = "audit"

_correlation_id: ContextVar[Optional[str]] = ContextVar("fund_correlation_id", default=None)
_caller: ContextVar[Optional[str]] = ContextVar("fund_caller", default=None)


class AuditEvent(Enum):
    """Kinds of audit records."""

    SHARES_ISSUED = "shares.issued"
    SHARES_REDEEMED = "shares.redeemed"
    PROPOSAL_ACCEPTED = "proposal.accepted"
    REWARDS_PAID = "rewards.paid"
    ASSET_ADDED = "asset.added"
    CONFIG_CHANGED = "config.changed"
    OWNERSHIP_TRANSFERRED = "ownership.transferred"
    CALL_REJECTED = "call.rejected"


@dataclass
class AuditRecord:
    """One audit line."""

    event: AuditEvent
    message: str
    level: str
    logger_name: str
    context: Dict[str, Any] = field(default_factory=dict)
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_json(self) -> str:
        # Share amounts exceed what float-based JSON readers hold exactly
        return json.dumps(
            {
                "timestamp": self.timestamp,
                "level": self.level,
                "channel": AUDIT_CHANNEL,
                "event_type": self.event.value,
                "message": self.message,
                "logger": self.logger_name,
                "context": self.context,
                "data": self.data,
            },
            default=str,
        )


class AuditFormatter(logging.Formatter):
    """Renders records emitted by AuditLogger as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        context = {
            key: value
            for key, value in (("correlation_id", _correlation_id.get()), ("caller", _caller.get()))
            if value is not None
        }
        context.update(getattr(record, "audit_context", {}))

        return AuditRecord(
            event=getattr(record, "audit_event", AuditEvent.CALL_REJECTED),
            message=record.getMessage(),
            level=record.levelname,
            logger_name=record.name,
            context=context,
            data=getattr(record, "audit_data", {}),
        ).to_json()


class AuditLogger:
    """
    Audit trail for privileged and value-moving operations.

    Writes to ``<log_dir>/audit.jsonl``; ``log_dir`` falls back to
    ``FUND_LEDGER_AUDIT_DIR``. Without either the trail is discarded.

    Example:
        >>> audit = AuditLogger(log_dir=Path("logs/audit"))
        >>> audit.asset_added("governor", "weth", "weth-usd")
    """

    def __init__(self, name: str = "fund", log_dir: Optional[Path] = None):
        self._logger = logging.getLogger(f"fund_audit.{name}")
        self._logger.setLevel(logging.INFO)
        self._logger.propagate = False

        if self._logger.handlers:
            return

        if log_dir is None and os.getenv("FUND_LEDGER_AUDIT_DIR"):
            log_dir = Path(os.environ["FUND_LEDGER_AUDIT_DIR"])
        if log_dir is None:
            self._logger.addHandler(logging.NullHandler())
            return

        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_dir / f"{AUDIT_CHANNEL}.jsonl",
            maxBytes=20 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        handler.setFormatter(AuditFormatter())
        self._logger.addHandler(handler)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def _emit(
        self,
        event: AuditEvent,
        message: str,
        caller: Optional[str] = None,
        level: int = logging.INFO,
        **data: Any,
    ) -> None:
        context = {"caller": caller} if caller is not None else {}
        self._logger.log(
            level,
            message,
            extra={"audit_event": event, "audit_context": context, "audit_data": data},
        )

    def shares_issued(self, depositor: str, deposit: int, shares: int) -> None:
        self._emit(
            AuditEvent.SHARES_ISSUED,
            f"Issued {shares} shares to {depositor}",
            depositor,
            deposit=deposit,
            shares=shares,
        )

    def shares_redeemed(self, holder: str, shares: int, amounts: Dict[str, int]) -> None:
        self._emit(
            AuditEvent.SHARES_REDEEMED,
            f"Redeemed {shares} shares for {holder}",
            holder,
            shares=shares,
            amounts=amounts,
        )

    def proposal_accepted(
        self,
        proposal_id: int,
        approver: str,
        proposer: str,
        amounts_out: List[int],
    ) -> None:
        self._emit(
            AuditEvent.PROPOSAL_ACCEPTED,
            f"Proposal #{proposal_id} accepted by {approver}",
            approver,
            proposal_id=proposal_id,
            proposer=proposer,
            amounts_out=amounts_out,
        )

    def rewards_paid(self, role: str, epochs: List[int], rewards: Dict[str, int]) -> None:
        self._emit(
            AuditEvent.REWARDS_PAID,
            f"Paid {role} rewards for epochs {epochs}",
            epochs=epochs,
            rewards=rewards,
        )

    def asset_added(self, caller: str, token: str, feed: str) -> None:
        self._emit(AuditEvent.ASSET_ADDED, f"Asset {token} added", caller, token=token, feed=feed)

    def config_changed(self, caller: str, name: str, old: Any, new: Any) -> None:
        self._emit(
            AuditEvent.CONFIG_CHANGED,
            f"{name}: {old} -> {new}",
            caller,
            parameter=name,
            old_value=old,
            new_value=new,
        )

    def ownership_transferred(self, old_owner: str, new_owner: str) -> None:
        self._emit(
            AuditEvent.OWNERSHIP_TRANSFERRED,
            f"Ownership moved from {old_owner} to {new_owner}",
            old_owner,
            new_owner=new_owner,
        )

    def call_rejected(self, operation: str, caller: Optional[str], error: Exception) -> None:
        self._emit(
            AuditEvent.CALL_REJECTED,
            f"{operation} rejected: {error}",
            caller,
            logging.WARNING,
            operation=operation,
            error_type=type(error).__name__,
            code=getattr(error, "code", None),
        )


# =============================================================================
# Call context
# =============================================================================


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Tag the current call, generating a 12-character ID when none is given."""
    correlation_id = correlation_id or uuid.uuid4().hex[:12]
    _correlation_id.set(correlation_id)
    return correlation_id


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def set_request_context(caller: Optional[str] = None) -> None:
    """Attach the calling identity to the current call."""
    _caller.set(caller)


def clear_request_context() -> None:
    _correlation_id.set(None)
    _caller.set(None)


_audit_loggers: Dict[str, AuditLogger] = {}


def get_audit_logger(name: str = "fund", log_dir: Optional[Path] = None) -> AuditLogger:
    """Get (or create) the audit logger for a name."""
    if name not in _audit_loggers:
        _audit_loggers[name] = AuditLogger(name, log_dir=log_dir)
    return _audit_loggers[name]

"""
Core Module Tests.

Tests for the exception taxonomy, numeric helpers, logging and the audit
channel.
"""

import json
import logging
from decimal import Decimal

import pytest

from fund_ledger.core import (
    AssetNotFoundError,
    AuditLogger,
    DuplicateAssetError,
    ErrorKind,
    ExternalFailureError,
    FundLedgerError,
    InvalidStateError,
    NotFoundError,
    ProposalNotFoundError,
    ReentrancyError,
    SlippageError,
    TimelockActiveError,
    add_file_handler,
    clear_request_context,
    get_correlation_id,
    get_logger,
    mul_div,
    set_correlation_id,
    set_log_level,
    timestamp_to_datetime,
    to_base_units,
    to_human,
)


class TestExceptions:
    """Test the error taxonomy."""

    def test_kind_sets_default_code(self):
        """Test every error reports its taxonomy kind as code."""
        assert InvalidStateError().code == "invalid_state"
        assert SlippageError().code == ErrorKind.EXTERNAL_FAILURE.value
        assert AssetNotFoundError().code == "not_found"

    def test_hierarchy(self):
        """Test subclasses stay within their taxonomy branch."""
        assert issubclass(ProposalNotFoundError, NotFoundError)
        assert issubclass(DuplicateAssetError, InvalidStateError)
        assert issubclass(TimelockActiveError, InvalidStateError)
        assert issubclass(ReentrancyError, InvalidStateError)
        assert issubclass(SlippageError, ExternalFailureError)
        assert issubclass(ExternalFailureError, FundLedgerError)

    def test_str_includes_details(self):
        """Test string form carries message, code and details."""
        error = InvalidStateError("Bad state", details={"proposal_id": 3})
        text = str(error)

        assert "Bad state" in text
        assert "[invalid_state]" in text
        assert "proposal_id" in text

    def test_timelock_error_reports_unlock_time(self):
        error = TimelockActiveError("Locked", unlocks_at=1_700_003_600)

        assert error.unlocks_at == 1_700_003_600
        assert "1700003600" in str(error)

    def test_slippage_error_fields(self):
        error = SlippageError(amount_out=5, min_amount_out=10)

        assert error.amount_out == 5
        assert error.min_amount_out == 10
        assert "min=10" in str(error)

    def test_proposal_not_found_carries_id(self):
        error = ProposalNotFoundError(proposal_id=7)

        assert error.proposal_id == 7
        assert error.message == "Proposal not found"


class TestUtils:
    """Test numeric and time helpers."""

    def test_to_human(self):
        assert to_human(1_500_000, 6) == Decimal("1.5")
        assert to_human(42, 0) == Decimal(42)
        assert str(to_human(1_000 * 10**18, 18)) == "1000"

    def test_to_base_units_truncates(self):
        """Test extra precision is dropped, never rounded up."""
        assert to_base_units("1.5", 6) == 1_500_000
        assert to_base_units("0.0000019", 6) == 1

    def test_mul_div_multiplies_first(self):
        assert mul_div(7, 3, 2) == 10
        with pytest.raises(ZeroDivisionError):
            mul_div(1, 1, 0)

    def test_timestamp_to_datetime_is_utc(self):
        dt = timestamp_to_datetime(1_704_067_200)

        assert (dt.year, dt.month, dt.day) == (2024, 1, 1)
        assert dt.utcoffset().total_seconds() == 0


class TestAuditLogger:
    """Test the JSON-lines audit channel."""

    def test_writes_json_lines(self, tmp_path):
        """Test audit records land in audit.jsonl with context."""
        audit = AuditLogger(name="test-json-lines", log_dir=tmp_path)
        set_correlation_id("abc123")
        try:
            audit.shares_issued("alice", 100 * 10**6, 10**18)
        finally:
            clear_request_context()

        for handler in audit.logger.handlers:
            handler.flush()

        lines = (tmp_path / "audit.jsonl").read_text(encoding="utf-8").strip().splitlines()
        record = json.loads(lines[-1])

        assert record["event_type"] == "shares.issued"
        assert record["channel"] == "audit"
        assert record["context"]["correlation_id"] == "abc123"
        assert record["context"]["caller"] == "alice"
        assert record["data"]["shares"] == 10**18

    def test_call_rejected_records_error_code(self, tmp_path):
        audit = AuditLogger(name="test-rejected", log_dir=tmp_path)
        audit.call_rejected("accept_proposal", "bob", InvalidStateError("nope"))

        for handler in audit.logger.handlers:
            handler.flush()

        record = json.loads((tmp_path / "audit.jsonl").read_text(encoding="utf-8").splitlines()[-1])
        assert record["level"] == "WARNING"
        assert record["data"]["code"] == "invalid_state"
        assert record["data"]["error_type"] == "InvalidStateError"

    def test_correlation_id_generated(self):
        correlation_id = set_correlation_id()
        try:
            assert correlation_id == get_correlation_id()
            assert len(correlation_id) == 12
        finally:
            clear_request_context()
        assert get_correlation_id() is None


class TestLogger:
    """Test the fund_ledger loggers."""

    def test_get_logger_configures_once(self):
        logger = get_logger("fund_ledger.tests.configure")

        assert logger.propagate is False
        assert len(logger.handlers) >= 1
        assert get_logger("fund_ledger.tests.configure").handlers == logger.handlers

    def test_level_and_file_apply_to_existing_loggers(self, tmp_path):
        logger = get_logger("fund_ledger.tests.file")
        log_file = tmp_path / "logs" / "fund.log"
        try:
            set_log_level("warning")
            add_file_handler(log_file, "WARNING")
            add_file_handler(log_file, "WARNING")

            logger.info("hidden")
            logger.warning("epoch closed late")
            for handler in logger.handlers:
                handler.flush()

            assert logger.level == logging.WARNING
            assert log_file.read_text(encoding="utf-8").count("epoch closed late") == 1
            assert "hidden" not in log_file.read_text(encoding="utf-8")
        finally:
            set_log_level("INFO")
            for name, candidate in logging.Logger.manager.loggerDict.items():
                if not name.startswith("fund_ledger") or not isinstance(candidate, logging.Logger):
                    continue
                for handler in list(candidate.handlers):
                    if getattr(handler, "baseFilename", None) == str(log_file.resolve()):
                        candidate.removeHandler(handler)
                        handler.close()

"""
Logging system for the fund ledger.

Every ``fund_ledger.*`` logger writes colored lines to stdout and, when a
log file is configured, plain lines to a rotating file. Level and file
default to the ``LOG_LEVEL`` and ``FUND_LEDGER_LOG_FILE`` environment
variables.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_RESET = "\033[0m"
LEVEL_COLORS = {
    logging.DEBUG: "\033[90m",
    logging.INFO: "\033[92m",
    logging.WARNING: "\033[93m",
    logging.ERROR: "\033[91m",
    logging.CRITICAL: "\033[91m\033[1m",
}

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


class ColoredFormatter(logging.Formatter):
    """Wraps each line in the ANSI color of its level."""

    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelno, _RESET)
        return f"{color}{super().format(record)}{_RESET}"


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


def _file_handler(log_file: Path, level: int) -> RotatingFileHandler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_file,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    return handler


def _ledger_loggers():
    for name, candidate in logging.Logger.manager.loggerDict.items():
        if name.startswith("fund_ledger") and isinstance(candidate, logging.Logger):
            yield candidate


def setup_logger(
    name: str,
    level: int | str | None = None,
    log_file: str | Path | None = None,
) -> logging.Logger:
    """
    Configure a logger with console (and optionally file) output.

    A logger that already has handlers is returned unchanged.

    Example:
        >>> logger = setup_logger("fund_ledger.fund")
        >>> logger.info("Fund initialized")
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    resolved = _resolve_level(level)
    logger.setLevel(resolved)
    logger.propagate = False

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(resolved)
    console.setFormatter(ColoredFormatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(console)

    log_file = log_file or os.getenv("FUND_LEDGER_LOG_FILE") or None
    if log_file is not None:
        logger.addHandler(_file_handler(Path(log_file), resolved))

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger by name, configuring it on first use.

    Example:
        >>> logger = get_logger("fund_ledger.fund.epochs")
        >>> logger.info("Epoch closed")
    """
    logger = logging.getLogger(name)
    return logger if logger.handlers else setup_logger(name)


def set_log_level(level: int | str) -> None:
    """Apply a level to every fund_ledger logger already created."""
    resolved = _resolve_level(level)
    for logger in _ledger_loggers():
        logger.setLevel(resolved)
        for handler in logger.handlers:
            handler.setLevel(resolved)


def add_file_handler(log_file: str | Path, level: int | str | None = None) -> None:
    """Attach a rotating file handler to every fund_ledger logger already created."""
    log_file = Path(log_file)
    resolved = _resolve_level(level)
    for logger in _ledger_loggers():
        # one handler per file per logger
        if any(
            isinstance(h, RotatingFileHandler) and Path(h.baseFilename) == log_file.resolve()
            for h in logger.handlers
        ):
            continue
        logger.addHandler(_file_handler(log_file, resolved))

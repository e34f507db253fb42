"""
Fund Ledger Storage.

Persistence layer for fund state and ledger events.
"""

from .repository import DEFAULT_DB_PATH, AddressResolver, FundRepository

__all__ = ["FundRepository", "AddressResolver", "DEFAULT_DB_PATH"]

"""
Fund Ledger.

Valuation, share issuance/redemption and epoch reward accrual for a
pooled-asset fund.
"""

__version__ = "0.1.0"

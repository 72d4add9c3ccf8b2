"""
Bank Ledger

Customers, savings/investment/cheque accounts and the append-only ledger of
transactions behind every balance, with role-gated services on top.
"""

__version__ = "1.0.0"

"""
swapgroup network layer

REST transport to a ledger node.
"""

from .client import LedgerClient, LedgerParams, is_size_rejection

__all__ = ["LedgerClient", "LedgerParams", "is_size_rejection"]

"""Ledger store package."""

from fiado_ledger.ledger.store import LedgerStore, parse_credit_limit

__all__ = ["LedgerStore", "parse_credit_limit"]

"""
Fiado Ledger - Source Package

A store-credit ("fiado") ledger for small markets: customers, credit
limits, sales on credit, debt repayments and printable receipts.

DESIGN PRINCIPLES:
1. The ledger never blocks a sale, it warns
2. Validate before writing, never after
3. Every mutation is atomic against storage
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Fiado Ledger Team"

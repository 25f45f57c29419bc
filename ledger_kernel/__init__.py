"""
Ledger Kernel

Pure domain core for the household ledger engine:
- Period keys and locale-aware amount parsing
- Immutable event snapshots (ledger entries, card purchases, invoices)
- Typed exception hierarchy
- Structured JSON logging
"""

__version__ = "0.1.0"

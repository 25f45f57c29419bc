"""
Pure domain layer.

This module contains immutable value objects and event snapshots
with NO dependencies on:
- Storage
- Time/clock (except the Clock abstraction itself)
- I/O

All domain objects are immutable and deterministic.
"""

from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.dtos import (
    BudgetGroup,
    BudgetTarget,
    CardConfig,
    CardPurchase,
    CustomSplit,
    FlowDirection,
    GroupKind,
    Installment,
    Invoice,
    InvoiceStatus,
    LedgerEntry,
    RetainedTaxes,
    SharingMode,
    Tag,
    TaxKind,
    TaxPayment,
    TaxRateTable,
    DEFAULT_TAX_RATES,
)
from ledger_kernel.domain.values import (
    PARTY_A,
    PeriodKey,
    QuarterKey,
    ZERO,
    parse_amount,
    quantize_cents,
)

__all__ = [
    "BudgetGroup",
    "BudgetTarget",
    "CardConfig",
    "CardPurchase",
    "Clock",
    "CustomSplit",
    "DEFAULT_TAX_RATES",
    "DeterministicClock",
    "FlowDirection",
    "GroupKind",
    "Installment",
    "Invoice",
    "InvoiceStatus",
    "LedgerEntry",
    "PARTY_A",
    "PeriodKey",
    "QuarterKey",
    "RetainedTaxes",
    "SharingMode",
    "SystemClock",
    "Tag",
    "TaxKind",
    "TaxPayment",
    "TaxRateTable",
    "ZERO",
    "parse_amount",
    "quantize_cents",
]

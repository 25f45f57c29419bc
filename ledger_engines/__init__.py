"""
Module: ledger_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines: period resolution, billing cycles, tax liability,
    tax payment reconciliation, settlement and budget variance.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel (and sibling engine modules).
    MUST NOT import ledger_config or ledger_services.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      "Today" is passed in as an explicit parameter by the caller.
    - Decimal-only arithmetic: monetary amounts are ``Decimal``.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from ledger_engines import calculate_tax_report, compute_settlement
    from ledger_engines import compute_budget_variance, resolve_billing_period
"""

from ledger_kernel.logging_config import get_logger

logger = get_logger("engines")

from ledger_engines.billing import (
    purchase_period,
    resolve_billing_period,
    resolve_billing_period_key,
    schedule_installments,
)
from ledger_engines.budget import (
    BudgetCell,
    BudgetRow,
    BudgetVarianceReport,
    compute_budget_variance,
    pin_categories,
)
from ledger_engines.periods import (
    EntryStatus,
    StatementStatus,
    entry_period,
    entry_status,
    parse_event_date,
    period_matches,
    resolve_calendar_period,
    statement_due_date,
    statement_status,
)
from ledger_engines.settlement import (
    EventLiability,
    ResolvedSplit,
    SettlementSnapshot,
    SplitSource,
    StatementShares,
    compute_settlement,
    resolve_split,
    settlement_transfer,
    split_statement,
    statement_share_preview,
)
from ledger_engines.tax import (
    QuarterOverview,
    TaxCalculator,
    TaxLiability,
    TaxMonthSummary,
    calculate_tax_report,
    quarterly_overview,
    tax_totals,
)
from ledger_engines.tax_payments import (
    AdjustmentKind,
    PaymentReconciliation,
    PaymentStatus,
    TaxPaymentIndex,
    TaxPaymentTotals,
    migrate_legacy_payments,
    reconcile_payment,
    summarize_tax_payments,
    tax_payment_key,
)
from ledger_engines.tracer import traced_engine

__all__ = [
    # Billing cycles
    "purchase_period",
    "resolve_billing_period",
    "resolve_billing_period_key",
    "schedule_installments",
    # Budget
    "BudgetCell",
    "BudgetRow",
    "BudgetVarianceReport",
    "compute_budget_variance",
    "pin_categories",
    # Periods
    "EntryStatus",
    "StatementStatus",
    "entry_period",
    "entry_status",
    "parse_event_date",
    "period_matches",
    "resolve_calendar_period",
    "statement_due_date",
    "statement_status",
    # Settlement
    "EventLiability",
    "ResolvedSplit",
    "SettlementSnapshot",
    "SplitSource",
    "StatementShares",
    "compute_settlement",
    "resolve_split",
    "settlement_transfer",
    "split_statement",
    "statement_share_preview",
    # Tax
    "QuarterOverview",
    "TaxCalculator",
    "TaxLiability",
    "TaxMonthSummary",
    "calculate_tax_report",
    "quarterly_overview",
    "tax_totals",
    # Tax payments
    "AdjustmentKind",
    "PaymentReconciliation",
    "PaymentStatus",
    "TaxPaymentIndex",
    "TaxPaymentTotals",
    "migrate_legacy_payments",
    "reconcile_payment",
    "summarize_tax_payments",
    "tax_payment_key",
    # Tracing
    "traced_engine",
]

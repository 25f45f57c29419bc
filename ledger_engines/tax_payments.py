"""
Module: ledger_engines.tax_payments
Responsibility:
    Reconcile caller-owned tax payments against the computed tax report:
    classify each (tax kind, month) as paid, pending or overdue, derive
    fines and shortfalls, and reduce everything to status totals.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - A payment's identity is ``(tax kind, period)``, rendered as the
      deterministic key ``"<KIND>_<YYYY-MM>"``. Runtime lookup uses only
      that identity; records saved under free-form ids are converted once
      by ``migrate_legacy_payments``.
    - Status: paid when anything was paid; overdue when nothing was paid,
      the due date has passed and something is due; pending otherwise.
    - Adjustment on paid items: |paid - due| up to the 0.05 tolerance is
      zero; an excess is a fine, a deficit a negative shortfall.
    - Purity: "today" is a parameter.

Usage:
    from ledger_engines.tax_payments import TaxPaymentIndex, summarize_tax_payments

    totals = summarize_tax_payments(report, TaxPaymentIndex(payments), today)
    totals.overdue
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from ledger_engines.tax import TaxLiability, TaxMonthSummary
from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.dtos import TaxKind, TaxPayment
from ledger_kernel.domain.values import ZERO, PeriodKey, parse_amount
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.tax_payments")

ADJUSTMENT_TOLERANCE = Decimal("0.05")

_PAYMENT_KEY = re.compile(r"^([A-Z]+)_(\d{4}-\d{2})$")


class PaymentStatus(str, Enum):
    PAID = "paid"
    PENDING = "pending"
    OVERDUE = "overdue"


class AdjustmentKind(str, Enum):
    NONE = "none"
    FINE = "fine"  # Paid more than due; excess treated as fine/interest
    SHORTFALL = "shortfall"


def tax_payment_key(kind: TaxKind, period: PeriodKey) -> str:
    """Deterministic payment identity, e.g. ``"ISS_2024-03"``."""
    return f"{kind.value}_{period.label}"


def parse_tax_payment_key(key: str) -> tuple[TaxKind, PeriodKey] | None:
    """Inverse of ``tax_payment_key``; None when ``key`` is not deterministic."""
    match = _PAYMENT_KEY.match(key or "")
    if not match:
        return None
    try:
        return TaxKind(match.group(1)), PeriodKey.from_label(match.group(2))
    except ValueError:
        return None


class TaxPaymentIndex:
    """
    Lookup of tax payments by ``(tax kind, period)``.

    The first payment recorded for an identity wins; later duplicates are
    ignored with a warning.
    """

    def __init__(self, payments: Iterable[TaxPayment] = ()):
        self._payments: dict[tuple[TaxKind, PeriodKey], TaxPayment] = {}
        for payment in payments:
            identity = (payment.tax_kind, payment.period)
            if identity in self._payments:
                logger.warning("tax_payment_duplicate", extra={
                    "payment_key": payment.key,
                    "tax_kind": payment.tax_kind,
                    "period": payment.period,
                })
                continue
            self._payments[identity] = payment

    def get(self, kind: TaxKind, period: PeriodKey) -> TaxPayment | None:
        return self._payments.get((kind, period))

    def amount_paid(self, kind: TaxKind, period: PeriodKey) -> Decimal:
        payment = self.get(kind, period)
        return payment.amount_paid if payment else ZERO

    def __contains__(self, identity: object) -> bool:
        return identity in self._payments

    def __iter__(self) -> Iterator[TaxPayment]:
        return iter(self._payments.values())

    def __len__(self) -> int:
        return len(self._payments)


def _record_identity(record: Mapping[str, Any]) -> tuple[TaxKind, PeriodKey] | None:
    """Identity of a raw record from its fields, falling back to its id."""
    kind_raw = record.get("taxType") or record.get("tax_type")
    period_raw = record.get("period")
    if kind_raw and period_raw:
        try:
            return TaxKind(str(kind_raw).upper()), PeriodKey.from_label(str(period_raw)[:7])
        except ValueError:
            pass
    return parse_tax_payment_key(str(record.get("id") or ""))


def migrate_legacy_payments(records: Iterable[Mapping[str, Any]]) -> tuple[TaxPayment, ...]:
    """
    Convert raw stored payment records into ``TaxPayment`` values.

    Records may be keyed by the deterministic id (``"ISS_2024-03"``) or
    only by their ``taxType``/``period`` fields under a free-form id.
    When several records share an identity, the one whose id equals the
    deterministic key wins; otherwise the first one seen is kept.
    Records with no resolvable identity are skipped with a warning.

    Returns:
        One TaxPayment per identity, ordered by (period, tax kind).
    """
    chosen: dict[tuple[TaxKind, PeriodKey], Mapping[str, Any]] = {}
    for record in records:
        identity = _record_identity(record)
        if identity is None:
            logger.warning("tax_payment_record_skipped", extra={
                "record_id": str(record.get("id") or ""),
            })
            continue
        key = tax_payment_key(*identity)
        current = chosen.get(identity)
        if current is None or (record.get("id") == key and current.get("id") != key):
            chosen[identity] = record

    migrated = tuple(
        TaxPayment(
            tax_kind=kind,
            period=period,
            amount_paid=parse_amount(record.get("amountPaid", record.get("amount_paid"))),
            payment_date=str(record.get("paymentDate") or record.get("payment_date") or ""),
            notes=str(record.get("notes") or ""),
        )
        for (kind, period), record in sorted(
            chosen.items(), key=lambda item: (item[0][1], list(TaxKind).index(item[0][0]))
        )
    )
    logger.info("tax_payments_migrated", extra={"payment_count": len(migrated)})
    return migrated


@dataclass(frozen=True)
class PaymentReconciliation:
    """Payment status of one tax kind in one month."""

    tax_kind: TaxKind
    period: PeriodKey
    due_amount: Decimal
    due_date: date
    amount_paid: Decimal
    status: PaymentStatus
    adjustment: Decimal
    adjustment_kind: AdjustmentKind

    @property
    def key(self) -> str:
        return tax_payment_key(self.tax_kind, self.period)


@dataclass(frozen=True)
class TaxPaymentTotals:
    """Status reduction over all kinds and months."""

    paid: Decimal
    pending: Decimal
    overdue: Decimal
    fines: Decimal
    shortfalls: Decimal
    lines: tuple[PaymentReconciliation, ...]


def reconcile_payment(
    period: PeriodKey,
    liability: TaxLiability,
    amount_paid: Decimal,
    today: date,
) -> PaymentReconciliation:
    """Classify one liability against the amount paid for it."""
    due = liability.due_amount
    if amount_paid > ZERO:
        status = PaymentStatus.PAID
    elif today > liability.due_date and due > ZERO:
        status = PaymentStatus.OVERDUE
    else:
        status = PaymentStatus.PENDING

    adjustment = ZERO
    adjustment_kind = AdjustmentKind.NONE
    if amount_paid > ZERO:
        diff = amount_paid - due
        if abs(diff) <= ADJUSTMENT_TOLERANCE:
            pass
        elif diff > ZERO:
            adjustment, adjustment_kind = diff, AdjustmentKind.FINE
        else:
            adjustment, adjustment_kind = diff, AdjustmentKind.SHORTFALL

    return PaymentReconciliation(
        tax_kind=liability.tax_kind,
        period=period,
        due_amount=due,
        due_date=liability.due_date,
        amount_paid=amount_paid,
        status=status,
        adjustment=adjustment,
        adjustment_kind=adjustment_kind,
    )


@traced_engine("tax_payments", "1.0", fingerprint_fields=("summaries", "today"))
def summarize_tax_payments(
    summaries: Sequence[TaxMonthSummary],
    payments: TaxPaymentIndex | Iterable[TaxPayment],
    today: date,
) -> TaxPaymentTotals:
    """
    Reconcile every (month, tax kind) of a report and total by status.

    Paid items contribute their paid amount; unpaid items contribute their
    due amount to overdue or pending.
    """
    index = payments if isinstance(payments, TaxPaymentIndex) else TaxPaymentIndex(payments)

    paid = pending = overdue = fines = shortfalls = ZERO
    lines: list[PaymentReconciliation] = []
    for summary in summaries:
        for liability in summary.liabilities:
            line = reconcile_payment(
                summary.period,
                liability,
                index.amount_paid(liability.tax_kind, summary.period),
                today,
            )
            lines.append(line)
            if line.status == PaymentStatus.PAID:
                paid += line.amount_paid
            elif line.status == PaymentStatus.OVERDUE:
                overdue += line.due_amount
            else:
                pending += line.due_amount
            if line.adjustment_kind == AdjustmentKind.FINE:
                fines += line.adjustment
            elif line.adjustment_kind == AdjustmentKind.SHORTFALL:
                shortfalls += line.adjustment

    logger.info("tax_payments_summarized", extra={
        "today": today.isoformat(),
        "paid": str(paid),
        "pending": str(pending),
        "overdue": str(overdue),
        "fines": str(fines),
        "shortfalls": str(shortfalls),
    })
    return TaxPaymentTotals(
        paid=paid,
        pending=pending,
        overdue=overdue,
        fines=fines,
        shortfalls=shortfalls,
        lines=tuple(lines),
    )

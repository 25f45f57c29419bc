"""
Tax Engine - Presumed-profit tax liabilities per month and quarter.

Computes, for one calendar year of service invoices, the monthly taxes
(ISS, PIS, COFINS) and the quarterly taxes (IRPJ with its progressive
surcharge, CSLL), net of the amounts already retained at source.
Pure functions with no I/O - the rate table is provided as a parameter.

Rules:
    - Revenue is the gross value of non-cancelled, taxable invoices whose
      issuance date (falling back to the creation date) is in the month.
    - Monthly taxes: calculated = revenue x rate,
      due = max(0, calculated - retained), due on the 10th of the
      following month.
    - Quarterly taxes are computed over the fixed quarter and recorded on
      the quarter's last month only, due on the last day of the month
      after quarter end. The first two months of a quarter report zero
      calculated and due amounts for IRPJ and CSLL, and only their own
      month's retentions.
    - Surcharge = max(0, revenue x presumption - threshold) x surcharge
      rate, added to IRPJ.
    - Arithmetic is exact Decimal. No intermediate rounding.

Usage:
    from ledger_engines.tax import calculate_tax_report
    from ledger_kernel.domain import Invoice, RetainedTaxes, TaxKind

    report = calculate_tax_report(
        invoices=[Invoice("nf-1", "1000", issuance_date="2024-03-05",
                          retained=RetainedTaxes(iss="50"))],
        year=2024,
    )
    march = report[2]
    march.liability(TaxKind.ISS).due_amount  # Decimal("0")
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ledger_engines.periods import resolve_calendar_period
from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.dtos import (
    DEFAULT_TAX_RATES,
    MONTHLY_TAXES,
    QUARTERLY_TAXES,
    Invoice,
    TaxCadence,
    TaxKind,
    TaxRateTable,
)
from ledger_kernel.domain.values import ZERO, PeriodKey, QuarterKey
from ledger_kernel.exceptions import InvalidDateFormatError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.tax")


@dataclass(frozen=True)
class TaxLiability:
    """
    Calculated liability for one tax kind in one month.

    ``surcharge`` is non-zero only for IRPJ on a quarter's last month.
    """

    tax_kind: TaxKind
    calculated: Decimal
    retained: Decimal
    due_amount: Decimal
    due_date: date
    surcharge: Decimal = ZERO


@dataclass(frozen=True)
class TaxMonthSummary:
    """Revenue and the five tax liabilities of one month."""

    period: PeriodKey
    revenue: Decimal
    liabilities: tuple[TaxLiability, ...]

    @property
    def month(self) -> str:
        return self.period.label

    def liability(self, kind: TaxKind) -> TaxLiability:
        for item in self.liabilities:
            if item.tax_kind == kind:
                return item
        raise KeyError(kind)

    @property
    def total_due(self) -> Decimal:
        return sum((item.due_amount for item in self.liabilities), ZERO)


@dataclass(frozen=True)
class QuarterOverview:
    """Quarter-level view of the presumed-profit computation."""

    quarter: QuarterKey
    revenue: Decimal
    presumed_profit: Decimal
    excess_over_threshold: Decimal
    surcharge: Decimal
    irpj_due: Decimal
    csll_due: Decimal


def monthly_due_date(period: PeriodKey) -> date:
    """10th of the month following ``period``."""
    return period.next().first_day.replace(day=10)


def quarterly_due_date(period: PeriodKey) -> date:
    """Last day of the month following the end of ``period``'s quarter."""
    return period.quarter.last_month.next().last_day


def due_date_for(kind: TaxKind, period: PeriodKey) -> date:
    if kind.cadence == TaxCadence.QUARTERLY:
        return quarterly_due_date(period)
    return monthly_due_date(period)


def irpj_surcharge(quarter_revenue: Decimal, rates: TaxRateTable) -> Decimal:
    """Progressive IRPJ surcharge on presumed profit above the quarterly threshold."""
    presumed = quarter_revenue * rates.presumption
    excess = max(ZERO, presumed - rates.irpj_surcharge_threshold)
    return excess * rates.irpj_surcharge


def _invoice_period(invoice: Invoice, year: int) -> PeriodKey | None:
    """Period of an invoice when it counts toward ``year``'s revenue."""
    if invoice.is_cancelled or not invoice.is_taxable:
        return None
    try:
        period = resolve_calendar_period(invoice.reference_date)
    except InvalidDateFormatError:
        logger.warning("tax_invoice_date_unparseable", extra={
            "invoice_id": invoice.invoice_id,
            "date_value": invoice.reference_date,
        })
        return None
    if period is None or period.year != year:
        return None
    return period


@traced_engine("tax_report", "1.0", fingerprint_fields=("invoices", "year", "rates"))
def calculate_tax_report(
    invoices: Sequence[Invoice],
    year: int,
    rates: TaxRateTable = DEFAULT_TAX_RATES,
) -> tuple[TaxMonthSummary, ...]:
    """
    Compute the twelve monthly tax summaries of ``year``.

    Args:
        invoices: Invoice snapshot (any order, any years).
        year: Calendar year to report.
        rates: Rate table, defaults to the presumed-profit table.

    Returns:
        Twelve TaxMonthSummary, January first. Identical inputs return
        equal output.
    """
    t0 = time.monotonic()
    logger.info("tax_report_started", extra={
        "year": year,
        "invoice_count": len(invoices),
    })

    periods = [PeriodKey(year, i) for i in range(12)]
    revenue: dict[PeriodKey, Decimal] = {p: ZERO for p in periods}
    retained: dict[tuple[PeriodKey, TaxKind], Decimal] = {
        (p, kind): ZERO for p in periods for kind in TaxKind
    }

    counted = 0
    for invoice in invoices:
        period = _invoice_period(invoice, year)
        if period is None:
            continue
        counted += 1
        revenue[period] += invoice.gross_value
        for kind in TaxKind:
            retained[(period, kind)] += invoice.retained.for_kind(kind)

    liabilities: dict[PeriodKey, list[TaxLiability]] = {p: [] for p in periods}

    for period in periods:
        for kind in MONTHLY_TAXES:
            calculated = revenue[period] * rates.rate_for(kind)
            kept = retained[(period, kind)]
            liabilities[period].append(TaxLiability(
                tax_kind=kind,
                calculated=calculated,
                retained=kept,
                due_amount=max(ZERO, calculated - kept),
                due_date=monthly_due_date(period),
            ))

    for q in range(4):
        quarter = QuarterKey(year, q)
        q_revenue = sum((revenue[p] for p in quarter.months), ZERO)
        surcharge = irpj_surcharge(q_revenue, rates)

        for period in quarter.months:
            is_last = period == quarter.last_month
            for kind in QUARTERLY_TAXES:
                if not is_last:
                    liabilities[period].append(TaxLiability(
                        tax_kind=kind,
                        calculated=ZERO,
                        retained=retained[(period, kind)],
                        due_amount=ZERO,
                        due_date=quarterly_due_date(period),
                    ))
                    continue

                q_retained = sum((retained[(p, kind)] for p in quarter.months), ZERO)
                calculated = q_revenue * rates.rate_for(kind)
                extra = surcharge if kind == TaxKind.IRPJ else ZERO
                liabilities[period].append(TaxLiability(
                    tax_kind=kind,
                    calculated=calculated,
                    retained=q_retained,
                    due_amount=max(ZERO, calculated + extra - q_retained),
                    due_date=quarterly_due_date(period),
                    surcharge=extra,
                ))

        if surcharge > ZERO:
            logger.debug("tax_irpj_surcharge_applied", extra={
                "quarter": quarter.label,
                "quarter_revenue": str(q_revenue),
                "surcharge": str(surcharge),
            })

    report = tuple(
        TaxMonthSummary(period=p, revenue=revenue[p], liabilities=tuple(liabilities[p]))
        for p in periods
    )

    duration_ms = round((time.monotonic() - t0) * 1000, 2)
    logger.info("tax_report_completed", extra={
        "year": year,
        "invoice_count": len(invoices),
        "invoices_counted": counted,
        "annual_revenue": str(sum((s.revenue for s in report), ZERO)),
        "annual_due": str(sum((s.total_due for s in report), ZERO)),
        "duration_ms": duration_ms,
    })
    return report


def quarterly_overview(
    summaries: Sequence[TaxMonthSummary],
    rates: TaxRateTable = DEFAULT_TAX_RATES,
) -> tuple[QuarterOverview, ...]:
    """Per-quarter revenue, presumed profit and IRPJ/CSLL due, in quarter order."""
    by_period = {s.period: s for s in summaries}
    years = sorted({s.period.year for s in summaries})

    overview: list[QuarterOverview] = []
    for year in years:
        for q in range(4):
            quarter = QuarterKey(year, q)
            months = [by_period[p] for p in quarter.months if p in by_period]
            if not months:
                continue
            q_revenue = sum((s.revenue for s in months), ZERO)
            presumed = q_revenue * rates.presumption
            last = by_period.get(quarter.last_month)
            overview.append(QuarterOverview(
                quarter=quarter,
                revenue=q_revenue,
                presumed_profit=presumed,
                excess_over_threshold=max(ZERO, presumed - rates.irpj_surcharge_threshold),
                surcharge=irpj_surcharge(q_revenue, rates),
                irpj_due=last.liability(TaxKind.IRPJ).due_amount if last else ZERO,
                csll_due=last.liability(TaxKind.CSLL).due_amount if last else ZERO,
            ))
    return tuple(overview)


def tax_totals(summaries: Sequence[TaxMonthSummary]) -> dict[TaxKind, Decimal]:
    """Total due per tax kind over the given summaries."""
    totals = {kind: ZERO for kind in TaxKind}
    for summary in summaries:
        for item in summary.liabilities:
            totals[item.tax_kind] += item.due_amount
    return totals


class TaxCalculator:
    """
    Presumed-profit tax calculator bound to one rate table.

    Pure - no I/O, no clock access. Rates are provided at construction.
    """

    def __init__(self, rates: TaxRateTable = DEFAULT_TAX_RATES):
        self.rates = rates

    def calculate(self, invoices: Sequence[Invoice], year: int) -> tuple[TaxMonthSummary, ...]:
        return calculate_tax_report(invoices=invoices, year=year, rates=self.rates)

    def quarterly_overview(self, invoices: Sequence[Invoice], year: int) -> tuple[QuarterOverview, ...]:
        return quarterly_overview(self.calculate(invoices, year), self.rates)

    def annual_due(self, invoices: Sequence[Invoice], year: int) -> dict[TaxKind, Decimal]:
        return tax_totals(self.calculate(invoices, year))

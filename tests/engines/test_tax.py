"""
Tests for the presumed-profit tax engine.

Covers monthly taxes, quarterly IRPJ/CSLL with surcharge, revenue
filtering and due dates.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_engines.tax import (
    TaxCalculator,
    calculate_tax_report,
    irpj_surcharge,
    monthly_due_date,
    quarterly_due_date,
    quarterly_overview,
    tax_totals,
)
from ledger_kernel.domain.dtos import (
    DEFAULT_TAX_RATES,
    Invoice,
    InvoiceStatus,
    RetainedTaxes,
    TaxKind,
    TaxRateTable,
)
from ledger_kernel.domain.values import PeriodKey, QuarterKey
from tests.conftest import make_invoice


class TestDueDates:
    def test_monthly_due_on_tenth_of_next_month(self):
        assert monthly_due_date(PeriodKey(2024, 2)) == date(2024, 4, 10)
        assert monthly_due_date(PeriodKey(2024, 11)) == date(2025, 1, 10)

    def test_quarterly_due_end_of_month_after_quarter(self):
        assert quarterly_due_date(PeriodKey(2024, 0)) == date(2024, 4, 30)
        assert quarterly_due_date(PeriodKey(2024, 2)) == date(2024, 4, 30)
        assert quarterly_due_date(PeriodKey(2024, 10)) == date(2025, 1, 31)


class TestMonthlyTaxes:
    """ISS, PIS and COFINS per month."""

    def test_iss_fully_retained_leaves_nothing_due(self):
        report = calculate_tax_report(
            invoices=[make_invoice(gross="1000", on="2024-03-05", iss="50")],
            year=2024,
        )
        iss = report[2].liability(TaxKind.ISS)
        assert iss.calculated == Decimal("50")
        assert iss.retained == Decimal("50")
        assert iss.due_amount == Decimal("0")
        assert iss.due_date == date(2024, 4, 10)

    def test_pis_and_cofins(self):
        report = calculate_tax_report(invoices=[make_invoice(gross="1000")], year=2024)
        march = report[2]
        assert march.revenue == Decimal("1000")
        assert march.liability(TaxKind.PIS).due_amount == Decimal("6.5")
        assert march.liability(TaxKind.COFINS).due_amount == Decimal("30")

    def test_over_retention_never_negative(self):
        report = calculate_tax_report(
            invoices=[make_invoice(gross="1000", iss="80")], year=2024
        )
        assert report[2].liability(TaxKind.ISS).due_amount == Decimal("0")

    def test_twelve_months_in_order(self):
        report = calculate_tax_report(invoices=[], year=2024)
        assert [s.month for s in report][:3] == ["2024-01", "2024-02", "2024-03"]
        assert len(report) == 12
        assert all(s.total_due == Decimal("0") for s in report)

    def test_liabilities_in_kind_order(self):
        report = calculate_tax_report(invoices=[], year=2024)
        assert [l.tax_kind for l in report[0].liabilities] == list(TaxKind)


class TestRevenueFiltering:
    def test_cancelled_and_non_taxable_excluded(self):
        invoices = [
            make_invoice("nf-1", gross="1000"),
            Invoice("nf-2", "500", issuance_date="2024-03-10", status=InvoiceStatus.CANCELLED),
            Invoice("nf-3", "700", issuance_date="2024-03-10", is_taxable=False),
        ]
        report = calculate_tax_report(invoices=invoices, year=2024)
        assert report[2].revenue == Decimal("1000")

    def test_created_at_fallback(self):
        invoice = Invoice("nf-1", "1000", created_at="2024-05-02T09:00:00")
        report = calculate_tax_report(invoices=[invoice], year=2024)
        assert report[4].revenue == Decimal("1000")

    def test_stored_legacy_record(self):
        invoice = Invoice.from_record({
            "id": "nf-1",
            "amount": "1000",
            "issueDate": "2024-03-05",
            "taxes": {
                "iss": {"amount": 50, "rate": 5, "retained": False},
                "cofins": {"amount": 30, "rate": 3, "retained": "true"},
            },
        })
        march = calculate_tax_report(invoices=[invoice], year=2024)[2]

        assert march.revenue == Decimal("1000")
        assert march.liability(TaxKind.ISS).due_amount == Decimal("50")
        assert march.liability(TaxKind.COFINS).due_amount == Decimal("0")

    def test_other_years_ignored(self):
        report = calculate_tax_report(invoices=[make_invoice(on="2023-12-31")], year=2024)
        assert sum(s.revenue for s in report) == Decimal("0")

    def test_malformed_date_skipped_with_warning(self, ledger_caplog):
        report = calculate_tax_report(invoices=[make_invoice(on="March")], year=2024)
        assert sum(s.revenue for s in report) == Decimal("0")
        assert any(r.getMessage() == "tax_invoice_date_unparseable" for r in ledger_caplog.records)


class TestQuarterlyTaxes:
    """IRPJ and CSLL over the fixed quarter, booked on its last month."""

    def test_surcharge_quarter(self):
        invoices = [
            make_invoice("nf-1", gross="100000", on="2024-01-15"),
            make_invoice("nf-2", gross="100000", on="2024-02-15"),
            make_invoice("nf-3", gross="50000", on="2024-03-15"),
        ]
        report = calculate_tax_report(invoices=invoices, year=2024)

        irpj = report[2].liability(TaxKind.IRPJ)
        assert irpj.calculated == Decimal("12000")
        assert irpj.surcharge == Decimal("2000")
        assert irpj.due_amount == Decimal("14000")
        assert irpj.due_date == date(2024, 4, 30)

        csll = report[2].liability(TaxKind.CSLL)
        assert csll.calculated == Decimal("7200")
        assert csll.surcharge == Decimal("0")

    def test_non_last_months_carry_nothing_due(self):
        invoices = [make_invoice(gross="100000", on="2024-01-15", csll="100")]
        report = calculate_tax_report(invoices=invoices, year=2024)

        january_csll = report[0].liability(TaxKind.CSLL)
        assert january_csll.calculated == Decimal("0")
        assert january_csll.due_amount == Decimal("0")
        assert january_csll.retained == Decimal("100")

        march_csll = report[2].liability(TaxKind.CSLL)
        assert march_csll.retained == Decimal("100")
        assert march_csll.due_amount == Decimal("2780")

    def test_irrf_counts_as_irpj_retention(self):
        invoices = [make_invoice(gross="10000", on="2024-04-10", irrf="150")]
        report = calculate_tax_report(invoices=invoices, year=2024)
        irpj = report[5].liability(TaxKind.IRPJ)
        assert irpj.retained == Decimal("150")
        assert irpj.due_amount == Decimal("330")

    def test_surcharge_threshold_boundary(self):
        assert irpj_surcharge(Decimal("187500"), DEFAULT_TAX_RATES) == Decimal("0")
        assert irpj_surcharge(Decimal("190625"), DEFAULT_TAX_RATES) == Decimal("100")

    def test_custom_rate_table(self):
        rates = TaxRateTable(iss="0.02")
        report = calculate_tax_report(invoices=[make_invoice(gross="1000")], year=2024, rates=rates)
        assert report[2].liability(TaxKind.ISS).calculated == Decimal("20")


class TestIdempotence:
    def test_same_inputs_same_report(self):
        invoices = [make_invoice("nf-1", gross="1234.56", iss="10"), make_invoice("nf-2", gross="99")]
        assert calculate_tax_report(invoices=invoices, year=2024) == calculate_tax_report(
            invoices=list(reversed(invoices)), year=2024
        )


class TestOverviewAndTotals:
    def test_quarterly_overview(self):
        invoices = [make_invoice(gross="250000", on="2024-02-01")]
        overview = quarterly_overview(calculate_tax_report(invoices=invoices, year=2024))
        assert [q.quarter for q in overview] == [QuarterKey(2024, i) for i in range(4)]
        q1 = overview[0]
        assert q1.presumed_profit == Decimal("80000")
        assert q1.excess_over_threshold == Decimal("20000")
        assert q1.surcharge == Decimal("2000")
        assert q1.irpj_due == Decimal("14000")
        assert overview[1].irpj_due == Decimal("0")

    def test_tax_totals(self):
        invoices = [make_invoice(gross="1000", on="2024-01-10"), make_invoice(gross="1000", on="2024-02-10")]
        totals = tax_totals(calculate_tax_report(invoices=invoices, year=2024))
        assert totals[TaxKind.ISS] == Decimal("100")
        assert totals[TaxKind.IRPJ] == Decimal("96")

    def test_calculator_binds_rates(self):
        calculator = TaxCalculator(TaxRateTable(iss="0.03"))
        assert calculator.annual_due([make_invoice(gross="1000")], 2024)[TaxKind.ISS] == Decimal("30")
        assert len(calculator.quarterly_overview([], 2024)) == 4

    def test_missing_liability_raises(self):
        summary = calculate_tax_report(invoices=[], year=2024)[0]
        with pytest.raises(KeyError):
            summary.liability("VAT")

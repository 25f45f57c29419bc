"""
Tests for tax payment reconciliation.

Covers payment identity, legacy record migration, per-line status and
adjustment classification, and the status totals.
"""

from datetime import date
from decimal import Decimal

from ledger_engines.tax import TaxLiability, calculate_tax_report
from ledger_engines.tax_payments import (
    AdjustmentKind,
    PaymentStatus,
    TaxPaymentIndex,
    migrate_legacy_payments,
    parse_tax_payment_key,
    reconcile_payment,
    summarize_tax_payments,
    tax_payment_key,
)
from ledger_kernel.domain.dtos import TaxKind, TaxPayment
from ledger_kernel.domain.values import PeriodKey
from tests.conftest import make_invoice

MARCH = PeriodKey(2024, 2)


def _iss_liability(due: str = "50") -> TaxLiability:
    return TaxLiability(
        tax_kind=TaxKind.ISS,
        calculated=Decimal(due),
        retained=Decimal("0"),
        due_amount=Decimal(due),
        due_date=date(2024, 4, 10),
    )


class TestPaymentKeys:
    def test_key_format(self):
        assert tax_payment_key(TaxKind.ISS, MARCH) == "ISS_2024-03"

    def test_parse_round_trip(self):
        assert parse_tax_payment_key("CSLL_2024-12") == (TaxKind.CSLL, PeriodKey(2024, 11))

    def test_parse_rejects_free_form(self):
        assert parse_tax_payment_key("a8f3-random-id") is None
        assert parse_tax_payment_key("VAT_2024-03") is None
        assert parse_tax_payment_key("ISS_2024-13") is None


class TestTaxPaymentIndex:
    def test_first_payment_wins(self, ledger_caplog):
        index = TaxPaymentIndex([
            TaxPayment(TaxKind.ISS, MARCH, "50"),
            TaxPayment(TaxKind.ISS, MARCH, "70"),
        ])
        assert len(index) == 1
        assert index.amount_paid(TaxKind.ISS, MARCH) == Decimal("50")
        assert any(r.getMessage() == "tax_payment_duplicate" for r in ledger_caplog.records)

    def test_missing_payment_is_zero(self):
        index = TaxPaymentIndex()
        assert index.get(TaxKind.PIS, MARCH) is None
        assert index.amount_paid(TaxKind.PIS, MARCH) == Decimal("0")
        assert (TaxKind.PIS, MARCH) not in index


class TestMigrateLegacyPayments:
    def test_deterministic_id_wins_over_free_form(self):
        records = [
            {"id": "x-123", "taxType": "ISS", "period": "2024-03", "amountPaid": "40"},
            {"id": "ISS_2024-03", "taxType": "ISS", "period": "2024-03", "amountPaid": "50"},
        ]
        (payment,) = migrate_legacy_payments(records)
        assert payment.key == "ISS_2024-03"
        assert payment.amount_paid == Decimal("50")

    def test_first_free_form_kept_without_deterministic_record(self):
        records = [
            {"id": "a", "taxType": "pis", "period": "2024-03", "amountPaid": "1.234,50"},
            {"id": "b", "taxType": "PIS", "period": "2024-03", "amountPaid": "9"},
        ]
        (payment,) = migrate_legacy_payments(records)
        assert payment.tax_kind is TaxKind.PIS
        assert payment.amount_paid == Decimal("1234.50")

    def test_identity_from_id_only(self):
        (payment,) = migrate_legacy_payments([{"id": "IRPJ_2024-03", "amount_paid": 120}])
        assert payment.tax_kind is TaxKind.IRPJ
        assert payment.period == MARCH

    def test_unresolvable_skipped(self, ledger_caplog):
        assert migrate_legacy_payments([{"id": "mystery", "amountPaid": "10"}]) == ()
        assert any(r.getMessage() == "tax_payment_record_skipped" for r in ledger_caplog.records)

    def test_sorted_by_period_then_kind(self):
        records = [
            {"id": "COFINS_2024-03", "amountPaid": "1"},
            {"id": "ISS_2024-03", "amountPaid": "1"},
            {"id": "ISS_2024-01", "amountPaid": "1"},
        ]
        keys = [p.key for p in migrate_legacy_payments(records)]
        assert keys == ["ISS_2024-01", "ISS_2024-03", "COFINS_2024-03"]


class TestReconcilePayment:
    BEFORE_DUE = date(2024, 4, 1)
    AFTER_DUE = date(2024, 4, 11)

    def test_pending_before_due_date(self):
        line = reconcile_payment(MARCH, _iss_liability(), Decimal("0"), self.BEFORE_DUE)
        assert line.status is PaymentStatus.PENDING
        assert line.adjustment_kind is AdjustmentKind.NONE

    def test_overdue_after_due_date(self):
        line = reconcile_payment(MARCH, _iss_liability(), Decimal("0"), self.AFTER_DUE)
        assert line.status is PaymentStatus.OVERDUE

    def test_nothing_due_never_overdue(self):
        line = reconcile_payment(MARCH, _iss_liability("0"), Decimal("0"), self.AFTER_DUE)
        assert line.status is PaymentStatus.PENDING

    def test_exact_payment(self):
        line = reconcile_payment(MARCH, _iss_liability(), Decimal("50.04"), self.AFTER_DUE)
        assert line.status is PaymentStatus.PAID
        assert line.adjustment == Decimal("0")
        assert line.adjustment_kind is AdjustmentKind.NONE

    def test_tolerance_boundary_is_not_adjusted(self):
        due = Decimal("61.7280")
        over = reconcile_payment(MARCH, _iss_liability(str(due)), due + Decimal("0.05"), self.AFTER_DUE)
        under = reconcile_payment(MARCH, _iss_liability(str(due)), due - Decimal("0.05"), self.AFTER_DUE)

        assert over.adjustment == Decimal("0")
        assert over.adjustment_kind is AdjustmentKind.NONE
        assert under.adjustment_kind is AdjustmentKind.NONE

    def test_just_past_tolerance_is_fine(self):
        line = reconcile_payment(MARCH, _iss_liability(), Decimal("50.06"), self.AFTER_DUE)
        assert line.adjustment == Decimal("0.06")
        assert line.adjustment_kind is AdjustmentKind.FINE

    def test_overpayment_is_fine(self):
        line = reconcile_payment(MARCH, _iss_liability(), Decimal("55"), self.AFTER_DUE)
        assert line.adjustment == Decimal("5")
        assert line.adjustment_kind is AdjustmentKind.FINE

    def test_underpayment_is_shortfall(self):
        line = reconcile_payment(MARCH, _iss_liability(), Decimal("45"), self.AFTER_DUE)
        assert line.adjustment == Decimal("-5")
        assert line.adjustment_kind is AdjustmentKind.SHORTFALL
        assert line.key == "ISS_2024-03"


class TestSummarizeTaxPayments:
    def test_totals_by_status(self):
        report = calculate_tax_report(
            invoices=[make_invoice(gross="1000", on="2024-03-05")], year=2024
        )
        payments = [
            TaxPayment(TaxKind.ISS, MARCH, "52"),
            TaxPayment(TaxKind.PIS, MARCH, "6"),
        ]
        totals = summarize_tax_payments(
            summaries=report, payments=payments, today=date(2024, 4, 15)
        )

        assert totals.paid == Decimal("58")
        # COFINS 30 is past its 10 April due date
        assert totals.overdue == Decimal("30")
        # Q1 IRPJ 48 and CSLL 28.8 fall due on 30 April
        assert totals.pending == Decimal("76.8")
        assert totals.fines == Decimal("2")
        assert totals.shortfalls == Decimal("-0.5")
        assert len(totals.lines) == 60

    def test_accepts_prebuilt_index(self):
        report = calculate_tax_report(invoices=[], year=2024)
        totals = summarize_tax_payments(report, TaxPaymentIndex(), date(2024, 6, 1))
        assert totals.paid == totals.pending == totals.overdue == Decimal("0")

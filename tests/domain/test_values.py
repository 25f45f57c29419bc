"""Tests for amount parsing and the period value objects."""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.values import (
    PeriodKey,
    QuarterKey,
    parse_amount,
    quantize_cents,
)


class TestParseAmount:
    """Locale-aware coercion of raw caller amounts."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("1.234,56", Decimal("1234.56")),
            ("R$ 1.234,56", Decimal("1234.56")),
            ("12,5", Decimal("12.5")),
            ("1234.56", Decimal("1234.56")),
            ("-50", Decimal("-50")),
            (100, Decimal("100")),
            (0.1, Decimal("0.1")),
            (Decimal("7.25"), Decimal("7.25")),
        ],
    )
    def test_accepted_notations(self, raw, expected):
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "abc", True, False, float("nan"), [], "R$"])
    def test_unparseable_is_zero(self, raw):
        assert parse_amount(raw) == Decimal("0")

    def test_quantize_rounds_half_up(self):
        assert quantize_cents(Decimal("33.335")) == Decimal("33.34")
        assert quantize_cents(Decimal("33.334")) == Decimal("33.33")


class TestPeriodKey:
    """Calendar month bucket."""

    def test_label_is_one_based(self):
        assert PeriodKey(2024, 0).label == "2024-01"
        assert PeriodKey(2024, 11).label == "2024-12"

    def test_rejects_out_of_range_month(self):
        with pytest.raises(ValueError):
            PeriodKey(2024, 12)
        with pytest.raises(ValueError):
            PeriodKey(2024, -1)

    def test_from_label_round_trip(self):
        assert PeriodKey.from_label("2024-03") == PeriodKey(2024, 2)

    def test_from_label_rejects_garbage(self):
        with pytest.raises(ValueError):
            PeriodKey.from_label("March 2024")

    def test_shift_crosses_year_boundaries(self):
        assert PeriodKey(2024, 11).next() == PeriodKey(2025, 0)
        assert PeriodKey(2024, 0).shift(-1) == PeriodKey(2023, 11)
        assert PeriodKey(2024, 5).shift(14) == PeriodKey(2025, 7)

    def test_first_and_last_day(self):
        feb = PeriodKey(2024, 1)
        assert feb.first_day == date(2024, 2, 1)
        assert feb.last_day == date(2024, 2, 29)

    def test_ordering_is_chronological(self):
        assert PeriodKey(2023, 11) < PeriodKey(2024, 0) < PeriodKey(2024, 1)

    def test_quarter(self):
        assert PeriodKey(2024, 4).quarter == QuarterKey(2024, 1)


class TestQuarterKey:
    def test_months_of_quarter(self):
        q3 = QuarterKey(2024, 2)
        assert q3.months == (PeriodKey(2024, 6), PeriodKey(2024, 7), PeriodKey(2024, 8))
        assert q3.last_month == PeriodKey(2024, 8)
        assert q3.label == "2024-Q3"

    def test_rejects_out_of_range_quarter(self):
        with pytest.raises(ValueError):
            QuarterKey(2024, 4)

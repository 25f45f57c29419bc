"""
Values -- Immutable, self-validating domain value objects.

Responsibility:
    Provides the foundational value types for period bucketing and money
    handling: PeriodKey, QuarterKey, and the locale-aware amount parser
    used wherever a caller hands the engine a raw monetary value.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain and engine module.

Invariants enforced:
    - Monetary amounts are Decimal, never float. Floats handed in by a
      caller are converted through ``str`` so ``0.1`` stays ``0.1``.
    - PeriodKey month_index is always in [0, 11]; QuarterKey
      quarter_index is always in [0, 3].

Failure modes:
    - ValueError on PeriodKey / QuarterKey construction out of range.
    - ``parse_amount`` never raises: unparseable input becomes zero.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

# Payer marker that designates party A ("me") on shared events.
PARTY_A = "me"

_CURRENCY_NOISE = re.compile(r"[R$\s]")


def parse_amount(value: Any) -> Decimal:
    """
    Coerce a raw monetary value to Decimal.

    Accepts Decimal, int, float and strings in either Brazilian
    (``1.234,56``) or plain (``1234.56``) notation, optionally with a
    ``R$`` prefix. Anything else, or anything unparseable, is zero.

    Postconditions:
        - Always returns a finite Decimal.
    """
    if isinstance(value, bool) or value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        parsed = Decimal(str(value))
        return parsed if parsed.is_finite() else ZERO
    if not isinstance(value, str):
        return ZERO

    clean = _CURRENCY_NOISE.sub("", value)
    if not clean:
        return ZERO
    if "," in clean and "." in clean:
        clean = clean.replace(".", "").replace(",", ".")
    elif "," in clean:
        clean = clean.replace(",", ".")

    try:
        parsed = Decimal(clean)
    except InvalidOperation:
        return ZERO
    return parsed if parsed.is_finite() else ZERO


def quantize_cents(amount: Decimal) -> Decimal:
    """Round to two decimal places (ROUND_HALF_UP)."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, order=True, slots=True)
class PeriodKey:
    """
    Calendar month bucket.

    Contract:
        Identifies a calendar month as ``(year, month_index)`` with
        ``month_index`` zero-based. Ordering is chronological.

    Guarantees:
        - Immutable, hashable and totally ordered.
        - ``label`` is ``YYYY-MM`` (one-based month).

    Non-goals:
        - Does NOT parse event dates; see ``ledger_engines.periods``.
    """

    year: int
    month_index: int

    def __post_init__(self) -> None:
        if not 0 <= self.month_index <= 11:
            raise ValueError(f"month_index must be in [0, 11], got {self.month_index}")

    @classmethod
    def from_date(cls, value: date) -> PeriodKey:
        return cls(value.year, value.month - 1)

    @classmethod
    def from_label(cls, label: str) -> PeriodKey:
        """Parse a ``YYYY-MM`` label."""
        year_str, sep, month_str = label.partition("-")
        if not sep or not year_str.isdigit() or not month_str.isdigit():
            raise ValueError(f"Invalid period label: {label!r}")
        return cls(int(year_str), int(month_str) - 1)

    @property
    def month(self) -> int:
        """One-based calendar month."""
        return self.month_index + 1

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    @property
    def quarter(self) -> QuarterKey:
        return QuarterKey(self.year, self.month_index // 3)

    def shift(self, months: int) -> PeriodKey:
        """Return the period ``months`` months later (negative goes back)."""
        total = self.year * 12 + self.month_index + months
        return PeriodKey(total // 12, total % 12)

    def next(self) -> PeriodKey:
        return self.shift(1)

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True, order=True, slots=True)
class QuarterKey:
    """
    Fixed calendar quarter (Jan-Mar, Apr-Jun, Jul-Sep, Oct-Dec).

    Guarantees:
        - ``months`` are the three PeriodKeys of the quarter, in order.
    """

    year: int
    quarter_index: int

    def __post_init__(self) -> None:
        if not 0 <= self.quarter_index <= 3:
            raise ValueError(
                f"quarter_index must be in [0, 3], got {self.quarter_index}"
            )

    @property
    def months(self) -> tuple[PeriodKey, PeriodKey, PeriodKey]:
        first = self.quarter_index * 3
        return (
            PeriodKey(self.year, first),
            PeriodKey(self.year, first + 1),
            PeriodKey(self.year, first + 2),
        )

    @property
    def last_month(self) -> PeriodKey:
        return self.months[-1]

    @property
    def label(self) -> str:
        return f"{self.year:04d}-Q{self.quarter_index + 1}"

    def __str__(self) -> str:
        return self.label

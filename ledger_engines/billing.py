"""
Module: ledger_engines.billing
Responsibility:
    Credit-card billing cycles: map a purchase to the statement that will
    contain it, given the card's closing day, and schedule installment
    plans across consecutive statements.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel and sibling engine modules.

Invariants enforced:
    - Statement periods are represented by their first day (``YYYY-MM-01``).
    - Purchases on or after the closing day roll into the following month.
      A month shorter than the closing day never reaches it, so every
      purchase in that month stays in the current statement.
    - Monotonic: a later purchase never maps to an earlier statement for
      the same closing day.
    - Installment amounts are rounded to cents and sum exactly to the
      original purchase value; the last installment absorbs the remainder.

Failure modes:
    - InvalidClosingDayError when closing_day is outside [1, 31].
    - InvalidDateFormatError for a malformed non-empty purchase date.
    - ValueError when an installment count is below 1.

Usage:
    from ledger_engines.billing import resolve_billing_period

    resolve_billing_period("2024-03-15", closing_day=10)  # "2024-04-01"
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

from ledger_engines.periods import parse_event_date, resolve_calendar_period
from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.dtos import CardPurchase, Installment
from ledger_kernel.domain.values import PeriodKey, quantize_cents
from ledger_kernel.exceptions import InvalidClosingDayError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.billing")


def _check_closing_day(closing_day: int) -> None:
    if isinstance(closing_day, bool) or not isinstance(closing_day, int):
        raise InvalidClosingDayError(closing_day)
    if not 1 <= closing_day <= 31:
        raise InvalidClosingDayError(closing_day)


def resolve_billing_period_key(
    purchase_date_str: str | None,
    closing_day: int,
) -> PeriodKey | None:
    """Statement period of a purchase, or None for an empty date."""
    _check_closing_day(closing_day)
    if purchase_date_str is None or not str(purchase_date_str).strip():
        return None
    purchased = parse_event_date(purchase_date_str)
    period = PeriodKey.from_date(purchased)
    if purchased.day >= closing_day:
        return period.next()
    return period


def resolve_billing_period(purchase_date_str: str | None, closing_day: int) -> str:
    """
    First day (``YYYY-MM-01``) of the statement month containing a purchase.

    Returns an empty string for an empty purchase date.
    """
    period = resolve_billing_period_key(purchase_date_str, closing_day)
    if period is None:
        return ""
    return period.first_day.isoformat()


def purchase_period(purchase: CardPurchase, closing_day: int) -> PeriodKey | None:
    """
    Statement period of a card purchase.

    The explicit ``invoice_date`` override wins; otherwise the period is
    derived from the purchase date and ``closing_day``.
    """
    if purchase.invoice_date:
        return resolve_calendar_period(purchase.invoice_date)
    return resolve_billing_period_key(purchase.purchase_date, closing_day)


@traced_engine("installments", "1.0", fingerprint_fields=("purchase", "installments", "closing_day"))
def schedule_installments(
    purchase: CardPurchase,
    installments: int,
    closing_day: int,
) -> tuple[CardPurchase, ...]:
    """
    Split one purchase into ``installments`` purchases on consecutive statements.

    Each generated purchase keeps the original purchase date, carries an
    explicit statement override, a ``(i/N)`` description suffix and an
    ``Installment`` marker grouped under the original purchase id.
    A single installment returns the purchase with its statement pinned.

    Raises:
        ValueError: installments < 1, or the purchase has no resolvable
            statement (no purchase date and no override).
    """
    if installments < 1:
        raise ValueError(f"installments must be >= 1, got {installments}")

    first = purchase_period(purchase, closing_day)
    if first is None:
        raise ValueError(
            f"Purchase {purchase.purchase_id} has no purchase date or statement override"
        )

    if installments == 1:
        return (replace(purchase, invoice_date=first.first_day.isoformat()),)

    share = quantize_cents(purchase.value / Decimal(installments))
    remainder = purchase.value - share * (installments - 1)

    scheduled: list[CardPurchase] = []
    for i in range(installments):
        amount = remainder if i == installments - 1 else share
        scheduled.append(
            replace(
                purchase,
                purchase_id=f"{purchase.purchase_id}-{i + 1}",
                value=amount,
                description=f"{purchase.description} ({i + 1}/{installments})",
                invoice_date=first.shift(i).first_day.isoformat(),
                installment=Installment(
                    current=i + 1,
                    total=installments,
                    group_id=purchase.purchase_id,
                ),
            )
        )

    logger.info("installments_scheduled", extra={
        "purchase_id": purchase.purchase_id,
        "installments": installments,
        "first_statement": first.label,
        "last_statement": first.shift(installments - 1).label,
        "installment_value": str(share),
        "final_installment_value": str(remainder),
    })
    return tuple(scheduled)

"""
Module: ledger_engines.periods
Responsibility:
    Map dated events to calendar-month periods. Provides the date parser,
    the calendar-period resolver, and the fail-closed bucketing predicate
    used by every aggregation in the tax, settlement and budget engines.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel.

Invariants enforced:
    - Accepted formats are ISO ``YYYY-MM-DD`` (an ISO datetime suffix is
      ignored) and localised ``DD/MM/YYYY``. The date must exist on the
      calendar.
    - Empty dates are "no match", never an error.
    - ``period_matches`` never raises: malformed dates fail closed.
    - Purity: "today" is always a parameter; this module never reads the
      clock.

Failure modes:
    - InvalidDateFormatError from ``parse_event_date`` and
      ``resolve_calendar_period`` for non-empty malformed strings.

Usage:
    from ledger_engines.periods import period_matches

    march = [e for e in entries if period_matches(e.effective_date, 2024, 2)]
"""

from __future__ import annotations

import re
from datetime import date
from enum import Enum

from ledger_kernel.domain.dtos import LedgerEntry
from ledger_kernel.domain.values import PeriodKey
from ledger_kernel.exceptions import InvalidDateFormatError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.periods")

_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")
_LOCAL_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


class EntryStatus(str, Enum):
    """Lifecycle status of a ledger entry relative to a reference date."""

    REALIZED = "realized"
    DELAYED = "delayed"  # Expected date passed without realization
    PREDICTED = "predicted"


class StatementStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


def parse_event_date(date_str: str) -> date:
    """
    Parse an ISO or localised date string.

    Raises:
        InvalidDateFormatError: Neither pattern matches, or the date does
            not exist (e.g. ``2024-02-30``).
    """
    text = date_str.strip() if isinstance(date_str, str) else ""
    match = _ISO_DATE.match(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
    else:
        match = _LOCAL_DATE.match(text)
        if not match:
            raise InvalidDateFormatError(str(date_str))
        day, month, year = (int(g) for g in match.groups())

    try:
        return date(year, month, day)
    except ValueError as exc:
        raise InvalidDateFormatError(str(date_str)) from exc


def resolve_calendar_period(date_str: str | None) -> PeriodKey | None:
    """
    Calendar month of ``date_str``.

    Returns None (no match) for empty or missing dates, which are common
    on predicted-but-unrealized entries.

    Raises:
        InvalidDateFormatError: Non-empty string in an unknown format.
    """
    if date_str is None or not str(date_str).strip():
        return None
    return PeriodKey.from_date(parse_event_date(date_str))


def period_matches(date_str: str | None, year: int, month_index: int) -> bool:
    """True iff ``date_str`` resolves to ``(year, month_index)``. Never raises."""
    try:
        period = resolve_calendar_period(date_str)
    except InvalidDateFormatError:
        logger.warning("period_date_unparseable", extra={
            "date_value": str(date_str),
            "target_year": year,
            "target_month_index": month_index,
        })
        return False
    if period is None:
        return False
    return period.year == year and period.month_index == month_index


def entry_period(entry: LedgerEntry) -> PeriodKey | None:
    """
    Period of a ledger entry's effective date.

    Raises:
        InvalidDateFormatError: The effective date is malformed.
    """
    return resolve_calendar_period(entry.effective_date)


def entry_status(entry: LedgerEntry, today: date) -> EntryStatus:
    """
    Classify an entry as realized, delayed or predicted on ``today``.

    An unrealized entry with an empty or malformed expected date is
    predicted.
    """
    if entry.is_realized:
        return EntryStatus.REALIZED
    try:
        expected = parse_event_date(entry.date_expected) if entry.date_expected else None
    except InvalidDateFormatError:
        logger.warning("entry_date_unparseable", extra={
            "entry_id": entry.entry_id,
            "date_value": entry.date_expected,
        })
        expected = None
    if expected is not None and expected < today:
        return EntryStatus.DELAYED
    return EntryStatus.PREDICTED


def statement_due_date(period: PeriodKey, due_day: int) -> date:
    """Due date of a card statement, clamping the due day to month end."""
    return date(period.year, period.month, min(due_day, period.last_day.day))


def statement_status(period: PeriodKey, due_day: int, today: date) -> StatementStatus:
    """A statement is closed once ``today`` is after its due date."""
    if today > statement_due_date(period, due_day):
        return StatementStatus.CLOSED
    return StatementStatus.OPEN

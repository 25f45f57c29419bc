"""
Module: ledger_engines.settlement
Responsibility:
    Proportional liability between two parties for shared events and the
    net settlement balance; splitting a shared card statement into "my
    part" and "partner's part" ledger entries.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel and sibling engine modules.

Invariants enforced:
    - Split resolution order: inline custom split, then the referenced
      sharing mode, then 50/50.
    - Per event: liability_a + liability_b == |value| whenever the split
      sums to 100. Raw percentages are used as given; a split that does not
      sum to 100 is NOT normalised (a warning is logged instead).
    - balance = paid_by_a - liability_a. Positive means party A is owed.
    - Statement split: the two generated entries sum to the rounded
      statement total, with party B's part absorbing the rounding.
    - Full precision for settlement arithmetic; rounding to cents only
      where new ledger entries are produced.

Usage:
    from ledger_engines.settlement import compute_settlement

    snapshot = compute_settlement(events=shared_entries, sharing_modes=modes)
    snapshot.balance
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.dtos import (
    CardPurchase,
    CustomSplit,
    LedgerEntry,
    SharingMode,
    split_is_normalized,
)
from ledger_kernel.domain.values import (
    HUNDRED,
    PARTY_A,
    ZERO,
    quantize_cents,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.settlement")

DEFAULT_SPLIT_PERCENT = Decimal("50")
SETTLEMENT_THRESHOLD = Decimal("0.01")

SharedEvent = LedgerEntry | CardPurchase
SharingModes = Mapping[str, SharingMode] | Iterable[SharingMode]


class SplitSource(str, Enum):
    CUSTOM = "custom"
    MODE = "mode"
    DEFAULT = "default"


@dataclass(frozen=True)
class ResolvedSplit:
    """Effective split of one event and where it came from."""

    party_a_percent: Decimal
    party_b_percent: Decimal
    source: SplitSource
    mode_id: str | None = None

    @property
    def is_normalized(self) -> bool:
        return split_is_normalized(self.party_a_percent, self.party_b_percent)


@dataclass(frozen=True)
class EventLiability:
    """Each party's share of one shared event."""

    event_id: str
    amount: Decimal
    split: ResolvedSplit
    liability_a: Decimal
    liability_b: Decimal
    paid_by_a: bool


@dataclass(frozen=True)
class SettlementSnapshot:
    """
    Settlement over a filtered event set.

    Guarantees:
        - total == paid_by_a + paid_by_b.
        - balance == paid_by_a - liability_a.
    """

    total: Decimal
    liability_a: Decimal
    liability_b: Decimal
    paid_by_a: Decimal
    paid_by_b: Decimal
    balance: Decimal
    lines: tuple[EventLiability, ...]

    @property
    def party_a_is_owed(self) -> bool:
        return self.balance > ZERO


@dataclass(frozen=True)
class StatementShares:
    """Party shares of one card statement, unrounded."""

    my_share: Decimal
    partner_share: Decimal

    @property
    def total(self) -> Decimal:
        return self.my_share + self.partner_share


def _mode_table(sharing_modes: SharingModes) -> Mapping[str, SharingMode]:
    if isinstance(sharing_modes, Mapping):
        return sharing_modes
    return {mode.mode_id: mode for mode in sharing_modes}


def _event_id(event: SharedEvent) -> str:
    if isinstance(event, CardPurchase):
        return event.purchase_id
    return event.entry_id


def resolve_split(event: SharedEvent, sharing_modes: SharingModes) -> ResolvedSplit:
    """Custom split first, then the referenced sharing mode, else 50/50."""
    custom: CustomSplit | None = getattr(event, "custom_split", None)
    if custom is not None:
        return ResolvedSplit(custom.party_a_percent, custom.party_b_percent, SplitSource.CUSTOM)

    if event.sharing_mode_id:
        mode = _mode_table(sharing_modes).get(event.sharing_mode_id)
        if mode is not None:
            return ResolvedSplit(
                mode.party_a_percent,
                mode.party_b_percent,
                SplitSource.MODE,
                mode_id=mode.mode_id,
            )
        logger.debug("sharing_mode_not_found", extra={
            "event_id": _event_id(event),
            "sharing_mode_id": event.sharing_mode_id,
        })

    return ResolvedSplit(DEFAULT_SPLIT_PERCENT, DEFAULT_SPLIT_PERCENT, SplitSource.DEFAULT)


@traced_engine("settlement", "1.0", fingerprint_fields=("events", "sharing_modes"))
def compute_settlement(
    events: Sequence[SharedEvent],
    sharing_modes: SharingModes,
) -> SettlementSnapshot:
    """
    Compute both parties' liabilities, payments and the net balance.

    Args:
        events: Shared events, already period-filtered by the caller.
        sharing_modes: Available sharing modes (sequence or id mapping).

    Returns:
        SettlementSnapshot. An empty event list yields all zeros.
    """
    t0 = time.monotonic()
    modes = _mode_table(sharing_modes)

    liability_a = liability_b = paid_by_a = paid_by_b = ZERO
    lines: list[EventLiability] = []
    warned: set[str] = set()

    for event in events:
        split = resolve_split(event, modes)
        event_id = _event_id(event)
        if not split.is_normalized:
            rule = split.mode_id or f"{split.source.value}:{event_id}"
            if rule not in warned:
                warned.add(rule)
                logger.warning("split_rule_not_normalized", extra={
                    "event_id": event_id,
                    "split_source": split.source.value,
                    "sharing_mode_id": split.mode_id,
                    "party_a_percent": str(split.party_a_percent),
                    "party_b_percent": str(split.party_b_percent),
                })

        amount = abs(event.value)
        share_a = amount * split.party_a_percent / HUNDRED
        share_b = amount * split.party_b_percent / HUNDRED
        liability_a += share_a
        liability_b += share_b

        by_a = event.paid_by == PARTY_A
        if by_a:
            paid_by_a += amount
        else:
            paid_by_b += amount

        lines.append(EventLiability(
            event_id=event_id,
            amount=amount,
            split=split,
            liability_a=share_a,
            liability_b=share_b,
            paid_by_a=by_a,
        ))

    snapshot = SettlementSnapshot(
        total=paid_by_a + paid_by_b,
        liability_a=liability_a,
        liability_b=liability_b,
        paid_by_a=paid_by_a,
        paid_by_b=paid_by_b,
        balance=paid_by_a - liability_a,
        lines=tuple(lines),
    )

    duration_ms = round((time.monotonic() - t0) * 1000, 2)
    logger.info("settlement_completed", extra={
        "event_count": len(lines),
        "total": str(snapshot.total),
        "liability_a": str(snapshot.liability_a),
        "balance": str(snapshot.balance),
        "duration_ms": duration_ms,
    })
    return snapshot


def settlement_transfer(
    snapshot: SettlementSnapshot,
    *,
    entry_id: str,
    account_id: str,
    on_date: date,
) -> LedgerEntry | None:
    """
    Ledger entry that settles ``snapshot`` from party A's account.

    A receipt (positive) when party A is owed, a payment (negative)
    otherwise. None when the balance is below one cent.
    """
    if abs(snapshot.balance) < SETTLEMENT_THRESHOLD:
        return None
    amount = quantize_cents(abs(snapshot.balance))
    receipt = snapshot.balance > ZERO
    iso = on_date.isoformat()
    return LedgerEntry(
        entry_id=entry_id,
        value=amount if receipt else -amount,
        date_expected=iso,
        date_realized=iso,
        is_realized=True,
        account_id=account_id,
        category="Settlement",
        description="Settlement receipt" if receipt else "Settlement payment",
        exclude_from_budget=True,
    )


def statement_share_preview(
    purchases: Sequence[CardPurchase],
    sharing_modes: SharingModes,
) -> StatementShares:
    """My and partner's share of a card statement (mode by id, else 50/50)."""
    modes = _mode_table(sharing_modes)
    mine = partner = ZERO
    for purchase in purchases:
        split = resolve_split(purchase, modes)
        amount = abs(purchase.value)
        mine += amount * split.party_a_percent / HUNDRED
        partner += amount * split.party_b_percent / HUNDRED
    return StatementShares(my_share=mine, partner_share=partner)


def _find_mode(modes: Mapping[str, SharingMode], party_a: Decimal) -> SharingMode | None:
    for mode in modes.values():
        if mode.party_a_percent == party_a and mode.party_a_percent + mode.party_b_percent == HUNDRED:
            return mode
    return None


@traced_engine("statement_split", "1.0", fingerprint_fields=("purchases", "statement_id"))
def split_statement(
    purchases: Sequence[CardPurchase],
    sharing_modes: SharingModes,
    *,
    statement_id: str,
    account_id: str,
    launch_date: date,
    paid_by: str = PARTY_A,
    description: str = "Card statement",
) -> tuple[LedgerEntry, LedgerEntry]:
    """
    Split a shared card statement into "my part" and "partner's part".

    Each entry is attributed wholly to one party: it references the
    table's 100/0 (or 0/100) sharing mode when one exists, else carries
    the equivalent custom split. Amounts are rounded to cents; the
    partner's part absorbs the rounding so both entries add up to the
    rounded statement total. Both entries are realized on
    ``launch_date``, shared and excluded from the budget.
    """
    modes = _mode_table(sharing_modes)
    shares = statement_share_preview(purchases, modes)
    mine = quantize_cents(shares.my_share)
    partner = quantize_cents(shares.total) - mine

    iso = launch_date.isoformat()

    def _part(suffix: str, label: str, amount: Decimal, party_a: Decimal) -> LedgerEntry:
        mode = _find_mode(modes, party_a)
        return LedgerEntry(
            entry_id=f"{statement_id}-{suffix}",
            value=-abs(amount),
            date_expected=iso,
            date_realized=iso,
            is_realized=True,
            account_id=account_id,
            category="Credit card",
            description=f"{description} - {label}",
            is_shared=True,
            paid_by=paid_by,
            sharing_mode_id=mode.mode_id if mode else None,
            custom_split=None if mode else CustomSplit(party_a, HUNDRED - party_a),
            exclude_from_budget=True,
        )

    my_part = _part("mine", "My part", mine, HUNDRED)
    partner_part = _part("partner", "Partner's part", partner, ZERO)

    logger.info("statement_split_completed", extra={
        "statement_id": statement_id,
        "purchase_count": len(purchases),
        "my_share": str(mine),
        "partner_share": str(partner),
    })
    return my_part, partner_part

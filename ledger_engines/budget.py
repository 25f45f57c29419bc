"""
ledger_engines.budget -- Budget variance grid over groups, categories and months.

Responsibility:
    Bucket actual amounts by (group, category, flow, month) for one year
    and set them against the user's monthly targets. Decides which
    categories are visible per (group, flow) without ever narrowing what
    is computed: every category of the tag universe gets a row.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel and sibling engine modules.

Actual amounts per group kind:
    - account: non-shared, budget-included ledger entries of the account.
      The cell's net sum counts for income when positive and for expense
      (as a magnitude) when negative.
    - shared: shared, budget-included ledger entries of the shared account,
      same net-sum rule.
    - card: expense only; |value| of the purchases on that month's
      statement (override first, else the group's closing day).

Invariants enforced:
    - Actual and target values are non-negative magnitudes.
    - Visibility: non-zero target in any month, non-zero actual in any
      month, or pinned by the caller. Card groups have no income rows.
    - Entries with malformed dates never match a month (warning logged).
    - Purity: no clock access, no I/O.

Usage:
    from ledger_engines.budget import compute_budget_variance

    report = compute_budget_variance(
        entries=entries, targets=targets, tags=tags, year=2024, groups=groups,
    )
    report.cell("checking", "Groceries", FlowDirection.EXPENSE, 2).actual
"""

from __future__ import annotations

import time
from collections import defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from decimal import Decimal

from ledger_engines.billing import purchase_period
from ledger_engines.periods import entry_period
from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.dtos import (
    BudgetGroup,
    BudgetTarget,
    CardPurchase,
    FlowDirection,
    GroupKind,
    LedgerEntry,
    Tag,
)
from ledger_kernel.domain.values import ZERO, PeriodKey
from ledger_kernel.exceptions import InvalidClosingDayError, InvalidDateFormatError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.budget")

MONTHS = 12

PinnedCategories = Mapping[tuple[str, FlowDirection], frozenset[str] | set[str]]


@dataclass(frozen=True)
class BudgetCell:
    """Actual versus target for one month."""

    actual: Decimal
    target: Decimal

    @property
    def variance(self) -> Decimal:
        """Positive when actual exceeds target."""
        return self.actual - self.target

    @property
    def is_over_target(self) -> bool:
        return self.target > ZERO and self.actual > self.target


@dataclass(frozen=True)
class BudgetRow:
    """Twelve months of one (group, category, flow)."""

    group_id: str
    category: str
    flow: FlowDirection
    cells: tuple[BudgetCell, ...]

    @property
    def total_actual(self) -> Decimal:
        return sum((c.actual for c in self.cells), ZERO)

    @property
    def total_target(self) -> Decimal:
        return sum((c.target for c in self.cells), ZERO)

    @property
    def has_activity(self) -> bool:
        return any(c.actual != ZERO or c.target != ZERO for c in self.cells)


@dataclass(frozen=True)
class BudgetVarianceReport:
    """Full grid for one year. Every tag has a row for every group and flow."""

    year: int
    groups: tuple[BudgetGroup, ...]
    categories: tuple[str, ...]
    rows: Mapping[tuple[str, str, FlowDirection], BudgetRow]
    visible: Mapping[tuple[str, FlowDirection], tuple[str, ...]]

    def row(self, group_id: str, category: str, flow: FlowDirection) -> BudgetRow:
        return self.rows[(group_id, category, flow)]

    def cell(
        self,
        group_id: str,
        category: str,
        flow: FlowDirection,
        month_index: int,
    ) -> BudgetCell:
        return self.rows[(group_id, category, flow)].cells[month_index]

    def visible_categories(self, group_id: str, flow: FlowDirection) -> tuple[str, ...]:
        return self.visible.get((group_id, flow), ())

    def rows_for(
        self,
        group_id: str,
        flow: FlowDirection,
        visible_only: bool = True,
    ) -> tuple[BudgetRow, ...]:
        """Rows of one group and flow, visible ones by default, sorted by category."""
        if visible_only:
            names = self.visible_categories(group_id, flow)
        else:
            names = tuple(sorted(self.categories))
        return tuple(
            self.rows[(group_id, name, flow)]
            for name in names
            if (group_id, name, flow) in self.rows
        )

    def group_totals(self, group_id: str, flow: FlowDirection) -> tuple[BudgetCell, ...]:
        """Per-month totals over the whole tag universe, visible or not."""
        totals: list[BudgetCell] = []
        for month in range(MONTHS):
            actual = target = ZERO
            for name in self.categories:
                cell = self.rows[(group_id, name, flow)].cells[month]
                actual += cell.actual
                target += cell.target
            totals.append(BudgetCell(actual=actual, target=target))
        return tuple(totals)


def _entry_month(entry: LedgerEntry, year: int) -> int | None:
    try:
        period = entry_period(entry)
    except InvalidDateFormatError:
        logger.warning("budget_entry_date_unparseable", extra={
            "entry_id": entry.entry_id,
            "date_value": entry.effective_date,
        })
        return None
    if period is None or period.year != year:
        return None
    return period.month_index


def _purchase_month(purchase: CardPurchase, group: BudgetGroup, year: int) -> int | None:
    period: PeriodKey | None
    try:
        if purchase.invoice_date or group.closing_day is not None:
            period = purchase_period(purchase, group.closing_day)
        else:
            logger.debug("budget_card_without_closing_day", extra={
                "group_id": group.group_id,
                "purchase_id": purchase.purchase_id,
            })
            return None
    except (InvalidDateFormatError, InvalidClosingDayError):
        logger.warning("budget_purchase_period_unresolved", extra={
            "group_id": group.group_id,
            "purchase_id": purchase.purchase_id,
            "purchase_date": purchase.purchase_date,
            "invoice_date": purchase.invoice_date,
        })
        return None
    if period is None or period.year != year:
        return None
    return period.month_index


def _ledger_actuals(
    group: BudgetGroup,
    entries: Sequence[LedgerEntry],
    year: int,
) -> dict[tuple[str, FlowDirection, int], Decimal]:
    shared = group.kind == GroupKind.SHARED
    net: dict[tuple[str, int], Decimal] = defaultdict(lambda: ZERO)
    for entry in entries:
        if entry.account_id != group.match_key or entry.is_shared != shared:
            continue
        if entry.exclude_from_budget:
            continue
        month = _entry_month(entry, year)
        if month is None:
            continue
        net[(entry.category, month)] += entry.value

    actuals: dict[tuple[str, FlowDirection, int], Decimal] = {}
    for (category, month), value in net.items():
        if value > ZERO:
            actuals[(category, FlowDirection.INCOME, month)] = value
        elif value < ZERO:
            actuals[(category, FlowDirection.EXPENSE, month)] = -value
    return actuals


def _card_actuals(
    group: BudgetGroup,
    purchases: Sequence[CardPurchase],
    year: int,
) -> dict[tuple[str, FlowDirection, int], Decimal]:
    actuals: dict[tuple[str, FlowDirection, int], Decimal] = defaultdict(lambda: ZERO)
    for purchase in purchases:
        if purchase.card_id != group.group_id:
            continue
        month = _purchase_month(purchase, group, year)
        if month is None:
            continue
        actuals[(purchase.category, FlowDirection.EXPENSE, month)] += abs(purchase.value)
    return dict(actuals)


@traced_engine("budget_variance", "1.0", fingerprint_fields=("year", "groups"))
def compute_budget_variance(
    entries: Sequence[LedgerEntry],
    targets: Sequence[BudgetTarget],
    tags: Sequence[Tag],
    year: int,
    groups: Sequence[BudgetGroup],
    card_purchases: Sequence[CardPurchase] = (),
    pinned: PinnedCategories | None = None,
) -> BudgetVarianceReport:
    """
    Compute the budget variance grid of ``year``.

    Args:
        entries: Ledger entry snapshot (account and shared groups).
        targets: Budget targets; targets of other years are ignored and
            the first target of a cell wins.
        tags: Category universe. Rows exist for exactly these names.
        year: Calendar year of the grid.
        groups: Budget groups to report.
        card_purchases: Card purchase snapshot (card groups).
        pinned: Optional caller-side visibility pins per (group_id, flow).
            Presentation only; never changes computed values.
    """
    t0 = time.monotonic()
    categories = tuple(dict.fromkeys(tag.name for tag in tags))

    target_map: dict[tuple[str, str, FlowDirection, int], Decimal] = {}
    for target in targets:
        if target.year != year or not 0 <= target.month_index < MONTHS:
            continue
        target_map.setdefault(
            (target.group_id, target.category, target.flow, target.month_index),
            target.value,
        )

    rows: dict[tuple[str, str, FlowDirection], BudgetRow] = {}
    visible: dict[tuple[str, FlowDirection], tuple[str, ...]] = {}

    for group in groups:
        if group.kind == GroupKind.CARD:
            actuals = _card_actuals(group, card_purchases, year)
        else:
            actuals = _ledger_actuals(group, entries, year)

        for flow in FlowDirection:
            shown: set[str] = set()
            for name in categories:
                cells = tuple(
                    BudgetCell(
                        actual=actuals.get((name, flow, month), ZERO),
                        target=target_map.get((group.group_id, name, flow, month), ZERO),
                    )
                    for month in range(MONTHS)
                )
                row = BudgetRow(group_id=group.group_id, category=name, flow=flow, cells=cells)
                rows[(group.group_id, name, flow)] = row
                if row.has_activity:
                    shown.add(name)

            if group.kind == GroupKind.CARD and flow == FlowDirection.INCOME:
                shown.clear()
            visible[(group.group_id, flow)] = tuple(sorted(shown))

    report = BudgetVarianceReport(
        year=year,
        groups=tuple(groups),
        categories=categories,
        rows=rows,
        visible=visible,
    )

    duration_ms = round((time.monotonic() - t0) * 1000, 2)
    logger.info("budget_variance_completed", extra={
        "year": year,
        "group_count": len(groups),
        "category_count": len(categories),
        "entry_count": len(entries),
        "card_purchase_count": len(card_purchases),
        "duration_ms": duration_ms,
    })
    if pinned:
        return pin_categories(report, pinned)
    return report


def pin_categories(
    report: BudgetVarianceReport,
    pinned: PinnedCategories,
) -> BudgetVarianceReport:
    """
    Copy of ``report`` with caller-pinned categories added to the visible set.

    Only names of the tag universe can be pinned, and card groups never
    gain income rows. Computed cells are untouched.
    """
    kinds = {group.group_id: group.kind for group in report.groups}
    visible = dict(report.visible)
    for (group_id, flow), names in pinned.items():
        if group_id not in kinds:
            continue
        if kinds[group_id] == GroupKind.CARD and flow == FlowDirection.INCOME:
            continue
        shown = set(visible.get((group_id, flow), ()))
        shown.update(n for n in names if n in report.categories)
        visible[(group_id, flow)] = tuple(sorted(shown))
    return replace(report, visible=visible)

"""
ledger_services.reporting -- Caller-side facade over the pure engines.

Responsibility:
    Supplies the engines with what they must never fetch themselves:
    "today" from an injected Clock, tax rates, sharing modes and card
    billing cycles from the active configuration. Memoises every report
    in a ReportCache keyed by the content of its inputs.

Architecture position:
    Services -- orchestration over engines + config + kernel.
    The only layer allowed to combine ledger_engines with ledger_config.

Invariants enforced:
    - Engines receive explicit snapshots and explicit dates; nothing in
      this service mutates caller data.
    - Cache keys include the configuration checksum, so a configuration
      change never serves a stale report.

Failure modes:
    - UnknownCardError: card id not in the active configuration.
    - CardNotSharedError: statement split on a card without a linked
      shared account.

Usage:
    from ledger_services import ReportingService

    service = ReportingService()
    report = service.tax_report(invoices, year=2024)
    totals = service.tax_payment_totals(invoices, payments, year=2024)
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date

from ledger_config import get_active_config
from ledger_config.schema import EngineConfiguration
from ledger_engines.billing import purchase_period, resolve_billing_period
from ledger_engines.budget import (
    BudgetVarianceReport,
    PinnedCategories,
    compute_budget_variance,
    pin_categories,
)
from ledger_engines.periods import (
    EntryStatus,
    StatementStatus,
    entry_status,
    period_matches,
    statement_status,
)
from ledger_engines.settlement import (
    SettlementSnapshot,
    SharedEvent,
    compute_settlement,
    split_statement,
)
from ledger_engines.tax import (
    QuarterOverview,
    TaxMonthSummary,
    calculate_tax_report,
    quarterly_overview,
)
from ledger_engines.tax_payments import TaxPaymentTotals, summarize_tax_payments
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    BudgetGroup,
    BudgetTarget,
    CardPurchase,
    GroupKind,
    Invoice,
    LedgerEntry,
    Tag,
    TaxPayment,
)
from ledger_kernel.domain.values import PARTY_A, PeriodKey
from ledger_kernel.exceptions import (
    CardNotSharedError,
    InvalidDateFormatError,
    UnknownCardError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_services.cache import ReportCache

logger = get_logger("services.reporting")


class ReportingService:
    """
    Report facade bound to one configuration, clock and cache.

    Contract:
        Every method takes whole-collection snapshots and returns a fresh
        engine result (or the cached result for identical inputs).

    Non-goals:
        - Does NOT persist anything; callers store derived records.
        - Does NOT fetch events; callers pass snapshots in.
    """

    def __init__(
        self,
        config: EngineConfiguration | None = None,
        clock: Clock | None = None,
        cache: ReportCache | None = None,
    ):
        self._config = config if config is not None else get_active_config()
        self._clock = clock or SystemClock()
        self._cache = cache if cache is not None else ReportCache()

    @property
    def config(self) -> EngineConfiguration:
        return self._config

    @property
    def cache(self) -> ReportCache:
        return self._cache

    def today(self) -> date:
        return self._clock.today()

    def _cached(self, report: str, inputs: dict, compute):
        inputs = {"config_checksum": self._config.checksum, **inputs}
        with LogContext.bind(report=report, config_id=self._config.config_id):
            return self._cache.get_or_compute(report, inputs, compute)

    # ------------------------------------------------------------------
    # Tax
    # ------------------------------------------------------------------

    def tax_report(self, invoices: Sequence[Invoice], year: int) -> tuple[TaxMonthSummary, ...]:
        return self._cached(
            "tax_report",
            {"invoices": list(invoices), "year": year},
            lambda: calculate_tax_report(
                invoices=invoices, year=year, rates=self._config.tax_rates
            ),
        )

    def quarterly_overview(self, invoices: Sequence[Invoice], year: int) -> tuple[QuarterOverview, ...]:
        report = self.tax_report(invoices, year)
        return quarterly_overview(report, self._config.tax_rates)

    def tax_payment_totals(
        self,
        invoices: Sequence[Invoice],
        payments: Iterable[TaxPayment],
        year: int,
    ) -> TaxPaymentTotals:
        """Paid / pending / overdue / fines for ``year`` as of the clock's today."""
        payments = list(payments)
        today = self.today()
        report = self.tax_report(invoices, year)
        return self._cached(
            "tax_payment_totals",
            {"invoices": list(invoices), "payments": payments, "year": year, "today": today},
            lambda: summarize_tax_payments(summaries=report, payments=payments, today=today),
        )

    # ------------------------------------------------------------------
    # Cards
    # ------------------------------------------------------------------

    def billing_period_for(self, card_id: str, purchase_date: str) -> str:
        """Statement month (``YYYY-MM-01``) of a purchase on a configured card."""
        card = self._config.card(card_id)
        return resolve_billing_period(purchase_date, card.closing_day)

    def statement_status(self, card_id: str, period: PeriodKey) -> StatementStatus:
        card = self._config.card(card_id)
        return statement_status(period, card.due_day, self.today())

    def card_budget_groups(self) -> tuple[BudgetGroup, ...]:
        """One card budget group per active configured card."""
        return tuple(
            BudgetGroup(
                group_id=card.card_id,
                kind=GroupKind.CARD,
                name=card.name,
                closing_day=card.closing_day,
            )
            for card in self._config.active_cards
        )

    def statement_purchases(
        self,
        card_id: str,
        purchases: Iterable[CardPurchase],
        period: PeriodKey,
    ) -> tuple[CardPurchase, ...]:
        """Purchases of one card that fall on the statement of ``period``."""
        card = self._config.card(card_id)
        selected: list[CardPurchase] = []
        for purchase in purchases:
            if purchase.card_id != card_id:
                continue
            try:
                resolved = purchase_period(purchase, card.closing_day)
            except InvalidDateFormatError:
                logger.warning("statement_purchase_date_unparseable", extra={
                    "card_id": card_id,
                    "purchase_id": purchase.purchase_id,
                })
                continue
            if resolved == period:
                selected.append(purchase)
        return tuple(selected)

    def split_card_statement(
        self,
        card_id: str,
        purchases: Iterable[CardPurchase],
        period: PeriodKey,
        launch_date: date | None = None,
        paid_by: str = PARTY_A,
    ) -> tuple[LedgerEntry, LedgerEntry]:
        """
        Launch a shared card statement into its linked shared account.

        Raises:
            UnknownCardError: ``card_id`` is not configured.
            CardNotSharedError: the card has no linked shared account.
        """
        card = self._config.card(card_id)
        if not card.is_shared or not card.linked_shared_account_id:
            raise CardNotSharedError(card_id)

        statement = self.statement_purchases(card_id, purchases, period)
        return split_statement(
            statement,
            self._config.sharing_mode_table(),
            statement_id=f"{card_id}-{period.label}",
            account_id=card.linked_shared_account_id,
            launch_date=launch_date or self.today(),
            paid_by=paid_by,
            description=f"Statement {card.name} ({period.label})",
        )

    # ------------------------------------------------------------------
    # Shared finances
    # ------------------------------------------------------------------

    def _in_period(self, event: SharedEvent, period: PeriodKey) -> bool:
        if isinstance(event, CardPurchase):
            try:
                card = self._config.card(event.card_id)
                return purchase_period(event, card.closing_day) == period
            except (UnknownCardError, InvalidDateFormatError):
                logger.warning("settlement_purchase_skipped", extra={
                    "purchase_id": event.purchase_id,
                    "card_id": event.card_id,
                })
                return False
        return period_matches(event.effective_date, period.year, period.month_index)

    def settlement(
        self,
        events: Sequence[SharedEvent],
        period: PeriodKey | None = None,
    ) -> SettlementSnapshot:
        """Settlement over ``events``, optionally restricted to one period."""
        selected = [e for e in events if period is None or self._in_period(e, period)]
        return self._cached(
            "settlement",
            {"events": selected, "period": period},
            lambda: compute_settlement(
                events=selected, sharing_modes=self._config.sharing_mode_table()
            ),
        )

    def entry_status(self, entry: LedgerEntry) -> EntryStatus:
        return entry_status(entry, self.today())

    # ------------------------------------------------------------------
    # Budget
    # ------------------------------------------------------------------

    def budget_variance(
        self,
        entries: Sequence[LedgerEntry],
        targets: Sequence[BudgetTarget],
        tags: Sequence[Tag],
        year: int,
        groups: Sequence[BudgetGroup],
        card_purchases: Sequence[CardPurchase] = (),
        pinned: PinnedCategories | None = None,
    ) -> BudgetVarianceReport:
        """
        Budget variance grid of ``year``.

        Pins are applied after the cached computation, so changing them
        never forces a recompute.
        """
        report = self._cached(
            "budget_variance",
            {
                "entries": list(entries),
                "targets": list(targets),
                "tags": list(tags),
                "year": year,
                "groups": list(groups),
                "card_purchases": list(card_purchases),
            },
            lambda: compute_budget_variance(
                entries=entries,
                targets=targets,
                tags=tags,
                year=year,
                groups=groups,
                card_purchases=card_purchases,
            ),
        )
        if not pinned:
            return report
        return pin_categories(report, pinned)

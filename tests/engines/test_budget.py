"""
Tests for the budget variance engine.

Covers per-kind actuals, targets, visibility and caller pins.
"""

from decimal import Decimal

from ledger_engines.budget import compute_budget_variance, pin_categories
from ledger_kernel.domain.dtos import (
    BudgetGroup,
    BudgetTarget,
    FlowDirection,
    GroupKind,
    Tag,
)
from tests.conftest import make_entry, make_purchase

EXPENSE = FlowDirection.EXPENSE
INCOME = FlowDirection.INCOME

TAGS = [Tag("Groceries"), Tag("Rent"), Tag("Salary"), Tag("Travel")]
CHECKING = BudgetGroup("acc-1", GroupKind.ACCOUNT, name="checking")
HOME = BudgetGroup("home", GroupKind.SHARED)
CARD = BudgetGroup("main-card", GroupKind.CARD, closing_day=10)


def _report(entries=(), targets=(), purchases=(), groups=(CHECKING, HOME, CARD), pinned=None):
    return compute_budget_variance(
        entries=list(entries),
        targets=list(targets),
        tags=TAGS,
        year=2024,
        groups=list(groups),
        card_purchases=list(purchases),
        pinned=pinned,
    )


class TestAccountActuals:
    def test_expense_and_income_by_net_sign(self):
        report = _report(entries=[
            make_entry("e-1", "-120", on="2024-03-05"),
            make_entry("e-2", "-30", on="2024-03-20"),
            make_entry("e-3", "5000", on="2024-03-01", category="Salary"),
        ])
        assert report.cell("acc-1", "Groceries", EXPENSE, 2).actual == Decimal("150")
        assert report.cell("acc-1", "Salary", INCOME, 2).actual == Decimal("5000")
        assert report.cell("acc-1", "Salary", EXPENSE, 2).actual == Decimal("0")

    def test_refund_nets_against_expense(self):
        report = _report(entries=[
            make_entry("e-1", "-100", on="2024-03-05"),
            make_entry("e-2", "40", on="2024-03-06"),
        ])
        assert report.cell("acc-1", "Groceries", EXPENSE, 2).actual == Decimal("60")
        assert report.cell("acc-1", "Groceries", INCOME, 2).actual == Decimal("0")

    def test_excluded_shared_and_other_accounts_ignored(self):
        report = _report(entries=[
            make_entry("e-1", "-100", exclude_from_budget=True),
            make_entry("e-2", "-100", is_shared=True),
            make_entry("e-3", "-100", account_id="savings"),
        ])
        assert report.row("acc-1", "Groceries", EXPENSE).total_actual == Decimal("0")

    def test_predicted_entries_use_expected_date(self):
        entry = make_entry("e-1", "-100", is_realized=False, date_expected="2024-07-10",
                           date_realized="")
        report = _report(entries=[entry])
        assert report.cell("acc-1", "Groceries", EXPENSE, 6).actual == Decimal("100")

    def test_malformed_date_ignored_with_warning(self, ledger_caplog):
        report = _report(entries=[make_entry("e-1", "-100", on="sometime")])
        assert report.row("acc-1", "Groceries", EXPENSE).total_actual == Decimal("0")
        assert any(r.getMessage() == "budget_entry_date_unparseable" for r in ledger_caplog.records)


class TestSharedActuals:
    def test_only_shared_entries_of_the_shared_account(self):
        report = _report(entries=[
            make_entry("e-1", "-80", account_id="home", is_shared=True, category="Rent"),
            make_entry("e-2", "-50", account_id="home", is_shared=False, category="Rent"),
        ])
        assert report.cell("home", "Rent", EXPENSE, 2).actual == Decimal("80")


class TestCardActuals:
    def test_bucketed_by_statement(self):
        report = _report(purchases=[
            make_purchase("p-1", "-100", on="2024-03-15"),
            make_purchase("p-2", "-25", on="2024-03-05"),
            make_purchase("p-3", "-10", on="2024-03-20", invoice_date="2024-06-01"),
        ])
        assert report.cell("main-card", "Groceries", EXPENSE, 3).actual == Decimal("100")
        assert report.cell("main-card", "Groceries", EXPENSE, 2).actual == Decimal("25")
        assert report.cell("main-card", "Groceries", EXPENSE, 5).actual == Decimal("10")

    def test_refund_counts_by_magnitude(self):
        report = _report(purchases=[make_purchase("p-1", "30", on="2024-03-05")])
        assert report.cell("main-card", "Groceries", EXPENSE, 2).actual == Decimal("30")

    def test_other_cards_ignored(self):
        report = _report(purchases=[make_purchase("p-1", "-30", card_id="home-card")])
        assert report.row("main-card", "Groceries", EXPENSE).total_actual == Decimal("0")

    def test_no_closing_day_counts_only_overrides(self):
        card = BudgetGroup("main-card", GroupKind.CARD)
        report = _report(
            purchases=[
                make_purchase("p-1", "-30", on="2024-03-05"),
                make_purchase("p-2", "-10", on="2024-03-05", invoice_date="2024-04-01"),
            ],
            groups=[card],
        )
        assert report.row("main-card", "Groceries", EXPENSE).total_actual == Decimal("10")

    def test_invalid_closing_day_skips_with_warning(self, ledger_caplog):
        card = BudgetGroup("main-card", GroupKind.CARD, closing_day=0)
        report = _report(
            purchases=[
                make_purchase("p-1", "-30", on="2024-03-05"),
                make_purchase("p-2", "-10", on="2024-03-05", invoice_date="2024-04-01"),
            ],
            groups=[card],
        )

        assert report.row("main-card", "Groceries", EXPENSE).total_actual == Decimal("10")
        assert any(r.getMessage() == "budget_purchase_period_unresolved" for r in ledger_caplog.records)

    def test_card_has_no_income_rows(self):
        report = _report(
            purchases=[make_purchase("p-1", "-30")],
            targets=[BudgetTarget(2024, 2, "main-card", "Salary", INCOME, "100")],
        )
        assert report.visible_categories("main-card", INCOME) == ()


class TestTargetsAndVisibility:
    def test_target_and_variance(self):
        report = _report(
            entries=[make_entry("e-1", "-150")],
            targets=[BudgetTarget(2024, 2, "acc-1", "Groceries", EXPENSE, "120")],
        )
        cell = report.cell("acc-1", "Groceries", EXPENSE, 2)
        assert cell.target == Decimal("120")
        assert cell.variance == Decimal("30")
        assert cell.is_over_target

    def test_first_target_wins_and_other_years_ignored(self):
        report = _report(targets=[
            BudgetTarget(2024, 0, "acc-1", "Rent", EXPENSE, "1500"),
            BudgetTarget(2024, 0, "acc-1", "Rent", EXPENSE, "9999"),
            BudgetTarget(2023, 1, "acc-1", "Rent", EXPENSE, "1400"),
        ])
        row = report.row("acc-1", "Rent", EXPENSE)
        assert row.cells[0].target == Decimal("1500")
        assert row.total_target == Decimal("1500")

    def test_visible_when_target_or_actual(self):
        report = _report(
            entries=[make_entry("e-1", "-10", category="Travel")],
            targets=[BudgetTarget(2024, 5, "acc-1", "Rent", EXPENSE, "1500")],
        )
        assert report.visible_categories("acc-1", EXPENSE) == ("Rent", "Travel")
        assert [r.category for r in report.rows_for("acc-1", EXPENSE)] == ["Rent", "Travel"]
        assert len(report.rows_for("acc-1", EXPENSE, visible_only=False)) == len(TAGS)

    def test_every_tag_has_a_row(self):
        report = _report()
        for group in (CHECKING, HOME, CARD):
            for flow in FlowDirection:
                for tag in TAGS:
                    assert len(report.row(group.group_id, tag.name, flow).cells) == 12

    def test_group_totals_span_hidden_rows(self):
        report = _report(entries=[
            make_entry("e-1", "-10", category="Travel"),
            make_entry("e-2", "-20", category="Groceries"),
        ])
        totals = report.group_totals("acc-1", EXPENSE)
        assert totals[2].actual == Decimal("30")
        assert totals[3].actual == Decimal("0")


class TestPins:
    def test_pinned_category_visible_without_activity(self):
        report = _report(pinned={("acc-1", EXPENSE): {"Rent"}})
        assert report.visible_categories("acc-1", EXPENSE) == ("Rent",)

    def test_pins_never_change_values(self):
        base = _report(entries=[make_entry("e-1", "-10")])
        pinned = pin_categories(base, {("acc-1", EXPENSE): {"Rent", "Unknown"}})
        assert pinned.rows == base.rows
        assert pinned.visible_categories("acc-1", EXPENSE) == ("Groceries", "Rent")

    def test_card_income_cannot_be_pinned(self):
        report = _report(pinned={("main-card", INCOME): {"Salary"}, ("ghost", EXPENSE): {"Rent"}})
        assert report.visible_categories("main-card", INCOME) == ()
        assert report.visible_categories("ghost", EXPENSE) == ()

"""
Pytest fixtures for the ledger engine test suite.

Provides:
- A deterministic clock pinned to a known date
- The packaged default configuration
- A ReportingService wired to both
- Small builders for ledger entries, card purchases and invoices

Nothing here touches a database or the network; every engine is pure
and every service takes snapshots.
"""

import logging
from datetime import date
from decimal import Decimal

import pytest

from ledger_config import get_active_config
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.dtos import (
    CardPurchase,
    Invoice,
    LedgerEntry,
    RetainedTaxes,
    SharingMode,
)
from ledger_kernel.logging_config import LogContext, reset_logging
from ledger_services import ReportCache, ReportingService


@pytest.fixture(autouse=True)
def _isolated_log_context():
    """Keep LogContext fields from leaking between tests."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def ledger_caplog(caplog):
    """caplog capturing INFO and above from the ledger_kernel hierarchy."""
    reset_logging()
    caplog.set_level(logging.DEBUG, logger="ledger_kernel")
    return caplog


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock.on(date(2024, 5, 20))


@pytest.fixture
def default_config():
    return get_active_config()


@pytest.fixture
def service(default_config, deterministic_clock) -> ReportingService:
    return ReportingService(
        config=default_config,
        clock=deterministic_clock,
        cache=ReportCache(),
    )


@pytest.fixture
def sharing_modes() -> dict[str, SharingMode]:
    return {
        "half": SharingMode("half", "50/50", 50, 50),
        "all-mine": SharingMode("all-mine", "Mine only", 100, 0),
        "all-partner": SharingMode("all-partner", "Partner only", 0, 100),
        "sixty-forty": SharingMode("sixty-forty", "60/40", 60, 40),
    }


def make_entry(entry_id="e-1", value="-100", on="2024-03-05", **overrides) -> LedgerEntry:
    """Realized ledger entry dated ``on``."""
    fields = {
        "entry_id": entry_id,
        "value": Decimal(value),
        "date_expected": on,
        "date_realized": on,
        "is_realized": True,
        "account_id": "checking",
        "category": "Groceries",
    }
    fields.update(overrides)
    return LedgerEntry(**fields)


def make_purchase(purchase_id="p-1", value="-100", on="2024-03-05", **overrides) -> CardPurchase:
    fields = {
        "purchase_id": purchase_id,
        "value": Decimal(value),
        "purchase_date": on,
        "card_id": "main-card",
        "category": "Groceries",
    }
    fields.update(overrides)
    return CardPurchase(**fields)


def make_invoice(invoice_id="nf-1", gross="1000", on="2024-03-05", **retained) -> Invoice:
    return Invoice(
        invoice_id=invoice_id,
        gross_value=Decimal(gross),
        issuance_date=on,
        retained=RetainedTaxes(**retained),
    )

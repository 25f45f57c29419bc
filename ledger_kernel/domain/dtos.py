"""
Event snapshots and reference data passed into the engines.

Responsibility:
    Immutable input records: ledger entries, card purchases, service
    invoices, tax payments, budget targets, tags, budget groups, sharing
    modes, card configurations and the tax rate table.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.

Invariants enforced:
    - Monetary fields are Decimal. Raw caller values are coerced at
      construction through ``parse_amount`` (locale-aware, never raises).
    - Tax kinds are a closed enumeration with explicit field access;
      there are no string-keyed tax lookups.
    - TaxRateTable rejects negative rates.

Non-goals:
    - Split percentages are NOT validated here. A SharingMode whose
      percentages do not sum to 100 is representable; the configuration
      validator rejects it at write time and the engine never normalises.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from decimal import Decimal
from enum import Enum
from typing import Any

from ledger_kernel.domain.values import (
    HUNDRED,
    PARTY_A,
    ZERO,
    PeriodKey,
    parse_amount,
)
from ledger_kernel.exceptions import InvalidTaxRateError

# Floating tolerance for the split-sums-to-100 invariant.
SPLIT_TOLERANCE = Decimal("0.01")


def _coerce_decimal(obj: Any, *names: str) -> None:
    """Replace raw values on a frozen dataclass with parsed Decimals."""
    for name in names:
        raw = getattr(obj, name)
        if not isinstance(raw, Decimal):
            object.__setattr__(obj, name, parse_amount(raw))


def _retained_flag(value: Any) -> bool:
    return value is True or value == "true"


def _first_present(record: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value not in (None, ""):
            return value
    return ""


def split_is_normalized(party_a_percent: Decimal, party_b_percent: Decimal) -> bool:
    """True when both percentages are in [0, 100] and sum to 100 within tolerance."""
    if not (ZERO <= party_a_percent <= HUNDRED and ZERO <= party_b_percent <= HUNDRED):
        return False
    return abs(party_a_percent + party_b_percent - HUNDRED) <= SPLIT_TOLERANCE


class InvoiceStatus(str, Enum):
    """Lifecycle status of a service invoice."""

    DRAFT = "draft"
    ISSUED = "issued"
    PAID = "paid"
    CANCELLED = "cancelled"


class FlowDirection(str, Enum):
    """Budget flow direction."""

    INCOME = "income"
    EXPENSE = "expense"


class GroupKind(str, Enum):
    """What a budget group aggregates."""

    ACCOUNT = "account"  # Non-shared ledger entries of one account
    CARD = "card"  # Card purchases bucketed by statement
    SHARED = "shared"  # Shared ledger entries of one shared account


class TaxCadence(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class TaxKind(str, Enum):
    """Taxes assessed under the presumed-profit regime."""

    ISS = "ISS"
    PIS = "PIS"
    COFINS = "COFINS"
    IRPJ = "IRPJ"
    CSLL = "CSLL"

    @property
    def cadence(self) -> TaxCadence:
        if self in (TaxKind.IRPJ, TaxKind.CSLL):
            return TaxCadence.QUARTERLY
        return TaxCadence.MONTHLY


MONTHLY_TAXES: tuple[TaxKind, ...] = (TaxKind.ISS, TaxKind.PIS, TaxKind.COFINS)
QUARTERLY_TAXES: tuple[TaxKind, ...] = (TaxKind.IRPJ, TaxKind.CSLL)


# ---------------------------------------------------------------------------
# Split rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CustomSplit:
    """Inline split attached directly to one event."""

    party_a_percent: Decimal
    party_b_percent: Decimal

    def __post_init__(self) -> None:
        _coerce_decimal(self, "party_a_percent", "party_b_percent")

    @property
    def is_normalized(self) -> bool:
        return split_is_normalized(self.party_a_percent, self.party_b_percent)


@dataclass(frozen=True)
class SharingMode:
    """Named, reusable percentage split between party A and party B."""

    mode_id: str
    name: str
    party_a_percent: Decimal
    party_b_percent: Decimal
    color: str | None = None

    def __post_init__(self) -> None:
        _coerce_decimal(self, "party_a_percent", "party_b_percent")

    @property
    def is_normalized(self) -> bool:
        return split_is_normalized(self.party_a_percent, self.party_b_percent)


# ---------------------------------------------------------------------------
# Dated events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerEntry:
    """
    Account transaction, predicted or realized.

    ``value`` is signed: positive for income, negative for expense.
    Dates are raw caller strings (ISO or DD/MM/YYYY) and may be empty.
    """

    entry_id: str
    value: Decimal
    date_expected: str = ""
    date_realized: str = ""
    is_realized: bool = False
    account_id: str = ""
    category: str = ""
    description: str = ""
    is_shared: bool = False
    paid_by: str = PARTY_A
    sharing_mode_id: str | None = None
    custom_split: CustomSplit | None = None
    exclude_from_budget: bool = False

    def __post_init__(self) -> None:
        _coerce_decimal(self, "value")

    @property
    def effective_date(self) -> str:
        """Realized date when realized, otherwise the expected date."""
        return self.date_realized if self.is_realized else self.date_expected


@dataclass(frozen=True)
class Installment:
    """Position of a purchase inside an installment plan."""

    current: int
    total: int
    group_id: str


@dataclass(frozen=True)
class CardPurchase:
    """
    Credit-card purchase.

    ``invoice_date`` is an explicit statement override (first day of the
    statement month); when empty the statement is derived from
    ``purchase_date`` and the card's closing day.
    """

    purchase_id: str
    value: Decimal
    purchase_date: str = ""
    invoice_date: str = ""
    category: str = ""
    card_id: str = ""
    description: str = ""
    paid_by: str = PARTY_A
    sharing_mode_id: str | None = None
    installment: Installment | None = None

    def __post_init__(self) -> None:
        _coerce_decimal(self, "value")


@dataclass(frozen=True)
class RetainedTaxes:
    """
    Taxes withheld at source on one invoice.

    ``irrf`` is the legacy name of the IRPJ retention and is read only
    when ``irpj`` is zero.
    """

    iss: Decimal = ZERO
    pis: Decimal = ZERO
    cofins: Decimal = ZERO
    irpj: Decimal = ZERO
    csll: Decimal = ZERO
    irrf: Decimal = ZERO
    inss: Decimal = ZERO

    def __post_init__(self) -> None:
        _coerce_decimal(self, *(f.name for f in fields(self)))

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> RetainedTaxes:
        """
        Read retentions from a stored invoice record.

        The structured ``taxes`` shape (``{"iss": {"amount", "rate",
        "retained"}}``) is read first, and there an amount counts only when
        ``retained`` is ``True`` or the string ``"true"``. Taxes absent from
        it fall back to the flat ``retainedTaxes`` map.
        """
        structured = record.get("taxes") or {}
        flat = record.get("retainedTaxes") or record.get("retained_taxes") or {}
        values: dict[str, Any] = {}
        for name in (f.name for f in fields(cls)):
            entry = structured.get(name)
            if isinstance(entry, Mapping):
                values[name] = entry.get("amount") if _retained_flag(entry.get("retained")) else ZERO
            elif entry:
                values[name] = ZERO
            elif flat.get(name) is not None:
                values[name] = flat[name]
        return cls(**values)

    def for_kind(self, kind: TaxKind) -> Decimal:
        match kind:
            case TaxKind.ISS:
                return self.iss
            case TaxKind.PIS:
                return self.pis
            case TaxKind.COFINS:
                return self.cofins
            case TaxKind.IRPJ:
                return self.irpj if self.irpj != ZERO else self.irrf
            case TaxKind.CSLL:
                return self.csll
        raise ValueError(f"Unknown tax kind: {kind}")

    @property
    def total(self) -> Decimal:
        """All retentions, INSS included, counting IRPJ/IRRF once."""
        return sum((self.for_kind(kind) for kind in TaxKind), ZERO) + self.inss


@dataclass(frozen=True)
class Invoice:
    """Service invoice issued by the business."""

    invoice_id: str
    gross_value: Decimal
    issuance_date: str = ""
    created_at: str = ""
    retained: RetainedTaxes = field(default_factory=RetainedTaxes)
    status: InvoiceStatus = InvoiceStatus.ISSUED
    is_taxable: bool = True
    client_name: str = ""

    def __post_init__(self) -> None:
        _coerce_decimal(self, "gross_value")
        if not isinstance(self.status, InvoiceStatus):
            object.__setattr__(self, "status", InvoiceStatus(self.status))

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Invoice:
        """
        Build an invoice from a stored record of either generation.

        Current records carry ``grossValue`` and ``issuanceDate``; older
        ones carry ``amount`` and ``issueDate``. A zero or unparseable
        gross value falls back to ``amount``.
        """
        gross = parse_amount(record.get("grossValue", record.get("gross_value")))
        if gross == ZERO:
            gross = parse_amount(record.get("amount"))
        return cls(
            invoice_id=str(record.get("id") or ""),
            gross_value=gross,
            issuance_date=str(_first_present(record, "issuanceDate", "issueDate", "issuance_date")),
            created_at=str(_first_present(record, "createdAt", "created_at")),
            retained=RetainedTaxes.from_record(record),
            status=record.get("status") or InvoiceStatus.ISSUED,
            is_taxable=record.get("isTaxable", record.get("is_taxable")) is not False,
            client_name=str(record.get("clientName") or record.get("client_name") or ""),
        )

    @property
    def reference_date(self) -> str:
        """Issuance date, falling back to the creation date."""
        return self.issuance_date or self.created_at

    @property
    def is_cancelled(self) -> bool:
        return self.status == InvoiceStatus.CANCELLED

    @property
    def total_retained(self) -> Decimal:
        return self.retained.total

    @property
    def net_value(self) -> Decimal:
        """Amount actually receivable: gross minus retentions, 0 when cancelled."""
        if self.is_cancelled:
            return ZERO
        return self.gross_value - self.total_retained


@dataclass(frozen=True)
class TaxPayment:
    """Caller-owned record of an amount actually paid for one tax and month."""

    tax_kind: TaxKind
    period: PeriodKey
    amount_paid: Decimal
    payment_date: str = ""
    notes: str = ""

    def __post_init__(self) -> None:
        _coerce_decimal(self, "amount_paid")
        if not isinstance(self.tax_kind, TaxKind):
            object.__setattr__(self, "tax_kind", TaxKind(self.tax_kind))

    @property
    def key(self) -> str:
        """Deterministic identity ``<KIND>_<YYYY-MM>``."""
        return f"{self.tax_kind.value}_{self.period.label}"


# ---------------------------------------------------------------------------
# Budget reference data
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Tag:
    """Category in the budget universe."""

    name: str
    color: str = "#cccccc"


@dataclass(frozen=True)
class BudgetTarget:
    """User-declared monthly target for one (group, category, flow)."""

    year: int
    month_index: int
    group_id: str
    category: str
    flow: FlowDirection
    value: Decimal

    def __post_init__(self) -> None:
        _coerce_decimal(self, "value")
        if not isinstance(self.flow, FlowDirection):
            object.__setattr__(self, "flow", FlowDirection(self.flow))


@dataclass(frozen=True)
class BudgetGroup:
    """
    One block of rows in the budget grid.

    Account groups match ledger entries by account name (``name``, or
    ``group_id`` when no name is given); card and shared groups match by
    ``group_id``. Card groups need the card's ``closing_day`` to bucket
    purchases that carry no statement override.
    """

    group_id: str
    kind: GroupKind
    name: str = ""
    closing_day: int | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.kind, GroupKind):
            object.__setattr__(self, "kind", GroupKind(self.kind))

    @property
    def match_key(self) -> str:
        if self.kind == GroupKind.ACCOUNT:
            return self.name or self.group_id
        return self.group_id


@dataclass(frozen=True)
class CardConfig:
    """Credit card billing configuration."""

    card_id: str
    name: str
    closing_day: int
    due_day: int
    limit: Decimal = ZERO
    is_shared: bool = False
    linked_shared_account_id: str | None = None
    archived: bool = False

    def __post_init__(self) -> None:
        _coerce_decimal(self, "limit")


# ---------------------------------------------------------------------------
# Tax rate table
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaxRateTable:
    """
    Presumed-profit rate table.

    All rates are decimals (0.05 for 5 %). The surcharge threshold is a
    quarterly presumed-profit amount in currency units.
    """

    iss: Decimal = Decimal("0.05")
    pis: Decimal = Decimal("0.0065")
    cofins: Decimal = Decimal("0.03")
    irpj: Decimal = Decimal("0.048")
    csll: Decimal = Decimal("0.0288")
    presumption: Decimal = Decimal("0.32")
    irpj_surcharge: Decimal = Decimal("0.10")
    irpj_surcharge_threshold: Decimal = Decimal("60000")

    def __post_init__(self) -> None:
        for f in fields(self):
            raw = getattr(self, f.name)
            rate = raw if isinstance(raw, Decimal) else parse_amount(raw)
            if rate < ZERO:
                raise InvalidTaxRateError(f.name, rate)
            object.__setattr__(self, f.name, rate)

    def rate_for(self, kind: TaxKind) -> Decimal:
        match kind:
            case TaxKind.ISS:
                return self.iss
            case TaxKind.PIS:
                return self.pis
            case TaxKind.COFINS:
                return self.cofins
            case TaxKind.IRPJ:
                return self.irpj
            case TaxKind.CSLL:
                return self.csll
        raise ValueError(f"Unknown tax kind: {kind}")


DEFAULT_TAX_RATES = TaxRateTable()

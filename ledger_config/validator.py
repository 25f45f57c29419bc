"""
Configuration Validator (``ledger_config.validator``).

Responsibility
--------------
Write-time validation of sharing modes, cards and the tax rate table.
Engines never re-validate on read, so every invariant they rely on is
checked here, once, before a configuration is used.

Invariants enforced
-------------------
* Split percentages each in [0, 100] and summing to 100 (+/- 0.01).
* Card closing and due days in [1, 31].
* Tax rates are numeric and non-negative; unknown rate names are errors.
* Sharing mode ids and card ids are unique.

Failure modes
-------------
* ``validate_configuration`` collects errors (configuration MUST NOT be
  used) and warnings (usable, should be reviewed).
* ``require_valid_sharing_mode`` / ``require_valid_card`` raise the
  typed ``ConfigurationError`` subclasses for single-record writes.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from decimal import Decimal, InvalidOperation
from typing import Any

from ledger_config.schema import LedgerConfigurationSet
from ledger_kernel.domain.dtos import (
    SPLIT_TOLERANCE,
    CardConfig,
    CustomSplit,
    SharingMode,
    TaxRateTable,
)
from ledger_kernel.domain.values import HUNDRED, ZERO
from ledger_kernel.exceptions import (
    ConfigurationError,
    DuplicateConfigIdError,
    InvalidClosingDayError,
    InvalidDueDayError,
    InvalidSplitRuleError,
    InvalidTaxRateError,
)

_RATE_NAMES = frozenset(f.name for f in fields(TaxRateTable))


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    * Warnings do not block use but should be reviewed.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def _as_decimal(value: Any) -> Decimal | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None


def _as_day(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None


def require_valid_split(rule_id: str, party_a: Any, party_b: Any) -> None:
    """
    Raises:
        InvalidSplitRuleError: non-numeric, outside [0, 100], or not summing to 100.
    """
    a, b = _as_decimal(party_a), _as_decimal(party_b)
    if a is None or b is None:
        raise InvalidSplitRuleError(rule_id, party_a, party_b, "percentages must be numeric")
    if not (ZERO <= a <= HUNDRED and ZERO <= b <= HUNDRED):
        raise InvalidSplitRuleError(rule_id, party_a, party_b, "percentages must be within [0, 100]")
    if abs(a + b - HUNDRED) > SPLIT_TOLERANCE:
        raise InvalidSplitRuleError(rule_id, party_a, party_b, "percentages must sum to 100")


def require_valid_sharing_mode(mode: SharingMode) -> None:
    require_valid_split(mode.mode_id, mode.party_a_percent, mode.party_b_percent)


def require_valid_custom_split(rule_id: str, split: CustomSplit) -> None:
    require_valid_split(rule_id, split.party_a_percent, split.party_b_percent)


def require_valid_days(closing_day: Any, due_day: Any) -> None:
    """
    Raises:
        InvalidClosingDayError / InvalidDueDayError: day outside [1, 31].
    """
    closing = _as_day(closing_day)
    if closing is None or not 1 <= closing <= 31:
        raise InvalidClosingDayError(closing_day)
    due = _as_day(due_day)
    if due is None or not 1 <= due <= 31:
        raise InvalidDueDayError(due_day)


def require_valid_card(card: CardConfig) -> None:
    require_valid_days(card.closing_day, card.due_day)


def require_valid_tax_rates(rates: dict[str, Any]) -> None:
    """
    Raises:
        InvalidTaxRateError: unknown name, non-numeric or negative rate.
    """
    for name, raw in rates.items():
        rate = _as_decimal(raw)
        if name not in _RATE_NAMES or rate is None or rate < ZERO:
            raise InvalidTaxRateError(name, raw)


def validate_configuration(config: LedgerConfigurationSet) -> ConfigValidationResult:
    """
    Validate a configuration set.

    Postconditions:
        - Returns a ``ConfigValidationResult``; never raises for content
          problems.
    """
    result = ConfigValidationResult()

    for name, raw in config.tax_rates.items():
        try:
            require_valid_tax_rates({name: raw})
        except InvalidTaxRateError as exc:
            result.add_error(str(exc) if name in _RATE_NAMES else f"Unknown tax rate: {name}")

    seen_modes: set[str] = set()
    for mode in config.sharing_modes:
        if mode.mode_id in seen_modes:
            result.add_error(str(DuplicateConfigIdError("sharing_mode", mode.mode_id)))
        seen_modes.add(mode.mode_id)
        try:
            require_valid_split(mode.mode_id, mode.party_a_percent, mode.party_b_percent)
        except InvalidSplitRuleError as exc:
            result.add_error(str(exc))

    seen_cards: set[str] = set()
    for card in config.cards:
        if card.card_id in seen_cards:
            result.add_error(str(DuplicateConfigIdError("card", card.card_id)))
        seen_cards.add(card.card_id)
        try:
            require_valid_days(card.closing_day, card.due_day)
        except ConfigurationError as exc:
            result.add_error(f"Card {card.card_id}: {exc}")
        if _as_decimal(card.limit) is None:
            result.add_warning(f"Card {card.card_id}: limit {card.limit!r} is not numeric")
        if card.is_shared and not card.linked_shared_account_id:
            result.add_warning(
                f"Card {card.card_id} is shared but not linked to a shared account"
            )

    if not config.sharing_modes:
        result.add_warning("No sharing modes configured; shared events default to 50/50")

    return result

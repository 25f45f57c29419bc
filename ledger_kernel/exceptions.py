"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the engine need to tell a malformed date from a broken sharing
mode without parsing message strings. Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        require_valid_sharing_mode(mode)
    except Exception as e:
        if "sum to 100" in str(e):  # FRAGILE - message might change
            show_split_hint()

Example - RIGHT way (what this module enables):
    try:
        require_valid_sharing_mode(mode)
    except InvalidSplitRuleError as e:
        log.warning(f"Mode {e.rule_id} splits {e.party_a}/{e.party_b}")
        api_response(code=e.code, rule=e.rule_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from LedgerKernelError:

    LedgerKernelError (base)
    |
    +-- DateError
    |   +-- InvalidDateFormatError
    |
    +-- ConfigurationError
        +-- InvalidSplitRuleError
        +-- InvalidClosingDayError
        +-- InvalidDueDayError
        +-- InvalidTaxRateError
        +-- DuplicateConfigIdError
        +-- UnknownCardError
        +-- CardNotSharedError
        +-- ConfigValidationFailedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Date            | INVALID_DATE_FORMAT         | Neither YYYY-MM-DD nor DD/MM/YYYY
----------------|-----------------------------|-----------------------------------------
Configuration   | INVALID_SPLIT_RULE          | Percentages outside [0,100] or sum != 100
                | INVALID_CLOSING_DAY         | Card closing day outside [1,31]
                | INVALID_DUE_DAY             | Card due day outside [1,31]
                | INVALID_TAX_RATE            | Negative rate in the tax rate table
                | DUPLICATE_CONFIG_ID         | Two sharing modes / cards share an id
                | UNKNOWN_CARD                | Card id not present in configuration
                | CARD_NOT_SHARED             | Statement split on an unshared card
                | CONFIG_VALIDATION_FAILED    | Configuration set has validation errors

===============================================================================
HANDLING PATTERNS
===============================================================================

1. AGGREGATIONS NEVER RAISE ON BAD ROWS:

    The period resolver raises InvalidDateFormatError, but every
    aggregation (period_matches, tax report, budget variance) catches it,
    logs a warning and treats the row as "no match". One bad import row
    cannot crash a whole report.

2. CONFIGURATION ERRORS ARE RAISED AT WRITE TIME:

    try:
        require_valid_card(card)
    except InvalidClosingDayError as e:
        return {"error": e.code, "closing_day": e.day}
"""


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute
    for machine-readable error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Date-related exceptions


class DateError(LedgerKernelError):
    """Base exception for date parsing errors."""

    code: str = "DATE_ERROR"


class InvalidDateFormatError(DateError):
    """Date string matches neither the ISO nor the localized pattern."""

    code: str = "INVALID_DATE_FORMAT"

    def __init__(self, value: str):
        self.value = value
        super().__init__(
            f"Invalid date format: {value!r} (expected YYYY-MM-DD or DD/MM/YYYY)"
        )


# Configuration exceptions


class ConfigurationError(LedgerKernelError):
    """Base exception for configuration invariant violations."""

    code: str = "CONFIGURATION_ERROR"


class InvalidSplitRuleError(ConfigurationError):
    """Split percentages are out of range or do not sum to 100."""

    code: str = "INVALID_SPLIT_RULE"

    def __init__(self, rule_id: str, party_a: object, party_b: object, reason: str):
        self.rule_id = rule_id
        self.party_a = party_a
        self.party_b = party_b
        self.reason = reason
        super().__init__(
            f"Invalid split rule {rule_id!r} ({party_a}/{party_b}): {reason}"
        )


class InvalidClosingDayError(ConfigurationError):
    """Statement closing day outside [1, 31]."""

    code: str = "INVALID_CLOSING_DAY"

    def __init__(self, day: object):
        self.day = day
        super().__init__(f"Closing day must be between 1 and 31, got {day!r}")


class InvalidDueDayError(ConfigurationError):
    """Statement due day outside [1, 31]."""

    code: str = "INVALID_DUE_DAY"

    def __init__(self, day: object):
        self.day = day
        super().__init__(f"Due day must be between 1 and 31, got {day!r}")


class InvalidTaxRateError(ConfigurationError):
    """A tax rate table entry is negative."""

    code: str = "INVALID_TAX_RATE"

    def __init__(self, name: str, rate: object):
        self.name = name
        self.rate = rate
        super().__init__(f"Tax rate {name} cannot be negative: {rate}")


class DuplicateConfigIdError(ConfigurationError):
    """Two configuration records of the same kind share an id."""

    code: str = "DUPLICATE_CONFIG_ID"

    def __init__(self, kind: str, config_id: str):
        self.kind = kind
        self.config_id = config_id
        super().__init__(f"Duplicate {kind} id: {config_id}")


class UnknownCardError(ConfigurationError):
    """Card id is not present in the active configuration."""

    code: str = "UNKNOWN_CARD"

    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__(f"Unknown card: {card_id}")


class ConfigValidationFailedError(ConfigurationError):
    """Configuration set failed validation and must not be used."""

    code: str = "CONFIG_VALIDATION_FAILED"

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in self.errors)
        )


class CardNotSharedError(ConfigurationError):
    """Statement split requested for a card with no linked shared account."""

    code: str = "CARD_NOT_SHARED"

    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__(f"Card {card_id} is not shared or not linked to a shared account")

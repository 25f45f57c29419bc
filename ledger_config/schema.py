"""
Ledger configuration schema.

Defines the human-authored source artifact (``LedgerConfigurationSet``,
parsed verbatim from YAML) and the runtime artifact handed to engines and
services (``EngineConfiguration``, built only from a validated set).

Key distinction:
  LedgerConfigurationSet = source artifact (raw YAML values, may be invalid)
  EngineConfiguration    = runtime artifact (validated, typed, frozen)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ledger_kernel.domain.dtos import CardConfig, SharingMode, TaxRateTable
from ledger_kernel.exceptions import UnknownCardError

# ---------------------------------------------------------------------------
# Source artifact
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SharingModeDef:
    """Sharing mode exactly as written in YAML."""

    mode_id: str
    name: str
    party_a_percent: Any
    party_b_percent: Any
    color: str | None = None


@dataclass(frozen=True)
class CardDef:
    """Card exactly as written in YAML."""

    card_id: str
    name: str
    closing_day: Any
    due_day: Any
    limit: Any = 0
    is_shared: bool = False
    linked_shared_account_id: str | None = None
    archived: bool = False


@dataclass(frozen=True)
class LedgerConfigurationSet:
    """A complete, versioned configuration set."""

    config_id: str
    version: int
    tax_rates: dict[str, Any] = field(default_factory=dict)
    sharing_modes: tuple[SharingModeDef, ...] = ()
    cards: tuple[CardDef, ...] = ()
    checksum: str = ""


# ---------------------------------------------------------------------------
# Runtime artifact
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineConfiguration:
    """
    Validated configuration consumed by engines and services.

    Contract:
        Only produced from a LedgerConfigurationSet that passed
        ``validate_configuration``.
    """

    config_id: str
    version: int
    checksum: str
    tax_rates: TaxRateTable
    sharing_modes: tuple[SharingMode, ...]
    cards: tuple[CardConfig, ...]

    def sharing_mode_table(self) -> dict[str, SharingMode]:
        return {mode.mode_id: mode for mode in self.sharing_modes}

    def card(self, card_id: str) -> CardConfig:
        for card in self.cards:
            if card.card_id == card_id:
                return card
        raise UnknownCardError(card_id)

    @property
    def active_cards(self) -> tuple[CardConfig, ...]:
        return tuple(c for c in self.cards if not c.archived)

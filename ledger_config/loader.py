"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the typed
``ledger_config.schema`` source artifact, then (once validated) builds
the ``EngineConfiguration`` runtime artifact. The single public entry
point for runtime config is ``ledger_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; there are no silent defaults for required fields.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  YAML document for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    CardDef,
    EngineConfiguration,
    LedgerConfigurationSet,
    SharingModeDef,
)
from ledger_kernel.domain.dtos import CardConfig, SharingMode, TaxRateTable


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_sharing_mode(data: dict[str, Any]) -> SharingModeDef:
    """Parse a SharingModeDef from a dict."""
    return SharingModeDef(
        mode_id=str(data["id"]),
        name=str(data.get("name", data["id"])),
        party_a_percent=data["party_a_percent"],
        party_b_percent=data["party_b_percent"],
        color=data.get("color"),
    )


def parse_card(data: dict[str, Any]) -> CardDef:
    """Parse a CardDef from a dict."""
    return CardDef(
        card_id=str(data["id"]),
        name=str(data.get("name", data["id"])),
        closing_day=data["closing_day"],
        due_day=data["due_day"],
        limit=data.get("limit", 0),
        is_shared=bool(data.get("is_shared", False)),
        linked_shared_account_id=data.get("linked_shared_account_id"),
        archived=bool(data.get("archived", False)),
    )


def parse_configuration_set(data: dict[str, Any]) -> LedgerConfigurationSet:
    """Parse a full configuration set document."""
    return LedgerConfigurationSet(
        config_id=str(data["config_id"]),
        version=int(data.get("version", 1)),
        tax_rates=dict(data.get("tax_rates") or {}),
        sharing_modes=tuple(parse_sharing_mode(m) for m in data.get("sharing_modes") or ()),
        cards=tuple(parse_card(c) for c in data.get("cards") or ()),
        checksum=compute_checksum(data),
    )


def load_configuration_set(path: Path) -> LedgerConfigurationSet:
    return parse_configuration_set(load_yaml_file(path))


def build_engine_configuration(config: LedgerConfigurationSet) -> EngineConfiguration:
    """
    Turn a validated source set into the runtime artifact.

    Preconditions:
        ``validate_configuration(config).is_valid`` is True. Numeric fields
        are coerced here and would raise on an unvalidated set.
    """
    return EngineConfiguration(
        config_id=config.config_id,
        version=config.version,
        checksum=config.checksum,
        tax_rates=TaxRateTable(**config.tax_rates),
        sharing_modes=tuple(
            SharingMode(
                mode_id=m.mode_id,
                name=m.name,
                party_a_percent=m.party_a_percent,
                party_b_percent=m.party_b_percent,
                color=m.color,
            )
            for m in config.sharing_modes
        ),
        cards=tuple(
            CardConfig(
                card_id=c.card_id,
                name=c.name,
                closing_day=int(c.closing_day),
                due_day=int(c.due_day),
                limit=c.limit,
                is_shared=c.is_shared,
                linked_shared_account_id=c.linked_shared_account_id,
                archived=c.archived,
            )
            for c in config.cards
        ),
    )

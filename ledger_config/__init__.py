"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``: tax rates, sharing modes and card billing
    cycles. Returns an ``EngineConfiguration``, the sole runtime artifact.

Architecture position:
    Configuration -- YAML-driven, validated at load time. This package
    sits above ``ledger_kernel`` and below ``ledger_services``. Engines
    MUST NEVER import from ``ledger_config``; services pass the values
    they need into engine calls.

Invariants enforced:
    - Single entrypoint: runtime config flows through ``get_active_config()``.
    - Validation: a set with validation errors is never returned.
    - Deterministic checksum: the same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``yaml.YAMLError`` / ``KeyError`` / ``ValueError`` -- malformed file.
    - ``ConfigValidationFailedError`` -- validation errors.

Audit relevance:
    Every successful call emits a ``LEDGER_CONFIG_TRACE`` log entry with
    the config_id, version, checksum and record counts.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ledger_config.loader import build_engine_configuration, load_configuration_set
from ledger_config.schema import EngineConfiguration
from ledger_config.validator import (
    ConfigValidationResult,
    require_valid_card,
    require_valid_sharing_mode,
    validate_configuration,
)
from ledger_kernel.exceptions import ConfigValidationFailedError

_logger = logging.getLogger("ledger_kernel.config")

CONFIG_PATH_ENV = "LEDGER_CONFIG_PATH"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def resolve_config_path(path: Path | str | None = None) -> Path:
    """Explicit path, else ``$LEDGER_CONFIG_PATH``, else the packaged default."""
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def get_active_config(path: Path | str | None = None) -> EngineConfiguration:
    """The ONLY public configuration entrypoint.

    Guarantees:
        - The returned ``EngineConfiguration`` has passed validation.
        - A ``LEDGER_CONFIG_TRACE`` log entry is emitted on every
          successful call.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ConfigValidationFailedError: If validation reports errors.
    """
    config_path = resolve_config_path(path)
    config_set = load_configuration_set(config_path)

    validation = validate_configuration(config_set)
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={
            "config_id": config_set.config_id,
            "warning": warning,
        })
    if not validation.is_valid:
        _logger.error("config_validation_failed", extra={
            "config_id": config_set.config_id,
            "error_count": len(validation.errors),
        })
        raise ConfigValidationFailedError(validation.errors)

    config = build_engine_configuration(config_set)

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "config_path": str(config_path),
            "sharing_mode_count": len(config.sharing_modes),
            "card_count": len(config.cards),
        },
    )
    return config


__all__ = [
    "CONFIG_PATH_ENV",
    "ConfigValidationResult",
    "DEFAULT_CONFIG_PATH",
    "EngineConfiguration",
    "get_active_config",
    "require_valid_card",
    "require_valid_sharing_mode",
    "resolve_config_path",
    "validate_configuration",
]

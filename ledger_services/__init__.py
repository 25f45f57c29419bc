"""
ledger_services -- caller-side orchestration over the pure engines.

Usage:
    from ledger_services import ReportingService, ReportCache
"""

from ledger_services.cache import CacheStats, ReportCache
from ledger_services.reporting import ReportingService

__all__ = ["CacheStats", "ReportCache", "ReportingService"]

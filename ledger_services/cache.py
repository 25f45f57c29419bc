"""
ledger_services.cache -- Content-addressed memoisation of engine reports.

Responsibility:
    Remember report results keyed by a SHA-256 fingerprint of the exact
    inputs they were computed from, so repeated renders over an unchanged
    snapshot skip recomputation. Engines stay stateless; all state lives
    here, on the caller side.

Invariants enforced:
    - The key covers the report name, the configuration checksum and the
      full input snapshot; any edit to any input changes the key.
    - Bounded size, least-recently-used eviction.
    - Thread-safe: one cache may be shared by a service used from
      several threads. Computation happens outside the lock, so two
      threads missing on the same key may both compute; results are
      identical and the second store is a no-op overwrite.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from ledger_kernel.logging_config import get_logger
from ledger_kernel.utils.hashing import hash_payload

logger = get_logger("services.cache")

T = TypeVar("T")

DEFAULT_MAX_ENTRIES = 256


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    size: int


class ReportCache:
    """Bounded LRU cache keyed by input fingerprints."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self._max_entries = max_entries
        self._entries: OrderedDict[str, Any] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @staticmethod
    def fingerprint(report: str, inputs: dict[str, Any]) -> str:
        return hash_payload({"report": report, "inputs": inputs})

    def get_or_compute(
        self,
        report: str,
        inputs: dict[str, Any],
        compute: Callable[[], T],
    ) -> T:
        """Return the cached result for ``inputs``, computing it on a miss."""
        key = self.fingerprint(report, inputs)
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                self._hits += 1
                logger.debug("report_cache_hit", extra={"report": report, "cache_key": key[:16]})
                return self._entries[key]
            self._misses += 1

        logger.debug("report_cache_miss", extra={"report": report, "cache_key": key[:16]})
        result = compute()

        with self._lock:
            self._entries[key] = result
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)
        return result

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    @property
    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(hits=self._hits, misses=self._misses, size=len(self._entries))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

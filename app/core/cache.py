"""
Process-local cache of months whose calendar paid colors were already
folded into payment rows.

Losing it only costs a redundant reconciliation pass: the reconciler itself
works by set difference and produces no mutations for already-recorded
sessions.
"""
import logging
from typing import Hashable, Set, Tuple

logger = logging.getLogger(__name__)


class SyncedMonthsCache:
    """Tracks (scope, month) pairs that have been auto-reconciled"""

    def __init__(self):
        self._synced: Set[Tuple[Hashable, str]] = set()

    def is_synced(self, month: str, scope: Hashable = None) -> bool:
        return (scope, month) in self._synced

    def mark_synced(self, month: str, scope: Hashable = None):
        self._synced.add((scope, month))
        logger.debug(f"Marked month {month} as synced for scope {scope!r}")

    def invalidate(self, month: str, scope: Hashable = None):
        """Forget one month so the next load reconciles it again"""
        self._synced.discard((scope, month))

    def clear(self):
        self._synced.clear()

    def __len__(self) -> int:
        return len(self._synced)


# Global cache instance (process lifetime)
synced_months_cache = SyncedMonthsCache()

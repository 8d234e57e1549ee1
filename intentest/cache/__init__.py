"""
Run cache: persisted runs, cross-process locks and housekeeping.
"""

from intentest.cache.lock import FileLock, is_process_alive, release_all_locks
from intentest.cache.maintenance import clean_up_cache, purge_legacy_cache
from intentest.cache.repository import TestRunRepository
from intentest.cache.test_cache import TestCache

__all__ = [
    "FileLock",
    "is_process_alive",
    "release_all_locks",
    "TestRunRepository",
    "TestCache",
    "clean_up_cache",
    "purge_legacy_cache",
]

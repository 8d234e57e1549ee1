"""Cache facade used by the orchestrator."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from intentest.cache.repository import TestRunRepository
from intentest.core.test_case import TestCase
from intentest.core.test_run import TestRun
from intentest.core.types import CacheEntry

logger = logging.getLogger(__name__)


class TestCache:
    """Replayable runs of one test case. A disabled cache is a no-op."""

    __test__ = False

    def __init__(
        self,
        test_case: TestCase,
        cache_dir: Union[str, Path],
        enabled: bool = True,
        repository: Optional[TestRunRepository] = None,
    ) -> None:
        self.test_case = test_case
        self.enabled = enabled
        self.repository = repository or TestRunRepository(test_case, cache_dir)

    async def get(self) -> Optional[CacheEntry]:
        """Latest passed entry, or ``None`` when absent or the lock is contended."""
        if not self.enabled:
            return None

        async with self.repository.lock.hold() as acquired:
            if not acquired:
                logger.warning(
                    "Cache lock unavailable, running without cache",
                    extra={"test_id": self.test_case.identifier},
                )
                return None
            self.repository.reset()
            run = self.repository.get_latest_passed_run()

        if run is None:
            return None
        return run.to_cache_entry()

    async def set(self, test_run: TestRun) -> bool:
        """Persist ``test_run`` and prune older runs."""
        if not self.enabled:
            return False
        saved = await self.repository.save_run(test_run)
        if saved:
            await self.repository.apply_retention_policy()
        return saved

    async def delete(self) -> bool:
        if not self.enabled:
            return False
        logger.debug("Deleting cache", extra={"test_id": self.test_case.identifier})
        return await self.repository.delete_all_runs()

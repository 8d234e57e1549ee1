"""
Run repository: one JSON file per test run inside the shared cache directory.

Layout::

    <cache_dir>/<run_id>.json      persisted CacheEntry
    <cache_dir>/<run_id>/          optional artifacts (screenshots)
    <cache_dir>/<identifier>.lock  FileLock guarding the identifier

Every read-then-write sequence runs under the identifier's lock. When the
lock cannot be acquired the operation is skipped and the caller proceeds
without the cache.
"""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from intentest.cache.lock import FileLock
from intentest.core.test_case import TestCase
from intentest.core.test_run import CACHE_FORMAT_VERSION, TestRun
from intentest.core.types import CacheEntry, TestStatus
from intentest.error_handling import get_error_details

logger = logging.getLogger(__name__)


class TestRunRepository:
    """Persisted runs of a single test case."""

    __test__ = False

    VERSION = CACHE_FORMAT_VERSION

    def __init__(self, test_case: TestCase, cache_dir: Union[str, Path]) -> None:
        self.test_case = test_case
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.lock = FileLock(self.cache_dir / f"{test_case.identifier}.lock")
        self._runs: Optional[List[TestRun]] = None

    # ------------------------------------------------------------------ #
    # Paths
    # ------------------------------------------------------------------ #

    def run_file_path(self, test_run: TestRun) -> Path:
        return self.cache_dir / f"{test_run.run_id}.json"

    def run_dir_path(self, test_run: TestRun) -> Path:
        return self.cache_dir / test_run.run_id

    def ensure_run_dir(self, test_run: TestRun) -> Path:
        """Create (if needed) and return the artifact directory for a run."""
        path = self.run_dir_path(test_run)
        path.mkdir(parents=True, exist_ok=True)
        return path

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def _load_entry(self, path: Path) -> Optional[CacheEntry]:
        try:
            return CacheEntry.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            logger.warning(
                "Discarding unreadable cache file",
                extra={"cache_file": path.name, **get_error_details(exc)},
            )
            path.unlink(missing_ok=True)
            return None

    def get_runs(self) -> List[TestRun]:
        """All persisted runs for this test case, oldest first."""
        if self._runs is not None:
            return self._runs

        suffix = f"{self.test_case.identifier}.json"
        runs: List[TestRun] = []
        for path in sorted(self.cache_dir.glob(f"*{suffix}")):
            entry = self._load_entry(path)
            if entry is not None:
                runs.append(TestRun.from_cache_entry(self.test_case, entry))

        runs.sort(key=lambda run: (run.timestamp, run.run_id))
        self._runs = runs
        return runs

    def get_latest_passed_run(self) -> Optional[TestRun]:
        """Most recent passed run of the current format that was not itself a replay."""
        passed = [
            run
            for run in self.get_runs()
            if run.status == TestStatus.PASSED
            and run.version == self.VERSION
            and not run.from_cache
        ]
        return passed[-1] if passed else None

    def reset(self) -> None:
        """Forget memoized runs so the next read goes to disk."""
        self._runs = None

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    async def save_run(self, test_run: TestRun) -> bool:
        async with self.lock.hold() as acquired:
            if not acquired:
                logger.error(
                    "Failed to acquire lock for saving run",
                    extra={"run_id": test_run.run_id},
                )
                return False
            try:
                entry = test_run.to_cache_entry()
                self.run_file_path(test_run).write_text(
                    json.dumps(entry.to_json_dict(), indent=2), encoding="utf-8"
                )
            finally:
                self.reset()
        logger.debug(
            "Saved test run",
            extra={"run_id": test_run.run_id, "status": test_run.status.value},
        )
        return True

    def _delete_run(self, test_run: TestRun) -> None:
        self.run_file_path(test_run).unlink(missing_ok=True)
        run_dir = self.run_dir_path(test_run)
        if run_dir.exists():
            shutil.rmtree(run_dir, ignore_errors=True)
        self.reset()
        logger.debug("Deleted test run", extra={"run_id": test_run.run_id})

    async def delete_run(self, test_run: TestRun) -> bool:
        async with self.lock.hold() as acquired:
            if not acquired:
                logger.error(
                    "Failed to acquire lock for deleting run",
                    extra={"run_id": test_run.run_id},
                )
                return False
            self._delete_run(test_run)
        return True

    async def delete_all_runs(self) -> bool:
        async with self.lock.hold() as acquired:
            if not acquired:
                return False
            for run in list(self.get_runs()):
                self._delete_run(run)
        return True

    async def apply_retention_policy(self) -> int:
        """
        Bound disk usage for this test case.

        Outdated format versions are always removed. Among current-version
        runs exactly one survives: the latest passed run (preferring runs
        recorded from the model over replays), otherwise the most recent run.
        Returns the number of deleted runs.
        """
        async with self.lock.hold() as acquired:
            if not acquired:
                logger.error("Failed to acquire lock for retention policy")
                return 0

            self.reset()
            all_runs = list(self.get_runs())
            deleted = 0

            for run in all_runs:
                if run.version < self.VERSION:
                    self._delete_run(run)
                    deleted += 1

            current_runs = [run for run in all_runs if run.version == self.VERSION]
            passed_runs = [run for run in current_runs if run.status == TestStatus.PASSED]
            recorded_runs = [run for run in passed_runs if not run.from_cache]
            # get_runs is ordered oldest first
            candidates = recorded_runs or passed_runs or current_runs
            keep = candidates[-1] if candidates else None

            for run in current_runs:
                if keep is not None and run.run_id != keep.run_id:
                    self._delete_run(run)
                    deleted += 1

            self.reset()

        logger.debug(
            "Retention policy applied",
            extra={
                "identifier": self.test_case.identifier,
                "kept_run_id": keep.run_id if keep else None,
                "deleted": deleted,
            },
        )
        return deleted

    def release_lock(self) -> None:
        self.lock.release()

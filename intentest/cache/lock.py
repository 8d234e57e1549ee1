"""
Advisory cross-process file locks for the run cache.

A lock is a file created with ``O_CREAT | O_EXCL`` holding ``{pid, timestamp}``.
A competing process only removes an existing lock when it is older than
``STALE_LOCK_MS`` and its owner no longer exists; otherwise it backs off
exponentially and eventually gives up, leaving the caller to run uncached.

Every lock held by this process is tracked so a single cleanup handler can
release them on normal exit, SIGINT, SIGTERM and uncaught exceptions.
"""

import asyncio
import atexit
import json
import logging
import os
import signal
import sys
import threading
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Set

from intentest.error_handling import get_error_details

logger = logging.getLogger(__name__)

MAX_LOCK_ATTEMPTS = 10
BASE_LOCK_DELAY_MS = 10
STALE_LOCK_MS = 10_000

_active_locks: Set["FileLock"] = set()
_handlers_registered = False


def release_all_locks() -> None:
    """Release every lock currently held by this process."""
    for lock in list(_active_locks):
        lock.release()


def _handle_signal(signum, frame, previous) -> None:
    release_all_locks()
    if callable(previous):
        previous(signum, frame)
    else:
        raise SystemExit(128 + signum)


def register_cleanup_handlers() -> None:
    """Install the shared cleanup handler once per process."""
    global _handlers_registered
    if _handlers_registered:
        return

    atexit.register(release_all_locks)

    if threading.current_thread() is threading.main_thread():
        for signum in (signal.SIGINT, signal.SIGTERM):
            previous = signal.getsignal(signum)
            signal.signal(
                signum,
                lambda num, frame, prev=previous: _handle_signal(num, frame, prev),
            )

    previous_hook = sys.excepthook

    def _excepthook(exc_type, exc_value, exc_traceback):
        logger.error(
            "Uncaught exception",
            extra=get_error_details(exc_value) if exc_value is not None else {},
        )
        release_all_locks()
        previous_hook(exc_type, exc_value, exc_traceback)

    sys.excepthook = _excepthook
    _handlers_registered = True


def is_process_alive(pid: int) -> bool:
    """Signal-0 liveness check."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but belongs to another user
        return True
    except (OSError, OverflowError, TypeError, ValueError) as exc:
        logger.debug("Liveness check failed", extra={"pid": pid, **get_error_details(exc)})
        return False
    return True


class FileLock:
    """Exclusive-create lock file guarding one cache identifier."""

    def __init__(
        self,
        path: Path,
        max_attempts: int = MAX_LOCK_ATTEMPTS,
        base_delay_ms: int = BASE_LOCK_DELAY_MS,
        stale_after_ms: int = STALE_LOCK_MS,
    ) -> None:
        self.path = Path(path)
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self.stale_after_ms = stale_after_ms
        self.acquired = False
        register_cleanup_handlers()

    def _try_create(self) -> bool:
        payload = json.dumps({"pid": os.getpid(), "timestamp": int(time.time() * 1000)})
        try:
            fd = os.open(str(self.path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
        return True

    def _evict_if_stale(self) -> bool:
        """Remove the current lock file if its owner is gone. True if removed."""
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            # Released between our create attempt and the read
            return True
        except OSError as exc:
            logger.debug("Failed to read lock file", extra=get_error_details(exc))
            return False

        if not content:
            return False

        try:
            data = json.loads(content)
            pid = int(data["pid"])
            timestamp = int(data["timestamp"])
        except (ValueError, KeyError, TypeError) as exc:
            logger.error(
                "Failed to parse lock file",
                extra={"lock_file": str(self.path), **get_error_details(exc)},
            )
            return False

        age = int(time.time() * 1000) - timestamp
        if age > self.stale_after_ms and not is_process_alive(pid):
            logger.debug(
                "Removing stale lock",
                extra={"lock_file": str(self.path), "pid": pid, "age_ms": age},
            )
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
            return True
        return False

    async def acquire(self) -> bool:
        """Try to take the lock. Returns False after ``max_attempts`` collisions."""
        if self.acquired:
            return True

        for attempt in range(self.max_attempts):
            try:
                created = self._try_create()
            except OSError as exc:
                logger.error(
                    "Unexpected lock acquisition error",
                    extra={"lock_file": str(self.path), **get_error_details(exc)},
                )
                return False

            if created:
                self.acquired = True
                _active_locks.add(self)
                return True

            if self._evict_if_stale():
                continue

            await asyncio.sleep(self.base_delay_ms * (2 ** attempt) / 1000)

        logger.error(
            "Failed to acquire lock after max attempts",
            extra={"lock_file": str(self.path), "attempts": self.max_attempts},
        )
        return False

    def release(self) -> None:
        if not self.acquired:
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.error(
                "Failed to release lock",
                extra={"lock_file": str(self.path), **get_error_details(exc)},
            )
            return
        self.acquired = False
        _active_locks.discard(self)

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[bool]:
        """Hold the lock for a block. Yields whether it was acquired."""
        acquired = await self.acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()

    def __repr__(self) -> str:
        return f"FileLock(path={str(self.path)!r}, acquired={self.acquired})"


def active_lock_count() -> int:
    return len(_active_locks)

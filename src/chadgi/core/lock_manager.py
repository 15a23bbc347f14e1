"""Task lock manager for multi-worker issue processing.

Provides per-issue advisory locks so that workers sharing a lock directory
(possibly on different machines) never process the same issue at once.
Holders refresh a heartbeat while they work; a lock whose heartbeat is
older than the timeout, or whose local process has died, is treated as
abandoned and may be force-claimed.

New locks are created exclusively (never overwriting a record another
worker wrote first). Updates go through temp-file-then-rename, so readers
never observe a partially written record.

Storage errors never propagate: every operation degrades to "no lock",
"not acquired" or "not released" and logs the cause.
"""

import logging
import math
import os
import secrets
import string
import time
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from ..config import ChadgiConfig
from ..constants import DEFAULT_LOCK_TIMEOUT_MINUTES
from ..models import LockAcquireResult, LockFailureReason, TaskLock, TaskLockInfo, utc_now
from ..services import get_hostname, is_process_alive
from .lock_store import FileLockStore, LockStore, lock_file_name

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    digits = []
    while True:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
        if value == 0:
            return "".join(reversed(digits))


def _dump(lock: TaskLock) -> str:
    return lock.model_dump_json(indent=2, exclude_none=True)


def generate_session_id(hostname: str | None = None, pid: int | None = None) -> str:
    """Generate a session ID unique to this process run.

    Format: <hostname>-<pid>-<base36 ms timestamp>-<6 random chars>

    Args:
        hostname: Host identity (defaults to this machine)
        pid: Process ID (defaults to this process)
    """
    hostname = hostname if hostname is not None else get_hostname()
    pid = pid if pid is not None else os.getpid()
    timestamp = _to_base36(time.time_ns() // 1_000_000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{hostname}-{pid}-{timestamp}-{suffix}"


class TaskLockManager:
    """Acquire, refresh, inspect and release per-issue task locks.

    Collaborators are injectable so tests can fake process death, other
    hosts and the passage of time without touching real processes.

    Args:
        locks_dir: Directory holding issue-<N>.lock files
        store: Record storage (defaults to FileLockStore(locks_dir))
        process_alive: Liveness probe for local PIDs
        hostname: Accessor for this machine's hostname
        pid: Accessor for this process's PID
        clock: Returns the current aware UTC time
    """

    def __init__(
        self,
        locks_dir: Path,
        store: LockStore | None = None,
        *,
        process_alive: Callable[[int], bool] = is_process_alive,
        hostname: Callable[[], str] = get_hostname,
        pid: Callable[[], int] = os.getpid,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.locks_dir = locks_dir
        self.store = store if store is not None else FileLockStore(locks_dir)
        self._process_alive = process_alive
        self._hostname = hostname
        self._pid = pid
        self._clock = clock

    def generate_session_id(self) -> str:
        """Generate a session ID for this host and process."""
        return generate_session_id(self._hostname(), self._pid())

    def lock_path(self, issue_number: int) -> Path:
        """Get path to the lock file for an issue."""
        return self.locks_dir / lock_file_name(issue_number)

    # ------------------------------------------------------------------
    # Reading and liveness
    # ------------------------------------------------------------------

    def _load(self, issue_number: int) -> TaskLock | None:
        """Read a lock record. Unreadable records count as absent; OSError propagates."""
        content = self.store.read(issue_number)
        if content is None:
            return None
        try:
            return TaskLock.model_validate_json(content)
        except (ValidationError, UnicodeDecodeError) as e:
            logger.debug(f"Ignoring invalid lock record for issue #{issue_number}: {e}")
            return None

    def read(self, issue_number: int) -> TaskLock | None:
        """Get the current lock for an issue, or None if unlocked or unreadable."""
        try:
            return self._load(issue_number)
        except OSError as e:
            logger.warning(f"Could not read lock for issue #{issue_number}: {e}")
            return None

    def is_stale(
        self, lock: TaskLock, timeout_minutes: float = DEFAULT_LOCK_TIMEOUT_MINUTES
    ) -> bool:
        """Check if a lock's heartbeat is older than the timeout."""
        return self._is_stale_at(lock, self._clock(), timeout_minutes)

    @staticmethod
    def _is_stale_at(lock: TaskLock, now: datetime, timeout_minutes: float) -> bool:
        # timedelta(minutes=...) overflows for huge timeouts
        return (now - lock.last_heartbeat).total_seconds() > timeout_minutes * 60

    def _process_gone(self, lock: TaskLock) -> bool:
        """Check if a lock's holder process has died (only knowable on its own host)."""
        return lock.hostname == self._hostname() and not self._process_alive(lock.pid)

    def _refresh(self, lock: TaskLock) -> TaskLock:
        updated = lock.model_copy(update={"last_heartbeat": self._clock()})
        self.store.replace(lock.issue_number, _dump(updated))
        return updated

    # ------------------------------------------------------------------
    # Acquire / release
    # ------------------------------------------------------------------

    def acquire(
        self,
        issue_number: int,
        session_id: str,
        *,
        force_claim: bool = False,
        timeout_minutes: float = DEFAULT_LOCK_TIMEOUT_MINUTES,
        worker_id: int | None = None,
        repo_name: str | None = None,
    ) -> LockAcquireResult:
        """Attempt to lock an issue for a session.

        Re-acquiring a lock the session already holds refreshes its heartbeat.
        An abandoned lock (stale heartbeat, or dead process on this host) is
        only replaced when force_claim is set.

        Args:
            issue_number: Issue to lock
            session_id: Caller's session ID
            force_claim: Replace an abandoned lock instead of reporting it
            timeout_minutes: Heartbeat age after which a lock is stale
            worker_id: Worker slot recorded in the lock
            repo_name: Repository recorded in the lock

        Returns:
            LockAcquireResult; reason is already_locked, stale_lock or error
            when acquired is False
        """
        try:
            self.store.ensure()

            existing = self._load(issue_number)
            if existing is not None:
                if existing.session_id == session_id:
                    return LockAcquireResult(acquired=True, lock=self._refresh(existing))

                abandoned = self.is_stale(existing, timeout_minutes) or self._process_gone(
                    existing
                )
                if not abandoned:
                    return self._already_locked(existing)
                if not force_claim:
                    return LockAcquireResult(
                        acquired=False,
                        lock=existing,
                        reason=LockFailureReason.STALE_LOCK,
                        error=(
                            f"Lock is stale (last heartbeat: "
                            f"{existing.last_heartbeat.isoformat()}). "
                            "Use --force-claim to override."
                        ),
                    )
                logger.info(
                    f"Force-claiming issue #{issue_number} from session {existing.session_id}"
                )
                self.store.delete(issue_number)

            now = self._clock()
            lock = TaskLock(
                issue_number=issue_number,
                session_id=session_id,
                pid=self._pid(),
                hostname=self._hostname(),
                locked_at=now,
                last_heartbeat=now,
                worker_id=worker_id,
                repo_name=repo_name,
            )
            content = _dump(lock)
            if self.store.create(issue_number, content):
                logger.debug(f"Locked issue #{issue_number} for session {session_id}")
                return LockAcquireResult(acquired=True, lock=lock)

            # Another worker created the record between our read and write
            winner = self._load(issue_number)
            if winner is None:
                # Unreadable record in the way: nobody can own it
                logger.warning(f"Replacing unreadable lock for issue #{issue_number}")
                self.store.replace(issue_number, content)
                return LockAcquireResult(acquired=True, lock=lock)
            if winner.session_id == session_id:
                return LockAcquireResult(acquired=True, lock=winner)
            return self._already_locked(winner)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to acquire lock for issue #{issue_number}: {e}")
            return LockAcquireResult(
                acquired=False,
                reason=LockFailureReason.ERROR,
                error=f"Failed to acquire lock: {e}",
            )

    @staticmethod
    def _already_locked(lock: TaskLock) -> LockAcquireResult:
        return LockAcquireResult(
            acquired=False,
            lock=lock,
            reason=LockFailureReason.ALREADY_LOCKED,
            error=(
                f"Issue #{lock.issue_number} is locked by session "
                f"{lock.session_id} on {lock.hostname}"
            ),
        )

    def release(self, issue_number: int, session_id: str | None = None) -> bool:
        """Release an issue's lock.

        Args:
            issue_number: Issue to unlock
            session_id: If given, only release when this session owns the lock

        Returns:
            True if released or already unlocked, False if owned by another
            session or deletion failed
        """
        try:
            if session_id is not None:
                existing = self._load(issue_number)
                if existing is not None and existing.session_id != session_id:
                    logger.debug(
                        f"Not releasing issue #{issue_number}: owned by {existing.session_id}"
                    )
                    return False
            self.store.delete(issue_number)
            return True
        except OSError as e:
            logger.warning(f"Failed to release lock for issue #{issue_number}: {e}")
            return False

    def force_release(self, issue_number: int) -> bool:
        """Release an issue's lock regardless of owner.

        A missing lock counts as released.
        """
        return self._remove(issue_number) is not None

    def _remove(self, issue_number: int) -> bool | None:
        """Delete a lock record.

        Returns:
            True if this call removed it, False if it was already gone,
            None if the delete failed
        """
        try:
            removed = self.store.delete(issue_number)
        except OSError as e:
            logger.warning(f"Failed to force-release lock for issue #{issue_number}: {e}")
            return None
        if removed:
            logger.info(f"Force-released lock for issue #{issue_number}")
        return removed

    def heartbeat(self, issue_number: int, session_id: str) -> bool:
        """Refresh the heartbeat of a lock owned by session_id.

        Returns:
            True if refreshed, False if unlocked, owned by another session,
            or the write failed
        """
        try:
            existing = self._load(issue_number)
            if existing is None or existing.session_id != session_id:
                return False
            self._refresh(existing)
            return True
        except OSError as e:
            logger.warning(f"Failed to update heartbeat for issue #{issue_number}: {e}")
            return False

    # ------------------------------------------------------------------
    # Bulk inspection
    # ------------------------------------------------------------------

    def list_locks(
        self, timeout_minutes: float = DEFAULT_LOCK_TIMEOUT_MINUTES
    ) -> list[TaskLockInfo]:
        """List all readable locks, ordered by issue number.

        Unreadable or invalid records are skipped.
        """
        try:
            issue_numbers = self.store.issues()
        except OSError as e:
            logger.warning(f"Could not list locks in {self.locks_dir}: {e}")
            return []

        now = self._clock()
        locks = []
        for issue_number in issue_numbers:
            try:
                lock = self._load(issue_number)
            except OSError as e:
                logger.debug(f"Skipping lock for issue #{issue_number}: {e}")
                continue
            if lock is None:
                continue
            locks.append(
                TaskLockInfo(
                    **lock.model_dump(),
                    locked_seconds=math.floor((now - lock.locked_at).total_seconds()),
                    heartbeat_age_seconds=math.floor(
                        (now - lock.last_heartbeat).total_seconds()
                    ),
                    is_stale=self._is_stale_at(lock, now, timeout_minutes),
                )
            )
        return locks

    def find_stale(
        self, timeout_minutes: float = DEFAULT_LOCK_TIMEOUT_MINUTES
    ) -> list[TaskLockInfo]:
        """List locks whose heartbeat is older than the timeout."""
        return [lock for lock in self.list_locks(timeout_minutes) if lock.is_stale]

    def cleanup_stale(self, timeout_minutes: float = DEFAULT_LOCK_TIMEOUT_MINUTES) -> int:
        """Remove stale locks.

        Returns:
            Number of locks actually removed
        """
        removed = 0
        for lock in self.find_stale(timeout_minutes):
            if self._remove(lock.issue_number):
                removed += 1
        return removed

    def is_locked(self, issue_number: int) -> bool:
        """Check if any lock record exists for an issue, stale or not."""
        return self.read(issue_number) is not None

    def is_locked_by_other(
        self,
        issue_number: int,
        current_session_id: str,
        timeout_minutes: float = DEFAULT_LOCK_TIMEOUT_MINUTES,
    ) -> bool:
        """Check if another live session holds an issue.

        Stale locks and locks whose local process has died don't block.
        """
        lock = self.read(issue_number)
        if lock is None or lock.session_id == current_session_id:
            return False
        if self.is_stale(lock, timeout_minutes):
            return False
        return not self._process_gone(lock)

    def release_all_for_session(self, session_id: str) -> int:
        """Release every lock held by a session (worker shutdown).

        Returns:
            Number of locks released
        """
        released = 0
        for lock in self.list_locks():
            if lock.session_id == session_id and self._remove(lock.issue_number):
                released += 1
        return released


def create_lock_manager(chadgi_dir: Path, config: ChadgiConfig | None = None) -> TaskLockManager:
    """Create a file-backed lock manager for a .chadgi directory."""
    config = config or ChadgiConfig()
    return TaskLockManager(config.locks_dir(chadgi_dir))

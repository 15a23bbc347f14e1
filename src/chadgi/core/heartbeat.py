"""Background heartbeat for a held task lock.

The lock manager only offers a single-shot heartbeat(); callers that hold a
lock for a long task own a HeartbeatRunner that repeats it until stopped.
"""

import logging
import threading
from types import TracebackType

from ..constants import HEARTBEAT_INTERVAL_SECONDS
from .lock_manager import TaskLockManager

logger = logging.getLogger(__name__)


class HeartbeatRunner:
    """Refresh a lock's heartbeat on a fixed interval in a daemon thread.

    Example:
        >>> with HeartbeatRunner(manager, 42, session_id):
        ...     work_on_issue(42)
    """

    def __init__(
        self,
        manager: TaskLockManager,
        issue_number: int,
        session_id: str,
        interval_seconds: float = HEARTBEAT_INTERVAL_SECONDS,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.manager = manager
        self.issue_number = issue_number
        self.session_id = session_id
        self.interval_seconds = interval_seconds
        self.beats = 0
        self.lost = False
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "HeartbeatRunner":
        """Start beating. Calling start on a running runner is a no-op."""
        if self.running:
            return self
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run,
            name=f"chadgi-heartbeat-{self.issue_number}",
            daemon=True,
        )
        self._thread.start()
        return self

    def stop(self, timeout: float | None = None) -> None:
        """Stop beating and wait for the thread to exit. Idempotent."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def beat(self) -> bool:
        """Send one heartbeat now."""
        if self.manager.heartbeat(self.issue_number, self.session_id):
            self.beats += 1
            self.lost = False
            return True
        if not self.lost:
            # Warn once per loss; the owner may re-acquire and recover
            logger.warning(
                f"Heartbeat for issue #{self.issue_number} failed: "
                f"lock is missing or owned by another session"
            )
            self.lost = True
        return False

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            self.beat()

    def __enter__(self) -> "HeartbeatRunner":
        return self.start()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()

"""Pydantic data models for ChadGI state files.

All models are Pydantic BaseModel subclasses, so lock records round-trip
through JSON with validation on the way in:

Example:
    >>> from chadgi.models import TaskLock
    >>> lock = TaskLock(issue_number=42, session_id="host-1-abc", pid=1234, hostname="host")
    >>> lock.model_dump_json()
"""

from .lock import LockAcquireResult, LockFailureReason, TaskLock, TaskLockInfo, utc_now

__all__ = [
    "LockAcquireResult",
    "LockFailureReason",
    "TaskLock",
    "TaskLockInfo",
    "utc_now",
]

"""Task lock models.

A task lock is one JSON record per claimed issue, written to
.chadgi/locks/issue-<N>.lock. Staleness is never stored; it is derived
from last_heartbeat and a caller-supplied timeout whenever a lock is
inspected.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


class TaskLock(BaseModel):
    """Persisted claim on a single issue number.

    Attributes:
        issue_number: Issue the lock protects (identity key).
        session_id: Opaque identifier of the owning worker session.
        pid: Process ID of the holder (only meaningful on its own host).
        hostname: Machine the holder runs on.
        locked_at: When the lock was first created.
        last_heartbeat: Last liveness refresh by the owner.
        worker_id: Worker slot in multi-worker setups.
        repo_name: Repository being worked on in multi-repo setups.
    """

    model_config = ConfigDict(extra="ignore")

    issue_number: int = Field(ge=1, description="Issue number being locked")
    session_id: str = Field(min_length=1, max_length=256, description="Owning session")
    pid: int = Field(ge=1, description="Process ID holding the lock")
    hostname: str = Field(min_length=1, max_length=256, description="Host holding the lock")
    locked_at: datetime = Field(default_factory=utc_now)
    last_heartbeat: datetime = Field(default_factory=utc_now)
    worker_id: int | None = Field(default=None, ge=0)
    repo_name: str | None = Field(default=None, min_length=1)

    @field_validator("locked_at", "last_heartbeat")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        """Treat naive timestamps from hand-written lock files as UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class TaskLockInfo(BaseModel):
    """Lock record plus status derived at listing time."""

    issue_number: int
    session_id: str
    pid: int
    hostname: str
    locked_at: datetime
    last_heartbeat: datetime
    locked_seconds: int
    heartbeat_age_seconds: int
    is_stale: bool
    worker_id: int | None = None
    repo_name: str | None = None


class LockFailureReason(str, Enum):
    """Why a lock could not be acquired."""

    ALREADY_LOCKED = "already_locked"
    STALE_LOCK = "stale_lock"
    ERROR = "error"


class LockAcquireResult(BaseModel):
    """Outcome of a lock acquisition attempt."""

    acquired: bool
    lock: TaskLock | None = None
    reason: LockFailureReason | None = None
    error: str | None = None

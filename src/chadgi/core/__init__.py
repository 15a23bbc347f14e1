"""Core business logic for ChadGI.

- lock_manager: per-issue task locks with heartbeats and stale reclaim
- lock_store: file and in-memory storage for lock records
- heartbeat: background heartbeat runner for held locks
- chadgi_dir: .chadgi directory discovery
"""

from .chadgi_dir import get_chadgi_dir
from .heartbeat import HeartbeatRunner
from .lock_manager import TaskLockManager, create_lock_manager, generate_session_id
from .lock_store import FileLockStore, LockStore, MemoryLockStore, lock_file_name

__all__ = [
    "FileLockStore",
    "HeartbeatRunner",
    "LockStore",
    "MemoryLockStore",
    "TaskLockManager",
    "create_lock_manager",
    "generate_session_id",
    "get_chadgi_dir",
    "lock_file_name",
]

"""Host and process identity for lock ownership."""

import os
import socket


def is_process_alive(pid: int) -> bool:
    """Check if a process with given PID exists on this host."""
    try:
        os.kill(pid, 0)  # Signal 0 doesn't kill, just checks
        return True
    except PermissionError:
        # Exists, but belongs to another user
        return True
    except (OSError, OverflowError):
        return False


def get_hostname() -> str:
    """Get this machine's hostname."""
    return socket.gethostname()

"""External service integrations for ChadGI.

- git: repository discovery
- process: host identity and process liveness probing
"""

from .git import GitError, get_repo_root, run_git
from .process import get_hostname, is_process_alive

__all__ = [
    "GitError",
    "get_hostname",
    "get_repo_root",
    "is_process_alive",
    "run_git",
]

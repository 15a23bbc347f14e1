"""ChadGI directory utilities."""

from pathlib import Path

from ..constants import CHADGI_DIR
from ..services import get_repo_root


def get_chadgi_dir(repo_root: Path | None = None) -> Path:
    """Get .chadgi directory path.

    Args:
        repo_root: Optional repo root, detected if not provided

    Returns:
        Path to .chadgi directory
    """
    if repo_root is None:
        repo_root = get_repo_root()
    return repo_root / CHADGI_DIR

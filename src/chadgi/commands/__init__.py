"""CLI command implementations for chadgi.

This package contains the implementation of each CLI command,
separated from the CLI framework setup in cli.py.
"""

from .init import init
from .unlock import unlock

__all__ = [
    "init",
    "unlock",
]

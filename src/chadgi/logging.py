"""Logging configuration for the chadgi CLI."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "chadgi"


def resolve_level(verbosity: int = 0, quiet: bool = False, debug: bool = False) -> int:
    """Map CLI flags to a log level.

    Precedence is quiet > debug > verbosity: quiet shows warnings and
    errors only, -v or --debug shows debug output, default is INFO.
    """
    if quiet:
        return logging.WARNING
    if debug or verbosity >= 1:
        return logging.DEBUG
    return logging.INFO


def configure_logging(
    verbosity: int = 0,
    quiet: bool = False,
    no_color: bool = False,
    debug: bool = False,
) -> Console:
    """Route chadgi's loggers through a Rich handler on stderr.

    Only the "chadgi" logger hierarchy is configured, so libraries that log
    through the root logger are left alone. Calling this again (e.g. once
    per CLI invocation in tests) replaces the previous handler.

    Returns:
        Console that commands should print through
    """
    level = resolve_level(verbosity, quiet, debug)
    detailed = debug or verbosity >= 2

    console = Console(
        stderr=True,
        force_terminal=False if no_color else None,
        no_color=no_color,
    )
    handler = RichHandler(
        console=console,
        show_time=detailed,
        show_path=detailed,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger(LOGGER_NAME)
    for old in list(logger.handlers):
        logger.removeHandler(old)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False

    return console

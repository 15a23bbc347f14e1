"""Constants for ChadGI."""

# Task locks
DEFAULT_LOCK_TIMEOUT_MINUTES = 120  # 2 hours without heartbeat => stale
HEARTBEAT_INTERVAL_SECONDS = 30
LOCKS_DIRECTORY = "locks"
LOCK_FILE_PREFIX = "issue-"
LOCK_FILE_SUFFIX = ".lock"

# State directory and config
CHADGI_DIR = ".chadgi"
CONFIG_FILE = "config.toml"

# Subprocess timeouts (seconds)
GIT_TIMEOUT = 30

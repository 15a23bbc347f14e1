"""Shared test fixtures for chadgi tests."""

import json
import os
import subprocess
from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

from chadgi.core import TaskLockManager

LOCAL_HOST = "test-host"
LOCAL_PID = 4242


class FakeClock:
    """Controllable clock returning aware UTC datetimes."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 15, 10, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeProcesses:
    """Process liveness probe backed by a set of live PIDs."""

    def __init__(self, *alive: int) -> None:
        self.alive = set(alive)
        self.probed: list[int] = []

    def __call__(self, pid: int) -> bool:
        self.probed.append(pid)
        return pid in self.alive


def write_lock(locks_dir: Path, issue_number: int, **fields: Any) -> Path:
    """Write a raw lock file, filling unspecified fields with defaults."""
    now = datetime(2026, 1, 15, 10, 0, tzinfo=UTC).isoformat()
    data = {
        "issue_number": issue_number,
        "session_id": f"other-host-999-{issue_number}",
        "pid": 999,
        "hostname": "other-host",
        "locked_at": now,
        "last_heartbeat": now,
    }
    data.update(fields)
    for key in ("locked_at", "last_heartbeat"):
        if isinstance(data[key], datetime):
            data[key] = data[key].isoformat()
    locks_dir.mkdir(parents=True, exist_ok=True)
    path = locks_dir / f"issue-{issue_number}.lock"
    path.write_text(json.dumps(data, indent=2))
    return path


@pytest.fixture
def runner() -> CliRunner:
    """Create CLI test runner with a wide terminal so messages don't wrap."""
    return CliRunner(env={"COLUMNS": "200"})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def processes() -> FakeProcesses:
    return FakeProcesses(LOCAL_PID)


@pytest.fixture
def locks_dir(tmp_path: Path) -> Path:
    """Lock directory inside a .chadgi directory (not created yet)."""
    return tmp_path / ".chadgi" / "locks"


@pytest.fixture
def manager(locks_dir: Path, clock: FakeClock, processes: FakeProcesses) -> TaskLockManager:
    """File-backed lock manager on test-host with a fake clock and process table."""
    return TaskLockManager(
        locks_dir,
        process_alive=processes,
        hostname=lambda: LOCAL_HOST,
        pid=lambda: LOCAL_PID,
        clock=clock,
    )


@pytest.fixture
def temp_git_repo(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a temporary git repository.

    Changes cwd to the repo directory for the duration of the test.
    """
    subprocess.run(["git", "init"], cwd=tmp_path, check=True, capture_output=True)
    subprocess.run(
        ["git", "config", "user.email", "test@test.com"],
        cwd=tmp_path,
        check=True,
        capture_output=True,
    )
    subprocess.run(
        ["git", "config", "user.name", "Test User"],
        cwd=tmp_path,
        check=True,
        capture_output=True,
    )

    original_cwd = os.getcwd()
    os.chdir(tmp_path)
    try:
        yield tmp_path
    finally:
        os.chdir(original_cwd)


@pytest.fixture
def initialized_chadgi(temp_git_repo: Path) -> Path:
    """Create an initialized .chadgi directory with minimal config.

    Returns the repo root path.
    """
    chadgi_dir = temp_git_repo / ".chadgi"
    (chadgi_dir / "locks").mkdir(parents=True)
    (chadgi_dir / "config.toml").write_text(
        """[project]
name = "test-project"

[locks]
timeout_minutes = 120
"""
    )
    return temp_git_repo

"""CLI integration tests for chadgi."""

import json
import os
from datetime import timedelta
from pathlib import Path

from conftest import write_lock
from typer.testing import CliRunner

from chadgi.cli import app
from chadgi.models import utc_now


def locks_of(repo: Path) -> Path:
    return repo / ".chadgi" / "locks"


def write_active(repo: Path, issue_number: int, **fields) -> Path:
    now = utc_now()
    return write_lock(
        locks_of(repo),
        issue_number,
        pid=os.getpid(),
        locked_at=now - timedelta(minutes=10),
        last_heartbeat=now,
        **fields,
    )


def write_stale(repo: Path, issue_number: int, **fields) -> Path:
    old = utc_now() - timedelta(hours=3)
    return write_lock(locks_of(repo), issue_number, locked_at=old, last_heartbeat=old, **fields)


class TestVersionCommand:
    """Tests for --version flag."""

    def test_version_shows_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "chadgi" in result.stdout
        assert "0.1.0" in result.stdout

    def test_version_short_flag(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert "chadgi" in result.stdout


class TestHelpCommand:
    """Tests for --help flag."""

    def test_help_shows_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "init" in result.stdout
        assert "unlock" in result.stdout

    def test_no_args_shows_help(self, runner: CliRunner) -> None:
        """Running with no args shows help (exit code 2 for no_args_is_help)."""
        result = runner.invoke(app, [])
        assert result.exit_code == 2
        assert "Usage:" in result.output


class TestGlobalOptions:
    """Tests for global CLI options."""

    def test_flags_accepted(self, runner: CliRunner) -> None:
        for flag in ("-v", "-vv", "-q", "--json", "--no-color", "--debug"):
            result = runner.invoke(app, [flag, "--help"])
            assert result.exit_code == 0, flag


class TestInitCommand:
    """Tests for chadgi init."""

    def test_init_not_git_repo(self, runner: CliRunner, tmp_path: Path) -> None:
        original = os.getcwd()
        os.chdir(tmp_path)
        try:
            result = runner.invoke(app, ["init"])
        finally:
            os.chdir(original)
        assert result.exit_code == 3
        assert "Not a git repository" in result.output

    def test_init_creates_layout(self, runner: CliRunner, temp_git_repo: Path) -> None:
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 0, result.output
        assert (temp_git_repo / ".chadgi" / "config.toml").exists()
        assert locks_of(temp_git_repo).is_dir()
        assert "initialized" in result.output

    def test_init_keeps_existing_config(
        self, runner: CliRunner, initialized_chadgi: Path
    ) -> None:
        config_path = initialized_chadgi / ".chadgi" / "config.toml"
        before = config_path.read_text()
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 0
        assert "already exists" in result.output
        assert config_path.read_text() == before

    def test_init_dry_run(self, runner: CliRunner, temp_git_repo: Path) -> None:
        result = runner.invoke(app, ["init", "--dry-run"])
        assert result.exit_code == 0
        assert "DRY RUN" in result.output
        assert not (temp_git_repo / ".chadgi").exists()

    def test_init_custom_lock_directory(
        self, runner: CliRunner, temp_git_repo: Path
    ) -> None:
        chadgi_dir = temp_git_repo / ".chadgi"
        chadgi_dir.mkdir()
        (chadgi_dir / "config.toml").write_text('[locks]\ndirectory = "worker-locks"\n')
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 0
        assert (chadgi_dir / "worker-locks").is_dir()

    def test_init_invalid_config(self, runner: CliRunner, temp_git_repo: Path) -> None:
        chadgi_dir = temp_git_repo / ".chadgi"
        chadgi_dir.mkdir()
        (chadgi_dir / "config.toml").write_text("[locks]\ntimeout_minutes = -5\n")
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 1
        assert "Invalid config" in result.output


class TestUnlockList:
    """Tests for chadgi unlock with no arguments."""

    def test_requires_chadgi_dir(self, runner: CliRunner, temp_git_repo: Path) -> None:
        result = runner.invoke(app, ["unlock"])
        assert result.exit_code == 1
        assert "chadgi init" in result.output

    def test_no_locks(self, runner: CliRunner, initialized_chadgi: Path) -> None:
        result = runner.invoke(app, ["unlock"])
        assert result.exit_code == 0
        assert "No task locks found." in result.output

    def test_lists_active_and_stale(self, runner: CliRunner, initialized_chadgi: Path) -> None:
        write_active(initialized_chadgi, 12, session_id="worker-a", worker_id=2)
        write_stale(initialized_chadgi, 34, session_id="worker-b", repo_name="org/repo")

        result = runner.invoke(app, ["unlock"])

        assert result.exit_code == 0
        assert "Active Locks (1)" in result.output
        assert "Stale Locks (1)" in result.output
        assert "Issue #12" in result.output
        assert "worker-a" in result.output
        assert "Worker:    2" in result.output
        assert "org/repo" in result.output
        assert "chadgi unlock --stale" in result.output
        assert "Found 2 task lock(s): 1 active, 1 stale." in result.output

    def test_list_json(self, runner: CliRunner, initialized_chadgi: Path) -> None:
        write_active(initialized_chadgi, 12)
        write_stale(initialized_chadgi, 34)

        result = runner.invoke(app, ["--quiet", "--json", "unlock"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["success"] is True
        assert data["action"] == "list"
        assert [lock["issue_number"] for lock in data["locks"]] == [12, 34]
        assert [lock["is_stale"] for lock in data["locks"]] == [False, True]

    def test_timeout_override(self, runner: CliRunner, initialized_chadgi: Path) -> None:
        """--timeout changes which locks count as stale."""
        write_lock(
            locks_of(initialized_chadgi),
            5,
            last_heartbeat=utc_now() - timedelta(minutes=30),
        )
        result = runner.invoke(app, ["--quiet", "--json", "unlock", "--timeout", "10"])
        assert json.loads(result.stdout)["locks"][0]["is_stale"] is True

    def test_huge_timeout(self, runner: CliRunner, initialized_chadgi: Path) -> None:
        """A timeout beyond the datetime range lists everything as active."""
        write_stale(initialized_chadgi, 5)

        result = runner.invoke(app, ["--quiet", "--json", "unlock", "--timeout", "1e13"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["locks"][0]["is_stale"] is False

    def test_explicit_config_path(self, runner: CliRunner, tmp_path: Path) -> None:
        """--config locates .chadgi without a git repository."""
        chadgi_dir = tmp_path / "state"
        chadgi_dir.mkdir()
        (chadgi_dir / "config.toml").write_text('[locks]\ndirectory = "l"\n')
        write_stale(tmp_path, 1)  # default directory, not the configured one
        write_lock(chadgi_dir / "l", 9)

        result = runner.invoke(
            app, ["--quiet", "--json", "unlock", "--config", str(chadgi_dir / "config.toml")]
        )

        assert result.exit_code == 0
        assert [lock["issue_number"] for lock in json.loads(result.stdout)["locks"]] == [9]


class TestUnlockStale:
    """Tests for chadgi unlock --stale."""

    def test_removes_only_stale(self, runner: CliRunner, initialized_chadgi: Path) -> None:
        active = write_active(initialized_chadgi, 1)
        stale = write_stale(initialized_chadgi, 2)

        result = runner.invoke(app, ["unlock", "--stale"])

        assert result.exit_code == 0
        assert "Removed 1 stale lock(s)." in result.output
        assert "Issue #2" in result.output
        assert active.exists()
        assert not stale.exists()

    def test_nothing_stale(self, runner: CliRunner, initialized_chadgi: Path) -> None:
        write_active(initialized_chadgi, 1)
        result = runner.invoke(app, ["unlock", "--stale"])
        assert result.exit_code == 0
        assert "No stale locks found." in result.output


class TestUnlockAll:
    """Tests for chadgi unlock --all."""

    def test_without_force_releases_stale_only(
        self, runner: CliRunner, initialized_chadgi: Path
    ) -> None:
        active = write_active(initialized_chadgi, 1)
        stale = write_stale(initialized_chadgi, 2)

        result = runner.invoke(app, ["unlock", "--all"])

        assert result.exit_code == 0
        assert "Released 1 lock(s)." in result.output
        assert active.exists()
        assert not stale.exists()

    def test_only_active_without_force_fails(
        self, runner: CliRunner, initialized_chadgi: Path
    ) -> None:
        active = write_active(initialized_chadgi, 1)
        result = runner.invoke(app, ["unlock", "--all"])
        assert result.exit_code == 1
        assert "Use --force" in result.output
        assert active.exists()

    def test_force_releases_everything(
        self, runner: CliRunner, initialized_chadgi: Path
    ) -> None:
        write_active(initialized_chadgi, 1)
        write_stale(initialized_chadgi, 2)

        result = runner.invoke(app, ["--quiet", "--json", "unlock", "--all", "--force"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["removed"] == 2
        assert list(locks_of(initialized_chadgi).iterdir()) == []

    def test_no_locks(self, runner: CliRunner, initialized_chadgi: Path) -> None:
        result = runner.invoke(app, ["unlock", "--all"])
        assert result.exit_code == 0
        assert "No locks to release." in result.output


class TestUnlockIssue:
    """Tests for chadgi unlock ISSUE."""

    def test_not_locked(self, runner: CliRunner, initialized_chadgi: Path) -> None:
        result = runner.invoke(app, ["unlock", "42"])
        assert result.exit_code == 0
        assert "Issue #42 is not locked." in result.output

    def test_active_requires_force(self, runner: CliRunner, initialized_chadgi: Path) -> None:
        path = write_active(initialized_chadgi, 42, session_id="worker-a")
        result = runner.invoke(app, ["unlock", "42"])
        assert result.exit_code == 1
        assert "locked by an active session (worker-a)" in result.output
        assert path.exists()

    def test_active_with_force(self, runner: CliRunner, initialized_chadgi: Path) -> None:
        path = write_active(initialized_chadgi, 42)
        result = runner.invoke(app, ["unlock", "42", "--force"])
        assert result.exit_code == 0
        assert "Released lock for issue #42." in result.output
        assert not path.exists()

    def test_stale_without_force(self, runner: CliRunner, initialized_chadgi: Path) -> None:
        path = write_stale(initialized_chadgi, 42)
        result = runner.invoke(app, ["unlock", "42"])
        assert result.exit_code == 0
        assert not path.exists()

    def test_json_failure(self, runner: CliRunner, initialized_chadgi: Path) -> None:
        write_active(initialized_chadgi, 42, session_id="worker-a")
        result = runner.invoke(app, ["--quiet", "--json", "unlock", "42"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["success"] is False
        assert data["issue_number"] == 42
        assert data["lock"]["session_id"] == "worker-a"

    def test_rejects_non_positive_issue(
        self, runner: CliRunner, initialized_chadgi: Path
    ) -> None:
        result = runner.invoke(app, ["unlock", "0"])
        assert result.exit_code == 2

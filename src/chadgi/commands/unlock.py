"""Unlock command: inspect and release task locks.

Operators use this to see which issues are claimed, clear locks left
behind by crashed workers, and free a specific issue for re-processing.
"""

from pathlib import Path

import typer
from rich.markup import escape

from ..config import ConfigError, load_config
from ..core import TaskLockManager, create_lock_manager, get_chadgi_dir
from ..models import TaskLockInfo
from ..output import OutputContext, format_duration, get_output_context
from ..services import GitError


def _resolve_chadgi_dir(ctx: OutputContext, config: Path | None) -> Path:
    if config is not None:
        return config.resolve().parent
    try:
        return get_chadgi_dir()
    except GitError:
        ctx.error("Not a git repository")
        raise typer.Exit(3) from None


def _print_lock(ctx: OutputContext, lock: TaskLockInfo) -> None:
    stale = " [yellow](stale)[/yellow]" if lock.is_stale else ""
    ctx.print(f"  Issue #{lock.issue_number}{stale}")
    ctx.print(f"    Session:   {escape(lock.session_id)}")
    ctx.print(f"    PID:       {lock.pid}")
    ctx.print(f"    Hostname:  {escape(lock.hostname)}")
    ctx.print(f"    Locked:    {format_duration(lock.locked_seconds)} ago")
    ctx.print(f"    Heartbeat: {format_duration(lock.heartbeat_age_seconds)} ago")
    if lock.worker_id is not None:
        ctx.print(f"    Worker:    {lock.worker_id}")
    if lock.repo_name:
        ctx.print(f"    Repo:      {escape(lock.repo_name)}")


def _print_lock_table(ctx: OutputContext, locks: list[TaskLockInfo]) -> None:
    active = [lock for lock in locks if not lock.is_stale]
    stale = [lock for lock in locks if lock.is_stale]

    ctx.print("\n[bold magenta]Task locks[/bold magenta]\n")
    if active:
        ctx.print(f"[bold cyan]Active Locks ({len(active)})[/bold cyan]")
        for lock in active:
            _print_lock(ctx, lock)
        ctx.print()
    if stale:
        ctx.print(f"[bold yellow]Stale Locks ({len(stale)})[/bold yellow]")
        for lock in stale:
            _print_lock(ctx, lock)
        ctx.print()
        ctx.print("[dim]Run 'chadgi unlock --stale' to clean up stale locks.[/dim]")


def _print_released(ctx: OutputContext, locks: list[TaskLockInfo]) -> None:
    if not locks:
        return
    ctx.print("\n[cyan]Released locks:[/cyan]")
    for lock in locks:
        ctx.print(f"  - Issue #{lock.issue_number}")


def _list_locks(ctx: OutputContext, manager: TaskLockManager, timeout: float) -> bool:
    locks = manager.list_locks(timeout)
    if not locks:
        ctx.result({"action": "list", "locks": []}, "No task locks found.")
        return True

    stale_count = sum(1 for lock in locks if lock.is_stale)
    _print_lock_table(ctx, locks)
    ctx.result(
        {"action": "list", "locks": locks},
        f"Found {len(locks)} task lock(s): "
        f"{len(locks) - stale_count} active, {stale_count} stale.",
    )
    return True


def _cleanup_stale(ctx: OutputContext, manager: TaskLockManager, timeout: float) -> bool:
    stale = manager.find_stale(timeout)
    if not stale:
        ctx.result({"action": "cleanup", "locks": []}, "No stale locks found.")
        return True

    removed = manager.cleanup_stale(timeout)
    _print_released(ctx, stale)
    ctx.result(
        {"action": "cleanup", "removed": removed, "locks": stale},
        f"Removed {removed} stale lock(s).",
        success=removed == len(stale),
    )
    return removed == len(stale)


def _unlock_all(
    ctx: OutputContext, manager: TaskLockManager, timeout: float, force: bool
) -> bool:
    locks = manager.list_locks(timeout)
    if not locks:
        ctx.result({"action": "unlock", "locks": []}, "No locks to release.")
        return True

    # Without force, only stale locks are released
    targets = locks if force else [lock for lock in locks if lock.is_stale]
    if not targets:
        ctx.result(
            {"action": "unlock", "locks": locks},
            f"Found {len(locks)} active lock(s). Use --force to release active locks.",
            success=False,
        )
        return False

    released = [lock for lock in targets if manager.force_release(lock.issue_number)]
    _print_released(ctx, released)
    ok = len(released) == len(targets)
    ctx.result(
        {"action": "unlock", "removed": len(released), "locks": released},
        f"Released {len(released)} lock(s).",
        success=ok,
    )
    return ok


def _unlock_issue(
    ctx: OutputContext,
    manager: TaskLockManager,
    issue_number: int,
    timeout: float,
    force: bool,
) -> bool:
    data = {"action": "unlock", "issue_number": issue_number}
    lock = manager.read(issue_number)
    if lock is None:
        ctx.result(data, f"Issue #{issue_number} is not locked.")
        return True

    if not force and not manager.is_stale(lock, timeout):
        ctx.result(
            {**data, "lock": lock},
            f"Issue #{issue_number} is locked by an active session ({lock.session_id}). "
            "Use --force to override.",
            success=False,
        )
        return False

    if not manager.force_release(issue_number):
        ctx.result(data, f"Failed to release lock for issue #{issue_number}.", success=False)
        return False

    ctx.result({**data, "lock": lock}, f"Released lock for issue #{issue_number}.")
    return True


def unlock(
    issue_number: int | None = typer.Argument(
        None, min=1, help="Issue number to unlock (omit to list locks)"
    ),
    all_locks: bool = typer.Option(
        False, "--all", "-a", help="Release all stale locks (all locks with --force)"
    ),
    stale: bool = typer.Option(False, "--stale", help="Remove stale locks only"),
    force: bool = typer.Option(
        False, "--force", "-f", help="Release locks held by active sessions"
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        min=0,
        help="Minutes without heartbeat before a lock is stale (default from config)",
    ),
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to config.toml (its directory is used as .chadgi)"
    ),
) -> None:
    """List task locks, or release them so issues can be re-processed."""
    ctx = get_output_context()
    chadgi_dir = _resolve_chadgi_dir(ctx, config)

    if not chadgi_dir.exists():
        ctx.error(".chadgi directory not found. Run 'chadgi init' first.")
        raise typer.Exit(1)

    try:
        cfg = load_config(chadgi_dir)
    except ConfigError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    manager = create_lock_manager(chadgi_dir, cfg)
    timeout_minutes = timeout if timeout is not None else cfg.locks.timeout_minutes

    if stale:
        ok = _cleanup_stale(ctx, manager, timeout_minutes)
    elif all_locks:
        ok = _unlock_all(ctx, manager, timeout_minutes, force)
    elif issue_number is not None:
        ok = _unlock_issue(ctx, manager, issue_number, timeout_minutes, force)
    else:
        ok = _list_locks(ctx, manager, timeout_minutes)

    if not ok:
        raise typer.Exit(1)

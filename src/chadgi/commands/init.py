"""Init command implementation."""

import typer

from ..config import ConfigError, load_config, write_config_template
from ..constants import CHADGI_DIR, CONFIG_FILE
from ..output import get_output_context
from ..services import GitError, get_repo_root


def init(
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show what would be created without writing anything"
    ),
) -> None:
    """Initialize ChadGI in the current repository."""
    ctx = get_output_context()

    try:
        repo_root = get_repo_root()
    except GitError:
        ctx.error("Not a git repository")
        raise typer.Exit(3) from None

    chadgi_dir = repo_root / CHADGI_DIR
    config_path = chadgi_dir / CONFIG_FILE

    if dry_run or ctx.dry_run:
        ctx.print("[cyan][DRY RUN][/cyan] Would initialize ChadGI in this repository:")
        ctx.print(f"  Create directory: {chadgi_dir}")
        if not config_path.exists():
            ctx.print(f"  Create config: {config_path}")
        else:
            ctx.print(f"  Config already exists: {config_path}")
        ctx.print("  Create lock directory from [locks].directory")
        return

    chadgi_dir.mkdir(exist_ok=True)

    if not config_path.exists():
        write_config_template(chadgi_dir, project_name=repo_root.name)
        ctx.print(f"[green]Created config template:[/green] {config_path}")
    else:
        ctx.print(f"[yellow]Config already exists:[/yellow] {config_path}")

    try:
        config = load_config(chadgi_dir)
    except ConfigError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None
    locks_dir = config.locks_dir(chadgi_dir)
    locks_dir.mkdir(parents=True, exist_ok=True)
    ctx.print(f"[green]Lock directory:[/green] {locks_dir}")

    ctx.result(
        {"action": "init", "chadgi_dir": str(chadgi_dir), "locks_dir": str(locks_dir)},
        "ChadGI initialized successfully!",
    )

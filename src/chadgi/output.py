"""Output formatting for the chadgi CLI."""

import json
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape


def to_jsonable(data: Any) -> Any:
    """Convert models (and containers of models) to JSON-ready values."""
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", exclude_none=True)
    if isinstance(data, dict):
        return {key: to_jsonable(value) for key, value in data.items()}
    if isinstance(data, list | tuple):
        return [to_jsonable(item) for item in data]
    return data


def format_duration(seconds: int) -> str:
    """Format a duration in seconds (e.g., 3725 -> "1h 2m 5s")."""
    seconds = max(seconds, 0)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


@dataclass
class OutputContext:
    """Context for output formatting.

    In JSON mode, human-oriented output is suppressed and results are
    printed to stdout as a single JSON document.
    """

    console: Console
    json_mode: bool = False
    dry_run: bool = False

    def print(self, message: str = "", style: str | None = None) -> None:
        """Print message respecting output mode."""
        if not self.json_mode:
            self.console.print(message, style=style)

    def print_json(self, data: dict[str, Any]) -> None:
        """Print JSON data."""
        if self.json_mode:
            print(json.dumps(to_jsonable(data), indent=2, default=str))

    def result(self, data: dict[str, Any], message: str = "", success: bool = True) -> None:
        """Print a command result: JSON document, or a colored message."""
        if self.json_mode:
            self.print_json({"success": success, **data, "message": message})
        elif message:
            style = "green" if success else "red"
            self.console.print(f"[{style}]{escape(message)}[/{style}]")

    def error(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Print error in appropriate format."""
        if self.json_mode:
            self.print_json({"success": False, "error": message, **(data or {})})
        else:
            self.console.print(f"[red]Error: {escape(message)}[/red]")


# Global output context (set by cli.py main callback)
_ctx: OutputContext | None = None


def get_output_context() -> OutputContext:
    """Get the current output context.

    Returns a default OutputContext if not yet initialized by CLI.
    """
    if _ctx is None:
        return OutputContext(Console())
    return _ctx


def set_output_context(ctx: OutputContext) -> None:
    """Set the global output context. Called by CLI main callback."""
    global _ctx
    _ctx = ctx

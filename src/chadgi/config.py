"""Configuration management for ChadGI."""

import tomllib
from pathlib import Path

import tomli_w
from pydantic import BaseModel, Field, ValidationError

from .constants import (
    CONFIG_FILE,
    DEFAULT_LOCK_TIMEOUT_MINUTES,
    HEARTBEAT_INTERVAL_SECONDS,
    LOCKS_DIRECTORY,
)


class ConfigError(Exception):
    """Config file could not be read or is invalid."""


class LocksConfig(BaseModel):
    """Configuration for task locks."""

    timeout_minutes: float = Field(
        default=DEFAULT_LOCK_TIMEOUT_MINUTES,
        gt=0,
        description="Minutes without heartbeat before a lock is stale",
    )
    heartbeat_interval_seconds: float = Field(default=HEARTBEAT_INTERVAL_SECONDS, gt=0)
    directory: str = Field(
        default=LOCKS_DIRECTORY,
        description="Lock directory, relative to .chadgi (or absolute for shared volumes)",
    )


class ProjectConfig(BaseModel):
    """Project-level configuration."""

    name: str = "unnamed-project"


class ChadgiConfig(BaseModel):
    """Root configuration for ChadGI."""

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    locks: LocksConfig = Field(default_factory=LocksConfig)

    def locks_dir(self, chadgi_dir: Path) -> Path:
        """Resolve the lock directory against the .chadgi directory."""
        return chadgi_dir / self.locks.directory


def load_config(chadgi_dir: Path) -> ChadgiConfig:
    """Load config from .chadgi/config.toml.

    Args:
        chadgi_dir: Path to .chadgi directory

    Returns:
        Loaded configuration, or defaults if config.toml doesn't exist

    Raises:
        ConfigError: If the file is not valid TOML or fails validation
    """
    config_path = chadgi_dir / CONFIG_FILE
    if not config_path.exists():
        return ChadgiConfig()
    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
        return ChadgiConfig.model_validate(data)
    except (tomllib.TOMLDecodeError, ValidationError) as e:
        raise ConfigError(f"Invalid config {config_path}: {e}") from e


def write_config_template(chadgi_dir: Path, project_name: str = "your-project") -> Path:
    """Write default config.toml template.

    Args:
        chadgi_dir: Path to .chadgi directory
        project_name: Value for [project].name

    Returns:
        Path to the written config file
    """
    config_path = chadgi_dir / CONFIG_FILE
    template = {
        "project": {"name": project_name},
        "locks": {
            "timeout_minutes": DEFAULT_LOCK_TIMEOUT_MINUTES,
            "heartbeat_interval_seconds": HEARTBEAT_INTERVAL_SECONDS,
            "directory": LOCKS_DIRECTORY,
        },
    }
    with open(config_path, "wb") as f:
        tomli_w.dump(template, f)
    return config_path

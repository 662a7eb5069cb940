"""
PhaseGrid Configuration

Pydantic-backed configuration loaded from environment variables.
Uses PHASEGRID_ prefix for all environment variables.
"""

import os
import threading
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from phasegrid.errors import ConfigError


DEFAULT_DB_PATH = Path.home() / ".phasegrid" / "phasegrid.sqlite"


class Config(BaseModel):
    """
    Pydantic-backed configuration loaded from environment variables.

    Key env vars:
    - PHASEGRID_DB_PATH (default: ~/.phasegrid/phasegrid.sqlite)
    - PHASEGRID_LOG_LEVEL (default: WARNING)
    - PHASEGRID_LOG_JSON (default: off)
    - PHASEGRID_BATCH_SIZE (default: 3)
    - PHASEGRID_WORKTREES_DIR (default: .worktrees)
    """

    db_path: Path = Field(default=DEFAULT_DB_PATH)
    log_level: str = Field(default="WARNING")
    log_json: bool = Field(default=False)

    # Orchestration
    batch_size: int = Field(default=3)

    # Worktrees live in <repo parent>/<worktrees_dir>/<branch>
    worktrees_dir: str = Field(default=".worktrees")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator("batch_size")
    @classmethod
    def _positive_batch_size(cls, value: int) -> int:
        if value < 1:
            raise ValueError("batch_size must be at least 1")
        return value

    @field_validator("worktrees_dir")
    @classmethod
    def _flat_worktrees_dir(cls, value: str) -> str:
        if not value or "/" in value:
            raise ValueError("worktrees_dir must be a single directory name")
        return value


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


def load_config() -> Config:
    """
    Load PhaseGrid configuration from environment.

    Raises:
        ConfigError: If a variable cannot be parsed or fails validation
    """
    try:
        return Config(
            db_path=Path(os.environ.get("PHASEGRID_DB_PATH", str(DEFAULT_DB_PATH))).expanduser(),
            log_level=os.environ.get("PHASEGRID_LOG_LEVEL", "WARNING"),
            log_json=_parse_bool(os.environ.get("PHASEGRID_LOG_JSON")),
            batch_size=int(os.environ.get("PHASEGRID_BATCH_SIZE", "3")),
            worktrees_dir=os.environ.get("PHASEGRID_WORKTREES_DIR", ".worktrees"),
        )
    except ValueError as exc:
        # pydantic's ValidationError subclasses ValueError
        raise ConfigError(f"Invalid configuration: {exc}") from exc


# Singleton config instance (lazy loaded)
_config: Optional[Config] = None
_config_lock = threading.Lock()


def get_config() -> Config:
    """Get or create the singleton config instance."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                _config = load_config()
    return _config


def _reset_config_for_tests() -> None:
    """Reset the global config cache (tests only)."""
    global _config
    with _config_lock:
        _config = None

"""Configuration module for the NexusNotes data layer."""

import logging
import os
import platform
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator


# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config: survives reinstalls
_USER_ENV = Path.home() / ".nexusnotes" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

APP_DIR_NAME = "nexusnotes"
DEFAULT_DATABASE_FILENAME = "nexusnotes.sqlite"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def platform_data_dir() -> Path:
    """Return the platform's standard local-data location.

    - Windows: %LOCALAPPDATA% (falls back to ~/AppData/Local)
    - macOS: ~/Library/Application Support
    - Everything else: $XDG_DATA_HOME or ~/.local/share
    """
    system = platform.system()
    if system == "Windows":
        local_app_data = os.getenv("LOCALAPPDATA")
        if local_app_data:
            return Path(local_app_data)
        return Path.home() / "AppData" / "Local"
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support"
    xdg_data_home = os.getenv("XDG_DATA_HOME")
    if xdg_data_home:
        return Path(xdg_data_home)
    return Path.home() / ".local" / "share"


def default_app_data_dir() -> Path:
    """Per-application data directory under the platform data location."""
    return platform_data_dir() / APP_DIR_NAME


class NexusNotesConfig(BaseModel):
    """Configuration for the NexusNotes data layer."""

    # Directory holding the database file (and logs unless overridden)
    data_dir: Path = Field(
        default_factory=lambda: (
            Path(os.getenv("NEXUSNOTES_DATA_DIR"))
            if os.getenv("NEXUSNOTES_DATA_DIR")
            else default_app_data_dir()
        )
    )
    database_filename: str = Field(
        default_factory=lambda: os.getenv(
            "NEXUSNOTES_DATABASE_FILENAME", DEFAULT_DATABASE_FILENAME
        )
    )
    # SQLite is single-writer, so the pool holds one connection by default
    pool_size: int = Field(
        default_factory=lambda: int(os.getenv("NEXUSNOTES_POOL_SIZE", "1"))
    )
    pool_timeout: int = Field(
        default_factory=lambda: int(os.getenv("NEXUSNOTES_POOL_TIMEOUT", "30"))
    )
    # Insert the Inbox notebook and sample notes when the database is empty
    seed_default_data: bool = Field(
        default_factory=lambda: _env_flag("NEXUSNOTES_SEED_DEFAULT_DATA", "true")
    )
    # Append a row to the versions table on every note update
    record_versions: bool = Field(
        default_factory=lambda: _env_flag("NEXUSNOTES_RECORD_VERSIONS", "true")
    )
    log_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("NEXUSNOTES_LOG_DIR"))
            if os.getenv("NEXUSNOTES_LOG_DIR")
            else None
        )
    )
    # Name announced by the MCP server
    server_name: str = Field(default=os.getenv("NEXUSNOTES_SERVER_NAME", "nexus-notes"))

    @model_validator(mode="after")
    def _validate_pool(self) -> "NexusNotesConfig":
        """Validate connection pool settings."""
        if self.pool_size < 1:
            raise ValueError("pool_size must be >= 1")
        if self.pool_timeout < 0:
            raise ValueError("pool_timeout must be >= 0")
        return self

    def get_data_dir(self) -> Path:
        """Get the absolute data directory, creating it if needed."""
        data_dir = self.data_dir.expanduser()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def get_database_path(self) -> Path:
        """Get the absolute path to the SQLite database file."""
        return self.get_data_dir() / self.database_filename

    def get_db_url(self) -> str:
        """Get the database URL for SQLite."""
        return f"sqlite:///{self.get_database_path()}"

    def get_log_dir(self) -> Path:
        """Get the log directory (defaults to <data_dir>/logs)."""
        if self.log_dir is not None:
            return self.log_dir.expanduser()
        return self.data_dir.expanduser() / "logs"


# Create a global config instance
config = NexusNotesConfig()

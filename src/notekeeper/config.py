"""Configuration module for the notekeeper storage core."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from notekeeper.exceptions import ConfigurationError

# Load environment variables from a .env file in the working directory,
# then from the user-level data directory.
load_dotenv()
load_dotenv(Path.home() / ".notekeeper" / ".env")


logger = logging.getLogger(__name__)

# Hard cap on ranked search results
MAX_SEARCH_RESULTS = 50

# Longest identifier accepted for notes and folders
MAX_ID_LENGTH = 100

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class NotekeeperConfig(BaseModel):
    """Configuration for the notekeeper storage core."""

    # Host-provided application data directory
    data_dir: Path = Field(
        default_factory=lambda: Path(
            os.getenv("NOTEKEEPER_DATA_DIR", str(Path.home() / ".notekeeper"))
        )
    )
    # Database file name, relative to data_dir unless absolute
    database_name: str = Field(
        default_factory=lambda: os.getenv("NOTEKEEPER_DATABASE_NAME", "notekeeper.db")
    )
    search_limit: int = Field(
        default_factory=lambda: int(
            os.getenv("NOTEKEEPER_SEARCH_LIMIT", str(MAX_SEARCH_RESULTS))
        )
    )
    # How long SQLite waits on a locked database file before failing
    busy_timeout_ms: int = Field(
        default_factory=lambda: int(os.getenv("NOTEKEEPER_BUSY_TIMEOUT_MS", "5000"))
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv("NOTEKEEPER_LOG_LEVEL", "INFO").upper()
    )
    log_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("NOTEKEEPER_LOG_DIR"))
            if os.getenv("NOTEKEEPER_LOG_DIR")
            else None
        )
    )

    model_config = {"validate_assignment": True}

    @model_validator(mode="after")
    def _validate_limits(self) -> "NotekeeperConfig":
        """Reject values the storage core cannot honour."""
        if not 1 <= self.search_limit <= MAX_SEARCH_RESULTS:
            raise ConfigurationError(
                f"search_limit must be between 1 and {MAX_SEARCH_RESULTS}",
                config_key="search_limit",
            )
        if self.busy_timeout_ms < 0:
            raise ConfigurationError(
                "busy_timeout_ms must be >= 0", config_key="busy_timeout_ms"
            )
        if self.log_level not in _LOG_LEVELS:
            raise ConfigurationError(
                f"log_level must be one of {', '.join(_LOG_LEVELS)}",
                config_key="log_level",
            )
        if not self.database_name.strip():
            raise ConfigurationError(
                "database_name cannot be empty", config_key="database_name"
            )
        return self

    def get_database_path(self) -> Path:
        """Resolve the database file path.

        The special name ``:memory:`` is passed through unchanged.
        """
        if self.database_name == ":memory:":
            return Path(self.database_name)
        path = Path(self.database_name)
        if path.is_absolute():
            return path
        return self.data_dir / path

    def get_log_dir(self) -> Path:
        """Get the directory for rotating log files."""
        return self.log_dir if self.log_dir else self.data_dir / "logs"

    def ensure_data_dir(self) -> Path:
        """Create the data directory if it does not exist yet."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        return self.data_dir


# Create a global config instance
config = NotekeeperConfig()

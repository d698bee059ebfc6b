"""Configuration module for notesync."""

import logging
import os
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config, shared by every checkout on this machine
_USER_ENV = Path.home() / ".notesync" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

# Hard ceiling imposed by the remote document store on batched writes
MAX_BATCH_SIZE = 500


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class TieBreak(str, Enum):
    """Which replica wins when both copies carry the same ``updated_at``."""

    CACHE_WINS = "cache"  # push the cached copy to the network
    NETWORK_WINS = "network"  # overwrite the cached copy with the network one


class NoteSyncConfig(BaseModel):
    """Configuration for the note cache, the remote store and the sync engine."""

    # Base directory for relative paths
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("NOTESYNC_BASE_DIR", "."))
    )
    # Local cache database
    database_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("NOTESYNC_DATABASE_PATH", "data/db/notes.db")
        )
    )
    # When True, the cache lives in an in-memory SQLite database (tests, demos)
    in_memory_db: bool = Field(
        default_factory=lambda: _env_flag("NOTESYNC_IN_MEMORY_DB", "false")
    )
    # JSON file used as the remote document store by the command line tool
    remote_store_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("NOTESYNC_REMOTE_STORE_PATH", "data/remote/notes.json")
        )
    )
    # Single authenticated identity both stores are scoped to
    user_id: str = Field(
        default_factory=lambda: os.getenv("NOTESYNC_USER_ID", "local-user")
    )
    # Number of notes per search page
    page_size: int = Field(
        default_factory=lambda: int(os.getenv("NOTESYNC_PAGE_SIZE", "30"))
    )
    # Chunk size for batched network writes (capped by MAX_BATCH_SIZE)
    network_batch_limit: int = Field(
        default_factory=lambda: int(
            os.getenv("NOTESYNC_NETWORK_BATCH_LIMIT", str(MAX_BATCH_SIZE))
        )
    )
    # Network mirroring: run tasks in the caller's thread instead of a worker
    mirror_inline: bool = Field(
        default_factory=lambda: _env_flag("NOTESYNC_MIRROR_INLINE", "false")
    )
    mirror_max_retries: int = Field(
        default_factory=lambda: int(os.getenv("NOTESYNC_MIRROR_MAX_RETRIES", "3"))
    )
    # Base delay in seconds, multiplied by the attempt number
    mirror_retry_delay: float = Field(
        default_factory=lambda: float(
            os.getenv("NOTESYNC_MIRROR_RETRY_DELAY", "0.5")
        )
    )
    sync_tie_break: TieBreak = Field(
        default_factory=lambda: TieBreak(
            os.getenv("NOTESYNC_SYNC_TIE_BREAK", TieBreak.CACHE_WINS.value)
        )
    )
    # Log every per-note reconciliation decision at INFO instead of DEBUG
    log_sync_decisions: bool = Field(
        default_factory=lambda: _env_flag("NOTESYNC_LOG_SYNC_DECISIONS", "false")
    )
    dispatcher_workers: int = Field(
        default_factory=lambda: int(os.getenv("NOTESYNC_DISPATCHER_WORKERS", "4"))
    )

    model_config = {"validate_assignment": True}

    @model_validator(mode="after")
    def _validate_limits(self) -> "NoteSyncConfig":
        """Reject settings the engine cannot honour."""
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")
        if not 1 <= self.network_batch_limit <= MAX_BATCH_SIZE:
            raise ValueError(
                f"network_batch_limit must be between 1 and {MAX_BATCH_SIZE}"
            )
        if self.mirror_max_retries < 0:
            raise ValueError("mirror_max_retries must be >= 0")
        if self.mirror_retry_delay < 0:
            raise ValueError("mirror_retry_delay must be >= 0")
        if self.dispatcher_workers < 1:
            raise ValueError("dispatcher_workers must be >= 1")
        if not self.user_id.strip():
            raise ValueError("user_id cannot be empty")
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_db_url(self) -> str:
        """Get the database URL for the SQLite cache."""
        if self.in_memory_db:
            return "sqlite:///:memory:"
        db_path = self.get_absolute_path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_path}"

    def get_remote_store_path(self) -> Path:
        """Get the absolute path of the JSON remote store, creating its directory."""
        path = self.get_absolute_path(self.remote_store_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path


# Default instance for the command line entry point
config = NoteSyncConfig()

"""Task store configuration with environment variable loading."""

import os
from pathlib import Path
from pydantic import BaseModel, Field
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _default_sqlite_path() -> str:
    return os.getenv(
        "MICROWIN_SQLITE_PATH", str(Path.home() / ".microwin" / "microwin.db")
    )


class StoreConfig(BaseModel):
    """Configuration for task persistence."""

    backend: str = Field(
        default_factory=lambda: os.getenv("MICROWIN_STORE_BACKEND", "sqlite"),
        description="Store backend: memory, sqlite or redis",
    )

    # SQLite Configuration
    sqlite_path: str = Field(
        default_factory=_default_sqlite_path,
        description="SQLite database file",
    )

    # Redis Configuration
    redis_url: str = Field(
        default_factory=lambda: os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        description="Redis connection URL",
    )
    connection_pool_size: int = Field(
        default_factory=lambda: int(os.getenv("CONNECTION_POOL_SIZE", "10")),
        description="Connection pool size for Redis",
    )
    user_id: str = Field(
        default_factory=lambda: os.getenv("MICROWIN_USER_ID", "default"),
        description="Namespace for keys and channels in shared backends",
    )

    # Orchestrator behaviour
    save_retries: int = Field(
        default_factory=lambda: int(os.getenv("MICROWIN_SAVE_RETRIES", "1")),
        ge=0,
        description="Extra attempts for a failed save before notifying",
    )

"""Centralised settings for the linkaudit engine.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("LINKAUDIT_WORKSPACE", Path.home() / ".linkaudit_data")
        )
    )
    store_backend: str = field(
        default_factory=lambda: os.environ.get("STORE_BACKEND", "memory")
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "linkaudit.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Page fetch / link verification
    # ------------------------------------------------------------------
    page_timeout: float = field(
        default_factory=lambda: float(os.environ.get("PAGE_FETCH_TIMEOUT", "10.0"))
    )
    link_timeout: float = field(
        default_factory=lambda: float(os.environ.get("LINK_CHECK_TIMEOUT", "5.0"))
    )
    max_concurrent_checks: int = field(
        default_factory=lambda: int(os.environ.get("LINK_CHECK_CONCURRENCY", "10"))
    )
    link_check_retries: int = field(
        default_factory=lambda: int(os.environ.get("LINK_CHECK_RETRIES", "0"))
    )
    user_agent: str = field(
        default_factory=lambda: os.environ.get(
            "LINKAUDIT_USER_AGENT", "Mozilla/5.0 (compatible; linkaudit/1.0)"
        )
    )

    # ------------------------------------------------------------------
    # Runtime environment / logging
    # ------------------------------------------------------------------
    environment: str = field(
        default_factory=lambda: os.environ.get("APP_ENV", "development")
    )
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO")
    )
    log_file: str = field(
        default_factory=lambda: os.environ.get("LOG_FILE", "")
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton, import this everywhere:
#   from linkaudit.config import settings
settings = Settings()

"""Configuration and environment handling for outreachboard."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


class ApiConfig:
    """Backend API configuration."""

    def __init__(self):
        self.base_url: Optional[str] = os.getenv("OB_API_BASE_URL")
        self.token: Optional[str] = os.getenv("OB_API_TOKEN")
        self.timeout_s: float = float(os.getenv("OB_API_TIMEOUT_S", "30"))
        self.max_retries: int = int(os.getenv("OB_API_MAX_RETRIES", "2"))


class Config:
    """Central configuration object."""

    def __init__(self):
        # Load .env file if it exists
        env_path = Path(__file__).parent.parent.parent / ".env"
        if env_path.exists():
            load_dotenv(env_path)

        self.project_root = Path(__file__).parent.parent.parent

        # Offline data directory (JSON snapshots per project)
        self.data_dir: Path = Path(os.getenv("OB_DATA_DIR", "data"))
        if not self.data_dir.is_absolute():
            self.data_dir = self.project_root / self.data_dir

        # Paging
        self.page_size: int = int(os.getenv("OB_PAGE_SIZE", "50"))
        self.client_fetch_limit: int = int(os.getenv("OB_CLIENT_FETCH_LIMIT", "10000"))

        # Per-project snapshot cache bound
        self.snapshot_cache_size: int = int(os.getenv("OB_SNAPSHOT_CACHE_SIZE", "32"))

        # Logging
        self.log_level: str = os.getenv("OB_LOG_LEVEL", "INFO")

        self.api = ApiConfig()


# Global config instance
config = Config()

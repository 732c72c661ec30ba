"""Configuration management."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    """Application configuration."""

    # API
    OPENLIBRARY_BASE_URL = os.getenv("OPENLIBRARY_BASE_URL", "https://openlibrary.org")
    USER_AGENT = os.getenv("USER_AGENT", "BookSearchExplorer/1.0 (+https://openlibrary.org/developers/api)")

    # Persistence
    DATA_DIR = os.getenv("DATA_DIR", "data")

    @property
    def DATA_PATH(self) -> Path:
        """Directory holding favorites.txt and notes.json."""
        return Path(self.DATA_DIR)

    # Defaults
    DEFAULT_TIMEOUT = int(os.getenv("DEFAULT_TIMEOUT", "10"))
    DEFAULT_MAX_RETRIES = int(os.getenv("DEFAULT_MAX_RETRIES", "3"))
    DEFAULT_BACKOFF = float(os.getenv("DEFAULT_BACKOFF", "1.0"))
    DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
    POLL_INTERVAL = float(os.getenv("POLL_INTERVAL", "0.1"))
    MAX_CONCURRENT = int(os.getenv("MAX_CONCURRENT", "5"))

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

"""Configuration management for Lexis."""

# This module centralizes all environment variable loading and configuration
# for the Lexis backend, including storage, cache backend and selection timeouts.

from dataclasses import dataclass
import os
from pathlib import Path

from dotenv import load_dotenv

from lexis.constants import ALGORITHMIC_CACHE_TTL, DEFAULT_RANDOM_PERCENTAGE, RANDOM_CACHE_TTL

# Word store calls slower than this are treated as a store failure
DEFAULT_STORE_TIMEOUT = 5.0

CACHE_BACKENDS = ("memory", "redis")


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    # Database
    database_path: str = "data/lexis.db"

    # Selection cache
    cache_backend: str = "memory"  # memory or redis
    redis_url: str = "redis://localhost:6379/0"
    algorithmic_cache_ttl: int = ALGORITHMIC_CACHE_TTL
    random_cache_ttl: int = RANDOM_CACHE_TTL

    # Selection
    store_timeout_seconds: float = DEFAULT_STORE_TIMEOUT
    default_random_percentage: int = DEFAULT_RANDOM_PERCENTAGE

    # Logging
    log_level: str = "INFO"

    @staticmethod
    def _safe_int(value: str, default: int = 0) -> int:
        """Safely parse an integer, returning default if invalid."""
        try:
            return int(value)
        except (ValueError, TypeError):
            return default

    @staticmethod
    def _safe_float(value: str, default: float = 0.0) -> float:
        """Safely parse a float, returning default if invalid."""
        try:
            return float(value)
        except (ValueError, TypeError):
            return default

    @classmethod
    def from_env(cls, env_file: str | None = None) -> "Config":
        """Load configuration from environment variables."""
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        cache_backend = os.environ.get("CACHE_BACKEND", "memory").lower()
        if cache_backend not in CACHE_BACKENDS:
            cache_backend = "memory"

        return cls(
            database_path=os.environ.get("DATABASE_PATH", "data/lexis.db"),
            cache_backend=cache_backend,
            redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379/0"),
            algorithmic_cache_ttl=cls._safe_int(
                os.environ.get("ALGORITHMIC_CACHE_TTL", str(ALGORITHMIC_CACHE_TTL)), ALGORITHMIC_CACHE_TTL
            ),
            random_cache_ttl=cls._safe_int(
                os.environ.get("RANDOM_CACHE_TTL", str(RANDOM_CACHE_TTL)), RANDOM_CACHE_TTL
            ),
            store_timeout_seconds=cls._safe_float(
                os.environ.get("STORE_TIMEOUT_SECONDS", str(DEFAULT_STORE_TIMEOUT)), DEFAULT_STORE_TIMEOUT
            ),
            default_random_percentage=cls._safe_int(
                os.environ.get("DEFAULT_RANDOM_PERCENTAGE", str(DEFAULT_RANDOM_PERCENTAGE)),
                DEFAULT_RANDOM_PERCENTAGE,
            ),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )

    def ensure_database_dir(self) -> None:
        """Ensure the database directory exists."""
        Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)

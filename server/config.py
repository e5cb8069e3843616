"""
Centralized configuration for the Scramble tracker server.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.PORT)
    print(config.game_defaults.hole_count)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def get_env_float(key: str, default: float = 0.0) -> float:
    """Get float environment variable."""
    try:
        return float(os.environ.get(key, str(default)))
    except ValueError:
        return default


@dataclass
class GameDefaults:
    """Default game settings."""
    hole_count: int = 18
    min_players: int = 2


@dataclass
class ServerConfig:
    """Server configuration."""
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Storage
    POSTGRES_URL: str = ""
    REDIS_URL: str = "redis://localhost:6379/0"

    # Error tracking
    SENTRY_DSN: str = ""

    # Course lookup API
    COURSE_API_URL: str = "https://api.golfcourseapi.com/v1"
    COURSE_API_KEY: str = ""
    COURSE_API_TIMEOUT: float = 10.0
    COURSE_QUERY_MIN_LENGTH: int = 3

    # History
    HISTORY_LIMIT: int = 10

    # Outbox for completed games whose final write failed
    OUTBOX_MAX_ATTEMPTS: int = 5
    OUTBOX_FLUSH_SECONDS: int = 60

    # Game defaults
    game_defaults: GameDefaults = field(default_factory=GameDefaults)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        return cls(
            HOST=get_env("HOST", "0.0.0.0"),
            PORT=get_env_int("PORT", 8000),
            DEBUG=get_env_bool("DEBUG", False),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            POSTGRES_URL=get_env("POSTGRES_URL", ""),
            REDIS_URL=get_env("REDIS_URL", "redis://localhost:6379/0"),
            SENTRY_DSN=get_env("SENTRY_DSN", ""),
            COURSE_API_URL=get_env("COURSE_API_URL", "https://api.golfcourseapi.com/v1"),
            COURSE_API_KEY=get_env("COURSE_API_KEY", ""),
            COURSE_API_TIMEOUT=get_env_float("COURSE_API_TIMEOUT", 10.0),
            COURSE_QUERY_MIN_LENGTH=get_env_int("COURSE_QUERY_MIN_LENGTH", 3),
            HISTORY_LIMIT=get_env_int("HISTORY_LIMIT", 10),
            OUTBOX_MAX_ATTEMPTS=get_env_int("OUTBOX_MAX_ATTEMPTS", 5),
            OUTBOX_FLUSH_SECONDS=get_env_int("OUTBOX_FLUSH_SECONDS", 60),
            game_defaults=GameDefaults(
                hole_count=get_env_int("DEFAULT_HOLE_COUNT", 18),
                min_players=get_env_int("MIN_PLAYERS", 2),
            ),
        )


# Global config instance - loaded once at module import
config = ServerConfig.from_env()


def reload_config() -> ServerConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ServerConfig.from_env()
    return config

"""
Centralized configuration for the Uno game server.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.PORT)
    print(config.game_defaults.hand_size)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

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


@dataclass
class GameDefaults:
    """Default rule settings for newly created rooms."""
    hand_size: int = 7
    stacking: bool = True
    force_play: bool = False
    draw_to_play: bool = True
    public: bool = False


@dataclass
class ServerConfig:
    """Server configuration."""
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"
    SENTRY_DSN: str = ""

    # Room settings
    MAX_PLAYERS_PER_ROOM: int = 4
    ROOM_CODE_LENGTH: int = 7
    INACTIVITY_LIMIT_SECONDS: int = 300

    # Allowed browser origins for the HTTP endpoints
    CORS_ORIGINS: list[str] = field(default_factory=lambda: ["http://localhost:8080"])

    game_defaults: GameDefaults = field(default_factory=GameDefaults)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        origins_str = get_env("CORS_ORIGINS", "http://localhost:8080")
        origins = [o.strip() for o in origins_str.split(",") if o.strip()]

        return cls(
            HOST=get_env("HOST", "0.0.0.0"),
            PORT=get_env_int("PORT", 3000),
            DEBUG=get_env_bool("DEBUG", False),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            SENTRY_DSN=get_env("SENTRY_DSN", ""),
            MAX_PLAYERS_PER_ROOM=get_env_int("MAX_PLAYERS_PER_ROOM", 4),
            ROOM_CODE_LENGTH=get_env_int("ROOM_CODE_LENGTH", 7),
            INACTIVITY_LIMIT_SECONDS=get_env_int("INACTIVITY_LIMIT_SECONDS", 300),
            CORS_ORIGINS=origins,
            game_defaults=GameDefaults(
                hand_size=get_env_int("DEFAULT_HAND_SIZE", 7),
                stacking=get_env_bool("DEFAULT_STACKING", True),
                force_play=get_env_bool("DEFAULT_FORCE_PLAY", False),
                draw_to_play=get_env_bool("DEFAULT_DRAW_TO_PLAY", True),
                public=get_env_bool("DEFAULT_PUBLIC", False),
            ),
        )


# Global config instance - loaded once at module import
config = ServerConfig.from_env()


def reload_config() -> ServerConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ServerConfig.from_env()
    return config

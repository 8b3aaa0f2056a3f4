"""
Centralized configuration for the Crazy Eights server.

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
from typing import Optional

from dotenv import load_dotenv

from constants import (
    CPU_DRAW_DELAY,
    CPU_THINK_DELAY,
    DEAL_STAGGER,
    END_TURN_DELAY,
    HAND_SIZE,
)

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


def get_env_optional_int(key: str) -> Optional[int]:
    """Get integer environment variable, or None if unset or invalid."""
    raw = os.environ.get(key, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


@dataclass
class GameDefaults:
    """Default game settings, copied into GameOptions for every new game."""
    hand_size: int = HAND_SIZE
    deal_stagger: float = DEAL_STAGGER
    end_turn_delay: float = END_TURN_DELAY
    cpu_think_delay: float = CPU_THINK_DELAY
    cpu_draw_delay: float = CPU_DRAW_DELAY
    deck_seed: Optional[int] = None  # None = fresh random seed per session


@dataclass
class ServerConfig:
    """Server configuration."""
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Session settings
    MAX_SESSIONS: int = 100

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
            MAX_SESSIONS=get_env_int("MAX_SESSIONS", 100),
            game_defaults=GameDefaults(
                hand_size=get_env_int("HAND_SIZE", HAND_SIZE),
                deal_stagger=get_env_float("DEAL_STAGGER", DEAL_STAGGER),
                end_turn_delay=get_env_float("END_TURN_DELAY", END_TURN_DELAY),
                cpu_think_delay=get_env_float("CPU_THINK_DELAY", CPU_THINK_DELAY),
                cpu_draw_delay=get_env_float("CPU_DRAW_DELAY", CPU_DRAW_DELAY),
                deck_seed=get_env_optional_int("DECK_SEED"),
            ),
        )


# Global config instance - loaded once at module import
config = ServerConfig.from_env()


def reload_config() -> ServerConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ServerConfig.from_env()
    return config

"""
================================================================================
TCWatch v1.0 - Configuration
================================================================================
Runtime settings read from the environment (.env is loaded by python-dotenv).

Provider credentials:
  - TMDB_API_KEY        TMDb v3 key (primary metadata)
  - WATCHMODE_API_KEY   Watchmode key (streaming availability)
  - TVDB_API_KEY        TheTVDB v4 key
  - TVDB_PIN            TheTVDB subscriber PIN (optional)

TVMaze and Wikidata are public and need no credentials.
================================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


def _env_flag(name: str, default: str = 'true') -> bool:
    return os.environ.get(name, default).lower() in ('1', 'true', 'yes', 'on')


def _env_str(name: str) -> Optional[str]:
    value = os.environ.get(name, '').strip()
    return value or None


@dataclass(frozen=True)
class Settings:
    """Immutable snapshot of engine configuration."""
    tmdb_api_key: Optional[str] = None
    watchmode_api_key: Optional[str] = None
    tvdb_api_key: Optional[str] = None
    tvdb_pin: Optional[str] = None
    redis_url: Optional[str] = None
    http_timeout: float = 10.0
    max_concurrent_aggregations: int = 4
    response_cache_enabled: bool = True
    log_level: str = "INFO"
    log_file: Optional[str] = None


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        env_file: Optional path to an extra .env file to load first

    Returns:
        Settings instance
    """
    if env_file:
        load_dotenv(env_file, override=False)

    return Settings(
        tmdb_api_key=_env_str('TMDB_API_KEY'),
        watchmode_api_key=_env_str('WATCHMODE_API_KEY'),
        tvdb_api_key=_env_str('TVDB_API_KEY'),
        tvdb_pin=_env_str('TVDB_PIN'),
        redis_url=_env_str('REDIS_URL'),
        http_timeout=float(os.environ.get('HTTP_TIMEOUT', '10')),
        max_concurrent_aggregations=max(1, int(os.environ.get('MAX_CONCURRENT_AGGREGATIONS', '4'))),
        response_cache_enabled=_env_flag('RESPONSE_CACHE_ENABLED'),
        log_level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
        log_file=_env_str('LOG_FILE'),
    )

"""
Environment configuration, read lazily so a missing credential only fails
the requests that need it
"""
from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Field names match the environment variables case-insensitively, e.g. GFORM_SECRET
    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True, extra="ignore")

    gform_secret: Optional[str] = None
    github_access_token: Optional[str] = None
    github_username: Optional[str] = None
    aimodel_name: str = "google-gla:gemini-2.5-flash"
    default_branch: str = "main"
    publish_max_attempts: int = 3
    publish_base_delay: float = 1.0
    notify_max_attempts: int = 5
    notify_base_delay: float = 1.0
    verify_poll_interval: float = 5.0
    verify_timeout: float = 120.0
    http_timeout: float = 30.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment"""
    get_settings.cache_clear()

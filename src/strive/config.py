from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./strive.db"
    activity_api_url: str = "http://localhost:8001"
    activity_api_token: str = ""
    api_timeout_seconds: float = 30.0

    # Fix filter thresholds
    min_movement_meters: float = 5.0
    max_accuracy_meters: float = 30.0

    # Location stream cadence
    foreground_interval_ms: int = 1000
    foreground_distance_meters: float = 5.0
    background_interval_ms: int = 2000
    background_distance_meters: float = 5.0

    tick_seconds: float = 1.0
    require_background_permission: bool = True  # False: record foreground-only

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings

"""
Configuration management for the Backtest Engine service
"""

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Service configuration settings"""

    model_config = SettingsConfigDict(env_prefix="BACKTEST_")

    # Service Configuration
    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Execution
    max_workers: int = 4  # Background backtest / sweep threads
    progress_interval: int = 100  # Candles between progress callbacks

    # Defaults for requests that omit them
    default_initial_balance: float = 10000.0


@lru_cache()
def get_settings() -> EngineSettings:
    """Return the process-wide settings instance"""
    return EngineSettings()

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal
from functools import lru_cache


LOG_LEVELS = {"debug", "info", "warning", "error", "critical"}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PAYMENTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = "Payments Engine"
    app_version: str = "1.0.0"

    # Logging settings
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"
    noop_log_level: str = "debug"  # level for ignored records (duplicates, unknown references)

    # Snapshot settings
    amount_precision: int = 4
    rounding: Literal["ROUND_HALF_EVEN", "ROUND_DOWN"] = "ROUND_HALF_EVEN"

    # Processing settings
    collect_rejections: bool = True
    shard_count: int = 1
    shard_queue_size: int = 1024

    @field_validator("log_level", "noop_log_level")
    @classmethod
    def validate_log_level(cls, v):
        if v.lower() not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v}")
        return v

    @field_validator("amount_precision")
    @classmethod
    def validate_amount_precision(cls, v):
        if not 0 <= v <= 28:
            raise ValueError("Amount precision must be between 0 and 28")
        return v

    @field_validator("shard_count", "shard_queue_size")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("Must be at least 1")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Environment-specific configurations
class DevelopmentSettings(Settings):
    log_level: str = "DEBUG"
    log_format: Literal["json", "text"] = "text"
    noop_log_level: str = "info"


class ProductionSettings(Settings):
    log_level: str = "INFO"
    collect_rejections: bool = False


class TestingSettings(Settings):
    log_level: str = "WARNING"  # Reduce noise in tests
    log_format: Literal["json", "text"] = "text"


def get_settings_for_environment(env: str = "development") -> Settings:
    """Get settings for specific environment."""
    settings_map = {
        "development": DevelopmentSettings,
        "production": ProductionSettings,
        "testing": TestingSettings,
    }

    settings_class = settings_map.get(env.lower(), Settings)
    return settings_class()

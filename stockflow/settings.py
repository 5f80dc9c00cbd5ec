from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./stockflow.db"
    LOG_LEVEL: str = "INFO"
    CREATE_TABLES: bool = True

    # Used when a product has no low_stock_threshold of its own
    DEFAULT_LOW_STOCK_THRESHOLD: int = Field(default=10, ge=0)
    SALES_WINDOW_DAYS: int = Field(default=30, ge=1, le=365)
    ALERTS_REQUIRE_RECENT_SALES: bool = True


@lru_cache
def get_settings() -> Settings:
    return Settings()

"""Application configuration using pydantic-settings."""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )
    
    # Database
    database_url: str = "sqlite:///./data/hotelrates.db"
    
    # Rule store
    rule_store_backend: Literal["sql", "postgrest"] = "sql"
    postgrest_url: Optional[str] = None
    postgrest_api_key: Optional[str] = None
    store_timeout_seconds: float = Field(default=10.0, gt=0)
    
    # Rule cache (rate windows and seasonal rates)
    rule_cache_ttl_seconds: float = Field(default=120.0, ge=60, le=300)
    rule_cache_max_entries: int = Field(default=1000, gt=0)
    
    # Batch re-pricing
    batch_concurrency: int = Field(default=8, gt=0)
    
    # Logging
    log_level: str = "INFO"
    
    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000


settings = Settings()

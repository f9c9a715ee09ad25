from functools import lru_cache
from pathlib import Path

from pydantic import PostgresDsn, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database - allow both PostgreSQL and SQLite for development
    database_url: PostgresDsn | str = "sqlite:///./clipfeed.db"
    database_pool_size: int = 20
    database_max_overflow: int = 40

    # Application
    app_name: str = "clipfeed"
    debug: bool = False
    log_level: str = "INFO"
    logs_dir: Path = Path("./logs")

    # Worker configuration
    worker_timeout_seconds: int = 300
    max_retries: int = 3

    # HTTP client
    http_timeout_seconds: int = 30
    http_max_retries: int = 3
    http_user_agent: str = "Mozilla/5.0 (compatible; clipfeed/1.0)"

    # Link shorteners followed before platform matching
    shortener_domains: list[str] = ["t.co", "bit.ly", "goo.gl"]

    # External services
    google_api_key: str | None = None

    # Video analysis
    analysis_model: str = "google-gla:gemini-2.5-flash"
    analysis_timeout_seconds: int = 540
    analysis_max_video_bytes: int = 20 * 1024 * 1024

    # Discussion replies
    reply_trigger_phrase: str = "@clipfeed explain"
    bot_username: str = "clipfeed_bot"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        if not v:
            raise ValueError("DATABASE_URL must be set")
        # Allow SQLite for development
        if isinstance(v, str) and v.startswith("sqlite:"):
            return v
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

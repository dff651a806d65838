# app/core/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./sales.db"

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://127.0.0.1:3000",
        "http://localhost:3000",
    ]

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    SALES_WRITE_RATE_LIMIT: str = "30/minute"

    # Product cache
    PRODUCT_CACHE_TTL_SECONDS: int = 300
    PRODUCT_CACHE_MAX_SIZE: int = 1000
    REDIS_URL: str | None = None

    # Listing
    DEFAULT_PAGE_SIZE: int = 10

    # Problem documents (RFC 7807)
    PROBLEM_TYPE_BASE_URL: str = "https://api.example.com/problems"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="forbid",
    )


settings = Settings()

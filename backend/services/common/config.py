"""
Configuration management for the Masjid Finder backend
"""
from pathlib import Path
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings"""
    # Database - MUST be set via environment or .env, no defaults
    database_url: str
    auto_create_tables: bool = True  # create missing tables on API startup

    # Bearer tokens - MUST be set via environment or .env
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    token_ttl_days: int = 30

    # Password hashing (passlib scheme names, first one is used for new hashes)
    password_schemes: list[str] = ["pbkdf2_sha256"]

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 5000
    api_workers: int = 1

    # "development" exposes internal error details in 500 responses
    environment: str = "production"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]
    cors_origin_regex: str | None = r"https://.*\.vercel\.app"

    # Phone numbers without a country prefix are parsed for this region
    default_phone_region: str = "US"

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = Path(__file__).parent.parent.parent.parent / ".env"
        case_sensitive = False

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()

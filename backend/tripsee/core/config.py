"""
Core configuration module for the Tripsee catalog service.
Settings are read from environment variables (and an optional .env file).
"""

from pydantic_settings import BaseSettings
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Defaults are suitable for local development against a local upstream API.
    """

    # Application
    app_name: str = "Tripsee Catalog Service"
    app_version: str = "1.0.0"
    environment: str = "production"
    debug: bool = False

    # Database (city filter registry only; packages live upstream)
    database_url: str = "sqlite:///./tripsee.db"
    database_pool_size: int = 10
    database_max_overflow: int = 20
    database_pool_recycle: int = 1800
    database_pool_pre_ping: bool = True

    # Upstream admin API (the source of truth for packages and itineraries)
    upstream_base_url: str = "http://localhost:3000"
    upstream_timeout_seconds: float = 10.0

    # Package cache refresh
    refresh_interval_seconds: int = 30
    refresh_on_startup: bool = True

    # API Configuration
    api_prefix: str = "/api/v1"
    api_host: str = "0.0.0.0"
    api_port: int = 8890
    api_workers: int = 1

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"

    # CORS - restrict to known frontend origins (extend via .env)
    cors_origins: list = ["http://localhost:3000", "http://127.0.0.1:3000"]
    cors_allow_credentials: bool = False
    cors_allow_methods: list = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
    cors_allow_headers: list = ["Content-Type", "Accept", "X-API-Key"]

    # Browse sessions
    browse_session_ttl_minutes: int = 30
    max_browse_sessions: int = 5000

    # Contact prompt
    contact_prompt_interval_seconds: int = 30

    # Admin API key for protected endpoints (MUST be set via .env in production)
    admin_api_key: str = "CHANGE-ME-IN-DOTENV"

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()

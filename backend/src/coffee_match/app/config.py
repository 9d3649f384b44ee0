"""Application configuration via Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

# Resolve .env from backend/ regardless of CWD
_ENV_FILE = Path(__file__).resolve().parents[3] / ".env"


class Settings(BaseSettings):
    """Central configuration loaded from environment variables / .env file."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./coffee_match.db"

    # Auth / JWT (tokens are issued by the auth service; we only verify them)
    jwt_secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 1440

    # SendGrid
    sendgrid_api_key: str = ""
    email_from: str = ""
    email_from_name: str = "Coffee Match"
    match_accepted_template_id: str = ""

    # Matching cadence
    match_timezone: str = "Europe/London"
    match_run_weekday: int = 0  # Monday
    match_run_hour: int = 9
    match_expiry_days: int = 5
    match_org_timeout_seconds: float = 300.0
    scheduler_enabled: bool = True

    # Detached work (reactive rematches, manual scheduler runs)
    background_max_concurrency: int = 8

    # CORS / Frontend
    cors_origins: str = "http://localhost:3000"

    # General
    debug: bool = True

    model_config = {"env_file": str(_ENV_FILE), "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list.

        In debug mode, returns ["*"] to allow any origin.
        """
        if self.debug:
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()

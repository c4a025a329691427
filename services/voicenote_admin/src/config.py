"""Configuration for Voicenote Admin service."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Service configuration loaded from environment variables."""

    # Storage (shared with the intake service)
    voicenotes_dir: str = "/data/voicenotes"
    public_base_url: str = "http://localhost:8000/voicenotes"

    # Single administrative account
    admin_username: str = "admin"
    admin_password: str = ""

    # Display
    display_timezone: str = "UTC"
    date_format: str = "%B %d, %Y %H:%M"

    # Server
    host: str = "0.0.0.0"
    port: int = 8081
    debug: bool = False
    log_level: str = "INFO"
    log_json: bool = False

    model_config = {"env_prefix": "", "case_sensitive": False}


def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

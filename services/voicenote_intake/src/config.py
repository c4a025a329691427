"""Configuration for Voicenote Intake service."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Service configuration loaded from environment variables."""

    # Redis (rate limit table)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 1  # Separate DB for rate limiting
    option_store: str = "redis"  # 'redis' or 'memory'

    # Elasticsearch
    elasticsearch_host: str = "localhost"
    elasticsearch_port: int = 9200
    elasticsearch_logging: bool = False

    # Storage
    voicenotes_dir: str = "/data/voicenotes"
    public_base_url: str = "http://localhost:8000/voicenotes"
    admin_base_url: str = "http://localhost:8081/"

    # Limits
    max_submissions_per_day: int = 5
    max_upload_bytes: int = 50 * 1024 * 1024
    max_request_bytes: int = 64 * 1024 * 1024  # Transport ceiling, checked before parsing
    allowed_content_types: list[str] = ["audio/webm", "video/webm"]
    accepted_extension: str = ".webm"
    max_recording_seconds: int = 300

    # Server
    trust_forwarded_for: bool = False  # Enable only behind a reverse proxy
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    log_level: str = "INFO"
    log_json: bool = False

    model_config = {"env_prefix": "", "case_sensitive": False}


def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

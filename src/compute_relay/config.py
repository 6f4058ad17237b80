"""Configuration management for ComputeRelay."""
from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    List settings are read from JSON-encoded values.
    """

    # Application
    APP_NAME: str = "ComputeRelay"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./compute_relay.db"
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_ECHO: bool = False

    # Artifact directories
    INPUT_DIR: str = "/app/input"
    OUTPUT_DIR: str = "/app/output"
    ALLOWED_INPUT_EXTENSIONS: List[str] = [".json", ".csv", ".dat"]

    # External compute program
    COMPUTE_COMMAND: str = "compute"
    COMPUTE_TIMEOUT_SECONDS: Optional[int] = None
    COMPUTE_FOLLOW_UP_FLAGS: str = "--follow-up"

    # Heartbeats emitted by the compute program
    HEARTBEAT_URL: str = "http://localhost:8080/heartbeat"
    HEARTBEAT_INTERVAL_MS: int = 5000
    HEARTBEAT_TOKEN: Optional[str] = None
    HEARTBEAT_FLUSH_INTERVAL: int = 60  # Seconds between buffered heartbeat flushes

    # Input artifact polling
    INPUT_POLL_ATTEMPTS: int = 5
    INPUT_POLL_DELAY_SECONDS: float = 0.1

    # Result artifact naming: <prefix>_<YYYYMMDD_HHMMSS><ext>
    RESULT_FILE_PREFIX: str = "result"
    RESULT_FILE_EXTENSIONS: List[str] = [".json", ".zip"]

    # Upload gateway
    UPLOAD_MAX_ATTEMPTS: int = 3
    UPLOAD_RETRY_DELAY_SECONDS: float = 2.0
    UPLOAD_TIMEOUT_SECONDS: float = 120.0

    # Queue and worker
    QUEUE_CAPACITY: int = 100
    WORKER_MAX_CONCURRENT_JOBS: int = 1
    WORKER_POLL_INTERVAL: float = 1.0
    WORKER_ENABLED: bool = True

    # Prometheus metrics exporter port (disabled when unset)
    METRICS_PORT: Optional[int] = None

    # Job defaults
    DEFAULT_MAX_RETRIES: int = 3
    DEFAULT_DOMAIN_VALUE: float = 4.0
    FOLLOW_UP_SUFFIX: str = "-followup"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Singleton settings instance
    """
    return Settings()
